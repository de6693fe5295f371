# cloudcontroller/services/exceptions.py


class ApiError(Exception):
    """모든 도메인 오류의 기반 클래스. code는 클라이언트에게 노출되는 오류 코드입니다."""
    code = "UnknownError"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


# --- Validation Exceptions (422) ---
class ValidationError(ApiError):
    """형식/필수값/유일성 검증에 실패했을 때"""
    code = "ValidationError"

class DuplicateNameError(ValidationError):
    """같은 범위 안에 동일한 이름이 이미 존재할 때"""
    code = "DuplicateName"

class InvalidFormatError(ValidationError):
    """값의 형식이 올바르지 않을 때 (예: 이름에 제어 문자 포함)"""
    code = "InvalidFormat"

class MissingFieldError(ValidationError):
    """필수 값이 비어 있을 때"""
    code = "MissingField"


# --- Constraint Exceptions (422) ---
class ConstraintViolation(ApiError):
    """도메인 불변식을 위반했을 때"""
    code = "ConstraintViolation"

class InvalidServiceBindingError(ConstraintViolation):
    """앱과 서비스 인스턴스가 서로 다른 스페이스에 있을 때"""
    code = "InvalidServiceBinding"

class UnauthorizedAccessToPrivateDomainError(ConstraintViolation):
    """다른 조직이 소유한 프라이빗 도메인을 사용하려고 할 때"""
    code = "UnauthorizedAccessToPrivateDomain"

class LastManagerRemovalError(ConstraintViolation):
    """조직의 마지막 매니저를 제거하려고 할 때 (업데이트 훅에서 거부)"""
    code = "LastManagerRemoval"

class AssociationNotEmptyError(ConstraintViolation):
    """하위 리소스나 역할이 남아 있어 비재귀적으로 처리할 수 없을 때"""
    code = "AssociationNotEmpty"

class InvalidRelationError(ConstraintViolation):
    """조직 구성원이 아닌 사용자에게 스페이스 역할을 주려고 할 때"""
    code = "InvalidRelation"

class QuotaExceededError(ConstraintViolation):
    """조직의 메모리 쿼터를 초과할 때"""
    code = "QuotaExceeded"


# --- Authorization Exceptions ---
class AuthorizationError(ApiError):
    """리소스는 보이지만 해당 작업 권한이 없을 때 (403)"""
    code = "NotAuthorized"

class TokenInvalidError(ApiError):
    """토큰이 유효하지 않거나 없을 때"""
    code = "InvalidAuthToken"

class AuthenticationError(ApiError):
    """사용자 자격 증명 실패 시"""
    code = "InvalidCredentials"


# --- Not Found Exceptions (404) ---
class NotFoundError(ApiError):
    """식별자가 존재하지 않거나, 요청자에게 보이지 않을 때"""
    code = "ResourceNotFound"

class OrganizationNotFoundError(NotFoundError):
    pass

class SpaceNotFoundError(NotFoundError):
    pass

class UserNotFoundError(NotFoundError):
    pass

class AppNotFoundError(NotFoundError):
    pass

class ServiceInstanceNotFoundError(NotFoundError):
    pass

class ServiceBindingNotFoundError(NotFoundError):
    pass

class ServicePlanNotFoundError(NotFoundError):
    pass

class DomainNotFoundError(NotFoundError):
    pass

class RouteNotFoundError(NotFoundError):
    pass

class SecurityGroupNotFoundError(NotFoundError):
    pass

class QuotaDefinitionNotFoundError(NotFoundError):
    pass


# --- Cascade Exceptions ---
class CascadeDeletionError(ApiError):
    """연쇄 삭제 도중 실패했을 때. 막힌 리소스의 종류와 guid를 함께 전달합니다."""
    code = "CascadeDeletionFailed"

    def __init__(self, resource_type: str, resource_guid: str, cause: Exception):
        super().__init__(f"Failed to delete {resource_type} '{resource_guid}': {cause}")
        self.resource_type = resource_type
        self.resource_guid = resource_guid
        self.cause = cause
