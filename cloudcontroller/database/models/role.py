from enum import Enum


class GlobalRole(str, Enum):
    """
    플랫폼 전체에 적용되는 역할입니다.
    admin은 모든 읽기/쓰기, 나머지 두 역할은 모든 리소스에 대한 읽기만 허용합니다.
    """
    ADMIN = "admin"
    ADMIN_READ_ONLY = "admin_read_only"
    GLOBAL_AUDITOR = "global_auditor"


class OrganizationRole(str, Enum):
    """사용자가 조직(Organization) 안에서 가질 수 있는 역할입니다."""
    USER = "user"
    MANAGER = "manager"
    BILLING_MANAGER = "billing_manager"
    AUDITOR = "auditor"


class SpaceRole(str, Enum):
    """사용자가 스페이스(Space) 안에서 가질 수 있는 역할입니다."""
    DEVELOPER = "developer"
    MANAGER = "manager"
    AUDITOR = "auditor"
