import logging
import unicodedata
from typing import Any, Callable, Dict, List, Mapping, Optional

from cloudcontroller.database import models
from cloudcontroller.database.models.app import APP_STATES
from cloudcontroller.database.models.organization import ORGANIZATION_STATUSES
from cloudcontroller.database.models import OrganizationRole
from cloudcontroller.repositories.interfaces import (
    IAppRepository, IDomainRepository, IOrganizationRepository,
    ISecurityGroupRepository, IServiceInstanceRepository, ISpaceRepository,
)
from cloudcontroller.services.authorization import Operation
from cloudcontroller.services.exceptions import (
    DuplicateNameError, InvalidFormatError, InvalidRelationError,
    InvalidServiceBindingError, LastManagerRemovalError, MissingFieldError,
    QuotaExceededError, UnauthorizedAccessToPrivateDomainError,
)

logger = logging.getLogger(__name__)

SECURITY_GROUP_PROTOCOLS = ("tcp", "udp", "icmp", "all")

ANNOTATION_KEY_MAX_LENGTH = 63
ANNOTATION_KEY_PREFIX_MAX_LENGTH = 253
ANNOTATION_VALUE_MAX_LENGTH = 5000

Rule = Callable[[Operation, Any, Mapping[str, Any]], None]

_MISSING = object()


def proposed_value(node, proposed_state: Mapping[str, Any], field: str):
    """변경 예정 값이 있으면 그것을, 없으면 노드의 현재 값을 반환합니다."""
    value = proposed_state.get(field, _MISSING)
    return getattr(node, field, None) if value is _MISSING else value


def has_control_characters(value: str) -> bool:
    # 개행, ESC, 탭 등 Cc 범주만 거부합니다. 유니코드 문자와 구두점, 역슬래시는 허용합니다.
    return any(unicodedata.category(ch) == "Cc" for ch in value)


class ConstraintEngine:
    """
    변경이 반영되기 전에 엔티티별 불변식을 검사합니다.

    규칙은 엔티티 클래스마다 선언된 순서대로 실행되며, 처음 실패한 규칙의 예외가 그대로 올라갑니다.
    저장소의 유니크 인덱스가 최종 판정을 내리므로 여기서의 중복 검사는 사전 확인일 뿐입니다.
    """
    def __init__(
        self,
        org_repo: IOrganizationRepository,
        space_repo: ISpaceRepository,
        app_repo: IAppRepository,
        service_instance_repo: IServiceInstanceRepository,
        domain_repo: IDomainRepository,
        security_group_repo: ISecurityGroupRepository,
    ):
        self.org_repo = org_repo
        self.space_repo = space_repo
        self.app_repo = app_repo
        self.service_instance_repo = service_instance_repo
        self.domain_repo = domain_repo
        self.security_group_repo = security_group_repo

        self._rules: Dict[type, List[Rule]] = {
            models.Organization: [
                self._name_required("Organization"),
                self._name_format("Organization"),
                self._organization_name_unique,
                self._organization_status,
                self._private_domain_ownership,
                self._manager_floor,
            ],
            models.Space: [
                self._name_required("Space"),
                self._name_format("Space"),
                self._space_name_unique,
                self._space_member_of_organization,
            ],
            models.App: [
                self._name_required("App"),
                self._app_name_unique,
                self._app_attributes,
                self._app_memory_quota,
            ],
            models.AppAnnotation: [
                self._annotation_key,
                self._annotation_value,
                self._annotation_key_unique,
            ],
            models.ServiceInstance: [
                self._name_required("Service instance"),
                self._service_instance_name_unique,
            ],
            models.ServiceBinding: [
                self._binding_same_space,
                self._binding_unique,
            ],
            models.SecurityGroup: [
                self._name_required("Security group"),
                self._security_group_name_unique,
                self._security_group_rules,
            ],
            models.Domain: [
                self._name_required("Domain"),
                self._domain_name_unique,
            ],
            models.Route: [
                self._route_domain_usable,
                self._route_unique,
            ],
        }

    def validate(self, operation: Operation, node, proposed_state: Optional[Mapping[str, Any]] = None):
        """
        node에 proposed_state를 적용한 결과가 유효한지 검사합니다.

        Args:
            operation: 수행하려는 작업.
            node: 대상 노드. 생성 시에는 아직 저장되지 않은 객체입니다.
            proposed_state: 바뀔 필드(name, status, managers, domain, member 등). 생략하면 노드의 현재 값을 검사합니다.

        Raises:
            ValidationError, ConstraintViolation: 처음 실패한 규칙의 예외.
        """
        proposed = proposed_state or {}
        for rule in self.rules_for(node):
            rule(operation, node, proposed)

    def rules_for(self, node) -> List[Rule]:
        for klass in type(node).__mro__:
            rules = self._rules.get(klass)
            if rules is not None:
                return rules
        return []

    # --- 공통 규칙 ---
    def _name_required(self, label: str) -> Rule:
        def rule(operation, node, proposed):
            name = proposed_value(node, proposed, "name")
            if name is None or not str(name).strip():
                raise MissingFieldError(f"{label} name is required.")
        return rule

    def _name_format(self, label: str) -> Rule:
        def rule(operation, node, proposed):
            name = proposed_value(node, proposed, "name")
            if has_control_characters(name):
                raise InvalidFormatError(f"{label} name contains invalid characters.")
        return rule

    # --- Organization ---
    def _organization_name_unique(self, operation, org, proposed):
        name = proposed_value(org, proposed, "name")
        existing = self.org_repo.find_by_name(name)
        if existing is not None and existing is not org:
            raise DuplicateNameError(f"Organization with name '{name}' already exists.")

    def _organization_status(self, operation, org, proposed):
        status = proposed_value(org, proposed, "status")
        if status is not None and status not in ORGANIZATION_STATUSES:
            raise InvalidFormatError(f"Organization status must be one of {', '.join(ORGANIZATION_STATUSES)}.")

    def _private_domain_ownership(self, operation, org, proposed):
        domain = proposed.get("domain")
        if domain is None or domain.is_shared():
            return
        if not domain.usable_by(org):
            raise UnauthorizedAccessToPrivateDomainError(
                f"Domain '{domain.name}' is owned by another organization."
            )

    def _manager_floor(self, operation, org, proposed):
        if "managers" not in proposed:
            return
        current = org.user_guids_with_role(OrganizationRole.MANAGER.value)
        # 이미 매니저가 0명인 조직은 그대로 둡니다. 비어 있지 않은 집합이 비는 전이만 거부합니다.
        if current and not proposed["managers"]:
            logger.info("Rejected removal of the last manager of organization %s", org.guid)
            raise LastManagerRemovalError("Cannot remove the last manager of the organization.")

    # --- Space ---
    def _space_name_unique(self, operation, space, proposed):
        name = proposed_value(space, proposed, "name")
        organization = proposed_value(space, proposed, "organization")
        existing = self.space_repo.find_by_name_and_organization(name, organization)
        if existing is not None and existing is not space:
            raise DuplicateNameError(f"Space with name '{name}' already exists in the organization.")

    def _space_member_of_organization(self, operation, space, proposed):
        user = proposed.get("member")
        if user is None:
            return
        if not self.org_repo.has_role(user, space.organization, OrganizationRole.USER.value):
            raise InvalidRelationError(
                f"User '{user.username}' is not a member of organization '{space.organization.name}'."
            )

    # --- App ---
    def _app_name_unique(self, operation, app, proposed):
        name = proposed_value(app, proposed, "name")
        existing = self.app_repo.find_by_name_and_space(name, app.space)
        if existing is not None and existing is not app:
            raise DuplicateNameError(f"App with name '{name}' already exists in the space.")

    def _app_attributes(self, operation, app, proposed):
        for field in ("memory", "instances"):
            value = proposed_value(app, proposed, field)
            if value is None:
                continue
            if not isinstance(value, int) or isinstance(value, bool) or value < 0 or (field == "memory" and value == 0):
                raise InvalidFormatError(f"App {field} must be a positive integer.")
        state = proposed_value(app, proposed, "state")
        if state is not None and state not in APP_STATES:
            raise InvalidFormatError(f"App state must be one of {', '.join(APP_STATES)}.")

    def _app_memory_quota(self, operation, app, proposed):
        organization = app.space.organization
        quota = organization.quota_definition
        if quota is None:
            return
        memory = proposed_value(app, proposed, "memory") or 0
        instances = proposed_value(app, proposed, "instances") or 0
        requested = memory * instances
        if operation is Operation.UPDATE and requested <= app.total_memory:
            return
        exclude = app if app.id is not None else None
        used = self.org_repo.memory_used(organization, exclude_app=exclude)
        if used + requested > quota.memory_limit:
            raise QuotaExceededError("You have exceeded your organization's memory limit.")

    # --- AppAnnotation ---
    def _annotation_key(self, operation, annotation, proposed):
        key = proposed_value(annotation, proposed, "key")
        if key is None or not str(key).strip():
            raise MissingFieldError("Annotation key is required.")
        if has_control_characters(key) or key.count("/") > 1:
            raise InvalidFormatError(f"Annotation key '{key}' contains invalid characters.")
        # "prefix/name" 형태에서는 접두사와 이름의 길이를 따로 제한합니다.
        prefix, _, name = key.rpartition("/")
        if not name or len(name) > ANNOTATION_KEY_MAX_LENGTH:
            raise InvalidFormatError(
                f"Annotation key name must be between 1 and {ANNOTATION_KEY_MAX_LENGTH} characters."
            )
        if len(prefix) > ANNOTATION_KEY_PREFIX_MAX_LENGTH:
            raise InvalidFormatError(
                f"Annotation key prefix must be at most {ANNOTATION_KEY_PREFIX_MAX_LENGTH} characters."
            )

    def _annotation_value(self, operation, annotation, proposed):
        value = proposed_value(annotation, proposed, "value")
        if value is not None and len(value) > ANNOTATION_VALUE_MAX_LENGTH:
            raise InvalidFormatError(f"Annotation value must be at most {ANNOTATION_VALUE_MAX_LENGTH} characters.")

    def _annotation_key_unique(self, operation, annotation, proposed):
        key = proposed_value(annotation, proposed, "key")
        existing = self.app_repo.find_annotation(annotation.app, key)
        if existing is not None and existing is not annotation:
            raise DuplicateNameError(f"Annotation with key '{key}' already exists for this app.")

    # --- ServiceInstance ---
    def _service_instance_name_unique(self, operation, instance, proposed):
        name = proposed_value(instance, proposed, "name")
        existing = self.service_instance_repo.find_by_name_and_space(name, instance.space)
        if existing is not None and existing is not instance:
            raise DuplicateNameError(f"Service instance with name '{name}' already exists in the space.")

    # --- ServiceBinding ---
    def _binding_same_space(self, operation, binding, proposed):
        if binding.app.space.guid != binding.service_instance.space.guid:
            raise InvalidServiceBindingError("The app and the service instance must be in the same space.")

    def _binding_unique(self, operation, binding, proposed):
        existing = self.service_instance_repo.find_binding(binding.app, binding.service_instance)
        if existing is not None and existing is not binding:
            raise DuplicateNameError("The app is already bound to the service instance.")

    # --- SecurityGroup ---
    def _security_group_name_unique(self, operation, security_group, proposed):
        name = proposed_value(security_group, proposed, "name")
        existing = self.security_group_repo.find_by_name(name)
        if existing is not None and existing is not security_group:
            raise DuplicateNameError(f"Security group with name '{name}' already exists.")

    def _security_group_rules(self, operation, security_group, proposed):
        rules = proposed_value(security_group, proposed, "rules")
        if rules is None:
            return
        if not isinstance(rules, list):
            raise InvalidFormatError("Rules must be a list.")
        for index, rule in enumerate(rules):
            self._check_rule(index, rule)

    @staticmethod
    def _check_rule(index: int, rule):
        prefix = f"Rules[{index}]:"
        if not isinstance(rule, dict):
            raise InvalidFormatError(f"{prefix} must be an object.")
        protocol = rule.get("protocol")
        if protocol not in SECURITY_GROUP_PROTOCOLS:
            raise InvalidFormatError(f"{prefix} protocol must be 'tcp', 'udp', 'icmp', or 'all'.")
        if not rule.get("destination"):
            raise InvalidFormatError(f"{prefix} destination is required.")
        if protocol in ("tcp", "udp") and not rule.get("ports"):
            raise InvalidFormatError(f"{prefix} ports are required for protocols of type TCP and UDP.")
        if protocol == "icmp":
            for key in ("type", "code"):
                value = rule.get(key)
                if not isinstance(value, int) or isinstance(value, bool):
                    raise InvalidFormatError(f"{prefix} {key} is required for protocols of type ICMP.")

    # --- Domain / Route ---
    def _domain_name_unique(self, operation, domain, proposed):
        name = proposed_value(domain, proposed, "name")
        existing = self.domain_repo.find_by_name(name)
        if existing is not None and existing is not domain:
            raise DuplicateNameError(f"Domain with name '{name}' already exists.")

    def _route_domain_usable(self, operation, route, proposed):
        if not route.domain.usable_by(route.space.organization):
            raise UnauthorizedAccessToPrivateDomainError(
                f"Domain '{route.domain.name}' is owned by another organization."
            )

    def _route_unique(self, operation, route, proposed):
        existing = self.domain_repo.find_route(route.host or "", route.domain)
        if existing is not None and existing is not route:
            raise DuplicateNameError(f"Route '{route.fqdn}' already exists.")
