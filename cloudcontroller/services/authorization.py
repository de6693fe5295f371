import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Set

from cloudcontroller.database import models
from cloudcontroller.database.models import GlobalRole, OrganizationRole, SpaceRole
from cloudcontroller.repositories.interfaces import (
    IAppRepository, IDomainRepository, IOrganizationRepository,
    ISecurityGroupRepository, IServiceInstanceRepository, ISpaceRepository,
)
from cloudcontroller.services.exceptions import (
    AppNotFoundError, AuthorizationError, DomainNotFoundError, NotFoundError,
    OrganizationNotFoundError, QuotaDefinitionNotFoundError, RouteNotFoundError,
    SecurityGroupNotFoundError, ServiceBindingNotFoundError,
    ServiceInstanceNotFoundError, ServicePlanNotFoundError, SpaceNotFoundError,
)

logger = logging.getLogger(__name__)

GLOBAL_READ_ROLES = frozenset(r.value for r in GlobalRole)

# 관리자만 쓸 수 있는 플랫폼 전역 리소스
ADMIN_WRITE_ONLY = (
    models.SecurityGroup, models.SharedDomain, models.QuotaDefinition,
    models.ServicePlan, models.ServicePlanVisibility,
)

NOT_FOUND_ERRORS = (
    (models.Organization, OrganizationNotFoundError, "Organization"),
    (models.Space, SpaceNotFoundError, "Space"),
    (models.App, AppNotFoundError, "App"),
    (models.ServiceInstance, ServiceInstanceNotFoundError, "Service instance"),
    (models.ServiceBinding, ServiceBindingNotFoundError, "Service binding"),
    (models.ServicePlan, ServicePlanNotFoundError, "Service plan"),
    (models.Domain, DomainNotFoundError, "Domain"),
    (models.Route, RouteNotFoundError, "Route"),
    (models.SecurityGroup, SecurityGroupNotFoundError, "Security group"),
    (models.QuotaDefinition, QuotaDefinitionNotFoundError, "Quota definition"),
)


class Operation(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AccessDecision(Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class Decision:
    """authorize()의 결과. 거부된 경우 reason에 사유를 담습니다."""
    decision: AccessDecision
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.decision is AccessDecision.ALLOW

    @classmethod
    def allow(cls) -> "Decision":
        return cls(AccessDecision.ALLOW)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(AccessDecision.DENY, reason)


@dataclass(frozen=True)
class Actor:
    """
    요청을 수행하는 주체와 그가 가진 (역할, 범위) 목록입니다.

    org_roles / space_roles는 각각 조직 guid, 스페이스 guid를 키로 하는 역할 집합이고,
    space_orgs는 역할이 있는 스페이스가 어느 조직에 속하는지를 나타냅니다.
    역할이 하나도 없는 Actor는 로그인만 한 일반 사용자입니다.
    """
    user_guid: Optional[str] = None
    global_roles: FrozenSet[str] = frozenset()
    org_roles: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    space_roles: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    space_orgs: Mapping[str, str] = field(default_factory=dict)

    def is_admin(self) -> bool:
        return GlobalRole.ADMIN.value in self.global_roles

    def has_global_read(self) -> bool:
        return bool(self.global_roles & GLOBAL_READ_ROLES)

    def has_org_role(self, org_guid: str, *roles) -> bool:
        held = self.org_roles.get(org_guid, frozenset())
        return any(getattr(role, "value", role) in held for role in roles)

    def has_space_role(self, space_guid: str, *roles) -> bool:
        held = self.space_roles.get(space_guid, frozenset())
        if not roles:
            return bool(held)
        return any(getattr(role, "value", role) in held for role in roles)

    def has_any_role_in_org(self, org_guid: str) -> bool:
        if self.org_roles.get(org_guid):
            return True
        return any(
            self.space_orgs.get(space_guid) == org_guid
            for space_guid, roles in self.space_roles.items() if roles
        )


def scope_of(node):
    """노드가 속한 (조직, 스페이스)를 반환합니다. 플랫폼 전역 리소스는 (None, None)입니다."""
    if isinstance(node, models.Organization):
        return node, None
    if isinstance(node, models.Space):
        return node.organization, node
    if isinstance(node, (models.App, models.ServiceInstance, models.Route)):
        space = node.space
        return (space.organization if space is not None else None), space
    if isinstance(node, (models.ServiceBinding, models.AppAnnotation)):
        space = node.app.space if node.app is not None else None
        return (space.organization if space is not None else None), space
    if isinstance(node, models.PrivateDomain):
        return node.owning_organization, None
    if isinstance(node, models.ServicePlanVisibility):
        return node.organization, None
    return None, None


def parent_of(node):
    """쓰기 권한을 판단할 때 기준이 되는 상위 노드"""
    if isinstance(node, models.Space):
        return node.organization
    if isinstance(node, (models.App, models.ServiceInstance, models.Route)):
        return node.space
    if isinstance(node, (models.ServiceBinding, models.AppAnnotation)):
        return node.app
    if isinstance(node, models.PrivateDomain):
        return node.owning_organization
    return None


def not_found_error(node) -> NotFoundError:
    for model_class, error_class, label in NOT_FOUND_ERRORS:
        if isinstance(node, model_class):
            return error_class(f"{label} not found")
    return NotFoundError("Resource not found")


class AuthorizationFilter:
    """
    Actor가 특정 노드에 대해 작업을 수행할 수 있는지 판단하고,
    목록 조회 시 보이는 부분집합만 골라냅니다.
    """
    def __init__(
        self,
        org_repo: Optional[IOrganizationRepository] = None,
        space_repo: Optional[ISpaceRepository] = None,
        app_repo: Optional[IAppRepository] = None,
        service_instance_repo: Optional[IServiceInstanceRepository] = None,
        domain_repo: Optional[IDomainRepository] = None,
        security_group_repo: Optional[ISecurityGroupRepository] = None,
    ):
        listers = {
            "organization": org_repo.list_all if org_repo else None,
            "space": space_repo.list_all if space_repo else None,
            "app": app_repo.list_all if app_repo else None,
            "service_instance": service_instance_repo.list_all if service_instance_repo else None,
            "domain": domain_repo.list_all if domain_repo else None,
            "route": domain_repo.list_routes if domain_repo else None,
            "security_group": security_group_repo.list_all if security_group_repo else None,
        }
        self._listers: Dict[str, Callable[[], List]] = {k: v for k, v in listers.items() if v is not None}

    def authorize(self, actor: Actor, operation: Operation, node) -> Decision:
        if operation is Operation.READ:
            decision = self._authorize_read(actor, node)
        else:
            decision = self._authorize_write(actor, operation, node)
        if not decision.allowed:
            logger.debug("Denied %s on %s for user %s: %s",
                         operation.value, type(node).__name__, actor.user_guid, decision.reason)
        return decision

    def can_read(self, actor: Actor, node) -> bool:
        return self._authorize_read(actor, node).allowed

    def ensure(self, actor: Actor, operation: Operation, node):
        """
        권한이 없으면 예외를 발생시킵니다.

        존재 여부가 새어 나가지 않도록, 읽을 수 없는 리소스에 대해서는 403 대신 404를 냅니다.
        생성 요청은 아직 존재하지 않으므로 상위 노드의 가시성을 기준으로 판단합니다.

        Raises:
            NotFoundError: 대상(또는 생성 시 상위 노드)을 볼 수 없을 때.
            AuthorizationError: 볼 수는 있지만 해당 작업 권한이 없을 때.
        """
        decision = self.authorize(actor, operation, node)
        if decision.allowed:
            return
        if operation is Operation.READ:
            raise not_found_error(node)
        target = parent_of(node) if operation is Operation.CREATE else node
        if target is not None and not self.can_read(actor, target):
            raise not_found_error(target)
        raise AuthorizationError(f"You are not authorized to perform the requested action: {decision.reason}")

    def visible_set(self, actor: Actor, entity_type: str, scope: Optional[str] = None) -> List:
        """
        Actor에게 보이는 노드만 생성 순서대로 반환합니다.

        Args:
            actor: 요청 주체.
            entity_type: 'organization', 'space', 'app', 'service_instance', 'domain', 'route', 'security_group'.
            scope: 조직 또는 스페이스 guid. 주어지면 그 범위에 속한 노드만 반환합니다.
                전역으로 켜진 보안 그룹은 모든 스페이스에 적용되므로 어떤 범위에도 포함됩니다.
        """
        lister = self._listers.get(entity_type)
        if lister is None:
            raise ValueError(f"Unknown entity type '{entity_type}'.")
        nodes = lister()
        if scope is not None:
            nodes = [n for n in nodes if self._in_scope(n, scope)]
        return [n for n in nodes if self.can_read(actor, n)]

    def _authorize_read(self, actor: Actor, node) -> Decision:
        if actor.has_global_read():
            return Decision.allow()
        if isinstance(node, (models.UsageEvent, models.BillingEvent)):
            return Decision.deny("usage events are visible to global roles only")
        if isinstance(node, models.SecurityGroup):
            return self._authorize_security_group_read(actor, node)
        if isinstance(node, (models.SharedDomain, models.QuotaDefinition, models.ServicePlan)):
            return Decision.allow()

        org, space = scope_of(node)
        if org is None:
            return Decision.deny("resource has no owning organization")
        if space is None:
            # 조직 자체 또는 조직 소유 리소스(프라이빗 도메인 등)
            if actor.has_any_role_in_org(org.guid):
                return Decision.allow()
            return Decision.deny("no role in organization")
        if actor.has_org_role(org.guid, OrganizationRole.MANAGER) or actor.has_space_role(space.guid):
            return Decision.allow()
        return Decision.deny("no role in space")

    def _authorize_security_group_read(self, actor: Actor, security_group: models.SecurityGroup) -> Decision:
        # 전역으로 켜진 보안 그룹은 플랫폼 전체에 적용되므로 누구에게나 보입니다.
        if security_group.is_globally_enabled():
            return Decision.allow()
        for space in security_group.associated_spaces():
            if actor.has_space_role(space.guid):
                return Decision.allow()
            if actor.has_org_role(space.organization.guid, OrganizationRole.MANAGER):
                return Decision.allow()
        return Decision.deny("security group is not associated with any of the actor's spaces")

    def _authorize_write(self, actor: Actor, operation: Operation, node) -> Decision:
        if actor.is_admin():
            return Decision.allow()
        if isinstance(node, ADMIN_WRITE_ONLY):
            return Decision.deny("admin role required")

        org, space = scope_of(node)
        if org is None:
            return Decision.deny("admin role required")
        if org.is_suspended():
            return Decision.deny("organization is suspended")

        if isinstance(node, models.Organization):
            if operation is Operation.UPDATE and actor.has_org_role(org.guid, OrganizationRole.MANAGER):
                return Decision.allow()
            return Decision.deny("organization manager role required")
        if isinstance(node, models.PrivateDomain):
            if actor.has_org_role(org.guid, OrganizationRole.MANAGER):
                return Decision.allow()
            return Decision.deny("organization manager role required")
        if isinstance(node, models.Space):
            if actor.has_org_role(org.guid, OrganizationRole.MANAGER):
                return Decision.allow()
            if operation is Operation.UPDATE and actor.has_space_role(space.guid, SpaceRole.MANAGER):
                return Decision.allow()
            return Decision.deny("organization or space manager role required")
        if space is not None and actor.has_space_role(space.guid, SpaceRole.DEVELOPER):
            return Decision.allow()
        return Decision.deny("space developer role required")

    def _in_scope(self, node, scope: str) -> bool:
        if isinstance(node, models.SecurityGroup) and node.is_globally_enabled():
            return True
        return scope in self._scope_guids(node)

    def _scope_guids(self, node) -> Set[str]:
        if isinstance(node, models.SecurityGroup):
            guids = set()
            for space in node.associated_spaces():
                guids.update((space.guid, space.organization.guid))
            return guids
        org, space = scope_of(node)
        return {n.guid for n in (org, space) if n is not None}
