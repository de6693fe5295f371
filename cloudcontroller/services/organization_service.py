import logging
from typing import Any, Dict, List, Optional

from cloudcontroller.database import models
from cloudcontroller.database.models import OrganizationRole
from cloudcontroller.database.models.organization import ACTIVE
from cloudcontroller.repositories.interfaces import (
    IDomainRepository, IOrganizationRepository, ISpaceRepository, IUnitOfWork, IUserRepository,
)
from cloudcontroller.services.authorization import Actor, AuthorizationFilter, Operation
from cloudcontroller.services.cascade import CascadeDeleter, DeletedSet
from cloudcontroller.services.constraints import ConstraintEngine
from cloudcontroller.services.exceptions import (
    AssociationNotEmptyError, AuthorizationError, DomainNotFoundError, InvalidFormatError,
    MissingFieldError, OrganizationNotFoundError, QuotaDefinitionNotFoundError, UserNotFoundError,
)
from cloudcontroller.services.representations import domain_repr, organization_repr, quota_repr
from cloudcontroller.services.usage_events import UsageEventEmitter

logger = logging.getLogger(__name__)

DEFAULT_QUOTA_NAME = "default"


def parse_org_role(role) -> str:
    try:
        return OrganizationRole(getattr(role, "value", role)).value
    except ValueError as e:
        raise InvalidFormatError(f"Unknown organization role '{role}'.") from e


class OrganizationService:
    """조직과 조직 역할, 도메인, 쿼터를 관리합니다."""

    def __init__(
        self,
        uow: IUnitOfWork,
        org_repo: IOrganizationRepository,
        space_repo: ISpaceRepository,
        user_repo: IUserRepository,
        domain_repo: IDomainRepository,
        authz: AuthorizationFilter,
        constraints: ConstraintEngine,
        emitter: UsageEventEmitter,
        cascade: CascadeDeleter,
    ):
        self.uow = uow
        self.org_repo = org_repo
        self.space_repo = space_repo
        self.user_repo = user_repo
        self.domain_repo = domain_repo
        self.authz = authz
        self.constraints = constraints
        self.emitter = emitter
        self.cascade = cascade

    def find(self, actor: Actor, org_guid: str) -> models.Organization:
        """
        Actor에게 보이는 조직을 guid로 찾습니다.

        Raises:
            OrganizationNotFoundError: 없거나 Actor에게 보이지 않을 때.
        """
        org = self.org_repo.find_by_guid(org_guid)
        if not org or not self.authz.can_read(actor, org):
            raise OrganizationNotFoundError("Organization not found")
        return org

    def create(self, actor: Actor, name: str, quota_definition_guid: Optional[str] = None,
               billing_enabled: bool = False) -> Dict[str, Any]:
        """
        새 조직을 생성합니다. 쿼터를 지정하지 않으면 'default' 쿼터가 있을 경우 그것을 사용합니다.

        Raises:
            AuthorizationError: 관리자가 아닐 때.
            MissingFieldError, InvalidFormatError, DuplicateNameError: 이름 검증 실패 시.
        """
        org = models.Organization(name=(name or "").strip(), status=ACTIVE, billing_enabled=False)
        self.authz.ensure(actor, Operation.CREATE, org)

        with self.uow.transaction():
            if quota_definition_guid:
                org.quota_definition = self._find_quota(quota_definition_guid)
            else:
                org.quota_definition = self.org_repo.find_quota_by_name(DEFAULT_QUOTA_NAME)
            self.constraints.validate(Operation.CREATE, org)
            self.org_repo.create(org)
            if billing_enabled:
                org.billing_enabled = True
                self.org_repo.save(org)
                self.emitter.start_billing(org)
            logger.info("Created organization %s (%s)", org.name, org.guid)
            return organization_repr(org)

    def get(self, actor: Actor, org_guid: str) -> Dict[str, Any]:
        return organization_repr(self.find(actor, org_guid))

    def list(self, actor: Actor) -> List[Dict[str, Any]]:
        return [organization_repr(o) for o in self.authz.visible_set(actor, "organization")]

    def update(self, actor: Actor, org_guid: str, name: Optional[str] = None, status: Optional[str] = None,
               billing_enabled: Optional[bool] = None, quota_definition_guid: Optional[str] = None) -> Dict[str, Any]:
        """
        조직의 이름, 상태, 과금 여부, 쿼터를 변경합니다.
        이름은 조직 매니저도 바꿀 수 있지만 나머지는 관리자만 바꿀 수 있습니다.
        과금이 꺼져 있다가 켜지면 과금 시작 이벤트를 기록합니다.
        """
        with self.uow.transaction():
            org = self.find(actor, org_guid)
            self.authz.ensure(actor, Operation.UPDATE, org)
            admin_fields = (status, billing_enabled, quota_definition_guid)
            if any(value is not None for value in admin_fields) and not actor.is_admin():
                raise AuthorizationError("You are not authorized to perform the requested action: admin role required")

            proposed: Dict[str, Any] = {}
            if name is not None:
                proposed["name"] = name.strip()
            if status is not None:
                proposed["status"] = status
            self.constraints.validate(Operation.UPDATE, org, proposed)

            for field, value in proposed.items():
                setattr(org, field, value)
            if quota_definition_guid is not None:
                org.quota_definition = self._find_quota(quota_definition_guid)

            billing_started = bool(billing_enabled) and not org.billing_enabled
            if billing_enabled is not None:
                org.billing_enabled = billing_enabled
            self.org_repo.save(org)
            if billing_started:
                self.emitter.start_billing(org)
            return organization_repr(org)

    def delete(self, actor: Actor, org_guid: str, recursive: bool = False) -> DeletedSet:
        """
        조직을 삭제합니다. recursive이면 스페이스, 앱, 서비스 인스턴스, 라우트,
        서비스 플랜 노출 설정, 프라이빗 도메인까지 함께 삭제합니다.

        Raises:
            AssociationNotEmptyError: recursive가 아닌데 하위 리소스가 있을 때.
            CascadeDeletionError: 연쇄 삭제 도중 실패했을 때.
        """
        with self.uow.transaction():
            org = self.find(actor, org_guid)
            self.authz.ensure(actor, Operation.DELETE, org)
            return self.cascade.delete(org, recursive=recursive)

    # --- 조직 역할 ---
    def add_role(self, actor: Actor, org_guid: str, user_guid: str, role) -> Dict[str, Any]:
        """
        사용자에게 조직 역할을 부여합니다. user 이외의 역할을 받으면 조직 구성원(user)으로도 등록됩니다.
        """
        role = parse_org_role(role)
        with self.uow.transaction():
            org = self.find(actor, org_guid)
            self.authz.ensure(actor, Operation.UPDATE, org)
            user = self._find_user(user_guid)
            self.org_repo.add_role(user, org, OrganizationRole.USER.value)
            self.org_repo.add_role(user, org, role)
            logger.info("Granted %s role in organization %s to user %s", role, org.guid, user.guid)
            return organization_repr(org)

    def remove_role(self, actor: Actor, org_guid: str, user_guid: str, role) -> Dict[str, Any]:
        """
        사용자의 조직 역할을 회수합니다. user 역할은 remove_user를 통해 회수됩니다.

        Raises:
            LastManagerRemovalError: 마지막 매니저를 제거하려고 할 때.
        """
        role = parse_org_role(role)
        if role == OrganizationRole.USER.value:
            return self.remove_user(actor, org_guid, user_guid)

        with self.uow.transaction():
            org = self.find(actor, org_guid)
            self.authz.ensure(actor, Operation.UPDATE, org)
            user = self._find_user(user_guid)
            if role == OrganizationRole.MANAGER.value:
                remaining = [g for g in org.user_guids_with_role(role) if g != user.guid]
                self.constraints.validate(Operation.UPDATE, org, {"managers": remaining})
            self.org_repo.remove_role(user, org, role)
            return organization_repr(org)

    def add_user(self, actor: Actor, org_guid: str, user_guid: str) -> Dict[str, Any]:
        return self.add_role(actor, org_guid, user_guid, OrganizationRole.USER)

    def add_manager(self, actor: Actor, org_guid: str, user_guid: str) -> Dict[str, Any]:
        return self.add_role(actor, org_guid, user_guid, OrganizationRole.MANAGER)

    def remove_manager(self, actor: Actor, org_guid: str, user_guid: str) -> Dict[str, Any]:
        return self.remove_role(actor, org_guid, user_guid, OrganizationRole.MANAGER)

    def add_auditor(self, actor: Actor, org_guid: str, user_guid: str) -> Dict[str, Any]:
        return self.add_role(actor, org_guid, user_guid, OrganizationRole.AUDITOR)

    def add_billing_manager(self, actor: Actor, org_guid: str, user_guid: str) -> Dict[str, Any]:
        return self.add_role(actor, org_guid, user_guid, OrganizationRole.BILLING_MANAGER)

    def set_managers(self, actor: Actor, org_guid: str, user_guids: List[str]) -> Dict[str, Any]:
        """
        매니저 집합을 user_guids로 교체합니다.

        Raises:
            LastManagerRemovalError: 매니저가 있던 조직의 매니저 집합을 비우려고 할 때.
        """
        manager = OrganizationRole.MANAGER.value
        with self.uow.transaction():
            org = self.find(actor, org_guid)
            self.authz.ensure(actor, Operation.UPDATE, org)
            users = [self._find_user(guid) for guid in user_guids]
            self.constraints.validate(Operation.UPDATE, org, {"managers": [u.guid for u in users]})

            wanted = {u.guid for u in users}
            current = [a.user for a in org.user_roles if a.role == manager]
            for user in current:
                if user.guid not in wanted:
                    self.org_repo.remove_role(user, org, manager)
            for user in users:
                self.org_repo.add_role(user, org, OrganizationRole.USER.value)
                self.org_repo.add_role(user, org, manager)
            return organization_repr(org)

    def list_users(self, actor: Actor, org_guid: str, role=OrganizationRole.USER) -> List[str]:
        org = self.find(actor, org_guid)
        return org.user_guids_with_role(parse_org_role(role))

    def remove_user(self, actor: Actor, org_guid: str, user_guid: str) -> Dict[str, Any]:
        """
        조직에서 사용자를 제거합니다. (조직 user 역할만 회수)

        Raises:
            AssociationNotEmptyError: 사용자가 조직의 어떤 스페이스에든 역할을 가지고 있을 때.
        """
        with self.uow.transaction():
            org = self.find(actor, org_guid)
            self.authz.ensure(actor, Operation.UPDATE, org)
            user = self._find_user(user_guid)
            if self.space_repo.list_roles_in_organization(user, org):
                raise AssociationNotEmptyError("Please delete the user associations for your spaces in the organization.")
            self.org_repo.remove_role(user, org, OrganizationRole.USER.value)
            return organization_repr(org)

    def remove_user_recursive(self, actor: Actor, org_guid: str, user_guid: str) -> Dict[str, Any]:
        """조직의 모든 스페이스에서 사용자의 역할을 회수한 뒤 조직에서 제거합니다."""
        with self.uow.transaction():
            org = self.find(actor, org_guid)
            self.authz.ensure(actor, Operation.UPDATE, org)
            user = self._find_user(user_guid)
            space_roles = [(a.space, a.role) for a in self.space_repo.list_roles_in_organization(user, org)]
            for space, role in space_roles:
                self.space_repo.remove_role(user, space, role)
            self.org_repo.remove_role(user, org, OrganizationRole.USER.value)
            logger.info("Removed user %s from organization %s and %d space roles", user.guid, org.guid, len(space_roles))
            return organization_repr(org)

    # --- 도메인 ---
    def add_domain(self, actor: Actor, org_guid: str, domain_guid: str) -> Dict[str, Any]:
        """
        조직에 도메인을 추가합니다. 공유 도메인이나 이미 이 조직이 소유한 프라이빗 도메인이면 아무것도 하지 않습니다.

        Raises:
            DomainNotFoundError: 도메인이 없거나 보이지 않을 때.
            UnauthorizedAccessToPrivateDomainError: 보이지만 다른 조직이 소유한 프라이빗 도메인일 때.
        """
        with self.uow.transaction():
            org = self.find(actor, org_guid)
            self.authz.ensure(actor, Operation.UPDATE, org)
            domain = self.domain_repo.find_by_guid(domain_guid)
            if not domain:
                raise DomainNotFoundError("Domain not found")
            # 볼 수 없는 도메인(다른 조직의 프라이빗 도메인)은 존재하지 않는 것으로 응답합니다.
            self.authz.ensure(actor, Operation.READ, domain)
            self.constraints.validate(Operation.UPDATE, org, {"domain": domain})
            return domain_repr(domain)

    def list_domains(self, actor: Actor, org_guid: str) -> List[Dict[str, Any]]:
        """조직이 소유한 프라이빗 도메인과 모든 공유 도메인을 생성 순서대로 반환합니다."""
        org = self.find(actor, org_guid)
        domains = list(org.private_domains) + list(self.domain_repo.list_shared())
        return [domain_repr(d) for d in sorted(domains, key=lambda d: d.id)]

    # --- 쿼터 ---
    def memory_remaining(self, actor: Actor, org_guid: str) -> Optional[int]:
        """쿼터의 memory_limit에서 조직 내 모든 앱의 (memory x instances) 합계를 뺀 값. 쿼터가 없으면 None."""
        org = self.find(actor, org_guid)
        if org.quota_definition is None:
            return None
        return org.quota_definition.memory_limit - self.org_repo.memory_used(org)

    def create_quota_definition(self, actor: Actor, name: str, memory_limit: int, total_services: int = -1) -> Dict[str, Any]:
        quota = models.QuotaDefinition(name=(name or "").strip(), memory_limit=memory_limit, total_services=total_services)
        self.authz.ensure(actor, Operation.CREATE, quota)
        if not quota.name:
            raise MissingFieldError("Quota definition name is required.")
        if not isinstance(memory_limit, int) or memory_limit < 0:
            raise InvalidFormatError("Quota definition memory_limit must be a non-negative integer.")
        with self.uow.transaction():
            self.org_repo.create_quota(quota)
            return quota_repr(quota)

    def _find_quota(self, quota_guid: str) -> models.QuotaDefinition:
        quota = self.org_repo.find_quota_by_guid(quota_guid)
        if not quota:
            raise QuotaDefinitionNotFoundError("Quota definition not found")
        return quota

    def _find_user(self, user_guid: str) -> models.User:
        user = self.user_repo.find_by_guid(user_guid)
        if not user:
            raise UserNotFoundError("User not found")
        return user
