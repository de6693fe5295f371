import logging
from typing import Any, Dict, List, Optional

from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import (
    IDomainRepository, IOrganizationRepository, ISpaceRepository, IUnitOfWork,
)
from cloudcontroller.services.authorization import Actor, AuthorizationFilter, Operation
from cloudcontroller.services.cascade import CascadeDeleter, DeletedSet
from cloudcontroller.services.constraints import ConstraintEngine
from cloudcontroller.services.exceptions import (
    DomainNotFoundError, OrganizationNotFoundError, RouteNotFoundError, SpaceNotFoundError,
)
from cloudcontroller.services.representations import domain_repr, route_repr

logger = logging.getLogger(__name__)


class DomainService:
    """공유/프라이빗 도메인과 그 위의 라우트를 관리합니다."""

    def __init__(
        self,
        uow: IUnitOfWork,
        domain_repo: IDomainRepository,
        org_repo: IOrganizationRepository,
        space_repo: ISpaceRepository,
        authz: AuthorizationFilter,
        constraints: ConstraintEngine,
        cascade: CascadeDeleter,
    ):
        self.uow = uow
        self.domain_repo = domain_repo
        self.org_repo = org_repo
        self.space_repo = space_repo
        self.authz = authz
        self.constraints = constraints
        self.cascade = cascade

    def find(self, actor: Actor, domain_guid: str) -> models.Domain:
        domain = self.domain_repo.find_by_guid(domain_guid)
        if not domain or not self.authz.can_read(actor, domain):
            raise DomainNotFoundError("Domain not found")
        return domain

    def create_shared(self, actor: Actor, name: str) -> Dict[str, Any]:
        """모든 조직이 사용할 수 있는 공유 도메인을 생성합니다. (관리자 전용)"""
        domain = models.SharedDomain(name=(name or "").strip())
        self.authz.ensure(actor, Operation.CREATE, domain)
        with self.uow.transaction():
            self.constraints.validate(Operation.CREATE, domain)
            self.domain_repo.create(domain)
            logger.info("Created shared domain %s", domain.name)
            return domain_repr(domain)

    def create_private(self, actor: Actor, name: str, organization_guid: str) -> Dict[str, Any]:
        """
        조직이 소유하는 프라이빗 도메인을 생성합니다. (조직 매니저 또는 관리자)

        Raises:
            OrganizationNotFoundError: 조직이 없거나 보이지 않을 때.
            DuplicateNameError: 같은 이름의 도메인이 이미 있을 때.
        """
        with self.uow.transaction():
            org = self.org_repo.find_by_guid(organization_guid)
            if not org or not self.authz.can_read(actor, org):
                raise OrganizationNotFoundError("Organization not found")
            domain = models.PrivateDomain(name=(name or "").strip(), owning_organization=org)
            try:
                self.authz.ensure(actor, Operation.CREATE, domain)
                self.constraints.validate(Operation.CREATE, domain)
            except Exception:
                org.private_domains.remove(domain)
                raise
            self.domain_repo.create(domain)
            logger.info("Created private domain %s for organization %s", domain.name, org.guid)
            return domain_repr(domain)

    def get(self, actor: Actor, domain_guid: str) -> Dict[str, Any]:
        return domain_repr(self.find(actor, domain_guid))

    def list(self, actor: Actor) -> List[Dict[str, Any]]:
        return [domain_repr(d) for d in self.authz.visible_set(actor, "domain")]

    def delete(self, actor: Actor, domain_guid: str, recursive: bool = False) -> DeletedSet:
        """
        도메인을 삭제합니다. recursive이면 도메인 위의 라우트도 함께 삭제합니다.

        Raises:
            AssociationNotEmptyError: recursive가 아닌데 라우트가 남아 있을 때.
        """
        with self.uow.transaction():
            domain = self.find(actor, domain_guid)
            self.authz.ensure(actor, Operation.DELETE, domain)
            return self.cascade.delete(domain, recursive=recursive)

    # --- 라우트 ---
    def create_route(self, actor: Actor, space_guid: str, domain_guid: str, host: str = "") -> Dict[str, Any]:
        """
        스페이스에 host.domain 라우트를 생성합니다.

        Raises:
            DomainNotFoundError: 도메인이 없거나 보이지 않을 때.
            UnauthorizedAccessToPrivateDomainError: 보이지만 다른 조직의 프라이빗 도메인일 때.
            DuplicateNameError: 같은 host와 도메인의 라우트가 이미 있을 때.
        """
        with self.uow.transaction():
            space = self.space_repo.find_by_guid(space_guid)
            if not space:
                raise SpaceNotFoundError("Space not found")
            domain = self.domain_repo.find_by_guid(domain_guid)
            if not domain:
                raise DomainNotFoundError("Domain not found")
            # 볼 수 없는 도메인(다른 조직의 프라이빗 도메인)은 존재하지 않는 것으로 응답합니다.
            self.authz.ensure(actor, Operation.READ, domain)
            route = models.Route(host=(host or "").strip(), domain=domain, space=space)
            try:
                self.authz.ensure(actor, Operation.CREATE, route)
                self.constraints.validate(Operation.CREATE, route)
            except Exception:
                domain.routes.remove(route)
                space.routes.remove(route)
                raise
            self.domain_repo.create_route(route)
            return route_repr(route)

    def get_route(self, actor: Actor, route_guid: str) -> Dict[str, Any]:
        return route_repr(self._find_route(actor, route_guid))

    def list_routes(self, actor: Actor, space_guid: Optional[str] = None) -> List[Dict[str, Any]]:
        return [route_repr(r) for r in self.authz.visible_set(actor, "route", scope=space_guid)]

    def delete_route(self, actor: Actor, route_guid: str) -> DeletedSet:
        with self.uow.transaction():
            route = self._find_route(actor, route_guid)
            self.authz.ensure(actor, Operation.DELETE, route)
            return self.cascade.delete(route)

    def _find_route(self, actor: Actor, route_guid: str) -> models.Route:
        route = self.domain_repo.find_route_by_guid(route_guid)
        if not route or not self.authz.can_read(actor, route):
            raise RouteNotFoundError("Route not found")
        return route
