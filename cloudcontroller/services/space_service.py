import logging
from typing import Any, Dict, List, Optional

from cloudcontroller.database import models
from cloudcontroller.database.models import SpaceRole
from cloudcontroller.repositories.interfaces import (
    IOrganizationRepository, ISpaceRepository, IUnitOfWork, IUserRepository,
)
from cloudcontroller.services.authorization import Actor, AuthorizationFilter, Operation
from cloudcontroller.services.cascade import CascadeDeleter, DeletedSet
from cloudcontroller.services.constraints import ConstraintEngine
from cloudcontroller.services.exceptions import (
    InvalidFormatError, OrganizationNotFoundError, SpaceNotFoundError, UserNotFoundError,
)
from cloudcontroller.services.representations import space_repr

logger = logging.getLogger(__name__)


def parse_space_role(role) -> str:
    try:
        return SpaceRole(getattr(role, "value", role)).value
    except ValueError as e:
        raise InvalidFormatError(f"Unknown space role '{role}'.") from e


class SpaceService:
    """스페이스와 스페이스 역할(developer, manager, auditor)을 관리합니다."""

    def __init__(
        self,
        uow: IUnitOfWork,
        space_repo: ISpaceRepository,
        org_repo: IOrganizationRepository,
        user_repo: IUserRepository,
        authz: AuthorizationFilter,
        constraints: ConstraintEngine,
        cascade: CascadeDeleter,
    ):
        self.uow = uow
        self.space_repo = space_repo
        self.org_repo = org_repo
        self.user_repo = user_repo
        self.authz = authz
        self.constraints = constraints
        self.cascade = cascade

    def find(self, actor: Actor, space_guid: str) -> models.Space:
        space = self.space_repo.find_by_guid(space_guid)
        if not space or not self.authz.can_read(actor, space):
            raise SpaceNotFoundError("Space not found")
        return space

    def create(self, actor: Actor, name: str, organization_guid: str) -> Dict[str, Any]:
        """
        조직 안에 새 스페이스를 생성합니다.

        Raises:
            OrganizationNotFoundError: 조직이 없거나 보이지 않을 때.
            AuthorizationError: 조직 매니저나 관리자가 아닐 때.
            DuplicateNameError: 같은 조직에 같은 이름의 스페이스가 있을 때.
        """
        with self.uow.transaction():
            org = self.org_repo.find_by_guid(organization_guid)
            if not org:
                raise OrganizationNotFoundError("Organization not found")
            space = models.Space(name=(name or "").strip(), organization=org)
            try:
                self.authz.ensure(actor, Operation.CREATE, space)
                self.constraints.validate(Operation.CREATE, space)
            except Exception:
                # 검증에 실패한 객체가 조직의 spaces 컬렉션에 남지 않게 합니다.
                org.spaces.remove(space)
                raise
            self.space_repo.create(space)
            logger.info("Created space %s in organization %s", space.guid, org.guid)
            return space_repr(space)

    def get(self, actor: Actor, space_guid: str) -> Dict[str, Any]:
        return space_repr(self.find(actor, space_guid))

    def list(self, actor: Actor, organization_guid: Optional[str] = None) -> List[Dict[str, Any]]:
        return [space_repr(s) for s in self.authz.visible_set(actor, "space", scope=organization_guid)]

    def update(self, actor: Actor, space_guid: str, name: Optional[str] = None) -> Dict[str, Any]:
        with self.uow.transaction():
            space = self.find(actor, space_guid)
            self.authz.ensure(actor, Operation.UPDATE, space)
            if name is not None:
                proposed = {"name": name.strip()}
                self.constraints.validate(Operation.UPDATE, space, proposed)
                space.name = proposed["name"]
            self.space_repo.save(space)
            return space_repr(space)

    def delete(self, actor: Actor, space_guid: str, recursive: bool = False) -> DeletedSet:
        """
        스페이스를 삭제합니다. recursive이면 앱, 서비스 인스턴스, 라우트까지 함께 삭제합니다.

        Raises:
            AssociationNotEmptyError: recursive가 아닌데 하위 리소스가 있을 때.
        """
        with self.uow.transaction():
            space = self.find(actor, space_guid)
            self.authz.ensure(actor, Operation.DELETE, space)
            return self.cascade.delete(space, recursive=recursive)

    def add_role(self, actor: Actor, space_guid: str, user_guid: str, role) -> Dict[str, Any]:
        """
        사용자에게 스페이스 역할을 부여합니다.

        Raises:
            InvalidRelationError: 사용자가 스페이스가 속한 조직의 구성원이 아닐 때.
        """
        role = parse_space_role(role)
        with self.uow.transaction():
            space = self.find(actor, space_guid)
            self.authz.ensure(actor, Operation.UPDATE, space)
            user = self._find_user(user_guid)
            self.constraints.validate(Operation.UPDATE, space, {"member": user})
            self.space_repo.add_role(user, space, role)
            logger.info("Granted space %s role in %s to user %s", role, space.guid, user.guid)
            return space_repr(space)

    def remove_role(self, actor: Actor, space_guid: str, user_guid: str, role) -> Dict[str, Any]:
        role = parse_space_role(role)
        with self.uow.transaction():
            space = self.find(actor, space_guid)
            self.authz.ensure(actor, Operation.UPDATE, space)
            user = self._find_user(user_guid)
            self.space_repo.remove_role(user, space, role)
            return space_repr(space)

    def list_users(self, actor: Actor, space_guid: str, role) -> List[str]:
        space = self.find(actor, space_guid)
        return space.user_guids_with_role(parse_space_role(role))

    def _find_user(self, user_guid: str) -> models.User:
        user = self.user_repo.find_by_guid(user_guid)
        if not user:
            raise UserNotFoundError("User not found")
        return user
