import logging
from typing import Any, Dict, Iterable, List, Optional

from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import ISecurityGroupRepository, ISpaceRepository, IUnitOfWork
from cloudcontroller.services.authorization import Actor, AuthorizationFilter, Operation
from cloudcontroller.services.constraints import ConstraintEngine
from cloudcontroller.services.exceptions import SecurityGroupNotFoundError, SpaceNotFoundError
from cloudcontroller.services.representations import security_group_repr

logger = logging.getLogger(__name__)

STAGING = "staging"
RUNNING = "running"


class SecurityGroupService:
    """
    보안 그룹과 스페이스 연결(staging_spaces, running_spaces)을 관리합니다.
    쓰기는 관리자만 가능하고, 조회 결과는 Actor에게 보이는 보안 그룹으로 제한됩니다.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        security_group_repo: ISecurityGroupRepository,
        space_repo: ISpaceRepository,
        authz: AuthorizationFilter,
        constraints: ConstraintEngine,
    ):
        self.uow = uow
        self.security_group_repo = security_group_repo
        self.space_repo = space_repo
        self.authz = authz
        self.constraints = constraints

    def find(self, actor: Actor, security_group_guid: str) -> models.SecurityGroup:
        security_group = self.security_group_repo.find_by_guid(security_group_guid)
        if not security_group or not self.authz.can_read(actor, security_group):
            raise SecurityGroupNotFoundError("Security group not found")
        return security_group

    def create(self, actor: Actor, name: str, rules: Optional[List[Dict[str, Any]]] = None,
               running: bool = False, staging: bool = False,
               staging_space_guids: Iterable[str] = (), running_space_guids: Iterable[str] = ()) -> Dict[str, Any]:
        """
        보안 그룹을 생성합니다.

        Raises:
            AuthorizationError: 관리자가 아닐 때.
            DuplicateNameError: 같은 이름의 보안 그룹이 이미 있을 때.
            InvalidFormatError: 규칙 형식이 올바르지 않을 때.
        """
        security_group = models.SecurityGroup(
            name=(name or "").strip(),
            rules=list(rules or []),
            running_default=running,
            staging_default=staging,
        )
        self.authz.ensure(actor, Operation.CREATE, security_group)

        with self.uow.transaction():
            self.constraints.validate(Operation.CREATE, security_group)
            security_group.staging_spaces = [self._find_space(g) for g in staging_space_guids]
            security_group.running_spaces = [self._find_space(g) for g in running_space_guids]
            self.security_group_repo.create(security_group)
            logger.info("Created security group %s (%s)", security_group.name, security_group.guid)
            return security_group_repr(security_group)

    def get(self, actor: Actor, security_group_guid: str) -> Dict[str, Any]:
        return security_group_repr(self.find(actor, security_group_guid))

    def list(self, actor: Actor, space_guid: Optional[str] = None) -> List[Dict[str, Any]]:
        """Actor에게 보이는 보안 그룹 목록. 전역으로 켜진 그룹은 역할이 없는 사용자에게도 보입니다."""
        groups = self.authz.visible_set(actor, "security_group", scope=space_guid)
        return [security_group_repr(g) for g in groups]

    def update(self, actor: Actor, security_group_guid: str, name: Optional[str] = None,
               rules: Optional[List[Dict[str, Any]]] = None, running: Optional[bool] = None,
               staging: Optional[bool] = None) -> Dict[str, Any]:
        with self.uow.transaction():
            security_group = self.find(actor, security_group_guid)
            self.authz.ensure(actor, Operation.UPDATE, security_group)

            proposed: Dict[str, Any] = {}
            if name is not None:
                proposed["name"] = name.strip()
            if rules is not None:
                proposed["rules"] = list(rules)
            self.constraints.validate(Operation.UPDATE, security_group, proposed)

            for field, value in proposed.items():
                setattr(security_group, field, value)
            if running is not None:
                security_group.running_default = running
            if staging is not None:
                security_group.staging_default = staging
            self.security_group_repo.save(security_group)
            return security_group_repr(security_group)

    def delete(self, actor: Actor, security_group_guid: str) -> bool:
        """보안 그룹을 삭제합니다. 스페이스 연결 레코드도 함께 삭제됩니다."""
        with self.uow.transaction():
            security_group = self.find(actor, security_group_guid)
            self.authz.ensure(actor, Operation.DELETE, security_group)
            self.security_group_repo.delete(security_group)
        logger.info("Deleted security group %s", security_group_guid)
        return True

    def add_staging_space(self, actor: Actor, security_group_guid: str, space_guid: str) -> Dict[str, Any]:
        return self._bind_space(actor, security_group_guid, space_guid, STAGING, add=True)

    def add_running_space(self, actor: Actor, security_group_guid: str, space_guid: str) -> Dict[str, Any]:
        return self._bind_space(actor, security_group_guid, space_guid, RUNNING, add=True)

    def remove_staging_space(self, actor: Actor, security_group_guid: str, space_guid: str) -> Dict[str, Any]:
        return self._bind_space(actor, security_group_guid, space_guid, STAGING, add=False)

    def remove_running_space(self, actor: Actor, security_group_guid: str, space_guid: str) -> Dict[str, Any]:
        return self._bind_space(actor, security_group_guid, space_guid, RUNNING, add=False)

    def _bind_space(self, actor: Actor, security_group_guid: str, space_guid: str, kind: str, add: bool) -> Dict[str, Any]:
        with self.uow.transaction():
            security_group = self.find(actor, security_group_guid)
            self.authz.ensure(actor, Operation.UPDATE, security_group)
            space = self._find_space(space_guid)
            spaces = security_group.staging_spaces if kind == STAGING else security_group.running_spaces
            if add and space not in spaces:
                spaces.append(space)
            elif not add and space in spaces:
                spaces.remove(space)
            self.security_group_repo.save(security_group)
            return security_group_repr(security_group)

    def _find_space(self, space_guid: str) -> models.Space:
        space = self.space_repo.find_by_guid(space_guid)
        if not space:
            raise SpaceNotFoundError("Space not found")
        return space
