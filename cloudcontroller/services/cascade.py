import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from cloudcontroller.database import models
from cloudcontroller.database.models.app import STOPPED
from cloudcontroller.repositories.interfaces import (
    IAppRepository, IDomainRepository, IOrganizationRepository,
    IServiceInstanceRepository, ISpaceRepository, IUnitOfWork,
)
from cloudcontroller.services.exceptions import AssociationNotEmptyError, CascadeDeletionError
from cloudcontroller.services.usage_events import APP, DELETED, SERVICE, UsageEventEmitter

logger = logging.getLogger(__name__)

# (모델, 리소스 종류, 연관 이름) - 하위 클래스가 먼저 와야 합니다.
RESOURCE_TYPES = (
    (models.Organization, "organization", "organization"),
    (models.Space, "space", "space"),
    (models.App, "app", "app"),
    (models.ServiceInstance, "service_instance", "service instance"),
    (models.ServiceBinding, "service_binding", "service binding"),
    (models.AppAnnotation, "app_annotation", "app annotation"),
    (models.Route, "route", "route"),
    (models.PrivateDomain, "private_domain", "private domain"),
    (models.SharedDomain, "shared_domain", "shared domain"),
    (models.ServicePlanVisibility, "service_plan_visibility", "service plan visibility"),
)


def resource_type_of(node) -> str:
    return _describe(node)[0]


def _describe(node) -> Tuple[str, str]:
    for model_class, resource_type, label in RESOURCE_TYPES:
        if isinstance(node, model_class):
            return resource_type, label
    raise ValueError(f"Cannot delete resources of type {type(node).__name__}.")


def children_of(node) -> List:
    """삭제 시 함께 지워져야 하는 직접 하위 노드"""
    if isinstance(node, models.Organization):
        return list(node.spaces) + list(node.service_plan_visibilities) + list(node.private_domains)
    if isinstance(node, models.Space):
        return list(node.apps) + list(node.service_instances) + list(node.routes)
    if isinstance(node, models.App):
        return list(node.service_bindings) + list(node.annotations)
    if isinstance(node, models.ServiceInstance):
        return list(node.service_bindings)
    if isinstance(node, models.Domain):
        return list(node.routes)
    return []


@dataclass
class DeletedSet:
    """연쇄 삭제로 실제 지워진 (리소스 종류, guid) 목록. 삭제된 순서를 유지합니다."""
    root_type: str
    root_guid: str
    items: List[Tuple[str, str]] = field(default_factory=list)

    def add(self, resource_type: str, guid: str):
        self.items.append((resource_type, guid))

    def guids(self, resource_type: str) -> List[str]:
        return [guid for kind, guid in self.items if kind == resource_type]

    def __contains__(self, guid) -> bool:
        return any(g == guid for _, g in self.items)

    def __len__(self) -> int:
        return len(self.items)


class CascadeDeleter:
    """
    삭제 루트로부터 의존 노드 전체를 찾아 외래 키를 위반하지 않는 순서로 지웁니다.

    두 부모를 통해 닿는 노드(바인딩, 라우트)는 더 깊은 쪽 깊이를 갖도록 work-list로 깊이를 갱신하고,
    가장 깊은 노드부터 (같은 깊이에서는 발견 순서대로) 삭제합니다.
    """
    def __init__(
        self,
        uow: IUnitOfWork,
        org_repo: IOrganizationRepository,
        space_repo: ISpaceRepository,
        app_repo: IAppRepository,
        service_instance_repo: IServiceInstanceRepository,
        domain_repo: IDomainRepository,
        emitter: UsageEventEmitter,
    ):
        self.uow = uow
        self.org_repo = org_repo
        self.space_repo = space_repo
        self.app_repo = app_repo
        self.service_instance_repo = service_instance_repo
        self.domain_repo = domain_repo
        self.emitter = emitter

    def plan(self, root, recursive: bool = False) -> List:
        """
        삭제 순서대로 정렬된 노드 목록을 반환합니다. 루트는 항상 마지막입니다.

        Raises:
            AssociationNotEmptyError: recursive가 아니고 루트에 하위 노드가 남아 있을 때.
                (앱의 서비스 바인딩과 주석은 예외로 항상 함께 삭제됩니다.)
        """
        direct = children_of(root)
        if direct and not recursive and not isinstance(root, models.App):
            kinds = []
            for child in direct:
                label = _describe(child)[1]
                if label not in kinds:
                    kinds.append(label)
            raise AssociationNotEmptyError(
                f"Please delete the {', '.join(kinds)} associations for your {_describe(root)[1]}."
            )

        root_key = self._key(root)
        depth: Dict[Tuple[str, str], int] = {root_key: 0}
        nodes = {root_key: root}
        discovered = [root_key]
        work = deque([root])
        while work:
            node = work.popleft()
            child_depth = depth[self._key(node)] + 1
            for child in children_of(node):
                key = self._key(child)
                if key not in depth:
                    depth[key] = child_depth
                    nodes[key] = child
                    discovered.append(key)
                    work.append(child)
                elif child_depth > depth[key]:
                    depth[key] = child_depth
                    work.append(child)

        # sorted()는 안정 정렬이므로 같은 깊이에서는 발견 순서가 유지됩니다.
        ordered = sorted(discovered, key=lambda k: -depth[k])
        return [nodes[key] for key in ordered]

    def delete(self, root, recursive: bool = False, savepoint: bool = False) -> DeletedSet:
        """
        root와 그 의존 노드를 하나의 트랜잭션(또는 세이브포인트) 안에서 삭제합니다.

        Raises:
            AssociationNotEmptyError: recursive가 아닌데 하위 노드가 있을 때.
            CascadeDeletionError: 삭제 도중 실패했을 때. 전체가 롤백됩니다.
        """
        root_type = resource_type_of(root)
        root_guid = root.guid
        logger.info("Deleting %s %s (recursive=%s)", root_type, root_guid, recursive)

        with self.uow.transaction(savepoint=savepoint):
            ordered = self.plan(root, recursive)
            deleted = DeletedSet(root_type, root_guid)
            # 삭제할 때마다 세션이 만료되므로 guid는 미리 읽어 둡니다.
            targets = [(node, resource_type_of(node), node.guid) for node in ordered]
            for node, resource_type, guid in targets:
                try:
                    self._destroy(node)
                except Exception as e:
                    logger.error("Cascade deletion of %s %s failed at %s %s: %s",
                                 root_type, root_guid, resource_type, guid, e)
                    raise CascadeDeletionError(resource_type, guid, e) from e
                deleted.add(resource_type, guid)

        logger.info("Deleted %s %s with %d dependent resources", root_type, root_guid, len(deleted) - 1)
        return deleted

    def _destroy(self, node):
        if isinstance(node, models.App):
            if node.is_started():
                self.emitter.record(APP, node, STOPPED, node.space.organization)
            self.app_repo.delete(node)
        elif isinstance(node, models.ServiceInstance):
            self.emitter.record(SERVICE, node, DELETED, node.space.organization)
            self.service_instance_repo.delete(node)
        elif isinstance(node, models.ServiceBinding):
            self.service_instance_repo.delete_binding(node)
        elif isinstance(node, models.AppAnnotation):
            self.app_repo.delete_annotation(node)
        elif isinstance(node, models.Route):
            self.domain_repo.delete_route(node)
        elif isinstance(node, models.ServicePlanVisibility):
            self.org_repo.delete_plan_visibility(node)
        elif isinstance(node, models.Domain):
            self.domain_repo.delete(node)
        elif isinstance(node, models.Space):
            self.space_repo.delete(node)
        elif isinstance(node, models.Organization):
            self.org_repo.delete(node)

    @staticmethod
    def _key(node) -> Tuple[str, str]:
        return resource_type_of(node), node.guid
