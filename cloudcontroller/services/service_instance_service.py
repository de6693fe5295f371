import logging
from typing import Any, Dict, List, Optional

from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import (
    IAppRepository, IOrganizationRepository, IServiceInstanceRepository, ISpaceRepository, IUnitOfWork,
)
from cloudcontroller.services.authorization import Actor, AuthorizationFilter, Operation
from cloudcontroller.services.cascade import CascadeDeleter, DeletedSet
from cloudcontroller.services.constraints import ConstraintEngine
from cloudcontroller.services.exceptions import (
    AppNotFoundError, MissingFieldError, OrganizationNotFoundError, ServiceBindingNotFoundError,
    ServiceInstanceNotFoundError, ServicePlanNotFoundError, SpaceNotFoundError,
)
from cloudcontroller.services.representations import (
    service_binding_repr, service_instance_repr, service_plan_repr,
)
from cloudcontroller.services.usage_events import CREATED, SERVICE, UsageEventEmitter
from cloudcontroller.utils.encryption import CredentialCipher

logger = logging.getLogger(__name__)


class ServiceInstanceService:
    """
    관리형/사용자 제공 서비스 인스턴스와 서비스 바인딩을 관리합니다.
    자격 증명은 CredentialCipher로 암호화해 저장하고, 표현(dict)에는 절대 포함하지 않습니다.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        service_instance_repo: IServiceInstanceRepository,
        space_repo: ISpaceRepository,
        app_repo: IAppRepository,
        org_repo: IOrganizationRepository,
        authz: AuthorizationFilter,
        constraints: ConstraintEngine,
        emitter: UsageEventEmitter,
        cascade: CascadeDeleter,
        cipher: CredentialCipher,
    ):
        self.uow = uow
        self.service_instance_repo = service_instance_repo
        self.space_repo = space_repo
        self.app_repo = app_repo
        self.org_repo = org_repo
        self.authz = authz
        self.constraints = constraints
        self.emitter = emitter
        self.cascade = cascade
        self.cipher = cipher

    def find(self, actor: Actor, instance_guid: str) -> models.ServiceInstance:
        instance = self.service_instance_repo.find_by_guid(instance_guid)
        if not instance or not self.authz.can_read(actor, instance):
            raise ServiceInstanceNotFoundError("Service instance not found")
        return instance

    def create_managed(self, actor: Actor, name: str, space_guid: str, service_plan_guid: str,
                       credentials: Optional[Dict[str, Any]] = None, tags: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        서비스 플랜으로 관리형 서비스 인스턴스를 생성하고 CREATED 이벤트를 기록합니다.

        Raises:
            ServicePlanNotFoundError: 플랜이 없을 때.
            DuplicateNameError: 같은 스페이스에 같은 이름의 인스턴스가 있을 때.
        """
        with self.uow.transaction():
            plan = self.service_instance_repo.find_plan_by_guid(service_plan_guid)
            if not plan:
                raise ServicePlanNotFoundError("Service plan not found")
            instance = models.ManagedServiceInstance(
                name=(name or "").strip(),
                service_plan=plan,
                instance_tags=list(tags or []),
                is_gateway_service=True,
                encrypted_credentials=self.cipher.encrypt(credentials),
            )
            return self._provision(actor, instance, space_guid)

    def create_user_provided(self, actor: Actor, name: str, space_guid: str,
                             credentials: Optional[Dict[str, Any]] = None,
                             syslog_drain_url: Optional[str] = None) -> Dict[str, Any]:
        """
        사용자 제공 서비스 인스턴스를 생성하고 CREATED 이벤트를 기록합니다.
        사용자 제공 인스턴스는 태그가 없고 게이트웨이 서비스가 아닙니다.
        """
        with self.uow.transaction():
            instance = models.UserProvidedServiceInstance(
                name=(name or "").strip(),
                syslog_drain_url=syslog_drain_url,
                is_gateway_service=False,
                encrypted_credentials=self.cipher.encrypt(credentials or {}),
            )
            return self._provision(actor, instance, space_guid)

    def _provision(self, actor: Actor, instance: models.ServiceInstance, space_guid: str) -> Dict[str, Any]:
        space = self.space_repo.find_by_guid(space_guid)
        if not space:
            raise SpaceNotFoundError("Space not found")
        instance.space = space
        try:
            self.authz.ensure(actor, Operation.CREATE, instance)
            self.constraints.validate(Operation.CREATE, instance)
        except Exception:
            space.service_instances.remove(instance)
            raise
        self.service_instance_repo.create(instance)
        self.emitter.record(SERVICE, instance, CREATED, space.organization)
        logger.info("Created %s %s in space %s", instance.type, instance.guid, space.guid)
        return service_instance_repr(instance)

    def get(self, actor: Actor, instance_guid: str) -> Dict[str, Any]:
        return service_instance_repr(self.find(actor, instance_guid))

    def list(self, actor: Actor, space_guid: Optional[str] = None) -> List[Dict[str, Any]]:
        instances = self.authz.visible_set(actor, "service_instance", scope=space_guid)
        return [service_instance_repr(i) for i in instances]

    def get_credentials(self, actor: Actor, instance_guid: str) -> Dict[str, Any]:
        """복호화된 자격 증명을 반환합니다. 인스턴스를 수정할 수 있는 사용자(스페이스 개발자)만 볼 수 있습니다."""
        instance = self.find(actor, instance_guid)
        self.authz.ensure(actor, Operation.UPDATE, instance)
        return self.cipher.decrypt(instance.encrypted_credentials)

    def update_credentials(self, actor: Actor, instance_guid: str, credentials: Dict[str, Any]) -> Dict[str, Any]:
        with self.uow.transaction():
            instance = self.find(actor, instance_guid)
            self.authz.ensure(actor, Operation.UPDATE, instance)
            instance.encrypted_credentials = self.cipher.encrypt(credentials)
            self.service_instance_repo.save(instance)
            return service_instance_repr(instance)

    def delete(self, actor: Actor, instance_guid: str, recursive: bool = False) -> DeletedSet:
        """
        서비스 인스턴스를 삭제하고 DELETED 이벤트를 기록합니다.

        Raises:
            AssociationNotEmptyError: recursive가 아닌데 바인딩이 남아 있을 때.
        """
        with self.uow.transaction():
            instance = self.find(actor, instance_guid)
            self.authz.ensure(actor, Operation.DELETE, instance)
            return self.cascade.delete(instance, recursive=recursive)

    # --- 서비스 바인딩 ---
    def create_service_binding(self, actor: Actor, app_guid: str, service_instance_guid: str) -> Dict[str, Any]:
        """
        앱과 서비스 인스턴스를 연결합니다.

        Raises:
            InvalidServiceBindingError: 앱과 인스턴스가 서로 다른 스페이스에 있을 때.
            DuplicateNameError: 이미 연결되어 있을 때.
        """
        with self.uow.transaction():
            app = self.app_repo.find_by_guid(app_guid)
            if not app or not self.authz.can_read(actor, app):
                raise AppNotFoundError("App not found")
            instance = self.find(actor, service_instance_guid)

            binding = models.ServiceBinding(app=app, service_instance=instance)
            try:
                self.authz.ensure(actor, Operation.CREATE, binding)
                self.constraints.validate(Operation.CREATE, binding)
            except Exception:
                app.service_bindings.remove(binding)
                instance.service_bindings.remove(binding)
                raise
            self.service_instance_repo.create_binding(binding)
            logger.info("Bound service instance %s to app %s", instance.guid, app.guid)
            return service_binding_repr(binding)

    def get_service_binding(self, actor: Actor, binding_guid: str) -> Dict[str, Any]:
        return service_binding_repr(self._find_binding(actor, binding_guid))

    def delete_service_binding(self, actor: Actor, binding_guid: str) -> DeletedSet:
        with self.uow.transaction():
            binding = self._find_binding(actor, binding_guid)
            self.authz.ensure(actor, Operation.DELETE, binding)
            return self.cascade.delete(binding)

    def _find_binding(self, actor: Actor, binding_guid: str) -> models.ServiceBinding:
        binding = self.service_instance_repo.find_binding_by_guid(binding_guid)
        if not binding or not self.authz.can_read(actor, binding):
            raise ServiceBindingNotFoundError("Service binding not found")
        return binding

    # --- 서비스 플랜 ---
    def create_service_plan(self, actor: Actor, name: str, free: bool = True) -> Dict[str, Any]:
        plan = models.ServicePlan(name=(name or "").strip(), free=free)
        self.authz.ensure(actor, Operation.CREATE, plan)
        if not plan.name:
            raise MissingFieldError("Service plan name is required.")
        with self.uow.transaction():
            self.service_instance_repo.create_plan(plan)
            return service_plan_repr(plan)

    def add_plan_visibility(self, actor: Actor, service_plan_guid: str, organization_guid: str) -> Dict[str, Any]:
        """서비스 플랜을 조직에 노출합니다. 조직이 삭제되면 노출 설정도 함께 삭제됩니다."""
        with self.uow.transaction():
            plan = self.service_instance_repo.find_plan_by_guid(service_plan_guid)
            if not plan:
                raise ServicePlanNotFoundError("Service plan not found")
            org = self.org_repo.find_by_guid(organization_guid)
            if not org:
                raise OrganizationNotFoundError("Organization not found")
            visibility = models.ServicePlanVisibility(service_plan=plan, organization=org)
            try:
                self.authz.ensure(actor, Operation.CREATE, visibility)
            except Exception:
                plan.visibilities.remove(visibility)
                org.service_plan_visibilities.remove(visibility)
                raise
            self.org_repo.add_plan_visibility(visibility)
            return {
                "guid": visibility.guid,
                "service_plan_guid": plan.guid,
                "organization_guid": org.guid,
            }
