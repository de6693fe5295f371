from typing import List, Optional
from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import IServiceInstanceRepository
from .base import SqlalchemyRepository

class SqlalchemyServiceInstanceRepository(SqlalchemyRepository, IServiceInstanceRepository):
    def create(self, instance: models.ServiceInstance) -> models.ServiceInstance:
        return self._persist(instance, f"Service instance with name '{instance.name}' already exists in this space.")

    def save(self, instance: models.ServiceInstance) -> models.ServiceInstance:
        self.db.add(instance)
        self._flush(f"Service instance with name '{instance.name}' already exists in this space.")
        return instance

    def find_by_guid(self, guid: str) -> Optional[models.ServiceInstance]:
        return self.db.query(models.ServiceInstance).filter(models.ServiceInstance.guid == guid).first()

    def find_by_name_and_space(self, name: str, space: models.Space) -> Optional[models.ServiceInstance]:
        return self.db.query(models.ServiceInstance).filter(
            models.ServiceInstance.name == name,
            models.ServiceInstance.space_id == space.id,
        ).first()

    def list_all(self) -> List[models.ServiceInstance]:
        return self.db.query(models.ServiceInstance).order_by(models.ServiceInstance.id.asc()).all()

    def delete(self, instance: models.ServiceInstance) -> bool:
        return self._remove(instance)

    def create_binding(self, binding: models.ServiceBinding) -> models.ServiceBinding:
        return self._persist(binding, "The app is already bound to the service instance.")

    def find_binding_by_guid(self, guid: str) -> Optional[models.ServiceBinding]:
        return self.db.query(models.ServiceBinding).filter(models.ServiceBinding.guid == guid).first()

    def find_binding(self, app: models.App, instance: models.ServiceInstance) -> Optional[models.ServiceBinding]:
        return self.db.query(models.ServiceBinding).filter(
            models.ServiceBinding.app_id == app.id,
            models.ServiceBinding.service_instance_id == instance.id,
        ).first()

    def delete_binding(self, binding: models.ServiceBinding) -> bool:
        return self._remove(binding)

    def create_plan(self, plan: models.ServicePlan) -> models.ServicePlan:
        return self._persist(plan, f"Service plan with name '{plan.name}' already exists.")

    def find_plan_by_guid(self, guid: str) -> Optional[models.ServicePlan]:
        return self.db.query(models.ServicePlan).filter(models.ServicePlan.guid == guid).first()
