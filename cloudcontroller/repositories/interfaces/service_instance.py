from abc import ABC, abstractmethod
from typing import List, Optional
from cloudcontroller.database import models

class IServiceInstanceRepository(ABC):
    @abstractmethod
    def create(self, instance: models.ServiceInstance) -> models.ServiceInstance:
        pass

    @abstractmethod
    def save(self, instance: models.ServiceInstance) -> models.ServiceInstance:
        pass

    @abstractmethod
    def find_by_guid(self, guid: str) -> Optional[models.ServiceInstance]:
        pass

    @abstractmethod
    def find_by_name_and_space(self, name: str, space: models.Space) -> Optional[models.ServiceInstance]:
        pass

    @abstractmethod
    def list_all(self) -> List[models.ServiceInstance]:
        pass

    @abstractmethod
    def delete(self, instance: models.ServiceInstance) -> bool:
        pass

    @abstractmethod
    def create_binding(self, binding: models.ServiceBinding) -> models.ServiceBinding:
        pass

    @abstractmethod
    def find_binding_by_guid(self, guid: str) -> Optional[models.ServiceBinding]:
        pass

    @abstractmethod
    def find_binding(self, app: models.App, instance: models.ServiceInstance) -> Optional[models.ServiceBinding]:
        """앱과 서비스 인스턴스 사이의 기존 바인딩을 조회합니다."""
        pass

    @abstractmethod
    def delete_binding(self, binding: models.ServiceBinding) -> bool:
        pass

    @abstractmethod
    def create_plan(self, plan: models.ServicePlan) -> models.ServicePlan:
        pass

    @abstractmethod
    def find_plan_by_guid(self, guid: str) -> Optional[models.ServicePlan]:
        pass
