from abc import ABC, abstractmethod
from typing import List, Optional
from cloudcontroller.database import models

class IOrganizationRepository(ABC):
    @abstractmethod
    def create(self, organization: models.Organization) -> models.Organization:
        """새로운 조직을 생성합니다. 이름이 중복되면 DuplicateNameError가 발생합니다."""
        pass

    @abstractmethod
    def save(self, organization: models.Organization) -> models.Organization:
        """변경된 조직 정보를 반영합니다."""
        pass

    @abstractmethod
    def find_by_guid(self, guid: str) -> Optional[models.Organization]:
        pass

    @abstractmethod
    def find_by_name(self, name: str) -> Optional[models.Organization]:
        pass

    @abstractmethod
    def list_all(self) -> List[models.Organization]:
        """모든 조직을 생성 순서대로 조회합니다."""
        pass

    @abstractmethod
    def delete(self, organization: models.Organization) -> bool:
        pass

    @abstractmethod
    def memory_used(self, organization: models.Organization, exclude_app: Optional[models.App] = None) -> int:
        """
        조직 내 모든 앱의 메모리 사용량 합계(memory x instances)를 계산합니다.

        Args:
            organization: 대상 조직.
            exclude_app: 합계에서 제외할 앱 (스케일 변경 검증 시 자기 자신을 제외하기 위함).
        """
        pass

    @abstractmethod
    def has_role(self, user: models.User, organization: models.Organization, role: str) -> bool:
        pass

    @abstractmethod
    def add_role(self, user: models.User, organization: models.Organization, role: str):
        """사용자에게 조직 역할을 부여합니다. 이미 역할이 존재하면 무시합니다."""
        pass

    @abstractmethod
    def remove_role(self, user: models.User, organization: models.Organization, role: str):
        """사용자의 조직 역할을 회수합니다. 역할이 없으면 무시합니다."""
        pass

    @abstractmethod
    def create_quota(self, quota: models.QuotaDefinition) -> models.QuotaDefinition:
        pass

    @abstractmethod
    def find_quota_by_guid(self, guid: str) -> Optional[models.QuotaDefinition]:
        pass

    @abstractmethod
    def find_quota_by_name(self, name: str) -> Optional[models.QuotaDefinition]:
        pass

    @abstractmethod
    def add_plan_visibility(self, visibility: models.ServicePlanVisibility) -> models.ServicePlanVisibility:
        pass

    @abstractmethod
    def delete_plan_visibility(self, visibility: models.ServicePlanVisibility) -> bool:
        pass
