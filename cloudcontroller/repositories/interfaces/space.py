from abc import ABC, abstractmethod
from typing import List, Optional
from cloudcontroller.database import models

class ISpaceRepository(ABC):
    @abstractmethod
    def create(self, space: models.Space) -> models.Space:
        """새로운 스페이스를 생성합니다. 같은 조직 안에 이름이 중복되면 DuplicateNameError가 발생합니다."""
        pass

    @abstractmethod
    def save(self, space: models.Space) -> models.Space:
        pass

    @abstractmethod
    def find_by_guid(self, guid: str) -> Optional[models.Space]:
        pass

    @abstractmethod
    def find_by_name_and_organization(self, name: str, organization: models.Organization) -> Optional[models.Space]:
        """조직 안에서 이름으로 스페이스를 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.Space]:
        pass

    @abstractmethod
    def delete(self, space: models.Space) -> bool:
        pass

    @abstractmethod
    def add_role(self, user: models.User, space: models.Space, role: str):
        """사용자에게 스페이스 역할을 부여합니다. 이미 역할이 존재하면 무시합니다."""
        pass

    @abstractmethod
    def remove_role(self, user: models.User, space: models.Space, role: str):
        pass

    @abstractmethod
    def list_roles_in_organization(self, user: models.User, organization: models.Organization) -> List[models.SpaceUserRole]:
        """조직에 속한 모든 스페이스에서 사용자가 가진 역할 목록을 조회합니다."""
        pass
