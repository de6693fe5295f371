from abc import ABC, abstractmethod
from typing import List, Optional
from cloudcontroller.database import models

class ISecurityGroupRepository(ABC):
    @abstractmethod
    def create(self, security_group: models.SecurityGroup) -> models.SecurityGroup:
        """새로운 보안 그룹을 생성합니다. 이름은 전역적으로 유일해야 합니다."""
        pass

    @abstractmethod
    def save(self, security_group: models.SecurityGroup) -> models.SecurityGroup:
        """필드와 staging/running 스페이스 연결 변경을 함께 반영합니다."""
        pass

    @abstractmethod
    def find_by_guid(self, guid: str) -> Optional[models.SecurityGroup]:
        pass

    @abstractmethod
    def find_by_name(self, name: str) -> Optional[models.SecurityGroup]:
        pass

    @abstractmethod
    def list_all(self) -> List[models.SecurityGroup]:
        pass

    @abstractmethod
    def delete(self, security_group: models.SecurityGroup) -> bool:
        pass
