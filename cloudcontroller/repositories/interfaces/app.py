from abc import ABC, abstractmethod
from typing import List, Optional
from cloudcontroller.database import models

class IAppRepository(ABC):
    @abstractmethod
    def create(self, app: models.App) -> models.App:
        pass

    @abstractmethod
    def save(self, app: models.App) -> models.App:
        pass

    @abstractmethod
    def find_by_guid(self, guid: str) -> Optional[models.App]:
        pass

    @abstractmethod
    def find_by_name_and_space(self, name: str, space: models.Space) -> Optional[models.App]:
        """스페이스 안에서 이름으로 앱을 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.App]:
        pass

    @abstractmethod
    def delete(self, app: models.App) -> bool:
        pass

    @abstractmethod
    def find_annotation(self, app: models.App, key: str) -> Optional[models.AppAnnotation]:
        pass

    @abstractmethod
    def save_annotation(self, annotation: models.AppAnnotation) -> models.AppAnnotation:
        """새 주석은 추가하고, 이미 있는 주석은 값을 반영합니다."""
        pass

    @abstractmethod
    def delete_annotation(self, annotation: models.AppAnnotation) -> bool:
        pass
