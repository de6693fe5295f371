from abc import ABC, abstractmethod
from typing import List, Optional
from cloudcontroller.database import models

class IDomainRepository(ABC):
    @abstractmethod
    def create(self, domain: models.Domain) -> models.Domain:
        pass

    @abstractmethod
    def find_by_guid(self, guid: str) -> Optional[models.Domain]:
        pass

    @abstractmethod
    def find_by_name(self, name: str) -> Optional[models.Domain]:
        pass

    @abstractmethod
    def list_all(self) -> List[models.Domain]:
        pass

    @abstractmethod
    def list_shared(self) -> List[models.SharedDomain]:
        pass

    @abstractmethod
    def delete(self, domain: models.Domain) -> bool:
        pass

    @abstractmethod
    def create_route(self, route: models.Route) -> models.Route:
        pass

    @abstractmethod
    def find_route_by_guid(self, guid: str) -> Optional[models.Route]:
        pass

    @abstractmethod
    def find_route(self, host: str, domain: models.Domain) -> Optional[models.Route]:
        """호스트와 도메인 조합으로 라우트를 조회합니다."""
        pass

    @abstractmethod
    def list_routes(self) -> List[models.Route]:
        pass

    @abstractmethod
    def delete_route(self, route: models.Route) -> bool:
        pass
