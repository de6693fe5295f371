from typing import List, Optional
from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import IDomainRepository
from .base import SqlalchemyRepository

class SqlalchemyDomainRepository(SqlalchemyRepository, IDomainRepository):
    def create(self, domain: models.Domain) -> models.Domain:
        return self._persist(domain, f"Domain with name '{domain.name}' already exists.")

    def find_by_guid(self, guid: str) -> Optional[models.Domain]:
        return self.db.query(models.Domain).filter(models.Domain.guid == guid).first()

    def find_by_name(self, name: str) -> Optional[models.Domain]:
        return self.db.query(models.Domain).filter(models.Domain.name == name).first()

    def list_all(self) -> List[models.Domain]:
        return self.db.query(models.Domain).order_by(models.Domain.id.asc()).all()

    def list_shared(self) -> List[models.SharedDomain]:
        return self.db.query(models.SharedDomain).order_by(models.SharedDomain.id.asc()).all()

    def delete(self, domain: models.Domain) -> bool:
        return self._remove(domain)

    def create_route(self, route: models.Route) -> models.Route:
        return self._persist(route, f"Route with host '{route.host}' already exists for this domain.")

    def find_route_by_guid(self, guid: str) -> Optional[models.Route]:
        return self.db.query(models.Route).filter(models.Route.guid == guid).first()

    def find_route(self, host: str, domain: models.Domain) -> Optional[models.Route]:
        return self.db.query(models.Route).filter(
            models.Route.host == host,
            models.Route.domain_id == domain.id,
        ).first()

    def list_routes(self) -> List[models.Route]:
        return self.db.query(models.Route).order_by(models.Route.id.asc()).all()

    def delete_route(self, route: models.Route) -> bool:
        return self._remove(route)
