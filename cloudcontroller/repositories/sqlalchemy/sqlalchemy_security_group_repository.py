from typing import List, Optional
from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import ISecurityGroupRepository
from .base import SqlalchemyRepository

class SqlalchemySecurityGroupRepository(SqlalchemyRepository, ISecurityGroupRepository):
    def create(self, security_group: models.SecurityGroup) -> models.SecurityGroup:
        return self._persist(security_group, f"Security group with name '{security_group.name}' already exists.")

    def save(self, security_group: models.SecurityGroup) -> models.SecurityGroup:
        self.db.add(security_group)
        self._flush(f"Security group with name '{security_group.name}' already exists.")
        return security_group

    def find_by_guid(self, guid: str) -> Optional[models.SecurityGroup]:
        return self.db.query(models.SecurityGroup).filter(models.SecurityGroup.guid == guid).first()

    def find_by_name(self, name: str) -> Optional[models.SecurityGroup]:
        return self.db.query(models.SecurityGroup).filter(models.SecurityGroup.name == name).first()

    def list_all(self) -> List[models.SecurityGroup]:
        return self.db.query(models.SecurityGroup).order_by(models.SecurityGroup.id.asc()).all()

    def delete(self, security_group: models.SecurityGroup) -> bool:
        return self._remove(security_group)
