from typing import List, Optional
from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import ISpaceRepository
from .base import SqlalchemyRepository, role_value

class SqlalchemySpaceRepository(SqlalchemyRepository, ISpaceRepository):
    def create(self, space: models.Space) -> models.Space:
        return self._persist(space, f"Space with name '{space.name}' already exists in the organization.")

    def save(self, space: models.Space) -> models.Space:
        self.db.add(space)
        self._flush(f"Space with name '{space.name}' already exists in the organization.")
        return space

    def find_by_guid(self, guid: str) -> Optional[models.Space]:
        return self.db.query(models.Space).filter(models.Space.guid == guid).first()

    def find_by_name_and_organization(self, name: str, organization: models.Organization) -> Optional[models.Space]:
        return self.db.query(models.Space).filter(
            models.Space.name == name,
            models.Space.organization_id == organization.id,
        ).first()

    def list_all(self) -> List[models.Space]:
        return self.db.query(models.Space).order_by(models.Space.id.asc()).all()

    def delete(self, space: models.Space) -> bool:
        return self._remove(space)

    def add_role(self, user: models.User, space: models.Space, role: str):
        if self._find_role(user, space, role):
            return
        self.db.add(models.SpaceUserRole(user=user, space=space, role=role_value(role)))
        self.db.flush()

    def remove_role(self, user: models.User, space: models.Space, role: str):
        association = self._find_role(user, space, role)
        if association:
            self.db.delete(association)
            self.db.flush()
            self.db.expire(space, ["user_roles"])
            self.db.expire(user, ["space_roles"])

    def list_roles_in_organization(self, user: models.User, organization: models.Organization) -> List[models.SpaceUserRole]:
        return (
            self.db.query(models.SpaceUserRole)
            .join(models.Space, models.SpaceUserRole.space_id == models.Space.id)
            .filter(
                models.SpaceUserRole.user_id == user.id,
                models.Space.organization_id == organization.id,
            )
            .order_by(models.Space.id.asc())
            .all()
        )

    def _find_role(self, user, space, role) -> Optional[models.SpaceUserRole]:
        return self.db.query(models.SpaceUserRole).filter(
            models.SpaceUserRole.user_id == user.id,
            models.SpaceUserRole.space_id == space.id,
            models.SpaceUserRole.role == role_value(role),
        ).first()
