from typing import List, Optional
from sqlalchemy import func
from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import IOrganizationRepository
from .base import SqlalchemyRepository, role_value

class SqlalchemyOrganizationRepository(SqlalchemyRepository, IOrganizationRepository):
    def create(self, organization: models.Organization) -> models.Organization:
        return self._persist(organization, f"Organization with name '{organization.name}' already exists.")

    def save(self, organization: models.Organization) -> models.Organization:
        self.db.add(organization)
        self._flush(f"Organization with name '{organization.name}' already exists.")
        return organization

    def find_by_guid(self, guid: str) -> Optional[models.Organization]:
        return self.db.query(models.Organization).filter(models.Organization.guid == guid).first()

    def find_by_name(self, name: str) -> Optional[models.Organization]:
        return self.db.query(models.Organization).filter(models.Organization.name == name).first()

    def list_all(self) -> List[models.Organization]:
        return self.db.query(models.Organization).order_by(models.Organization.id.asc()).all()

    def delete(self, organization: models.Organization) -> bool:
        return self._remove(organization)

    def memory_used(self, organization: models.Organization, exclude_app: Optional[models.App] = None) -> int:
        query = (
            self.db.query(func.coalesce(func.sum(models.App.memory * models.App.instances), 0))
            .join(models.Space, models.App.space_id == models.Space.id)
            .filter(models.Space.organization_id == organization.id)
        )
        if exclude_app is not None and exclude_app.id is not None:
            query = query.filter(models.App.id != exclude_app.id)
        return int(query.scalar() or 0)

    def has_role(self, user: models.User, organization: models.Organization, role: str) -> bool:
        return self._find_role(user, organization, role) is not None

    def add_role(self, user: models.User, organization: models.Organization, role: str):
        if self.has_role(user, organization, role):
            return
        self.db.add(models.OrganizationUserRole(user=user, organization=organization, role=role_value(role)))
        self.db.flush()

    def remove_role(self, user: models.User, organization: models.Organization, role: str):
        association = self._find_role(user, organization, role)
        if association:
            self.db.delete(association)
            self.db.flush()
            self.db.expire(organization, ["user_roles"])
            self.db.expire(user, ["organization_roles"])

    def _find_role(self, user, organization, role) -> Optional[models.OrganizationUserRole]:
        return self.db.query(models.OrganizationUserRole).filter(
            models.OrganizationUserRole.user_id == user.id,
            models.OrganizationUserRole.organization_id == organization.id,
            models.OrganizationUserRole.role == role_value(role),
        ).first()

    def create_quota(self, quota: models.QuotaDefinition) -> models.QuotaDefinition:
        return self._persist(quota, f"Quota definition with name '{quota.name}' already exists.")

    def find_quota_by_guid(self, guid: str) -> Optional[models.QuotaDefinition]:
        return self.db.query(models.QuotaDefinition).filter(models.QuotaDefinition.guid == guid).first()

    def find_quota_by_name(self, name: str) -> Optional[models.QuotaDefinition]:
        return self.db.query(models.QuotaDefinition).filter(models.QuotaDefinition.name == name).first()

    def add_plan_visibility(self, visibility: models.ServicePlanVisibility) -> models.ServicePlanVisibility:
        return self._persist(visibility, "This service plan is already visible to the organization.")

    def delete_plan_visibility(self, visibility: models.ServicePlanVisibility) -> bool:
        return self._remove(visibility)
