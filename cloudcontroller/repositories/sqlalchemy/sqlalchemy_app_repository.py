from typing import List, Optional
from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import IAppRepository
from .base import SqlalchemyRepository

class SqlalchemyAppRepository(SqlalchemyRepository, IAppRepository):
    def create(self, app: models.App) -> models.App:
        return self._persist(app, f"App with name '{app.name}' already exists in this space.")

    def save(self, app: models.App) -> models.App:
        self.db.add(app)
        self._flush(f"App with name '{app.name}' already exists in this space.")
        return app

    def find_by_guid(self, guid: str) -> Optional[models.App]:
        return self.db.query(models.App).filter(models.App.guid == guid).first()

    def find_by_name_and_space(self, name: str, space: models.Space) -> Optional[models.App]:
        return self.db.query(models.App).filter(
            models.App.name == name,
            models.App.space_id == space.id,
        ).first()

    def list_all(self) -> List[models.App]:
        return self.db.query(models.App).order_by(models.App.id.asc()).all()

    def delete(self, app: models.App) -> bool:
        return self._remove(app)

    def find_annotation(self, app: models.App, key: str) -> Optional[models.AppAnnotation]:
        return self.db.query(models.AppAnnotation).filter(
            models.AppAnnotation.resource_guid == app.guid,
            models.AppAnnotation.key == key,
        ).first()

    def save_annotation(self, annotation: models.AppAnnotation) -> models.AppAnnotation:
        return self._persist(annotation, f"Annotation with key '{annotation.key}' already exists for this app.")

    def delete_annotation(self, annotation: models.AppAnnotation) -> bool:
        return self._remove(annotation)
