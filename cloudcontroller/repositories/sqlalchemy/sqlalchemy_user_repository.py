from typing import List, Optional
from cloudcontroller.database import models
from cloudcontroller.repositories.interfaces import IUserRepository
from .base import SqlalchemyRepository

class SqlalchemyUserRepository(SqlalchemyRepository, IUserRepository):
    def create(self, user_model: models.User) -> models.User:
        return self._persist(user_model, f"User with username '{user_model.username}' already exists.")

    def save(self, user: models.User) -> models.User:
        self.db.add(user)
        self._flush(f"User with username '{user.username}' already exists.")
        return user

    def find_by_guid(self, guid: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.guid == guid).first()

    def find_by_username(self, username: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.username == username).first()

    def list_all(self) -> List[models.User]:
        return self.db.query(models.User).order_by(models.User.id.asc()).all()

    def delete(self, user: models.User) -> bool:
        return self._remove(user)

    def add_token(self, token: models.AccessToken) -> models.AccessToken:
        self.db.add(token)
        self.db.flush()
        return token

    def find_token(self, token: str) -> Optional[models.AccessToken]:
        return self.db.query(models.AccessToken).filter(models.AccessToken.token == token).first()

    def delete_token(self, token: models.AccessToken) -> bool:
        return self._remove(token)
