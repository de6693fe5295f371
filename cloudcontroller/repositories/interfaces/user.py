from abc import ABC, abstractmethod
from typing import List, Optional
from cloudcontroller.database import models

class IUserRepository(ABC):
    @abstractmethod
    def create(self, user_model: models.User) -> models.User:
        """새로운 사용자를 데이터베이스에 생성합니다."""
        pass

    @abstractmethod
    def save(self, user: models.User) -> models.User:
        """변경된 사용자 정보를 반영합니다."""
        pass

    @abstractmethod
    def find_by_guid(self, guid: str) -> Optional[models.User]:
        """guid로 특정 사용자를 조회합니다."""
        pass

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[models.User]:
        """사용자 이름으로 특정 사용자를 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.User]:
        """모든 사용자의 목록을 조회합니다."""
        pass

    @abstractmethod
    def delete(self, user: models.User) -> bool:
        """특정 사용자를 삭제합니다. 역할 연결과 토큰도 함께 삭제됩니다."""
        pass

    @abstractmethod
    def add_token(self, token: models.AccessToken) -> models.AccessToken:
        """발급한 액세스 토큰을 저장합니다."""
        pass

    @abstractmethod
    def find_token(self, token: str) -> Optional[models.AccessToken]:
        """토큰 문자열로 액세스 토큰을 조회합니다."""
        pass

    @abstractmethod
    def delete_token(self, token: models.AccessToken) -> bool:
        """만료된 토큰을 삭제합니다."""
        pass
