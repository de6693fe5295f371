import hashlib
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from cloudcontroller.database import models
from cloudcontroller.database.models import GlobalRole
from cloudcontroller.repositories.interfaces import IUnitOfWork, IUserRepository
from cloudcontroller.services.authorization import Actor
from cloudcontroller.services.exceptions import (
    AuthenticationError, AuthorizationError, DuplicateNameError,
    InvalidFormatError, MissingFieldError, TokenInvalidError, UserNotFoundError,
)
from cloudcontroller.services.representations import timestamps

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


def build_actor(user: models.User) -> Actor:
    """
    사용자의 역할 연관 레코드로부터 불변 Actor를 만듭니다.

    Args:
        user: 역할을 읽어올 사용자 모델.

    Returns:
        전역 역할, 조직별 역할, 스페이스별 역할을 담은 Actor.
    """
    org_roles: Dict[str, set] = {}
    for assoc in user.organization_roles:
        org_roles.setdefault(assoc.organization.guid, set()).add(assoc.role)

    space_roles: Dict[str, set] = {}
    space_orgs: Dict[str, str] = {}
    for assoc in user.space_roles:
        space_roles.setdefault(assoc.space.guid, set()).add(assoc.role)
        space_orgs[assoc.space.guid] = assoc.space.organization.guid

    return Actor(
        user_guid=user.guid,
        global_roles=frozenset([user.global_role]) if user.global_role else frozenset(),
        org_roles={guid: frozenset(roles) for guid, roles in org_roles.items()},
        space_roles={guid: frozenset(roles) for guid, roles in space_roles.items()},
        space_orgs=space_orgs,
    )


class IdentityService:
    """사용자, 전역 역할, 인증 토큰 등 신원 관리 서비스를 제공합니다."""

    def __init__(self, uow: IUnitOfWork, user_repo: IUserRepository, token_ttl_minutes: int = 60):
        """
        IdentityService를 초기화합니다.

        Args:
            uow: 트랜잭션 경계를 제공하는 Unit of Work.
            user_repo: 사용자와 토큰 데이터에 접근하기 위한 리포지토리.
            token_ttl_minutes: 발급한 토큰의 유효 시간(분).
        """
        self.uow = uow
        self.user_repo = user_repo
        self.token_ttl = timedelta(minutes=token_ttl_minutes)

    def create_user(self, username: str, password: str) -> Dict[str, Any]:
        """
        새로운 사용자를 생성합니다. 비밀번호는 해시하여 저장합니다.

        Raises:
            MissingFieldError: 사용자 이름이나 비밀번호가 비어 있을 때.
            DuplicateNameError: 동일한 이름의 사용자가 이미 존재할 때.
        """
        username = (username or "").strip()
        if not username or not password:
            raise MissingFieldError("Username and password are required.")

        with self.uow.transaction():
            if self.user_repo.find_by_username(username):
                raise DuplicateNameError(f"User with username '{username}' already exists.")
            new_user = models.User(username=username, password_hash=hash_password(password))
            created_user = self.user_repo.create(new_user)
            logger.info("Created user %s (%s)", created_user.username, created_user.guid)
            return self._user_repr(created_user)

    def list_users(self) -> List[Dict[str, Any]]:
        """모든 사용자의 목록을 조회합니다. (비밀번호 제외)"""
        return [self._user_repr(u) for u in self.user_repo.list_all()]

    def get_user(self, user_guid: str) -> Dict[str, Any]:
        """
        guid로 특정 사용자를 조회합니다. (비밀번호 제외)

        Raises:
            UserNotFoundError: 해당 guid의 사용자를 찾을 수 없을 때.
        """
        return self._user_repr(self.find_user(user_guid))

    def find_user(self, user_guid: str) -> models.User:
        user = self.user_repo.find_by_guid(user_guid)
        if not user:
            raise UserNotFoundError(f"User with guid '{user_guid}' not found.")
        return user

    def delete_user(self, actor: Actor, user_guid: str) -> bool:
        """
        사용자를 삭제합니다. 조직/스페이스 역할과 토큰도 함께 삭제됩니다.

        Raises:
            AuthorizationError: 관리자가 아닐 때.
            UserNotFoundError: 해당 guid의 사용자를 찾을 수 없을 때.
        """
        if not actor.is_admin():
            raise AuthorizationError("You are not authorized to perform the requested action: admin role required")
        with self.uow.transaction():
            user = self.find_user(user_guid)
            self.user_repo.delete(user)
        logger.info("Deleted user %s", user_guid)
        return True

    def set_global_role(self, actor: Actor, user_guid: str, role: Optional[str]) -> Dict[str, Any]:
        """
        사용자의 전역 역할을 지정하거나(None이면) 해제합니다. 관리자만 호출할 수 있습니다.

        Raises:
            AuthorizationError: 관리자가 아닐 때.
            InvalidFormatError: 알 수 없는 역할일 때.
            UserNotFoundError: 해당 guid의 사용자를 찾을 수 없을 때.
        """
        if not actor.is_admin():
            raise AuthorizationError("You are not authorized to perform the requested action: admin role required")
        role_value = getattr(role, "value", role)
        if role_value is not None and role_value not in {r.value for r in GlobalRole}:
            raise InvalidFormatError(f"Unknown global role '{role_value}'.")

        with self.uow.transaction():
            user = self.find_user(user_guid)
            user.global_role = role_value
            self.user_repo.save(user)
            return self._user_repr(user)

    def authenticate(self, username: str, password: str) -> Dict[str, str]:
        """
        자격증명을 검증하고, 성공 시 인증 토큰을 발급합니다.

        Raises:
            AuthenticationError: 사용자 이름이나 비밀번호가 틀렸을 때.
        """
        user = self.user_repo.find_by_username(username)
        if not user or user.password_hash != hash_password(password or ""):
            logger.info("Authentication failed for '%s'", username)
            raise AuthenticationError("Invalid username or password.")

        with self.uow.transaction():
            token = models.AccessToken(
                token=str(uuid.uuid4()),
                expires_at=datetime.now() + self.token_ttl,
                user=user,
            )
            self.user_repo.add_token(token)
            return {"token": token.token, "expires_at": token.expires_at.isoformat()}

    def validate_token(self, token: str) -> models.User:
        """
        인증 토큰의 유효성을 검증하고, 유효하면 토큰 소유자를 반환합니다.
        만료된 토큰은 삭제합니다.

        Raises:
            TokenInvalidError: 토큰을 찾을 수 없거나 만료되었을 때.
        """
        if not token:
            raise TokenInvalidError("Token not found or invalid.")
        access_token = self.user_repo.find_token(token)
        if not access_token:
            raise TokenInvalidError("Token not found or invalid.")

        if datetime.now() > access_token.expires_at:
            with self.uow.transaction():
                self.user_repo.delete_token(access_token)
            raise TokenInvalidError("Token has expired.")

        return access_token.user

    def resolve_actor(self, token: str) -> Actor:
        """불투명 토큰을 역할 목록을 가진 Actor로 바꿉니다."""
        return build_actor(self.validate_token(token))

    def actor_for(self, user_guid: str) -> Actor:
        return build_actor(self.find_user(user_guid))

    @staticmethod
    def _user_repr(user: models.User) -> Dict[str, Any]:
        return {
            "guid": user.guid,
            **timestamps(user),
            "username": user.username,
            "global_role": user.global_role,
        }
