from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from ..database import Base
from .mixins import ResourceMixin


class User(ResourceMixin, Base):
    """
    시스템에 로그인하고 조직/스페이스 역할을 가질 수 있는 사용자를 나타냅니다.
    global_role은 플랫폼 전역 역할(admin, admin_read_only, global_auditor) 중 하나이거나 None입니다.
    """
    __tablename__ = "users"
    username = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    global_role = Column(String, nullable=True)

    organization_roles = relationship("OrganizationUserRole", back_populates="user", cascade="all, delete-orphan")
    space_roles = relationship("SpaceUserRole", back_populates="user", cascade="all, delete-orphan")
    access_tokens = relationship("AccessToken", back_populates="user", cascade="all, delete-orphan")


class AccessToken(Base):
    """authenticate()가 발급한 불투명(opaque) 토큰입니다."""
    __tablename__ = "access_tokens"
    id = Column(Integer, primary_key=True, index=True)
    token = Column(String, unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user = relationship("User", back_populates="access_tokens")
