from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from ..database import Base


class OrganizationUserRole(Base):
    """
    사용자(User)와 조직(Organization) 사이의 역할 관계를 나타내는 연관 테이블입니다.
    한 사용자는 같은 조직에서 여러 역할(user, manager, billing_manager, auditor)을 동시에 가질 수 있습니다.
    어느 한쪽이 삭제되면 이 레코드도 함께 삭제됩니다.
    """
    __tablename__ = "organization_user_roles"
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True)
    role = Column(String, primary_key=True)

    user = relationship("User", back_populates="organization_roles")
    organization = relationship("Organization", back_populates="user_roles")


class SpaceUserRole(Base):
    """
    사용자(User)와 스페이스(Space) 사이의 역할 관계(developer, manager, auditor)를 나타내는 연관 테이블입니다.
    """
    __tablename__ = "space_user_roles"
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    space_id = Column(Integer, ForeignKey("spaces.id", ondelete="CASCADE"), primary_key=True)
    role = Column(String, primary_key=True)

    user = relationship("User", back_populates="space_roles")
    space = relationship("Space", back_populates="user_roles")
