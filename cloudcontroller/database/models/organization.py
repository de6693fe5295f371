from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from ..database import Base
from .mixins import ResourceMixin

ACTIVE = "active"
SUSPENDED = "suspended"
ORGANIZATION_STATUSES = (ACTIVE, SUSPENDED)


class QuotaDefinition(ResourceMixin, Base):
    """
    조직이 사용할 수 있는 자원의 상한을 정의합니다.
    memory_limit은 조직 내 모든 앱의 (memory x instances) 합계 상한입니다. (MB)
    """
    __tablename__ = "quota_definitions"
    name = Column(String, unique=True, nullable=False)
    memory_limit = Column(Integer, nullable=False)
    total_services = Column(Integer, nullable=False, default=-1)

    organizations = relationship("Organization", back_populates="quota_definition")


class Organization(ResourceMixin, Base):
    """
    최상위 테넌트이자 과금 경계입니다.
    스페이스(Space)와 프라이빗 도메인(PrivateDomain)을 소유하며, 조직이 삭제되면 함께 삭제됩니다.
    """
    __tablename__ = "organizations"
    name = Column(String, unique=True, nullable=False, index=True)
    status = Column(String, nullable=False, default=ACTIVE)
    billing_enabled = Column(Boolean, nullable=False, default=False)

    quota_definition_id = Column(Integer, ForeignKey("quota_definitions.id"), nullable=True)
    quota_definition = relationship("QuotaDefinition", back_populates="organizations")

    spaces = relationship("Space", back_populates="organization", cascade="all, delete-orphan", order_by="Space.id")
    private_domains = relationship("PrivateDomain", back_populates="owning_organization", cascade="all, delete-orphan", order_by="PrivateDomain.id")
    user_roles = relationship("OrganizationUserRole", back_populates="organization", cascade="all, delete-orphan")
    service_plan_visibilities = relationship("ServicePlanVisibility", back_populates="organization", cascade="all, delete-orphan")

    def is_active(self) -> bool:
        return self.status == ACTIVE

    def is_suspended(self) -> bool:
        return self.status == SUSPENDED

    def user_guids_with_role(self, role: str):
        """특정 역할을 가진 사용자 guid 목록 (역할 부여 순서)"""
        return [assoc.user.guid for assoc in self.user_roles if assoc.role == role]
