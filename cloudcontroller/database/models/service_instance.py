from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from .mixins import ResourceMixin


class ServicePlan(ResourceMixin, Base):
    """서비스 브로커가 제공하는 플랜입니다. 조직별 노출 여부는 ServicePlanVisibility로 관리합니다."""
    __tablename__ = "service_plans"
    name = Column(String, unique=True, nullable=False)
    free = Column(Boolean, nullable=False, default=True)

    visibilities = relationship("ServicePlanVisibility", back_populates="service_plan", cascade="all, delete-orphan")


class ServicePlanVisibility(ResourceMixin, Base):
    """특정 조직에 서비스 플랜을 노출합니다. 조직이 삭제되면 함께 삭제됩니다."""
    __tablename__ = "service_plan_visibilities"
    __table_args__ = (UniqueConstraint("organization_id", "service_plan_id", name="spv_org_id_sp_id_index"),)

    service_plan_id = Column(Integer, ForeignKey("service_plans.id"), nullable=False)
    service_plan = relationship("ServicePlan", back_populates="visibilities")

    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    organization = relationship("Organization", back_populates="service_plan_visibilities")


class ServiceInstance(ResourceMixin, Base):
    """
    스페이스에 프로비저닝된 서비스 인스턴스입니다.
    type 컬럼으로 ManagedServiceInstance / UserProvidedServiceInstance를 구분합니다.
    자격 증명(credentials)은 항상 암호화된 상태로만 저장됩니다.
    """
    __tablename__ = "service_instances"
    __table_args__ = (UniqueConstraint("space_id", "name", name="si_space_id_name_index"),)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)
    encrypted_credentials = Column(Text, nullable=True)
    is_gateway_service = Column(Boolean, nullable=False, default=False)

    space_id = Column(Integer, ForeignKey("spaces.id"), nullable=False, index=True)
    space = relationship("Space", back_populates="service_instances")

    service_bindings = relationship("ServiceBinding", back_populates="service_instance", cascade="all, delete-orphan", order_by="ServiceBinding.id")

    __mapper_args__ = {"polymorphic_on": type, "polymorphic_identity": "service_instance"}

    @property
    def tags(self):
        return []


class ManagedServiceInstance(ServiceInstance):
    """서비스 플랜을 통해 브로커가 프로비저닝한 인스턴스."""
    service_plan_id = Column(Integer, ForeignKey("service_plans.id"), nullable=True)
    service_plan = relationship("ServicePlan")
    instance_tags = Column(JSON, nullable=True)

    __mapper_args__ = {"polymorphic_identity": "managed_service_instance"}

    @property
    def tags(self):
        return list(self.instance_tags or [])


class UserProvidedServiceInstance(ServiceInstance):
    """사용자가 직접 자격 증명을 입력한 외부 서비스. 태그를 가지지 않습니다."""
    syslog_drain_url = Column(String, nullable=True)

    __mapper_args__ = {"polymorphic_identity": "user_provided_service_instance"}


class ServiceBinding(ResourceMixin, Base):
    """
    앱과 서비스 인스턴스를 연결합니다.
    두 리소스는 반드시 같은 스페이스에 있어야 합니다.
    """
    __tablename__ = "service_bindings"
    __table_args__ = (UniqueConstraint("app_id", "service_instance_id", name="sb_app_id_si_id_index"),)

    app_id = Column(Integer, ForeignKey("apps.id"), nullable=False, index=True)
    app = relationship("App", back_populates="service_bindings")

    service_instance_id = Column(Integer, ForeignKey("service_instances.id"), nullable=False, index=True)
    service_instance = relationship("ServiceInstance", back_populates="service_bindings")
