from sqlalchemy import Column, Integer, String
from ..database import Base
from .mixins import ResourceMixin


class UsageEvent(ResourceMixin, Base):
    """
    감사/과금을 위한 추가 전용(append-only) 상태 전이 기록입니다.
    원본 리소스가 삭제된 뒤에도 남아야 하므로 외래 키 대신 guid 사본을 저장합니다.
    """
    __tablename__ = "usage_events"
    event_type = Column(String, nullable=False)
    state = Column(String, nullable=False)
    resource_guid = Column(String, nullable=False, index=True)
    resource_name = Column(String, nullable=True)
    org_guid = Column(String, nullable=False, index=True)
    space_guid = Column(String, nullable=True)
    space_name = Column(String, nullable=True)
    memory_in_mb_per_instance = Column(Integer, nullable=True)
    instance_count = Column(Integer, nullable=True)
    service_instance_type = Column(String, nullable=True)
    service_plan_guid = Column(String, nullable=True)

    __mapper_args__ = {"polymorphic_on": event_type, "polymorphic_identity": "usage_event"}


class AppUsageEvent(UsageEvent):
    __mapper_args__ = {"polymorphic_identity": "app"}

    @property
    def app_guid(self):
        return self.resource_guid


class ServiceUsageEvent(UsageEvent):
    __mapper_args__ = {"polymorphic_identity": "service"}

    @property
    def service_instance_guid(self):
        return self.resource_guid


class BillingEvent(ResourceMixin, Base):
    """
    과금 시스템으로 내보낼 이벤트입니다.
    설정(billing_event_writing_enabled)과 조직의 billing_enabled가 모두 켜진 경우에만 기록됩니다.
    """
    __tablename__ = "billing_events"
    kind = Column(String, nullable=False)
    organization_guid = Column(String, nullable=False, index=True)
    organization_name = Column(String, nullable=False)
    space_guid = Column(String, nullable=True)
    resource_guid = Column(String, nullable=True)
    resource_name = Column(String, nullable=True)
    memory = Column(Integer, nullable=True)
    instances = Column(Integer, nullable=True)
    service_plan_guid = Column(String, nullable=True)

    __mapper_args__ = {"polymorphic_on": kind, "polymorphic_identity": "billing_event"}


class OrganizationStartEvent(BillingEvent):
    __mapper_args__ = {"polymorphic_identity": "organization_start"}


class AppStartEvent(BillingEvent):
    __mapper_args__ = {"polymorphic_identity": "app_start"}


class AppStopEvent(BillingEvent):
    __mapper_args__ = {"polymorphic_identity": "app_stop"}


class ServiceCreateEvent(BillingEvent):
    __mapper_args__ = {"polymorphic_identity": "service_create"}


class ServiceDeleteEvent(BillingEvent):
    __mapper_args__ = {"polymorphic_identity": "service_delete"}
