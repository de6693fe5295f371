from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from .mixins import ResourceMixin

STARTED = "STARTED"
STOPPED = "STOPPED"
APP_STATES = (STARTED, STOPPED)


class App(ResourceMixin, Base):
    """
    스페이스에 배포된 애플리케이션입니다.
    state(STARTED/STOPPED) 전이는 사용량 이벤트(AppUsageEvent)로 기록됩니다.
    memory는 인스턴스 하나당 할당량(MB)입니다.
    """
    __tablename__ = "apps"
    __table_args__ = (UniqueConstraint("space_id", "name", name="apps_space_id_name_index"),)
    name = Column(String, nullable=False)
    state = Column(String, nullable=False, default=STOPPED)
    memory = Column(Integer, nullable=False, default=1024)
    instances = Column(Integer, nullable=False, default=1)
    package_state = Column(String, nullable=False, default="PENDING")
    package_hash = Column(String, nullable=True)

    space_id = Column(Integer, ForeignKey("spaces.id"), nullable=False, index=True)
    space = relationship("Space", back_populates="apps")

    service_bindings = relationship("ServiceBinding", back_populates="app", cascade="all, delete-orphan", order_by="ServiceBinding.id")
    annotations = relationship("AppAnnotation", back_populates="app", cascade="all, delete-orphan", order_by="AppAnnotation.id")

    def is_started(self) -> bool:
        return self.state == STARTED

    @property
    def total_memory(self) -> int:
        return (self.memory or 0) * (self.instances or 0)


class AppAnnotation(ResourceMixin, Base):
    """
    앱에 붙는 key/value 메타데이터입니다.
    앱의 정수 id가 아니라 guid(resource_guid)로 연결되며, key는 앱 안에서 유일합니다.
    """
    __tablename__ = "app_annotations"
    __table_args__ = (UniqueConstraint("resource_guid", "key", name="app_annotations_resource_guid_key_index"),)
    key = Column(String, nullable=False)
    value = Column(String, nullable=True)

    resource_guid = Column(String, ForeignKey("apps.guid"), nullable=False, index=True)
    app = relationship("App", back_populates="annotations")
