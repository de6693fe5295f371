from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from .mixins import ResourceMixin


class Space(ResourceMixin, Base):
    """
    조직 안의 배포 네임스페이스입니다.
    앱(App), 서비스 인스턴스(ServiceInstance), 라우트(Route)를 소유합니다.
    이름은 같은 조직 안에서만 유일하면 됩니다.
    """
    __tablename__ = "spaces"
    __table_args__ = (UniqueConstraint("organization_id", "name", name="spaces_org_id_name_index"),)
    name = Column(String, nullable=False)

    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    organization = relationship("Organization", back_populates="spaces")

    apps = relationship("App", back_populates="space", cascade="all, delete-orphan", order_by="App.id")
    service_instances = relationship("ServiceInstance", back_populates="space", cascade="all, delete-orphan", order_by="ServiceInstance.id")
    routes = relationship("Route", back_populates="space", cascade="all, delete-orphan", order_by="Route.id")
    user_roles = relationship("SpaceUserRole", back_populates="space", cascade="all, delete-orphan")

    staging_security_groups = relationship("SecurityGroup", secondary="staging_security_groups_spaces", back_populates="staging_spaces")
    running_security_groups = relationship("SecurityGroup", secondary="security_groups_spaces", back_populates="running_spaces")

    def user_guids_with_role(self, role: str):
        return [assoc.user.guid for assoc in self.user_roles if assoc.role == role]
