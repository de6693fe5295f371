from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base
from .mixins import ResourceMixin


class Domain(ResourceMixin, Base):
    """
    라우트의 호스트 이름 뒤에 붙는 도메인입니다.
    type 컬럼으로 SharedDomain / PrivateDomain을 구분하는 단일 테이블 상속 모델입니다.
    """
    __tablename__ = "domains"
    name = Column(String, unique=True, nullable=False, index=True)
    type = Column(String, nullable=False)

    owning_organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)

    routes = relationship("Route", back_populates="domain", order_by="Route.id")

    __mapper_args__ = {"polymorphic_on": type, "polymorphic_identity": "domain"}

    def is_shared(self) -> bool:
        return False

    def usable_by(self, organization) -> bool:
        """이 도메인에 조직의 라우트를 만들 수 있는지 여부. 종류가 정해지지 않은 도메인은 누구도 쓸 수 없습니다."""
        return False


class SharedDomain(Domain):
    """모든 조직이 함께 사용하는 도메인. 소유 조직이 없습니다."""
    __mapper_args__ = {"polymorphic_identity": "shared_domain"}

    def is_shared(self) -> bool:
        return True

    def usable_by(self, organization) -> bool:
        return True


class PrivateDomain(Domain):
    """특정 조직 하나가 소유하는 도메인."""
    owning_organization = relationship("Organization", back_populates="private_domains")

    __mapper_args__ = {"polymorphic_identity": "private_domain"}

    def usable_by(self, organization) -> bool:
        owner = self.owning_organization
        return owner is not None and organization is not None and owner.guid == organization.guid


class Route(ResourceMixin, Base):
    """스페이스에 속한 host.domain 형태의 라우트입니다."""
    __tablename__ = "routes"
    __table_args__ = (UniqueConstraint("host", "domain_id", name="routes_host_domain_id_index"),)
    host = Column(String, nullable=False, default="")

    domain_id = Column(Integer, ForeignKey("domains.id"), nullable=False, index=True)
    domain = relationship("Domain", back_populates="routes")

    space_id = Column(Integer, ForeignKey("spaces.id"), nullable=False, index=True)
    space = relationship("Space", back_populates="routes")

    @property
    def fqdn(self) -> str:
        return f"{self.host}.{self.domain.name}" if self.host else self.domain.name
