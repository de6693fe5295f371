from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship
from ..database import Base
from .mixins import ResourceMixin

# 스테이징 단계에 적용되는 연결과 실행 단계에 적용되는 연결은 서로 독립적인 두 테이블로 관리합니다.
staging_security_groups_spaces = Table(
    "staging_security_groups_spaces",
    Base.metadata,
    Column("staging_security_group_id", Integer, ForeignKey("security_groups.id", ondelete="CASCADE"), primary_key=True),
    Column("staging_space_id", Integer, ForeignKey("spaces.id", ondelete="CASCADE"), primary_key=True),
)

security_groups_spaces = Table(
    "security_groups_spaces",
    Base.metadata,
    Column("security_group_id", Integer, ForeignKey("security_groups.id", ondelete="CASCADE"), primary_key=True),
    Column("space_id", Integer, ForeignKey("spaces.id", ondelete="CASCADE"), primary_key=True),
)


class SecurityGroup(ResourceMixin, Base):
    """
    이름이 붙은 네트워크 egress 규칙 묶음입니다.
    running_default / staging_default가 켜져 있으면 플랫폼 전체에 적용되고,
    아니면 staging_spaces / running_spaces로 연결된 스페이스에만 적용됩니다.
    """
    __tablename__ = "security_groups"
    name = Column(String, unique=True, nullable=False, index=True)
    rules = Column(JSON, nullable=False, default=list)
    running_default = Column(Boolean, nullable=False, default=False)
    staging_default = Column(Boolean, nullable=False, default=False)

    staging_spaces = relationship("Space", secondary=staging_security_groups_spaces, back_populates="staging_security_groups", order_by="Space.id")
    running_spaces = relationship("Space", secondary=security_groups_spaces, back_populates="running_security_groups", order_by="Space.id")

    def is_globally_enabled(self) -> bool:
        return bool(self.running_default or self.staging_default)

    def associated_spaces(self):
        """staging/running 양쪽에 연결된 스페이스 (중복 제거)"""
        seen, spaces = set(), []
        for space in list(self.staging_spaces) + list(self.running_spaces):
            if space.guid not in seen:
                seen.add(space.guid)
                spaces.append(space)
        return spaces
