import uuid

from sqlalchemy import Column, DateTime, Integer, String, func


def generate_guid() -> str:
    return str(uuid.uuid4())


class ResourceMixin:
    """
    모든 리소스가 공유하는 식별자와 타임스탬프 컬럼입니다.
    id는 내부 조인용 정수 키이고, 외부에는 변하지 않는 guid만 노출합니다.
    """
    id = Column(Integer, primary_key=True, index=True)
    guid = Column(String, unique=True, nullable=False, index=True, default=generate_guid)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
