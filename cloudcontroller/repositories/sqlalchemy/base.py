from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cloudcontroller.services.exceptions import DuplicateNameError


def role_value(role) -> str:
    """Enum 역할이든 문자열이든 DB에 저장할 문자열 값으로 바꿉니다."""
    return getattr(role, "value", role)


class SqlalchemyRepository:
    """
    SQLAlchemy 리포지토리 공통 기반 클래스.
    commit은 Unit of Work가 담당하므로 여기서는 flush까지만 수행합니다.
    """
    def __init__(self, db_session: Session):
        self.db = db_session

    def _flush(self, conflict_message: str):
        try:
            self.db.flush()
        except IntegrityError as e:
            # 사전 검사를 통과했더라도 동시 요청 경쟁에서는 유니크 인덱스가 최종 판정을 내립니다.
            if "unique" in str(e.orig).lower():
                raise DuplicateNameError(conflict_message) from e
            raise

    def _persist(self, model, conflict_message: str):
        self.db.add(model)
        self._flush(conflict_message)
        self.db.refresh(model)
        return model

    def _remove(self, model) -> bool:
        if model is None:
            return False
        self.db.delete(model)
        self.db.flush()
        # 이미 로드된 부모 컬렉션에 삭제된 객체가 남지 않도록 세션 상태를 다시 읽어오게 합니다.
        self.db.expire_all()
        return True
