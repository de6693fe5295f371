import hashlib
import logging

from .database import engine, SessionLocal, Base
from .models import GlobalRole, QuotaDefinition, User

logger = logging.getLogger(__name__)

DEFAULT_QUOTA_MEMORY_LIMIT = 10240


def initialize_db(bind=None, session_factory=None):
    """
    DB와 테이블을 생성하고, 기본 데이터('default' 쿼터, admin 사용자)를 삽입합니다.
    이미 사용자가 있으면 기본 데이터 삽입은 건너뜁니다.
    """
    bind = bind if bind is not None else engine
    session_factory = session_factory if session_factory is not None else SessionLocal

    logger.info("Initializing database")
    # 모든 테이블을 생성합니다. (이미 존재하면 생성하지 않음)
    Base.metadata.create_all(bind=bind)

    db = session_factory()
    try:
        if db.query(User).first():
            logger.info("Seed data already present, skipping")
            return

        db.add(QuotaDefinition(name='default', memory_limit=DEFAULT_QUOTA_MEMORY_LIMIT))

        password_hash = hashlib.sha256('admin'.encode('utf-8')).hexdigest()
        db.add(User(username='admin', password_hash=password_hash, global_role=GlobalRole.ADMIN.value))

        db.commit()
        logger.info("Database initialized with default quota and admin user")
    except Exception:
        logger.exception("Database initialization failed")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    initialize_db()
