from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from cloudcontroller.config import get_settings


def make_engine(database_url: str) -> Engine:
    """
    SQLAlchemy 엔진을 생성합니다.

    SQLite의 경우 외래 키 제약을 켜고, SAVEPOINT(중첩 트랜잭션)가 동작하도록
    pysqlite 드라이버의 자동 BEGIN 대신 직접 BEGIN을 보냅니다.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url)

    # connect_args는 SQLite에서만 필요합니다. (thread-safe 설정)
    options = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # 인메모리 DB는 모든 세션이 같은 커넥션을 공유해야 합니다.
        options["poolclass"] = StaticPool
    engine = create_engine(database_url, **options)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def make_session_factory(bind: Engine) -> sessionmaker:
    # autocommit=False, autoflush=False: commit은 Unit of Work가 명시적으로 호출합니다.
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


# 데이터베이스 연결 문자열은 설정(CC_DATABASE_URL)에서 읽어옵니다.
engine = make_engine(get_settings().database_url)

SessionLocal = make_session_factory(engine)

# 모든 모델 클래스가 상속받을 Base 클래스
Base = declarative_base()
