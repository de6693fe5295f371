# tests/conftest.py
import pytest

from cloudcontroller.app import build_services
from cloudcontroller.config import Settings
from cloudcontroller.database import models  # 모든 모델을 Base.metadata에 등록
from cloudcontroller.database.database import Base, make_engine, make_session_factory
from cloudcontroller.services.authorization import Actor
from cloudcontroller.utils.encryption import CredentialCipher, generate_key

# ===================================================================
#  DB / 서비스 Fixture 설정 (인메모리 SQLite)
# ===================================================================

@pytest.fixture
def engine():
    """테스트마다 새로운 인메모리 DB 엔진을 생성합니다."""
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()

@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)

@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()

@pytest.fixture
def encryption_key() -> str:
    return generate_key()

@pytest.fixture
def settings(encryption_key: str) -> Settings:
    return Settings(database_url="sqlite://", encryption_key=encryption_key)

@pytest.fixture
def services(db_session, settings: Settings):
    """하나의 세션을 공유하는 실제 리포지토리/서비스 묶음"""
    return build_services(db_session, settings, CredentialCipher(settings.encryption_key))

@pytest.fixture
def billing_services(db_session, encryption_key: str):
    """과금 이벤트 기록이 켜진 서비스 묶음"""
    settings = Settings(database_url="sqlite://", encryption_key=encryption_key, billing_event_writing_enabled=True)
    return build_services(db_session, settings, CredentialCipher(encryption_key))

@pytest.fixture
def admin() -> Actor:
    return Actor(user_guid="admin-guid", global_roles=frozenset({"admin"}))

# ===================================================================
#  시나리오 구성용 헬퍼 Fixture
# ===================================================================

@pytest.fixture
def make_user(services):
    """사용자를 생성하고 guid를 반환하는 함수"""
    def _make_user(username: str) -> str:
        return services["identity"].create_user(username, "password")["guid"]
    return _make_user

@pytest.fixture
def actor_for(services):
    """현재 DB의 역할 정보로 사용자의 Actor를 만드는 함수"""
    def _actor_for(user_guid: str) -> Actor:
        return services["identity"].actor_for(user_guid)
    return _actor_for

@pytest.fixture
def org(services, admin):
    """관리자가 생성한 기본 조직"""
    return services["organizations"].create(admin, "acme")

@pytest.fixture
def space(services, admin, org):
    """기본 조직 안의 기본 스페이스"""
    return services["spaces"].create(admin, "dev", org["guid"])
