# cloudcontroller/config.py
import os
from dataclasses import dataclass
from typing import Mapping, Optional

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """
    애플리케이션 전역 설정입니다.
    환경 변수에서 한 번 읽어와 각 서비스에 생성자 인자로 전달합니다.
    """
    database_url: str = "sqlite:///cloud_controller.db"
    billing_event_writing_enabled: bool = False
    encryption_key: Optional[str] = None
    token_ttl_minutes: int = 60
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        환경 변수로부터 설정을 생성합니다.

        Args:
            environ: 읽어올 환경 변수 매핑. 생략하면 os.environ을 사용합니다.
        """
        env = os.environ if environ is None else environ
        return cls(
            database_url=env.get("CC_DATABASE_URL", cls.database_url),
            billing_event_writing_enabled=env.get("CC_BILLING_EVENT_WRITING_ENABLED", "false").strip().lower() in _TRUE_VALUES,
            encryption_key=env.get("CC_DB_ENCRYPTION_KEY") or None,
            token_ttl_minutes=int(env.get("CC_TOKEN_TTL_MINUTES", cls.token_ttl_minutes)),
            log_level=env.get("CC_LOG_LEVEL", cls.log_level).upper(),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """프로세스에서 공유하는 설정 객체를 반환합니다. (최초 호출 시 환경 변수에서 로드)"""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
