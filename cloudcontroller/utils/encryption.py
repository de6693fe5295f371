# cloudcontroller/utils/encryption.py
import json
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken


def generate_key() -> str:
    """새 Fernet 키를 생성합니다. (CC_DB_ENCRYPTION_KEY 값으로 사용)"""
    return Fernet.generate_key().decode()


class CredentialCipher:
    """
    서비스 인스턴스 자격 증명을 암호화/복호화합니다.
    자격 증명은 JSON으로 직렬화한 뒤 Fernet 토큰 문자열로 저장합니다.
    """
    def __init__(self, key: str):
        if not key:
            raise ValueError("Encryption key is not configured. Set CC_DB_ENCRYPTION_KEY to a valid Fernet key.")
        try:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except (ValueError, TypeError) as e:
            raise ValueError(
                "Invalid encryption key: must be 32 url-safe base64-encoded bytes.\n"
                "Generate one with: from cryptography.fernet import Fernet; Fernet.generate_key().decode()"
            ) from e

    def encrypt(self, credentials: Optional[Dict[str, Any]]) -> Optional[str]:
        if credentials is None:
            return None
        payload = json.dumps(credentials, sort_keys=True).encode("utf-8")
        return self._fernet.encrypt(payload).decode()

    def decrypt(self, encrypted: Optional[str]) -> Dict[str, Any]:
        if not encrypted:
            return {}
        try:
            payload = self._fernet.decrypt(encrypted.encode())
        except InvalidToken as e:
            raise ValueError("Stored credentials cannot be decrypted with the configured key.") from e
        return json.loads(payload.decode("utf-8"))
