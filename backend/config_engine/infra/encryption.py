from __future__ import annotations

import base64
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config_engine.settings import settings

_KEY_SALT = b"config-engine-static-salt"


def _derive_key(secret: str) -> bytes:
    # Static salt keeps the derived key stable across restarts.
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_KEY_SALT,
        iterations=100000,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode()))


@lru_cache
def _cipher_for(secret: str) -> Fernet:
    return Fernet(_derive_key(secret))


def _cipher() -> Fernet:
    return _cipher_for(settings.config_encryption_key.get_secret_value())


def encrypt_value(value: str) -> str:
    return _cipher().encrypt(value.encode()).decode("utf-8")


def decrypt_value(token: str) -> str:
    try:
        return _cipher().decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken as exc:
        raise ValueError("Unable to decrypt configuration value") from exc
