"""Credential hashing, token issuing and the explicit caller context."""

import hashlib
import hmac
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from .config import settings


class PasswordEncoder:
    """Salted SHA-256 password encoder.

    Encoded values have the form ``<salt>$<hex digest>``. Swap in another
    object with the same ``encode``/``matches`` methods to change schemes.
    """

    def __init__(self, salt_bytes: int = 16):
        self._salt_bytes = salt_bytes

    def _digest(self, salt: str, raw: str) -> str:
        return hashlib.sha256(f"{salt}{raw}".encode()).hexdigest()

    def encode(self, raw: str) -> str:
        salt = secrets.token_hex(self._salt_bytes)
        return f"{salt}${self._digest(salt, raw)}"

    def matches(self, raw: str, encoded: str) -> bool:
        salt, sep, digest = encoded.partition("$")
        if not sep:
            return False
        return hmac.compare_digest(self._digest(salt, raw), digest)


@dataclass(frozen=True)
class Caller:
    """The authenticated requester, passed explicitly to directory operations."""

    user_id: uuid.UUID
    email: str
    permission: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.permission == settings.admin_permission


def _create_token(user_id: uuid.UUID, expires: timedelta, token_type: str) -> str:
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + expires,
        "type": token_type,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: uuid.UUID) -> str:
    return _create_token(user_id, timedelta(minutes=settings.access_token_expire_minutes), "access")


def create_refresh_token(user_id: uuid.UUID) -> str:
    return _create_token(user_id, timedelta(minutes=settings.refresh_token_expire_minutes), "refresh")


def decode_access_token(token: str) -> Optional[uuid.UUID]:
    """Return the user id carried by a valid access token, else ``None``."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None
    if payload.get("type") != "access":
        return None
    try:
        return uuid.UUID(str(payload.get("sub", "")))
    except ValueError:
        return None
