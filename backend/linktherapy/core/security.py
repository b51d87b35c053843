from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from passlib.context import CryptContext

from .config import settings


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

RECOVERY_PURPOSE = "recovery"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    subject: str | int,
    expires_delta: Optional[int] = None,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    expire_seconds = expires_delta or settings.AUTH_TOKEN_TTL_SECONDS
    now = datetime.now(timezone.utc)
    expire = now + timedelta(seconds=expire_seconds)
    to_encode: dict[str, Any] = {"sub": str(subject), "exp": expire, "iat": now}
    if extra_claims:
        to_encode.update(extra_claims)
    encoded_jwt = jwt.encode(to_encode, settings.AUTH_TOKEN_SECRET, algorithm="HS256")
    return encoded_jwt


def decode_access_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.AUTH_TOKEN_SECRET, algorithms=["HS256"])


def create_recovery_token(user_id: str, password_hash: str) -> str:
    # Binding the token to the current hash makes it single-use: once the
    # password changes the fingerprint no longer matches.
    return create_access_token(
        user_id,
        expires_delta=settings.PASSWORD_RESET_TTL_SECONDS,
        extra_claims={"purpose": RECOVERY_PURPOSE, "pwd": password_fingerprint(password_hash)},
    )


def password_fingerprint(password_hash: str) -> str:
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


def generate_invite_token() -> str:
    """64 hex characters from 32 random bytes."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
