"""Password hashing and JWT creation/verification for authentication."""

from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from app.core.config import settings

# Min/max lengths for password validation (mirrors the request schemas).
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128


class TokenExpired(Exception):
    """Raised when a bearer token was valid but its exp claim has passed."""


class TokenInvalid(Exception):
    """Raised when a bearer token is malformed, badly signed, or missing claims."""


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(
        pw_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    ).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def create_access_token(sub: str | int, role: str) -> str:
    """Create a JWT access token with sub (user id), role, and exp."""
    now = datetime.now(UTC)
    expire = now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    payload: dict[str, Any] = {
        "sub": str(sub),
        "role": role,
        "exp": expire,
        "iat": now,
    }
    secret = settings.JWT_SECRET.get_secret_value()
    return jwt.encode(
        payload,
        secret,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate JWT; return payload (sub, role, exp, iat).
    Raises TokenExpired or TokenInvalid so callers can report them differently.
    """
    secret = settings.JWT_SECRET.get_secret_value()
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpired("Token has expired.") from e
    except jwt.PyJWTError as e:
        raise TokenInvalid("Invalid token.") from e


def subject_user_id(payload: dict[str, Any]) -> int:
    """Extract the integer user id from a decoded token payload."""
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise TokenInvalid("Invalid token payload.") from e
