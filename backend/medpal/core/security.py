"""Password hashing and bearer token helpers."""

import uuid
from datetime import UTC, datetime, timedelta

import bcrypt
from jose import JWTError, jwt

from medpal.core.config import get_settings

_TOKEN_TYPE = "access"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())
    except (ValueError, TypeError):
        # Seeded or legacy rows may carry a value that is not a bcrypt hash.
        return False


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def create_access_token(user_id: uuid.UUID, expires_delta: timedelta | None = None) -> str:
    """Sign a short-lived token whose subject is the user id."""
    settings = get_settings()
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": str(user_id),
        "type": _TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_subject(token: str) -> uuid.UUID:
    """Return the user id carried by ``token``.

    Raises ``JWTError`` for a bad signature, an expired token, a token of
    another type or a subject that is not a UUID.
    """
    settings = get_settings()
    claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    if claims.get("type") != _TOKEN_TYPE:
        raise JWTError("Unexpected token type")
    try:
        return uuid.UUID(str(claims["sub"]))
    except (KeyError, ValueError) as exc:
        raise JWTError("Token subject is not a user id") from exc
