"""Password hashing and JWT helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
import jwt

from .config import AuthSettings
from .errors import Unauthenticated


def hash_password(password: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
    except ValueError:
        # Malformed stored hash.
        return False


def create_access_token(user_id: str, settings: AuthSettings, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a token identifying ``user_id``.

    Args:
        user_id: Identity to encode in the ``sub`` claim
        settings: Auth settings holding the secret, algorithm and default expiry
        expires_delta: Override for the token lifetime

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(days=settings.token_expires_days)
    payload = {"sub": user_id, "iat": now, "exp": now + expires_delta}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: AuthSettings) -> dict[str, Any]:
    """
    Verify a token and return its claims.

    Raises:
        Unauthenticated: "Token expired." when past ``exp``, "Invalid token." otherwise
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as e:
        raise Unauthenticated("Token expired.", cause=e) from None
    except jwt.InvalidTokenError as e:
        raise Unauthenticated("Invalid token.", cause=e) from None

    if not payload.get("sub"):
        raise Unauthenticated("Invalid token.")
    return payload
