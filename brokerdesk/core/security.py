"""Security utilities for JWT session tokens."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from brokerdesk.core.config import settings


def create_session_token(actor_id: UUID, role: str, expires_hours: int | None = None) -> str:
    """
    Create signed session JWT.

    Always signs with current secret (JWT_SECRET).
    """
    now = datetime.now(timezone.utc)
    hours = expires_hours if expires_hours is not None else settings.JWT_EXPIRES_HOURS
    payload = {
        "sub": str(actor_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=hours),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error: jwt.InvalidTokenError | None = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.ExpiredSignatureError:
            # Signature matched this secret; trying the next one cannot help
            raise
        except jwt.InvalidTokenError as e:
            last_error = e
    raise last_error or jwt.InvalidTokenError("No signing secret configured")
