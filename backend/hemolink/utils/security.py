from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from ..database import settings
from ..models.user import TokenPayload, UserRole


def create_access_token(
    user_id: str,
    role: UserRole | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    expires_at = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.jwt_expires_min))
    claims: Dict[str, Any] = {"sub": user_id, "exp": expires_at}
    if role is not None:
        claims["role"] = role
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenPayload:
    """Verify signature and expiry. Raises ValueError for anything unusable."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return TokenPayload.model_validate(claims)
    except (JWTError, PydanticValidationError) as exc:
        raise ValueError("Invalid or expired token") from exc
