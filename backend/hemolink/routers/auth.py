from __future__ import annotations

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import OAuth2PasswordBearer

from ..database import settings
from ..dependencies import get_user_store
from ..models.user import UserBase, UserProfile, UserRole
from ..stores.users import UserStore
from ..utils.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.token_url, auto_error=False)


async def get_current_user(
    token: str | None = Security(oauth2_scheme),
    users: UserStore = Depends(get_user_store),
) -> UserProfile:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    try:
        payload = decode_access_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    user = await users.get(payload.sub)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if payload.role is not None and payload.role != user.user_type:
        # Role changed since the token was issued.
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token role is out of date")
    return user


def require_roles(*roles: UserRole):
    def dependency(user: UserBase = Depends(get_current_user)) -> UserBase:
        if roles and user.user_type not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions for this action",
            )
        return user

    return dependency
