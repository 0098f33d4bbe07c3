from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_notification_store
from ..errors import NotFoundError
from ..models.notification import Notification, NotificationList
from ..models.user import UserBase
from ..routers.auth import get_current_user
from ..stores.notifications import NotificationStore

router = APIRouter(prefix="/notifications", tags=["notifications"])
CurrentUser = Annotated[UserBase, Depends(get_current_user)]
Store = Annotated[NotificationStore, Depends(get_notification_store)]


@router.get("", response_model=NotificationList)
async def my_notifications(
    current_user: CurrentUser,
    store: Store,
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    limit: int = Query(default=50, ge=1, le=200),
) -> NotificationList:
    items = await store.for_recipient(current_user.id, unread_only=unread_only, limit=limit)
    return NotificationList(notifications=items)


@router.put("/{notification_id}/read", response_model=Notification)
async def mark_read(notification_id: str, current_user: CurrentUser, store: Store) -> Notification:
    notification = await store.mark_read(current_user.id, notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification
