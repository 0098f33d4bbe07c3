from __future__ import annotations

from fastapi import Depends

from .database import db, settings
from .realtime import hub
from .services.request_lifecycle import RequestLifecycleManager
from .stores.notifications import NotificationStore
from .stores.requests import RequestStore
from .stores.users import UserStore
from .utils.notifications import NotificationDispatcher, NotificationService

notification_service = NotificationService(NotificationStore(db.get_collection("notifications")), hub)
dispatcher = NotificationDispatcher(notification_service, hub)


async def get_user_store() -> UserStore:
    return UserStore(db.get_collection("users"))


async def get_request_store() -> RequestStore:
    return RequestStore(db.get_collection("blood_requests"))


async def get_notification_store() -> NotificationStore:
    return NotificationStore(db.get_collection("notifications"))


async def get_dispatcher() -> NotificationDispatcher:
    return dispatcher


async def get_lifecycle_manager(
    users: UserStore = Depends(get_user_store),
    requests: RequestStore = Depends(get_request_store),
    notifications: NotificationDispatcher = Depends(get_dispatcher),
) -> RequestLifecycleManager:
    return RequestLifecycleManager(
        users,
        requests,
        notifications,
        notify_radius_km=settings.notify_radius_km,
        max_attempts=settings.update_max_attempts,
    )
