from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Dict, Protocol, Set

from loguru import logger

from ..models.notification import Notification, NotificationData, NotificationPriority, NotificationType
from ..stores.notifications import NotificationStore


class NotificationSink(Protocol):
    async def notify(
        self,
        recipient_id: str,
        type: NotificationType,
        title: str,
        message: str,
        data: NotificationData,
        priority: NotificationPriority,
    ) -> None: ...


class EventBus(Protocol):
    async def emit(self, event: str, payload: Dict[str, Any], room: str | None = None) -> None: ...


class NotificationService:
    """In-app delivery: persist the notification and push it to the recipient's room."""

    def __init__(self, store: NotificationStore, bus: EventBus | None = None) -> None:
        self.store = store
        self.bus = bus

    async def notify(
        self,
        recipient_id: str,
        type: NotificationType,
        title: str,
        message: str,
        data: NotificationData,
        priority: NotificationPriority,
    ) -> None:
        notification = await self.store.insert(
            Notification(
                recipient=recipient_id,
                type=type,
                title=title,
                message=message,
                data=data,
                priority=priority,
            )
        )
        if self.bus is not None:
            await self.bus.emit(
                "notification",
                notification.model_dump(mode="json", by_alias=True),
                room=f"user:{recipient_id}",
            )
        logger.info("Notification {} ({}) stored for {}", notification.id, type, recipient_id)


class NotificationDispatcher:
    """
    Fire-and-forget front for the notification sink and the event bus.

    Deliveries run as background tasks; a failed delivery is logged and never
    reaches the caller.
    """

    def __init__(self, sink: NotificationSink, bus: EventBus | None = None) -> None:
        self.sink = sink
        self.bus = bus
        self.running_tasks: Set[asyncio.Task] = set()

    def notify(
        self,
        recipient_id: str,
        type: NotificationType,
        title: str,
        message: str,
        data: NotificationData | None = None,
        priority: NotificationPriority = "medium",
    ) -> None:
        coro = self.sink.notify(recipient_id, type, title, message, data or NotificationData(), priority)
        self.spawn(coro, f"{type} notification for {recipient_id}")

    def emit(self, event: str, payload: Dict[str, Any], room: str | None = None) -> None:
        if self.bus is None:
            return
        self.spawn(self.bus.emit(event, payload, room=room), f"{event} event")

    def spawn(self, coro: Awaitable[Any], label: str) -> None:
        task = asyncio.create_task(self._guard(coro, label))
        self.running_tasks.add(task)
        task.add_done_callback(self.running_tasks.discard)

    async def drain(self) -> None:
        """Wait for every in-flight delivery, including ones they schedule."""
        while self.running_tasks:
            await asyncio.gather(*list(self.running_tasks))

    @staticmethod
    async def _guard(coro: Awaitable[Any], label: str) -> None:
        try:
            await coro
        except Exception as exc:
            logger.warning("Delivery of {} failed: {}. Continuing.", label, exc)
