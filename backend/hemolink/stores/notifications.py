from __future__ import annotations

from typing import List

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING, ReturnDocument

from ..models.base import utcnow
from ..models.notification import Notification
from ..utils.logging import storage_errors
from .users import resolve_id


class NotificationStore:
    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def insert(self, notification: Notification) -> Notification:
        document = notification.model_dump(by_alias=True, exclude={"id"})
        with storage_errors("insert_notification"):
            result = await self.collection.insert_one(document)
        return notification.model_copy(update={"id": str(result.inserted_id)})

    async def for_recipient(self, recipient_id: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = {"recipient": recipient_id}
        if unread_only:
            query["isRead"] = False
        with storage_errors("list_notifications"):
            cursor = self.collection.find(query, sort=[("createdAt", DESCENDING)], limit=limit)
            items = []
            async for document in cursor:
                document["_id"] = str(document["_id"])
                items.append(Notification.model_validate(document))
        return items

    async def mark_read(self, recipient_id: str, notification_id: str) -> Notification | None:
        with storage_errors("mark_notification_read"):
            document = await self.collection.find_one_and_update(
                {"_id": resolve_id(notification_id), "recipient": recipient_id},
                {"$set": {"isRead": True, "readAt": utcnow()}},
                return_document=ReturnDocument.AFTER,
            )
        if not document:
            return None
        document["_id"] = str(document["_id"])
        return Notification.model_validate(document)
