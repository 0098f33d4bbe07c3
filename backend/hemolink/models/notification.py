from __future__ import annotations

from typing import Dict, List, Literal

from pydantic import Field

from .base import MongoBaseModel, UtcDatetime, utcnow


NotificationType = Literal[
    "blood_request",
    "donor_match",
    "request_update",
    "donation_reminder",
    "system_alert",
]
NotificationPriority = Literal["low", "medium", "high", "urgent"]
Channel = Literal["push", "sms", "email", "in_app"]

URGENCY_PRIORITY: Dict[str, NotificationPriority] = {
    "low": "low",
    "medium": "medium",
    "high": "high",
    "critical": "urgent",
}


class NotificationData(MongoBaseModel):
    request_id: str | None = None
    donor_id: str | None = None
    patient_id: str | None = None
    hospital_name: str | None = None
    blood_type: str | None = None
    urgency: str | None = None
    distance: float | None = None
    status: str | None = None


class Notification(MongoBaseModel):
    id: str | None = Field(default=None, alias="_id")
    recipient: str
    type: NotificationType
    title: str
    message: str
    data: NotificationData = Field(default_factory=NotificationData)
    is_read: bool = False
    read_at: UtcDatetime | None = None
    sent_via: List[Channel] = Field(default_factory=lambda: ["in_app"])
    priority: NotificationPriority = "medium"
    created_at: UtcDatetime = Field(default_factory=utcnow)


class NotificationList(MongoBaseModel):
    notifications: List[Notification]
