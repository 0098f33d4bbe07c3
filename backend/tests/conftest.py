from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List

import pytest
from mongomock_motor import AsyncMongoMockClient

from hemolink.matching.geo import EARTH_RADIUS_KM
from hemolink.models.notification import NotificationData
from hemolink.services.request_lifecycle import RequestLifecycleManager
from hemolink.stores.requests import RequestStore
from hemolink.stores.users import UserStore
from hemolink.utils.notifications import NotificationDispatcher

ORIGIN_LAT = 27.7172
ORIGIN_LNG = 85.3240
KM_PER_DEGREE_LAT = EARTH_RADIUS_KM * math.pi / 180


def north_of_origin(km: float) -> tuple[float, float]:
    """(latitude, longitude) of a point ``km`` due north of the test origin."""
    return ORIGIN_LAT + km / KM_PER_DEGREE_LAT, ORIGIN_LNG


class PlanarUserStore(UserStore):
    """mongomock has no ``$near``; leave the radius cut to the search engine."""

    async def find_donors_near(self, origin, radius_km, blood_types=None):
        return await self._fetch_donors(self.donor_query(blood_types))


@dataclass
class SentNotification:
    recipient_id: str
    type: str
    title: str
    message: str
    data: NotificationData
    priority: str


class RecordingSink:
    def __init__(self) -> None:
        self.sent: List[SentNotification] = []

    async def notify(self, recipient_id, type, title, message, data, priority) -> None:
        self.sent.append(SentNotification(recipient_id, type, title, message, data, priority))

    def to(self, recipient_id: str) -> List[SentNotification]:
        return [item for item in self.sent if item.recipient_id == recipient_id]


class RecordingBus:
    def __init__(self) -> None:
        self.events: List[tuple[str, Dict[str, Any], str | None]] = []

    async def emit(self, event: str, payload: Dict[str, Any], room: str | None = None) -> None:
        self.events.append((event, payload, room))

    def names(self) -> List[str]:
        return [event for event, _, _ in self.events]


@pytest.fixture
def mongo_db():
    return AsyncMongoMockClient()["hemolink_test"]


@pytest.fixture
def user_store(mongo_db) -> PlanarUserStore:
    return PlanarUserStore(mongo_db["users"])


@pytest.fixture
def request_store(mongo_db) -> RequestStore:
    return RequestStore(mongo_db["blood_requests"])


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def bus() -> RecordingBus:
    return RecordingBus()


@pytest.fixture
async def dispatcher(sink, bus):
    dispatcher = NotificationDispatcher(sink, bus)
    yield dispatcher
    await dispatcher.drain()


@pytest.fixture
def manager(user_store, request_store, dispatcher) -> RequestLifecycleManager:
    return RequestLifecycleManager(user_store, request_store, dispatcher, notify_radius_km=50.0)


@pytest.fixture
def make_donor(mongo_db):
    counter = {"n": 0}

    async def _make(
        blood_type: str = "O-",
        km: float = 5.0,
        *,
        verified: bool = True,
        available: bool = True,
        last_donation: datetime | None = None,
        name: str | None = None,
    ) -> str:
        counter["n"] += 1
        lat, lng = north_of_origin(km)
        result = await mongo_db["users"].insert_one(
            {
                "name": name or f"Donor {counter['n']}",
                "email": f"donor{counter['n']}@hemolink.org",
                "phone": "+9779800000000",
                "password": "$2b$12$hashed",
                "userType": "donor",
                "bloodType": blood_type,
                "location": {"type": "Point", "coordinates": [lng, lat]},
                "isVerified": verified,
                "isAvailable": available,
                "lastDonationDate": last_donation,
                "medicalHistory": [{"condition": "anemia", "notes": "private"}],
            }
        )
        return str(result.inserted_id)

    return _make


@pytest.fixture
def make_patient(mongo_db):
    counter = {"n": 0}

    async def _make(name: str | None = None) -> str:
        counter["n"] += 1
        result = await mongo_db["users"].insert_one(
            {
                "name": name or f"Patient {counter['n']}",
                "email": f"patient{counter['n']}@hemolink.org",
                "phone": "+9779811111111",
                "password": "$2b$12$hashed",
                "userType": "patient",
            }
        )
        return str(result.inserted_id)

    return _make


def request_payload(blood_type: str = "O-", urgency: str = "critical", km: float = 0.0) -> Dict[str, Any]:
    lat, lng = north_of_origin(km)
    return {
        "bloodType": blood_type,
        "urgency": urgency,
        "hospital": {
            "name": "Bir Hospital",
            "address": {"city": "Kathmandu"},
            "location": {"type": "Point", "coordinates": [lng, lat]},
            "contact": {"phone": "+97714221119"},
        },
        "requiredUnits": 1,
        "description": "Post-surgery transfusion",
    }


def statuses(entries: Iterable[Any]) -> List[str]:
    return [entry.status for entry in entries]
