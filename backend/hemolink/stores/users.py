from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List

from bson import ObjectId
from bson.errors import InvalidId
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument

from ..matching.geo import EARTH_RADIUS_KM
from ..models.base import Address, GeoPoint
from ..models.user import DonorProfile, UserProfile, user_adapter
from ..utils.logging import storage_errors

# Never load credentials or medical history into the domain models.
PUBLIC_PROJECTION: Dict[str, int] = {"password": 0, "medicalHistory": 0}

# $near measures on a 6378.1 km sphere; haversine here uses 6371 km.
MONGO_EARTH_RADIUS_KM = 6378.1
PREFILTER_SLACK_M = 1.0


def prefilter_radius_m(radius_km: float) -> float:
    """``$maxDistance`` wide enough that every donor within ``radius_km`` by haversine reaches the exact cut."""
    return radius_km * 1000 * MONGO_EARTH_RADIUS_KM / EARTH_RADIUS_KM + PREFILTER_SLACK_M


def resolve_id(raw_id: str) -> Any:
    try:
        return ObjectId(raw_id)
    except (InvalidId, TypeError):
        return raw_id


def _to_profile(document: Dict[str, Any]) -> UserProfile:
    document["_id"] = str(document["_id"])
    return user_adapter.validate_python(document)


class UserStore:
    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def get(self, user_id: str) -> UserProfile | None:
        with storage_errors("get_user"):
            document = await self.collection.find_one({"_id": resolve_id(user_id)}, PUBLIC_PROJECTION)
        if not document:
            return None
        return _to_profile(document)

    def donor_query(self, blood_types: Iterable[str] | None) -> Dict[str, Any]:
        query: Dict[str, Any] = {
            "userType": "donor",
            "isAvailable": True,
            "isVerified": True,
        }
        if blood_types is None:
            query["bloodType"] = {"$exists": True}
        else:
            query["bloodType"] = {"$in": sorted(blood_types)}
        return query

    async def find_donors_near(
        self,
        origin: GeoPoint,
        radius_km: float,
        blood_types: Iterable[str] | None = None,
    ) -> List[DonorProfile]:
        """Available, verified donors of the given types within ``radius_km`` of ``origin``."""
        query = self.donor_query(blood_types)
        query["location"] = {
            "$near": {
                "$geometry": {"type": "Point", "coordinates": list(origin.coordinates)},
                "$maxDistance": prefilter_radius_m(radius_km),
            }
        }
        return await self._fetch_donors(query)

    async def _fetch_donors(self, query: Dict[str, Any]) -> List[DonorProfile]:
        donors: List[DonorProfile] = []
        with storage_errors("find_donors_near"):
            async for document in self.collection.find(query, PUBLIC_PROJECTION):
                try:
                    profile = _to_profile(document)
                except PydanticValidationError as exc:
                    logger.warning("Skipping malformed donor record {}: {}", document.get("_id"), exc)
                    continue
                if isinstance(profile, DonorProfile):
                    donors.append(profile)
        return donors

    async def update_donor_availability(
        self,
        user_id: str,
        is_available: bool | None = None,
        last_donation_date: datetime | None = None,
    ) -> DonorProfile | None:
        changes: Dict[str, Any] = {}
        if is_available is not None:
            changes["isAvailable"] = is_available
        if last_donation_date is not None:
            changes["lastDonationDate"] = last_donation_date
        return await self._update_donor("update_donor_availability", user_id, changes)

    async def update_location(
        self,
        user_id: str,
        location: GeoPoint,
        address: Address | None = None,
    ) -> DonorProfile | None:
        changes: Dict[str, Any] = {"location": location.model_dump(by_alias=True)}
        if address is not None:
            changes["address"] = address.model_dump(by_alias=True)
        return await self._update_donor("update_location", user_id, changes)

    async def _update_donor(self, context: str, user_id: str, changes: Dict[str, Any]) -> DonorProfile | None:
        query = {"_id": resolve_id(user_id), "userType": "donor"}
        with storage_errors(context):
            if changes:
                document = await self.collection.find_one_and_update(
                    query,
                    {"$set": changes},
                    projection=PUBLIC_PROJECTION,
                    return_document=ReturnDocument.AFTER,
                )
            else:
                document = await self.collection.find_one(query, PUBLIC_PROJECTION)
        if not document:
            return None
        profile = _to_profile(document)
        return profile if isinstance(profile, DonorProfile) else None
