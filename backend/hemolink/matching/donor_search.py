from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Protocol

from loguru import logger

from ..errors import InvalidInputError
from ..models.base import GeoPoint, MongoBaseModel, utcnow
from ..models.user import DonorProfile
from .compatibility import compatible_donor_types
from .eligibility import is_eligible
from .geo import distance_between


class DonorSource(Protocol):
    async def find_donors_near(
        self,
        origin: GeoPoint,
        radius_km: float,
        blood_types: Iterable[str] | None = None,
    ) -> List[DonorProfile]: ...


class DonorMatch(MongoBaseModel):
    donor: DonorProfile
    distance: float


class DonorSearchResult(MongoBaseModel):
    donors: List[DonorMatch]


def rank_donors(
    candidates: Iterable[DonorProfile],
    recipient_blood_type: str | None,
    origin: GeoPoint,
    radius_km: float,
    now: datetime | None = None,
) -> List[DonorMatch]:
    """
    Keep eligible, compatible donors within ``radius_km`` (inclusive) of
    ``origin``, nearest first. Reported distances are rounded to 0.1 km; the
    ordering uses the exact distance with donor id as the tie-breaker.
    """
    now = now or utcnow()
    allowed = compatible_donor_types(recipient_blood_type) if recipient_blood_type else None

    nearby = []
    for donor in candidates:
        if allowed is not None and donor.blood_type not in allowed:
            continue
        if not is_eligible(donor, now):
            continue
        distance = distance_between(origin, donor.location)
        if distance <= radius_km:
            nearby.append((distance, donor.id, donor))

    nearby.sort(key=lambda item: (item[0], item[1]))
    return [DonorMatch(donor=donor, distance=round(distance, 1)) for distance, _, donor in nearby]


async def find_donors(
    users: DonorSource,
    recipient_blood_type: str | None,
    origin: GeoPoint | None,
    radius_km: float,
    now: datetime | None = None,
) -> List[DonorMatch]:
    if origin is None:
        raise InvalidInputError("Latitude and longitude are required")

    blood_types = None
    if recipient_blood_type:
        blood_types = compatible_donor_types(recipient_blood_type)
        if not blood_types:
            logger.info("No compatible donor types for recipient {}", recipient_blood_type)
            return []

    candidates = await users.find_donors_near(origin, radius_km, blood_types)
    matches = rank_donors(candidates, recipient_blood_type, origin, radius_km, now)
    logger.info(
        "Donor search for {} within {} km: {} candidates, {} eligible",
        recipient_blood_type or "any type",
        radius_km,
        len(candidates),
        len(matches),
    )
    return matches
