from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from ..database import settings
from ..dependencies import get_lifecycle_manager, get_user_store
from ..matching.donor_search import DonorSearchResult, find_donors
from ..models.base import BloodType, GeoPoint
from ..models.user import AvailabilityUpdate, DonorProfile, DonorStatistics, LocationUpdate
from ..routers.auth import require_roles
from ..services.request_lifecycle import RequestLifecycleManager
from ..stores.users import UserStore

router = APIRouter(prefix="/donors", tags=["donors"])
DonorUser = Annotated[DonorProfile, Depends(require_roles("donor"))]


@router.get("/available", response_model=DonorSearchResult)
async def available_donors(
    blood_type: BloodType | None = Query(default=None, alias="bloodType"),
    lat: float | None = Query(default=None, ge=-90, le=90),
    lng: float | None = Query(default=None, ge=-180, le=180),
    radius: float = Query(default=settings.donor_search_radius_km, gt=0),
    users: UserStore = Depends(get_user_store),
) -> DonorSearchResult:
    origin = GeoPoint.from_lat_lng(lat, lng) if lat is not None and lng is not None else None
    donors = await find_donors(users, blood_type, origin, radius)
    return DonorSearchResult(donors=donors)


@router.put("/availability", response_model=DonorProfile)
async def update_availability(
    current_user: DonorUser,
    payload: AvailabilityUpdate,
    users: UserStore = Depends(get_user_store),
) -> DonorProfile:
    donor = await users.update_donor_availability(
        current_user.id,
        is_available=payload.is_available,
        last_donation_date=payload.last_donation_date,
    )
    if donor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Donor not found")
    logger.info("Donor {} availability set to {}", donor.id, donor.is_available)
    return donor


@router.put("/location", response_model=DonorProfile)
async def update_location(
    current_user: DonorUser,
    payload: LocationUpdate,
    users: UserStore = Depends(get_user_store),
) -> DonorProfile:
    donor = await users.update_location(current_user.id, payload.to_point(), payload.address)
    if donor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Donor not found")
    return donor


@router.get("/stats/{donor_id}", response_model=DonorStatistics)
async def donor_stats(
    donor_id: str,
    manager: RequestLifecycleManager = Depends(get_lifecycle_manager),
) -> DonorStatistics:
    return await manager.get_donor_summary(donor_id)
