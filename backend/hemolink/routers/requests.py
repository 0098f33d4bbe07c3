from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..database import settings
from ..dependencies import get_lifecycle_manager
from ..models.base import BloodType, GeoPoint
from ..models.blood_request import BloodRequest, DonorResponseIn, RequestList, RequestStatistics, Urgency
from ..models.user import DonorProfile, UserBase
from ..routers.auth import get_current_user, require_roles
from ..services.request_lifecycle import RequestLifecycleManager

router = APIRouter(prefix="/requests", tags=["requests"])
DonorUser = Annotated[DonorProfile, Depends(require_roles("donor"))]
CurrentUser = Annotated[UserBase, Depends(get_current_user)]
Manager = Annotated[RequestLifecycleManager, Depends(get_lifecycle_manager)]


@router.get("/active", response_model=RequestList)
async def active_requests(
    manager: Manager,
    blood_type: BloodType | None = Query(default=None, alias="bloodType"),
    urgency: Urgency | None = None,
    lat: float | None = Query(default=None, ge=-90, le=90),
    lng: float | None = Query(default=None, ge=-180, le=180),
    radius: float = Query(default=settings.active_request_radius_km, gt=0),
) -> RequestList:
    origin = GeoPoint.from_lat_lng(lat, lng) if lat is not None and lng is not None else None
    requests = await manager.list_active_requests(blood_type, urgency, origin, radius)
    return RequestList(requests=requests)


@router.get("/stats/overview", response_model=RequestStatistics)
async def stats_overview(manager: Manager) -> RequestStatistics:
    return await manager.get_statistics()


@router.get("/{request_id}", response_model=BloodRequest)
async def get_request(request_id: str, manager: Manager) -> BloodRequest:
    return await manager.get_request(request_id)


@router.post("/{request_id}/respond", response_model=BloodRequest)
async def respond_to_request(
    request_id: str,
    payload: DonorResponseIn,
    current_user: DonorUser,
    manager: Manager,
) -> BloodRequest:
    return await manager.record_donor_response(request_id, current_user.id, payload.status, payload.notes)


@router.post("/{request_id}/complete", response_model=BloodRequest)
async def complete_request(request_id: str, current_user: CurrentUser, manager: Manager) -> BloodRequest:
    return await manager.complete_request(request_id, current_user.id)
