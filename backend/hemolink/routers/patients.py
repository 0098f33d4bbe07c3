from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from ..dependencies import get_lifecycle_manager
from ..models.blood_request import (
    BloodRequest,
    BloodRequestCreate,
    BloodRequestUpdate,
    CancelRequestIn,
    RequestList,
    RequestStatistics,
)
from ..models.user import PatientProfile
from ..routers.auth import require_roles
from ..services.request_lifecycle import RequestLifecycleManager

router = APIRouter(prefix="/patients", tags=["patients"])
PatientUser = Annotated[PatientProfile, Depends(require_roles("patient"))]
Manager = Annotated[RequestLifecycleManager, Depends(get_lifecycle_manager)]


@router.post("/requests", response_model=BloodRequest, status_code=status.HTTP_201_CREATED)
async def create_request(current_user: PatientUser, payload: BloodRequestCreate, manager: Manager) -> BloodRequest:
    return await manager.create_request(current_user.id, payload)


@router.get("/requests", response_model=RequestList)
async def my_requests(current_user: PatientUser, manager: Manager) -> RequestList:
    return RequestList(requests=await manager.list_patient_requests(current_user.id))


@router.get("/requests/{request_id}", response_model=BloodRequest)
async def my_request(request_id: str, current_user: PatientUser, manager: Manager) -> BloodRequest:
    return await manager.get_patient_request(current_user.id, request_id)


@router.put("/requests/{request_id}", response_model=BloodRequest)
async def update_request(
    request_id: str,
    payload: BloodRequestUpdate,
    current_user: PatientUser,
    manager: Manager,
) -> BloodRequest:
    return await manager.update_request(request_id, current_user.id, payload)


@router.put("/requests/{request_id}/cancel", response_model=BloodRequest)
async def cancel_request(
    request_id: str,
    current_user: PatientUser,
    manager: Manager,
    payload: CancelRequestIn | None = None,
) -> BloodRequest:
    reason = payload.reason if payload else None
    return await manager.cancel_request(request_id, current_user.id, reason)


@router.get("/stats", response_model=RequestStatistics)
async def my_stats(current_user: PatientUser, manager: Manager) -> RequestStatistics:
    return await manager.get_statistics(patient_id=current_user.id)
