from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from ..errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from ..matching.donor_search import find_donors
from ..matching.eligibility import is_eligible, next_eligible_date
from ..matching.geo import within_radius
from ..models.base import GeoPoint, utcnow
from ..models.blood_request import (
    OPEN_STATUSES,
    URGENCY_RANK,
    BloodRequest,
    BloodRequestCreate,
    BloodRequestUpdate,
    DonorDecision,
    DonorResponseIn,
    RequestStatistics,
)
from ..models.notification import URGENCY_PRIORITY, NotificationData
from ..models.user import DonorProfile, DonorStatistics
from ..stores.requests import RequestStore, open_request_filter
from ..stores.users import UserStore
from ..utils.notifications import NotificationDispatcher

Mutation = Callable[[BloodRequest, datetime], None]


class RequestLifecycleManager:
    """
    Owns the BloodRequest state machine:

        active  --accepted-->  matched
        active|matched  --patient cancels-->  cancelled
        matched  --patient or accepted donor completes-->  completed

    Every transition is a read, check, conditional write. The write only lands
    if the stored status and version are unchanged; otherwise the request is
    reloaded and the transition re-checked.
    """

    def __init__(
        self,
        users: UserStore,
        requests: RequestStore,
        dispatcher: NotificationDispatcher,
        *,
        notify_radius_km: float = 50.0,
        max_attempts: int = 5,
    ) -> None:
        self.users = users
        self.requests = requests
        self.dispatcher = dispatcher
        self.notify_radius_km = notify_radius_km
        self.max_attempts = max_attempts

    async def create_request(
        self, patient_id: str, payload: BloodRequestCreate | Mapping[str, Any]
    ) -> BloodRequest:
        if not isinstance(payload, BloodRequestCreate):
            try:
                payload = BloodRequestCreate.model_validate(payload)
            except PydanticValidationError as exc:
                errors = exc.errors(include_url=False, include_context=False, include_input=False)
                raise ValidationError("Invalid blood request", errors=errors) from exc

        request = await self.requests.create(BloodRequest(patient=patient_id, **payload.model_dump()))
        logger.info(
            "Blood request {} created by patient {}: {} ({})",
            request.id,
            patient_id,
            request.blood_type,
            request.urgency,
        )
        self.dispatcher.emit("request-created", self._event_payload(request))
        self.dispatcher.spawn(self._notify_nearby_donors(request), f"donor fan-out for {request.id}")
        return request

    async def get_request(self, request_id: str) -> BloodRequest:
        request = await self.requests.get(request_id)
        if request is None:
            raise NotFoundError("Request not found")
        return request

    async def get_patient_request(self, patient_id: str, request_id: str) -> BloodRequest:
        request = await self.get_request(request_id)
        if request.patient != patient_id:
            raise NotFoundError("Request not found")
        return request

    async def list_patient_requests(self, patient_id: str) -> List[BloodRequest]:
        return await self.requests.query({"patient": patient_id})

    async def list_active_requests(
        self,
        blood_type: str | None = None,
        urgency: str | None = None,
        origin: GeoPoint | None = None,
        radius_km: float = 100.0,
    ) -> List[BloodRequest]:
        criteria: Dict[str, Any] = open_request_filter(OPEN_STATUSES)
        if blood_type:
            criteria["bloodType"] = blood_type
        if urgency:
            criteria["urgency"] = urgency
        requests = await self.requests.query(criteria)
        # Newest first from the store; stable sort keeps that within each urgency.
        requests.sort(key=lambda item: URGENCY_RANK[item.urgency], reverse=True)
        if origin is not None:
            requests = [item for item in requests if within_radius(origin, item.hospital.location, radius_km)]
        return requests

    async def update_request(
        self, request_id: str, patient_id: str, changes: BloodRequestUpdate
    ) -> BloodRequest:
        updates = changes.model_dump(exclude_none=True)

        def mutate(request: BloodRequest, now: datetime) -> None:
            self._ensure_owner(request, patient_id, "update")
            self._ensure_open(request, "Request can no longer be updated")
            for field, value in updates.items():
                setattr(request, field, value)

        _, updated = await self._transition(request_id, mutate)
        self.dispatcher.emit("request-updated", self._event_payload(updated), room=updated.id)
        return updated

    async def record_donor_response(
        self,
        request_id: str,
        donor_id: str,
        status: DonorDecision,
        notes: str | None = None,
    ) -> BloodRequest:
        try:
            response = DonorResponseIn.model_validate({"status": status, "notes": notes})
        except PydanticValidationError as exc:
            errors = exc.errors(include_url=False, include_context=False, include_input=False)
            raise ValidationError("Invalid donor response", errors=errors) from exc
        status, notes = response.status, response.notes

        def mutate(request: BloodRequest, now: datetime) -> None:
            self._ensure_open(request, "Request is no longer active")
            request.upsert_response(donor_id, status, notes, now)
            if status == "accepted" and request.status == "active":
                request.status = "matched"
            elif request.status == "matched" and not request.accepted_donors():
                request.status = "active"

        request = await self.get_request(request_id)
        donor = await self._load_donor(donor_id)
        before, updated = await self._transition(request.id, mutate)
        if before.status != updated.status:
            logger.info("Request {} moved {} -> {}", updated.id, before.status, updated.status)
        logger.info("Donor {} {} request {}", donor_id, status, updated.id)

        self.dispatcher.notify(
            updated.patient,
            "donor_match" if status == "accepted" else "request_update",
            "Donor Response",
            f"A donor has {status} your blood request",
            NotificationData(
                request_id=updated.id,
                donor_id=donor_id,
                blood_type=donor.blood_type,
                urgency=updated.urgency,
                hospital_name=updated.hospital.name,
                status=status,
            ),
            priority="high" if status == "accepted" else "medium",
        )
        self.dispatcher.emit(
            "donor-responded",
            {**self._event_payload(updated), "donorId": donor_id, "response": status},
            room=updated.id,
        )
        return updated

    async def complete_request(self, request_id: str, acting_user_id: str) -> BloodRequest:
        def mutate(request: BloodRequest, now: datetime) -> None:
            accepted = request.accepted_donors()
            is_patient = request.patient == acting_user_id
            is_accepted_donor = any(entry.donor == acting_user_id for entry in accepted)
            if not is_patient and not is_accepted_donor:
                raise ForbiddenError("Not authorized to complete this request")
            if request.status != "matched":
                raise InvalidStateError("Request is not in matched status")
            if not accepted:
                raise InvalidStateError("Request has no accepted donor")
            # First donor to accept is the one who donates.
            completing = accepted[0]
            completing.status = "completed"
            request.status = "completed"
            request.completed_at = now
            request.completed_by = completing.donor

        _, updated = await self._transition(request_id, mutate)
        donor_id = updated.completed_by
        logger.info("Request {} completed by donor {}", updated.id, donor_id)

        # Completion is already committed at this point.
        try:
            donor = await self.users.update_donor_availability(
                donor_id, is_available=False, last_donation_date=updated.completed_at
            )
        except StorageError as exc:
            logger.error(
                "Request {} completed but cooldown for donor {} was not recorded (completedAt {}): {}",
                updated.id,
                donor_id,
                updated.completed_at.isoformat(),
                exc,
            )
        else:
            if donor is None:
                logger.warning("Completing donor {} for request {} no longer exists", donor_id, updated.id)

        recipient = donor_id if acting_user_id == updated.patient else updated.patient
        self.dispatcher.notify(
            recipient,
            "request_update",
            "Donation Completed",
            "The blood request has been marked as completed. Thank you!",
            NotificationData(request_id=updated.id, donor_id=donor_id, status="completed"),
        )
        self.dispatcher.emit("request-updated", self._event_payload(updated), room=updated.id)
        return updated

    async def cancel_request(self, request_id: str, patient_id: str, reason: str | None = None) -> BloodRequest:
        def mutate(request: BloodRequest, now: datetime) -> None:
            self._ensure_owner(request, patient_id, "cancel")
            self._ensure_open(request, "Request can no longer be cancelled")
            request.status = "cancelled"
            request.cancelled_at = now
            request.cancellation_reason = reason

        _, updated = await self._transition(request_id, mutate)
        logger.info("Request {} cancelled by patient {}", updated.id, patient_id)

        for entry in updated.matched_donors:
            if entry.status in ("pending", "accepted"):
                self.dispatcher.notify(
                    entry.donor,
                    "request_update",
                    "Request Cancelled",
                    "A blood request you responded to has been cancelled",
                    NotificationData(request_id=updated.id, status="cancelled"),
                )
        self.dispatcher.emit("request-updated", self._event_payload(updated), room=updated.id)
        return updated

    async def get_statistics(
        self, *, patient_id: str | None = None, donor_id: str | None = None
    ) -> RequestStatistics:
        scope: Dict[str, Any] = {}
        if patient_id is not None:
            scope["patient"] = patient_id
        if donor_id is not None:
            scope["matchedDonors.donor"] = donor_id

        return RequestStatistics(
            total_requests=await self.requests.count(scope),
            active_requests=await self.requests.count({**scope, **open_request_filter(OPEN_STATUSES)}),
            status_breakdown=await self.requests.aggregate_counts("status", scope),
            urgency_breakdown=await self.requests.aggregate_counts("urgency", scope),
        )

    async def get_donor_summary(self, donor_id: str) -> DonorStatistics:
        donor = await self._load_donor(donor_id)
        total, last_completed = await self.requests.donation_summary(donor_id)
        return DonorStatistics(
            total_donations=total,
            last_donation=last_completed or donor.last_donation_date,
            member_since=donor.created_at,
            is_eligible=is_eligible(donor),
            next_eligible_date=next_eligible_date(donor),
        )

    async def _transition(self, request_id: str, mutate: Mutation) -> tuple[BloodRequest, BloodRequest]:
        for attempt in range(1, self.max_attempts + 1):
            current = await self.get_request(request_id)
            candidate = current.model_copy(deep=True)
            now = utcnow()
            mutate(candidate, now)
            candidate.updated_at = now
            committed = await self.requests.update(
                current.id, current.status, current.version, candidate.mutable_fields()
            )
            if committed is not None:
                return current, committed
            logger.warning(
                "Request {} changed concurrently (attempt {}/{}); re-checking",
                request_id,
                attempt,
                self.max_attempts,
            )
        raise StorageError(f"Request {request_id} is busy; gave up after {self.max_attempts} attempts")

    async def _load_donor(self, donor_id: str) -> DonorProfile:
        user = await self.users.get(donor_id)
        if user is None:
            raise NotFoundError("Donor not found")
        if not isinstance(user, DonorProfile):
            raise ForbiddenError("Only donors can perform this action")
        return user

    async def _notify_nearby_donors(self, request: BloodRequest) -> None:
        matches = await find_donors(
            self.users, request.blood_type, request.hospital.location, self.notify_radius_km
        )
        for match in matches:
            self.dispatcher.notify(
                match.donor.id,
                "blood_request",
                "Blood Needed Nearby",
                f"{request.urgency.capitalize()} request for {request.blood_type} blood at "
                f"{request.hospital.name}, {match.distance} km away",
                NotificationData(
                    request_id=request.id,
                    patient_id=request.patient,
                    hospital_name=request.hospital.name,
                    blood_type=request.blood_type,
                    urgency=request.urgency,
                    distance=match.distance,
                ),
                priority=URGENCY_PRIORITY[request.urgency],
            )
        logger.info("Notified {} donors about request {}", len(matches), request.id)

    @staticmethod
    def _ensure_owner(request: BloodRequest, patient_id: str, action: str) -> None:
        if request.patient != patient_id:
            raise ForbiddenError(f"Not authorized to {action} this request")

    @staticmethod
    def _ensure_open(request: BloodRequest, message: str) -> None:
        if not request.is_open:
            raise InvalidStateError(message)

    @staticmethod
    def _event_payload(request: BloodRequest) -> Dict[str, Any]:
        return {
            "requestId": request.id,
            "status": request.status,
            "bloodType": request.blood_type,
            "urgency": request.urgency,
            "hospitalName": request.hospital.name,
        }
