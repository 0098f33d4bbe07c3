from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal

from pydantic import EmailStr, Field

from .base import Address, BloodType, GeoPoint, MongoBaseModel, UtcDatetime, utcnow


Urgency = Literal["low", "medium", "high", "critical"]
RequestStatus = Literal["active", "matched", "completed", "cancelled"]
ResponseStatus = Literal["pending", "accepted", "declined", "completed"]
DonorDecision = Literal["accepted", "declined"]

OPEN_STATUSES: tuple[RequestStatus, ...] = ("active", "matched")
URGENCY_RANK: Dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}


class HospitalContact(MongoBaseModel):
    phone: str | None = None
    email: EmailStr | None = None


class Hospital(MongoBaseModel):
    name: str = Field(min_length=1)
    address: Address | None = None
    location: GeoPoint
    contact: HospitalContact | None = None


class MatchedDonor(MongoBaseModel):
    donor: str
    status: ResponseStatus = "pending"
    matched_at: UtcDatetime = Field(default_factory=utcnow)
    responded_at: UtcDatetime | None = None
    notes: str | None = Field(default=None, max_length=200)


class BloodRequestCreate(MongoBaseModel):
    blood_type: BloodType
    urgency: Urgency = "medium"
    hospital: Hospital
    required_units: int = Field(default=1, ge=1)
    description: str | None = Field(default=None, max_length=500)
    medical_notes: str | None = Field(default=None, max_length=1000)


class BloodRequestUpdate(MongoBaseModel):
    urgency: Urgency | None = None
    description: str | None = Field(default=None, max_length=500)
    medical_notes: str | None = Field(default=None, max_length=1000)


class DonorResponseIn(MongoBaseModel):
    status: DonorDecision
    notes: str | None = Field(default=None, max_length=200)


class CancelRequestIn(MongoBaseModel):
    reason: str | None = Field(default=None, max_length=200)


class BloodRequest(BloodRequestCreate):
    id: str | None = Field(default=None, alias="_id")
    patient: str
    status: RequestStatus = "active"
    matched_donors: List[MatchedDonor] = Field(default_factory=list)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)
    completed_at: UtcDatetime | None = None
    completed_by: str | None = None
    cancelled_at: UtcDatetime | None = None
    cancellation_reason: str | None = None
    version: int = 0

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def accepted_donors(self) -> List[MatchedDonor]:
        return [entry for entry in self.matched_donors if entry.status == "accepted"]

    def upsert_response(
        self,
        donor_id: str,
        status: ResponseStatus,
        notes: str | None,
        at: datetime,
    ) -> MatchedDonor:
        """Record a donor's response keyed by donor id, keeping first-response order."""
        entries: Dict[str, MatchedDonor] = {entry.donor: entry for entry in self.matched_donors}
        entry = entries.get(donor_id)
        if entry is None:
            entry = MatchedDonor(donor=donor_id, matched_at=at)
            entries[donor_id] = entry
        entry.status = status
        entry.responded_at = at
        entry.notes = notes
        self.matched_donors = list(entries.values())
        return entry

    def mutable_fields(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id", "version", "patient", "created_at"})


class RequestList(MongoBaseModel):
    requests: List[BloodRequest]


class RequestStatistics(MongoBaseModel):
    total_requests: int
    active_requests: int
    status_breakdown: Dict[str, int]
    urgency_breakdown: Dict[str, int]
