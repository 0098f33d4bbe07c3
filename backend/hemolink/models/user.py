from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import EmailStr, Field, TypeAdapter

from .base import Address, BloodType, Coordinates, GeoPoint, MongoBaseModel, UtcDatetime


UserRole = Literal["donor", "patient", "admin"]


class UserBase(MongoBaseModel):
    id: str = Field(alias="_id")
    user_type: UserRole
    name: str
    email: EmailStr
    phone: str
    address: Address | None = None
    created_at: UtcDatetime | None = None


class DonorProfile(UserBase):
    user_type: Literal["donor"] = "donor"
    blood_type: BloodType
    location: GeoPoint
    is_verified: bool = False
    is_available: bool = True
    last_donation_date: UtcDatetime | None = None


class PatientProfile(UserBase):
    user_type: Literal["patient"] = "patient"
    blood_type: BloodType | None = None


class AdminProfile(UserBase):
    user_type: Literal["admin"] = "admin"


UserProfile = Annotated[
    Union[DonorProfile, PatientProfile, AdminProfile],
    Field(discriminator="user_type"),
]
user_adapter: TypeAdapter[UserProfile] = TypeAdapter(UserProfile)


class AvailabilityUpdate(MongoBaseModel):
    is_available: bool | None = None
    last_donation_date: UtcDatetime | None = None


class LocationUpdate(MongoBaseModel):
    coordinates: Coordinates
    address: Address | None = None

    def to_point(self) -> GeoPoint:
        return GeoPoint(coordinates=self.coordinates)


class DonorStatistics(MongoBaseModel):
    total_donations: int
    last_donation: UtcDatetime | None = None
    member_since: UtcDatetime | None = None
    is_eligible: bool
    next_eligible_date: UtcDatetime | None = None


class TokenPayload(MongoBaseModel):
    sub: str
    exp: int
    role: UserRole | None = None
