from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Tuple

from pydantic import AfterValidator, BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_utc(value: datetime) -> datetime:
    # Mongo hands back naive datetimes unless the client is tz-aware.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]

BloodType = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]


def check_coordinates(value: Tuple[float, float]) -> Tuple[float, float]:
    longitude, latitude = value
    if not -180.0 <= longitude <= 180.0:
        raise ValueError("longitude must be within [-180, 180]")
    if not -90.0 <= latitude <= 90.0:
        raise ValueError("latitude must be within [-90, 90]")
    return value


Coordinates = Annotated[Tuple[float, float], AfterValidator(check_coordinates)]


class MongoBaseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


class GeoPoint(MongoBaseModel):
    """GeoJSON point. Coordinates are ``[longitude, latitude]``."""

    type: Literal["Point"] = "Point"
    coordinates: Coordinates

    @field_serializer("coordinates")
    def dump_coordinates(self, value: Tuple[float, float]) -> list[float]:
        # BSON arrays, not tuples
        return list(value)

    @classmethod
    def from_lat_lng(cls, latitude: float, longitude: float) -> "GeoPoint":
        return cls(coordinates=(longitude, latitude))

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class Address(MongoBaseModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
