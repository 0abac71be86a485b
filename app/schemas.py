"""Pydantic schemas shared by the HTTP API and the datastore."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(CamelModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class ReadingSubmission(CamelModel):
    """Body of a reading posted by a device.

    Unknown fields are ignored, so a client-supplied ``emergencyStatus`` never
    reaches storage.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    device_id: str = Field(..., min_length=1)
    timestamp: Optional[datetime] = None
    heart_rate: int = Field(..., ge=0, le=250, strict=True)
    spo2: int = Field(..., ge=0, le=100, alias="spO2", strict=True)
    location: Location
    battery_level: Optional[int] = Field(default=None, ge=0, le=100, strict=True)


class Reading(CamelModel):
    """A stored reading. Immutable apart from the computed emergency flag."""

    reading_id: str = Field(default_factory=lambda: str(uuid4()))
    device_id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    heart_rate: int = Field(..., ge=0, le=250)
    spo2: int = Field(..., ge=0, le=100, alias="spO2")
    location: Location
    battery_level: Optional[int] = Field(default=None, ge=0, le=100)
    emergency_status: bool = False

    @classmethod
    def from_submission(cls, submission: ReadingSubmission) -> "Reading":
        timestamp = submission.timestamp or _utcnow()
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            device_id=submission.device_id,
            timestamp=timestamp.astimezone(timezone.utc),
            heart_rate=submission.heart_rate,
            spo2=submission.spo2,
            location=submission.location.model_copy(),
            battery_level=submission.battery_level,
        )


class EmergencyContact(CamelModel):
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    relationship: Optional[str] = None


class MedicalInfo(CamelModel):
    blood_group: Optional[str] = None
    allergies: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    conditions: List[str] = Field(default_factory=list)


class UserProfile(CamelModel):
    """Device owner and the people to alert on their behalf."""

    device_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    emergency_contacts: List[EmergencyContact] = Field(default_factory=list)
    medical_info: MedicalInfo = Field(default_factory=MedicalInfo)


class IngestResponse(CamelModel):
    """Immediate acknowledgement returned to the device."""

    accepted: bool
    emergency: bool
    reading_id: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
