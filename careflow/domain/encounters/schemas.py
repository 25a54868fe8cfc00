"""Encounter domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ...enums import BusinessType, EncounterStatus, EncounterType, SessionType


def _require_title(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("Title cannot be empty")
    return value[:255]


class EncounterCreate(BaseModel):
    """Schema for creating a new encounter"""

    patient_id: str
    title: str
    date: Optional[datetime] = None
    type: EncounterType = EncounterType.ROUTINE
    business_type: Optional[BusinessType] = None
    provider_name: Optional[str] = None
    provider_id: Optional[str] = None
    appointment_id: Optional[str] = None
    order_id: Optional[str] = None
    session_type: Optional[SessionType] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _require_title(v)


class EncounterUpdate(BaseModel):
    """Schema for updating an existing encounter. Business type is not patchable."""

    title: Optional[str] = None
    date: Optional[datetime] = None
    type: Optional[EncounterType] = None
    provider_name: Optional[str] = None
    provider_notes: Optional[str] = None
    status: Optional[EncounterStatus] = None
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        return _require_title(v)


class EncounterResponse(BaseModel):
    """Schema for encounter response"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    provider_id: Optional[str] = None
    title: str
    encounter_date: datetime
    status: EncounterStatus
    encounter_type: EncounterType
    business_type: BusinessType
    appointment_id: Optional[str] = None
    order_id: Optional[str] = None
    session_type: Optional[SessionType] = None
    provider_name: Optional[str] = None
    provider_notes: Optional[str] = None
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
