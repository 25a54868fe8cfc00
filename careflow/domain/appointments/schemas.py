"""Appointment domain schemas"""

from datetime import datetime as DateTime
from typing import Optional

from pydantic import BaseModel


class AppointmentEncounterSync(BaseModel):
    """Fields kept in step between an appointment and its encounter"""

    datetime: Optional[DateTime] = None  # appointment
    reason: Optional[str] = None  # appointment
    title: Optional[str] = None  # encounter
    date: Optional[DateTime] = None  # encounter


class CreateAppointmentRequest(BaseModel):
    duration: Optional[int] = None
    type: Optional[str] = None


class SyncResult(BaseModel):
    success: bool
    error: Optional[str] = None


class EncounterLinkResult(BaseModel):
    success: bool
    encounter_id: Optional[str] = None
    appointment_id: Optional[str] = None
    already_exists: bool = False
    error: Optional[str] = None
