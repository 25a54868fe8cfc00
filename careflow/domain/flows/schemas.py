"""Flow domain schemas - Requests and results exchanged with UI and webhook callers"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ...enums import FlowProgress, FlowType, SessionType


class FlowCreationRequest(BaseModel):
    order_id: str
    patient_id: str
    order_type: Optional[str] = None  # resolved from the stored order when omitted
    user_id: Optional[str] = None  # acting user; discovery fills in the patient's own login
    provider_id: Optional[str] = None


class CoachingFlowRequest(BaseModel):
    patient_id: str
    user_id: Optional[str] = None  # acting user; discovery fills in the patient's own login
    appointment_id: Optional[str] = None
    provider_id: Optional[str] = None
    session_type: Optional[SessionType] = None
    title: Optional[str] = None
    date: Optional[datetime] = None


class FlowResult(BaseModel):
    success: bool
    flow_type: FlowType
    encounter_id: Optional[str] = None
    appointment_id: Optional[str] = None
    error: Optional[str] = None


class FlowStatus(BaseModel):
    """Derived by presence checks only"""

    flow_type: FlowType
    has_encounter: bool
    has_appointment: bool
    status: FlowProgress
    encounter_id: Optional[str] = None
    appointment_id: Optional[str] = None


class LinkAppointmentRequest(BaseModel):
    appointment_id: str
