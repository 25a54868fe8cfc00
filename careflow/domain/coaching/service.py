"""
Coaching service - Coaching encounters, with or without a booked appointment

Appointment-based: a coaching appointment exists and its encounter is
found-or-created from it. Ad-hoc: a provider starts the encounter directly and
may book the appointment afterwards, linked by the same back-reference.
No order is ever involved.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ...config import COACHING_DEFAULT_DURATION_MINUTES
from ...enums import BusinessType, EncounterType, SessionType
from ...models import Appointment
from ..appointments.repository import AppointmentRepository
from ..appointments.schemas import AppointmentEncounterSync, EncounterLinkResult, SyncResult
from ..appointments.service import AppointmentEncounterService
from ..orders.classification import infer_session_type

logger = logging.getLogger(__name__)

COACHING_APPOINTMENT_TYPE = "coaching"


class CoachingFlowService(AppointmentEncounterService):
    """Service layer for coaching sessions"""

    title_prefix = "Coaching Session: "
    business_type = BusinessType.COACHING
    default_duration = COACHING_DEFAULT_DURATION_MINUTES
    default_appointment_type = COACHING_APPOINTMENT_TYPE

    def create_from_appointment(
        self,
        actor_id: str,
        appointment_id: str,
        session_type: Optional[SessionType] = None,
    ) -> EncounterLinkResult:
        """Create (or return) the coaching encounter for a booked session"""
        if session_type is None:
            try:
                appointment = AppointmentRepository.get_appointment_by_id(self.db, appointment_id)
            except SQLAlchemyError as e:
                logger.error(f"❌ Failed to load coaching appointment {appointment_id}: {e}")
                return EncounterLinkResult(success=False, error=str(e))
            session_type = infer_session_type(appointment.reason if appointment else None)

        return self.create_encounter_from_appointment(
            actor_id, appointment_id, session_type=SessionType(session_type).value
        )

    def create_ad_hoc(
        self,
        actor_id: str,
        patient_id: str,
        title: Optional[str] = None,
        date: Optional[datetime] = None,
        encounter_type: EncounterType = EncounterType.CONSULTATION,
        session_type: Optional[SessionType] = None,
    ) -> EncounterLinkResult:
        """Provider starts a coaching encounter with no appointment behind it"""
        if not self.access.is_provider(actor_id):
            return EncounterLinkResult(
                success=False, error="User not authorized to create coaching encounters"
            )

        provider = self.access.provider_for_user(actor_id)
        if not provider:
            return EncounterLinkResult(success=False, error="Provider information not found")

        if not self.encounters.verify_patient_access(actor_id, patient_id):
            return EncounterLinkResult(success=False, error="Patient not found or access denied")

        title = (title or "").strip() or "Coaching Session"
        session_type = SessionType(session_type) if session_type else infer_session_type(title)

        try:
            encounter = self.encounters.add(
                patient_id=patient_id,
                provider_id=provider.id,
                title=title,
                encounter_date=date or self.clock(),
                encounter_type=EncounterType(encounter_type).value,
                business_type=BusinessType.COACHING.value,
                session_type=session_type.value,
                provider_name=provider.full_name,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create ad-hoc coaching encounter: {e}")
            return EncounterLinkResult(success=False, error=str(e))

        logger.info(f"✅ Ad-hoc coaching encounter {encounter.id} created by provider {provider.id}")
        return EncounterLinkResult(success=True, encounter_id=encounter.id)

    def create_appointment_for_encounter(
        self, actor_id: str, encounter_id: str, duration: Optional[int] = None
    ) -> EncounterLinkResult:
        return self.create_appointment_from_encounter(actor_id, encounter_id, duration)

    def get_coaching_appointments(self, provider_id: Optional[str] = None) -> list[Appointment]:
        return AppointmentRepository.get_scheduled_appointments(
            self.db, COACHING_APPOINTMENT_TYPE, provider_id
        )

    def sync_session(
        self, appointment_id: str, encounter_id: str, updates: AppointmentEncounterSync
    ) -> SyncResult:
        return self.sync_appointment_and_encounter(appointment_id, encounter_id, updates)
