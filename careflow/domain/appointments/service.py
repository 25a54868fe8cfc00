"""Appointment service - Encounters created from bookings and bookings created from encounters"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...clock import Clock, utcnow
from ...config import APPOINTMENT_DEFAULT_DURATION_MINUTES
from ...enums import APPOINTMENT_SCHEDULED, BusinessType, EncounterType
from ...models_encounter import Encounter
from ..access import AccessResolver
from ..encounters.repository import EncounterRepository
from .repository import AppointmentRepository
from .schemas import AppointmentEncounterSync, EncounterLinkResult, SyncResult

logger = logging.getLogger(__name__)


def strip_title_prefix(title: str, prefix: str) -> str:
    return title[len(prefix):] if title.startswith(prefix) else title


class AppointmentEncounterService:
    """Keeps appointment-based encounters and their appointments in step"""

    title_prefix = "Appointment: "
    business_type = BusinessType.APPOINTMENT_BASED
    default_duration = APPOINTMENT_DEFAULT_DURATION_MINUTES
    default_appointment_type = "consultation"

    def __init__(
        self,
        db: Session,
        encounters: Optional[EncounterRepository] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.clock = clock
        self.encounters = encounters or EncounterRepository(db, AccessResolver(db), clock)
        self.access = self.encounters.access

    def find_by_appointment_id(self, appointment_id: str) -> Optional[Encounter]:
        return self.encounters.find_by_appointment_id(appointment_id, self.business_type)

    def create_encounter_from_appointment(
        self, actor_id: str, appointment_id: str, **extra_fields
    ) -> EncounterLinkResult:
        """Create (or return) the encounter for a booked appointment"""
        # One encounter per appointment, whatever flow created it
        existing = self.encounters.find_by_appointment_id(appointment_id)
        if existing:
            return EncounterLinkResult(
                success=True,
                encounter_id=existing.id,
                appointment_id=appointment_id,
                already_exists=True,
            )

        try:
            appointment = AppointmentRepository.get_appointment_by_id(self.db, appointment_id)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load appointment {appointment_id}: {e}")
            return EncounterLinkResult(success=False, error=str(e))
        if not appointment:
            return EncounterLinkResult(success=False, error="Appointment not found")

        if not appointment.provider_id or not appointment.provider:
            return EncounterLinkResult(
                success=False, error="Provider information not found for appointment"
            )

        if not self.encounters.verify_patient_access(actor_id, appointment.patient_id):
            return EncounterLinkResult(success=False, error="Patient not found or access denied")

        try:
            encounter = self.encounters.add(
                patient_id=appointment.patient_id,
                provider_id=appointment.provider_id,
                title=f"{self.title_prefix}{appointment.reason or 'Session'}",
                encounter_date=appointment.datetime,
                encounter_type=EncounterType.CONSULTATION.value,
                business_type=self.business_type.value,
                appointment_id=appointment.id,
                provider_name=appointment.provider.full_name,
                **extra_fields,
            )
            AppointmentRepository.set_encounter_reference(self.db, appointment.id, encounter.id)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.encounters.find_by_appointment_id(appointment_id)
            if existing:
                return EncounterLinkResult(
                    success=True,
                    encounter_id=existing.id,
                    appointment_id=appointment_id,
                    already_exists=True,
                )
            return EncounterLinkResult(success=False, error="Encounter link conflict")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create encounter for appointment {appointment_id}: {e}")
            return EncounterLinkResult(success=False, error=str(e))

        logger.info(f"✅ {self.business_type.value} encounter {encounter.id} created for appointment {appointment_id}")
        return EncounterLinkResult(
            success=True, encounter_id=encounter.id, appointment_id=appointment.id
        )

    def create_appointment_from_encounter(
        self,
        actor_id: str,
        encounter_id: str,
        duration: Optional[int] = None,
        appointment_type: Optional[str] = None,
    ) -> EncounterLinkResult:
        """Book an appointment for an encounter that was started without one"""
        if not self.access.is_provider(actor_id):
            return EncounterLinkResult(
                success=False, error="User not authorized to create appointments"
            )

        encounter = self.encounters.get(encounter_id)
        if not encounter or not self.encounters.verify_patient_access(actor_id, encounter.patient_id):
            return EncounterLinkResult(success=False, error="Encounter not found or access denied")

        if encounter.appointment_id:
            return EncounterLinkResult(
                success=True,
                encounter_id=encounter.id,
                appointment_id=encounter.appointment_id,
                already_exists=True,
            )

        if not encounter.provider_id:
            return EncounterLinkResult(success=False, error="Encounter has no provider to book with")

        try:
            appointment = AppointmentRepository.add_appointment(
                self.db,
                patient_id=encounter.patient_id,
                provider_id=encounter.provider_id,
                datetime=encounter.encounter_date,
                duration=duration or self.default_duration,
                type=appointment_type or self.default_appointment_type,
                reason=strip_title_prefix(encounter.title, self.title_prefix),
                status=APPOINTMENT_SCHEDULED,
                created_at=self.clock(),
                updated_at=self.clock(),
            )
            encounter.appointment_id = appointment.id
            encounter.updated_at = self.clock()
            appointment.encounter_id = encounter.id
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create appointment for encounter {encounter_id}: {e}")
            return EncounterLinkResult(success=False, error=f"Failed to create appointment: {e}")

        logger.info(f"✅ Appointment {appointment.id} created for encounter {encounter.id}")
        return EncounterLinkResult(
            success=True, encounter_id=encounter.id, appointment_id=appointment.id
        )

    def sync_appointment_and_encounter(
        self, appointment_id: str, encounter_id: str, updates: AppointmentEncounterSync
    ) -> SyncResult:
        """Propagate schedule and title edits to both rows in one commit"""
        try:
            appointment = AppointmentRepository.get_appointment_by_id(self.db, appointment_id)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load appointment {appointment_id}: {e}")
            return SyncResult(success=False, error=str(e))
        encounter = self.encounters.get(encounter_id)
        if not appointment or not encounter:
            return SyncResult(success=False, error="Appointment or encounter not found")

        if encounter.appointment_id != appointment.id:
            return SyncResult(success=False, error="Encounter is not linked to this appointment")

        try:
            if updates.datetime:
                appointment.datetime = updates.datetime
            if updates.reason:
                appointment.reason = updates.reason
            if updates.title:
                encounter.title = updates.title
            if updates.date:
                encounter.encounter_date = updates.date
            encounter.updated_at = self.clock()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            return SyncResult(success=False, error=f"Failed to sync appointment: {e}")

        return SyncResult(success=True)

    def list_encounters(self, patient_id: str) -> list[Encounter]:
        """Get this business type's encounters for a patient; empty on store failure"""
        try:
            return (
                self.db.query(Encounter)
                .filter(
                    Encounter.patient_id == patient_id,
                    Encounter.business_type == self.business_type.value,
                )
                .order_by(Encounter.encounter_date.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"❌ Error fetching {self.business_type.value} encounters: {e}")
            return []
