"""Encounter repository - Database operations and ownership checks for encounters"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...clock import Clock, utcnow
from ...enums import BusinessType, EncounterStatus
from ...errors import (
    AuthorizationError,
    InvalidStatusTransition,
    NotFoundOrDeniedError,
    ProtectedEncounterError,
    StoreError,
)
from ...models import Appointment
from ...models_encounter import Encounter
from ..access import AccessResolver
from ..appointments.repository import AppointmentRepository
from .lifecycle import appointment_blocks_completion, validate_status_transition
from .schemas import EncounterCreate, EncounterUpdate

logger = logging.getLogger(__name__)

NOT_FOUND_OR_DENIED = "Encounter not found or access denied"

# EncounterUpdate field -> column
UPDATABLE_FIELDS = {
    "title": "title",
    "date": "encounter_date",
    "type": "encounter_type",
    "provider_name": "provider_name",
    "provider_notes": "provider_notes",
    "status": "status",
    "finalized_at": "finalized_at",
    "finalized_by": "finalized_by",
}


class EncounterRepository:
    """The only component that reads and writes encounter rows"""

    def __init__(
        self,
        db: Session,
        access: Optional[AccessResolver] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.access = access or AccessResolver(db)
        self.clock = clock

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def verify_patient_access(self, actor_id: str, patient_id: str) -> bool:
        """Providers/admins reach any active patient; patients only their own active record"""
        if self.access.is_provider(actor_id):
            return self.access.patient_is_active(patient_id)
        return self.access.owns_patient(actor_id, patient_id)

    def verify_encounter_access(self, actor_id: str, encounter_id: str) -> bool:
        encounter = self.get(encounter_id)
        if not encounter:
            return False
        return self.verify_patient_access(actor_id, encounter.patient_id)

    # ------------------------------------------------------------------
    # Lookups (fail closed: a store error reads as "nothing found")
    # ------------------------------------------------------------------

    def get(self, encounter_id: str) -> Optional[Encounter]:
        try:
            return self.db.query(Encounter).filter(Encounter.id == encounter_id).first()
        except SQLAlchemyError as e:
            logger.error(f"❌ Error fetching encounter {encounter_id}: {e}")
            return None

    def find_by_order_id(self, order_id: str) -> Optional[Encounter]:
        try:
            return self.db.query(Encounter).filter(Encounter.order_id == order_id).first()
        except SQLAlchemyError as e:
            logger.error(f"❌ Error fetching encounter by order ID {order_id}: {e}")
            return None

    def find_by_appointment_id(
        self, appointment_id: str, business_type: Optional[BusinessType] = None
    ) -> Optional[Encounter]:
        try:
            query = self.db.query(Encounter).filter(Encounter.appointment_id == appointment_id)
            if business_type:
                query = query.filter(Encounter.business_type == BusinessType(business_type).value)
            return query.order_by(Encounter.created_at.asc()).first()
        except SQLAlchemyError as e:
            logger.error(f"❌ Error fetching encounter by appointment ID {appointment_id}: {e}")
            return None

    def list_by_order_id(self, order_id: str) -> list[Encounter]:
        try:
            return (
                self.db.query(Encounter)
                .filter(Encounter.order_id == order_id)
                .order_by(Encounter.encounter_date.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"❌ Error fetching encounters for order {order_id}: {e}")
            return []

    # ------------------------------------------------------------------
    # Ownership-checked CRUD
    # ------------------------------------------------------------------

    def create(self, actor_id: str, data: EncounterCreate) -> Encounter:
        """Create an encounter the actor is allowed to write for the patient"""
        if not self.verify_patient_access(actor_id, data.patient_id):
            logger.warning(f"⚠️ User {actor_id} denied encounter create for patient {data.patient_id}")
            raise AuthorizationError("Patient not found or access denied")

        # Appointment-linked encounters take the appointment's provider, never the actor's
        provider_id = data.provider_id
        if not provider_id and not data.appointment_id:
            provider = self.access.provider_for_user(actor_id)
            if provider:
                provider_id = provider.id

        business_type = data.business_type or BusinessType.MANUAL
        fields = {
            "patient_id": data.patient_id,
            "provider_id": provider_id,
            "title": data.title,
            "encounter_date": data.date or self.clock(),
            "encounter_type": data.type.value,
            "business_type": BusinessType(business_type).value,
            "appointment_id": data.appointment_id,
            "order_id": data.order_id,
            "session_type": data.session_type.value if data.session_type else None,
            "provider_name": data.provider_name,
        }

        try:
            encounter = self.add(**fields)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.find_conflicting(data.order_id, data.appointment_id, business_type)
            if existing:
                logger.info(f"ℹ️ Encounter already created concurrently: {existing.id}")
                return existing
            raise StoreError("Failed to create encounter")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create encounter: {e}")
            raise StoreError(f"Failed to create encounter: {e}") from e

        self.db.refresh(encounter)
        logger.info(f"✅ Encounter {encounter.id} created ({encounter.business_type})")
        return encounter

    def get_by_id(self, actor_id: str, encounter_id: str) -> Encounter:
        encounter = self.get(encounter_id)
        if not encounter or not self.verify_patient_access(actor_id, encounter.patient_id):
            raise NotFoundOrDeniedError(NOT_FOUND_OR_DENIED)
        return encounter

    def list_by_patient(
        self,
        actor_id: str,
        patient_id: str,
        business_type: Optional[BusinessType] = None,
    ) -> list[Encounter]:
        """Get a patient's encounters, newest first"""
        if not self.verify_patient_access(actor_id, patient_id):
            raise AuthorizationError("Patient not found or access denied")

        query = self.db.query(Encounter).filter(Encounter.patient_id == patient_id)
        if business_type:
            query = query.filter(Encounter.business_type == BusinessType(business_type).value)
        try:
            return query.order_by(Encounter.encounter_date.desc()).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch encounters: {e}") from e

    def update(self, actor_id: str, encounter_id: str, patch: EncounterUpdate) -> Encounter:
        """Partial update of provider-editable fields"""
        encounter = self.get_by_id(actor_id, encounter_id)

        updates = {}
        for field, value in patch.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            if hasattr(value, "value"):
                value = value.value
            updates[UPDATABLE_FIELDS[field]] = value

        if "status" in updates:
            self._check_status_change(encounter, updates["status"])

        if encounter.finalized_at and (
            "finalized_at" in updates or "finalized_by" in updates
        ):
            raise InvalidStatusTransition("Encounter is already finalized")

        for key, value in updates.items():
            setattr(encounter, key, value)
        encounter.updated_at = self.clock()

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to update encounter: {e}") from e

        self.db.refresh(encounter)
        return encounter

    def delete(self, actor_id: str, encounter_id: str) -> None:
        """Delete a manual encounter"""
        encounter = self.get_by_id(actor_id, encounter_id)

        if encounter.business_type != BusinessType.MANUAL.value:
            raise ProtectedEncounterError(
                f"Cannot delete a {encounter.business_type} encounter; unlink its flow instead"
            )

        try:
            self.remove(encounter)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Failed to delete encounter: {e}") from e

        logger.info(f"🗑️ Encounter {encounter_id} deleted by user {actor_id}")

    def _check_status_change(self, encounter: Encounter, new_status: str) -> None:
        if not validate_status_transition(encounter.status, new_status):
            raise InvalidStatusTransition(
                f"Cannot move encounter from {encounter.status} to {new_status}"
            )

        if new_status == EncounterStatus.COMPLETED.value and encounter.status != new_status:
            appointment = None
            if encounter.appointment_id:
                appointment = AppointmentRepository.get_appointment_by_id(
                    self.db, encounter.appointment_id
                )
            if appointment_blocks_completion(appointment, self.clock()):
                raise InvalidStatusTransition("Linked appointment has not taken place yet")

    # ------------------------------------------------------------------
    # Staging helpers for orchestration services (caller commits)
    # ------------------------------------------------------------------

    def add(self, **fields) -> Encounter:
        """Stage a new encounter and flush so constraint conflicts surface here"""
        now = self.clock()
        fields.setdefault("status", EncounterStatus.UPCOMING.value)
        fields.setdefault("business_type", BusinessType.MANUAL.value)
        fields.setdefault("encounter_date", now)
        encounter = Encounter(created_at=now, updated_at=now, **fields)
        self.db.add(encounter)
        self.db.flush()
        return encounter

    def claim_for_order(self, encounter: Encounter, order_id: str) -> bool:
        """
        Merge an order into an encounter, which becomes a sync order encounter.

        The write only lands while the stored row still has no order, so two
        links racing for the same appointment encounter cannot both succeed.
        Returns False when another order got there first.
        """
        claimed = (
            self.db.query(Encounter)
            .filter(Encounter.id == encounter.id, Encounter.order_id.is_(None))
            .update(
                {
                    Encounter.order_id: order_id,
                    Encounter.business_type: BusinessType.ORDER_BASED_SYNC.value,
                    Encounter.updated_at: self.clock(),
                },
                synchronize_session=False,
            )
        )
        if not claimed:
            return False
        self.db.refresh(encounter)
        return True

    def attach_appointment(
        self, encounter: Encounter, appointment: Appointment, provider_name: Optional[str] = None
    ) -> Encounter:
        """Bind an appointment to an encounter; the appointment's provider and time win"""
        encounter.appointment_id = appointment.id
        encounter.encounter_date = appointment.datetime
        if appointment.provider_id:
            encounter.provider_id = appointment.provider_id
        if provider_name:
            encounter.provider_name = provider_name
        encounter.updated_at = self.clock()
        AppointmentRepository.set_encounter_reference(self.db, appointment.id, encounter.id)
        self.db.flush()
        return encounter

    def remove(self, encounter: Encounter) -> None:
        """Stage deletion and drop any appointment pointer to it"""
        AppointmentRepository.clear_references_to(self.db, encounter.id)
        self.db.delete(encounter)
        self.db.flush()

    def find_conflicting(
        self,
        order_id: Optional[str],
        appointment_id: Optional[str],
        business_type: Optional[BusinessType],
    ) -> Optional[Encounter]:
        """Find the row that won a unique-constraint race"""
        if order_id:
            existing = self.find_by_order_id(order_id)
            if existing:
                return existing
        if appointment_id:
            return self.find_by_appointment_id(appointment_id, business_type)
        return None
