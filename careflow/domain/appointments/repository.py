"""Appointment repository - Database operations for appointments"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...enums import APPOINTMENT_SCHEDULED
from ...models import Appointment


class AppointmentRepository:
    """Repository for appointment database operations.

    Mutating methods only stage changes; the calling service owns the commit so
    the encounter write and the back-reference land in one transaction.
    """

    @staticmethod
    def get_appointment_by_id(db: Session, appointment_id: str) -> Optional[Appointment]:
        """Get an appointment with its provider"""
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.provider))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def get_scheduled_appointments(
        db: Session,
        appointment_type: Optional[str] = None,
        provider_id: Optional[str] = None,
    ) -> list[Appointment]:
        """Get scheduled appointments, latest first"""
        query = db.query(Appointment).filter(Appointment.status == APPOINTMENT_SCHEDULED)

        if appointment_type:
            query = query.filter(Appointment.type == appointment_type)

        if provider_id:
            query = query.filter(Appointment.provider_id == provider_id)

        return query.order_by(Appointment.datetime.desc()).all()

    @staticmethod
    def add_appointment(db: Session, **appointment_data) -> Appointment:
        """Stage a new appointment and flush to assign its id"""
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def set_encounter_reference(
        db: Session, appointment_id: str, encounter_id: Optional[str]
    ) -> bool:
        """Point an appointment at its encounter, or clear the pointer with None"""
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            return False
        appointment.encounter_id = encounter_id
        return True

    @staticmethod
    def clear_references_to(db: Session, encounter_id: str) -> int:
        """Clear every appointment back-reference to a deleted encounter"""
        return (
            db.query(Appointment)
            .filter(Appointment.encounter_id == encounter_id)
            .update({Appointment.encounter_id: None}, synchronize_session=False)
        )
