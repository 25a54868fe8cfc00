"""
Encounter model - the clinical record row binding a patient, a provider and
optionally an order and/or an appointment
"""

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_public_id


class Encounter(Base):
    __tablename__ = "encounters"
    __table_args__ = (
        # At most one encounter per order, and per appointment within a business type.
        # Concurrent check-then-insert races surface as IntegrityError on these.
        UniqueConstraint("order_id", name="uq_encounters_order_id"),
        UniqueConstraint(
            "appointment_id", "business_type", name="uq_encounters_appointment_business_type"
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_public_id)

    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id"), nullable=True)

    title = Column(String(255), nullable=False)
    encounter_date = Column(DateTime(timezone=True), nullable=False)

    # Status workflow: upcoming → in_progress → completed (monotonic)
    status = Column(String(20), default="upcoming", nullable=False, index=True)
    encounter_type = Column(String(20), default="routine", nullable=False)
    # manual, appointment_based, order_based_async, order_based_sync, coaching
    business_type = Column(String(30), nullable=False, index=True)

    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True)

    # life_coaching, wellness_coaching, career_coaching (coaching encounters only)
    session_type = Column(String(30), nullable=True)

    provider_name = Column(String(255), nullable=True)
    provider_notes = Column(Text, nullable=True)

    # Note signing, set once
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    finalized_by = Column(String(36), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    appointment = relationship("Appointment", foreign_keys=[appointment_id])
    order = relationship("Order", foreign_keys=[order_id])
