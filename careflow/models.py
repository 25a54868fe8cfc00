"""
Rows owned by other parts of the platform (auth, charting, ordering, scheduling).

The care-flow services only read these, except for the appointment
datetime/reason sync and the appointment → encounter back-reference.
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class UserRole(Base):
    __tablename__ = "user_roles"

    user_id = Column(String(36), primary_key=True)
    role = Column(String(50), nullable=False)  # patient, provider, admin


class Provider(Base):
    __tablename__ = "providers"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    user_id = Column(String(36), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    user_id = Column(String(36), index=True, nullable=True)  # Patient's own login, if any
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    # Registry code; null when the order type must be inferred from line items
    order_type = Column(String(50), nullable=True)
    status = Column(String(50), default="pending", nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    patient = relationship("Patient")
    line_items = relationship(
        "OrderLineItem", back_populates="order", cascade="all, delete-orphan"
    )


class OrderLineItem(Base):
    __tablename__ = "order_line_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    product_id = Column(String(36), nullable=True)

    order = relationship("Order", back_populates="line_items")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id"), nullable=True)
    datetime = Column(DateTime(timezone=True), nullable=False)
    duration = Column(Integer, default=30, nullable=False)  # minutes
    type = Column(String(50), default="consultation", nullable=False)  # consultation, coaching
    reason = Column(Text, nullable=True)
    # Status workflow: scheduled → completed | cancelled | no_show
    status = Column(String(50), default="scheduled", nullable=False, index=True)
    # Back-reference to the linked encounter. No FK: encounters already point here.
    encounter_id = Column(String(36), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    provider = relationship("Provider")
    patient = relationship("Patient")
