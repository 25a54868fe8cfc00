"""
Pytest configuration for care-flow tests.
Shared fixtures: an in-memory database, a fixed clock and seeded users.
"""

import os

os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from careflow import models_encounter  # noqa: E402,F401
from careflow.database import Base  # noqa: E402
from careflow.domain.access import AccessResolver  # noqa: E402
from careflow.domain.encounters.repository import EncounterRepository  # noqa: E402
from careflow.domain.flows.factory import FlowFactory  # noqa: E402
from careflow.models import (  # noqa: E402
    Appointment,
    Order,
    OrderLineItem,
    Patient,
    Provider,
    UserRole,
)

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)

PROVIDER_USER = "user-provider-1"
ADMIN_USER = "user-admin-1"
PATIENT_USER = "user-patient-1"
OTHER_PATIENT_USER = "user-patient-2"

PROVIDER_ID = "provider-1"
PATIENT_ID = "patient-1"
OTHER_PATIENT_ID = "patient-2"
INACTIVE_PATIENT_ID = "patient-3"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def seeded(db):
    """Roles, one provider, two active patients and one inactive patient"""
    db.add_all(
        [
            UserRole(user_id=PROVIDER_USER, role="provider"),
            UserRole(user_id=ADMIN_USER, role="admin"),
            UserRole(user_id=PATIENT_USER, role="patient"),
            UserRole(user_id=OTHER_PATIENT_USER, role="patient"),
            Provider(id=PROVIDER_ID, user_id=PROVIDER_USER, first_name="Dana", last_name="Reyes"),
            Patient(id=PATIENT_ID, user_id=PATIENT_USER, first_name="Sam", last_name="Cole"),
            Patient(id=OTHER_PATIENT_ID, user_id=OTHER_PATIENT_USER, first_name="Ari", last_name="Lund"),
            Patient(id=INACTIVE_PATIENT_ID, user_id=None, first_name="Old", last_name="Record", is_active=False),
        ]
    )
    db.commit()
    return db


@pytest.fixture
def encounters(seeded, clock):
    return EncounterRepository(seeded, AccessResolver(seeded), clock)


@pytest.fixture
def factory(seeded, clock, encounters):
    return FlowFactory(seeded, clock=clock, encounters=encounters)


@pytest.fixture
def make_order(seeded):
    def _make(patient_id=PATIENT_ID, order_type=None, items=(), status="pending"):
        order = Order(patient_id=patient_id, order_type=order_type, status=status)
        order.line_items = [OrderLineItem(name=name) for name in items]
        seeded.add(order)
        seeded.commit()
        return order

    return _make


@pytest.fixture
def make_appointment(seeded):
    def _make(
        patient_id=PATIENT_ID,
        provider_id=PROVIDER_ID,
        when=NOW + timedelta(days=1),
        appointment_type="consultation",
        reason="Follow-up visit",
        status="scheduled",
    ):
        appointment = Appointment(
            patient_id=patient_id,
            provider_id=provider_id,
            datetime=when,
            duration=30,
            type=appointment_type,
            reason=reason,
            status=status,
        )
        seeded.add(appointment)
        seeded.commit()
        return appointment

    return _make
