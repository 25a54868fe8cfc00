from datetime import timedelta
from unittest import mock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from careflow.domain.encounters.schemas import EncounterCreate, EncounterUpdate
from careflow.enums import BusinessType, EncounterStatus
from careflow.errors import (
    AuthorizationError,
    InvalidStatusTransition,
    NotFoundError,
    NotFoundOrDeniedError,
    ProtectedEncounterError,
)
from careflow.models import Appointment
from careflow.models_encounter import Encounter

from .conftest import (
    INACTIVE_PATIENT_ID,
    NOW,
    OTHER_PATIENT_ID,
    OTHER_PATIENT_USER,
    PATIENT_ID,
    PATIENT_USER,
    PROVIDER_ID,
    PROVIDER_USER,
)


def _create(encounters, actor=PROVIDER_USER, patient_id=PATIENT_ID, **fields):
    data = EncounterCreate(patient_id=patient_id, title=fields.pop("title", "Check-in"), **fields)
    return encounters.create(actor, data)


class TestCreate:
    def test_provider_creates_manual_encounter(self, encounters):
        encounter = _create(encounters)

        assert encounter.business_type == BusinessType.MANUAL.value
        assert encounter.status == EncounterStatus.UPCOMING.value
        assert encounter.provider_id == PROVIDER_ID

    def test_patient_creates_encounter_for_own_record(self, encounters):
        encounter = _create(encounters, actor=PATIENT_USER)

        assert encounter.patient_id == PATIENT_ID
        assert encounter.provider_id is None

    def test_patient_cannot_write_another_patients_record(self, encounters, seeded):
        with pytest.raises(AuthorizationError):
            _create(encounters, actor=PATIENT_USER, patient_id=OTHER_PATIENT_ID)

        assert seeded.query(Encounter).count() == 0

    def test_inactive_patient_is_denied_even_to_providers(self, encounters):
        with pytest.raises(AuthorizationError):
            _create(encounters, patient_id=INACTIVE_PATIENT_ID)

    def test_unknown_actor_is_denied(self, encounters):
        with pytest.raises(AuthorizationError):
            _create(encounters, actor="nobody")

    def test_blank_title_is_rejected(self):
        with pytest.raises(ValueError):
            EncounterCreate(patient_id=PATIENT_ID, title="   ")

    def test_duplicate_order_encounter_returns_existing_row(self, encounters, make_order, seeded):
        order = make_order(order_type="medication")
        first = _create(encounters, order_id=order.id, business_type=BusinessType.ORDER_BASED_ASYNC)
        second = _create(encounters, order_id=order.id, business_type=BusinessType.ORDER_BASED_ASYNC)

        assert second.id == first.id
        assert seeded.query(Encounter).filter(Encounter.order_id == order.id).count() == 1


class TestRead:
    def test_get_by_id_hides_other_patients_encounters(self, encounters):
        encounter = _create(encounters)

        with pytest.raises(NotFoundOrDeniedError) as exc_info:
            encounters.get_by_id(OTHER_PATIENT_USER, encounter.id)

        assert isinstance(exc_info.value, NotFoundError)
        assert isinstance(exc_info.value, AuthorizationError)

    def test_get_by_id_missing(self, encounters):
        with pytest.raises(NotFoundOrDeniedError):
            encounters.get_by_id(PROVIDER_USER, "missing")

    def test_list_by_patient_filters_business_type(self, encounters):
        _create(encounters, title="Manual")
        _create(encounters, title="Coaching", business_type=BusinessType.COACHING)

        everything = encounters.list_by_patient(PROVIDER_USER, PATIENT_ID)
        coaching = encounters.list_by_patient(PROVIDER_USER, PATIENT_ID, BusinessType.COACHING)

        assert len(everything) == 2
        assert [e.title for e in coaching] == ["Coaching"]

    def test_list_by_patient_denied(self, encounters):
        with pytest.raises(AuthorizationError):
            encounters.list_by_patient(OTHER_PATIENT_USER, PATIENT_ID)

    def test_lookups_fail_closed_on_store_error(self, encounters, seeded):
        with mock.patch.object(seeded, "query", side_effect=SQLAlchemyError("connection lost")):
            assert encounters.find_by_order_id("order-1") is None
            assert encounters.find_by_appointment_id("appointment-1") is None
            assert encounters.list_by_order_id("order-1") == []
            assert encounters.verify_patient_access(PROVIDER_USER, PATIENT_ID) is False
            assert encounters.verify_encounter_access(PROVIDER_USER, "encounter-1") is False


class TestUpdate:
    def test_status_moves_forward(self, encounters):
        encounter = _create(encounters)

        encounters.update(PROVIDER_USER, encounter.id, EncounterUpdate(status=EncounterStatus.IN_PROGRESS))
        updated = encounters.update(
            PROVIDER_USER, encounter.id, EncounterUpdate(status=EncounterStatus.COMPLETED)
        )

        assert updated.status == EncounterStatus.COMPLETED.value

    def test_status_never_moves_backwards(self, encounters):
        encounter = _create(encounters)
        encounters.update(PROVIDER_USER, encounter.id, EncounterUpdate(status=EncounterStatus.IN_PROGRESS))

        with pytest.raises(InvalidStatusTransition):
            encounters.update(PROVIDER_USER, encounter.id, EncounterUpdate(status=EncounterStatus.UPCOMING))

    def test_completion_waits_for_scheduled_appointment(self, encounters, make_appointment, seeded):
        appointment = make_appointment(when=NOW + timedelta(hours=2))
        encounter = _create(encounters, appointment_id=appointment.id)

        with pytest.raises(InvalidStatusTransition):
            encounters.update(PROVIDER_USER, encounter.id, EncounterUpdate(status=EncounterStatus.COMPLETED))

        seeded.query(Appointment).filter(Appointment.id == appointment.id).update({"status": "completed"})
        seeded.commit()

        updated = encounters.update(
            PROVIDER_USER, encounter.id, EncounterUpdate(status=EncounterStatus.COMPLETED)
        )
        assert updated.status == EncounterStatus.COMPLETED.value

    def test_past_scheduled_appointment_does_not_block(self, encounters, make_appointment):
        appointment = make_appointment(when=NOW - timedelta(hours=1))
        encounter = _create(encounters, appointment_id=appointment.id)

        updated = encounters.update(
            PROVIDER_USER, encounter.id, EncounterUpdate(status=EncounterStatus.COMPLETED)
        )
        assert updated.status == EncounterStatus.COMPLETED.value

    def test_finalization_is_write_once(self, encounters):
        encounter = _create(encounters)
        encounters.update(
            PROVIDER_USER,
            encounter.id,
            EncounterUpdate(finalized_at=NOW, finalized_by=PROVIDER_USER),
        )

        with pytest.raises(InvalidStatusTransition):
            encounters.update(PROVIDER_USER, encounter.id, EncounterUpdate(finalized_by="someone-else"))

    def test_partial_update_keeps_other_fields(self, encounters):
        encounter = _create(encounters, title="Original", provider_name="Dr. Reyes")

        updated = encounters.update(PROVIDER_USER, encounter.id, EncounterUpdate(provider_notes="Stable"))

        assert updated.title == "Original"
        assert updated.provider_name == "Dr. Reyes"
        assert updated.provider_notes == "Stable"

    def test_business_type_is_not_patchable(self):
        assert "business_type" not in EncounterUpdate.model_fields
        patch = EncounterUpdate(business_type="coaching")
        assert "business_type" not in patch.model_dump(exclude_unset=True)


class TestDelete:
    def test_manual_encounter_is_deleted(self, encounters, seeded):
        encounter = _create(encounters)

        encounters.delete(PROVIDER_USER, encounter.id)

        assert seeded.query(Encounter).count() == 0

    def test_delete_clears_appointment_back_reference(self, encounters, make_appointment, seeded):
        appointment = make_appointment()
        encounter = _create(encounters, appointment_id=appointment.id)
        seeded.query(Appointment).filter(Appointment.id == appointment.id).update(
            {"encounter_id": encounter.id}
        )
        seeded.commit()

        encounters.delete(PROVIDER_USER, encounter.id)

        assert seeded.get(Appointment, appointment.id).encounter_id is None

    def test_flow_encounters_are_protected(self, encounters, make_order, seeded):
        order = make_order(order_type="TRT")
        encounter = _create(encounters, order_id=order.id, business_type=BusinessType.ORDER_BASED_SYNC)

        with pytest.raises(ProtectedEncounterError):
            encounters.delete(PROVIDER_USER, encounter.id)

        assert seeded.query(Encounter).count() == 1
