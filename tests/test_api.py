from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from careflow.auth import create_access_token, verify_token
from careflow.database import get_db
from careflow.main import app

from .conftest import OTHER_PATIENT_USER, PATIENT_ID, PATIENT_USER, PROVIDER_USER


def _headers(user_id, expires_delta=timedelta(hours=1), **claims):
    return {"Authorization": f"Bearer {create_access_token(user_id, expires_delta, **claims)}"}


@pytest.fixture
def client(seeded):
    app.dependency_overrides[get_db] = lambda: seeded
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class TestAuth:
    def test_health_is_public(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_missing_token(self, client):
        response = client.get(f"/encounters/patients/{PATIENT_ID}")

        assert response.status_code in (401, 403)

    def test_tampered_token(self, client):
        token = _headers(PROVIDER_USER)["Authorization"] + "x"

        response = client.get(f"/encounters/patients/{PATIENT_ID}", headers={"Authorization": token})

        assert response.status_code == 401

    def test_expired_token(self, client):
        response = client.get(
            f"/encounters/patients/{PATIENT_ID}",
            headers=_headers(PROVIDER_USER, expires_delta=timedelta(minutes=-2)),
        )

        assert response.status_code == 401
        assert response.headers["X-Token-Expired"] == "true"

    def test_wrong_audience(self, client):
        response = client.get(
            f"/encounters/patients/{PATIENT_ID}", headers=_headers(PROVIDER_USER, aud="other")
        )

        assert response.status_code == 401

    def test_verify_token_round_trip(self):
        token = _headers(PATIENT_USER)["Authorization"].split(" ", 1)[1]

        assert verify_token(token)["sub"] == PATIENT_USER


class TestEncounterRoutes:
    def test_create_and_fetch(self, client):
        created = client.post(
            "/encounters",
            json={"patient_id": PATIENT_ID, "title": "Annual check-in"},
            headers=_headers(PROVIDER_USER),
        )
        assert created.status_code == 200
        body = created.json()
        assert body["business_type"] == "manual"
        assert body["status"] == "upcoming"

        fetched = client.get(f"/encounters/{body['id']}", headers=_headers(PATIENT_USER))
        assert fetched.status_code == 200
        assert fetched.json()["title"] == "Annual check-in"

    def test_other_patient_gets_not_found(self, client):
        created = client.post(
            "/encounters",
            json={"patient_id": PATIENT_ID, "title": "Private"},
            headers=_headers(PROVIDER_USER),
        ).json()

        response = client.get(f"/encounters/{created['id']}", headers=_headers(OTHER_PATIENT_USER))

        assert response.status_code == 404

    def test_create_for_other_patient_is_forbidden(self, client):
        response = client.post(
            "/encounters",
            json={"patient_id": PATIENT_ID, "title": "Not mine"},
            headers=_headers(OTHER_PATIENT_USER),
        )

        assert response.status_code == 403

    def test_backwards_status_change_is_rejected(self, client):
        created = client.post(
            "/encounters",
            json={"patient_id": PATIENT_ID, "title": "Visit"},
            headers=_headers(PROVIDER_USER),
        ).json()
        client.patch(
            f"/encounters/{created['id']}", json={"status": "in_progress"}, headers=_headers(PROVIDER_USER)
        )

        response = client.patch(
            f"/encounters/{created['id']}", json={"status": "upcoming"}, headers=_headers(PROVIDER_USER)
        )

        assert response.status_code == 400

    def test_flow_encounter_cannot_be_deleted(self, client, make_order):
        order = make_order(order_type="TRT")
        flow = client.post(
            "/flows/orders",
            json={"order_id": order.id, "patient_id": PATIENT_ID, "order_type": "TRT"},
            headers=_headers(PROVIDER_USER),
        ).json()

        response = client.delete(f"/encounters/{flow['encounter_id']}", headers=_headers(PROVIDER_USER))

        assert response.status_code == 409

    def test_manual_encounter_is_deleted(self, client):
        created = client.post(
            "/encounters",
            json={"patient_id": PATIENT_ID, "title": "Scratch"},
            headers=_headers(PROVIDER_USER),
        ).json()

        response = client.delete(f"/encounters/{created['id']}", headers=_headers(PROVIDER_USER))

        assert response.status_code == 200
        assert client.get(f"/encounters/{created['id']}", headers=_headers(PROVIDER_USER)).status_code == 404


class TestFlowRoutes:
    def test_unknown_order_type(self, client, make_order):
        order = make_order(order_type="cosmetic")

        response = client.post(
            "/flows/orders",
            json={"order_id": order.id, "patient_id": PATIENT_ID, "order_type": "cosmetic"},
            headers=_headers(PROVIDER_USER),
        )

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["error"] == "Invalid order type"

    def test_sync_order_then_link_appointment(self, client, make_order, make_appointment):
        order = make_order(order_type="weight_loss")
        appointment = make_appointment()
        created = client.post(
            "/flows/orders",
            json={"order_id": order.id, "patient_id": PATIENT_ID, "order_type": "weight_loss"},
            headers=_headers(PATIENT_USER),
        ).json()

        linked = client.post(
            f"/flows/orders/{order.id}/link-appointment",
            json={"appointment_id": appointment.id},
            headers=_headers(PATIENT_USER),
        ).json()
        status = client.get(f"/flows/orders/{order.id}/status", headers=_headers(PATIENT_USER)).json()

        assert created["flow_type"] == "sync"
        assert linked["success"] is True
        assert linked["encounter_id"] == created["encounter_id"]
        assert status["has_appointment"] is True
        assert status["status"] == "in_progress"

    def test_flow_status_hidden_from_other_patients(self, client, make_order, make_appointment):
        order = make_order(order_type="weight_loss")
        appointment = make_appointment(appointment_type="coaching")
        client.post(
            "/flows/orders",
            json={"order_id": order.id, "patient_id": PATIENT_ID},
            headers=_headers(PROVIDER_USER),
        )
        client.post(
            "/flows/coaching",
            json={"patient_id": PATIENT_ID, "appointment_id": appointment.id},
            headers=_headers(PROVIDER_USER),
        )

        order_status = client.get(f"/flows/orders/{order.id}/status", headers=_headers(OTHER_PATIENT_USER))
        coaching_status = client.get(
            "/flows/coaching/status",
            params={"appointment_id": appointment.id},
            headers=_headers(OTHER_PATIENT_USER),
        )
        own_status = client.get(f"/flows/orders/{order.id}/status", headers=_headers(PATIENT_USER))

        assert order_status.status_code == 403
        assert "encounter_id" not in order_status.json()
        assert coaching_status.status_code == 403
        assert own_status.status_code == 200
        assert own_status.json()["has_encounter"] is True

    def test_acting_user_comes_from_token(self, client, make_order):
        order = make_order(order_type="medication")

        response = client.post(
            "/flows/orders",
            json={
                "order_id": order.id,
                "patient_id": PATIENT_ID,
                "order_type": "medication",
                "user_id": PROVIDER_USER,
            },
            headers=_headers(OTHER_PATIENT_USER),
        )

        assert response.json()["success"] is False

    def test_discovery_is_provider_only(self, client, make_order):
        make_order(items=["Testosterone Cypionate"])

        denied = client.get("/flows/orders/pending", headers=_headers(PATIENT_USER))
        allowed = client.get("/flows/orders/sync-pending", headers=_headers(PROVIDER_USER))

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert len(allowed.json()) == 1

    def test_coaching_flow(self, client, make_appointment):
        appointment = make_appointment(appointment_type="coaching", reason="Wellness plan")

        created = client.post(
            "/flows/coaching",
            json={"patient_id": PATIENT_ID, "appointment_id": appointment.id},
            headers=_headers(PROVIDER_USER),
        ).json()
        status = client.get(
            "/flows/coaching/status",
            params={"appointment_id": appointment.id},
            headers=_headers(PROVIDER_USER),
        ).json()

        assert created["success"] is True
        assert created["flow_type"] == "coaching"
        assert status["encounter_id"] == created["encounter_id"]
