from __future__ import annotations

from repairdesk.photos import photo_data_url


def _sign_up_and_in(client, *, email: str, name: str, address: str = "") -> str:
    created = client.post(
        "/api/v1/auth/sign-up",
        json={"email": email, "password": "secret-pass", "name": name, "phone": "555-0199", "address": address},
    )
    assert created.status_code == 201
    assert created.json()["data"]["role"] == "client"
    signed_in = client.post("/api/v1/auth/sign-in", json={"email": email, "password": "secret-pass"})
    assert signed_in.status_code == 200
    return signed_in.json()["data"]["access_token"]


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_request_lifecycle_over_http(client, collaborator_session, as_user):
    token = _sign_up_and_in(client, email="dana@example.com", name="Dana", address="7 Pine Road")
    collaborator = as_user(collaborator_session)
    photo = photo_data_url(content_type="image/png", content=b"\x89PNG\r\n\x1a\n")

    created = client.post(
        "/api/v1/requests",
        headers=_auth(token),
        json={"description": "Water heater makes noise", "priority": "low", "photos": [photo]},
    )
    assert created.status_code == 201
    request_id = created.json()["data"]["request_id"]
    assert created.json()["data"]["status"] == "pending"

    quoted = collaborator.post(
        f"/api/v1/requests/{request_id}/quote",
        json={
            "price": 150,
            "labor_description": "Flush tank",
            "materials_list": "valve",
            "suggested_execution_date": "2026-11-01T10:00:00",
        },
    )
    assert quoted.status_code == 201
    assert quoted.json()["data"]["quote"]["price"] == "150.00"
    assert quoted.json()["data"]["request"]["status"] == "responded"

    details = client.get(f"/api/v1/requests/{request_id}", headers=_auth(token))
    assert details.status_code == 200
    assert details.json()["data"]["quote"]["labor_description"] == "Flush tank"

    accepted = client.post(f"/api/v1/requests/{request_id}/accept", headers=_auth(token))
    assert accepted.status_code == 200
    assert accepted.json()["data"]["status"] == "closed_by_client"

    scheduled = collaborator.post(
        f"/api/v1/requests/{request_id}/schedule",
        json={"execution_datetime": "2026-11-02T09:00:00"},
    )
    assert scheduled.status_code == 200
    agenda_item_id = scheduled.json()["data"]["agenda_item"]["agenda_item_id"]
    assert scheduled.json()["data"]["agenda_item"]["client_address"] == "7 Pine Road"

    rescheduled = collaborator.post(
        f"/api/v1/requests/{request_id}/reschedule",
        json={"execution_datetime": "2026-11-04T09:00:00"},
    )
    assert rescheduled.status_code == 200
    assert rescheduled.json()["data"]["request"]["execution_date"] == "2026-11-04T09:00:00+00:00"

    agenda = collaborator.get("/api/v1/agenda", params={"day": "2026-11-04"})
    assert agenda.status_code == 200
    assert agenda.json()["data"]["total"] == 1

    completed = collaborator.post(f"/api/v1/agenda/{agenda_item_id}/complete")
    assert completed.status_code == 200
    assert completed.json()["data"]["request"]["status"] == "completed"

    listed = client.get("/api/v1/requests", headers=_auth(token), params={"status": "completed"})
    assert [x["request_id"] for x in listed.json()["data"]["items"]] == [request_id]


def test_late_quote_returns_conflict(client_session, collaborator_session, other_collaborator_session, as_user):
    request_id = as_user(client_session).post(
        "/api/v1/requests",
        json={"description": "Door hinge squeaks"},
    ).json()["data"]["request_id"]
    payload = {
        "price": "35.00",
        "labor_description": "Oil hinge",
        "suggested_execution_date": "2026-11-01T10:00:00",
    }
    first = as_user(collaborator_session).post(f"/api/v1/requests/{request_id}/quote", json=payload)
    assert first.status_code == 201

    late = as_user(other_collaborator_session).post(f"/api/v1/requests/{request_id}/quote", json=payload)
    assert late.status_code == 409
    body = late.json()
    assert body["success"] is False
    assert body["error"]["code"] == "REQUEST_ALREADY_CLAIMED"
    assert body["error"]["class"] == "business_rule"


def test_wrong_actor_gets_access_restricted(client_session, collaborator_session, as_user):
    request_id = as_user(client_session).post(
        "/api/v1/requests",
        json={"description": "Paint wall"},
    ).json()["data"]["request_id"]

    resp = as_user(collaborator_session).post(f"/api/v1/requests/{request_id}/accept")
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "ACCESS_RESTRICTED"

    resp = as_user(collaborator_session).post("/api/v1/requests", json={"description": "not allowed"})
    assert resp.status_code == 403


def test_requests_require_bearer_token(client):
    resp = client.get("/api/v1/requests")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_UNAUTHORIZED"

    resp = client.get("/api/v1/requests", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_invalid_payload_is_a_validation_error(client_session, as_user):
    resp = as_user(client_session).post("/api/v1/requests", json={"description": "x", "priority": "urgent"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "REQ_VALIDATION_FAILED"
    assert "priority" in resp.json()["error"]["message"]


def test_unknown_request_is_not_found(admin_session, as_user):
    resp = as_user(admin_session).get("/api/v1/requests/9999")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "REQUEST_NOT_FOUND"


def test_photo_rejection_over_http(client_session, as_user):
    resp = as_user(client_session).post(
        "/api/v1/requests",
        json={"description": "Photo test", "photos": ["data:image/gif;base64,R0lGODlh"]},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "PHOTO_TYPE_INVALID"
