import pytest

FAMILY_ID = "FAM-1"
CAREGIVER_ID = "CARE-1"


@pytest.fixture
def headers(auth_headers):
    return {
        "family": auth_headers(FAMILY_ID, "family"),
        "care": auth_headers(CAREGIVER_ID, "care"),
        "admin": auth_headers("ADM-1", "admin"),
    }


@pytest.fixture
def people(make_family, make_caregiver):
    make_family(FAMILY_ID)
    make_caregiver(CAREGIVER_ID, account_id="acct_care_1", account_active=True)


def booking_body(**overrides):
    body = {
        "caregiver_id": CAREGIVER_ID,
        "elder_name": "Grandma Lee",
        "location": "Taipei",
        "skills": ["medical_care"],
        "schedule": {"date": "2026-11-02", "start_time": "09:00", "duration_hours": 3},
        "hourly_rate": 25,
    }
    body.update(overrides)
    return body


def job_body():
    return {
        "elder_name": "Grandpa Chen",
        "date": "2026-11-20",
        "start_time": "09:00",
        "duration_hours": 4,
        "salary": 100,
        "location": "Taipei",
        "skill_required": ["medical_care"],
    }


def test_root(client):
    assert client.get("/").json()["version"] == "1.0.0"


def test_missing_token_is_unauthenticated(client):
    response = client.get("/api/bookings")
    assert response.status_code == 401
    assert response.json() == {"success": False, "kind": "unauthenticated", "message": "Access token not found"}


def test_invalid_token_is_unauthenticated(client):
    response = client.get("/api/bookings", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["kind"] == "unauthenticated"


def test_request_validation_envelope(client, headers, people):
    body = booking_body()
    del body["elder_name"]
    response = client.post("/api/bookings", json=body, headers=headers["family"])
    assert response.status_code == 400
    assert response.json()["kind"] == "validation"
    assert response.json()["field"] == "elder_name"


def test_service_validation_names_field(client, headers, people):
    response = client.post("/api/bookings", json=booking_body(hourly_rate=-1), headers=headers["family"])
    assert response.status_code == 400
    assert response.json()["field"] == "hourly_rate"


def test_booking_flow_over_http(client, headers, people):
    created = client.post("/api/bookings", json=booking_body(), headers=headers["family"])
    assert created.status_code == 201
    booking = created.json()
    assert booking["total_amount"] == 75
    assert booking["end_time"] == "12:00"

    forbidden = client.patch(f"/api/bookings/{booking['id']}/accept", headers=headers["family"])
    assert forbidden.status_code == 403
    assert forbidden.json()["kind"] == "forbidden"

    accepted = client.patch(f"/api/bookings/{booking['id']}/accept", headers=headers["care"])
    assert accepted.json()["status"] == "ACCEPTED"

    conflict = client.patch(f"/api/bookings/{booking['id']}/reject", headers=headers["care"])
    assert conflict.status_code == 409
    assert conflict.json()["kind"] == "conflict"

    notes = client.patch(
        f"/api/bookings/{booking['id']}/notes", json={"notes": "Bring the wheelchair"}, headers=headers["family"]
    )
    assert notes.json()["notes"] == "Bring the wheelchair"

    listed = client.get("/api/bookings", params={"status": "ACCEPTED"}, headers=headers["care"]).json()
    assert listed["total"] == 1
    assert listed["current_page"] == 1


def test_reject_accepts_optional_reason(client, headers, people):
    booking = client.post("/api/bookings", json=booking_body(), headers=headers["family"]).json()
    rejected = client.patch(
        f"/api/bookings/{booking['id']}/reject", json={"reason": "Fully booked"}, headers=headers["care"]
    )
    assert rejected.json()["rejection_reason"] == "Fully booked"


def test_unknown_booking_is_not_found(client, headers, people):
    response = client.get("/api/bookings/BKG-404", headers=headers["family"])
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


def test_page_size_limit(client, headers, people):
    response = client.get("/api/bookings", params={"limit": 101}, headers=headers["family"])
    assert response.status_code == 400
    assert response.json()["field"] == "limit"


def test_job_application_and_payment_over_http(client, headers, people, webhook_request):
    job = client.post("/api/jobs", json=job_body(), headers=headers["family"]).json()
    assert client.post(f"/api/jobs/{job['id']}/apply", headers=headers["care"]).status_code == 200

    matches = client.get(f"/api/jobs/{job['id']}/matching-caregivers", headers=headers["family"]).json()
    assert matches[0]["caregiver_id"] == CAREGIVER_ID

    intent = client.post(
        "/api/payments/create-intent",
        json={"job_post_id": job["id"], "caregiver_id": CAREGIVER_ID},
        headers=headers["family"],
    )
    assert intent.status_code == 201
    payment_id = intent.json()["payment_id"]
    assert intent.json()["platform_fee"] == 5

    payload, signature = webhook_request(
        "evt_http_1", "payment_intent.succeeded", {"id": "pi_test_1", "metadata": {"payment_id": payment_id}}
    )
    ack = client.post("/api/payments/webhook", content=payload, headers={"Stripe-Signature": signature})
    assert ack.json() == {"received": True, "duplicate": False}
    replay = client.post("/api/payments/webhook", content=payload, headers={"Stripe-Signature": signature})
    assert replay.json() == {"received": True, "duplicate": True}

    payment = client.get(f"/api/payments/{payment_id}", headers=headers["care"]).json()
    assert payment["payment_status"] == "COMPLETED"
    assert payment["transfer_status"] == "PAID"


def test_webhook_with_bad_signature_is_rejected(client, webhook_request):
    payload, signature = webhook_request("evt_1", "payment_intent.succeeded", {"id": "pi_1"}, secret="whsec_other")
    response = client.post("/api/payments/webhook", content=payload, headers={"Stripe-Signature": signature})
    assert response.status_code == 400
    assert response.json()["kind"] == "validation"

    unsigned = client.post("/api/payments/webhook", content=payload)
    assert unsigned.status_code == 400


def test_connect_account_over_http(client, headers, auth_headers, make_caregiver):
    assert client.post("/api/connect/account", headers=headers["care"]).status_code == 404

    make_caregiver("CARE-NEW")
    care = auth_headers("CARE-NEW", "care")
    created = client.post("/api/connect/account", headers=care)
    assert created.status_code == 201
    assert created.json()["account_status"] == "PENDING"
    assert client.post("/api/connect/account", headers=care).status_code == 409
    link = client.post("/api/connect/onboarding-link", headers=care).json()
    assert link["url"].endswith(created.json()["account_id"])
    assert client.post("/api/connect/dashboard-link", headers=care).status_code == 400


def test_admin_routes_require_admin(client, headers, people):
    response = client.get("/api/admin/audit-logs", headers=headers["family"])
    assert response.status_code == 403


def test_admin_audit_trail_and_verification(client, headers, people, make_caregiver):
    make_caregiver("CARE-2", verified=False)
    client.post("/api/bookings", json=booking_body(), headers=headers["family"])

    pending = client.get("/api/admin/caregivers/pending", headers=headers["admin"]).json()
    assert [c["id"] for c in pending["items"]] == ["CARE-2"]

    updated = client.patch(
        "/api/admin/caregivers/CARE-2/verification", json={"verified_status": "VERIFIED"}, headers=headers["admin"]
    )
    assert updated.json()["verified_status"] == "VERIFIED"

    logs = client.get("/api/admin/audit-logs", headers=headers["admin"]).json()
    actions = [log["action"] for log in logs["items"]]
    assert "Created booking" in actions
    assert "Updated caregiver verified status to VERIFIED" in actions

    restrict = client.post(
        "/api/admin/connect-accounts/acct_care_1/restrict", json={"reason": "Chargebacks"}, headers=headers["admin"]
    )
    assert restrict.json()["account_status"] == "RESTRICTED"
