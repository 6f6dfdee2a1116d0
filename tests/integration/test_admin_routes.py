import json
from datetime import timedelta
from uuid import uuid4

from conftest import make_token

from registration_api.services.notifications.email_log import EmailLogReader

CONTACT = {
    "firstName": "Musa",
    "lastName": "Sani",
    "email": "musa@example.com",
    "subject": "Venue question",
    "message": "Where will this year's clinic be held?",
}


def register(client, payload) -> str:
    return client.post("/api/register", json=payload).json()["data"]["registrationId"]


def test_status_update_requires_token(client):
    response = client.patch("/api/admin/registrations/REG-2024-001/status", json={"status": "confirmed"})

    assert response.status_code == 401
    assert response.json()["error"] == {"code": "UNAUTHORIZED", "message": "Access token is required"}


def test_status_update_rejects_expired_token(client):
    headers = {"Authorization": f"Bearer {make_token(expires_in=timedelta(minutes=-5))}"}

    response = client.patch(
        "/api/admin/registrations/REG-2024-001/status", json={"status": "confirmed"}, headers=headers
    )

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Token has expired"


def test_status_update_rejects_wrong_secret(client):
    headers = {"Authorization": f"Bearer {make_token(secret='a-different-secret-of-at-least-32-bytes')}"}

    response = client.patch(
        "/api/admin/registrations/REG-2024-001/status", json={"status": "confirmed"}, headers=headers
    )

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid token"


def test_status_update_requires_admin_role(client):
    headers = {"Authorization": f"Bearer {make_token(role='viewer')}"}

    response = client.patch(
        "/api/admin/registrations/REG-2024-001/status", json={"status": "confirmed"}, headers=headers
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


def test_status_update_notifies_applicant(
    client, admin_headers, registration_payload, registration_store, recording_queue
):
    registration_id = register(client, registration_payload)
    recording_queue.messages.clear()

    response = client.patch(
        f"/api/admin/registrations/{registration_id}/status",
        json={"status": "confirmed"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Status updated successfully"}
    [record] = registration_store.records.values()
    assert record.status == "confirmed"
    assert recording_queue.kinds == ["status_update"]


def test_super_admin_can_update_by_internal_id(client, registration_payload, registration_store):
    register(client, registration_payload)
    [record] = registration_store.records.values()
    headers = {"Authorization": f"Bearer {make_token(role='super_admin')}"}

    response = client.patch(
        f"/api/admin/registrations/{record.id}/status", json={"status": "rejected"}, headers=headers
    )

    assert response.status_code == 200
    assert registration_store.records[record.id].status == "rejected"


def test_status_update_unknown_registration(client, admin_headers):
    response = client.patch(
        "/api/admin/registrations/REG-2024-404/status", json={"status": "confirmed"}, headers=admin_headers
    )

    assert response.status_code == 404


def test_status_update_rejects_unknown_status(client, admin_headers, registration_payload):
    registration_id = register(client, registration_payload)

    response = client.patch(
        f"/api/admin/registrations/{registration_id}/status",
        json={"status": "confirmed_to_attend"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_queue_status(client, admin_headers):
    response = client.get("/api/admin/notifications/queue", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["channels"] == ["fake"]


def submit_contact(client, contact_store):
    client.post("/api/contact", json=CONTACT)
    return contact_store.messages[-1].id


def test_contact_status_update(client, admin_headers, contact_store):
    contact_id = submit_contact(client, contact_store)

    response = client.patch(
        f"/api/admin/contact-messages/{contact_id}/status",
        json={"status": "read", "adminNotes": "Forwarded to venue team"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Status updated successfully"}
    [message] = contact_store.messages
    assert message.status == "read"
    assert message.admin_notes == "Forwarded to venue team"
    assert message.replied_at is None


def test_contact_marked_replied_records_admin(client, admin_headers, contact_store):
    contact_id = submit_contact(client, contact_store)

    client.patch(
        f"/api/admin/contact-messages/{contact_id}/status", json={"status": "replied"}, headers=admin_headers
    )

    [message] = contact_store.messages
    assert message.replied_at is not None
    assert message.replied_by == "admin-1"


def test_contact_status_update_unknown_message(client, admin_headers):
    response = client.patch(
        f"/api/admin/contact-messages/{uuid4()}/status", json={"status": "read"}, headers=admin_headers
    )

    assert response.status_code == 404
    assert response.json()["error"] == {"code": "NOT_FOUND", "message": "Contact message not found"}


def test_contact_status_update_rejects_unknown_status(client, admin_headers, contact_store):
    contact_id = submit_contact(client, contact_store)

    response = client.patch(
        f"/api/admin/contact-messages/{contact_id}/status", json={"status": "deleted"}, headers=admin_headers
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    assert contact_store.messages[0].status == "unread"


def test_contact_status_update_rejects_malformed_id(client, admin_headers):
    response = client.patch(
        "/api/admin/contact-messages/not-a-uuid/status", json={"status": "read"}, headers=admin_headers
    )

    assert response.status_code == 400


def test_contact_status_update_requires_token(client, contact_store):
    contact_id = submit_contact(client, contact_store)

    response = client.patch(f"/api/admin/contact-messages/{contact_id}/status", json={"status": "read"})

    assert response.status_code == 401
    assert contact_store.messages[0].status == "unread"


def write_email_log(path, entries):
    path.write_text("".join(json.dumps(entry) + "\n" for entry in entries), encoding="utf-8")


def test_email_logs_lists_every_entry(app, client, admin_headers, tmp_path):
    log_path = tmp_path / "emails.jsonl"
    write_email_log(
        log_path,
        [
            {"timestamp": "2024-06-01T09:00:00+00:00", "to": "a@b.com", "kind": "registration_confirmation"},
            {"timestamp": "2024-06-01T09:00:01+00:00", "to": "ops@x.com", "kind": "new_registration_alert"},
        ],
    )
    app.state.email_log = EmailLogReader(str(log_path))

    response = client.get("/api/admin/email-logs", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert [entry["to"] for entry in body["data"]] == ["a@b.com", "ops@x.com"]


def test_email_logs_filtered_by_kind(app, client, admin_headers, tmp_path):
    log_path = tmp_path / "emails.jsonl"
    write_email_log(
        log_path,
        [
            {"to": "a@b.com", "kind": "registration_confirmation"},
            {"to": "ops@x.com", "kind": "new_registration_alert"},
            {"to": "c@d.com", "kind": "registration_confirmation"},
        ],
    )
    app.state.email_log = EmailLogReader(str(log_path))

    response = client.get("/api/admin/email-logs/registration_confirmation", headers=admin_headers)

    body = response.json()
    assert body["count"] == 2
    assert body["kind"] == "registration_confirmation"
    assert [entry["to"] for entry in body["data"]] == ["a@b.com", "c@d.com"]


def test_email_logs_empty_without_log_file(client, admin_headers):
    response = client.get("/api/admin/email-logs", headers=admin_headers)

    assert response.json() == {"success": True, "count": 0, "data": []}


def test_email_logs_require_admin(client):
    assert client.get("/api/admin/email-logs").status_code == 401
    headers = {"Authorization": f"Bearer {make_token(role='viewer')}"}
    assert client.get("/api/admin/email-logs/status_update", headers=headers).status_code == 403
