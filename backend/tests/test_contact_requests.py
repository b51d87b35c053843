"""Client contact requests, scheduling and therapist sessions."""

from sqlalchemy import select

from linktherapy.modules.contact_requests.models import ContactRequest
from linktherapy.modules.payments.models import TherapistPayment
from linktherapy.modules.sessions.models import TherapySession

from conftest import auth_headers


def submit(client, therapist_id, **extra):
    payload = {
        "therapist_id": therapist_id,
        "client_name": "  Nour  ",
        "client_email": "nour@example.com",
        "client_phone": "+961 1 234 567",
        "message": "Hello,\nI'd like a session.",
    }
    payload.update(extra)
    return client.post("/api/contact-requests", json=payload)


class TestSubmit:
    def test_stores_and_notifies_therapist(self, client, mailer, make_therapist):
        _, therapist = make_therapist(email="dr.rana@example.com")
        res = submit(client, therapist.user_id, session_id="quiz-123")

        assert res.status_code == 201
        request = res.json()["request"]
        assert request["status"] == "new"
        assert request["client_name"] == "Nour"
        assert request["session_id"] == "quiz-123"
        assert mailer.sent[0]["to"] == "dr.rana@example.com"
        assert mailer.sent[0]["subject"] == "New Contact Request from Nour"

    def test_unknown_therapist(self, client):
        res = submit(client, "6f1b5c1e-9a65-4c8e-9d3e-0d6b7d1f8a11")
        assert res.status_code == 404

    def test_email_failure_keeps_request(self, client, db, mailer, make_therapist):
        _, therapist = make_therapist()
        mailer.fail = True
        assert submit(client, therapist.user_id).status_code == 201
        assert db.scalar(select(ContactRequest)) is not None

    def test_invalid_email(self, client, make_therapist):
        _, therapist = make_therapist()
        res = submit(client, therapist.user_id, client_email="nope")
        assert res.status_code == 400
        assert res.json()["error"] == "Invalid payload"


class TestTherapistActions:
    def test_accept_and_reject_own_requests(self, client, make_therapist):
        user, therapist = make_therapist()
        other_user, _ = make_therapist()
        request_id = submit(client, therapist.user_id).json()["request"]["id"]

        assert client.post(f"/api/contact-requests/{request_id}/accept", headers=auth_headers(other_user)).status_code == 404
        res = client.post(f"/api/contact-requests/{request_id}/accept", headers=auth_headers(user))
        assert res.json()["status"] == "accepted"
        res = client.post(
            f"/api/contact-requests/{request_id}/reject", json={"reason": "Fully booked"}, headers=auth_headers(user)
        )
        assert res.json()["status"] == "rejected"
        assert res.json()["rejection_reason"] == "Fully booked"

    def test_schedule_books_session_and_payment(self, client, db, qstash, make_therapist):
        user, therapist = make_therapist()
        request_id = submit(client, therapist.user_id).json()["request"]["id"]

        res = client.post(
            f"/api/contact-requests/{request_id}/schedule",
            json={"session_date": "2030-05-03T10:00:00Z", "price": 80},
            headers=auth_headers(user),
        )

        assert res.status_code == 200
        assert res.json()["request"]["status"] == "scheduled"
        assert res.json()["session"]["client_name"] == "Nour"
        payment = db.scalar(select(TherapistPayment))
        assert payment.total_sessions == 1
        assert payment.commission_amount == 6.0
        assert len(qstash.published) == 4
        assert len(payment.notification_message_ids) == 4

    def test_rejected_request_cannot_be_scheduled(self, client, db, make_therapist):
        user, therapist = make_therapist()
        request_id = submit(client, therapist.user_id).json()["request"]["id"]
        client.post(f"/api/contact-requests/{request_id}/reject", json={}, headers=auth_headers(user))

        res = client.post(
            f"/api/contact-requests/{request_id}/schedule",
            json={"session_date": "2030-05-03T10:00:00Z"},
            headers=auth_headers(user),
        )
        assert res.status_code == 400
        assert db.scalar(select(TherapySession)) is None

    def test_assigned_requests_show_up_for_assignee(self, client, admin, make_therapist):
        _, original = make_therapist()
        assignee_user, assignee = make_therapist()
        request_id = submit(client, original.user_id).json()["request"]["id"]

        res = client.post(
            f"/api/admin/contact-requests/{request_id}/assign",
            json={"therapist_id": assignee.user_id},
            headers=auth_headers(admin),
        )
        assert res.json()["status"] == "assigned"
        assert res.json()["assigned_therapist_id"] == assignee.user_id

        mine = client.get("/api/contact-requests/mine", headers=auth_headers(assignee_user))
        assert [r["id"] for r in mine.json()] == [request_id]
        accept = client.post(f"/api/contact-requests/{request_id}/accept", headers=auth_headers(assignee_user))
        assert accept.status_code == 200

    def test_admin_list_filters_by_status(self, client, admin, make_therapist):
        user, therapist = make_therapist()
        first = submit(client, therapist.user_id).json()["request"]["id"]
        submit(client, therapist.user_id)
        client.post(f"/api/contact-requests/{first}/accept", headers=auth_headers(user))

        res = client.get("/api/admin/contact-requests", params={"status": "accepted"}, headers=auth_headers(admin))
        assert [r["id"] for r in res.json()] == [first]
        assert len(client.get("/api/admin/contact-requests", headers=auth_headers(admin)).json()) == 2


class TestSessions:
    def test_create_and_list(self, client, db, make_therapist):
        user, _ = make_therapist()
        headers = auth_headers(user)
        res = client.post(
            "/api/sessions",
            json={"client_name": "Walk-in", "session_date": "2030-05-20T09:00:00Z"},
            headers=headers,
        )
        assert res.status_code == 201

        listed = client.get("/api/sessions", params={"from": "2030-05-16T00:00:00Z"}, headers=headers)
        assert [s["client_name"] for s in listed.json()] == ["Walk-in"]
        assert client.get("/api/sessions", params={"to": "2030-05-16T00:00:00Z"}, headers=headers).json() == []

    def test_reschedule_moves_commission_between_periods(self, client, db, make_therapist):
        user, _ = make_therapist()
        headers = auth_headers(user)
        created = client.post(
            "/api/sessions",
            json={"client_name": "Mover", "session_date": "2030-05-10T09:00:00Z"},
            headers=headers,
        ).json()

        res = client.post(
            f"/api/sessions/{created['id']}/reschedule",
            json={"session_date": "2030-05-20T09:00:00Z"},
            headers=headers,
        )

        assert res.status_code == 200
        assert res.json()["rescheduled_from"] == created["id"]
        payments = {p.payment_period_start.day: p for p in db.scalars(select(TherapistPayment))}
        assert payments[1].total_sessions == 0
        assert payments[16].total_sessions == 1
        again = client.post(
            f"/api/sessions/{created['id']}/reschedule",
            json={"session_date": "2030-05-21T09:00:00Z"},
            headers=headers,
        )
        assert again.status_code == 400

    def test_cancel_drops_commission(self, client, db, make_therapist):
        user, _ = make_therapist()
        headers = auth_headers(user)
        created = client.post(
            "/api/sessions",
            json={"client_name": "Cancel", "session_date": "2030-05-10T09:00:00Z"},
            headers=headers,
        ).json()

        res = client.post(f"/api/sessions/{created['id']}/status", json={"status": "cancelled"}, headers=headers)

        assert res.json()["status"] == "cancelled"
        assert db.scalar(select(TherapistPayment)).commission_amount == 0
