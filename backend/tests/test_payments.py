"""Admin payment actions and their ranking side effects."""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select

from linktherapy.core.clock import utcnow
from linktherapy.modules.audit.models import AdminAuditLog
from linktherapy.modules.payments.calculator import billing_period, month_start
from linktherapy.modules.payments.models import TherapistMetric, TherapistPayment, TherapistPaymentAction
from linktherapy.modules.sessions.models import TherapySession
from linktherapy.modules.therapists.models import Therapist, TherapistRankingHistory
from linktherapy.modules.users.models import User

from conftest import auth_headers


@pytest.fixture
def therapist(make_therapist):
    return make_therapist(full_name="Dr. Sami")[1]


@pytest.fixture
def payment(db, therapist):
    row = TherapistPayment(
        therapist_id=therapist.user_id,
        payment_period_start=date(2025, 3, 1),
        payment_period_end=date(2025, 3, 15),
        payment_due_date=date(2025, 3, 19),
        total_sessions=2,
        commission_amount=12.0,
        status="pending",
        notification_message_ids={},
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def act(client, admin, payment, action, **extra):
    body = {"action": action, "payment_id": payment.id, **extra}
    return client.post("/api/admin/payments", json=body, headers=auth_headers(admin))


def ranking(db, therapist_id):
    db.expire_all()
    return db.get(Therapist, therapist_id).ranking_points


def monthly_metric(db, therapist_id, month):
    db.expire_all()
    return db.scalar(
        select(TherapistMetric).where(TherapistMetric.therapist_id == therapist_id, TherapistMetric.month_year == month)
    )


class TestActions:
    def test_mark_complete_adds_bonus(self, client, db, admin, payment):
        res = act(client, admin, payment, "mark_complete")

        assert res.json() == {"ok": True}
        assert ranking(db, payment.therapist_id) == 60
        refreshed = db.get(TherapistPayment, payment.id)
        assert refreshed.status == "completed"
        assert refreshed.payment_completed_date is not None

    def test_mark_overdue_never_goes_below_zero(self, client, db, admin, payment, therapist):
        therapist.ranking_points = 5
        db.commit()

        act(client, admin, payment, "mark_overdue")

        assert ranking(db, payment.therapist_id) == 0
        history = db.scalar(select(TherapistRankingHistory))
        assert (history.previous_ranking, history.new_ranking) == (5, 0)

    def test_update_notes(self, client, db, admin, payment):
        act(client, admin, payment, "update_notes", notes="Paid by wire")
        db.expire_all()
        assert db.get(TherapistPayment, payment.id).admin_notes == "Paid by wire"

    def test_unknown_action(self, client, admin, payment):
        res = act(client, admin, payment, "refund")
        assert res.status_code == 400
        assert res.json() == {"error": "Unknown action"}

    def test_unknown_payment(self, client, admin):
        res = client.post(
            "/api/admin/payments", json={"action": "mark_complete", "payment_id": "nope"}, headers=auth_headers(admin)
        )
        assert res.status_code == 404

    def test_mark_paid_again_records_action_and_resets_outstanding(self, client, db, admin, payment):
        db.add(
            TherapySession(
                therapist_id=payment.therapist_id,
                client_name="Earlier",
                session_date=datetime(2025, 3, 3, tzinfo=timezone.utc),
                status="completed",
            )
        )
        db.commit()

        res = act(client, admin, payment, "mark_paid_again", amount=6, payment_method="cash", notes="Partial")

        assert res.status_code == 200
        db.expire_all()
        refreshed = db.get(TherapistPayment, payment.id)
        assert refreshed.last_paid_action_at is not None
        assert refreshed.total_sessions == 1
        assert refreshed.commission_amount == 0
        recorded = db.scalar(select(TherapistPaymentAction))
        assert (recorded.action, recorded.amount, recorded.payment_method) == ("paid_again", 6, "cash")
        assert ranking(db, payment.therapist_id) == 60
        audit = db.scalar(select(AdminAuditLog).where(AdminAuditLog.action == "payments.mark_paid_again"))
        assert audit.details["payment_id"] == payment.id
        metric = monthly_metric(db, payment.therapist_id, date(2025, 3, 1))
        assert (metric.commission_earned, metric.sessions_count) == (0.0, 1)
        listing = client.get("/api/admin/payments", params={"month": "2025-03"}, headers=auth_headers(admin))
        assert listing.json()["payments"][0]["monthly_commission"] == 0.0


class TestListing:
    def test_month_listing_with_therapist_name(self, client, admin, payment):
        res = client.get("/api/admin/payments", params={"month": "2025-03"}, headers=auth_headers(admin))

        rows = res.json()["payments"]
        assert [r["id"] for r in rows] == [payment.id]
        assert rows[0]["therapist_name"] == "Dr. Sami"
        assert client.get("/api/admin/payments", params={"month": "2025-04"}, headers=auth_headers(admin)).json() == {
            "payments": []
        }

    def test_bad_month(self, client, admin):
        assert client.get("/api/admin/payments", params={"month": "March"}, headers=auth_headers(admin)).status_code == 400

    def test_therapist_sees_own_payments(self, client, db, payment, make_therapist):
        user = db.get(User, payment.therapist_id)
        other_user, _ = make_therapist()
        assert [p["id"] for p in client.get("/api/payments/mine", headers=auth_headers(user)).json()] == [payment.id]
        assert client.get("/api/payments/mine", headers=auth_headers(other_user)).json() == []


class TestMaintenance:
    def test_delete_payment_is_audited(self, client, db, admin, payment):
        db.add(
            TherapistMetric(
                therapist_id=payment.therapist_id, month_year=date(2025, 3, 1), commission_earned=12.0, sessions_count=2
            )
        )
        db.commit()

        res = client.post("/api/admin/payments/delete", json={"payment_id": payment.id}, headers=auth_headers(admin))

        assert res.json()["success"] is True
        db.expunge_all()
        assert db.get(TherapistPayment, payment.id) is None
        assert db.scalar(select(AdminAuditLog).where(AdminAuditLog.action == "payments.delete")) is not None
        metric = monthly_metric(db, payment.therapist_id, date(2025, 3, 1))
        assert (metric.commission_earned, metric.sessions_count) == (0.0, 0)

    def test_create_and_delete_test_payments(self, client, db, admin, therapist):
        headers = auth_headers(admin)
        month = month_start(billing_period(utcnow()).start)
        created = client.post("/api/admin/payments/create-test", headers=headers)

        assert created.status_code == 200
        body = created.json()["payment"]
        assert body["total_sessions"] == 5
        assert body["commission_amount"] == 30.0
        assert body["payment_period_start"] == billing_period(utcnow()).start.isoformat()
        assert client.post("/api/admin/payments/create-test", headers=headers).status_code == 409
        assert monthly_metric(db, therapist.user_id, month).commission_earned == 30.0

        deleted = client.post("/api/admin/payments/delete-test", headers=headers)
        assert deleted.json()["deleted"] == 1
        assert monthly_metric(db, therapist.user_id, month).commission_earned == 0.0

    def test_create_test_payment_needs_active_therapist(self, client, admin):
        assert client.post("/api/admin/payments/create-test", headers=auth_headers(admin)).status_code == 400

    def test_recalc_endpoint(self, client, db, admin, therapist):
        db.add(
            TherapySession(
                therapist_id=therapist.user_id,
                client_name="A",
                session_date=datetime(2025, 3, 20, tzinfo=timezone.utc),
                status="scheduled",
            )
        )
        db.commit()

        res = client.post(
            "/api/admin/payments/recalc",
            json={"therapist_id": therapist.user_id, "session_date": "2025-03-20T00:00:00Z"},
            headers=auth_headers(admin),
        )

        assert res.json() == {
            "ok": True,
            "total_sessions": 1,
            "commission_amount": 6.0,
            "period_start": "2025-03-16",
            "period_end": "2025-03-31",
        }

    def test_recalc_rejects_bad_date(self, client, admin, therapist):
        res = client.post(
            "/api/admin/payments/recalc",
            json={"therapist_id": therapist.user_id, "session_date": "yesterday"},
            headers=auth_headers(admin),
        )
        assert res.status_code == 400

    def test_backfill(self, client, admin, payment):
        res = client.post("/api/admin/backfill-commissions", headers=auth_headers(admin))
        assert res.json() == {"ok": True, "updated": 1}
