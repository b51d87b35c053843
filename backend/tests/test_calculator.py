"""Commission recalculation against stored sessions."""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select

from linktherapy.core.errors import NotFoundError
from linktherapy.modules.payments.calculator import CommissionCalculator
from linktherapy.modules.payments.models import TherapistMetric, TherapistPayment
from linktherapy.modules.payments.notifications import PaymentNotificationScheduler
from linktherapy.modules.sessions.models import TherapySession


def _session(db, therapist_id, when, status="scheduled"):
    db.add(
        TherapySession(
            therapist_id=therapist_id,
            client_name="Client",
            session_date=when,
            duration_minutes=60,
            price=100.0,
            status=status,
        )
    )
    db.commit()


def _scheduler(qstash, now):
    return PaymentNotificationScheduler(qstash, site_url="https://linktherapy.test", clock=lambda: now)


class TestRecalculate:
    def test_counts_scheduled_and_completed_in_period(self, db, make_therapist):
        _, therapist = make_therapist()
        tid = therapist.user_id
        _session(db, tid, datetime(2025, 3, 2, 9, tzinfo=timezone.utc))
        _session(db, tid, datetime(2025, 3, 10, 9, tzinfo=timezone.utc), status="completed")
        _session(db, tid, datetime(2025, 3, 11, 9, tzinfo=timezone.utc), status="cancelled")
        _session(db, tid, datetime(2025, 3, 12, 9, tzinfo=timezone.utc), status="rescheduled")
        _session(db, tid, datetime(2025, 3, 16, 0, tzinfo=timezone.utc))

        result = CommissionCalculator(db).recalculate(tid, datetime(2025, 3, 5, tzinfo=timezone.utc))

        assert result.created
        assert result.total_sessions == 2
        assert result.commission_amount == pytest.approx(12.0)
        assert result.period_start == date(2025, 3, 1)
        assert result.period_end == date(2025, 3, 15)
        assert result.payment.payment_due_date == date(2025, 3, 19)
        assert result.payment.status == "pending"

    def test_uses_therapist_specific_rate(self, db, make_therapist):
        _, therapist = make_therapist(commission_per_session=9.5)
        _session(db, therapist.user_id, datetime(2025, 3, 20, tzinfo=timezone.utc))

        result = CommissionCalculator(db).recalculate(therapist.user_id, date(2025, 3, 20))

        assert result.commission_amount == pytest.approx(9.5)

    def test_second_run_updates_same_row(self, db, make_therapist):
        _, therapist = make_therapist()
        tid = therapist.user_id
        calc = CommissionCalculator(db)
        _session(db, tid, datetime(2025, 3, 20, tzinfo=timezone.utc))
        first = calc.recalculate(tid, date(2025, 3, 20))
        _session(db, tid, datetime(2025, 3, 25, tzinfo=timezone.utc))
        second = calc.recalculate(tid, date(2025, 3, 25))

        assert not second.created
        assert second.payment.id == first.payment.id
        assert second.total_sessions == 2
        assert len(list(db.scalars(select(TherapistPayment)))) == 1

    def test_unknown_therapist(self, db):
        with pytest.raises(NotFoundError):
            CommissionCalculator(db).recalculate("missing", date(2025, 3, 1))

    def test_outstanding_commission_starts_after_last_paid_action(self, db, make_therapist):
        _, therapist = make_therapist()
        tid = therapist.user_id
        calc = CommissionCalculator(db)
        _session(db, tid, datetime(2025, 3, 2, tzinfo=timezone.utc))
        payment = calc.recalculate(tid, date(2025, 3, 2)).payment

        payment.last_paid_action_at = datetime(2025, 3, 5, tzinfo=timezone.utc)
        db.commit()
        _session(db, tid, datetime(2025, 3, 8, tzinfo=timezone.utc))
        result = calc.recalculate(tid, date(2025, 3, 8))

        assert result.total_sessions == 2
        assert result.commission_amount == pytest.approx(6.0)

    def test_refreshes_monthly_metrics(self, db, make_therapist):
        _, therapist = make_therapist()
        tid = therapist.user_id
        calc = CommissionCalculator(db)
        _session(db, tid, datetime(2025, 3, 3, tzinfo=timezone.utc))
        _session(db, tid, datetime(2025, 3, 20, tzinfo=timezone.utc))
        _session(db, tid, datetime(2025, 3, 21, tzinfo=timezone.utc))
        calc.recalculate(tid, date(2025, 3, 3))
        calc.recalculate(tid, date(2025, 3, 20))

        metric = db.scalar(select(TherapistMetric).where(TherapistMetric.therapist_id == tid))
        assert metric.month_year == date(2025, 3, 1)
        assert metric.sessions_count == 3
        assert metric.commission_earned == pytest.approx(18.0)


class TestNotificationScheduling:
    def test_new_payment_schedules_once_and_stores_ids(self, db, qstash, make_therapist):
        _, therapist = make_therapist()
        tid = therapist.user_id
        now = datetime(2025, 3, 2, tzinfo=timezone.utc)
        calc = CommissionCalculator(db, _scheduler(qstash, now))
        _session(db, tid, datetime(2025, 3, 3, tzinfo=timezone.utc))

        payment = calc.recalculate(tid, date(2025, 3, 3)).payment
        calc.recalculate(tid, date(2025, 3, 4))

        assert len(qstash.published) == 4
        assert set(payment.notification_message_ids) == {
            "reminder_3_days_before",
            "deadline_notification",
            "warning_3_days_after",
            "suspension_6_days_after",
        }

    def test_scheduling_failure_keeps_payment(self, db, qstash, make_therapist):
        _, therapist = make_therapist()
        qstash.fail = True
        now = datetime(2025, 3, 2, tzinfo=timezone.utc)
        calc = CommissionCalculator(db, _scheduler(qstash, now))

        result = calc.recalculate(therapist.user_id, date(2025, 3, 3))

        assert result.created
        assert result.payment.notification_message_ids == {}


def test_backfill_recomputes_every_row(db, make_therapist):
    _, therapist = make_therapist()
    tid = therapist.user_id
    calc = CommissionCalculator(db)
    payment = calc.recalculate(tid, date(2025, 3, 3)).payment
    assert payment.total_sessions == 0

    _session(db, tid, datetime(2025, 3, 4, tzinfo=timezone.utc), status="completed")
    therapist.commission_per_session = 10.0
    db.commit()

    assert calc.backfill() == 1
    db.refresh(payment)
    assert payment.total_sessions == 1
    assert payment.commission_amount == pytest.approx(10.0)
