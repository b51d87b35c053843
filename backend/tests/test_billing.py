"""Billing periods and the notification plan around a due date."""

from datetime import date, datetime, timedelta, timezone

import pytest

from linktherapy.modules.payments.calculator import billing_period, parse_session_date
from linktherapy.modules.payments.notifications import (
    NOTIFICATION_PATH,
    STAGE_DEADLINE,
    STAGE_REMINDER,
    STAGE_SUSPENSION,
    STAGE_WARNING,
    SUSPENSION_PATH,
    PaymentNotificationScheduler,
    plan_notifications,
)


SITE = "https://linktherapy.test"


class TestBillingPeriod:
    @pytest.mark.parametrize(
        "when, start, end",
        [
            (date(2025, 3, 1), date(2025, 3, 1), date(2025, 3, 15)),
            (date(2025, 3, 15), date(2025, 3, 1), date(2025, 3, 15)),
            (date(2025, 3, 16), date(2025, 3, 16), date(2025, 3, 31)),
            (date(2024, 2, 20), date(2024, 2, 16), date(2024, 2, 29)),
            (date(2025, 2, 28), date(2025, 2, 16), date(2025, 2, 28)),
        ],
    )
    def test_half_month_boundaries(self, when, start, end):
        period = billing_period(when)
        assert (period.start, period.end) == (start, end)

    def test_due_date_is_four_days_after_period_end(self):
        assert billing_period(date(2025, 3, 10)).due_date == date(2025, 3, 19)
        # Second half rolls into the next month
        assert billing_period(date(2025, 3, 20)).due_date == date(2025, 4, 4)
        assert billing_period(date(2025, 12, 31)).due_date == date(2026, 1, 4)

    def test_datetimes_are_bucketed_in_utc(self):
        early_morning_beirut = datetime(2025, 3, 16, 1, 30, tzinfo=timezone(timedelta(hours=3)))
        assert billing_period(early_morning_beirut).start == date(2025, 3, 1)

    def test_parse_session_date(self):
        assert parse_session_date("2025-03-20T10:00:00Z") == datetime(2025, 3, 20, 10, tzinfo=timezone.utc)
        assert parse_session_date("2025-03-20T10:00:00").tzinfo is not None
        with pytest.raises(ValueError, match="Invalid session_date"):
            parse_session_date("not a date")


class TestPlanNotifications:
    def test_all_four_stages_when_due_date_is_ahead(self):
        now = datetime(2025, 3, 1, tzinfo=timezone.utc)
        planned = plan_notifications("pay-1", "ther-1", date(2025, 3, 19), site_url=SITE + "/", now=now)

        assert [p.stage for p in planned] == [STAGE_REMINDER, STAGE_DEADLINE, STAGE_WARNING, STAGE_SUSPENSION]
        assert [p.deliver_at.date() for p in planned] == [
            date(2025, 3, 16),
            date(2025, 3, 19),
            date(2025, 3, 22),
            date(2025, 3, 25),
        ]
        assert planned[0].url == SITE + NOTIFICATION_PATH
        assert planned[0].body == {"paymentId": "pay-1", "therapistId": "ther-1", "stage": STAGE_REMINDER}
        assert planned[-1].url == SITE + SUSPENSION_PATH
        assert planned[-1].body == {"paymentId": "pay-1", "therapistId": "ther-1"}

    def test_past_offsets_are_dropped(self):
        now = datetime(2025, 3, 20, tzinfo=timezone.utc)
        planned = plan_notifications("p", "t", date(2025, 3, 19), site_url=SITE, now=now)
        assert [p.stage for p in planned] == [STAGE_WARNING, STAGE_SUSPENSION]

    def test_nothing_left_long_after_due(self):
        now = datetime(2025, 5, 1, tzinfo=timezone.utc)
        assert plan_notifications("p", "t", date(2025, 3, 19), site_url=SITE, now=now) == []


class TestScheduler:
    def test_returns_message_ids_per_stage(self, qstash):
        scheduler = PaymentNotificationScheduler(
            qstash, site_url=SITE, clock=lambda: datetime(2025, 3, 1, tzinfo=timezone.utc)
        )
        ids = scheduler.schedule("pay-1", "ther-1", date(2025, 3, 19))

        assert ids == {
            STAGE_REMINDER: "msg-1",
            STAGE_DEADLINE: "msg-2",
            STAGE_WARNING: "msg-3",
            STAGE_SUSPENSION: "msg-4",
        }
        assert qstash.published[0]["not_before"] == datetime(2025, 3, 16, tzinfo=timezone.utc)

    def test_publish_failures_are_swallowed(self, qstash):
        qstash.fail = True
        scheduler = PaymentNotificationScheduler(
            qstash, site_url=SITE, clock=lambda: datetime(2025, 3, 1, tzinfo=timezone.utc)
        )
        assert scheduler.schedule("pay-1", "ther-1", date(2025, 3, 19)) == {}
