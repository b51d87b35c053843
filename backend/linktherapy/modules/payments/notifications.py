"""
Scheduling of the payment reminder chain.

Four callbacks are queued in QStash around a payment's due date. QStash owns
the timing and the retries; the webhooks re-read the payment when they fire,
so stale messages for settled payments are harmless.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable

from linktherapy.core.clock import utcnow
from linktherapy.services.qstash import QStashClient, QStashError
from .models import TherapistPayment


logger = logging.getLogger(__name__)

STAGE_REMINDER = "reminder_3_days_before"
STAGE_DEADLINE = "deadline_notification"
STAGE_WARNING = "warning_3_days_after"
STAGE_SUSPENSION = "suspension_6_days_after"

NOTIFICATION_STAGES = (STAGE_REMINDER, STAGE_DEADLINE, STAGE_WARNING)

NOTIFICATION_PATH = "/api/webhooks/qstash/payment-notification"
SUSPENSION_PATH = "/api/webhooks/qstash/payment-suspension"

# (stage, days relative to the due date, webhook path)
SCHEDULE = (
    (STAGE_REMINDER, -3, NOTIFICATION_PATH),
    (STAGE_DEADLINE, 0, NOTIFICATION_PATH),
    (STAGE_WARNING, 3, NOTIFICATION_PATH),
    (STAGE_SUSPENSION, 6, SUSPENSION_PATH),
)


@dataclass(frozen=True)
class PlannedNotification:
    stage: str
    url: str
    deliver_at: datetime
    body: dict


def due_datetime(due: date | datetime) -> datetime:
    if isinstance(due, datetime):
        return due if due.tzinfo else due.replace(tzinfo=timezone.utc)
    return datetime.combine(due, time.min, tzinfo=timezone.utc)


def plan_notifications(
    payment_id: str,
    therapist_id: str,
    due: date | datetime,
    *,
    site_url: str,
    now: datetime,
) -> list[PlannedNotification]:
    """Return the callbacks still ahead of ``now``; past offsets are dropped."""
    base = site_url.rstrip("/")
    due_at = due_datetime(due)
    planned: list[PlannedNotification] = []
    for stage, offset_days, path in SCHEDULE:
        deliver_at = due_at + timedelta(days=offset_days)
        if deliver_at <= now:
            continue
        body = {"paymentId": payment_id, "therapistId": therapist_id}
        if path == NOTIFICATION_PATH:
            body["stage"] = stage
        planned.append(PlannedNotification(stage=stage, url=f"{base}{path}", deliver_at=deliver_at, body=body))
    return planned


class PaymentNotificationScheduler:
    def __init__(
        self,
        client: QStashClient,
        *,
        site_url: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client
        self.site_url = site_url
        self.clock = clock

    def schedule(self, payment_id: str, therapist_id: str, due: date | datetime) -> dict[str, str]:
        """Publish every future stage; returns {stage: message_id} for those that were queued."""
        message_ids: dict[str, str] = {}
        planned = plan_notifications(
            payment_id, therapist_id, due, site_url=self.site_url, now=self.clock()
        )
        for item in planned:
            try:
                message_ids[item.stage] = self.client.publish_json(
                    item.url, item.body, not_before=item.deliver_at
                )
            except QStashError as exc:
                logger.error("Scheduling %s for payment %s failed: %s", item.stage, payment_id, exc)
                continue
            logger.info(
                "Scheduled %s for payment %s at %s", item.stage, payment_id, item.deliver_at.isoformat()
            )
        return message_ids

    def schedule_for_payment(self, payment: TherapistPayment) -> dict[str, str]:
        return self.schedule(payment.id, payment.therapist_id, payment.payment_due_date)
