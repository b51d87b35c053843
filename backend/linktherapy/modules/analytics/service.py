from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from linktherapy.core.clock import ensure_utc, utcnow
from linktherapy.modules.contact_requests.models import ContactRequest
from .models import MatchEvent
from .schemas import MatchAnalytics, MatchEventCreate


logger = logging.getLogger(__name__)

MISSING = "—"
DEFAULT_WINDOW = timedelta(days=30)


def count_values(values: Iterable[str | None]) -> dict[str, int]:
    """Histogram of values; empty ones are counted under a dash."""
    return dict(Counter((value or MISSING) for value in values))


class AnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    def record_event(self, data: MatchEventCreate) -> MatchEvent:
        event = MatchEvent(**data.model_dump())
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def match_summary(self, start: datetime | None = None, end: datetime | None = None) -> MatchAnalytics:
        end = ensure_utc(end) if end else utcnow()
        start = ensure_utc(start) if start else end - DEFAULT_WINDOW
        if start > end:
            raise ValueError("'from' must be before 'to'")

        stmt = (
            select(MatchEvent)
            .where(MatchEvent.created_at >= start, MatchEvent.created_at <= end)
            .order_by(MatchEvent.created_at.desc())
        )
        events = list(self.db.scalars(stmt))

        return MatchAnalytics(
            from_=start,
            to=end,
            total=len(events),
            problems=count_values(e.problem for e in events),
            cities=count_values(e.city for e in events),
            areas=count_values(e.area for e in events),
            genders=count_values(e.gender for e in events),
            lgbtq=count_values(e.lgbtq for e in events),
            religions=count_values(e.religion for e in events),
            expBands=count_values(e.exp_band for e in events),
            prices=[(float(e.price_min or 0), float(e.price_max or 0)) for e in events],
            conversions=self._conversions(events),
        )

    def _conversions(self, events: list[MatchEvent]) -> int:
        """Distinct quiz sessions followed by a contact request carrying the same session id."""
        first_seen: dict[str, datetime] = {}
        for event in events:
            if not event.session_id:
                continue
            created = ensure_utc(event.created_at)
            if event.session_id not in first_seen or created < first_seen[event.session_id]:
                first_seen[event.session_id] = created
        if not first_seen:
            return 0
        stmt = select(ContactRequest.session_id, ContactRequest.created_at).where(
            ContactRequest.session_id.in_(list(first_seen))
        )
        converted = {
            session_id
            for session_id, created_at in self.db.execute(stmt)
            if ensure_utc(created_at) >= first_seen[session_id]
        }
        return len(converted)
