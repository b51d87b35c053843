from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from .models import Therapist, TherapistRankingHistory


logger = logging.getLogger(__name__)


def set_ranking(
    db: Session,
    therapist: Therapist,
    new_points: int,
    reason: str,
    *,
    admin_id: str | None = None,
) -> TherapistRankingHistory | None:
    """Set ranking points (floored at 0) and stage a history row. Caller commits."""
    previous = therapist.ranking_points or 0
    new_points = max(0, int(new_points))
    if new_points == previous:
        return None
    therapist.ranking_points = new_points
    entry = TherapistRankingHistory(
        therapist_id=therapist.user_id,
        previous_ranking=previous,
        new_ranking=new_points,
        change_reason=reason,
        changed_by_admin_id=admin_id,
    )
    db.add(therapist)
    db.add(entry)
    logger.info("Ranking for %s: %s -> %s (%s)", therapist.user_id, previous, new_points, reason)
    return entry


def adjust_ranking(
    db: Session,
    therapist: Therapist,
    delta: int,
    reason: str,
    *,
    admin_id: str | None = None,
) -> TherapistRankingHistory | None:
    return set_ranking(db, therapist, (therapist.ranking_points or 0) + delta, reason, admin_id=admin_id)
