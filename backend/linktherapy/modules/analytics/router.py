from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from linktherapy.api.deps import AdminDep, DbDep
from linktherapy.core.rate_limit import rate_limit
from .schemas import MatchAnalytics, MatchEventCreate
from .service import AnalyticsService


router = APIRouter(tags=["analytics"])
admin_router = APIRouter(prefix="/admin/analytics", tags=["admin-analytics"])


@router.post("/match-events", dependencies=[Depends(rate_limit("public_api"))])
def record_match_event(payload: MatchEventCreate, db: DbDep):
    event = AnalyticsService(db).record_event(payload)
    return {"ok": True, "id": event.id}


@admin_router.get("/match", response_model=MatchAnalytics)
def match_analytics(
    db: DbDep,
    _: AdminDep,
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
):
    try:
        return AnalyticsService(db).match_summary(start, end)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
