from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, status

from linktherapy.api.deps import DbDep, TherapistDep
from linktherapy.core.errors import NotFoundError
from linktherapy.modules.payments.service import CalculatorDep
from .schemas import SessionCreate, SessionRead, SessionReschedule, SessionStatusUpdate
from .service import SessionsService


router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("", response_model=list[SessionRead])
def list_sessions(
    db: DbDep,
    current: TherapistDep,
    calculator: CalculatorDep,
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
):
    return SessionsService(db, calculator).list_sessions(current.id, start=start, end=end)


@router.post("", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
def create_session(payload: SessionCreate, db: DbDep, current: TherapistDep, calculator: CalculatorDep):
    try:
        return SessionsService(db, calculator).create(current.id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("/{session_id}/reschedule", response_model=SessionRead)
def reschedule_session(
    session_id: str,
    payload: SessionReschedule,
    db: DbDep,
    current: TherapistDep,
    calculator: CalculatorDep,
):
    try:
        return SessionsService(db, calculator).reschedule(current.id, session_id, payload.session_date)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("/{session_id}/status", response_model=SessionRead)
def update_session_status(
    session_id: str,
    payload: SessionStatusUpdate,
    db: DbDep,
    current: TherapistDep,
    calculator: CalculatorDep,
):
    try:
        return SessionsService(db, calculator).set_status(current.id, session_id, payload.status)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
