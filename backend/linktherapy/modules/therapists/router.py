from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from linktherapy.api.deps import AdminDep, DbDep, TherapistDep
from linktherapy.core.errors import NotFoundError
from linktherapy.core.rate_limit import rate_limit
from .schemas import (
    AdminTherapistDetail,
    AdminTherapistRow,
    CommissionUpdate,
    DeleteTherapistRequest,
    DirectoryFilters,
    OnboardingPayload,
    StatusUpdate,
    TherapistPublic,
    TherapistRead,
    TherapistSelfUpdate,
    ToggleOnlineRequest,
)
from .service import TherapistsService


router = APIRouter(tags=["therapists"])
admin_router = APIRouter(prefix="/admin", tags=["admin-therapists"])


def directory_filters(
    q: str | None = None,
    problem: str | None = None,
    gender: str | None = None,
    lgbtq: str | None = None,
    religion: str | None = None,
    age_range: str | None = None,
    city: str | None = None,
    area: str | None = None,
    experience: str | None = None,
    price_min: float | None = Query(None, ge=0),
    price_max: float | None = Query(None, ge=0),
    remote: bool | None = None,
    sort: str = "ranking",
    limit: int | None = Query(None, ge=1, le=500),
) -> DirectoryFilters:
    try:
        return DirectoryFilters(
            q=q,
            problem=problem,
            gender=gender,
            lgbtq=lgbtq,
            religion=religion,
            age_range=age_range,
            city=city,
            area=area,
            experience=experience,
            price_min=price_min,
            price_max=price_max,
            remote=remote,
            sort=sort,
            limit=limit,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get(
    "/therapists",
    response_model=list[TherapistPublic],
    dependencies=[Depends(rate_limit("public_api"))],
)
def list_therapists(db: DbDep, filters: Annotated[DirectoryFilters, Depends(directory_filters)]):
    return TherapistsService(db).directory(filters)


@router.get("/therapists/me", response_model=TherapistRead)
def read_own_profile(db: DbDep, current: TherapistDep):
    try:
        return TherapistsService(db).get_own(current)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.patch("/therapists/me", response_model=TherapistRead)
def update_own_profile(payload: TherapistSelfUpdate, db: DbDep, current: TherapistDep):
    try:
        return TherapistsService(db).update_own(current, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("/onboarding/therapist/complete")
def complete_onboarding(payload: OnboardingPayload, db: DbDep, current: TherapistDep):
    therapist = TherapistsService(db).complete_onboarding(current, payload)
    return {"ok": True, "therapist": therapist}


# ---- Admin ----


@admin_router.get("/therapists", response_model=list[AdminTherapistRow])
def admin_list_therapists(db: DbDep, _: AdminDep):
    return TherapistsService(db).admin_list()


@admin_router.get("/therapists/{therapist_id}", response_model=AdminTherapistDetail)
def admin_get_therapist(therapist_id: str, db: DbDep, _: AdminDep):
    try:
        return TherapistsService(db).admin_detail(therapist_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@admin_router.post("/therapists/commission")
def admin_set_commission(payload: CommissionUpdate, db: DbDep, admin: AdminDep):
    try:
        therapist = TherapistsService(db).set_commission(
            payload.therapist_id, payload.commission_per_session, admin=admin
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {
        "success": True,
        "message": f"Commission rate updated for {therapist.full_name or therapist.user_id}",
        "therapist_id": therapist.user_id,
        "commission_per_session": therapist.commission_per_session,
    }


@admin_router.post("/therapists/toggle-online")
def admin_toggle_online(payload: ToggleOnlineRequest, db: DbDep, _: AdminDep):
    try:
        therapist = TherapistsService(db).set_remote_available(payload.therapist_id, payload.remote_available)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {
        "success": True,
        "therapist_id": therapist.user_id,
        "remote_available": therapist.remote_available,
    }


@admin_router.post("/therapists/status")
def admin_set_status(payload: StatusUpdate, db: DbDep, admin: AdminDep):
    try:
        therapist = TherapistsService(db).set_status(payload.therapist_id, payload.status, admin=admin)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {"success": True, "therapist_id": therapist.user_id, "status": therapist.status}


@admin_router.post("/delete-therapist")
def admin_delete_therapist(payload: DeleteTherapistRequest, db: DbDep, admin: AdminDep):
    try:
        TherapistsService(db).delete_therapist(payload.user_id, admin=admin)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {
        "ok": True,
        "message": "Therapist account fully deleted. You can now invite this email again.",
    }
