from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from linktherapy.api.deps import AdminDep, DbDep
from linktherapy.core.errors import NotFoundError
from .schemas import PatientCreate, PatientRead
from .service import PatientsService


router = APIRouter(prefix="/admin/patients", tags=["admin-patients"])


@router.get("", response_model=list[PatientRead])
def list_patients(db: DbDep, _: AdminDep, active_only: bool = False):
    return PatientsService(db).list(include_inactive=not active_only)


@router.post("", response_model=PatientRead, status_code=status.HTTP_201_CREATED)
def create_patient(payload: PatientCreate, db: DbDep, _: AdminDep):
    return PatientsService(db).create(payload)


@router.post("/{patient_id}/toggle", response_model=PatientRead)
def toggle_patient(patient_id: str, db: DbDep, _: AdminDep):
    try:
        return PatientsService(db).toggle_active(patient_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
