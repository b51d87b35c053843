from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from linktherapy.core.errors import NotFoundError
from .models import Patient
from .schemas import PatientCreate


logger = logging.getLogger(__name__)


class PatientsService:
    def __init__(self, db: Session):
        self.db = db

    def list(self, *, include_inactive: bool = True) -> list[Patient]:
        stmt = select(Patient).order_by(Patient.created_at.desc())
        if not include_inactive:
            stmt = stmt.where(Patient.is_active.is_(True))
        return list(self.db.scalars(stmt))

    def create(self, data: PatientCreate) -> Patient:
        patient = Patient(
            full_name=data.full_name.strip(),
            email=data.email.lower() if data.email else None,
            phone=data.phone,
            timezone=data.timezone,
        )
        self.db.add(patient)
        self.db.commit()
        self.db.refresh(patient)
        logger.info("Created patient %s", patient.id)
        return patient

    def toggle_active(self, patient_id: str) -> Patient:
        patient = self.db.get(Patient, patient_id)
        if patient is None:
            raise NotFoundError("Patient not found")
        patient.is_active = not patient.is_active
        self.db.commit()
        self.db.refresh(patient)
        return patient
