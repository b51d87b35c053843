from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from linktherapy.api.deps import AdminDep, DbDep
from .schemas import ContentEntry, ContentUpdate
from .service import ContentService, ContentValidationError


router = APIRouter(prefix="/content", tags=["content"])
admin_router = APIRouter(prefix="/admin/content", tags=["admin-content"])


@router.get("", response_model=dict[str, ContentEntry])
def read_all_content(db: DbDep):
    return ContentService(db).all()


@router.get("/{key}", response_model=ContentEntry)
def read_content(key: str, db: DbDep):
    entry = ContentService(db).get(key)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Content not found")
    return entry


@admin_router.put("/{key}", response_model=ContentEntry)
def update_content(key: str, payload: ContentUpdate, db: DbDep, admin: AdminDep):
    try:
        return ContentService(db).update(key, payload.title, payload.content, admin=admin)
    except ContentValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": str(exc), "validationErrors": exc.field_errors},
        )
