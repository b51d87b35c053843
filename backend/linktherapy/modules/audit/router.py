from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict

from linktherapy.api.deps import AdminDep, DbDep
from .service import list_audit_logs


router = APIRouter(prefix="/admin/audit-logs", tags=["audit"])


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    actor_admin_id: str | None
    action: str
    target_user_id: str | None
    target_email: str | None
    details: dict | None
    created_at: datetime


@router.get("", response_model=list[AuditLogRead])
def read_audit_logs(
    db: DbDep,
    _: AdminDep,
    action: str | None = None,
    limit: int = Query(default=200, ge=1, le=1000),
):
    return list_audit_logs(db, action=action, limit=limit)
