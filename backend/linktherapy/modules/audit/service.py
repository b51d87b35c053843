from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import AdminAuditLog


logger = logging.getLogger(__name__)


def record_admin_action(
    db: Session,
    action: str,
    *,
    actor_id: str | None = None,
    target_user_id: str | None = None,
    target_email: str | None = None,
    details: dict[str, Any] | None = None,
) -> AdminAuditLog:
    """Stage an audit row on the caller's session; the caller commits."""
    entry = AdminAuditLog(
        actor_admin_id=actor_id,
        action=action,
        target_user_id=target_user_id,
        target_email=target_email,
        details=details or {},
    )
    db.add(entry)
    logger.info("audit %s actor=%s target=%s", action, actor_id, target_user_id or target_email)
    return entry


def list_audit_logs(db: Session, *, action: str | None = None, limit: int = 200) -> list[AdminAuditLog]:
    stmt = select(AdminAuditLog).order_by(AdminAuditLog.created_at.desc()).limit(limit)
    if action:
        stmt = stmt.where(AdminAuditLog.action == action)
    return list(db.scalars(stmt))
