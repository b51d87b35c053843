from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from linktherapy.modules.audit.service import record_admin_action
from linktherapy.modules.users.models import User
from .models import SiteContent
from .schemas import CONTENT_SCHEMAS, ContentEntry, FreeformContent


logger = logging.getLogger(__name__)


class ContentValidationError(ValueError):
    def __init__(self, field_errors: dict[str, list[str]]):
        super().__init__("Validation failed")
        self.field_errors = field_errors


def schema_for(key: str) -> type[BaseModel]:
    entry = CONTENT_SCHEMAS.get(key)
    return entry[0] if entry else FreeformContent


def validate_content(key: str, data: Any) -> dict[str, Any]:
    """Validate ``data`` for ``key`` and return it with schema defaults filled in."""
    try:
        model = schema_for(key).model_validate(data)
    except ValidationError as exc:
        field_errors: dict[str, list[str]] = {}
        for issue in exc.errors():
            path = ".".join(str(part) for part in issue["loc"] if part != "root")
            field_errors.setdefault(path, []).append(issue["msg"])
        raise ContentValidationError(field_errors) from exc
    return model.model_dump()


class ContentService:
    def __init__(self, db: Session):
        self.db = db

    def _entry(self, key: str, row: SiteContent | None) -> ContentEntry:
        default_title = CONTENT_SCHEMAS[key][1] if key in CONTENT_SCHEMAS else None
        stored = row.content if row is not None and isinstance(row.content, dict) else {}
        try:
            content = validate_content(key, stored)
        except ContentValidationError:
            logger.warning("Stored content for %s no longer validates; serving it as-is", key)
            content = stored
        title = row.title if row is not None and row.title else default_title
        return ContentEntry(key=key, title=title, content=content)

    def all(self) -> dict[str, ContentEntry]:
        rows = {row.key: row for row in self.db.scalars(select(SiteContent))}
        keys = list(CONTENT_SCHEMAS) + [k for k in rows if k not in CONTENT_SCHEMAS]
        return {key: self._entry(key, rows.get(key)) for key in keys}

    def get(self, key: str) -> ContentEntry | None:
        row = self.db.get(SiteContent, key)
        if row is None and key not in CONTENT_SCHEMAS:
            return None
        return self._entry(key, row)

    def update(self, key: str, title: str | None, data: dict[str, Any], *, admin: User) -> ContentEntry:
        content = validate_content(key, data)
        row = self.db.get(SiteContent, key)
        if row is None:
            row = SiteContent(key=key)
        row.content = content
        if title is not None:
            row.title = title
        elif row.title is None and key in CONTENT_SCHEMAS:
            row.title = CONTENT_SCHEMAS[key][1]
        self.db.add(row)
        record_admin_action(self.db, "content.update", actor_id=admin.id, details={"key": key})
        self.db.commit()
        self.db.refresh(row)
        return self._entry(key, row)
