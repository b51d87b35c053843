from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from linktherapy.core.config import settings
from linktherapy.core.security import get_password_hash
from .models import ROLE_ADMIN
from .repository import UsersRepository
from .service import UsersService


logger = logging.getLogger(__name__)


def ensure_default_admin(db: Session) -> None:
    email = settings.ADMIN_EMAIL
    password = settings.ADMIN_PASSWORD
    if not email or not password:
        logger.info("ADMIN_EMAIL or ADMIN_PASSWORD not set; skipping admin bootstrap")
        return

    repo = UsersRepository(db)
    existing = repo.get_by_email(email)
    if existing:
        # Ensure admin account has correct role, activation and password
        existing.role = ROLE_ADMIN
        existing.is_active = True
        existing.hashed_password = get_password_hash(password)
        repo.save(existing)
        logger.info("Default admin '%s' refreshed", existing.email)
        return

    try:
        user = UsersService(db).register_user(
            email,
            password,
            role=ROLE_ADMIN,
            full_name=settings.ADMIN_FULL_NAME,
            email_confirmed=True,
        )
    except (IntegrityError, SQLAlchemyError) as exc:
        db.rollback()
        logger.warning("Failed to create default admin: %s", exc)
        return
    logger.info("Default admin '%s' created", user.email)
