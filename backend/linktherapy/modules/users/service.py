from __future__ import annotations

from sqlalchemy.orm import Session

from linktherapy.core.clock import utcnow
from linktherapy.core.errors import ConflictError
from linktherapy.core.security import get_password_hash, verify_password
from .models import ROLES, User
from .repository import UsersRepository


class UsersService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = UsersRepository(db)

    def register_user(
        self,
        email: str,
        password: str,
        *,
        role: str,
        full_name: str | None = None,
        email_confirmed: bool = False,
        commit: bool = True,
    ) -> User:
        if role not in ROLES:
            raise ValueError(f"Unknown role '{role}'")
        normalized = email.strip().lower()
        if self.repo.get_by_email(normalized):
            raise ConflictError("An account with this email already exists")
        user = User(
            email=normalized,
            full_name=full_name,
            hashed_password=get_password_hash(password),
            role=role,
            is_active=True,
            email_confirmed_at=utcnow() if email_confirmed else None,
        )
        return self.repo.create(user, commit=commit)

    def authenticate(self, email: str, password: str) -> User | None:
        user = self.repo.get_by_email(email)
        if not user or not user.hashed_password:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    def set_password(self, user: User, password: str) -> User:
        user.hashed_password = get_password_hash(password)
        if user.email_confirmed_at is None:
            user.email_confirmed_at = utcnow()
        return self.repo.save(user)
