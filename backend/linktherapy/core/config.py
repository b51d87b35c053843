from __future__ import annotations

from typing import List

from pydantic import AnyUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="", case_sensitive=False, extra="ignore")

    # Core
    DATABASE_URL: str
    ALLOWED_ORIGINS: str | None = "*"
    SITE_URL: AnyUrl | str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    # Auth
    AUTH_TOKEN_SECRET: str
    AUTH_TOKEN_TTL_SECONDS: int = 86400
    PASSWORD_RESET_TTL_SECONDS: int = 3600

    # Email (Resend)
    RESEND_API_KEY: str | None = None
    EMAIL_FROM_ADDRESS: str = "LinkTherapy <noreply@linktherapy.org>"

    # Scheduled webhooks (Upstash QStash)
    QSTASH_URL: AnyUrl | str = "https://qstash.upstash.io"
    QSTASH_TOKEN: str | None = None
    QSTASH_CURRENT_SIGNING_KEY: str | None = None
    QSTASH_NEXT_SIGNING_KEY: str | None = None
    QSTASH_TIMEOUT_SECONDS: int = 15

    # Commission and ranking
    COMMISSION_PER_SESSION: float = 6.0
    DEFAULT_RANKING_POINTS: int = 50
    RANKING_PAYMENT_BONUS: int = 10
    RANKING_OVERDUE_PENALTY: int = 20

    # Invitations
    INVITATION_TTL_DAYS: int = 7
    BULK_INVITE_MAX: int = 30

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_SWEEP_EVERY: int = 1000

    # Default administrator bootstrap
    ADMIN_EMAIL: str | None = None
    ADMIN_PASSWORD: str | None = None
    ADMIN_FULL_NAME: str | None = None

    @property
    def cors_origins(self) -> List[str]:
        if not self.ALLOWED_ORIGINS:
            return []
        raw = self.ALLOWED_ORIGINS
        if isinstance(raw, str):
            return [o.strip() for o in raw.split(",") if o.strip()]
        return list(raw)

    @property
    def site_url(self) -> str:
        return str(self.SITE_URL).rstrip("/")


settings = Settings()  # type: ignore[call-arg]
