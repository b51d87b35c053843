import os
import time
from datetime import datetime, timezone

# Settings are read at import time, so the environment must be ready first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_TOKEN_SECRET"] = "test-secret-key-with-enough-entropy-0123456789"
os.environ["SITE_URL"] = "https://linktherapy.test"
os.environ["QSTASH_TOKEN"] = "qstash-test-token"
os.environ["QSTASH_CURRENT_SIGNING_KEY"] = "sig-current"
os.environ["QSTASH_NEXT_SIGNING_KEY"] = "sig-next"
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

import jwt
import pytest
from fastapi.testclient import TestClient

from linktherapy.core.database import Base, SessionLocal, engine
from linktherapy.core.rate_limit import limiter
from linktherapy.core.security import create_access_token
from linktherapy.main import app
from linktherapy.modules.therapists.models import STATUS_ACTIVE, Therapist
from linktherapy.modules.therapists.repository import TherapistsRepository
from linktherapy.modules.users.models import ROLE_ADMIN, ROLE_THERAPIST
from linktherapy.modules.users.service import UsersService
from linktherapy.services.email import EmailResult, EmailSender, get_email_sender
from linktherapy.services.qstash import (
    QStashClient,
    QStashError,
    QStashReceiver,
    get_qstash_client,
    get_qstash_receiver,
)


class FakeMailer(EmailSender):
    """Records outgoing mail instead of calling Resend."""

    def __init__(self):
        super().__init__(api_key="re_test", from_address="LinkTherapy <test@example.com>", site_url="https://linktherapy.test")
        self.sent: list[dict] = []
        self.fail = False

    def send(self, to, subject, html_body, text_body):
        self.sent.append({"to": to, "subject": subject, "html": html_body, "text": text_body})
        if self.fail:
            return EmailResult(success=False, error="provider down")
        return EmailResult(success=True, email_id=f"email-{len(self.sent)}")


class FakeQStash(QStashClient):
    def __init__(self):
        super().__init__(base_url="https://qstash.test", token="qstash-test-token")
        self.published: list[dict] = []
        self.fail = False

    def publish_json(self, destination, body, *, not_before=None):
        if self.fail:
            raise QStashError("publish failed")
        self.published.append({"url": destination, "body": body, "not_before": not_before})
        return f"msg-{len(self.published)}"


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    limiter.reset()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def qstash():
    return FakeQStash()


@pytest.fixture
def receiver():
    return QStashReceiver(current_signing_key="sig-current", next_signing_key="sig-next")


@pytest.fixture
def client(mailer, qstash, receiver):
    app.dependency_overrides[get_email_sender] = lambda: mailer
    app.dependency_overrides[get_qstash_client] = lambda: qstash
    app.dependency_overrides[get_qstash_receiver] = lambda: receiver
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(user) -> dict[str, str]:
    token = create_access_token(user.id, extra_claims={"role": user.role})
    return {"Authorization": f"Bearer {token}"}


def sign_body(body: bytes, key: str = "sig-current", **overrides) -> str:
    now = int(time.time())
    claims = {
        "iss": "Upstash",
        "sub": "https://linktherapy.test/api/webhooks/qstash",
        "iat": now,
        "nbf": now,
        "exp": now + 300,
        "body": QStashReceiver.body_hash(body),
    }
    claims.update(overrides)
    return jwt.encode(claims, key, algorithm="HS256")


@pytest.fixture
def admin(db):
    return UsersService(db).register_user(
        "admin@example.com", "admin-password-123", role=ROLE_ADMIN, full_name="Admin", email_confirmed=True
    )


@pytest.fixture
def make_therapist(db):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        locations = fields.pop("locations", ["Beirut"])
        email = fields.pop("email", f"therapist{counter['n']}@example.com")
        user = UsersService(db).register_user(
            email, "therapist-password-1", role=ROLE_THERAPIST, full_name=fields.get("full_name"), email_confirmed=True
        )
        defaults = dict(
            user_id=user.id,
            full_name=f"Therapist {counter['n']}",
            status=STATUS_ACTIVE,
            ranking_points=50,
            years_of_experience=5,
            session_price_45_min=60.0,
            languages=["English"],
            interests=["Anxiety"],
            gender="female",
            religion="Other",
            age_range="29-36",
            created_at=datetime(2024, 1, counter["n"], tzinfo=timezone.utc),
        )
        defaults.update(fields)
        therapist = Therapist(**defaults)
        db.add(therapist)
        db.flush()
        TherapistsRepository(db).replace_locations(therapist, locations)
        db.commit()
        db.refresh(therapist)
        return user, therapist

    return _make
