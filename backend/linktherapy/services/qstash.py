"""
Upstash QStash client: publish delayed HTTP callbacks and verify the
signatures QStash attaches when it delivers them.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from datetime import datetime
from functools import lru_cache
from typing import Any, Optional

import jwt
import requests
from requests import RequestException

from linktherapy.core.config import settings


logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Upstash-Signature"
SIGNATURE_ISSUER = "Upstash"


class QStashError(RuntimeError):
    pass


class SignatureError(ValueError):
    pass


class QStashClient:
    def __init__(self, *, base_url: str, token: str | None, timeout: int = 15) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = requests.Session()

    def publish_json(
        self,
        destination: str,
        body: dict[str, Any],
        *,
        not_before: Optional[datetime] = None,
    ) -> str:
        """Enqueue ``body`` for delivery to ``destination``; returns the message id."""
        if not self.token:
            raise QStashError("QSTASH_TOKEN is not configured")
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }
        if not_before is not None:
            headers["Upstash-Not-Before"] = str(int(not_before.timestamp()))
        url = f"{self.base_url}/v2/publish/{destination}"
        try:
            response = self.session.post(url, json=body, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except RequestException as exc:
            raise QStashError(f"Publish to {destination} failed: {exc}") from exc
        data = response.json()
        message_id = data.get("messageId") if isinstance(data, dict) else None
        if not message_id:
            raise QStashError(f"Unexpected publish response: {data}")
        return message_id


class QStashReceiver:
    def __init__(
        self,
        *,
        current_signing_key: str | None,
        next_signing_key: str | None,
        clock_tolerance: int = 5,
    ) -> None:
        self.current_signing_key = current_signing_key
        self.next_signing_key = next_signing_key
        self.clock_tolerance = clock_tolerance

    @staticmethod
    def body_hash(body: bytes) -> str:
        digest = hashlib.sha256(body).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

    def verify(self, signature: str, body: bytes, url: str | None = None) -> dict[str, Any]:
        keys = [k for k in (self.current_signing_key, self.next_signing_key) if k]
        if not keys:
            raise SignatureError("QStash signing keys are not configured")
        last_error: Exception | None = None
        for key in keys:
            try:
                return self._verify_with_key(signature, body, key, url)
            except SignatureError as exc:
                last_error = exc
        raise SignatureError(str(last_error) if last_error else "Invalid signature")

    def _verify_with_key(self, signature: str, body: bytes, key: str, url: str | None) -> dict[str, Any]:
        try:
            claims = jwt.decode(
                signature,
                key,
                algorithms=["HS256"],
                issuer=SIGNATURE_ISSUER,
                leeway=self.clock_tolerance,
                options={"require": ["iss", "exp", "body"]},
            )
        except jwt.PyJWTError as exc:
            raise SignatureError(f"Invalid signature: {exc}") from exc
        if url is not None and claims.get("sub") not in (None, url):
            raise SignatureError("Signature was issued for a different URL")
        expected = self.body_hash(body)
        if str(claims.get("body", "")).rstrip("=") != expected:
            raise SignatureError("Body hash does not match signature")
        return claims


@lru_cache
def get_qstash_client() -> QStashClient:
    return QStashClient(
        base_url=str(settings.QSTASH_URL),
        token=settings.QSTASH_TOKEN,
        timeout=settings.QSTASH_TIMEOUT_SECONDS,
    )


@lru_cache
def get_qstash_receiver() -> QStashReceiver:
    return QStashReceiver(
        current_signing_key=settings.QSTASH_CURRENT_SIGNING_KEY,
        next_signing_key=settings.QSTASH_NEXT_SIGNING_KEY,
    )
