"""
Fixed-window, in-memory rate limiting.

State lives in this process only. Behind several workers or instances every
process counts independently, so the effective limit is multiplied.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Callable

from fastapi import HTTPException, Request, status

from .config import settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    window_seconds: int
    max_requests: int


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float

    @property
    def retry_after(self) -> int:
        return max(0, int(self.reset_at - time.time()) + 1)

    @property
    def reset_at_iso(self) -> str:
        return datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat()


RULES: dict[str, RateLimitRule] = {
    "contact_request": RateLimitRule(window_seconds=60 * 60, max_requests=5),
    "auth_action": RateLimitRule(window_seconds=15 * 60, max_requests=10),
    "public_api": RateLimitRule(window_seconds=60, max_requests=100),
}


class RateLimiter:
    def __init__(
        self,
        rules: dict[str, RateLimitRule],
        *,
        sweep_every: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.rules = dict(rules)
        self.sweep_every = max(1, sweep_every)
        self.clock = clock
        # {bucket: {identifier: [count, reset_at]}}
        self._stores: dict[str, dict[str, list[float]]] = {}
        self._lock = Lock()
        self._checks = 0

    def check(self, identifier: str, bucket: str) -> RateLimitResult:
        rule = self.rules[bucket]
        now = self.clock()
        with self._lock:
            store = self._stores.setdefault(bucket, {})
            self._checks += 1
            if self._checks % self.sweep_every == 0:
                self._sweep(now)

            record = store.get(identifier)
            if record is None or record[1] <= now:
                reset_at = now + rule.window_seconds
                store[identifier] = [1, reset_at]
                return RateLimitResult(allowed=True, remaining=rule.max_requests - 1, reset_at=reset_at)

            count, reset_at = int(record[0]), record[1]
            if count >= rule.max_requests:
                return RateLimitResult(allowed=False, remaining=0, reset_at=reset_at)

            record[0] = count + 1
            return RateLimitResult(allowed=True, remaining=rule.max_requests - count - 1, reset_at=reset_at)

    def _sweep(self, now: float) -> None:
        removed = 0
        for store in self._stores.values():
            expired = [key for key, (_, reset_at) in store.items() if reset_at <= now]
            for key in expired:
                del store[key]
            removed += len(expired)
        if removed:
            logger.debug("Swept %d expired rate limit entries", removed)

    def reset(self) -> None:
        with self._lock:
            self._stores.clear()
            self._checks = 0


limiter = RateLimiter(RULES, sweep_every=settings.RATE_LIMIT_SWEEP_EVERY)


def get_client_ip(request: Request) -> str:
    headers = request.headers
    cf_ip = headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit(bucket: str):
    """
    Build a dependency enforcing the named bucket per client IP.

        @router.post("/contact-requests", dependencies=[Depends(rate_limit("contact_request"))])
    """
    if bucket not in RULES:
        raise KeyError(f"Unknown rate limit bucket '{bucket}'")

    def dependency(request: Request) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return
        ip = get_client_ip(request)
        result = limiter.check(ip, bucket)
        if not result.allowed:
            logger.warning("Rate limit exceeded for %s on %s (%s)", ip, bucket, request.url.path)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "Too many attempts. Please try again later.",
                    "resetAt": result.reset_at_iso,
                },
                headers={"Retry-After": str(result.retry_after)},
            )
        request.state.rate_limit_remaining = result.remaining

    return dependency
