"""Fixed-window limiter and its HTTP behaviour."""

from starlette.requests import Request

from linktherapy.core.rate_limit import RateLimiter, RateLimitRule, get_client_ip


class Clock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _request(headers: dict[str, str], client=("10.0.0.9", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


class TestRateLimiter:
    def test_allows_up_to_limit_then_refuses(self):
        clock = Clock()
        limiter = RateLimiter({"b": RateLimitRule(window_seconds=60, max_requests=3)}, clock=clock)

        results = [limiter.check("1.1.1.1", "b") for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert results[-1].reset_at == 1_060.0

    def test_window_resets_after_expiry(self):
        clock = Clock()
        limiter = RateLimiter({"b": RateLimitRule(window_seconds=60, max_requests=1)}, clock=clock)
        assert limiter.check("ip", "b").allowed
        assert not limiter.check("ip", "b").allowed

        clock.now += 60
        assert limiter.check("ip", "b").allowed

    def test_identifiers_and_buckets_are_independent(self):
        limiter = RateLimiter(
            {
                "a": RateLimitRule(window_seconds=60, max_requests=1),
                "b": RateLimitRule(window_seconds=60, max_requests=1),
            },
            clock=Clock(),
        )
        assert limiter.check("x", "a").allowed
        assert limiter.check("y", "a").allowed
        assert limiter.check("x", "b").allowed
        assert not limiter.check("x", "a").allowed

    def test_sweep_drops_expired_entries(self):
        clock = Clock()
        limiter = RateLimiter({"b": RateLimitRule(window_seconds=10, max_requests=5)}, sweep_every=2, clock=clock)
        limiter.check("old", "b")
        clock.now += 11
        limiter.check("new", "b")

        assert "old" not in limiter._stores["b"]
        assert "new" in limiter._stores["b"]


class TestClientIp:
    def test_prefers_cloudflare_header(self):
        request = _request({"cf-connecting-ip": "1.2.3.4", "x-forwarded-for": "5.6.7.8"})
        assert get_client_ip(request) == "1.2.3.4"

    def test_uses_first_forwarded_entry(self):
        request = _request({"x-forwarded-for": "5.6.7.8, 9.9.9.9", "x-real-ip": "7.7.7.7"})
        assert get_client_ip(request) == "5.6.7.8"

    def test_falls_back_to_real_ip_then_peer(self):
        assert get_client_ip(_request({"x-real-ip": "7.7.7.7"})) == "7.7.7.7"
        assert get_client_ip(_request({})) == "10.0.0.9"

    def test_unknown_without_peer(self):
        assert get_client_ip(_request({}, client=None)) == "unknown"


def test_contact_requests_limited_to_five_per_hour(client, make_therapist):
    _, therapist = make_therapist()
    payload = {
        "therapist_id": therapist.user_id,
        "client_name": "Client",
        "client_email": "client@example.com",
    }
    headers = {"x-forwarded-for": "203.0.113.7"}

    statuses = [client.post("/api/contact-requests", json=payload, headers=headers).status_code for _ in range(6)]

    assert statuses == [201] * 5 + [429]
    refused = client.post("/api/contact-requests", json=payload, headers=headers)
    assert refused.json()["error"].startswith("Too many attempts")
    assert "resetAt" in refused.json()
    assert int(refused.headers["Retry-After"]) > 0

    other = client.post("/api/contact-requests", json=payload, headers={"x-forwarded-for": "203.0.113.8"})
    assert other.status_code == 201
