from concurrent.futures import ThreadPoolExecutor

import pytest

from quizplay.constants.rate_limit_constants import ROUTE_API, ROUTE_CREATE, ROUTE_SCORE
from quizplay.core.services.rate_limiter import (
    RateLimiter,
    RateLimitRule,
    rate_limit_headers,
    resolve_client_id,
)


@pytest.fixture
def limiter(clock):
    return RateLimiter(rules={ROUTE_API: RateLimitRule(limit=10, window_seconds=60)}, clock=clock)


def test_window_allows_limit_then_rejects_until_reset(limiter, clock):
    decisions = [limiter.check("client") for _ in range(10)]
    assert all(d.allowed for d in decisions)
    assert [d.remaining for d in decisions] == list(range(9, -1, -1))

    rejected = limiter.check("client")
    assert not rejected.allowed
    assert rejected.remaining == 0
    assert rejected.reset_time == decisions[0].reset_time
    assert rejected.retry_after_seconds(clock()) == 60

    clock.advance(60)
    assert not limiter.check("client").allowed

    clock.advance(0.001)
    fresh = limiter.check("client")
    assert fresh.allowed
    assert fresh.remaining == 9
    assert fresh.reset_time == pytest.approx(clock() + 60)


def test_clients_and_route_classes_are_counted_separately(clock):
    limiter = RateLimiter(
        rules={ROUTE_API: RateLimitRule(1, 60), ROUTE_SCORE: RateLimitRule(1, 60)},
        clock=clock,
    )
    assert limiter.check("a", ROUTE_API).allowed
    assert limiter.check("b", ROUTE_API).allowed
    assert limiter.check("a", ROUTE_SCORE).allowed
    assert not limiter.check("a", ROUTE_API).allowed


def test_unknown_route_class_uses_general_rule(limiter):
    assert limiter.rule_for(ROUTE_CREATE) == limiter.rule_for(ROUTE_API)
    assert limiter.check("client", "mystery").limit == 10


def test_default_rules():
    limiter = RateLimiter()
    assert limiter.rule_for(ROUTE_API).limit == 100
    assert limiter.rule_for(ROUTE_CREATE).limit == 20
    assert limiter.rule_for(ROUTE_SCORE).limit == 30


def test_sweep_drops_expired_buckets(limiter, clock):
    limiter.check("old")
    clock.advance(30)
    limiter.check("recent")
    assert limiter.bucket_count() == 2

    clock.advance(31)
    limiter.check("new")
    # "old" reset at +60 and is gone; "recent" resets at +90 and stays.
    assert limiter.bucket_count() == 2


def test_reset_forgets_one_client(limiter):
    for _ in range(10):
        limiter.check("client")
    limiter.check("other")
    limiter.reset("client")
    assert limiter.check("client").allowed
    assert limiter.bucket_count() == 2
    limiter.clear()
    assert limiter.bucket_count() == 0


def test_resolve_client_id_prefers_forwarded_for():
    headers = {"x-forwarded-for": " 203.0.113.7 , 10.0.0.1", "x-real-ip": "10.0.0.2"}
    assert resolve_client_id(headers) == "203.0.113.7"


def test_resolve_client_id_falls_back_to_real_ip():
    assert resolve_client_id({"x-real-ip": "198.51.100.4"}) == "198.51.100.4"


def test_resolve_client_id_fingerprint_is_stable():
    headers = {"user-agent": "Browser/1.0", "accept-language": "nb-NO"}
    client_id = resolve_client_id(headers)
    assert client_id.startswith("anon-")
    assert len(client_id) == len("anon-") + 16
    assert resolve_client_id(dict(headers)) == client_id
    assert resolve_client_id({"user-agent": "Other/2.0", "accept-language": "nb-NO"}) != client_id


def test_rate_limit_headers(limiter, clock):
    decision = limiter.check("client")
    headers = rate_limit_headers(decision)
    assert headers["X-RateLimit-Limit"] == "10"
    assert headers["X-RateLimit-Remaining"] == "9"
    assert int(headers["X-RateLimit-Reset"]) >= int(clock() + 60)


def test_concurrent_checks_lose_no_increments(limiter):
    with ThreadPoolExecutor(max_workers=8) as pool:
        decisions = list(pool.map(lambda _: limiter.check("client"), range(50)))

    allowed = [d for d in decisions if d.allowed]
    assert len(allowed) == 10
    assert sorted(d.remaining for d in allowed) == list(range(10))
    assert all(d.remaining == 0 for d in decisions if not d.allowed)
