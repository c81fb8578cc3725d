"""Fixed-window request throttling keyed by client and route class.

Buckets live in process memory only; a multi-process deployment would keep
the same windowing and swap the dictionary for a shared store.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import hashlib
import logging
import math
from threading import Lock
import time

from quizplay.constants.rate_limit_constants import RATE_LIMITS, ROUTE_API, SWEEP_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RateLimitRule:
    limit: int
    window_seconds: float


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Outcome of one throttle check. Rejection is a value, not an exception."""

    allowed: bool
    remaining: int
    reset_time: float
    limit: int

    def retry_after_seconds(self, now: float) -> int:
        return max(0, math.ceil(self.reset_time - now))


@dataclass(slots=True)
class _Bucket:
    count: int
    reset_time: float


DEFAULT_RULES: dict[str, RateLimitRule] = {
    route_class: RateLimitRule(limit=limit, window_seconds=window)
    for route_class, (limit, window) in RATE_LIMITS.items()
}


class RateLimiter:
    """Counts requests per ``(client_id, route_class)`` inside fixed windows."""

    def __init__(
        self,
        rules: Mapping[str, RateLimitRule] | None = None,
        clock: Callable[[], float] = time.time,
        sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._rules = dict(rules or DEFAULT_RULES)
        self._clock = clock
        self._sweep_interval = sweep_interval_seconds
        self._buckets: dict[tuple[str, str], _Bucket] = {}
        self._lock = Lock()
        self._last_sweep = clock()

    def rule_for(self, route_class: str) -> RateLimitRule:
        return self._rules.get(route_class) or self._rules[ROUTE_API]

    def check(self, client_id: str, route_class: str = ROUTE_API) -> RateLimitDecision:
        rule = self.rule_for(route_class)
        key = (client_id, route_class)
        with self._lock:
            now = self._clock()
            self._sweep(now)

            bucket = self._buckets.get(key)
            if bucket is None or now > bucket.reset_time:
                bucket = _Bucket(count=1, reset_time=now + rule.window_seconds)
                self._buckets[key] = bucket
                return RateLimitDecision(True, rule.limit - 1, bucket.reset_time, rule.limit)

            if bucket.count >= rule.limit:
                logger.warning("Rate limit exceeded for %s on %s", client_id, route_class)
                return RateLimitDecision(False, 0, bucket.reset_time, rule.limit)

            bucket.count += 1
            return RateLimitDecision(True, rule.limit - bucket.count, bucket.reset_time, rule.limit)

    def now(self) -> float:
        return self._clock()

    def reset(self, client_id: str, route_class: str | None = None) -> None:
        """Forget one client's buckets, for every route class unless one is given."""
        with self._lock:
            for key in list(self._buckets):
                if key[0] == client_id and (route_class is None or key[1] == route_class):
                    del self._buckets[key]

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._last_sweep = self._clock()

    def bucket_count(self) -> int:
        with self._lock:
            return len(self._buckets)

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self._sweep_interval:
            return
        expired = [key for key, bucket in self._buckets.items() if now > bucket.reset_time]
        for key in expired:
            del self._buckets[key]
        self._last_sweep = now
        if expired:
            logger.debug("Swept %d expired rate-limit buckets", len(expired))


def resolve_client_id(headers: Mapping[str, str]) -> str:
    """Identify a client from proxy headers, falling back to a browser fingerprint."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    user_agent = headers.get("user-agent") or "unknown"
    language = headers.get("accept-language") or "unknown"
    digest = hashlib.sha256(f"{user_agent}{language}".encode("utf-8")).hexdigest()
    return f"anon-{digest[:16]}"


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(math.ceil(decision.reset_time)),
    }
