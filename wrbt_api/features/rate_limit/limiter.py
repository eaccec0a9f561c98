"""Per-IP, per-bucket rate limiting for the public pairing endpoints."""

import asyncio
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request, Response
from loguru import logger

from wrbt_api.common.errors import RateLimited
from wrbt_api.config.settings import RateLimitSettings
from wrbt_api.features.rate_limit.store import CounterStore, InMemoryCounterStore

REGISTER_BUCKET = "register"
STATUS_BUCKET = "status"


@dataclass(frozen=True)
class RateLimitPolicy:
    max_requests: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single ``allow()`` call."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int


class RateLimiter:
    """Fixed-window limiter keyed by (ip, bucket).

    Every call counts, including denied ones, so a client hammering a denied
    bucket does not get a fresh allowance mid-window.
    """

    def __init__(
        self,
        policies: dict[str, RateLimitPolicy],
        store: CounterStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.policies = policies
        self.clock = clock
        self.store: CounterStore = store or InMemoryCounterStore(clock=clock)

    @classmethod
    def from_settings(cls, rate_settings: RateLimitSettings, store: CounterStore | None = None) -> "RateLimiter":
        policies = {
            REGISTER_BUCKET: RateLimitPolicy(
                rate_settings.register_max_requests, rate_settings.register_window_seconds
            ),
            STATUS_BUCKET: RateLimitPolicy(
                rate_settings.status_max_requests, rate_settings.status_window_seconds
            ),
        }
        logger.info(
            "RateLimiter initialized",
            extra={name: f"{p.max_requests}/{p.window_seconds}s" for name, p in policies.items()},
        )
        return cls(policies, store)

    def allow(self, ip: str, bucket: str) -> RateLimitDecision:
        """Count one request for (ip, bucket) and decide whether it may proceed.

        Raises:
            KeyError: If the bucket has no configured policy
        """
        policy = self.policies[bucket]
        counter = self.store.increment(f"{bucket}:{ip}", policy.window_seconds)
        allowed = counter.count <= policy.max_requests
        remaining = max(0, policy.max_requests - counter.count)

        retry_after = 0
        if not allowed:
            retry_after = max(1, math.ceil(counter.reset_at - self.clock()))

        return RateLimitDecision(
            allowed=allowed,
            limit=policy.max_requests,
            remaining=remaining,
            reset_at=counter.reset_at,
            retry_after=retry_after,
        )

    def purge_expired(self) -> int:
        return self.store.purge_expired()


def client_ip(request: Request) -> str:
    """Best-effort client address (first X-Forwarded-For hop, else peer)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# Global limiter (set during startup, replaceable in tests)
_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        from wrbt_api.config.settings import settings

        _rate_limiter = RateLimiter.from_settings(settings.rate_limit)
    return _rate_limiter


def set_rate_limiter(limiter: RateLimiter | None) -> None:
    global _rate_limiter
    _rate_limiter = limiter


def rate_limit(bucket: str):
    """FastAPI dependency factory enforcing ``bucket`` for the caller's IP.

    Allowed responses carry X-RateLimit-Limit/Remaining/Reset headers; denied
    requests raise ``RateLimited`` (429 with Retry-After).
    """

    async def dependency(request: Request, response: Response) -> RateLimitDecision:
        ip = client_ip(request)
        decision = get_rate_limiter().allow(ip, bucket)
        if not decision.allowed:
            logger.warning(
                "Rate limit hit",
                extra={"bucket": bucket, "ip": ip, "retry_after": decision.retry_after},
            )
            raise RateLimited(
                "Rate limit exceeded, try again later", retry_after=decision.retry_after
            )

        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        response.headers["X-RateLimit-Reset"] = str(int(decision.reset_at))
        return decision

    return dependency


async def rate_limit_cleanup(interval_seconds: int) -> None:
    """Background task: periodically purge expired windows."""
    logger.info(f"Rate limit cleanup task started (interval={interval_seconds}s)")
    while True:
        await asyncio.sleep(interval_seconds)
        removed = get_rate_limiter().purge_expired()
        if removed:
            logger.debug(f"Rate limit cleanup removed {removed} expired windows")
