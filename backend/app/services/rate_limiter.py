"""
Application-level rate limiting (in-memory token bucket)

Used for unauthenticated endpoints such as login. State lives in the
process, so limits apply per worker.
"""
import asyncio
import time
from typing import Dict, Tuple, Optional
from dataclasses import dataclass

from app.core.config import settings


class RateLimitExceeded(Exception):
    """Raised when rate limit is exceeded"""
    def __init__(self, retry_after: int, message: str = "Rate limit exceeded"):
        self.retry_after = retry_after
        self.message = message
        super().__init__(message)


@dataclass
class RateLimitConfig:
    """Configuration for a rate limit"""
    requests: int  # Number of requests allowed per window
    window_seconds: int
    burst: Optional[int] = None  # defaults to requests

    def __post_init__(self):
        if self.burst is None:
            self.burst = self.requests


@dataclass
class RateLimitState:
    tokens: float
    last_update: float


class TokenBucketRateLimiter:
    """
    Token bucket rate limiter.

    Tokens refill at requests/window_seconds and each request consumes one.
    """

    def __init__(self, limits: Dict[str, RateLimitConfig]):
        self.limits = limits
        self._buckets: Dict[str, RateLimitState] = {}
        self._lock = asyncio.Lock()
        self._cleanup_interval = 300
        self._last_cleanup = time.time()

    async def check(self, key: str, config: RateLimitConfig, cost: int = 1) -> Tuple[bool, int]:
        """
        Consume tokens for key if available.

        Returns:
            (allowed, retry_after_seconds); retry_after is 0 when allowed
        """
        async with self._lock:
            now = time.time()

            if now - self._last_cleanup > self._cleanup_interval:
                self._cleanup(now)

            bucket = self._buckets.setdefault(key, RateLimitState(tokens=config.burst, last_update=now))

            refill_rate = config.requests / config.window_seconds
            bucket.tokens = min(config.burst, bucket.tokens + (now - bucket.last_update) * refill_rate)
            bucket.last_update = now

            if bucket.tokens >= cost:
                bucket.tokens -= cost
                return True, 0

            return False, int((cost - bucket.tokens) / refill_rate) + 1

    def _cleanup(self, now: float):
        """Drop buckets unused for an hour"""
        stale = [k for k, s in self._buckets.items() if now - s.last_update > 3600]
        for key in stale:
            del self._buckets[key]
        self._last_cleanup = now

    async def reset(self, key: Optional[str] = None):
        """Reset one bucket, or all of them"""
        async with self._lock:
            if key is None:
                self._buckets.clear()
            else:
                self._buckets.pop(key, None)

    async def check_rate_limit(self, action: str, identifier: str, cost: int = 1) -> None:
        """
        Raises:
            RateLimitExceeded: If identifier has exhausted the limit for action
        """
        config = self.limits.get(action)
        if not config:
            return

        allowed, retry_after = await self.check(f"{action}:{identifier}", config, cost)
        if not allowed:
            raise RateLimitExceeded(retry_after, f"Rate limit exceeded for {action}")


RATE_LIMITS = {
    "login_attempt": RateLimitConfig(
        requests=settings.LOGIN_RATE_LIMIT,
        window_seconds=settings.LOGIN_RATE_WINDOW_SECONDS,
    ),
    "signup": RateLimitConfig(requests=5, window_seconds=60),
    "unlock_attempt": RateLimitConfig(requests=10, window_seconds=300),
}


# Global rate limiter instance
rate_limiter = TokenBucketRateLimiter(RATE_LIMITS)
