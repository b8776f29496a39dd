"""
Per-IP rate limiting for the API.

Fixed-window counters: each client IP gets ``max_requests`` per window.
Redis holds the counters when REDIS_URL is configured, so the limit is shared
across workers; otherwise counters live in this process.
"""

import logging
import threading
import time
from typing import Dict, Optional, Tuple

import redis
from fastapi import Request

from referral_tracker.core.config import Settings
from referral_tracker.core.errors import RateLimitError

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


class RateLimiter:
    """Base class for rate limit counter stores"""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    def check(self, key: str) -> None:
        """
        Count one request against ``key``.

        Raises:
            RateLimitError: If the key already used up its window
        """
        raise NotImplementedError

    def reset(self, key: str) -> None:
        raise NotImplementedError


class RedisRateLimiter(RateLimiter):
    """Redis-backed limiter shared by every worker process"""

    def __init__(self, client: redis.Redis, max_requests: int, window_seconds: int):
        super().__init__(max_requests, window_seconds)
        self.redis_client = client

    def check(self, key: str) -> None:
        try:
            current_count = self.redis_client.get(key)

            if current_count is None:
                # First request in this window
                self.redis_client.setex(key, self.window_seconds, 1)
                return

            if int(current_count) >= self.max_requests:
                ttl = self.redis_client.ttl(key)
                raise RateLimitError(RATE_LIMIT_MESSAGE, retry_after=max(int(ttl), 1))

            self.redis_client.incr(key)

        except redis.RedisError as e:
            # Fail open: an unavailable Redis must not take the API down with it
            logger.warning(f"Rate limiter unavailable, allowing request: {e}")

    def reset(self, key: str) -> None:
        try:
            self.redis_client.delete(key)
        except redis.RedisError as e:
            logger.warning(f"Rate limiter reset failed: {e}")


class MemoryRateLimiter(RateLimiter):
    """In-process limiter for single-worker deployments and local runs"""

    def __init__(self, max_requests: int, window_seconds: int, clock=time.monotonic):
        super().__init__(max_requests, window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, Tuple[float, int]] = {}

    def check(self, key: str) -> None:
        now = self._clock()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0

            if count >= self.max_requests:
                retry_after = self.window_seconds - (now - started)
                raise RateLimitError(RATE_LIMIT_MESSAGE, retry_after=max(int(retry_after + 0.999), 1))

            self._windows[key] = (started, count + 1)
            self._prune(now)

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def _prune(self, now: float) -> None:
        # Keep memory bounded by dropping windows that already expired
        if len(self._windows) < 10000:
            return
        expired = [k for k, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for k in expired:
            del self._windows[k]


def get_rate_limiter(settings: Settings, redis_client: Optional[redis.Redis] = None) -> Optional[RateLimiter]:
    """Build the limiter configured in settings, or None when limiting is off."""
    if not settings.RATE_LIMIT_ENABLED:
        return None

    if redis_client is None and settings.REDIS_URL:
        redis_client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=1,
            socket_timeout=1,
        )

    if redis_client is not None:
        return RedisRateLimiter(redis_client, settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)
    return MemoryRateLimiter(settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)


def get_client_ip(request: Request) -> str:
    """
    Extract the client's IP address from the request.

    Handles X-Forwarded-For header for proxied requests.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first (client IP)
        return forwarded_for.split(",")[0].strip()

    return request.client.host if request.client else "unknown"
