"""
Hybrid in-memory + Redis rate limiting
Used to throttle login attempts per client IP and email
"""

import logging
import os
import time
from dataclasses import dataclass
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from .config import LOGIN_RATE_LIMIT, LOGIN_RATE_WINDOW_SECONDS, RATE_LIMIT_ENABLED

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None
_client_lock = Lock()

REDIS_SYNC_INTERVAL = 10  # push local counts to Redis at most this often (seconds)
CLEANUP_INTERVAL = 60


def _mask(url: str) -> str:
    if "@" not in url:
        return "****"
    scheme = url.split(":", 1)[0]
    return f"{scheme}:****@{url.split('@', 1)[1]}"


def get_redis_client() -> redis.Redis:
    """
    Shared Redis client, created on first use.
    REDIS_URL wins over REDIS_HOST/REDIS_PORT/REDIS_PASSWORD/REDIS_DB/REDIS_SSL.
    """
    global _redis_client

    with _client_lock:
        if _redis_client is not None:
            return _redis_client

        options = {
            "decode_responses": True,
            "socket_connect_timeout": 15,
            "socket_timeout": 30,
            "retry_on_timeout": True,
            "health_check_interval": 30,
            "max_connections": 20,
        }
        redis_url = os.getenv("REDIS_URL")
        try:
            if redis_url:
                logger.info(f"📡 Connecting to Redis via URL: {_mask(redis_url)}")
                client = redis.from_url(redis_url, **options)
            else:
                host = os.getenv("REDIS_HOST", "localhost")
                port = int(os.getenv("REDIS_PORT", "6379"))
                logger.info(f"📡 Connecting to Redis at {host}:{port}")
                client = redis.Redis(
                    host=host,
                    port=port,
                    password=os.getenv("REDIS_PASSWORD"),
                    db=int(os.getenv("REDIS_DB", "0")),
                    ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                    **options,
                )
            client.ping()
        except Exception as e:
            logger.error(f"❌ Failed to connect to Redis: {e}")
            raise

        _redis_client = client
        logger.info("Redis connected successfully")
        return client


@dataclass
class _Window:
    count: int
    reset_at: int
    synced_at: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    count: int
    retry_after: int


class HybridRateLimiter:
    """
    Fixed-window counter kept in process memory and mirrored to Redis.

    A key seen for the first time is seeded from Redis, so attempts counted
    by other workers carry over. Redis errors degrade to memory-only counting.
    """

    def __init__(self, client: redis.Redis):
        self.client = client
        self._windows: dict[str, _Window] = {}
        self._lock = Lock()
        self._last_cleanup = 0

    def _cleanup(self, now: int) -> None:
        if now - self._last_cleanup < CLEANUP_INTERVAL:
            return
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug(f"🧹 Cleaned up {len(expired)} expired rate limit windows")
        self._last_cleanup = now

    def _seed(self, key: str, window_seconds: int, now: int) -> _Window:
        try:
            stored = self.client.get(key)
            ttl = self.client.ttl(key)
            if stored and ttl > 0:
                return _Window(count=int(stored), reset_at=now + ttl, synced_at=now)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Failed to load {key} from Redis, counting in memory: {e}")
        return _Window(count=0, reset_at=now + window_seconds, synced_at=now)

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = int(time.time())
        with self._lock:
            self._cleanup(now)

            window = self._windows.get(key)
            if window is None:
                window = self._windows[key] = self._seed(key, window_seconds, now)
            elif now >= window.reset_at:
                window.count = 0
                window.reset_at = now + window_seconds
                window.synced_at = 0

            allowed = window.count < limit
            if allowed:
                window.count += 1

            if now - window.synced_at >= REDIS_SYNC_INTERVAL:
                try:
                    self.client.set(key, window.count, ex=max(1, window.reset_at - now))
                    window.synced_at = now
                except redis.RedisError as e:
                    logger.warning(f"⚠️ Failed to sync {key} to Redis: {e}")

            return RateLimitResult(allowed=allowed, count=window.count, retry_after=max(0, window.reset_at - now))


_limiter: Optional[HybridRateLimiter] = None


def get_login_limiter() -> HybridRateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = HybridRateLimiter(get_redis_client())
    return _limiter


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def enforce_login_rate_limit(request: Request, email: str) -> None:
    """
    Throttle login attempts per client IP + email.

    Raises 429 once LOGIN_RATE_LIMIT attempts were made within the window,
    and 503 when the limiter backend is unreachable (fail-closed).
    """
    if not RATE_LIMIT_ENABLED:
        return

    key = f"login_attempts:{client_ip(request)}:{(email or '').strip().lower()}"
    try:
        limiter = get_login_limiter()
    except Exception as e:
        logger.warning("🔒 Denying login due to rate limiting error (fail-closed mode)")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiting service temporarily unavailable",
        ) from e

    result = limiter.hit(key, LOGIN_RATE_LIMIT, LOGIN_RATE_WINDOW_SECONDS)
    if not result.allowed:
        logger.warning(f"🚫 Login rate limit EXCEEDED for {key} - {result.count}/{LOGIN_RATE_LIMIT}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "code": "RATE_LIMITED",
                "message": "Too many authentication attempts. Please try again later.",
                "retry_after": result.retry_after,
            },
            headers={"Retry-After": str(result.retry_after)},
        )
