"""Fixed-window request counters.

Redis holds the counters when it is reachable so every API instance shares
them; otherwise each process keeps its own.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from threading import Lock
from typing import Protocol

import redis

from app.core.config import settings

_LOG = logging.getLogger("app.rate_limit")

_MAX_TRACKED_KEYS = 10_000


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    current_value: int
    limit: int
    reset_at: datetime
    retry_after_seconds: int


def _result(count: int, limit: int, now: datetime, reset_at: datetime) -> RateLimitResult:
    return RateLimitResult(
        allowed=count <= limit,
        current_value=count,
        limit=limit,
        reset_at=reset_at,
        retry_after_seconds=max(0, int((reset_at - now).total_seconds())),
    )


class RateLimiter(Protocol):
    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        ...


@dataclass
class _Window:
    count: int
    reset_at: datetime


class InMemoryRateLimiter:
    """Process-local windows; state is lost on restart."""

    def __init__(self):
        self._windows: dict[str, _Window] = {}
        self._lock = Lock()

    def _prune(self, now: datetime) -> None:
        for key in [key for key, window in self._windows.items() if window.reset_at <= now]:
            del self._windows[key]

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        now = _now_utc()
        with self._lock:
            window = self._windows.get(key)
            if window is None or window.reset_at <= now:
                if len(self._windows) >= _MAX_TRACKED_KEYS:
                    self._prune(now)
                window = _Window(count=0, reset_at=now + timedelta(seconds=max(int(window_seconds), 1)))
                self._windows[key] = window
            window.count += 1
            return _result(window.count, limit, now, window.reset_at)


class RedisRateLimiter:
    def __init__(self, client: redis.Redis):
        self.client = client

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        window = max(int(window_seconds), 1)
        pipe = self.client.pipeline()
        pipe.set(key, 0, ex=window, nx=True)
        pipe.incr(key)
        pipe.ttl(key)
        _, count, ttl = pipe.execute()
        ttl = int(ttl)
        if ttl < 0:
            # A counter without expiry would never reset.
            self.client.expire(key, window)
            ttl = window
        now = _now_utc()
        return _result(int(count), limit, now, now + timedelta(seconds=ttl))


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    client = redis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=0.4,
        socket_connect_timeout=0.4,
    )
    try:
        client.ping()
    except redis.RedisError as exc:
        _LOG.warning("redis unavailable (%s); rate limits are tracked per process", type(exc).__name__)
        return InMemoryRateLimiter()
    return RedisRateLimiter(client)


def upload_rate_limit_key(*, uid: str | None, ip: str | None) -> str:
    if uid:
        return f"rl:upload:uid:{uid}"
    return f"rl:upload:ip:{ip or 'unknown'}"
