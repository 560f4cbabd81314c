from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass
from threading import Lock
import time
from typing import Deque

from fastapi import HTTPException, status


@dataclass(frozen=True)
class RateLimit:
    scope: str
    limit: int
    window_seconds: int


FRIEND_REQUEST_LIMIT = RateLimit(scope="friend_requests", limit=50, window_seconds=24 * 60 * 60)
SEARCH_LIMIT = RateLimit(scope="search", limit=300, window_seconds=60)


class InMemoryRateLimiter:
    def __init__(self) -> None:
        self._buckets: dict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def check(self, *, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        now = time.time()
        earliest = now - window_seconds
        retry_after = 1
        with self._lock:
            bucket = self._buckets[key]
            while bucket and bucket[0] < earliest:
                bucket.popleft()
            if len(bucket) >= limit:
                retry_after = max(1, int(bucket[0] + window_seconds - now))
                return False, retry_after
            bucket.append(now)
        return True, retry_after

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


_limiter = InMemoryRateLimiter()


def enforce_rate_limit(rule: RateLimit, *, user_id: int) -> None:
    key = f"{rule.scope}|{user_id}"
    allowed, retry_after = _limiter.check(key=key, limit=rule.limit, window_seconds=rule.window_seconds)
    if allowed:
        return
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=f"Too many requests for {rule.scope}. Try again in {retry_after} second(s).",
        headers={"Retry-After": str(retry_after)},
    )


def clear_rate_limiter() -> None:
    _limiter.clear()
