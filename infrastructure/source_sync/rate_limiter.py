import time
from threading import Lock
from typing import Any, Mapping, Optional

# Idle wait when the quota is spent but the server gave no reset time.
EXHAUSTED_BACKOFF = 60.0


def header_value(headers: Mapping[str, Any], name: str) -> Optional[str]:
    """Case-insensitive header lookup over a plain dict."""
    wanted = name.lower()
    for key, value in headers.items():
        if str(key).lower() == wanted and value not in (None, ""):
            return str(value)
    return None


def _as_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class RateLimiter:
    """Blocks callers until the tracker's advertised quota window allows another request.

    Shared by every client built from the same instance, so it is guarded by a lock.
    """

    def __init__(self, clock=time.time, sleeper=time.sleep) -> None:
        self._lock = Lock()
        self._not_before = 0.0
        self._clock = clock
        self._sleep = sleeper
        self.last_remaining: Optional[int] = None
        self.last_reset_epoch: Optional[float] = None
        self.last_wait: float = 0.0

    def acquire(self) -> None:
        while True:
            with self._lock:
                pending = self._not_before - self._clock()
            if pending <= 0:
                return
            self._sleep(min(pending, 2.0))

    def _defer_until(self, ts: float) -> None:
        if ts > self._not_before:
            self._not_before = ts

    def update(self, headers: Mapping[str, Any]) -> None:
        retry_after = _as_float(header_value(headers, "Retry-After"))
        remaining = _as_float(header_value(headers, "X-RateLimit-Remaining"))
        reset_at = _as_float(header_value(headers, "X-RateLimit-Reset"))
        with self._lock:
            now = self._clock()
            if retry_after is not None:
                self._defer_until(now + retry_after)
            if remaining is not None:
                self.last_remaining = int(remaining)
                if self.last_remaining <= 1:
                    if reset_at is not None and reset_at > now:
                        self._defer_until(reset_at)
                    else:
                        self._defer_until(now + EXHAUSTED_BACKOFF)
            if reset_at is not None:
                self.last_reset_epoch = reset_at
            self.last_wait = max(0.0, self._not_before - now)
