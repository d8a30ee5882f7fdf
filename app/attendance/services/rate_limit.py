from __future__ import annotations

import threading
import time
from dataclasses import dataclass

from django.conf import settings

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 60


@dataclass
class _Window:
    count: int
    started_at: float


class UserRateLimiter:
    """In-memory fixed-window request counter, one window per user.

    State is per process and lost on restart. Stale windows are dropped at
    most once per window period, from inside ``check``.
    """

    def __init__(self, max_requests: int = DEFAULT_MAX_REQUESTS, window_seconds: float = DEFAULT_WINDOW_SECONDS, clock=time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[object, _Window] = {}
        self._lock = threading.Lock()
        self._pruned_at = clock()

    def check(self, user_id) -> float | None:
        """Count one request; return None if allowed, else seconds until the window resets."""
        now = self._clock()
        with self._lock:
            if now - self._pruned_at >= self.window_seconds:
                self._prune_locked(now)
            window = self._windows.get(user_id)
            if window is None or now - window.started_at >= self.window_seconds:
                self._windows[user_id] = _Window(count=1, started_at=now)
                return None

            window.count += 1
            if window.count > self.max_requests:
                return self.window_seconds - (now - window.started_at)
            return None

    def _prune_locked(self, now: float) -> int:
        stale = [key for key, window in self._windows.items() if now - window.started_at >= self.window_seconds]
        for key in stale:
            del self._windows[key]
        self._pruned_at = now
        return len(stale)

    def prune(self) -> int:
        with self._lock:
            return self._prune_locked(self._clock())

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._pruned_at = self._clock()


def build_rate_limiter() -> UserRateLimiter:
    return UserRateLimiter(
        max_requests=int(getattr(settings, "ATTENDANCE_RATE_LIMIT_MAX_REQUESTS", DEFAULT_MAX_REQUESTS)),
        window_seconds=float(getattr(settings, "ATTENDANCE_RATE_LIMIT_WINDOW_SECONDS", DEFAULT_WINDOW_SECONDS)),
    )


check_in_rate_limiter = build_rate_limiter()
