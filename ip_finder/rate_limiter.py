import math
import threading
from dataclasses import dataclass

from ip_finder.clock import Clock, default_clock


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single admission check.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Requests left in the current window (0 when blocked).
        reset_after_seconds: Whole seconds until the current window resets.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_after_seconds: int


@dataclass
class RateLimitWindow:
    window_start: float
    count: int


class RateLimiter:
    """In-memory fixed window rate limiter keyed by caller identity.

    Each identity (usually the caller's network address) gets its own window.
    A window admits up to `max_requests` calls; once `window_seconds` have
    passed since it started, the next call opens a fresh window.
    """

    def __init__(self, max_requests: int, window_seconds: float, clock: Clock = default_clock) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def check(self, identity: str) -> RateLimitResult:
        """Count one request for `identity` and report whether it is admitted.

        Rejected calls are not counted, so a window's count never exceeds the quota.
        """
        now = self._clock()
        with self._lock:
            window = self._windows.get(identity)
            if window is None or self._is_expired(window, now):
                window = RateLimitWindow(window_start=now, count=1)
                self._windows[identity] = window
                allowed = True
            elif window.count < self._max_requests:
                window.count += 1
                allowed = True
            else:
                allowed = False

            return RateLimitResult(
                allowed=allowed,
                limit=self._max_requests,
                remaining=max(self._max_requests - window.count, 0),
                reset_after_seconds=max(math.ceil(window.window_start + self._window_seconds - now), 0),
            )

    def admit(self, identity: str) -> bool:
        return self.check(identity).allowed

    def purge_idle(self) -> int:
        """Drop windows whose period has elapsed and return how many were removed."""
        now = self._clock()
        with self._lock:
            idle = [identity for identity, window in self._windows.items() if self._is_expired(window, now)]
            for identity in idle:
                del self._windows[identity]
        return len(idle)

    def _is_expired(self, window: RateLimitWindow, now: float) -> bool:
        return now >= window.window_start + self._window_seconds
