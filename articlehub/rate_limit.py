"""Fixed-window rate limiting for abuse mitigation."""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import RateLimitRule, RateLimitSettings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int


@dataclass
class _Window:
    start: float
    count: int


class FixedWindowRateLimiter:
    """Counts hits per key inside fixed windows.

    A key's window opens on its first hit and closes ``window_seconds`` later;
    the next hit after that opens a fresh window with a zero count. Because
    windows do not slide, a client can land ``limit`` hits at the end of one
    window and ``limit`` more at the start of the next.

    Example:
        >>> limiter = FixedWindowRateLimiter("summarize", limit=5, window_seconds=900)
        >>> limiter.hit("user:42").allowed
        True
    """

    # Expired windows are swept once the table grows past this many keys.
    _SWEEP_THRESHOLD = 10_000

    def __init__(
        self,
        name: str,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.name = name
        self.limit = limit
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_rule(cls, name: str, rule: RateLimitRule, clock: Callable[[], float] = time.time) -> "FixedWindowRateLimiter":
        return cls(name, rule.limit, rule.window_seconds, clock=clock)

    def hit(self, key: str) -> RateLimitDecision:
        """Record one request for ``key`` and decide whether it may proceed."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now >= window.start + self.window_seconds:
                if len(self._windows) >= self._SWEEP_THRESHOLD:
                    self._sweep(now)
                window = _Window(start=now, count=0)
                self._windows[key] = window

            window.count += 1
            reset_at = window.start + self.window_seconds
            allowed = window.count <= self.limit
            retry_after = max(1, math.ceil(reset_at - now))

        if not allowed:
            logger.debug("Rate limit %s exceeded for %s; resets in %ss", self.name, key, retry_after)
        return RateLimitDecision(
            allowed=allowed,
            limit=self.limit,
            remaining=max(0, self.limit - window.count),
            reset_at=reset_at,
            retry_after=retry_after,
        )

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def _sweep(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if now >= w.start + self.window_seconds]
        for k in expired:
            del self._windows[k]


@dataclass
class RateLimiters:
    enabled: bool
    summarize: FixedWindowRateLimiter
    auth: FixedWindowRateLimiter
    strict: FixedWindowRateLimiter

    @classmethod
    def from_settings(cls, settings: RateLimitSettings, clock: Callable[[], float] = time.time) -> "RateLimiters":
        return cls(
            enabled=settings.enabled,
            summarize=FixedWindowRateLimiter.from_rule("summarize", settings.summarize, clock),
            auth=FixedWindowRateLimiter.from_rule("auth", settings.auth, clock),
            strict=FixedWindowRateLimiter.from_rule("strict", settings.strict, clock),
        )
