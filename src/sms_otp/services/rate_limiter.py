"""Rate limiter — fixed-window request counter keyed by caller address."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from sms_otp.services.clock import now_ms

logger = logging.getLogger(__name__)


@dataclass
class RateLimitBucket:
    """Requests observed from one address in the current window."""

    count: int
    window_start: int


class RateLimiter:
    """In-memory fixed-window limiter.

    Counters reset at fixed boundaries, so a caller can burst up to twice
    the limit across the edge of a window.  Buckets live in process memory
    only and are lost on restart.
    """

    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: int = 900,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._clock = clock
        self._buckets: dict[str, RateLimitBucket] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def admit(self, caller_address: str) -> bool:
        """Count a request from *caller_address*; return ``False`` if over the limit."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep > self._window_ms:
                self._drop_stale(now)

            bucket = self._buckets.get(caller_address)

            if bucket is None or now - bucket.window_start > self._window_ms:
                self._buckets[caller_address] = RateLimitBucket(count=1, window_start=now)
                return True

            if bucket.count >= self._max_requests:
                logger.warning("Rate limit exceeded for %s", caller_address)
                return False

            bucket.count += 1
            return True

    def _drop_stale(self, now: int) -> None:
        """Forget addresses whose window has already closed.  Caller holds the lock."""
        stale = [
            address
            for address, bucket in self._buckets.items()
            if now - bucket.window_start > self._window_ms
        ]
        for address in stale:
            del self._buckets[address]
        self._last_sweep = now
        if stale:
            logger.debug("Dropped %d stale rate-limit buckets", len(stale))

    def bucket(self, caller_address: str) -> RateLimitBucket | None:
        """Snapshot of the bucket for *caller_address*, if one exists."""
        with self._lock:
            bucket = self._buckets.get(caller_address)
            return None if bucket is None else RateLimitBucket(bucket.count, bucket.window_start)

    @property
    def active_count(self) -> int:
        """Number of tracked addresses (useful for monitoring)."""
        with self._lock:
            return len(self._buckets)
