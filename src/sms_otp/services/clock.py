"""Millisecond wall clock shared by the OTP service and the rate limiter."""

import time


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)
