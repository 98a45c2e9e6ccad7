"""Domain errors raised by the OTP service and the rate limiter.

Every failure the HTTP layer can report is an :class:`OtpError` subclass.
Each carries the category it belongs to, the HTTP status it maps onto and a
human-readable message that is safe to return to the caller.
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """Broad classes of failure."""

    VALIDATION = "validation"  # caller can fix the input
    POLICY = "policy"  # caller can wait or re-request
    INFRASTRUCTURE = "infrastructure"  # server side, not the caller's fault


class OtpError(Exception):
    """Base class for all OTP domain errors."""

    category: ErrorCategory = ErrorCategory.INFRASTRUCTURE
    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        """Stable name of the error kind (the class name)."""
        return type(self).__name__


# ── Validation ───────────────────────────────────────────

class InvalidFormat(OtpError):
    category = ErrorCategory.VALIDATION
    status_code = 400
    default_message = "Invalid phone number format"


class MissingFields(OtpError):
    category = ErrorCategory.VALIDATION
    status_code = 400
    default_message = "Phone number and OTP are required"


# ── Policy ───────────────────────────────────────────────

class CooldownActive(OtpError):
    category = ErrorCategory.POLICY
    status_code = 429
    default_message = "Please wait before requesting a new OTP"


class RateLimited(OtpError):
    category = ErrorCategory.POLICY
    status_code = 429
    default_message = "Too many requests. Please try again later."


class NotFoundOrExpired(OtpError):
    """No record for the number: never requested, consumed or purged."""

    category = ErrorCategory.POLICY
    status_code = 400
    default_message = "OTP not found or expired"


class Expired(OtpError):
    category = ErrorCategory.POLICY
    status_code = 400
    default_message = "OTP expired"


class TooManyAttempts(OtpError):
    category = ErrorCategory.POLICY
    status_code = 400
    default_message = "Too many attempts. Please request a new OTP."


class InvalidCode(OtpError):
    category = ErrorCategory.POLICY
    status_code = 400
    default_message = "Invalid OTP"


# ── Infrastructure ───────────────────────────────────────

class DeliveryFailed(OtpError):
    default_message = "Failed to send OTP. Check credentials or credits."


class PersistenceFailed(OtpError):
    default_message = "Failed to store OTP"
