"""OTP API router — request, verify and health endpoints.

Endpoints
---------
POST /api/send-otp     → issue a code by SMS (rate limited per caller address)
POST /api/verify-otp   → check a submitted code
GET  /api/health       → liveness probe
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, field_validator

from sms_otp.services.errors import RateLimited
from sms_otp.services.otp_service import OtpService
from sms_otp.services.rate_limiter import RateLimiter

router = APIRouter(prefix="/api", tags=["otp"])


# ── Request / response models ────────────────────────────
# Fields are optional so a missing value is reported with the service's own
# message instead of a generic 422.  Numeric-keypad clients often post the
# phone number or code as a JSON integer; those are taken as their digits.

class OTPRequestBody(BaseModel):
    @field_validator("*", mode="before")
    @classmethod
    def digits_as_text(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class SendOTPRequest(OTPRequestBody):
    phoneNumber: str | None = None


class VerifyOTPRequest(OTPRequestBody):
    phoneNumber: str | None = None
    otp: str | None = None


class OTPResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str


# ── Dependencies ─────────────────────────────────────────

def get_otp_service(request: Request) -> OtpService:
    return request.app.state.otp_service


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def enforce_rate_limit(
    request: Request, limiter: RateLimiter = Depends(get_rate_limiter)
) -> None:
    """Reject the request once its caller address has used up the window."""
    address = request.client.host if request.client else "unknown"
    if not limiter.admit(address):
        raise RateLimited()


# ── Endpoints ────────────────────────────────────────────

@router.post(
    "/send-otp",
    response_model=OTPResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def send_otp(body: SendOTPRequest, service: OtpService = Depends(get_otp_service)):
    """Generate a code for the phone number and send it by SMS."""
    result = await service.request_code(body.phoneNumber)
    return OTPResponse(success=result.success, message=result.message)


@router.post("/verify-otp", response_model=OTPResponse)
async def verify_otp(body: VerifyOTPRequest, service: OtpService = Depends(get_otp_service)):
    """Validate a code previously sent to the phone number."""
    result = await service.verify_code(body.phoneNumber, body.otp)
    return OTPResponse(success=result.success, message=result.message)


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Simple liveness probe."""
    return HealthResponse(status="healthy", timestamp=datetime.now(UTC).isoformat())
