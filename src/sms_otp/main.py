"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sms_otp.api.router import router as otp_router
from sms_otp.config import settings
from sms_otp.database.engine import async_session_factory, dispose_db, init_db
from sms_otp.services.errors import ErrorCategory, InvalidFormat, MissingFields, OtpError
from sms_otp.services.otp_service import OtpService
from sms_otp.services.rate_limiter import RateLimiter
from sms_otp.services.sms_gateway import AfricasTalkingSender

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hook."""
    logger.info("Starting %s …", settings.app_name)
    await init_db()
    logger.info("Database initialised")

    # Process-scoped state, created once and handed to handlers via app.state
    app.state.otp_service = OtpService(
        session_factory=async_session_factory,
        sender=AfricasTalkingSender(settings),
        config=settings,
    )
    app.state.rate_limiter = RateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    yield
    logger.info("Shutting down %s …", settings.app_name)
    await dispose_db()


async def handle_otp_error(request: Request, exc: OtpError) -> JSONResponse:
    """Serialize a domain error to the ``{success, message}`` envelope."""
    if exc.category is ErrorCategory.INFRASTRUCTURE:
        logger.error("%s on %s: %s", exc.kind, request.url.path, exc.message)
    else:
        logger.debug("%s on %s: %s", exc.kind, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report a malformed body with the same envelope as the domain errors."""
    logger.debug("Malformed body on %s: %s", request.url.path, exc.errors())
    if request.url.path.endswith("/send-otp"):
        error: OtpError = InvalidFormat()
    else:
        error = MissingFields()
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "message": error.message},
    )


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Issues and verifies SMS one-time passcodes",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(OtpError, handle_otp_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.include_router(otp_router)
    return app


app = create_app()
