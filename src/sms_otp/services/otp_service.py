"""OTP lifecycle manager — issues, verifies and retires per-phone-number codes.

Record lifecycle
----------------
* ``request_code`` creates the record once the SMS is delivered, or fully
  replaces an older record once its cooldown has elapsed.
* ``verify_code`` deletes the record on success, on expiry and once the
  attempt budget is spent; a wrong code only bumps the attempt counter.

Operations on the same phone number are serialized with a per-number lock,
so a reissue can never interleave with a verification of the old code.
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
import weakref
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sms_otp.config import Settings, settings as default_settings
from sms_otp.database.repository import OtpRepository
from sms_otp.models.otp import OtpRecord
from sms_otp.services.clock import now_ms
from sms_otp.services.errors import (
    CooldownActive,
    DeliveryFailed,
    Expired,
    InvalidCode,
    InvalidFormat,
    MissingFields,
    NotFoundOrExpired,
    OtpError,
    PersistenceFailed,
    TooManyAttempts,
)
from sms_otp.services.sms_gateway import SmsDeliveryError, SmsSender

logger = logging.getLogger(__name__)

PHONE_NUMBER_PATTERN = re.compile(r"\+?\d{10,15}", re.ASCII)


def generate_code(previous: str | None = None) -> str:
    """Return a random 6-digit code (100000–999999) different from *previous*."""
    while True:
        code = str(secrets.randbelow(900000) + 100000)
        if code != previous:
            return code


def is_valid_phone_number(phone_number: str) -> bool:
    return PHONE_NUMBER_PATTERN.fullmatch(phone_number) is not None


@dataclass
class OtpResult:
    """Value object returned by a successful lifecycle operation."""

    success: bool
    message: str


class KeyedLocks:
    """Hands out one ``asyncio.Lock`` per key.

    Locks are held weakly and disappear once no coroutine is using them.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


class OtpService:
    """Owns the per-phone-number OTP records and the rules around them."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sender: SmsSender,
        config: Settings | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        config = config or default_settings
        self._session_factory = session_factory
        self._sender = sender
        self._clock = clock
        self._ttl_ms = config.otp_ttl_seconds * 1000
        self._cooldown_ms = config.otp_cooldown_seconds * 1000
        self._max_attempts = config.otp_max_attempts
        self._message_template = config.sms_message_template
        self._locks = KeyedLocks()

    # ── Request ──────────────────────────────────────────

    async def request_code(self, phone_number: str | None) -> OtpResult:
        """Issue a fresh code to *phone_number* and deliver it by SMS.

        Raises
        ------
        InvalidFormat
            Missing or malformed phone number.
        CooldownActive
            A code was issued to this number less than the cooldown ago.
        DeliveryFailed
            The SMS could not be sent; nothing was stored.
        PersistenceFailed
            The store could not be read, or the SMS went out but the record
            could not be saved.
        """
        if not phone_number:
            raise InvalidFormat("Phone number is required")
        if not is_valid_phone_number(phone_number):
            raise InvalidFormat()

        async with self._locks.lock_for(phone_number):
            now = self._clock()
            existing = await self._lookup(phone_number)

            if existing is not None and existing.created_at > now - self._cooldown_ms:
                logger.info("OTP cooldown active for %s", phone_number)
                raise CooldownActive()

            code = generate_code(previous=existing.code if existing else None)
            expires_at = now + self._ttl_ms

            try:
                await self._sender.send(
                    phone_number, self._message_template.format(code=code)
                )
            except SmsDeliveryError as exc:
                logger.error("Failed to deliver OTP to %s: %s", phone_number, exc)
                raise DeliveryFailed() from exc
            except Exception as exc:
                logger.exception("Unexpected error delivering OTP to %s", phone_number)
                raise DeliveryFailed() from exc

            try:
                async with self._session_factory() as session:
                    await OtpRepository(session).upsert(
                        phone_number, code, created_at=now, expires_at=expires_at
                    )
                    await session.commit()
            except SQLAlchemyError as exc:
                logger.exception(
                    "OTP delivered to %s but could not be stored; the code is unusable",
                    phone_number,
                )
                raise PersistenceFailed() from exc

        logger.info("OTP issued to %s (expires at %d)", phone_number, expires_at)
        return OtpResult(success=True, message=f"OTP sent to {phone_number}")

    # ── Verify ───────────────────────────────────────────

    async def verify_code(
        self, phone_number: str | None, submitted_code: str | None
    ) -> OtpResult:
        """Check *submitted_code* against the live record for *phone_number*.

        Raises
        ------
        MissingFields
            Either argument is missing.
        NotFoundOrExpired
            No record exists (never requested, already used or purged).
        Expired, TooManyAttempts
            The record was retired by this call.
        InvalidCode
            Wrong code; the attempt was counted.
        PersistenceFailed
            The store could not be read or updated.
        """
        if not phone_number or not submitted_code:
            raise MissingFields()

        async with self._locks.lock_for(phone_number):
            now = self._clock()
            try:
                async with self._session_factory() as session:
                    repo = OtpRepository(session)
                    record = await repo.find_by_phone(phone_number)
                    failure = await self._check(repo, record, submitted_code, now)
                    await session.commit()
            except SQLAlchemyError as exc:
                logger.exception("Database error while verifying OTP for %s", phone_number)
                raise PersistenceFailed("Internal server error") from exc

        if failure is not None:
            raise failure

        logger.info("OTP verified for %s", phone_number)
        return OtpResult(success=True, message="OTP verified successfully")

    async def _check(
        self,
        repo: OtpRepository,
        record: OtpRecord | None,
        submitted_code: str,
        now: int,
    ) -> OtpError | None:
        """Apply the verification rules, staging any writes on *repo*."""
        if record is None:
            return NotFoundOrExpired()

        phone_number = record.phone_number

        if now > record.expires_at:
            await repo.delete(phone_number)
            logger.info("OTP expired for %s", phone_number)
            return Expired()

        if record.attempts >= self._max_attempts:
            await repo.delete(phone_number)
            logger.warning("OTP attempt limit reached for %s", phone_number)
            return TooManyAttempts()

        if secrets.compare_digest(submitted_code.encode(), record.code.encode()):
            await repo.delete(phone_number)
            return None

        attempts = record.attempts + 1
        await repo.record_failed_attempt(phone_number, attempted_at=now)
        logger.info(
            "Invalid OTP for %s (attempt %d of %d)",
            phone_number,
            attempts,
            self._max_attempts,
        )
        return InvalidCode()

    # ── Helpers ──────────────────────────────────────────

    async def _lookup(self, phone_number: str) -> OtpRecord | None:
        try:
            async with self._session_factory() as session:
                return await OtpRepository(session).find_by_phone(phone_number)
        except SQLAlchemyError as exc:
            logger.exception("Database error while looking up OTP for %s", phone_number)
            raise PersistenceFailed("Internal server error") from exc
