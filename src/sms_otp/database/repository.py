"""OTP repository — data access layer for per-phone-number OTP records."""

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sms_otp.models.otp import OtpRecord


class OtpRepository:
    """Encapsulates all database queries related to OTP records.

    Write methods leave committing to the caller, so one logical
    operation maps onto one transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_phone(self, phone_number: str) -> OtpRecord | None:
        """Look up the record issued to *phone_number*, if any."""
        stmt = select(OtpRecord).where(OtpRecord.phone_number == phone_number)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self, phone_number: str, code: str, created_at: int, expires_at: int
    ) -> OtpRecord:
        """Insert a record or fully replace the existing one.

        Replacement resets the attempt counter.
        """
        record = await self._session.merge(
            OtpRecord(
                phone_number=phone_number,
                code=code,
                created_at=created_at,
                expires_at=expires_at,
                attempts=0,
                last_attempt_at=None,
            )
        )
        await self._session.flush()
        return record

    async def delete(self, phone_number: str) -> None:
        """Remove the record for *phone_number* (no-op when absent)."""
        stmt = delete(OtpRecord).where(OtpRecord.phone_number == phone_number)
        await self._session.execute(stmt)

    async def record_failed_attempt(self, phone_number: str, attempted_at: int) -> None:
        """Increment the attempt counter in place and stamp the attempt time."""
        stmt = (
            update(OtpRecord)
            .where(OtpRecord.phone_number == phone_number)
            .values(attempts=OtpRecord.attempts + 1, last_attempt_at=attempted_at)
        )
        await self._session.execute(stmt)
