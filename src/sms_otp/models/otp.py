"""SQLAlchemy OTP record model."""

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class OtpRecord(Base):
    """The single live one-time passcode issued to a phone number.

    Timestamps are milliseconds since the epoch.  Column names keep the
    camelCase layout of the ``otps`` table so existing databases can be
    reused as-is.
    """

    __tablename__ = "otps"

    phone_number: Mapped[str] = mapped_column("phoneNumber", String(16), primary_key=True)
    code: Mapped[str] = mapped_column("otp", String(6), nullable=False)
    expires_at: Mapped[int] = mapped_column("expiresAt", BigInteger, nullable=False)
    created_at: Mapped[int] = mapped_column("createdAt", BigInteger, nullable=False)
    attempts: Mapped[int] = mapped_column(
        "attempts", Integer, nullable=False, default=0, server_default="0"
    )
    last_attempt_at: Mapped[int | None] = mapped_column(
        "lastAttemptAt", BigInteger, nullable=True
    )

    def __repr__(self) -> str:
        # Never include the code.
        return (
            f"<OtpRecord phone={self.phone_number!r} attempts={self.attempts} "
            f"expires_at={self.expires_at}>"
        )
