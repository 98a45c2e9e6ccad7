"""Interactive CLI simulator — exercise the OTP flow without a real SMS gateway."""

import asyncio

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sms_otp.config import settings
from sms_otp.models.otp import Base
from sms_otp.services.errors import OtpError
from sms_otp.services.otp_service import OtpService

GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
CYAN = "\033[96m"
DIM = "\033[2m"
BOLD = "\033[1m"
RESET = "\033[0m"


class HandsetSender:
    """Stands in for the SMS gateway by showing the message on this terminal."""

    async def send(self, phone_number: str, message: str) -> None:
        print(f"{CYAN}📱 SMS to {phone_number}: {message}{RESET}")


async def main() -> None:
    print(f"\n{BOLD}{'=' * 52}")
    print(f"  🔐  {settings.app_name} — OTP Simulator")
    print(f"{'=' * 52}{RESET}\n")

    # ── Throwaway in-memory database ─────────────────────
    engine = create_async_engine(
        "sqlite+aiosqlite://", poolclass=StaticPool, echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    service = OtpService(
        session_factory=async_sessionmaker(engine, expire_on_commit=False),
        sender=HandsetSender(),
        config=settings,
    )

    print(f"{DIM}Commands: 'send <phone>', 'verify <phone> <code>', 'quit'{RESET}")
    print(f"{DIM}Tip: try +15551234567{RESET}\n")

    while True:
        try:
            line = input(f"{YELLOW}{BOLD}>{RESET} ").strip()
        except (KeyboardInterrupt, EOFError):
            print(f"\n{DIM}Goodbye!{RESET}")
            break

        if not line:
            continue
        command, *args = line.split()
        command = command.lower()

        if command == "quit":
            print(f"{DIM}Goodbye!{RESET}")
            break

        try:
            if command == "send" and len(args) == 1:
                result = await service.request_code(args[0])
            elif command == "verify" and len(args) == 2:
                result = await service.verify_code(args[0], args[1])
            else:
                print(f"{DIM}Usage: send <phone> | verify <phone> <code> | quit{RESET}")
                continue
        except OtpError as exc:
            print(f"{RED}✗ [{exc.status_code}] {exc.message}{RESET}\n")
            continue

        print(f"{GREEN}✓ {result.message}{RESET}\n")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
