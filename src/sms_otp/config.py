"""SMS OTP service — configuration loaded from environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./otp_database.db"

    # ── Africa's Talking SMS gateway ──────────────────────
    at_api_key: str = ""
    at_username: str = ""
    at_sender_id: str = ""
    at_base_url: str = "https://api.africastalking.com"
    sms_timeout_seconds: float = 10.0
    sms_message_template: str = "Your verification code is: {code}"

    # ── OTP lifecycle ─────────────────────────────────────
    otp_ttl_seconds: int = 300  # 5 minutes
    otp_cooldown_seconds: int = 120
    otp_max_attempts: int = 3

    # ── Rate limiting (per caller address) ────────────────
    rate_limit_window_seconds: int = 900  # 15 minutes
    rate_limit_max_requests: int = 5

    # ── App ───────────────────────────────────────────────
    app_name: str = "SMS OTP Service"
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
