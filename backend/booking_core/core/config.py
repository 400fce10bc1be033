from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Any, ClassVar
from decimal import Decimal
import json
from pathlib import Path
import os


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # JWT configuration (provide a fallback for local development)
    SECRET_KEY: str = "fallback_secret_for_dev_only"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Use an absolute path so running the app from the repo root or backend/
    # always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'bookings.db'}"

    # CORS origins
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    CORS_ALLOW_ALL: bool = False
    FRONTEND_URL: str = "http://localhost:3000"

    DEFAULT_CURRENCY: str = "AUD"

    # Pricing defaults; the settings row seeded from these wins once it exists
    DEFAULT_DEPOSIT_PERCENT: Decimal = Decimal("50")
    DEFAULT_REFERRAL_PERCENT: Decimal = Decimal("10")

    # Booking lifecycle knobs (hours)
    MIN_BOOKING_LEAD_HOURS: int = 24
    CLIENT_CANCELLATION_WINDOW_HOURS: int = 24
    QUOTE_RESPONSE_HOURS: int = 48
    REMINDER_LEAD_HOURS: int = 24
    NOTIFICATION_RETENTION_DAYS: int = 30

    # Accepted difference between a claimed payment and the amount due
    PAYMENT_AMOUNT_TOLERANCE: Decimal = Decimal("0.01")

    # PayID / bank transfer instructions shown to clients
    PAYID_EMAIL: str = ""
    PAYID_ACCOUNT_NAME: str = ""
    PAYID_BSB: str = ""
    PAYID_ACCOUNT_NUMBER: str = ""
    PAYID_INSTRUCTIONS: str = "Use your booking reference as the payment description."

    # SMTP email settings
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 25
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "no-reply@localhost"

    # Twilio SMS / WhatsApp
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_FROM_NUMBER: str = ""
    TWILIO_WHATSAPP_NUMBER: str = ""

    # Admin allowlist: comma separated emails that receive admin alerts and
    # are promoted to admin on registration.
    ADMIN_EMAILS: str = ""

    # Shared secret for external cron hitting /ops/scheduler/tick
    CRON_SECRET: str = ""

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=True,
    )

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list of origins from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("DEFAULT_DEPOSIT_PERCENT", "DEFAULT_REFERRAL_PERCENT")
    def percent_in_range(cls, v: Decimal) -> Decimal:
        if v < 0 or v > 100:
            raise ValueError("percentages must be between 0 and 100")
        return v

    @field_validator("ADMIN_EMAILS", "CRON_SECRET", "FRONTEND_URL", mode="before")
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def allow_all_if_requested(cls, values: "Settings") -> "Settings":
        if values.CORS_ALLOW_ALL:
            values.CORS_ORIGINS = ["*"]
        return values

    @property
    def admin_emails(self) -> list[str]:
        return [e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()]


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
