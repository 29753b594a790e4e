"""Configuration via pydantic-settings."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./outreach.db"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Timezone
    TIMEZONE: str = "America/Toronto"

    # Twilio
    TWILIO_API_URL: str = "https://api.twilio.com/2010-04-01"
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    SMS_FROM: str = ""
    WHATSAPP_FROM: str = ""
    TWILIO_MESSAGING_SERVICE_SID: str = ""
    WHATSAPP_CONTENT_SID: str = ""
    TWILIO_CALLER_ID: str = ""
    TWILIO_VALIDATE_SIGNATURE: bool = True
    PUBLIC_BASE_URL: str = ""  # e.g. https://api.example.com when behind a proxy

    # Business
    BUSINESS_NAME: str = "our business"
    BUSINESS_TARGET_E164: str = ""
    BASE_URL: str = "http://localhost:8000"
    BOOKING_SOURCE: str = "missed_call"

    # Outreach rules
    MISSED_CALL_MAX_SECONDS: int = 45
    INITIAL_DEDUP_HOURS: int = 24
    REPLY_WINDOW_HOURS: int = 48
    FOLLOWUP_DELAY_HOURS: int = 2

    # Follow-up sweep
    FOLLOWUP_SCHEDULER_ENABLED: bool = True
    FOLLOWUP_SWEEP_MINUTES: int = 15
    SWEEP_RATE_LIMIT_MAX: int = 10
    SWEEP_RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Admin
    ADMIN_API_TOKEN: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
