"""
Configuration management for the restaurant order service.

Loads settings from .env via pydantic-settings.

Notes:
    - Twilio credentials are optional in development; without them every
      WhatsApp dispatch is recorded as failed ("not_configured") and the
      order itself still succeeds.
    - validate_production_settings() enforces strict CORS and a configured
      messaging channel in production.
"""
import logging
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/orders.db"

    # ── Twilio WhatsApp ─────────────────────────────────────────────
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_whatsapp_number: str = ""
    twilio_api_base: str = "https://api.twilio.com"
    whatsapp_confirmation_template: str = ""  # Content SID; empty = session message
    notification_timeout_seconds: float = 10.0
    notification_language: str = "fr"  # "fr" | "ar"

    # ── Order submission ────────────────────────────────────────────
    rate_limit_max_orders: int = 5        # per phone
    rate_limit_window_minutes: int = 60   # trailing window
    daily_numbering_enabled: bool = True  # advisory, never blocks submission
    business_timezone: str = "UTC"        # where "midnight" is for daily numbering

    # ── Restaurant ──────────────────────────────────────────────────
    restaurant_name: str = "Restaurant Mustafa"
    restaurant_name_ar: str = "مطعم مصطفى"  # signature of Arabic messages
    currency_label: str = "DA"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @field_validator("business_timezone")
    @classmethod
    def check_business_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value!r}") from e
        return value

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def messaging_configured(self) -> bool:
        """True when every Twilio credential needed to send is present."""
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_whatsapp_number
        )

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.messaging_configured:
                raise ValueError(
                    "TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_WHATSAPP_NUMBER "
                    "must be set in production. Order confirmations are sent over WhatsApp."
                )
            logger.info("✅ Production settings validated")
        else:
            warnings = []
            if not self.messaging_configured:
                warnings.append("Twilio not configured (WhatsApp confirmations will be logged as failed)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


# Global settings instance
settings = Settings()
