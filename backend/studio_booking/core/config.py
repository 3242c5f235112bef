# backend/studio_booking/core/config.py
from datetime import datetime, timezone
import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


DEFAULT_PILOT_CITIES = "Baton Rouge,New Orleans"


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")
    is_testing: bool = Field(default=False, description="Set by the test suite")

    database_url: str = Field(
        default="sqlite:///./studio_booking.db",
        description="SQLAlchemy URL for the booking store (PostgreSQL in production)",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")
    auto_create_tables: bool = Field(
        default=True, description="Create missing tables at startup (no migration tool is used)"
    )

    # Booking policy
    default_app_fee_percent: float = Field(
        default=0.12, description="Platform fee as a fraction of subtotal (0.12 = 12%)"
    )
    pilot_cities_csv: str = Field(
        default=DEFAULT_PILOT_CITIES,
        alias="pilot_cities",
        description="Cities where the zero platform-fee promotion runs (comma-separated)",
    )
    zero_fee_until: datetime = Field(
        default=datetime(2025, 12, 31, tzinfo=timezone.utc),
        description="Last instant of the pilot-city zero-fee window",
    )
    slot_lock_ttl_minutes: int = Field(
        default=10, description="Lifetime of a checkout slot lock in minutes"
    )
    overtime_rate_multiplier: float = Field(
        default=1.5, description="Multiplier applied to hourly rates for overtime"
    )
    processor_fee_percent: float = Field(
        default=0.029, description="Card processor percentage used for fee estimates"
    )
    processor_fee_fixed_cents: int = Field(
        default=30, description="Card processor fixed fee used for fee estimates"
    )
    default_timezone: str = Field(
        default="America/Chicago",
        description="Studio-local timezone used when a studio has none recorded",
    )

    # Stripe Configuration
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe webhook signing secret",
    )
    stripe_currency: str = Field(default="usd", description="Default currency for payments")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("zero_fee_until", mode="after")
    @classmethod
    def _zero_fee_until_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("default_app_fee_percent", "processor_fee_percent", mode="after")
    @classmethod
    def _fraction_in_range(cls, value: float) -> float:
        if not 0 <= value < 1:
            raise ValueError("percentages are fractions between 0 and 1")
        return value

    @field_validator("slot_lock_ttl_minutes", mode="after")
    @classmethod
    def _positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("slot_lock_ttl_minutes must be positive")
        return value

    @property
    def pilot_cities(self) -> List[str]:
        """Pilot cities from a comma-separated list (a JSON list is also accepted)."""
        cleaned = (self.pilot_cities_csv or "").strip()
        if cleaned.startswith("["):
            return [str(city).strip() for city in json.loads(cleaned) if str(city).strip()]
        return [token.strip() for token in cleaned.split(",") if token.strip()]

    def get_stripe_secret_key(self) -> Optional[str]:
        secret = self.stripe_secret_key.get_secret_value()
        return secret or None


settings = Settings()
