# backend/studio_booking/core/policy.py
"""
Booking policy injected into services.

Services never read pricing or expiry knobs from globals directly; they get a
``BookingPolicy`` (built from settings by default) so tests and callers can
swap values without patching configuration.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol

from .config import Settings, settings as default_settings
from .time_utils import to_utc, utc_now


class PilotCityPolicy(Protocol):
    """Decides whether a studio's city currently enjoys the zero-fee pilot."""

    def is_pilot_city_active(self, city: Optional[str], at: Optional[datetime] = None) -> bool:
        ...


class SettingsPilotCityPolicy:
    """Pilot-city policy driven by a static city list and a cutoff instant."""

    def __init__(self, cities: Iterable[str], zero_fee_until: Optional[datetime]):
        self._cities = {c.strip().casefold() for c in cities if c and c.strip()}
        self._zero_fee_until = to_utc(zero_fee_until) if zero_fee_until else None

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "SettingsPilotCityPolicy":
        config = config or default_settings
        return cls(config.pilot_cities, config.zero_fee_until)

    def is_pilot_city_active(self, city: Optional[str], at: Optional[datetime] = None) -> bool:
        if not city or city.strip().casefold() not in self._cities:
            return False
        if self._zero_fee_until is None:
            return True
        return to_utc(at or utc_now()) <= self._zero_fee_until


@dataclass(frozen=True)
class BookingPolicy:
    """Tunable values consulted by the booking services."""

    app_fee_percent: float = 0.12
    slot_lock_ttl: timedelta = timedelta(minutes=10)
    overtime_multiplier: float = 1.5
    processor_fee_percent: float = 0.029
    processor_fee_fixed_cents: int = 30
    default_timezone: str = "America/Chicago"
    currency: str = "usd"
    pilot_cities: PilotCityPolicy = field(
        default_factory=lambda: SettingsPilotCityPolicy(("Baton Rouge", "New Orleans"), None)
    )

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "BookingPolicy":
        config = config or default_settings
        return cls(
            app_fee_percent=config.default_app_fee_percent,
            slot_lock_ttl=timedelta(minutes=config.slot_lock_ttl_minutes),
            overtime_multiplier=config.overtime_rate_multiplier,
            processor_fee_percent=config.processor_fee_percent,
            processor_fee_fixed_cents=config.processor_fee_fixed_cents,
            default_timezone=config.default_timezone,
            currency=config.stripe_currency,
            pilot_cities=SettingsPilotCityPolicy.from_settings(config),
        )

