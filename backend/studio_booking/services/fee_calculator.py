# backend/studio_booking/services/fee_calculator.py
"""
Fee calculation for studio bookings.

Pure functions over integer cents. Durations are converted to exact
rationals so fractional hours (1.5, 0.25, ...) never introduce float error;
the only rounding is the final floor of each amount.

Split rule: the platform fee is shared between room and engineer in
proportion to their costs. The room share is floored and the engineer share
takes the remainder, so ``studio_payout + engineer_payout + app_fee ==
subtotal`` holds exactly.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from fractions import Fraction
from math import floor
from numbers import Rational
from typing import Optional, Union

from ..core.exceptions import ValidationException
from ..core.time_utils import to_utc, utc_now

Hours = Union[int, float, Decimal, Fraction]

DEFAULT_APP_FEE_PERCENT = 0.12
DEFAULT_PROCESSOR_FEE_PERCENT = 0.029
DEFAULT_PROCESSOR_FEE_FIXED_CENTS = 30


@dataclass(frozen=True)
class FeeBreakdown:
    """Monetary split of a booking, all amounts in cents."""

    room_cost_cents: int
    engineer_cost_cents: int
    subtotal_cents: int
    app_fee_cents: int
    app_fee_percent: float
    studio_payout_cents: int
    engineer_payout_cents: int
    processor_fee_estimate_cents: int
    total_cents: int

    def as_booking_fields(self) -> dict:
        return {
            "room_cost_cents": self.room_cost_cents,
            "engineer_cost_cents": self.engineer_cost_cents,
            "subtotal_cents": self.subtotal_cents,
            "app_fee_cents": self.app_fee_cents,
            "app_fee_percent": self.app_fee_percent,
            "studio_payout_cents": self.studio_payout_cents,
            "engineer_payout_cents": self.engineer_payout_cents,
            "processor_fee_estimate_cents": self.processor_fee_estimate_cents,
            "total_cents": self.total_cents,
        }


@dataclass(frozen=True)
class OvertimeFees:
    """Incremental amounts added to a booking by an extension."""

    room_cost_cents: int
    engineer_cost_cents: int
    cost_cents: int
    app_fee_cents: int
    studio_payout_cents: int
    engineer_payout_cents: int


def _exact(value: Union[Hours, str]) -> Fraction:
    if isinstance(value, float):
        # repr of a float is its shortest round-tripping decimal (1.5 -> "1.5")
        return Fraction(repr(value))
    if isinstance(value, (Rational, Decimal, str)):
        return Fraction(value)
    raise ValidationException(f"Unsupported numeric value: {value!r}")


def _floor_cents(value: Fraction) -> int:
    return floor(value)


def _floor_decimal(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def _validate_rate(name: str, rate: Optional[int]) -> int:
    if rate is None:
        return 0
    if rate < 0:
        raise ValidationException(f"{name} must not be negative", details={name: rate})
    return int(rate)


def _split_fee(app_fee: int, room_cost: int, engineer_cost: int) -> tuple:
    """Return (room_share, engineer_share) of ``app_fee``."""
    subtotal = room_cost + engineer_cost
    room_share = (app_fee * room_cost) // subtotal if room_cost > 0 else 0
    engineer_share = app_fee - room_share if engineer_cost > 0 else 0
    return room_share, engineer_share


def effective_fee_percent(
    app_fee_percent: float,
    is_pilot_city_active: bool,
    *,
    zero_fee_until: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> float:
    """Platform fee that applies right now: zero inside the pilot-city window."""
    if is_pilot_city_active:
        if zero_fee_until is None or to_utc(now or utc_now()) <= to_utc(zero_fee_until):
            return 0.0
    return app_fee_percent


def compute_fees(
    room_rate_cents_per_hour: int,
    engineer_rate_cents_per_hour: Optional[int],
    hours: Hours,
    is_pilot_city_active: bool,
    app_fee_percent: float = DEFAULT_APP_FEE_PERCENT,
    *,
    zero_fee_until: Optional[datetime] = None,
    now: Optional[datetime] = None,
    processor_fee_percent: float = DEFAULT_PROCESSOR_FEE_PERCENT,
    processor_fee_fixed_cents: int = DEFAULT_PROCESSOR_FEE_FIXED_CENTS,
) -> FeeBreakdown:
    """
    Compute the full fee breakdown for a booking.

    Args:
        room_rate_cents_per_hour: Room hourly rate in cents
        engineer_rate_cents_per_hour: Engineer hourly rate in cents, None without engineer
        hours: Booked duration; fractional values are supported
        is_pilot_city_active: Whether the studio's city is in the zero-fee pilot
        app_fee_percent: Platform fee fraction outside the pilot (0.12 = 12%)
        zero_fee_until: End of the pilot window; None means the window is open
        now: Evaluation instant, defaults to the current time

    Raises:
        ValidationException: On negative rates, non-positive hours or an
            out-of-range fee percent
    """
    room_rate = _validate_rate("room_rate_cents_per_hour", room_rate_cents_per_hour)
    engineer_rate = _validate_rate("engineer_rate_cents_per_hour", engineer_rate_cents_per_hour)
    exact_hours = _exact(hours)
    if exact_hours <= 0:
        raise ValidationException("hours must be positive", details={"hours": str(hours)})
    if not 0 <= app_fee_percent < 1:
        raise ValidationException(
            "app_fee_percent must be a fraction between 0 and 1",
            details={"app_fee_percent": app_fee_percent},
        )

    room_cost = _floor_cents(room_rate * exact_hours)
    engineer_cost = _floor_cents(engineer_rate * exact_hours)
    subtotal = room_cost + engineer_cost

    pct = effective_fee_percent(
        app_fee_percent, is_pilot_city_active, zero_fee_until=zero_fee_until, now=now
    )
    app_fee = _floor_decimal(Decimal(subtotal) * Decimal(str(pct)))
    room_share, engineer_share = _split_fee(app_fee, room_cost, engineer_cost)

    processor_fee = processor_fee_estimate(
        subtotal, processor_fee_percent, processor_fee_fixed_cents
    )

    return FeeBreakdown(
        room_cost_cents=room_cost,
        engineer_cost_cents=engineer_cost,
        subtotal_cents=subtotal,
        app_fee_cents=app_fee,
        app_fee_percent=pct,
        studio_payout_cents=room_cost - room_share,
        engineer_payout_cents=engineer_cost - engineer_share,
        processor_fee_estimate_cents=processor_fee,
        total_cents=subtotal + app_fee,
    )


def compute_overtime_fees(
    room_rate_cents_per_hour: int,
    engineer_rate_cents_per_hour: Optional[int],
    minutes: int,
    effective_percent: float,
    multiplier: float = 1.5,
) -> OvertimeFees:
    """
    Cost of extending a running session by ``minutes``.

    Each rate is charged at ``multiplier`` times the hourly rate and floored
    separately: ``floor(rate * multiplier * minutes / 60)``. The platform fee
    uses the booking's already-effective percent and is split like the
    original booking.
    """
    if minutes <= 0:
        raise ValidationException("minutes must be positive", details={"minutes": minutes})
    room_rate = _validate_rate("room_rate_cents_per_hour", room_rate_cents_per_hour)
    engineer_rate = _validate_rate("engineer_rate_cents_per_hour", engineer_rate_cents_per_hour)
    factor = _exact(multiplier) * Fraction(minutes, 60)

    room_cost = _floor_cents(room_rate * factor)
    engineer_cost = _floor_cents(engineer_rate * factor)
    cost = room_cost + engineer_cost

    app_fee = _floor_decimal(Decimal(cost) * Decimal(str(effective_percent)))
    room_share, engineer_share = _split_fee(app_fee, room_cost, engineer_cost)

    return OvertimeFees(
        room_cost_cents=room_cost,
        engineer_cost_cents=engineer_cost,
        cost_cents=cost,
        app_fee_cents=app_fee,
        studio_payout_cents=room_cost - room_share,
        engineer_payout_cents=engineer_cost - engineer_share,
    )


def processor_fee_estimate(
    subtotal_cents: int,
    percent: float = DEFAULT_PROCESSOR_FEE_PERCENT,
    fixed_cents: int = DEFAULT_PROCESSOR_FEE_FIXED_CENTS,
) -> int:
    """Card processor fee estimate: ``floor(subtotal * percent) + fixed``."""
    return _floor_decimal(Decimal(subtotal_cents) * Decimal(str(percent))) + fixed_cents
