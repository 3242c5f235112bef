# backend/tests/services/test_fee_calculator.py
"""
Tests for the fee calculator.

Amounts are integer cents; the split must always satisfy
studio_payout + engineer_payout + app_fee == subtotal.
"""

from datetime import datetime, timezone
from decimal import Decimal
from fractions import Fraction

import pytest

from studio_booking.core.exceptions import ValidationException
from studio_booking.services.fee_calculator import (
    compute_fees,
    compute_overtime_fees,
    effective_fee_percent,
    processor_fee_estimate,
)

CUTOFF = datetime(2030, 12, 31, tzinfo=timezone.utc)


def _assert_split(fees):
    assert fees.studio_payout_cents + fees.engineer_payout_cents + fees.app_fee_cents == (
        fees.subtotal_cents
    )


class TestComputeFees:
    def test_room_and_engineer_two_hours(self):
        """5000/h room, 3000/h engineer, 2h, 12% fee."""
        fees = compute_fees(5000, 3000, 2, False)

        assert fees.room_cost_cents == 10000
        assert fees.engineer_cost_cents == 6000
        assert fees.subtotal_cents == 16000
        assert fees.app_fee_cents == 1920
        assert fees.studio_payout_cents == 8800
        assert fees.engineer_payout_cents == 5280
        assert fees.total_cents == 17920
        assert fees.app_fee_percent == pytest.approx(0.12)
        _assert_split(fees)

    def test_room_only_pays_whole_fee_from_room(self):
        fees = compute_fees(5000, None, 1, False)

        assert fees.engineer_cost_cents == 0
        assert fees.app_fee_cents == 600
        assert fees.studio_payout_cents == 4400
        assert fees.engineer_payout_cents == 0
        _assert_split(fees)

    def test_pilot_city_waives_fee_before_cutoff(self):
        now = datetime(2030, 6, 1, tzinfo=timezone.utc)
        fees = compute_fees(5000, 3000, 2, True, zero_fee_until=CUTOFF, now=now)

        assert fees.app_fee_cents == 0
        assert fees.app_fee_percent == 0
        assert fees.studio_payout_cents == 10000
        assert fees.engineer_payout_cents == 6000
        assert fees.total_cents == 16000

    def test_pilot_city_charges_after_cutoff(self):
        now = datetime(2031, 1, 1, tzinfo=timezone.utc)
        fees = compute_fees(5000, 3000, 2, True, zero_fee_until=CUTOFF, now=now)

        assert fees.app_fee_cents == 1920

    def test_pilot_city_without_cutoff_is_always_free(self):
        fees = compute_fees(5000, 3000, 2, True)
        assert fees.app_fee_cents == 0

    def test_fractional_hours_are_exact(self):
        """1.5h at 3333/h: 4999.5 floors to 4999, no float drift."""
        fees = compute_fees(3333, 1111, 1.5, False)

        assert fees.room_cost_cents == 4999
        assert fees.engineer_cost_cents == 1666
        assert fees.subtotal_cents == 6665
        assert fees.app_fee_cents == 799
        _assert_split(fees)

    @pytest.mark.parametrize("hours", [Fraction(7, 4), Decimal("1.75"), "1.75", 1.75])
    def test_hour_types_agree(self, hours):
        fees = compute_fees(4000, 2000, hours, False)
        assert fees.subtotal_cents == 10500

    def test_rounding_remainder_goes_to_engineer(self):
        # app_fee 1198: room share floor(1198 * 7001 / 9991) = 839, engineer gets 359
        fees = compute_fees(7001, 2990, 1, False)

        assert fees.subtotal_cents == 9991
        assert fees.app_fee_cents == 1198
        room_share = fees.room_cost_cents - fees.studio_payout_cents
        engineer_share = fees.engineer_cost_cents - fees.engineer_payout_cents
        assert room_share == (1198 * 7001) // 9991
        assert engineer_share == 1198 - room_share
        _assert_split(fees)

    def test_processor_fee_estimate(self):
        fees = compute_fees(5000, 3000, 2, False)
        assert fees.processor_fee_estimate_cents == 464 + 30

    def test_custom_processor_fee(self):
        fees = compute_fees(
            5000, None, 2, False, processor_fee_percent=0.03, processor_fee_fixed_cents=0
        )
        assert fees.processor_fee_estimate_cents == 300

    @pytest.mark.parametrize(
        "room_rate, engineer_rate, hours",
        [(-1, None, 1), (1000, -5, 1), (1000, None, 0), (1000, None, -1)],
    )
    def test_rejects_invalid_input(self, room_rate, engineer_rate, hours):
        with pytest.raises(ValidationException):
            compute_fees(room_rate, engineer_rate, hours, False)

    def test_rejects_out_of_range_percent(self):
        with pytest.raises(ValidationException):
            compute_fees(1000, None, 1, False, app_fee_percent=1.5)

    def test_split_invariant_over_many_rates(self):
        for room_rate in (1, 999, 4321, 12345):
            for engineer_rate in (None, 0, 7, 2999, 8888):
                for hours in (Fraction(1, 4), 1, Fraction(5, 3), 3):
                    _assert_split(compute_fees(room_rate, engineer_rate, hours, False))


class TestEffectiveFeePercent:
    def test_non_pilot_uses_configured_percent(self):
        assert effective_fee_percent(0.15, False) == 0.15

    def test_cutoff_is_inclusive(self):
        assert effective_fee_percent(0.12, True, zero_fee_until=CUTOFF, now=CUTOFF) == 0.0


class TestOvertimeFees:
    def test_thirty_minutes_at_one_hundred_dollars(self):
        overtime = compute_overtime_fees(10000, None, 30, 0.12)

        assert overtime.room_cost_cents == 7500
        assert overtime.cost_cents == 7500
        assert overtime.app_fee_cents == 900
        assert overtime.studio_payout_cents == 6600

    def test_each_rate_is_floored_separately(self):
        # 3333 * 1.5 * 10 / 60 = 833.25 ; 1111 * 1.5 * 10 / 60 = 277.75
        overtime = compute_overtime_fees(3333, 1111, 10, 0.12)

        assert overtime.room_cost_cents == 833
        assert overtime.engineer_cost_cents == 277
        assert overtime.cost_cents == 1110
        assert (
            overtime.studio_payout_cents + overtime.engineer_payout_cents + overtime.app_fee_cents
            == overtime.cost_cents
        )

    def test_zero_percent_keeps_everything_with_payees(self):
        overtime = compute_overtime_fees(10000, 6000, 60, 0.0)
        assert overtime.app_fee_cents == 0
        assert overtime.studio_payout_cents == 15000
        assert overtime.engineer_payout_cents == 9000

    def test_rejects_non_positive_minutes(self):
        with pytest.raises(ValidationException):
            compute_overtime_fees(10000, None, 0, 0.12)


def test_processor_fee_estimate_helper():
    assert processor_fee_estimate(10000) == 320
    assert processor_fee_estimate(0) == 30
