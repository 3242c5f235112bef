# backend/tests/core/test_time_utils.py
from datetime import datetime, timedelta, timezone

import pytz

from studio_booking.core.time_utils import (
    LAST_MINUTE_OF_DAY,
    get_timezone,
    local_window,
    sunday_based_weekday,
    to_utc,
)

from tests.utils.booking_fixtures import BOOKING_DAY, STUDIO_TZ_NAME, local_at


def test_to_utc_treats_naive_as_utc():
    naive = datetime(2030, 6, 5, 19, 0)
    assert to_utc(naive) == datetime(2030, 6, 5, 19, 0, tzinfo=timezone.utc)


def test_to_utc_converts_aware_values():
    chicago = pytz.timezone(STUDIO_TZ_NAME).localize(datetime(2030, 6, 5, 14, 0))
    assert to_utc(chicago) == datetime(2030, 6, 5, 19, 0, tzinfo=timezone.utc)


def test_sunday_is_zero():
    assert sunday_based_weekday(datetime(2030, 6, 2)) == 0  # Sunday
    assert sunday_based_weekday(datetime(2030, 6, 5)) == 3  # Wednesday
    assert sunday_based_weekday(datetime(2030, 6, 8)) == 6  # Saturday


def test_unknown_timezone_falls_back_to_default():
    assert get_timezone("Mars/Olympus_Mons").zone == "America/Chicago"


class TestLocalWindow:
    def test_projects_onto_studio_calendar(self):
        window = local_window(local_at(14), local_at(16, 30), STUDIO_TZ_NAME)

        assert window.weekday == 3
        assert window.start_minute == 14 * 60
        assert window.end_minute == 16 * 60 + 30
        assert window.same_day is True

    def test_late_evening_utc_is_still_the_same_local_day(self):
        # 23:00-23:30 Chicago is already the next day in UTC
        window = local_window(local_at(23), local_at(23, 30), STUDIO_TZ_NAME)

        assert local_at(23).date() != BOOKING_DAY
        assert window.same_day is True
        assert window.weekday == 3

    def test_cross_midnight(self):
        window = local_window(
            local_at(23), local_at(1, day=BOOKING_DAY + timedelta(days=1)), STUDIO_TZ_NAME
        )
        assert window.same_day is False

    def test_ending_at_midnight_closes_the_start_day(self):
        next_day = BOOKING_DAY + timedelta(days=1)
        window = local_window(local_at(22), local_at(0, day=next_day), STUDIO_TZ_NAME)

        assert window.same_day is True
        assert window.weekday == 3
        assert window.start_minute == 22 * 60
        assert window.end_minute == LAST_MINUTE_OF_DAY

    def test_ending_after_midnight_is_cross_midnight(self):
        next_day = BOOKING_DAY + timedelta(days=1)
        window = local_window(local_at(22), local_at(0, 1, day=next_day), STUDIO_TZ_NAME)
        assert window.same_day is False
