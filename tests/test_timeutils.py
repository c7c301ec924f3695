"""
Unit tests for prediction.timeutils: pure clock arithmetic, no DB.
"""

import pytest
from datetime import date

from prediction.models import DayType
from prediction.timeutils import (
    format_clock,
    minutes_between,
    parse_clock,
    resolve_day_type,
    round_minutes,
    time_of_day,
)


# ---------------------------------------------------------------------------
# parse_clock
# ---------------------------------------------------------------------------

class TestParseClock:
    def test_hh_mm(self):
        assert parse_clock("08:30") == 8 * 60 + 30

    def test_hh_mm_ss_keeps_fraction(self):
        assert parse_clock("08:30:30") == pytest.approx(510.5)

    def test_midnight(self):
        assert parse_clock("00:00") == 0

    def test_strips_whitespace(self):
        assert parse_clock(" 07:05 ") == 425

    @pytest.mark.parametrize("bad", ["", "8am", "08", "24:00", "08:60", "08:00:61", "a:b", "08:00:00:00"])
    def test_rejects_malformed(self, bad):
        with pytest.raises(ValueError):
            parse_clock(bad)

    def test_rejects_non_string(self):
        with pytest.raises(ValueError):
            parse_clock(None)


# ---------------------------------------------------------------------------
# minutes_between
# ---------------------------------------------------------------------------

class TestMinutesBetween:
    def test_positive_delta(self):
        assert minutes_between("08:00:00", "08:12:00") == 12

    def test_negative_delta_is_returned_signed(self):
        # Callers decide what to do with out-of-order stamps.
        assert minutes_between("08:10:00", "08:00:00") == -10

    def test_missing_side_is_none(self):
        assert minutes_between(None, "08:00") is None
        assert minutes_between("08:00", "") is None

    def test_unparseable_is_none(self):
        assert minutes_between("08:00", "later") is None


# ---------------------------------------------------------------------------
# format_clock / time_of_day / round_minutes
# ---------------------------------------------------------------------------

class TestFormatClock:
    def test_simple(self):
        assert format_clock(8 * 60 + 12) == "08:12"

    def test_rolls_over_midnight(self):
        assert format_clock(23 * 60 + 50 + 25) == "00:15"

    def test_truncates_seconds(self):
        assert format_clock(8 * 60 + 12.75) == "08:12"

    def test_float_noise_does_not_drop_a_minute(self):
        assert format_clock(8 * 60 + 20 - 1e-9) == "08:20"

    def test_time_of_day_folds(self):
        assert time_of_day(24 * 60 + 30) == 30


class TestRoundMinutes:
    def test_half_rounds_up(self):
        assert round_minutes(2.5) == 3
        assert round_minutes(3.5) == 4

    def test_below_half_rounds_down(self):
        assert round_minutes(6.49) == 6


# ---------------------------------------------------------------------------
# resolve_day_type
# ---------------------------------------------------------------------------

class TestResolveDayType:
    def test_sunday(self):
        assert resolve_day_type(date(2024, 1, 7)) is DayType.SUNDAY_HOLIDAY

    def test_saturday(self):
        assert resolve_day_type(date(2024, 1, 6)) is DayType.SATURDAY

    def test_monday(self):
        assert resolve_day_type(date(2024, 1, 8)) is DayType.WEEKDAY

    def test_friday_is_weekday(self):
        assert resolve_day_type(date(2024, 1, 12)) is DayType.WEEKDAY

    def test_value_strings(self):
        assert DayType.SUNDAY_HOLIDAY.value == "Sunday/Holiday"
