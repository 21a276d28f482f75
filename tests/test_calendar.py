"""
Unit tests for the planning calendar module.

Tests verify:
- Days-in-month arithmetic (leap years, month overflow)
- Month key parsing/formatting and horizon generation
- UTC horizon bounds and day differences
- Week blocks and lead-time eligibility
"""
import pytest
from datetime import date as Date, datetime, timedelta, timezone

from purchase_planner.domain.calendar import (
    days_in_month,
    parse_month_key,
    format_month_key,
    month_key_for,
    next_month_key,
    month_keys_from,
    date_range,
    days_between,
    remaining_week_blocks,
    week_blocks_with_lead_time,
    format_month_label,
    format_date_br,
)
from purchase_planner.errors import MonthKeyError, PlanningError


class TestDaysInMonth:
    """Test days-in-month calculation."""

    def test_regular_months(self):
        assert days_in_month(2026, 1) == 31
        assert days_in_month(2026, 4) == 30

    def test_february_leap_year(self):
        """2024 is a leap year, 2026 is not."""
        assert days_in_month(2024, 2) == 29
        assert days_in_month(2026, 2) == 28

    def test_century_rule(self):
        assert days_in_month(1900, 2) == 28
        assert days_in_month(2000, 2) == 29

    def test_month_overflow_rolls_into_next_year(self):
        """Month 13 is January of the following year."""
        assert days_in_month(2026, 13) == 31
        assert days_in_month(2026, 14) == 28

    def test_month_zero_is_previous_december(self):
        assert days_in_month(2026, 0) == 31


class TestMonthKeys:
    """Test month key parsing and formatting."""

    def test_parse_valid_key(self):
        parsed = parse_month_key("2026_03")
        assert parsed.year == 2026
        assert parsed.month == 3

    @pytest.mark.parametrize("key", ["2026-03", "2026_3", "26_03", "2026_13", "2026_00", "", "2026_03x"])
    def test_parse_invalid_key_raises(self, key):
        with pytest.raises(MonthKeyError):
            parse_month_key(key)

    def test_parse_non_string_raises(self):
        with pytest.raises(MonthKeyError):
            parse_month_key(None)

    def test_month_key_error_is_value_error(self):
        """Callers catching ValueError or PlanningError both see it."""
        with pytest.raises(ValueError):
            parse_month_key("bad")
        with pytest.raises(PlanningError):
            parse_month_key("bad")

    def test_format_month_key_pads(self):
        assert format_month_key(2026, 3) == "2026_03"
        assert format_month_key(2026, 11) == "2026_11"

    def test_month_key_for_date(self):
        assert month_key_for(Date(2026, 2, 13)) == "2026_02"

    def test_next_month_key_crosses_year(self):
        assert next_month_key("2026_11") == "2026_12"
        assert next_month_key("2026_12") == "2027_01"

    def test_month_keys_from(self):
        assert month_keys_from(Date(2026, 11, 15), 3) == ["2026_11", "2026_12", "2027_01"]

    def test_month_keys_from_zero_count(self):
        assert month_keys_from(Date(2026, 11, 15), 0) == []


class TestDateRange:
    """Test planning horizon bounds."""

    def test_bounds_are_utc(self):
        bounds = date_range(["2026_02", "2026_03"])
        assert bounds.min == datetime(2026, 2, 1, tzinfo=timezone.utc)
        assert bounds.max == datetime(2026, 3, 31, 23, 59, 59, tzinfo=timezone.utc)

    def test_single_month(self):
        bounds = date_range(["2024_02"])
        assert bounds.min == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert bounds.max == datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone.utc)

    def test_empty_horizon_returns_today(self):
        bounds = date_range([], today=Date(2026, 2, 13))
        midnight = datetime(2026, 2, 13, tzinfo=timezone.utc)
        assert bounds.min == midnight
        assert bounds.max == midnight


class TestDaysBetween:
    """Test whole-day differences."""

    def test_same_month(self):
        assert days_between(Date(2026, 2, 13), Date(2026, 2, 23)) == 10

    def test_across_months(self):
        assert days_between(Date(2026, 2, 13), Date(2026, 3, 10)) == 25

    def test_same_day_is_zero(self):
        assert days_between(Date(2026, 2, 13), Date(2026, 2, 13)) == 0

    def test_end_before_start_is_negative(self):
        assert days_between(Date(2026, 2, 13), Date(2026, 2, 10)) == -3

    def test_time_of_day_is_ignored(self):
        start = datetime(2026, 2, 13, 23, 30, tzinfo=timezone.utc)
        end = datetime(2026, 2, 14, 0, 15, tzinfo=timezone.utc)
        assert days_between(start, end) == 1

    def test_aware_datetimes_read_in_utc(self):
        """23:00 at UTC-3 is already the next day in UTC."""
        local = datetime(2026, 2, 13, 23, 0, tzinfo=timezone(timedelta(hours=-3)))
        assert days_between(local, Date(2026, 2, 23)) == 9


class TestRemainingWeekBlocks:
    """Test week block generation."""

    def test_full_31_day_month_has_s5(self):
        blocks = remaining_week_blocks(2026, 3, 1)
        assert [b.label for b in blocks] == ["S1", "S2", "S3", "S4", "S5"]
        assert [b.days for b in blocks] == [7, 7, 7, 7, 3]
        assert blocks[-1].start == 29
        assert blocks[-1].end == 31

    def test_28_day_month_has_no_s5(self):
        blocks = remaining_week_blocks(2026, 2, 1)
        assert [b.label for b in blocks] == ["S1", "S2", "S3", "S4"]

    def test_leap_february_s5_has_one_day(self):
        blocks = remaining_week_blocks(2024, 2, 1)
        assert blocks[-1].label == "S5"
        assert blocks[-1].days == 1

    def test_reference_day_clips_current_block(self):
        """From the 13th: S2 keeps 13-14, earlier blocks are dropped."""
        blocks = remaining_week_blocks(2026, 2, 13)
        assert [(b.label, b.start, b.end, b.days) for b in blocks] == [
            ("S2", 13, 14, 2),
            ("S3", 15, 21, 7),
            ("S4", 22, 28, 7),
        ]

    def test_days_cover_rest_of_month(self):
        blocks = remaining_week_blocks(2026, 3, 10)
        assert sum(b.days for b in blocks) == 31 - 10 + 1

    def test_reference_after_month_end_is_empty(self):
        assert remaining_week_blocks(2026, 2, 29) == []


class TestWeekBlocksWithLeadTime:
    """Test lead-time aware week blocks."""

    def test_eligibility_and_arrival_month(self):
        blocks = week_blocks_with_lead_time(2026, 2, 13, 10)

        assert [b.order_date for b in blocks] == [Date(2026, 2, 13), Date(2026, 2, 15), Date(2026, 2, 22)]
        assert [b.arrival_date for b in blocks] == [Date(2026, 2, 23), Date(2026, 2, 25), Date(2026, 3, 4)]
        assert [b.eligible for b in blocks] == [True, True, False]
        assert [b.arrival_month for b in blocks] == ["2026_02", "2026_02", "2026_03"]

    def test_arrival_on_last_day_is_eligible(self):
        blocks = week_blocks_with_lead_time(2026, 2, 22, 6)
        assert blocks[0].arrival_date == Date(2026, 2, 28)
        assert blocks[0].eligible is True

    def test_zero_lead_time_all_eligible(self):
        blocks = week_blocks_with_lead_time(2026, 3, 1, 0)
        assert all(b.eligible for b in blocks)


class TestFormatting:
    """Test display helpers."""

    def test_month_label(self):
        assert format_month_label("2026_03") == "Mar/26"
        assert format_month_label("2027_12") == "Dez/27"

    def test_date_br(self):
        assert format_date_br(Date(2026, 2, 5)) == "05/02/2026"
