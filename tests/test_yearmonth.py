"""Tests for feebook.yearmonth module."""

from datetime import date, datetime

import pytest

from feebook.errors import InvalidInputError
from feebook.yearmonth import (
    DUE_DAY,
    YearMonth,
    add_months,
    compare,
    from_date,
    is_overdue,
    month_end,
    month_key,
    month_label,
    month_start,
    overlaps,
    parse_month,
    successor,
)


class TestOrdering:
    def test_compare_same_year(self):
        assert compare(YearMonth(2026, 1), YearMonth(2026, 3)) < 0
        assert compare(YearMonth(2026, 3), YearMonth(2026, 1)) > 0

    def test_compare_equal(self):
        assert compare(YearMonth(2026, 5), YearMonth(2026, 5)) == 0

    def test_compare_year_dominates(self):
        assert compare(YearMonth(2025, 12), YearMonth(2026, 1)) < 0

    def test_dataclass_ordering_matches_compare(self):
        months = [YearMonth(2026, 2), YearMonth(2025, 11), YearMonth(2026, 1)]
        assert sorted(months) == [YearMonth(2025, 11), YearMonth(2026, 1), YearMonth(2026, 2)]


class TestSuccessor:
    def test_within_year(self):
        assert successor(YearMonth(2026, 4)) == YearMonth(2026, 5)

    def test_rolls_over_december(self):
        assert successor(YearMonth(2025, 12)) == YearMonth(2026, 1)

    def test_add_months_backwards_across_year(self):
        assert add_months(YearMonth(2026, 3), -11) == YearMonth(2025, 4)

    def test_add_months_forwards(self):
        assert add_months(YearMonth(2025, 11), 3) == YearMonth(2026, 2)

    def test_add_zero(self):
        assert add_months(YearMonth(2026, 7), 0) == YearMonth(2026, 7)


class TestMonthBounds:
    def test_month_start(self):
        assert month_start(YearMonth(2026, 2)) == datetime(2026, 2, 1)

    def test_month_end_february_leap_year(self):
        assert month_end(YearMonth(2024, 2)) == datetime(2024, 2, 29, 23, 59, 59, 999999)

    def test_month_end_december(self):
        assert month_end(YearMonth(2025, 12)) == datetime(2025, 12, 31, 23, 59, 59, 999999)

    def test_from_date_accepts_datetime(self):
        assert from_date(datetime(2026, 3, 31, 23, 0)) == YearMonth(2026, 3)
        assert from_date(date(2026, 1, 1)) == YearMonth(2026, 1)


class TestOverlaps:
    def test_open_ended_from_before(self):
        assert overlaps(2026, 3, datetime(2026, 1, 10), None) is True

    def test_open_ended_starting_after_month(self):
        assert overlaps(2026, 3, datetime(2026, 4, 1), None) is False

    def test_ends_before_month(self):
        assert overlaps(2026, 3, datetime(2026, 1, 1), datetime(2026, 2, 28, 12)) is False

    def test_touches_first_instant(self):
        assert overlaps(2026, 3, datetime(2026, 2, 1), datetime(2026, 3, 1)) is True

    def test_starts_on_last_instant(self):
        assert overlaps(2026, 3, datetime(2026, 3, 31, 23, 59, 59, 999999), None) is True

    def test_inside_month(self):
        assert overlaps(2026, 3, datetime(2026, 3, 10), datetime(2026, 3, 12)) is True


class TestIsOverdue:
    def test_due_day_is_fifteen(self):
        assert DUE_DAY == 15

    def test_not_overdue_at_last_instant_of_due_day(self):
        assert is_overdue(2026, 3, datetime(2026, 3, 15, 23, 59, 59, 999000)) is False

    def test_overdue_at_start_of_next_day(self):
        assert is_overdue(2026, 3, datetime(2026, 3, 16, 0, 0, 0)) is True

    def test_not_overdue_before_month(self):
        assert is_overdue(2026, 3, datetime(2026, 2, 28)) is False

    def test_earlier_month_overdue(self):
        assert is_overdue(2025, 12, datetime(2026, 1, 2)) is True


class TestLabels:
    def test_month_key_pads(self):
        assert month_key(2026, 3) == "2026-03"
        assert YearMonth(2026, 11).key == "2026-11"
        assert str(YearMonth(2026, 1)) == "2026-01"

    def test_month_label(self):
        assert month_label(2026, 1) == "Jan 2026"


class TestParseMonth:
    def test_parses(self):
        assert parse_month("2026-02") == YearMonth(2026, 2)

    def test_strips_whitespace(self):
        assert parse_month(" 2025-12 ") == YearMonth(2025, 12)

    @pytest.mark.parametrize("text", ["2026-13", "2026-00", "2026-1", "March", "", None])
    def test_rejects_malformed(self, text):
        with pytest.raises(InvalidInputError):
            parse_month(text)
