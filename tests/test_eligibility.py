"""Tests for feebook.eligibility module."""

from datetime import date, datetime

from feebook.db import PausePeriod, Project
from feebook.eligibility import is_paused_in, should_bill


def _project(**overrides):
    defaults = {
        "id": 1,
        "client_id": 1,
        "name": "Retainer",
        "monthly_fee": 500.0,
        "one_time_fee": 0.0,
        "billing_start": date(2026, 1, 15),
    }
    defaults.update(overrides)
    return Project(**defaults)


class TestShouldBill:
    def test_active_project_in_window(self):
        assert should_bill(_project(), date(2026, 2, 1)) is True

    def test_start_month_counts_even_mid_month(self):
        assert should_bill(_project(), date(2026, 1, 1)) is True

    def test_before_start(self):
        assert should_bill(_project(), date(2025, 12, 31)) is False

    def test_after_end(self):
        project = _project(billing_end=date(2026, 3, 10))
        assert should_bill(project, date(2026, 3, 1)) is True
        assert should_bill(project, date(2026, 4, 1)) is False

    def test_zero_fee(self):
        assert should_bill(_project(monthly_fee=0.0), date(2026, 2, 1)) is False

    def test_inactive_status(self):
        assert should_bill(_project(status="completed"), date(2026, 2, 1)) is False
        assert should_bill(_project(status="paused"), date(2026, 2, 1)) is False

    def test_paused_month(self):
        project = _project(pause_periods=[
            PausePeriod(started_at=datetime(2026, 2, 10), ended_at=datetime(2026, 2, 20)),
        ])
        assert should_bill(project, date(2026, 2, 1)) is False
        assert should_bill(project, date(2026, 3, 1)) is True

    def test_accepts_datetime(self):
        assert should_bill(_project(), datetime(2026, 5, 20, 12, 0)) is True


class TestIsPausedIn:
    def test_open_pause_covers_later_months(self):
        project = _project(pause_periods=[PausePeriod(started_at=datetime(2026, 2, 1))])
        assert is_paused_in(project, 2026, 1) is False
        assert is_paused_in(project, 2026, 6) is True

    def test_no_periods(self):
        assert is_paused_in(_project(), 2026, 2) is False
