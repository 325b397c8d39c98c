"""Whether a project accrues a recurring charge in a given month.

Used for the "expected" reporting figures only. Invoice generation walks
months on its own and ignores the project's current status.
"""

from datetime import date

from .db import Project
from .yearmonth import from_date, overlaps


def is_paused_in(project: Project, year: int, month: int) -> bool:
    """True if any pause period overlaps the calendar month."""
    return any(
        overlaps(year, month, p.started_at, p.ended_at)
        for p in project.pause_periods
    )


def should_bill(project: Project, month_date: date) -> bool:
    if not project.monthly_fee > 0:
        return False
    if project.status != "active":
        return False

    target = from_date(month_date)
    if target < from_date(project.billing_start):
        return False
    if project.billing_end and target > from_date(project.billing_end):
        return False

    return not is_paused_in(project, target.year, target.month)
