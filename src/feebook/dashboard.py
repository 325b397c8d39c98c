"""Financial summaries derived from the ledger at read time.

Nothing here is cached or written; every figure is a fresh sum over the
invoices, payments and expenses tables.
"""

import logging
import sqlite3
from datetime import datetime

from . import db
from .eligibility import should_bill
from .yearmonth import (
    YearMonth,
    add_months,
    from_date,
    is_overdue,
    month_label,
    month_start,
)

logger = logging.getLogger("feebook.dashboard")

TREND_MONTHS = 12
UNKNOWN_PROJECT = "Unknown project"
UNKNOWN_CLIENT = "Unknown client"


def expected_for_month(projects: list[db.Project], ym: YearMonth) -> float:
    """Sum of monthly fees of every project billable in that month."""
    target = month_start(ym)
    return sum(p.monthly_fee for p in projects if should_bill(p, target))


def collected_for_month(conn: sqlite3.Connection, ym: YearMonth) -> float:
    return db.sum_paid_invoices(conn, ym.key) + db.sum_one_time_collected(conn, ym.key)


def outstanding_unpaid(conn: sqlite3.Connection, projects: list[db.Project]) -> float:
    """Unpaid invoices plus whatever is left of every one-time fee."""
    paid_by_project = db.one_time_paid_by_project(conn)
    remaining_one_time = sum(
        max(0.0, p.one_time_fee - paid_by_project.get(p.id, 0.0))
        for p in projects
    )
    return db.sum_unpaid_invoices(conn) + remaining_one_time


def overdue_invoices(conn: sqlite3.Connection, now: datetime) -> list[dict]:
    """Unpaid invoices past their due day, oldest first, with display names."""
    rows = [
        inv for inv in db.list_unpaid_invoices(conn)
        if is_overdue(inv.year, inv.month, now)
    ]
    rows.sort(key=lambda inv: (inv.year, inv.month))

    project_names = db.get_project_names(conn, {inv.project_id for inv in rows})
    client_names = db.get_client_names(conn, {inv.client_id for inv in rows})

    return [
        {
            "id": inv.id,
            "project_id": inv.project_id,
            "client_id": inv.client_id,
            "project_name": project_names.get(inv.project_id) or UNKNOWN_PROJECT,
            "client_name": client_names.get(inv.client_id) or UNKNOWN_CLIENT,
            "year": inv.year,
            "month": inv.month,
            "month_label": month_label(inv.year, inv.month),
            "amount": inv.amount,
        }
        for inv in rows
    ]


def monthly_trend(conn: sqlite3.Connection, now: datetime, months: int = TREND_MONTHS) -> list[dict]:
    """Collected/expenses/profit for the last ``months`` months ending at ``now``.

    Always returns exactly ``months`` entries, oldest first; quiet months are zero.
    """
    current = from_date(now)
    first = add_months(current, -(months - 1))

    paid = db.sum_paid_invoices_by_month(conn, first.key, current.key)
    one_time = db.sum_one_time_collected_by_month(conn, first.key, current.key)
    expenses = db.sum_expenses_by_month(conn, first.key, current.key)

    trend = []
    for offset in range(months):
        ym = add_months(first, offset)
        monthly_collected = paid.get(ym.key, 0.0)
        one_time_collected = one_time.get(ym.key, 0.0)
        collected = monthly_collected + one_time_collected
        spent = expenses.get(ym.key, 0.0)
        trend.append({
            "year": ym.year,
            "month": ym.month,
            "month_label": month_label(ym.year, ym.month),
            "monthly_collected": monthly_collected,
            "one_time_collected": one_time_collected,
            "collected": collected,
            "expenses": spent,
            "profit": collected - spent,
        })
    return trend


def get_dashboard_summary(
    conn: sqlite3.Connection,
    now: datetime,
    selected_month: YearMonth | None = None,
) -> dict:
    """Summary figures, overdue invoices and a 12-month trend.

    ``selected_month`` defaults to the month before ``now``.
    """
    current = from_date(now)
    selected = selected_month or add_months(current, -1)
    projects = db.list_projects(conn)

    collected_this_month = collected_for_month(conn, current)
    expenses_this_month = db.sum_expenses(conn, current.key)
    collected_selected = collected_for_month(conn, selected)
    expenses_selected = db.sum_expenses(conn, selected.key)
    collected_all_time = db.sum_paid_invoices(conn) + db.sum_one_time_collected(conn)
    expenses_all_time = db.sum_expenses(conn)

    overdue = overdue_invoices(conn, now)

    summary = {
        "expected_this_month": expected_for_month(projects, current),
        "collected_this_month": collected_this_month,
        "outstanding_unpaid": outstanding_unpaid(conn, projects),
        "expenses_this_month": expenses_this_month,
        "profit_this_month": collected_this_month - expenses_this_month,
        "collected_all_time": collected_all_time,
        "expenses_all_time": expenses_all_time,
        "profit_all_time": collected_all_time - expenses_all_time,
        "overdue_amount": sum(row["amount"] for row in overdue),
        "selected_month": {
            "key": selected.key,
            "label": month_label(selected.year, selected.month),
            "expected": expected_for_month(projects, selected),
            "collected": collected_selected,
            "expenses": expenses_selected,
            "profit": collected_selected - expenses_selected,
        },
    }

    logger.debug(
        "Dashboard for %s: collected %.2f, overdue %d",
        current, collected_this_month, len(overdue),
    )
    return {
        "summary": summary,
        "overdue": overdue,
        "trend": monthly_trend(conn, now),
    }
