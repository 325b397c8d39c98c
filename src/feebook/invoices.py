"""Recurring invoice generation and manual invoice overrides.

One invoice exists per project per calendar month from the billing start up
to the current month (capped by the billing end), except for months covered
by a pause period. Generation is insert-if-absent, so it is safe to call on
every read of a project and safe to run concurrently for the same project.
"""

import logging
import sqlite3
from datetime import datetime

from . import db
from .errors import NotFoundError
from .yearmonth import YearMonth, from_date, overlaps, successor

logger = logging.getLogger("feebook.invoices")


def _skip_for_pause(project: db.Project, ym: YearMonth) -> bool:
    return any(
        overlaps(ym.year, ym.month, p.started_at, p.ended_at)
        for p in project.pause_periods
    )


def billable_months(project: db.Project, now: datetime) -> list[YearMonth]:
    """Months that should carry an invoice for this project as of ``now``."""
    if not project.monthly_fee > 0:
        return []

    start = from_date(project.billing_start)
    cap = from_date(now)
    if project.billing_end is not None:
        cap = min(cap, from_date(project.billing_end))
    if start > cap:
        return []

    months = []
    cursor = start
    while cursor <= cap:
        if not _skip_for_pause(project, cursor):
            months.append(cursor)
        cursor = successor(cursor)
    return months


def ensure_invoices_up_to_current(
    conn: sqlite3.Connection,
    project_id: int,
    now: datetime,
) -> list[YearMonth]:
    """Make sure an invoice exists for every billable month up to ``now``.

    Existing invoices are never modified; new ones snapshot the current
    monthly fee. Returns the months considered for insertion.
    """
    project = db.get_project(conn, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    months = billable_months(project, now)
    inserted = 0
    for ym in months:
        if db.insert_invoice_if_absent(
            conn, project.id, project.client_id, ym.year, ym.month, project.monthly_fee,
        ):
            inserted += 1

    if inserted:
        logger.info(
            "Generated %d invoice(s) for project %d (%s..%s)",
            inserted, project.id, months[0], months[-1],
        )
    return months


def list_invoices(conn: sqlite3.Connection, project_id: int, now: datetime) -> list[db.Invoice]:
    """All invoices for a project, oldest first, after bringing them up to date."""
    ensure_invoices_up_to_current(conn, project_id, now)
    return db.list_project_invoices(conn, project_id)


def list_unpaid_invoices(conn: sqlite3.Connection, project_id: int) -> list[db.Invoice]:
    return db.list_unpaid_invoices(conn, project_id)


def _get_owned_invoice(
    conn: sqlite3.Connection,
    invoice_id: int,
    project_id: int | None,
) -> db.Invoice:
    invoice = db.get_invoice(conn, invoice_id)
    if invoice is None or (project_id is not None and invoice.project_id != project_id):
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def mark_invoice_paid(
    conn: sqlite3.Connection,
    invoice_id: int,
    now: datetime,
    project_id: int | None = None,
) -> db.Invoice:
    """Operator override: flag an invoice paid without recording a payment."""
    invoice = _get_owned_invoice(conn, invoice_id, project_id)
    db.set_invoice_status(conn, invoice.id, "paid", paid_at=now)
    db.clear_overdue_notification(conn, invoice.id)
    logger.info("Invoice %d (%d-%02d) manually marked paid", invoice.id, invoice.year, invoice.month)
    return db.get_invoice(conn, invoice.id)


def mark_invoice_unpaid(
    conn: sqlite3.Connection,
    invoice_id: int,
    project_id: int | None = None,
) -> db.Invoice:
    """Operator override: flag an invoice unpaid. Payment records are untouched."""
    invoice = _get_owned_invoice(conn, invoice_id, project_id)
    db.set_invoice_status(conn, invoice.id, "unpaid", paid_at=None)
    logger.info("Invoice %d (%d-%02d) manually marked unpaid", invoice.id, invoice.year, invoice.month)
    return db.get_invoice(conn, invoice.id)
