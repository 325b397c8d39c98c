"""Payment recording and allocation.

A payment is split between the project's remaining one-time fee and its
oldest unpaid invoices, whole invoices only. There is no credit balance:
a payment that would leave money unallocated is rejected and nothing is
written.
"""

import logging
import sqlite3
from datetime import datetime

from . import db
from .errors import (
    InvalidAmountError,
    InvariantViolationError,
    NoCreditSupportError,
    NotFoundError,
)
from .invoices import ensure_invoices_up_to_current

logger = logging.getLogger("feebook.payments")

# Tolerance for float rounding when checking whether an invoice fits
EPSILON = 1e-9


def _require_project(conn: sqlite3.Connection, project_id: int) -> db.Project:
    project = db.get_project(conn, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


def get_one_time_paid(conn: sqlite3.Connection, project_id: int) -> float:
    """Sum of one-time portions across all payments for the project."""
    _require_project(conn, project_id)
    return db.sum_one_time_paid(conn, project_id)


def get_one_time_remaining(conn: sqlite3.Connection, project_id: int) -> float:
    project = _require_project(conn, project_id)
    return max(0.0, project.one_time_fee - db.sum_one_time_paid(conn, project_id))


def record_payment(
    conn: sqlite3.Connection,
    project_id: int,
    amount: float,
    now: datetime,
    one_time_amount: float | None = None,
    note: str = "",
    date: datetime | None = None,
) -> db.Payment:
    """Record a payment and apply it, atomically.

    Args:
        amount: Total received; must be > 0.
        now: Current time, used for invoice generation and paid_at stamps.
        one_time_amount: Portion requested for the one-time fee. None means
            auto: as much of the payment as the remaining one-time fee allows.
        note: Free text stored on the payment.
        date: Payment date (defaults to ``now``).

    Raises:
        NotFoundError: Unknown project.
        InvalidAmountError: ``amount`` is not strictly positive.
        NoCreditSupportError: Money would be left over after allocation.
        ConflictError: Another writer held the database; retry.
    """
    with db.transaction(conn):
        project = _require_project(conn, project_id)
        ensure_invoices_up_to_current(conn, project.id, now)

        try:
            amount = float(amount or 0)
            if one_time_amount is not None:
                one_time_amount = float(one_time_amount)
        except (TypeError, ValueError):
            raise InvalidAmountError("Payment amount must be a number") from None
        if not amount > 0:
            raise InvalidAmountError("Payment amount must be > 0")

        one_time_paid = db.sum_one_time_paid(conn, project.id)
        one_time_remaining = max(0.0, project.one_time_fee - one_time_paid)
        auto_one_time = one_time_amount is None
        requested = amount if auto_one_time else max(0.0, one_time_amount)
        applied_one_time = min(requested, one_time_remaining, amount)

        available = amount - applied_one_time
        allocations: list[db.Allocation] = []
        for invoice in db.list_unpaid_invoices(conn, project.id):
            if available + EPSILON < invoice.amount:
                break
            available -= invoice.amount
            db.set_invoice_status(conn, invoice.id, "paid", paid_at=now)
            db.clear_overdue_notification(conn, invoice.id)
            allocations.append(db.Allocation(
                invoice_id=invoice.id,
                year=invoice.year,
                month=invoice.month,
                amount=invoice.amount,
            ))

        available = round(available, 2)
        if available > 0:
            logger.warning(
                "Rejected payment of %.2f for project %d: %.2f left unallocated (%s one-time)",
                amount, project.id, available, "auto" if auto_one_time else "explicit",
            )
            raise NoCreditSupportError(auto_one_time, leftover=available)

        allocated = applied_one_time + sum(a.amount for a in allocations)
        if round(allocated - amount, 2) != 0:
            raise InvariantViolationError(
                f"Allocated {allocated:.2f} does not match payment amount {amount:.2f}"
            )

        payment_id = db.insert_payment(
            conn,
            project_id=project.id,
            client_id=project.client_id,
            amount=amount,
            date=date or now,
            note=note or "",
            one_time_amount=applied_one_time,
            allocations=allocations,
        )

    logger.info(
        "Recorded payment %d of %.2f for project %d (one-time %.2f, %d invoice(s))",
        payment_id, amount, project.id, applied_one_time, len(allocations),
    )
    return db.get_payment(conn, payment_id)


def list_payments(conn: sqlite3.Connection, project_id: int) -> list[db.Payment]:
    _require_project(conn, project_id)
    return db.list_payments(conn, project_id)


def get_payment_overview(conn: sqlite3.Connection, project_id: int, now: datetime) -> dict:
    """Payments plus the balances a payment form needs."""
    project = _require_project(conn, project_id)
    ensure_invoices_up_to_current(conn, project.id, now)
    one_time_paid = db.sum_one_time_paid(conn, project.id)
    return {
        "payments": db.list_payments(conn, project.id),
        "one_time_paid": one_time_paid,
        "one_time_remaining": max(0.0, project.one_time_fee - one_time_paid),
        "unpaid_invoices": db.list_unpaid_invoices(conn, project.id),
    }
