"""Client and project bookkeeping around the ledger.

Pausing and resuming are explicit operations that maintain the project's
pause periods. A plain field update never touches them.
"""

import logging
import sqlite3
from datetime import date, datetime

from . import db
from .errors import InvalidInputError, NotFoundError
from .invoices import ensure_invoices_up_to_current

logger = logging.getLogger("feebook.projects")


def _require_project(conn: sqlite3.Connection, project_id: int) -> db.Project:
    project = db.get_project(conn, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


def _require_client(conn: sqlite3.Connection, client_id: int) -> db.Client:
    client = db.get_client(conn, client_id)
    if client is None:
        raise NotFoundError(f"Client {client_id} not found")
    return client


def _check_fee(name: str, value) -> float:
    try:
        fee = float(value or 0)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number") from None
    if fee < 0:
        raise InvalidInputError(f"{name} must be >= 0")
    return fee


def validate_pause_periods(periods: list[db.PausePeriod]) -> list[db.PausePeriod]:
    """Return periods sorted by start, rejecting inconsistent sets.

    At most one period may be open-ended and it must be the latest one.
    """
    ordered = sorted(periods, key=lambda p: p.started_at)
    for p in ordered:
        if p.ended_at is not None and p.ended_at < p.started_at:
            raise InvalidInputError(
                f"Pause period ending {p.ended_at.isoformat()} ends before it starts"
            )
    open_periods = [p for p in ordered if p.ended_at is None]
    if len(open_periods) > 1:
        raise InvalidInputError("At most one pause period may be open-ended")
    if open_periods and ordered[-1] is not open_periods[0]:
        raise InvalidInputError("Only the most recent pause period may be open-ended")
    return ordered


# ============================================================================
# Clients
# ============================================================================


def create_client(
    conn: sqlite3.Connection,
    name: str,
    phone: str = "",
    email: str = "",
    notes: str = "",
) -> db.Client:
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Name is required")
    client_id = db.create_client(conn, name, phone=phone, email=email, notes=notes)
    return db.get_client(conn, client_id)


def update_client(
    conn: sqlite3.Connection,
    client_id: int,
    name: str | None = None,
    phone: str | None = None,
    email: str | None = None,
    notes: str | None = None,
) -> db.Client:
    """Edit a client. Fields left as None keep their current value."""
    client = _require_client(conn, client_id)
    if name is not None:
        name = name.strip()
        if not name:
            raise InvalidInputError("Name is required")
    db.update_client(
        conn,
        client.id,
        name=client.name if name is None else name,
        phone=client.phone if phone is None else phone,
        email=client.email if email is None else email,
        notes=client.notes if notes is None else notes,
    )
    logger.info("Updated client %d", client.id)
    return db.get_client(conn, client.id)


def get_client(conn: sqlite3.Connection, client_id: int) -> tuple[db.Client, list[db.Project]]:
    client = _require_client(conn, client_id)
    return client, db.list_projects(conn, client_id=client_id)


def delete_client(conn: sqlite3.Connection, client_id: int) -> None:
    _require_client(conn, client_id)
    db.delete_client(conn, client_id)
    logger.info("Deleted client %d", client_id)


# ============================================================================
# Projects
# ============================================================================


def create_project(
    conn: sqlite3.Connection,
    client_id: int,
    name: str,
    billing_start: date,
    now: datetime,
    monthly_fee: float = 0.0,
    one_time_fee: float = 0.0,
    billing_end: date | None = None,
    notes: str = "",
    pause_periods: list[db.PausePeriod] | None = None,
) -> db.Project:
    """Create a project and generate its invoices up to ``now``."""
    name = (name or "").strip()
    if not name or billing_start is None:
        raise InvalidInputError("Missing required fields")
    _require_client(conn, client_id)
    monthly_fee = _check_fee("Monthly fee", monthly_fee)
    one_time_fee = _check_fee("One-time fee", one_time_fee)
    periods = validate_pause_periods(pause_periods or [])

    project_id = db.create_project(
        conn,
        client_id=client_id,
        name=name,
        billing_start=billing_start,
        monthly_fee=monthly_fee,
        one_time_fee=one_time_fee,
        billing_end=billing_end,
        status="paused" if periods and periods[-1].is_open else "active",
        notes=notes,
    )
    if periods:
        db.replace_pause_periods(conn, project_id, periods)

    ensure_invoices_up_to_current(conn, project_id, now)
    logger.info("Created project %d (%s), monthly fee %.2f", project_id, name, monthly_fee)
    return db.get_project(conn, project_id)


def update_project(
    conn: sqlite3.Connection,
    project_id: int,
    now: datetime,
    **changes,
) -> db.Project:
    """Update fees, billing window, name, notes or client.

    Fee changes apply to invoices generated from now on; existing invoices
    keep the amount they were created with.
    """
    _require_project(conn, project_id)
    if "status" in changes:
        raise InvalidInputError("Use pause, resume or complete to change status")
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise InvalidInputError("Name is required")
    for key, label in (("monthly_fee", "Monthly fee"), ("one_time_fee", "One-time fee")):
        if key in changes:
            changes[key] = _check_fee(label, changes[key])
    if "client_id" in changes:
        _require_client(conn, changes["client_id"])

    db.update_project(conn, project_id, **changes)
    ensure_invoices_up_to_current(conn, project_id, now)
    return db.get_project(conn, project_id)


def set_pause_periods(
    conn: sqlite3.Connection,
    project_id: int,
    periods: list[db.PausePeriod],
    now: datetime,
) -> db.Project:
    """Replace all pause periods at once (validated)."""
    _require_project(conn, project_id)
    ordered = validate_pause_periods(periods)
    db.replace_pause_periods(conn, project_id, ordered)
    ensure_invoices_up_to_current(conn, project_id, now)
    logger.info("Replaced pause periods for project %d (%d period(s))", project_id, len(ordered))
    return db.get_project(conn, project_id)


def _open_period(project: db.Project) -> db.PausePeriod | None:
    return next((p for p in project.pause_periods if p.is_open), None)


def pause_project(conn: sqlite3.Connection, project_id: int, at: datetime) -> db.Project:
    """Open a pause period starting at ``at``. No-op if one is already open.

    A new pause cannot start before the latest existing period starts or ends.
    """
    project = _require_project(conn, project_id)
    if _open_period(project) is None:
        if project.pause_periods:
            latest = max(p.ended_at or p.started_at for p in project.pause_periods)
            if at < latest:
                raise InvalidInputError(
                    f"Pause cannot start before {latest.isoformat(sep=' ')}, "
                    "the end of the latest pause period"
                )
        db.add_pause_period(conn, project.id, started_at=at)
        logger.info("Paused project %d at %s", project.id, at.isoformat())
    if project.status != "paused":
        db.update_project(conn, project.id, status="paused")
    return db.get_project(conn, project.id)


def resume_project(
    conn: sqlite3.Connection,
    project_id: int,
    at: datetime,
    now: datetime | None = None,
) -> db.Project:
    """Close the open pause period at ``at`` and reactivate billing."""
    project = _require_project(conn, project_id)
    open_period = _open_period(project)
    if open_period is not None:
        if at < open_period.started_at:
            raise InvalidInputError("Resume time is before the pause started")
        db.close_pause_period(conn, open_period.id, ended_at=at)
        logger.info("Resumed project %d at %s", project.id, at.isoformat())
    if project.status != "active":
        db.update_project(conn, project.id, status="active")
    ensure_invoices_up_to_current(conn, project.id, now or at)
    return db.get_project(conn, project.id)


def complete_project(conn: sqlite3.Connection, project_id: int) -> db.Project:
    """Mark a project completed. Billing window and pauses are unchanged."""
    project = _require_project(conn, project_id)
    if project.status != "completed":
        db.update_project(conn, project.id, status="completed")
        logger.info("Completed project %d", project.id)
    return db.get_project(conn, project.id)


def delete_project(conn: sqlite3.Connection, project_id: int) -> None:
    """Delete a project together with its invoices and payments."""
    _require_project(conn, project_id)
    db.delete_project(conn, project_id)
    logger.info("Deleted project %d", project_id)
