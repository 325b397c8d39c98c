"""Consolidated push notification for newly overdue invoices."""

import logging
import sqlite3
from datetime import datetime

from . import db
from .config import Config
from .dashboard import overdue_invoices
from .notifications import send_ntfy

logger = logging.getLogger("feebook.overdue_notifier")


def build_overdue_message(rows: list[dict], currency: str = "USD") -> str:
    lines = ["**Overdue Invoices**\n"]
    for row in rows:
        lines.append(
            f"- **{row['project_name']}** ({row['client_name']}): "
            f"{row['amount']:,.2f} {currency} for {row['month_label']}"
        )
    return "\n".join(lines)


def notify_overdue_invoices(conn: sqlite3.Connection, config: Config, now: datetime) -> int:
    """Notify about overdue invoices not yet reported.

    Returns count of newly-notified invoices. Nothing is marked when the
    notification could not be delivered, so the next run retries.
    """
    already_notified = db.get_notified_overdue_invoices(conn)
    newly_overdue = [
        row for row in overdue_invoices(conn, now)
        if row["id"] not in already_notified
    ]
    if not newly_overdue:
        logger.debug("No newly overdue invoices")
        return 0

    message = build_overdue_message(newly_overdue, config.currency)
    sent = send_ntfy(
        config,
        message,
        title=f"{len(newly_overdue)} overdue invoice(s)",
        tags="warning",
    )
    if not sent:
        logger.warning(
            "Overdue notification for %d invoice(s) not delivered", len(newly_overdue),
        )
        return 0

    for row in newly_overdue:
        db.mark_invoice_overdue_notified(conn, row["id"])
    logger.info("Sent overdue notification for %d invoice(s)", len(newly_overdue))
    return len(newly_overdue)
