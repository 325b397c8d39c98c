"""Command-line interface for the feebook ledger.

Every command prints a JSON object with a ``status`` key and exits 1 on error.
"""

import argparse
import json
import logging
import sqlite3
import sys
from dataclasses import asdict, dataclass, is_dataclass
from datetime import date, datetime
from pathlib import Path

from . import dashboard, db, invoices, payments, projects
from .config import Config, load_config
from .errors import BillingError, InvalidInputError, NotFoundError
from .logging_setup import setup_logging
from .overdue_notifier import notify_overdue_invoices
from .yearmonth import parse_month

logger = logging.getLogger("feebook.cli")


@dataclass
class Context:
    conn: sqlite3.Connection
    config: Config
    now: datetime


def _json_default(obj):
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (date, datetime)):
        return db.to_iso(obj)
    if isinstance(obj, Path):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _parse_date(value: str | None, label: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidInputError(f"Invalid {label}: {value!r}. Use YYYY-MM-DD") from None


def _parse_datetime(value: str | None, label: str) -> datetime | None:
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise InvalidInputError(
            f"Invalid {label}: {value!r}. Use YYYY-MM-DD or YYYY-MM-DDTHH:MM"
        ) from None
    return parsed.replace(tzinfo=None)


def _parse_period(value: str) -> db.PausePeriod:
    """Parse ``START..END`` (END may be empty for an open-ended pause)."""
    start, sep, end = value.partition("..")
    if not sep or not start:
        raise InvalidInputError(f"Invalid pause period {value!r}. Use START..END or START..")
    return db.PausePeriod(
        started_at=_parse_datetime(start, "pause start"),
        ended_at=_parse_datetime(end, "pause end") if end else None,
    )


# ============================================================================
# Clients
# ============================================================================


def cmd_client_add(args, ctx: Context) -> dict:
    client = projects.create_client(
        ctx.conn, args.name, phone=args.phone, email=args.email, notes=args.notes,
    )
    return {"status": "ok", "client": client}


def cmd_client_list(args, ctx: Context) -> dict:
    clients = db.list_clients(ctx.conn)
    return {"status": "ok", "client_count": len(clients), "clients": clients}


def cmd_client_show(args, ctx: Context) -> dict:
    client, client_projects = projects.get_client(ctx.conn, args.client_id)
    return {"status": "ok", "client": client, "projects": client_projects}


def cmd_client_update(args, ctx: Context) -> dict:
    fields = {k: getattr(args, k) for k in ("name", "phone", "email", "notes")}
    if all(v is None for v in fields.values()):
        return {"status": "error", "error_type": "invalid_input", "error": "Nothing to update"}
    client = projects.update_client(ctx.conn, args.client_id, **fields)
    return {"status": "ok", "client": client}


def cmd_client_delete(args, ctx: Context) -> dict:
    projects.delete_client(ctx.conn, args.client_id)
    return {"status": "ok", "deleted": args.client_id}


# ============================================================================
# Projects
# ============================================================================


def cmd_project_add(args, ctx: Context) -> dict:
    project = projects.create_project(
        ctx.conn,
        client_id=args.client,
        name=args.name,
        billing_start=_parse_date(args.start, "billing start"),
        now=ctx.now,
        monthly_fee=args.monthly_fee,
        one_time_fee=args.one_time_fee,
        billing_end=_parse_date(args.end, "billing end"),
        notes=args.notes,
    )
    return {"status": "ok", "project": project}


def cmd_project_list(args, ctx: Context) -> dict:
    found = db.list_projects(ctx.conn, status=args.status, client_id=args.client)
    return {"status": "ok", "project_count": len(found), "projects": found}


def cmd_project_show(args, ctx: Context) -> dict:
    project_invoices = invoices.list_invoices(ctx.conn, args.project_id, ctx.now)
    project = db.get_project(ctx.conn, args.project_id)
    return {
        "status": "ok",
        "project": project,
        "one_time_paid": db.sum_one_time_paid(ctx.conn, project.id),
        "one_time_remaining": payments.get_one_time_remaining(ctx.conn, project.id),
        "invoices": project_invoices,
    }


def cmd_project_update(args, ctx: Context) -> dict:
    changes = {}
    if args.name is not None:
        changes["name"] = args.name
    if args.client is not None:
        changes["client_id"] = args.client
    if args.monthly_fee is not None:
        changes["monthly_fee"] = args.monthly_fee
    if args.one_time_fee is not None:
        changes["one_time_fee"] = args.one_time_fee
    if args.start is not None:
        changes["billing_start"] = _parse_date(args.start, "billing start")
    if args.clear_end:
        changes["billing_end"] = None
    elif args.end is not None:
        changes["billing_end"] = _parse_date(args.end, "billing end")
    if args.notes is not None:
        changes["notes"] = args.notes
    if not changes:
        return {"status": "error", "error_type": "invalid_input", "error": "Nothing to update"}

    project = projects.update_project(ctx.conn, args.project_id, ctx.now, **changes)
    return {"status": "ok", "project": project}


def cmd_project_pause(args, ctx: Context) -> dict:
    at = _parse_datetime(args.at, "pause time") or ctx.now
    return {"status": "ok", "project": projects.pause_project(ctx.conn, args.project_id, at)}


def cmd_project_resume(args, ctx: Context) -> dict:
    at = _parse_datetime(args.at, "resume time") or ctx.now
    project = projects.resume_project(ctx.conn, args.project_id, at, now=ctx.now)
    return {"status": "ok", "project": project}


def cmd_project_complete(args, ctx: Context) -> dict:
    return {"status": "ok", "project": projects.complete_project(ctx.conn, args.project_id)}


def cmd_project_pauses(args, ctx: Context) -> dict:
    """List pause periods, or replace them with --period / --clear."""
    if args.clear or args.period:
        periods = [] if args.clear else [_parse_period(p) for p in args.period]
        project = projects.set_pause_periods(ctx.conn, args.project_id, periods, ctx.now)
    else:
        project = db.get_project(ctx.conn, args.project_id)
        if project is None:
            raise NotFoundError(f"Project {args.project_id} not found")
    return {
        "status": "ok",
        "project_id": project.id,
        "project_status": project.status,
        "pause_periods": project.pause_periods,
    }


def cmd_project_delete(args, ctx: Context) -> dict:
    projects.delete_project(ctx.conn, args.project_id)
    return {"status": "ok", "deleted": args.project_id}


# ============================================================================
# Invoices
# ============================================================================


def cmd_invoice_ensure(args, ctx: Context) -> dict:
    months = invoices.ensure_invoices_up_to_current(ctx.conn, args.project_id, ctx.now)
    return {
        "status": "ok",
        "project_id": args.project_id,
        "month_count": len(months),
        "months": [ym.key for ym in months],
    }


def cmd_invoice_list(args, ctx: Context) -> dict:
    """List invoices for a project (all by default, --unpaid for outstanding)."""
    found = invoices.list_invoices(ctx.conn, args.project_id, ctx.now)
    if args.unpaid:
        found = [inv for inv in found if inv.status == "unpaid"]
    return {
        "status": "ok",
        "invoice_count": len(found),
        "unpaid_total": round(sum(inv.amount for inv in found if inv.status == "unpaid"), 2),
        "invoices": found,
    }


def cmd_invoice_paid(args, ctx: Context) -> dict:
    invoice = invoices.mark_invoice_paid(ctx.conn, args.invoice_id, ctx.now, project_id=args.project)
    return {"status": "ok", "invoice": invoice}


def cmd_invoice_unpaid(args, ctx: Context) -> dict:
    invoice = invoices.mark_invoice_unpaid(ctx.conn, args.invoice_id, project_id=args.project)
    return {"status": "ok", "invoice": invoice}


# ============================================================================
# Payments
# ============================================================================


def cmd_payment_record(args, ctx: Context) -> dict:
    payment = payments.record_payment(
        ctx.conn,
        args.project_id,
        args.amount,
        ctx.now,
        one_time_amount=args.one_time,
        note=args.note,
        date=_parse_datetime(args.date, "payment date"),
    )
    return {"status": "ok", "payment": payment}


def cmd_payment_list(args, ctx: Context) -> dict:
    overview = payments.get_payment_overview(ctx.conn, args.project_id, ctx.now)
    return {"status": "ok", "payment_count": len(overview["payments"]), **overview}


# ============================================================================
# Expenses
# ============================================================================


def cmd_expense_add(args, ctx: Context) -> dict:
    if not args.amount > 0:
        raise InvalidInputError("Expense amount must be > 0")
    if args.project is not None and db.get_project(ctx.conn, args.project) is None:
        raise NotFoundError(f"Project {args.project} not found")
    expense_id = db.create_expense(
        ctx.conn,
        date=_parse_datetime(args.date, "expense date") or ctx.now,
        amount=args.amount,
        category=args.category,
        vendor=args.vendor,
        note=args.note,
        project_id=args.project,
    )
    return {"status": "ok", "expense_id": expense_id}


def cmd_expense_list(args, ctx: Context) -> dict:
    month = parse_month(args.month) if args.month else None
    found = db.list_expenses(ctx.conn, month.key if month else None)
    return {
        "status": "ok",
        "expense_count": len(found),
        "total": round(sum(e.amount for e in found), 2),
        "expenses": found,
    }


def cmd_expense_delete(args, ctx: Context) -> dict:
    if not db.delete_expense(ctx.conn, args.expense_id):
        raise NotFoundError(f"Expense {args.expense_id} not found")
    return {"status": "ok", "deleted": args.expense_id}


# ============================================================================
# Reporting
# ============================================================================


def cmd_dashboard(args, ctx: Context) -> dict:
    selected = parse_month(args.month) if args.month else None
    result = dashboard.get_dashboard_summary(ctx.conn, ctx.now, selected)
    return {"status": "ok", "currency": ctx.config.currency, **result}


def cmd_notify_overdue(args, ctx: Context) -> dict:
    count = notify_overdue_invoices(ctx.conn, ctx.config, ctx.now)
    return {"status": "ok", "notified": count}


def cmd_init(config: Config) -> dict:
    """Initialize the database."""
    config.db_path.parent.mkdir(parents=True, exist_ok=True)
    db.init_db(config.db_path)
    return {"status": "ok", "db_path": str(config.db_path)}


def build_parser():
    parser = argparse.ArgumentParser(prog="feebook", description="Client project billing ledger")
    parser.add_argument("-c", "--config", help="Path to config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose (DEBUG) logging")
    parser.add_argument("--now", help="Override the current time (YYYY-MM-DDTHH:MM), for backfills")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Initialize database")

    # client
    p_client = sub.add_parser("client", help="Client management")
    client_sub = p_client.add_subparsers(dest="client_command", required=True)

    p_client_add = client_sub.add_parser("add", help="Add a client")
    p_client_add.add_argument("name", help="Client name")
    p_client_add.add_argument("--phone", default="", help="Phone number")
    p_client_add.add_argument("--email", default="", help="Email address")
    p_client_add.add_argument("--notes", default="", help="Free-form notes")

    client_sub.add_parser("list", help="List clients")

    p_client_show = client_sub.add_parser("show", help="Show a client and its projects")
    p_client_show.add_argument("client_id", type=int, help="Client ID")

    p_client_update = client_sub.add_parser("update", help="Edit a client")
    p_client_update.add_argument("client_id", type=int, help="Client ID")
    p_client_update.add_argument("--name", help="New name")
    p_client_update.add_argument("--phone", help="Phone number")
    p_client_update.add_argument("--email", help="Email address")
    p_client_update.add_argument("--notes", help="Free-form notes")

    p_client_delete = client_sub.add_parser("delete", help="Delete a client without projects")
    p_client_delete.add_argument("client_id", type=int, help="Client ID")

    # project
    p_project = sub.add_parser("project", help="Project management")
    project_sub = p_project.add_subparsers(dest="project_command", required=True)

    p_proj_add = project_sub.add_parser("add", help="Add a project")
    p_proj_add.add_argument("--client", type=int, required=True, help="Client ID")
    p_proj_add.add_argument("--name", "-n", required=True, help="Project name")
    p_proj_add.add_argument("--start", "-s", required=True, help="Billing start date (YYYY-MM-DD)")
    p_proj_add.add_argument("--end", "-e", help="Billing end date (YYYY-MM-DD)")
    p_proj_add.add_argument("--monthly-fee", type=float, default=0.0, help="Recurring monthly fee (default: 0)")
    p_proj_add.add_argument("--one-time-fee", type=float, default=0.0, help="One-time setup fee (default: 0)")
    p_proj_add.add_argument("--notes", default="", help="Free-form notes")

    p_proj_list = project_sub.add_parser("list", help="List projects")
    p_proj_list.add_argument("--status", choices=db.PROJECT_STATUSES, help="Filter by status")
    p_proj_list.add_argument("--client", type=int, help="Filter by client ID")

    p_proj_show = project_sub.add_parser("show", help="Show a project with its invoices")
    p_proj_show.add_argument("project_id", type=int, help="Project ID")

    p_proj_update = project_sub.add_parser("update", help="Update project fields")
    p_proj_update.add_argument("project_id", type=int, help="Project ID")
    p_proj_update.add_argument("--name", "-n", help="Project name")
    p_proj_update.add_argument("--client", type=int, help="Move to another client")
    p_proj_update.add_argument("--monthly-fee", type=float, help="Monthly fee for invoices generated from now on")
    p_proj_update.add_argument("--one-time-fee", type=float, help="One-time fee")
    p_proj_update.add_argument("--start", "-s", help="Billing start date (YYYY-MM-DD)")
    p_proj_update.add_argument("--end", "-e", help="Billing end date (YYYY-MM-DD)")
    p_proj_update.add_argument("--clear-end", action="store_true", help="Remove the billing end date")
    p_proj_update.add_argument("--notes", help="Free-form notes")

    p_proj_pause = project_sub.add_parser("pause", help="Pause billing")
    p_proj_pause.add_argument("project_id", type=int, help="Project ID")
    p_proj_pause.add_argument("--at", help="Pause start (default: now)")

    p_proj_resume = project_sub.add_parser("resume", help="Resume billing")
    p_proj_resume.add_argument("project_id", type=int, help="Project ID")
    p_proj_resume.add_argument("--at", help="Pause end (default: now)")

    p_proj_complete = project_sub.add_parser("complete", help="Mark a project completed")
    p_proj_complete.add_argument("project_id", type=int, help="Project ID")

    p_proj_pauses = project_sub.add_parser("pauses", help="List or replace pause periods")
    p_proj_pauses.add_argument("project_id", type=int, help="Project ID")
    p_proj_pauses.add_argument(
        "--period", "-p", action="append",
        help="Pause period START..END, END optional for an open pause (can specify multiple)",
    )
    p_proj_pauses.add_argument("--clear", action="store_true", help="Remove all pause periods")

    p_proj_delete = project_sub.add_parser("delete", help="Delete a project with its invoices and payments")
    p_proj_delete.add_argument("project_id", type=int, help="Project ID")

    # invoice
    p_inv = sub.add_parser("invoice", help="Monthly invoices")
    inv_sub = p_inv.add_subparsers(dest="invoice_command", required=True)

    p_inv_ensure = inv_sub.add_parser("ensure", help="Generate missing invoices up to the current month")
    p_inv_ensure.add_argument("project_id", type=int, help="Project ID")

    p_inv_list = inv_sub.add_parser("list", help="List a project's invoices")
    p_inv_list.add_argument("project_id", type=int, help="Project ID")
    p_inv_list.add_argument("--unpaid", "-u", action="store_true", help="Only unpaid invoices")

    p_inv_paid = inv_sub.add_parser("paid", help="Mark an invoice paid without recording a payment")
    p_inv_paid.add_argument("invoice_id", type=int, help="Invoice ID")
    p_inv_paid.add_argument("--project", type=int, help="Require the invoice to belong to this project")

    p_inv_unpaid = inv_sub.add_parser("unpaid", help="Mark an invoice unpaid")
    p_inv_unpaid.add_argument("invoice_id", type=int, help="Invoice ID")
    p_inv_unpaid.add_argument("--project", type=int, help="Require the invoice to belong to this project")

    # payment
    p_pay = sub.add_parser("payment", help="Payments")
    pay_sub = p_pay.add_subparsers(dest="payment_command", required=True)

    p_pay_record = pay_sub.add_parser("record", help="Record a payment")
    p_pay_record.add_argument("project_id", type=int, help="Project ID")
    p_pay_record.add_argument("amount", type=float, help="Amount received")
    p_pay_record.add_argument(
        "--one-time", type=float, default=None,
        help="Portion for the one-time fee (default: applied automatically)",
    )
    p_pay_record.add_argument("--note", default="", help="Payment note")
    p_pay_record.add_argument("--date", "-d", help="Payment date (default: now)")

    p_pay_list = pay_sub.add_parser("list", help="List payments and balances for a project")
    p_pay_list.add_argument("project_id", type=int, help="Project ID")

    # expense
    p_exp = sub.add_parser("expense", help="Expenses")
    exp_sub = p_exp.add_subparsers(dest="expense_command", required=True)

    p_exp_add = exp_sub.add_parser("add", help="Add an expense")
    p_exp_add.add_argument("amount", type=float, help="Amount spent")
    p_exp_add.add_argument("--date", "-d", help="Expense date (default: now)")
    p_exp_add.add_argument("--category", default="", help="Category")
    p_exp_add.add_argument("--vendor", default="", help="Vendor")
    p_exp_add.add_argument("--note", default="", help="Note")
    p_exp_add.add_argument("--project", type=int, help="Related project ID")

    p_exp_list = exp_sub.add_parser("list", help="List expenses")
    p_exp_list.add_argument("--month", "-m", help="Only expenses in this month (YYYY-MM)")

    p_exp_delete = exp_sub.add_parser("delete", help="Delete an expense")
    p_exp_delete.add_argument("expense_id", type=int, help="Expense ID")

    # reporting
    p_dash = sub.add_parser("dashboard", help="Financial summary, overdue invoices and 12-month trend")
    p_dash.add_argument("--month", "-m", help="Selected month (YYYY-MM, default: previous month)")

    sub.add_parser("notify-overdue", help="Send a notification for newly overdue invoices")

    return parser


COMMANDS = {
    ("client", "add"): cmd_client_add,
    ("client", "list"): cmd_client_list,
    ("client", "show"): cmd_client_show,
    ("client", "update"): cmd_client_update,
    ("client", "delete"): cmd_client_delete,
    ("project", "add"): cmd_project_add,
    ("project", "list"): cmd_project_list,
    ("project", "show"): cmd_project_show,
    ("project", "update"): cmd_project_update,
    ("project", "pause"): cmd_project_pause,
    ("project", "resume"): cmd_project_resume,
    ("project", "complete"): cmd_project_complete,
    ("project", "pauses"): cmd_project_pauses,
    ("project", "delete"): cmd_project_delete,
    ("invoice", "ensure"): cmd_invoice_ensure,
    ("invoice", "list"): cmd_invoice_list,
    ("invoice", "paid"): cmd_invoice_paid,
    ("invoice", "unpaid"): cmd_invoice_unpaid,
    ("payment", "record"): cmd_payment_record,
    ("payment", "list"): cmd_payment_list,
    ("expense", "add"): cmd_expense_add,
    ("expense", "list"): cmd_expense_list,
    ("expense", "delete"): cmd_expense_delete,
    ("dashboard", None): cmd_dashboard,
    ("notify-overdue", None): cmd_notify_overdue,
}


def _run(args, config: Config) -> dict:
    if args.command == "init":
        return cmd_init(config)

    action = getattr(args, f"{args.command.replace('-', '_')}_command", None)
    handler = COMMANDS[(args.command, action)]
    now = _parse_datetime(args.now, "--now") if args.now else config.now()

    if not config.db_path.exists():
        return {
            "status": "error",
            "error_type": "not_found",
            "error": f"Database not found at {config.db_path}. Run 'feebook init' first",
        }

    with db.get_db(config.db_path) as conn:
        result = handler(args, Context(conn=conn, config=config, now=now))
        if result.get("status") == "error":
            conn.rollback()
        return result


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(Path(args.config) if args.config else None)
    setup_logging(config, verbose=args.verbose)

    try:
        result = _run(args, config)
    except BillingError as e:
        result = {"status": "error", "error_type": e.error_type, "error": str(e)}
    except Exception as e:
        logger.exception("Command %s failed", args.command)
        result = {"status": "error", "error_type": "internal", "error": str(e)}

    print(json.dumps(result, indent=2, ensure_ascii=False, default=_json_default))
    if result.get("status") == "error":
        sys.exit(1)


if __name__ == "__main__":
    main()
