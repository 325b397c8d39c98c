"""Database operations for the feebook ledger."""

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Iterator

from .errors import ConflictError, InvalidInputError

logger = logging.getLogger("feebook.db")

PROJECT_STATUSES = ("active", "paused", "completed")


@dataclass
class Client:
    id: int
    name: str
    phone: str = ""
    email: str = ""
    notes: str = ""
    created_at: str | None = None


@dataclass
class PausePeriod:
    started_at: datetime
    ended_at: datetime | None = None
    id: int | None = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None


@dataclass
class Project:
    id: int
    client_id: int
    name: str
    monthly_fee: float
    one_time_fee: float
    billing_start: date
    billing_end: date | None = None
    status: str = "active"
    notes: str = ""
    pause_periods: list[PausePeriod] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Invoice:
    id: int
    project_id: int
    client_id: int
    year: int
    month: int
    amount: float
    status: str
    paid_at: datetime | None = None
    created_at: str | None = None


@dataclass
class Allocation:
    invoice_id: int
    year: int
    month: int
    amount: float


@dataclass
class Payment:
    id: int
    project_id: int
    client_id: int
    amount: float
    date: datetime
    note: str = ""
    one_time_amount: float = 0.0
    allocations: list[Allocation] = field(default_factory=list)
    created_at: str | None = None


@dataclass
class Expense:
    id: int
    date: datetime
    amount: float
    category: str = ""
    vendor: str = ""
    note: str = ""
    project_id: int | None = None
    created_at: str | None = None


def to_iso(value: datetime | date | None) -> str | None:
    """Serialize a naive datetime/date for storage."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.replace(tzinfo=None)
        return value.isoformat(sep=" ")
    return value.isoformat()


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value[:10])


def init_db(db_path: Path) -> None:
    """Initialize database with schema."""
    schema_path = Path(__file__).parent / "schema.sql"
    with sqlite3.connect(db_path) as conn:
        conn.executescript(schema_path.read_text())


@contextmanager
def get_db(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Get database connection with row factory."""
    # timeout=30.0 waits up to 30s for locks instead of failing immediately
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def _is_lock_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block atomically: everything inside commits together or not at all.

    Takes the write lock up front (BEGIN IMMEDIATE) so concurrent writers
    serialize instead of interleaving reads and writes. When the connection
    already has an open transaction the block runs in a SAVEPOINT and only
    that block is undone on failure.
    """
    if conn.in_transaction:
        conn.execute("SAVEPOINT feebook_txn")
        try:
            yield conn
        except sqlite3.OperationalError as e:
            conn.execute("ROLLBACK TO SAVEPOINT feebook_txn")
            conn.execute("RELEASE SAVEPOINT feebook_txn")
            if _is_lock_error(e):
                raise ConflictError(f"Concurrent modification, retry the request: {e}") from e
            raise
        except BaseException:
            conn.execute("ROLLBACK TO SAVEPOINT feebook_txn")
            conn.execute("RELEASE SAVEPOINT feebook_txn")
            raise
        conn.execute("RELEASE SAVEPOINT feebook_txn")
        return

    try:
        conn.execute("BEGIN IMMEDIATE")
    except sqlite3.OperationalError as e:
        if _is_lock_error(e):
            raise ConflictError(f"Database busy, retry the request: {e}") from e
        raise
    try:
        yield conn
    except sqlite3.OperationalError as e:
        conn.rollback()
        if _is_lock_error(e):
            raise ConflictError(f"Concurrent modification, retry the request: {e}") from e
        raise
    except BaseException:
        conn.rollback()
        raise
    try:
        conn.commit()
    except sqlite3.OperationalError as e:
        conn.rollback()
        if _is_lock_error(e):
            raise ConflictError(f"Commit failed, retry the request: {e}") from e
        raise


# ============================================================================
# Clients
# ============================================================================


def _row_to_client(row: sqlite3.Row) -> Client:
    return Client(
        id=row["id"],
        name=row["name"],
        phone=row["phone"],
        email=row["email"],
        notes=row["notes"],
        created_at=row["created_at"],
    )


def create_client(
    conn: sqlite3.Connection,
    name: str,
    phone: str = "",
    email: str = "",
    notes: str = "",
) -> int:
    """Create a client and return its ID."""
    cursor = conn.execute(
        """
        INSERT INTO clients (name, phone, email, notes)
        VALUES (?, ?, ?, ?)
        RETURNING id
        """,
        (name, phone, email, notes),
    )
    client_id = cursor.fetchone()[0]
    logger.debug("Created client %d (%s)", client_id, name)
    return client_id


def get_client(conn: sqlite3.Connection, client_id: int) -> Client | None:
    cursor = conn.execute(
        "SELECT id, name, phone, email, notes, created_at FROM clients WHERE id = ?",
        (client_id,),
    )
    row = cursor.fetchone()
    return _row_to_client(row) if row else None


def list_clients(conn: sqlite3.Connection) -> list[Client]:
    """List clients, newest first."""
    cursor = conn.execute(
        "SELECT id, name, phone, email, notes, created_at FROM clients ORDER BY id DESC"
    )
    return [_row_to_client(row) for row in cursor.fetchall()]


def update_client(
    conn: sqlite3.Connection,
    client_id: int,
    name: str,
    phone: str = "",
    email: str = "",
    notes: str = "",
) -> bool:
    cursor = conn.execute(
        "UPDATE clients SET name = ?, phone = ?, email = ?, notes = ? WHERE id = ?",
        (name, phone, email, notes, client_id),
    )
    return cursor.rowcount > 0


def count_client_projects(conn: sqlite3.Connection, client_id: int) -> int:
    cursor = conn.execute(
        "SELECT COUNT(*) FROM projects WHERE client_id = ?", (client_id,)
    )
    return cursor.fetchone()[0]


def delete_client(conn: sqlite3.Connection, client_id: int) -> bool:
    """Delete a client. Refuses while the client still owns projects."""
    if count_client_projects(conn, client_id) > 0:
        raise InvalidInputError("Cannot delete client with projects")
    cursor = conn.execute("DELETE FROM clients WHERE id = ?", (client_id,))
    return cursor.rowcount > 0


# ============================================================================
# Projects and pause periods
# ============================================================================


_PROJECT_COLUMNS = """
    id, client_id, name, monthly_fee, one_time_fee, billing_start, billing_end,
    status, notes, created_at, updated_at
"""


def _row_to_project(row: sqlite3.Row, pause_periods: list[PausePeriod]) -> Project:
    return Project(
        id=row["id"],
        client_id=row["client_id"],
        name=row["name"],
        monthly_fee=float(row["monthly_fee"] or 0),
        one_time_fee=float(row["one_time_fee"] or 0),
        billing_start=_parse_date(row["billing_start"]),
        billing_end=_parse_date(row["billing_end"]),
        status=row["status"],
        notes=row["notes"],
        pause_periods=pause_periods,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def create_project(
    conn: sqlite3.Connection,
    client_id: int,
    name: str,
    billing_start: date,
    monthly_fee: float = 0.0,
    one_time_fee: float = 0.0,
    billing_end: date | None = None,
    status: str = "active",
    notes: str = "",
) -> int:
    """Create a project and return its ID."""
    cursor = conn.execute(
        """
        INSERT INTO projects (
            client_id, name, monthly_fee, one_time_fee,
            billing_start, billing_end, status, notes
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (
            client_id,
            name,
            monthly_fee,
            one_time_fee,
            to_iso(billing_start),
            to_iso(billing_end),
            status,
            notes,
        ),
    )
    project_id = cursor.fetchone()[0]
    logger.debug("Created project %d (%s) for client %d", project_id, name, client_id)
    return project_id


def get_pause_periods(conn: sqlite3.Connection, project_id: int) -> list[PausePeriod]:
    """Pause periods in chronological order of start."""
    cursor = conn.execute(
        """
        SELECT id, started_at, ended_at FROM pause_periods
        WHERE project_id = ?
        ORDER BY started_at ASC, id ASC
        """,
        (project_id,),
    )
    return [
        PausePeriod(
            id=row["id"],
            started_at=_parse_datetime(row["started_at"]),
            ended_at=_parse_datetime(row["ended_at"]),
        )
        for row in cursor.fetchall()
    ]


def get_project(conn: sqlite3.Connection, project_id: int) -> Project | None:
    cursor = conn.execute(
        f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id = ?",
        (project_id,),
    )
    row = cursor.fetchone()
    if not row:
        return None
    return _row_to_project(row, get_pause_periods(conn, project_id))


def list_projects(
    conn: sqlite3.Connection,
    status: str | None = None,
    client_id: int | None = None,
) -> list[Project]:
    """List projects, newest first, optionally filtered."""
    filters = []
    params: list = []
    if status is not None:
        filters.append("status = ?")
        params.append(status)
    if client_id is not None:
        filters.append("client_id = ?")
        params.append(client_id)
    where_clause = f"WHERE {' AND '.join(filters)}" if filters else ""

    cursor = conn.execute(
        f"SELECT {_PROJECT_COLUMNS} FROM projects {where_clause} ORDER BY id DESC",
        params,
    )
    rows = cursor.fetchall()
    return [_row_to_project(row, get_pause_periods(conn, row["id"])) for row in rows]


def get_project_names(conn: sqlite3.Connection, project_ids: set[int]) -> dict[int, str]:
    if not project_ids:
        return {}
    placeholders = ", ".join("?" for _ in project_ids)
    cursor = conn.execute(
        f"SELECT id, name FROM projects WHERE id IN ({placeholders})",
        list(project_ids),
    )
    return {row["id"]: row["name"] for row in cursor.fetchall()}


def get_client_names(conn: sqlite3.Connection, client_ids: set[int]) -> dict[int, str]:
    if not client_ids:
        return {}
    placeholders = ", ".join("?" for _ in client_ids)
    cursor = conn.execute(
        f"SELECT id, name FROM clients WHERE id IN ({placeholders})",
        list(client_ids),
    )
    return {row["id"]: row["name"] for row in cursor.fetchall()}


_UPDATABLE_PROJECT_FIELDS = (
    "client_id",
    "name",
    "monthly_fee",
    "one_time_fee",
    "billing_start",
    "billing_end",
    "status",
    "notes",
)


def update_project(conn: sqlite3.Connection, project_id: int, **fields) -> bool:
    """Update the given project columns. Unknown field names are rejected."""
    unknown = set(fields) - set(_UPDATABLE_PROJECT_FIELDS)
    if unknown:
        raise InvalidInputError(f"Unknown project field(s): {', '.join(sorted(unknown))}")
    if not fields:
        return get_project(conn, project_id) is not None

    values = [
        to_iso(v) if isinstance(v, (date, datetime)) else v
        for v in fields.values()
    ]
    set_clause = ", ".join(f"{name} = ?" for name in fields)
    cursor = conn.execute(
        f"UPDATE projects SET {set_clause}, updated_at = datetime('now') WHERE id = ?",
        values + [project_id],
    )
    return cursor.rowcount > 0


def delete_project(conn: sqlite3.Connection, project_id: int) -> bool:
    """Delete a project; invoices, payments and pause periods cascade."""
    cursor = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    return cursor.rowcount > 0


def add_pause_period(
    conn: sqlite3.Connection,
    project_id: int,
    started_at: datetime,
    ended_at: datetime | None = None,
) -> int:
    cursor = conn.execute(
        """
        INSERT INTO pause_periods (project_id, started_at, ended_at)
        VALUES (?, ?, ?)
        RETURNING id
        """,
        (project_id, to_iso(started_at), to_iso(ended_at)),
    )
    return cursor.fetchone()[0]


def close_pause_period(conn: sqlite3.Connection, period_id: int, ended_at: datetime) -> None:
    conn.execute(
        "UPDATE pause_periods SET ended_at = ? WHERE id = ? AND ended_at IS NULL",
        (to_iso(ended_at), period_id),
    )


def replace_pause_periods(
    conn: sqlite3.Connection,
    project_id: int,
    periods: list[PausePeriod],
) -> None:
    conn.execute("DELETE FROM pause_periods WHERE project_id = ?", (project_id,))
    conn.executemany(
        "INSERT INTO pause_periods (project_id, started_at, ended_at) VALUES (?, ?, ?)",
        [(project_id, to_iso(p.started_at), to_iso(p.ended_at)) for p in periods],
    )


# ============================================================================
# Invoices
# ============================================================================


_INVOICE_COLUMNS = "id, project_id, client_id, year, month, amount, status, paid_at, created_at"


def _row_to_invoice(row: sqlite3.Row) -> Invoice:
    return Invoice(
        id=row["id"],
        project_id=row["project_id"],
        client_id=row["client_id"],
        year=row["year"],
        month=row["month"],
        amount=float(row["amount"]),
        status=row["status"],
        paid_at=_parse_datetime(row["paid_at"]),
        created_at=row["created_at"],
    )


def insert_invoice_if_absent(
    conn: sqlite3.Connection,
    project_id: int,
    client_id: int,
    year: int,
    month: int,
    amount: float,
) -> bool:
    """Insert an unpaid invoice unless one exists for that period.

    Returns True if a row was inserted. An existing row is left untouched.
    """
    cursor = conn.execute(
        """
        INSERT INTO invoices (project_id, client_id, year, month, amount, status, paid_at)
        VALUES (?, ?, ?, ?, ?, 'unpaid', NULL)
        ON CONFLICT (project_id, year, month) DO NOTHING
        """,
        (project_id, client_id, year, month, amount),
    )
    return cursor.rowcount > 0


def get_invoice(conn: sqlite3.Connection, invoice_id: int) -> Invoice | None:
    cursor = conn.execute(
        f"SELECT {_INVOICE_COLUMNS} FROM invoices WHERE id = ?",
        (invoice_id,),
    )
    row = cursor.fetchone()
    return _row_to_invoice(row) if row else None


def list_project_invoices(conn: sqlite3.Connection, project_id: int) -> list[Invoice]:
    cursor = conn.execute(
        f"""
        SELECT {_INVOICE_COLUMNS} FROM invoices
        WHERE project_id = ?
        ORDER BY year ASC, month ASC
        """,
        (project_id,),
    )
    return [_row_to_invoice(row) for row in cursor.fetchall()]


def list_unpaid_invoices(
    conn: sqlite3.Connection,
    project_id: int | None = None,
) -> list[Invoice]:
    """Unpaid invoices, oldest period first."""
    if project_id is None:
        cursor = conn.execute(
            f"""
            SELECT {_INVOICE_COLUMNS} FROM invoices
            WHERE status = 'unpaid'
            ORDER BY year ASC, month ASC, id ASC
            """
        )
    else:
        cursor = conn.execute(
            f"""
            SELECT {_INVOICE_COLUMNS} FROM invoices
            WHERE project_id = ? AND status = 'unpaid'
            ORDER BY year ASC, month ASC
            """,
            (project_id,),
        )
    return [_row_to_invoice(row) for row in cursor.fetchall()]


def set_invoice_status(
    conn: sqlite3.Connection,
    invoice_id: int,
    status: str,
    paid_at: datetime | None = None,
) -> bool:
    cursor = conn.execute(
        "UPDATE invoices SET status = ?, paid_at = ? WHERE id = ?",
        (status, to_iso(paid_at), invoice_id),
    )
    return cursor.rowcount > 0


def sum_unpaid_invoices(conn: sqlite3.Connection) -> float:
    cursor = conn.execute(
        "SELECT COALESCE(SUM(amount), 0) FROM invoices WHERE status = 'unpaid'"
    )
    return float(cursor.fetchone()[0])


def sum_paid_invoices(conn: sqlite3.Connection, month_key: str | None = None) -> float:
    """Sum of paid invoice amounts, optionally only those paid in a YYYY-MM month."""
    if month_key is None:
        cursor = conn.execute(
            "SELECT COALESCE(SUM(amount), 0) FROM invoices WHERE status = 'paid'"
        )
    else:
        cursor = conn.execute(
            """
            SELECT COALESCE(SUM(amount), 0) FROM invoices
            WHERE status = 'paid' AND strftime('%Y-%m', paid_at) = ?
            """,
            (month_key,),
        )
    return float(cursor.fetchone()[0])


def sum_paid_invoices_by_month(
    conn: sqlite3.Connection,
    first_key: str,
    last_key: str,
) -> dict[str, float]:
    """Paid invoice totals grouped by the YYYY-MM of paid_at, within [first, last]."""
    cursor = conn.execute(
        """
        SELECT strftime('%Y-%m', paid_at) AS period, SUM(amount) AS total
        FROM invoices
        WHERE status = 'paid'
        AND strftime('%Y-%m', paid_at) BETWEEN ? AND ?
        GROUP BY period
        """,
        (first_key, last_key),
    )
    return {row["period"]: float(row["total"] or 0) for row in cursor.fetchall()}


# ============================================================================
# Payments
# ============================================================================


def insert_payment(
    conn: sqlite3.Connection,
    project_id: int,
    client_id: int,
    amount: float,
    date: datetime,
    note: str,
    one_time_amount: float,
    allocations: list[Allocation],
) -> int:
    """Persist a payment together with its ordered allocations."""
    cursor = conn.execute(
        """
        INSERT INTO payments (project_id, client_id, amount, date, note, one_time_amount)
        VALUES (?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (project_id, client_id, amount, to_iso(date), note, one_time_amount),
    )
    payment_id = cursor.fetchone()[0]
    conn.executemany(
        """
        INSERT INTO payment_allocations (payment_id, invoice_id, year, month, amount, position)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        [
            (payment_id, a.invoice_id, a.year, a.month, a.amount, position)
            for position, a in enumerate(allocations)
        ],
    )
    return payment_id


def _get_allocations(conn: sqlite3.Connection, payment_id: int) -> list[Allocation]:
    cursor = conn.execute(
        """
        SELECT invoice_id, year, month, amount FROM payment_allocations
        WHERE payment_id = ?
        ORDER BY position ASC
        """,
        (payment_id,),
    )
    return [
        Allocation(
            invoice_id=row["invoice_id"],
            year=row["year"],
            month=row["month"],
            amount=float(row["amount"]),
        )
        for row in cursor.fetchall()
    ]


def _row_to_payment(conn: sqlite3.Connection, row: sqlite3.Row) -> Payment:
    return Payment(
        id=row["id"],
        project_id=row["project_id"],
        client_id=row["client_id"],
        amount=float(row["amount"]),
        date=_parse_datetime(row["date"]),
        note=row["note"],
        one_time_amount=float(row["one_time_amount"]),
        allocations=_get_allocations(conn, row["id"]),
        created_at=row["created_at"],
    )


def get_payment(conn: sqlite3.Connection, payment_id: int) -> Payment | None:
    cursor = conn.execute(
        """
        SELECT id, project_id, client_id, amount, date, note, one_time_amount, created_at
        FROM payments WHERE id = ?
        """,
        (payment_id,),
    )
    row = cursor.fetchone()
    return _row_to_payment(conn, row) if row else None


def list_payments(conn: sqlite3.Connection, project_id: int) -> list[Payment]:
    """Payments for a project, newest first."""
    cursor = conn.execute(
        """
        SELECT id, project_id, client_id, amount, date, note, one_time_amount, created_at
        FROM payments
        WHERE project_id = ?
        ORDER BY date DESC, id DESC
        """,
        (project_id,),
    )
    return [_row_to_payment(conn, row) for row in cursor.fetchall()]


def count_payments(conn: sqlite3.Connection, project_id: int | None = None) -> int:
    if project_id is None:
        cursor = conn.execute("SELECT COUNT(*) FROM payments")
    else:
        cursor = conn.execute(
            "SELECT COUNT(*) FROM payments WHERE project_id = ?", (project_id,)
        )
    return cursor.fetchone()[0]


def sum_one_time_paid(conn: sqlite3.Connection, project_id: int) -> float:
    cursor = conn.execute(
        "SELECT COALESCE(SUM(one_time_amount), 0) FROM payments WHERE project_id = ?",
        (project_id,),
    )
    return float(cursor.fetchone()[0])


def one_time_paid_by_project(conn: sqlite3.Connection) -> dict[int, float]:
    cursor = conn.execute(
        """
        SELECT project_id, SUM(one_time_amount) AS total
        FROM payments GROUP BY project_id
        """
    )
    return {row["project_id"]: float(row["total"] or 0) for row in cursor.fetchall()}


def sum_one_time_collected(conn: sqlite3.Connection, month_key: str | None = None) -> float:
    """One-time payment portions, optionally only those dated in a YYYY-MM month."""
    if month_key is None:
        cursor = conn.execute("SELECT COALESCE(SUM(one_time_amount), 0) FROM payments")
    else:
        cursor = conn.execute(
            """
            SELECT COALESCE(SUM(one_time_amount), 0) FROM payments
            WHERE strftime('%Y-%m', date) = ?
            """,
            (month_key,),
        )
    return float(cursor.fetchone()[0])


def sum_one_time_collected_by_month(
    conn: sqlite3.Connection,
    first_key: str,
    last_key: str,
) -> dict[str, float]:
    cursor = conn.execute(
        """
        SELECT strftime('%Y-%m', date) AS period, SUM(one_time_amount) AS total
        FROM payments
        WHERE one_time_amount > 0
        AND strftime('%Y-%m', date) BETWEEN ? AND ?
        GROUP BY period
        """,
        (first_key, last_key),
    )
    return {row["period"]: float(row["total"] or 0) for row in cursor.fetchall()}


# ============================================================================
# Expenses
# ============================================================================


def _row_to_expense(row: sqlite3.Row) -> Expense:
    return Expense(
        id=row["id"],
        date=_parse_datetime(row["date"]),
        amount=float(row["amount"]),
        category=row["category"],
        vendor=row["vendor"],
        note=row["note"],
        project_id=row["project_id"],
        created_at=row["created_at"],
    )


def create_expense(
    conn: sqlite3.Connection,
    date: datetime,
    amount: float,
    category: str = "",
    vendor: str = "",
    note: str = "",
    project_id: int | None = None,
) -> int:
    cursor = conn.execute(
        """
        INSERT INTO expenses (date, amount, category, vendor, note, project_id)
        VALUES (?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        (to_iso(date), amount, category, vendor, note, project_id),
    )
    return cursor.fetchone()[0]


def list_expenses(conn: sqlite3.Connection, month_key: str | None = None) -> list[Expense]:
    """Expenses, newest first, optionally restricted to a YYYY-MM month."""
    query = """
        SELECT id, date, amount, category, vendor, note, project_id, created_at
        FROM expenses
    """
    params: tuple = ()
    if month_key is not None:
        query += " WHERE strftime('%Y-%m', date) = ?"
        params = (month_key,)
    query += " ORDER BY date DESC, id DESC"
    cursor = conn.execute(query, params)
    return [_row_to_expense(row) for row in cursor.fetchall()]


def delete_expense(conn: sqlite3.Connection, expense_id: int) -> bool:
    cursor = conn.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
    return cursor.rowcount > 0


def sum_expenses(conn: sqlite3.Connection, month_key: str | None = None) -> float:
    if month_key is None:
        cursor = conn.execute("SELECT COALESCE(SUM(amount), 0) FROM expenses")
    else:
        cursor = conn.execute(
            "SELECT COALESCE(SUM(amount), 0) FROM expenses WHERE strftime('%Y-%m', date) = ?",
            (month_key,),
        )
    return float(cursor.fetchone()[0])


def sum_expenses_by_month(
    conn: sqlite3.Connection,
    first_key: str,
    last_key: str,
) -> dict[str, float]:
    cursor = conn.execute(
        """
        SELECT strftime('%Y-%m', date) AS period, SUM(amount) AS total
        FROM expenses
        WHERE strftime('%Y-%m', date) BETWEEN ? AND ?
        GROUP BY period
        """,
        (first_key, last_key),
    )
    return {row["period"]: float(row["total"] or 0) for row in cursor.fetchall()}


# ============================================================================
# Overdue notification state
# ============================================================================


def get_notified_overdue_invoices(conn: sqlite3.Connection) -> set[int]:
    """Return IDs of invoices already notified as overdue."""
    cursor = conn.execute("SELECT invoice_id FROM invoice_overdue_notified")
    return {row["invoice_id"] for row in cursor.fetchall()}


def mark_invoice_overdue_notified(conn: sqlite3.Connection, invoice_id: int) -> None:
    """Record that an overdue notification was sent for this invoice."""
    conn.execute(
        "INSERT OR IGNORE INTO invoice_overdue_notified (invoice_id) VALUES (?)",
        (invoice_id,),
    )


def clear_overdue_notification(conn: sqlite3.Connection, invoice_id: int) -> None:
    """Remove overdue notification record (e.g. when invoice is paid)."""
    conn.execute(
        "DELETE FROM invoice_overdue_notified WHERE invoice_id = ?",
        (invoice_id,),
    )
