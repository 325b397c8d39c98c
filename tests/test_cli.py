"""Tests for feebook.cli module."""

import json
from unittest.mock import patch

import pytest

from feebook.cli import build_parser, main

NOW = "2026-03-20T10:00"


@pytest.fixture
def cli(make_config, capsys):
    """Run the CLI against a fresh database and return the parsed JSON output."""
    config = make_config()

    def _cli(*argv, expect_error=False):
        with patch("feebook.cli.load_config", return_value=config):
            if expect_error:
                with pytest.raises(SystemExit) as exc_info:
                    main(["--now", NOW, *argv])
                assert exc_info.value.code == 1
            else:
                main(["--now", NOW, *argv])
        return json.loads(capsys.readouterr().out)

    _cli("init")
    return _cli


@pytest.fixture
def project_id(cli):
    client = cli("client", "add", "Acme")["client"]
    project = cli(
        "project", "add", "--client", str(client["id"]), "--name", "Site",
        "--start", "2026-02-01", "--monthly-fee", "1000", "--one-time-fee", "500",
    )["project"]
    return project["id"]


class TestParser:
    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_payment_defaults(self):
        args = build_parser().parse_args(["payment", "record", "3", "250.5"])
        assert args.project_id == 3
        assert args.amount == 250.5
        assert args.one_time is None


class TestInit:
    def test_reports_db_path(self, make_config, capsys):
        config = make_config()
        with patch("feebook.cli.load_config", return_value=config):
            main(["init"])
        result = json.loads(capsys.readouterr().out)
        assert result["status"] == "ok"
        assert config.db_path.exists()

    def test_missing_database(self, make_config, capsys):
        with patch("feebook.cli.load_config", return_value=make_config()):
            with pytest.raises(SystemExit):
                main(["client", "list"])
        result = json.loads(capsys.readouterr().out)
        assert result["error_type"] == "not_found"


class TestClientCommands:
    def test_add_and_list(self, cli):
        cli("client", "add", "Acme", "--email", "ops@acme.test")
        result = cli("client", "list")
        assert result["client_count"] == 1
        assert result["clients"][0]["email"] == "ops@acme.test"

    def test_delete_with_projects_refused(self, cli, project_id):
        client_id = cli("project", "show", str(project_id))["project"]["client_id"]
        result = cli("client", "delete", str(client_id), expect_error=True)
        assert result["error_type"] == "invalid_input"
        assert result["error"] == "Cannot delete client with projects"

    def test_update(self, cli):
        client_id = cli("client", "add", "Acme", "--email", "ops@acme.test")["client"]["id"]
        result = cli("client", "update", str(client_id), "--name", "Acme Corp", "--phone", "555-0100")
        assert result["client"]["name"] == "Acme Corp"
        assert result["client"]["phone"] == "555-0100"
        assert result["client"]["email"] == "ops@acme.test"

    def test_update_blank_name(self, cli):
        client_id = cli("client", "add", "Acme")["client"]["id"]
        result = cli("client", "update", str(client_id), "--name", " ", expect_error=True)
        assert result["error"] == "Name is required"

    def test_update_nothing(self, cli):
        client_id = cli("client", "add", "Acme")["client"]["id"]
        result = cli("client", "update", str(client_id), expect_error=True)
        assert result["error"] == "Nothing to update"

    def test_update_missing(self, cli):
        result = cli("client", "update", "99", "--name", "Ghost", expect_error=True)
        assert result["error_type"] == "not_found"

    def test_show_missing(self, cli):
        result = cli("client", "show", "99", expect_error=True)
        assert result["error_type"] == "not_found"


class TestProjectCommands:
    def test_show_includes_invoices(self, cli, project_id):
        result = cli("project", "show", str(project_id))
        assert result["project"]["billing_start"] == "2026-02-01"
        assert [(i["year"], i["month"]) for i in result["invoices"]] == [(2026, 2), (2026, 3)]
        assert result["one_time_remaining"] == 500

    def test_pause_and_resume(self, cli, project_id):
        paused = cli("project", "pause", str(project_id), "--at", "2026-03-21")
        assert paused["project"]["status"] == "paused"
        resumed = cli("project", "resume", str(project_id), "--at", "2026-03-25T12:00")
        assert resumed["project"]["status"] == "active"
        assert resumed["project"]["pause_periods"][0]["ended_at"] == "2026-03-25 12:00:00"

    def test_backdated_pause_rejected(self, cli, project_id):
        cli("project", "pauses", str(project_id), "--period", "2026-02-01..2026-02-10")
        result = cli("project", "pause", str(project_id), "--at", "2025-12-01", expect_error=True)
        assert result["error_type"] == "invalid_input"
        assert cli("project", "show", str(project_id))["project"]["status"] == "active"

    def test_replace_pauses(self, cli, project_id):
        result = cli(
            "project", "pauses", str(project_id),
            "--period", "2026-01-01..2026-01-31", "--period", "2026-06-01..",
        )
        assert result["project_status"] == "active"
        assert len(result["pause_periods"]) == 2
        assert result["pause_periods"][1]["ended_at"] is None

    def test_bad_pause_period(self, cli, project_id):
        result = cli("project", "pauses", str(project_id), "--period", "2026-01-01", expect_error=True)
        assert result["error_type"] == "invalid_input"

    def test_update_fee(self, cli, project_id):
        result = cli("project", "update", str(project_id), "--monthly-fee", "1200")
        assert result["project"]["monthly_fee"] == 1200

    def test_update_nothing(self, cli, project_id):
        result = cli("project", "update", str(project_id), expect_error=True)
        assert result["error"] == "Nothing to update"

    def test_complete_and_filter(self, cli, project_id):
        cli("project", "complete", str(project_id))
        assert cli("project", "list", "--status", "completed")["project_count"] == 1
        assert cli("project", "list", "--status", "active")["project_count"] == 0

    def test_delete(self, cli, project_id):
        cli("project", "delete", str(project_id))
        assert cli("project", "show", str(project_id), expect_error=True)["error_type"] == "not_found"

    def test_bad_start_date(self, cli):
        client = cli("client", "add", "Acme")["client"]
        result = cli(
            "project", "add", "--client", str(client["id"]), "--name", "Site",
            "--start", "02/01/2026", expect_error=True,
        )
        assert result["error_type"] == "invalid_input"


class TestInvoiceCommands:
    def test_ensure(self, cli, project_id):
        result = cli("invoice", "ensure", str(project_id))
        assert result["months"] == ["2026-02", "2026-03"]

    def test_paid_and_unpaid(self, cli, project_id):
        invoice_id = cli("invoice", "list", str(project_id))["invoices"][0]["id"]
        paid = cli("invoice", "paid", str(invoice_id))
        assert paid["invoice"]["status"] == "paid"
        assert cli("invoice", "list", str(project_id), "--unpaid")["invoice_count"] == 1
        unpaid = cli("invoice", "unpaid", str(invoice_id))
        assert unpaid["invoice"]["paid_at"] is None


class TestPaymentCommands:
    def test_record_exact_payment(self, cli, project_id):
        result = cli("payment", "record", str(project_id), "2500")
        payment = result["payment"]
        assert payment["one_time_amount"] == 500
        assert [a["month"] for a in payment["allocations"]] == [2, 3]

    def test_leftover_rejected(self, cli, project_id):
        result = cli("payment", "record", str(project_id), "2600", expect_error=True)
        assert result["error_type"] == "no_credit_support"
        assert result["error"].startswith("No credit support: remaining amount cannot be stored")
        assert cli("payment", "list", str(project_id))["payment_count"] == 0

    def test_explicit_one_time(self, cli, project_id):
        cli("payment", "record", str(project_id), "1200", "--one-time", "200")
        result = cli("payment", "list", str(project_id))
        assert result["one_time_paid"] == 200
        assert result["one_time_remaining"] == 300

    def test_invalid_amount(self, cli, project_id):
        result = cli("payment", "record", str(project_id), "0", expect_error=True)
        assert result["error_type"] == "invalid_input"


class TestExpenseCommands:
    def test_add_list_delete(self, cli):
        expense_id = cli("expense", "add", "49.99", "--category", "hosting")["expense_id"]
        listed = cli("expense", "list", "--month", "2026-03")
        assert listed["total"] == 49.99
        cli("expense", "delete", str(expense_id))
        assert cli("expense", "list")["expense_count"] == 0

    def test_non_positive_amount(self, cli):
        result = cli("expense", "add", "-5", expect_error=True)
        assert result["error_type"] == "invalid_input"

    def test_delete_missing(self, cli):
        assert cli("expense", "delete", "7", expect_error=True)["error_type"] == "not_found"


class TestReportingCommands:
    def test_dashboard(self, cli, project_id):
        result = cli("dashboard")
        assert result["summary"]["selected_month"]["key"] == "2026-02"
        assert result["summary"]["overdue_amount"] == 2000
        assert len(result["trend"]) == 12

    def test_dashboard_bad_month(self, cli):
        assert cli("dashboard", "--month", "2026-13", expect_error=True)["error_type"] == "invalid_input"

    def test_notify_overdue(self, cli, project_id):
        with patch("feebook.overdue_notifier.send_ntfy", return_value=True):
            result = cli("notify-overdue")
        assert result["notified"] == 2
