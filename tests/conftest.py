"""Shared test fixtures for feebook tests."""

from datetime import date, datetime

import pytest

from feebook import db, projects
from feebook.config import Config, LoggingConfig, NtfyConfig
from feebook.logging_setup import reset_logging


# Fixed clock for ledger tests: mid-March 2026, after the due day
NOW = datetime(2026, 3, 20, 10, 0, 0)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    reset_logging()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def db_path(tmp_path):
    """Initialize a real SQLite database using schema.sql and return its path."""
    path = tmp_path / "test.db"
    db.init_db(path)
    return path


@pytest.fixture
def db_conn(db_path):
    """Yield a database connection with row factory set."""
    with db.get_db(db_path) as conn:
        yield conn


@pytest.fixture
def make_client(db_conn):
    """Factory fixture that inserts a client and returns it."""
    counter = {"n": 0}

    def _make_client(name=None, **overrides):
        counter["n"] += 1
        return projects.create_client(db_conn, name or f"Client {counter['n']}", **overrides)
    return _make_client


@pytest.fixture
def make_project(db_conn, make_client):
    """Factory fixture that creates a project (and a client if none given)."""
    def _make_project(**overrides):
        if "client_id" not in overrides:
            overrides["client_id"] = make_client().id
        defaults = {
            "name": "Website retainer",
            "billing_start": date(2026, 1, 1),
            "now": NOW,
            "monthly_fee": 1000.0,
            "one_time_fee": 0.0,
        }
        defaults.update(overrides)
        return projects.create_project(db_conn, **defaults)
    return _make_project


@pytest.fixture
def make_config(tmp_path):
    """Factory fixture that creates Config instances with tmp paths."""
    def _make_config(**overrides):
        defaults = {
            "db_path": tmp_path / "test.db",
            "timezone": "UTC",
            "logging": LoggingConfig(level="WARNING"),
            "ntfy": NtfyConfig(enabled=True, server_url="https://ntfy.example.com", topic="billing"),
        }
        defaults.update(overrides)
        return Config(**defaults)
    return _make_config
