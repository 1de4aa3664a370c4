"""SQLite connection management utilities."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Sequence, Union

import click
from flask import Flask, current_app, g


def _create_connection(database_url: str, timeout: float = 5.0) -> sqlite3.Connection:
    """Instantiate a SQLite connection for the provided URL."""

    if database_url == "sqlite:///:memory:":
        db_path = ":memory:"
    elif database_url.startswith("sqlite:///"):
        db_path = database_url.replace("sqlite:///", "", 1)
    elif database_url.startswith("sqlite://"):
        db_path = database_url.replace("sqlite://", "", 1)
    else:
        raise ValueError("Only sqlite database URLs are supported in this implementation.")

    connection = sqlite3.connect(db_path, timeout=timeout, check_same_thread=False)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    return connection


def get_db() -> sqlite3.Connection:
    """Return a cached connection for the request context."""

    if "db_conn" not in g:
        database_url = current_app.config["DATABASE_URL"]
        g.db_conn = _create_connection(database_url, current_app.config.get("DATABASE_TIMEOUT", 5.0))
    return g.db_conn  # type: ignore[return-value]


def close_db(exception: Exception | None = None) -> None:
    """Close the stored connection at the end of the request."""

    g.pop("db_transaction", None)
    connection = g.pop("db_conn", None)
    if connection is not None:
        connection.close()


@contextmanager
def transaction(db: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
    """Run the enclosed statements in one serialized write transaction.

    ``BEGIN IMMEDIATE`` takes the database write lock up front, so a
    check-then-write sequence cannot interleave with another writer. Nested
    use joins the outer transaction. Any exception rolls everything back.
    """

    db = db or get_db()
    if g.get("db_transaction"):
        yield db
        return

    if db.in_transaction:
        db.commit()
    db.execute("BEGIN IMMEDIATE")
    g.db_transaction = True
    try:
        yield db
    except BaseException:
        db.rollback()
        raise
    else:
        db.commit()
    finally:
        g.db_transaction = False


def execute(db: sqlite3.Connection, query: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
    """Execute a write query, committing immediately outside a transaction."""

    cursor = db.execute(query, params or [])
    if not g.get("db_transaction"):
        db.commit()
    return cursor


def query_all(db: sqlite3.Connection, query: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
    """Execute a read query returning multiple rows."""

    cursor = db.execute(query, params or [])
    return cursor.fetchall()


def query_one(db: sqlite3.Connection, query: str, params: Sequence[Any] | None = None) -> sqlite3.Row | None:
    """Execute a read query returning a single row."""

    cursor = db.execute(query, params or [])
    return cursor.fetchone()


def to_db_timestamp(value: Union[str, datetime]) -> str:
    """Normalize a datetime (or ISO string) to the stored naive-UTC text form."""

    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    # Fixed width keeps text ordering equal to time ordering.
    return value.isoformat(sep=" ", timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp back into a naive UTC datetime."""

    return datetime.fromisoformat(str(value).replace(" ", "T"))


def init_db(app: Flask | None = None) -> None:
    """Initialize the database schema by executing the SQL script."""

    app = app or current_app
    with app.app_context():
        db = get_db()
        schema_path = Path(app.config.get("SCHEMA_PATH") or Path(app.root_path).parent / "resource_portal_schema.sql")
        with schema_path.open("r", encoding="utf-8") as sql_file:
            db.executescript(sql_file.read())
        db.commit()


def init_app(app: Flask) -> None:
    """Wire database helpers into the Flask app."""

    app.teardown_appcontext(close_db)

    @app.cli.command("init-db")
    def init_db_command() -> None:
        """Clear existing data and create new tables."""

        init_db(app)
        click.echo("Initialized the database.")

    @app.cli.command("seed-db")
    def seed_db_command() -> None:
        """Load deterministic demo records."""

        from .seed import seed  # pylint: disable=import-outside-toplevel

        seed()
        click.echo("Seeded the database.")
