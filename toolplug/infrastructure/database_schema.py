"""
Database schema for ToolPlug.

Four tables: the two subscriber states (pending, confirmed), the generated
picks per period, and the send log that proves a period was delivered to an
address.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from toolplug.observability.logging import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS pending_subscribers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL,
        send_day INTEGER NOT NULL CHECK (send_day BETWEEN 0 AND 6),
        categories TEXT NOT NULL,
        confirm_token TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_pending_subscribers_email
    ON pending_subscribers(email);

    CREATE TABLE IF NOT EXISTS subscribers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL UNIQUE,
        send_day INTEGER NOT NULL CHECK (send_day BETWEEN 0 AND 6),
        categories TEXT NOT NULL,
        unsub_token TEXT NOT NULL UNIQUE,
        confirmed_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_subscribers_send_day
    ON subscribers(send_day);

    CREATE TABLE IF NOT EXISTS generated_picks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        period_key TEXT NOT NULL,
        category TEXT,
        subject TEXT NOT NULL,
        body_html TEXT NOT NULL,
        link TEXT NOT NULL,
        product_name TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'queued' CHECK (status IN ('queued', 'sent')),
        created_at TEXT NOT NULL
    );

    -- One active pick per (period, category); NULL category is the
    -- single daily/monthly pick
    CREATE UNIQUE INDEX IF NOT EXISTS idx_generated_picks_period_category
    ON generated_picks(period_key, COALESCE(category, ''));

    CREATE TABLE IF NOT EXISTS send_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL,
        period_key TEXT NOT NULL,
        sent_at TEXT NOT NULL,
        UNIQUE(email, period_key)
    );
"""

REQUIRED_TABLES: dict[str, list[str]] = {
    "pending_subscribers": ["id", "email", "send_day", "categories", "confirm_token"],
    "subscribers": ["id", "email", "send_day", "categories", "unsub_token"],
    "generated_picks": ["id", "period_key", "category", "subject", "body_html", "status"],
    "send_log": ["id", "email", "period_key"],
}


def init_database(db_path: Path) -> None:
    """
    Create tables and indexes at db_path (idempotent).

    Side Effects:
        - Creates the parent directory if needed
        - Creates missing tables and indexes
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database initialized: %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Check the expected tables and columns exist.

    Raises:
        ValueError: If a table or column is missing
    """
    existing_tables = {
        row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    missing_tables = set(REQUIRED_TABLES) - existing_tables
    if missing_tables:
        raise ValueError(f"Database missing tables: {sorted(missing_tables)}")

    for table, required_cols in REQUIRED_TABLES.items():
        # Table names come from REQUIRED_TABLES, never from input
        existing_cols = {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
        missing_cols = set(required_cols) - existing_cols
        if missing_cols:
            raise ValueError(f"Table '{table}' missing columns: {sorted(missing_cols)}")

    return True
