"""
Send log: one row per (email, period_key) that has been delivered.

The UNIQUE(email, period_key) constraint is the source of truth for
at-most-once delivery; overlapping dispatch runs both see it.
"""

from __future__ import annotations

from datetime import UTC, datetime

from toolplug.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock


class SendLog:
    @staticmethod
    def has_sent(email: str, period_key: str) -> bool:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM send_log WHERE email = ? AND period_key = ? LIMIT 1",
                (email, period_key),
            ).fetchone()
        return row is not None

    @staticmethod
    @retry_on_db_lock()
    def record(email: str, period_key: str) -> bool:
        """
        Record a delivery.

        Returns:
            False if a record already existed (another run got there first)
        """
        with db_transaction() as conn:
            inserted = conn.execute(
                "INSERT OR IGNORE INTO send_log (email, period_key, sent_at) VALUES (?, ?, ?)",
                (email, period_key, datetime.now(UTC).isoformat()),
            ).rowcount
        return inserted > 0
