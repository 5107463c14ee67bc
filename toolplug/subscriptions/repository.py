"""
Subscriber Repository - reads and transitions over the subscriber tables.

Emails arrive here already normalized; the uniqueness of ``subscribers.email``
is what keeps a double confirmation from creating two subscribers.
"""

from __future__ import annotations

from datetime import UTC, datetime

from toolplug.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from toolplug.observability.logging import get_logger
from toolplug.subscriptions.models import ConfirmOutcome, PendingSubscriber, Subscriber
from toolplug.utils.redaction import redact

logger = get_logger(__name__)


class SubscriberRepository:
    """
    Persistence for pending and confirmed subscribers.

    All methods use connection pooling and proper transaction handling.
    """

    @staticmethod
    @retry_on_db_lock()
    def add_pending(pending: PendingSubscriber) -> None:
        """
        Store a signup awaiting confirmation.

        Side Effects:
            - Inserts row into pending_subscribers
        """
        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO pending_subscribers (email, send_day, categories, confirm_token, created_at)
                VALUES (:email, :send_day, :categories, :confirm_token, :created_at)
                """,
                pending.to_db_dict(),
            )
        logger.info("Stored pending signup for %s", redact(pending.email))

    @staticmethod
    @retry_on_db_lock()
    def confirm(confirm_token: str, unsub_token: str) -> ConfirmOutcome:
        """
        Promote the pending signup behind ``confirm_token``.

        The confirmed insert and the pending delete share one transaction.
        When the email is already confirmed, the insert is ignored and only
        the pending row goes away.

        Side Effects:
            - Inserts into subscribers (unless already present)
            - Deletes the pending_subscribers row
        """
        with db_transaction() as conn:
            row = conn.execute(
                "SELECT * FROM pending_subscribers WHERE confirm_token = ?", (confirm_token,)
            ).fetchone()
            if row is None:
                return ConfirmOutcome.NOT_FOUND

            inserted = conn.execute(
                """
                INSERT OR IGNORE INTO subscribers (email, send_day, categories, unsub_token, confirmed_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    row["email"],
                    row["send_day"],
                    row["categories"],
                    unsub_token,
                    datetime.now(UTC).isoformat(),
                ),
            ).rowcount
            conn.execute("DELETE FROM pending_subscribers WHERE id = ?", (row["id"],))

        return ConfirmOutcome.CONFIRMED if inserted else ConfirmOutcome.ALREADY_CONFIRMED

    @staticmethod
    @retry_on_db_lock()
    def remove_by_unsub_token(unsub_token: str) -> bool:
        """Delete the confirmed subscriber holding ``unsub_token``; False if none."""
        with db_transaction() as conn:
            deleted = conn.execute(
                "DELETE FROM subscribers WHERE unsub_token = ?", (unsub_token,)
            ).rowcount
        return deleted > 0

    @staticmethod
    def is_subscribed(email: str) -> bool:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM subscribers WHERE email = ? LIMIT 1", (email,)
            ).fetchone()
        return row is not None

    @staticmethod
    def list_confirmed(send_day: int | None = None) -> list[Subscriber]:
        """
        Confirmed subscribers, optionally only those for one send day.

        Rows whose stored categories no longer parse are skipped and logged.
        """
        query = "SELECT * FROM subscribers"
        params: tuple[int, ...] = ()
        if send_day is not None:
            query += " WHERE send_day = ?"
            params = (send_day,)
        query += " ORDER BY id"

        with get_db_connection() as conn:
            rows = conn.execute(query, params).fetchall()

        subscribers = []
        for row in rows:
            try:
                subscribers.append(Subscriber.from_db_row(row))
            except ValueError as e:
                logger.warning("Skipping unreadable subscriber %s: %s", redact(row["email"]), e)
        return subscribers
