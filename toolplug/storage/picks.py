"""
Period Store: generated picks keyed by (period_key, category).

At most one pick exists per (period_key, category), NULL category included.
Every write clears and inserts inside one transaction so readers never see a
mix of stale and fresh content for the same key, and the unique index on
(period_key, COALESCE(category, '')) backs that up at the storage level.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence

from toolplug.curation.categories import CATEGORY_ORDER, Category
from toolplug.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from toolplug.observability.logging import get_logger
from toolplug.observability.telemetry import log_event
from toolplug.storage.models import GeneratedPick, PickStatus

logger = get_logger(__name__)

_INSERT_SQL = """
    INSERT INTO generated_picks (
        period_key, category, subject, body_html, link, product_name, status, created_at
    ) VALUES (
        :period_key, :category, :subject, :body_html, :link, :product_name, :status, :created_at
    )
"""

# NULL (single-pick periods) sorts before the categories, then declaration order
_CATEGORY_RANK_SQL = "CASE COALESCE(category, '') WHEN '' THEN -1 {whens} ELSE 99 END".format(
    whens=" ".join(f"WHEN '{c.value}' THEN {i}" for i, c in enumerate(CATEGORY_ORDER))
)


def _category_value(category: Category | None) -> str | None:
    return category.value if category else None


def _delete_slot(conn: sqlite3.Connection, period_key: str, category: Category | None) -> None:
    conn.execute(
        "DELETE FROM generated_picks WHERE period_key = ? AND COALESCE(category, '') = ?",
        (period_key, _category_value(category) or ""),
    )


class PeriodStore:
    """Reads and atomic replacements of generated picks."""

    @staticmethod
    @retry_on_db_lock()
    def replace(period_key: str, category: Category | None, pick: GeneratedPick) -> GeneratedPick:
        """
        Replace the pick for one (period_key, category) slot.

        Raises:
            ValueError: If the pick does not belong to that slot

        Side Effects:
            - Deletes the slot's existing row and inserts the new one in one transaction
        """
        if pick.period_key != period_key or pick.category != category:
            raise ValueError("pick does not match the (period_key, category) being replaced")

        with db_transaction() as conn:
            _delete_slot(conn, period_key, category)
            conn.execute(_INSERT_SQL, pick.to_db_dict())

        log_event(
            "period_store.replaced",
            period_key=period_key,
            category=_category_value(category),
            product=pick.product_name,
        )
        return pick

    @staticmethod
    @retry_on_db_lock()
    def replace_period(period_key: str, picks: Sequence[GeneratedPick]) -> int:
        """
        Replace every pick of a period with ``picks``, all or nothing.

        Raises:
            ValueError: If a pick belongs to another period or two picks
                share a category

        Side Effects:
            - Deletes all rows for the period and inserts the new ones in one transaction
        """
        seen: set[Category | None] = set()
        for pick in picks:
            if pick.period_key != period_key:
                raise ValueError(f"pick for {pick.period_key} passed to replace_period({period_key})")
            if pick.category in seen:
                raise ValueError(f"duplicate pick for category {_category_value(pick.category)}")
            seen.add(pick.category)

        with db_transaction() as conn:
            conn.execute("DELETE FROM generated_picks WHERE period_key = ?", (period_key,))
            conn.executemany(_INSERT_SQL, [pick.to_db_dict() for pick in picks])

        log_event("period_store.period_replaced", period_key=period_key, picks=len(picks))
        return len(picks)

    @staticmethod
    def read(period_key: str, category: Category | None = None) -> GeneratedPick | None:
        with get_db_connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM generated_picks
                WHERE period_key = ? AND COALESCE(category, '') = ?
                """,
                (period_key, _category_value(category) or ""),
            ).fetchone()
        return GeneratedPick.from_db_row(row) if row else None

    @staticmethod
    def list_for_period(period_key: str, status: PickStatus | None = None) -> list[GeneratedPick]:
        """Picks of a period in category order, optionally filtered by status."""
        query = "SELECT * FROM generated_picks WHERE period_key = ?"
        params: list[str] = [period_key]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += f" ORDER BY {_CATEGORY_RANK_SQL}, id"

        with get_db_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [GeneratedPick.from_db_row(row) for row in rows]

    @staticmethod
    @retry_on_db_lock()
    def mark_sent(period_key: str) -> int:
        """
        Flip the period's queued picks to sent.

        Returns:
            Number of picks updated
        """
        with db_transaction() as conn:
            cursor = conn.execute(
                "UPDATE generated_picks SET status = ? WHERE period_key = ? AND status = ?",
                (PickStatus.SENT.value, period_key, PickStatus.QUEUED.value),
            )
            updated = cursor.rowcount

        logger.info("Marked %d pick(s) sent for %s", updated, period_key)
        return updated
