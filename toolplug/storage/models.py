"""
Generated picks as stored per period.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from toolplug.curation.categories import Category


def utc_now() -> datetime:
    return datetime.now(UTC)


class PickStatus(str, Enum):
    QUEUED = "queued"  # Waiting for dispatch
    SENT = "sent"  # A complete dispatch has run for the period


class GeneratedPick(BaseModel):
    """
    One piece of generated content for a period.

    ``category`` is None for single-pick (daily/monthly) periods.
    """

    model_config = ConfigDict(frozen=True)

    period_key: str
    category: Category | None = None
    subject: str
    body_html: str
    link: str = ""
    product_name: str
    status: PickStatus = PickStatus.QUEUED
    created_at: datetime = Field(default_factory=utc_now)

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "period_key": self.period_key,
            "category": self.category.value if self.category else None,
            "subject": self.subject,
            "body_html": self.body_html,
            "link": self.link,
            "product_name": self.product_name,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: Any) -> GeneratedPick:
        """Create a pick from a sqlite3.Row (or mapping)."""
        return cls(
            period_key=row["period_key"],
            category=Category(row["category"]) if row["category"] else None,
            subject=row["subject"],
            body_html=row["body_html"],
            link=row["link"] or "",
            product_name=row["product_name"],
            status=PickStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def summary(self, include_html: bool = False) -> dict[str, Any]:
        """Admin listing view."""
        data: dict[str, Any] = {
            "period_key": self.period_key,
            "category": self.category.value if self.category else None,
            "label": self.category.label if self.category else None,
            "product": self.product_name,
            "subject": self.subject,
            "link": self.link,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }
        if include_html:
            data["html"] = self.body_html
        return data
