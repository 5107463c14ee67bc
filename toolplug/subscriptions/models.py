"""
Subscriber records and state-transition outcomes.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from toolplug.curation.categories import Category, order_categories, parse_category


def utc_now() -> datetime:
    return datetime.now(UTC)


def join_categories(categories: list[Category] | tuple[Category, ...]) -> str:
    """Storage form: comma-separated slugs in declaration order."""
    return ",".join(category.value for category in order_categories(categories))


def split_categories(value: str | None) -> list[Category]:
    """Parse the storage form, ignoring slugs no longer in the enumeration."""
    parsed = (parse_category(slug) for slug in (value or "").split(","))
    return order_categories(category for category in parsed if category is not None)


class ConfirmOutcome(str, Enum):
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"  # Pending record discarded, nothing duplicated
    NOT_FOUND = "not_found"


class UnsubscribeOutcome(str, Enum):
    REMOVED = "removed"
    NOT_FOUND = "not_found"


class _SubscriberBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    send_day: int = Field(ge=0, le=6, description="0 = Sunday")
    categories: list[Category]

    @field_validator("categories")
    @classmethod
    def categories_not_empty(cls, v: list[Category]) -> list[Category]:
        ordered = order_categories(v)
        if not ordered:
            raise ValueError("at least one category is required")
        return ordered


class PendingSubscriber(_SubscriberBase):
    """Signup awaiting confirmation through ``confirm_token``."""

    confirm_token: str
    created_at: datetime = Field(default_factory=utc_now)

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "send_day": self.send_day,
            "categories": join_categories(self.categories),
            "confirm_token": self.confirm_token,
            "created_at": self.created_at.isoformat(),
        }


class Subscriber(_SubscriberBase):
    """Confirmed subscriber; ``unsub_token`` is durable."""

    unsub_token: str
    confirmed_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_db_row(cls, row: Any) -> Subscriber:
        return cls(
            email=row["email"],
            send_day=row["send_day"],
            categories=split_categories(row["categories"]),
            unsub_token=row["unsub_token"],
            confirmed_at=datetime.fromisoformat(row["confirmed_at"]),
        )
