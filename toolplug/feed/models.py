"""
Launch candidates as read from the upstream feed.

Candidates are scoped to one fetch and never persisted.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CandidateItem(BaseModel):
    """One launch from the feed window."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    tagline: str = ""
    description: str = ""
    site_url: str = Field(default="", description="Product website, else the listing URL")
    created_at: datetime
    vote_score: int = 0
    topics: frozenset[str] = Field(default_factory=frozenset)
    thumbnail_url: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("name cannot be empty")
        return v.strip()

    @field_validator("created_at")
    @classmethod
    def created_at_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @field_validator("vote_score", mode="before")
    @classmethod
    def clamp_votes(cls, v: Any) -> int:
        try:
            votes = int(v or 0)
        except (TypeError, ValueError):
            return 0
        return max(votes, 0)

    @field_validator("topics", mode="before")
    @classmethod
    def lower_topics(cls, v: Any) -> frozenset[str]:
        if not v:
            return frozenset()
        return frozenset(str(slug).strip().lower() for slug in v if slug and str(slug).strip())

    @property
    def text_blob(self) -> str:
        """Lower-cased name + tagline + description, as matched by keywords."""
        return " ".join((self.name, self.tagline, self.description)).lower()

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> CandidateItem:
        """
        Build a candidate from a GraphQL ``posts`` node.

        Raises:
            ValueError: If required fields (id, name, createdAt) are missing or
                malformed (pydantic's ValidationError is a ValueError)
        """
        if not node.get("id") or not node.get("createdAt"):
            raise ValueError("node missing id or createdAt")

        created_at = datetime.fromisoformat(str(node["createdAt"]).replace("Z", "+00:00"))
        topic_edges = ((node.get("topics") or {}).get("edges")) or []
        thumbnail = node.get("thumbnail") or {}

        return cls(
            id=str(node["id"]),
            name=node.get("name") or "",
            tagline=node.get("tagline") or "",
            description=node.get("description") or "",
            site_url=node.get("website") or node.get("url") or "",
            created_at=created_at,
            vote_score=node.get("votesCount"),
            topics=[(edge.get("node") or {}).get("slug") for edge in topic_edges],
            thumbnail_url=thumbnail.get("url") or None,
        )

    def summary(self) -> dict[str, Any]:
        """Compact dict for admin responses."""
        return {
            "id": self.id,
            "name": self.name,
            "url": self.site_url,
            "created_at": self.created_at.isoformat(),
            "votes": self.vote_score,
            "topics": sorted(self.topics),
        }
