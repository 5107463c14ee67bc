"""
Keyword/topic classifier that routes candidates into categories and picks
one representative per category.

Scoring per (item, category):
    +2 for every (topic slug, hint) pair where the slug contains the hint
    +1 for every keyword found in name + tagline + description

The highest score wins, ties go to the earlier category, and items that
score zero everywhere land in ``wildcard``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from toolplug.curation.categories import (
    CATEGORY_KEYWORDS,
    CATEGORY_ORDER,
    CATEGORY_TOPIC_HINTS,
    Category,
)
from toolplug.feed.models import CandidateItem


def rank_key(item: CandidateItem) -> tuple[int, float]:
    """Sort key: most votes first, then most recent (use with ``sorted``)."""
    return (-item.vote_score, -item.created_at.timestamp())


def score(item: CandidateItem, category: Category) -> int:
    hints = CATEGORY_TOPIC_HINTS[category]
    topic_score = sum(2 for slug in item.topics for hint in hints if hint in slug)

    blob = item.text_blob
    keyword_score = sum(1 for keyword in CATEGORY_KEYWORDS[category] if keyword in blob)
    return topic_score + keyword_score


def best_category(item: CandidateItem) -> Category:
    best = Category.WILDCARD
    best_score = 0
    for category in CATEGORY_ORDER:
        value = score(item, category)
        # Strict comparison keeps the earlier category on ties
        if value > best_score:
            best, best_score = category, value
    return best


@dataclass
class Classification:
    """Outcome of one classification run."""

    picks: dict[Category, CandidateItem] = field(default_factory=dict)
    groups: dict[Category, list[CandidateItem]] = field(default_factory=dict)
    backfilled: list[Category] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        """Group size per category slug (before backfill)."""
        return {category.value: len(self.groups.get(category, [])) for category in CATEGORY_ORDER}

    def ordered_picks(self) -> list[tuple[Category, CandidateItem]]:
        return [(category, self.picks[category]) for category in CATEGORY_ORDER if category in self.picks]


def _backfill(
    picks: dict[Category, CandidateItem], items: Sequence[CandidateItem]
) -> list[Category]:
    chosen = {item.id for item in picks.values()}
    remaining = sorted((item for item in items if item.id not in chosen), key=rank_key)

    backfilled = []
    for category in CATEGORY_ORDER:
        if category in picks:
            continue
        if not remaining:
            break
        picks[category] = remaining.pop(0)
        backfilled.append(category)
    return backfilled


def classify_detailed(items: Iterable[CandidateItem]) -> Classification:
    """
    Group, pick and backfill, keeping the per-category detail.

    Backfill fills empty categories in declaration order from the best-ranked
    items not already chosen, so no item is ever picked twice.
    """
    items = list(items)
    result = Classification(groups={category: [] for category in CATEGORY_ORDER})
    if not items:
        return result

    for item in items:
        result.groups[best_category(item)].append(item)

    for category in CATEGORY_ORDER:
        group = result.groups[category]
        if group:
            result.picks[category] = min(group, key=rank_key)

    result.backfilled = _backfill(result.picks, items)
    return result


def classify(items: Iterable[CandidateItem]) -> dict[Category, CandidateItem]:
    """Representative item per category (empty mapping for empty input)."""
    return classify_detailed(items).picks


def top_item(items: Iterable[CandidateItem]) -> CandidateItem | None:
    """Best-ranked item overall, for single-pick periods."""
    ranked = sorted(items, key=rank_key)
    return ranked[0] if ranked else None
