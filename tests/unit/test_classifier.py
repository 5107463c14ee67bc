"""Unit tests for category scoring, picking and backfill"""

from __future__ import annotations

from datetime import timedelta

from conftest import WEDNESDAY_NOON_UTC

from toolplug.curation.categories import CATEGORY_ORDER, Category, parse_category
from toolplug.curation.classifier import (
    best_category,
    classify,
    classify_detailed,
    rank_key,
    score,
    top_item,
)

# One topic slug that scores in exactly one category
TOPIC_FOR = {
    Category.DEV: "developer-tools",
    Category.DESIGN: "design-tools",
    Category.PRODUCT: "productivity",
    Category.OPS: "monitoring",
    Category.CREATORS: "podcasting",
    Category.WILDCARD: "travel",
}


def test_topic_hint_scores_two_per_match(make_item):
    item = make_item("1", topics=("developer-tools",))
    # "developer" and "dev" both occur in the slug
    assert score(item, Category.DEV) == 4
    assert score(item, Category.DESIGN) == 0


def test_keywords_score_one_each_case_insensitive(make_item):
    item = make_item("1", name="FIGMA Palette")
    assert score(item, Category.DESIGN) == 2


def test_tie_goes_to_earlier_category(make_item):
    # "design" +1 for design, "podcast" +1 for creators
    item = make_item("1", name="design podcast")
    assert score(item, Category.DESIGN) == score(item, Category.CREATORS) == 1
    assert best_category(item) is Category.DESIGN


def test_zero_score_items_are_wildcard(make_item):
    assert best_category(make_item("1")) is Category.WILDCARD


def test_representative_is_most_voted_then_most_recent(make_item):
    older = make_item(
        "old", votes=50, topics=("design-tools",), created_at=WEDNESDAY_NOON_UTC - timedelta(days=2)
    )
    newer = make_item("new", votes=50, topics=("design-tools",))
    fewer = make_item("few", votes=10, topics=("design-tools",))

    picks = classify([older, fewer, newer])
    assert picks[Category.DESIGN].id == "new"
    assert sorted([older, fewer, newer], key=rank_key)[0].id == "new"


def test_every_category_covered_when_items_score_everywhere(make_item):
    items = [
        make_item(category.value, votes=10, topics=(TOPIC_FOR[category],))
        for category in CATEGORY_ORDER
    ]
    result = classify_detailed(items)

    assert list(result.picks) == list(CATEGORY_ORDER)
    assert {category: item.id for category, item in result.picks.items()} == {
        category: category.value for category in CATEGORY_ORDER
    }
    assert result.backfilled == []
    assert all(count == 1 for count in result.counts.values())


def test_backfill_uses_best_remaining_items_in_category_order(make_item):
    items = [
        make_item("dev-top", votes=100, topics=("developer-tools",)),
        make_item("dev-2", votes=80, topics=("developer-tools",)),
        make_item("dev-3", votes=60, topics=("developer-tools",)),
    ]
    result = classify_detailed(items)

    assert result.picks[Category.DEV].id == "dev-top"
    assert result.picks[Category.DESIGN].id == "dev-2"
    assert result.picks[Category.PRODUCT].id == "dev-3"
    assert result.backfilled == [Category.DESIGN, Category.PRODUCT]
    # Not enough items for the rest
    assert Category.OPS not in result.picks
    assert result.counts["dev"] == 3


def test_backfill_never_reuses_an_item(make_item):
    items = [make_item(str(i), votes=i) for i in range(10)]
    picks = classify(items)

    chosen = [item.id for item in picks.values()]
    assert len(chosen) == len(set(chosen)) == len(CATEGORY_ORDER)


def test_empty_input_is_empty_mapping():
    assert classify([]) == {}
    assert top_item([]) is None


def test_ordered_picks_follow_declaration_order(make_item):
    items = [
        make_item("w", votes=5, topics=("travel",)),
        make_item("d", votes=5, topics=("developer-tools",)),
    ]
    ordered = classify_detailed(items).ordered_picks()
    categories = [category for category, _ in ordered]
    assert categories == sorted(categories, key=CATEGORY_ORDER.index)


def test_parse_category_is_lenient_about_case_and_unknowns():
    assert parse_category(" Design ") is Category.DESIGN
    assert parse_category("gaming") is None
    assert parse_category("") is None
