"""
The closed set of editorial categories.

Declaration order matters: it breaks classifier score ties, drives backfill
order, orders the admin listing, and is the order subscriber preferences are
stored in.  Bump CATEGORY_SET_VERSION whenever members, labels or routing
vocabularies change.
"""

from __future__ import annotations

from enum import Enum

CATEGORY_SET_VERSION = "v1"


class Category(str, Enum):
    DEV = "dev"
    DESIGN = "design"
    PRODUCT = "product"
    OPS = "ops"
    CREATORS = "creators"
    WILDCARD = "wildcard"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_ORDER: tuple[Category, ...] = tuple(Category)

CATEGORY_LABELS: dict[Category, str] = {
    Category.DEV: "Dev Discoveries",
    Category.DESIGN: "Designers Drawer",
    Category.PRODUCT: "Product Picks",
    Category.OPS: "Ops Oasis",
    Category.CREATORS: "Creator's Corner",
    Category.WILDCARD: "Wildcard Wonders",
}

# Matched as substrings of name + tagline + description (+1 each)
CATEGORY_KEYWORDS: dict[Category, tuple[str, ...]] = {
    Category.DEV: (
        "developer", "dev", "cli", "terminal", "sdk", "api", "graphql", "rest", "code",
        "program", "library", "framework", "git", "repo", "docker", "kubernetes",
        "typescript", "ide", "testing", "ci", "cd",
    ),
    Category.DESIGN: (
        "design", "designer", "ui", "ux", "figma", "wireframe", "prototype", "mockup",
        "icon", "illustration", "typography", "font", "palette", "color", "layout",
    ),
    Category.PRODUCT: (
        "productivity", "product", "notes", "docs", "wiki", "crm", "analytics",
        "dashboard", "project", "tasks", "todo", "okr", "collaboration", "team",
        "workflow", "roadmap",
    ),
    Category.OPS: (
        "devops", "ops", "sre", "infra", "observability", "monitoring", "logging",
        "traces", "alert", "oncall", "uptime", "deploy", "pipeline", "ci", "cd", "k8s",
        "serverless", "cloud", "aws", "gcp", "azure", "security", "iam", "sso",
        "terraform", "helm", "backup",
    ),
    Category.CREATORS: (
        "creator", "content", "video", "shorts", "tiktok", "reels", "youtube", "stream",
        "twitch", "record", "screen", "editor", "caption", "subtitle", "thumbnail",
        "audio", "music", "podcast", "photo", "photography", "luts",
    ),
    Category.WILDCARD: (
        "fun", "game", "entertainment", "novelty", "random", "lifestyle", "habit",
        "fitness", "travel", "finance", "budget", "health", "wellness", "misc",
    ),
}

# Matched as substrings of topic slugs (+2 each)
CATEGORY_TOPIC_HINTS: dict[Category, tuple[str, ...]] = {
    Category.DEV: (
        "developer", "dev", "code", "api", "sdk", "cli", "terminal", "git", "ide",
        "framework", "library", "docker", "kubernetes", "typescript", "database", "backend",
    ),
    Category.DESIGN: (
        "design", "ui", "ux", "figma", "prototype", "wireframe", "mockup", "icon",
        "illustration", "typography", "font", "palette", "color",
    ),
    Category.PRODUCT: (
        "productivity", "product", "notes", "docs", "wiki", "crm", "analytics",
        "dashboard", "project", "tasks", "todo", "okr", "collaboration", "team",
        "workflow", "roadmap",
    ),
    Category.OPS: (
        "devops", "ops", "sre", "infra", "monitor", "observability", "logging", "traces",
        "alert", "oncall", "uptime", "deploy", "ci", "cd", "k8s", "serverless", "cloud",
        "aws", "gcp", "azure", "security", "iam", "sso", "terraform", "helm", "backup",
    ),
    Category.CREATORS: (
        "creator", "content", "video", "tiktok", "reels", "youtube", "stream", "twitch",
        "record", "editor", "caption", "subtitle", "thumbnail", "audio", "music",
        "podcast", "photo", "photography", "luts",
    ),
    Category.WILDCARD: (
        "fun", "games", "entertainment", "novelty", "random", "lifestyle", "habit",
        "fitness", "travel", "finance", "budget", "health", "wellness", "misc",
    ),
}


def parse_category(value: str | None) -> Category | None:
    """Category for a slug (case-insensitive); None for blank or unknown input."""
    if not value:
        return None
    try:
        return Category(value.strip().lower())
    except ValueError:
        return None


def order_categories(categories) -> list[Category]:
    """Deduplicate and sort categories into declaration order."""
    wanted = set(categories)
    return [category for category in CATEGORY_ORDER if category in wanted]
