"""ToolPlug - curated Product Hunt picks, delivered on each subscriber's day"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports so the CLI and tests don't load FastAPI or Vertex unless used
def __getattr__(name: str):
    if name in ("Category", "CATEGORY_ORDER"):
        from toolplug.curation import categories

        return getattr(categories, name)

    if name == "generate_period":
        from toolplug.pipeline.generation import generate_period

        return generate_period

    if name == "dispatch_period":
        from toolplug.dispatch.engine import dispatch_period

        return dispatch_period

    if name == "SubscriptionService":
        from toolplug.subscriptions.service import SubscriptionService

        return SubscriptionService

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "Category",
    "CATEGORY_ORDER",
    "generate_period",
    "dispatch_period",
    "SubscriptionService",
]
