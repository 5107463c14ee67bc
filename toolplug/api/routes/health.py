"""Health check endpoints for the ToolPlug API.

- /health - service status plus credential presence for each upstream
- /health/db - database connection pool health
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from toolplug.config import APP_VERSION, brevo_api_key, product_hunt_token

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Service status and which upstream credentials are present (no API calls made)."""
    has_api_key = bool(os.getenv("GOOGLE_API_KEY"))
    has_project = bool(os.getenv("GOOGLE_CLOUD_PROJECT"))

    return {
        "status": "healthy",
        "service": "ToolPlug API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {
            "ready": has_api_key or has_project,
            "google_api_key": has_api_key,
            "google_cloud_project": has_project,
        },
        "feed": {"ready": bool(product_hunt_token())},
        "email": {"ready": bool(brevo_api_key())},
    }


@router.get("/health/db")
async def database_health() -> dict[str, Any]:
    """
    Database health check endpoint.

    Reports "unhealthy" when a table or column is missing and "degraded"
    when pool usage exceeds 80%.
    """
    from toolplug.infrastructure.database import get_pool_stats, validate_schema

    stats = get_pool_stats()
    usage_percent = stats["usage_percent"]
    try:
        validate_schema()
        schema_error = None
    except ValueError as e:
        schema_error = str(e)

    if schema_error:
        status = "unhealthy"
    elif usage_percent > 80:
        status = "degraded"
    else:
        status = "healthy"

    return {
        "status": status,
        "pool": stats,
        "schema": {"ok": schema_error is None, "error": schema_error},
        "warning": "Pool usage high" if usage_percent > 80 else None,
    }
