"""FastAPI server for ToolPlug"""

from __future__ import annotations

import sqlite3
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from toolplug.api.middleware.rate_limit import SignupRateLimitMiddleware
from toolplug.api.routes.admin import router as admin_router
from toolplug.api.routes.health import router as health_router
from toolplug.api.routes.preview import router as preview_router
from toolplug.api.routes.subscriptions import router as subscriptions_router
from toolplug.config import API_HOST, API_PORT, APP_VERSION, SITE_DOMAIN, admin_api_key, is_production
from toolplug.infrastructure.database import init_database
from toolplug.observability.logging import get_logger
from toolplug.observability.telemetry import counter, log_event
from toolplug.utils.redaction import redact

# Load environment variables from .env file
load_dotenv()

app = FastAPI(title="ToolPlug API", version=APP_VERSION)

logger = get_logger(__name__)


# Custom validation error handler to prevent information leakage
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Log the full validation error (redacted URL), return only field names."""
    logger.warning("Validation error on %s: %s", redact(str(request.url)), exc.errors())
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


# The signup page is served from the public site
ALLOWED_ORIGINS = [f"https://{SITE_DOMAIN}", f"https://www.{SITE_DOMAIN}"]

if not is_production():
    ALLOWED_ORIGINS.extend(
        [
            "http://localhost:3000",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:8000",
        ]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "api-key"],
)

# Each signup sends an email
app.add_middleware(SignupRateLimitMiddleware)

app.include_router(health_router)
app.include_router(subscriptions_router)
app.include_router(preview_router)
app.include_router(admin_router)


@app.on_event("startup")
async def initialize() -> None:
    """
    Create the schema (idempotent) and check the admin key configuration.

    Side Effects:
        - Creates the SQLite database and tables if missing
        - Raises RuntimeError in production without TOOLPLUG_ADMIN_API_KEY
    """
    try:
        logger.info("Initializing database schema...")
        init_database()
        logger.info("Database initialization complete")
    except sqlite3.OperationalError as e:
        logger.critical("Database schema error: %s", e)
        raise RuntimeError(f"Database initialization failed: {e}") from e

    if not admin_api_key():
        if is_production():
            logger.critical("TOOLPLUG_ADMIN_API_KEY is not set in production!")
            raise RuntimeError(
                "Security misconfiguration: TOOLPLUG_ADMIN_API_KEY not set in "
                "production. Refusing to start with unprotected admin endpoints."
            )
        logger.warning("TOOLPLUG_ADMIN_API_KEY not set - admin endpoints are unprotected!")
    else:
        logger.info("Admin API authentication enabled")

    log_event("api.startup", service="toolplug", version=APP_VERSION)


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "ToolPlug API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "subscribe": "/api/subscribe",
            "confirm": "/api/confirm",
            "unsubscribe": "/api/unsubscribe",
            "status": "/api/status",
            "preview": "/api/preview",
            "admin_generate": "/api/admin/generate",
            "admin_dispatch": "/api/admin/dispatch",
            "admin_picks": "/api/admin/picks",
        },
    }


def main() -> None:
    """Run the API with uvicorn (``toolplug-api`` console script)."""
    import uvicorn

    uvicorn.run("toolplug.api.app:app", host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    main()
