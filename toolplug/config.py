"""Centralized configuration for the ToolPlug backend.

Re-exports everything from toolplug.infrastructure.settings so existing imports
continue to work, then adds typed constants for database, feed, LLM,
generation, dispatch and API settings.  Environment variable overrides use safe
defaults so the app starts without extra env configuration.
"""

from __future__ import annotations

import os

from toolplug.infrastructure.settings import *  # noqa: F401, F403 - re-export existing

# --- App ---
APP_VERSION: str = "1.0.0"

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("TOOLPLUG_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("TOOLPLUG_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("TOOLPLUG_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("TOOLPLUG_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("TOOLPLUG_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("TOOLPLUG_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("TOOLPLUG_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("TOOLPLUG_DB_RETRY_JITTER", "0.1"))

# --- Feed (Product Hunt) ---
FEED_API_URL: str = os.getenv("TOOLPLUG_FEED_API_URL", "https://api.producthunt.com/v2/api/graphql")
FEED_TIMEOUT_SECONDS: float = float(os.getenv("TOOLPLUG_FEED_TIMEOUT", "20"))
FEED_PAGE_DELAY_SECONDS: float = float(os.getenv("TOOLPLUG_FEED_PAGE_DELAY", "0.2"))
FEED_RATE_LIMIT_MAX_WAIT_SECONDS: float = 30.0
FEED_RATE_LIMIT_RETRY_DELAY_SECONDS: float = 1.0
FEED_TOPICS_PER_ITEM: int = 6
FEED_USER_AGENT: str = "toolPlug/curation (+https://toolplug.xyz)"

# Paging per period kind: (max_pages, page_size)
FEED_PAGING_DAY: tuple[int, int] = (6, 25)
FEED_PAGING_WEEK: tuple[int, int] = (3, 30)
FEED_PAGING_MONTH: tuple[int, int] = (8, 25)

# Rolling windows end slightly early so a launch right at the boundary is
# not counted in two consecutive windows
WINDOW_GRACE_MINUTES: int = 15

# --- LLM ---
LLM_TIMEOUT_SECONDS: int = int(os.getenv("TOOLPLUG_LLM_TIMEOUT", "30"))
LLM_MAX_RETRIES: int = int(os.getenv("TOOLPLUG_LLM_MAX_RETRIES", "3"))

# --- Generation ---
GENERATION_MAX_WORKERS: int = int(os.getenv("TOOLPLUG_GENERATION_MAX_WORKERS", "3"))
GENERATION_PACING_SECONDS: float = float(os.getenv("TOOLPLUG_GENERATION_PACING", "0.08"))

# --- Dispatch ---
DISPATCH_MAX_WORKERS: int = int(os.getenv("TOOLPLUG_DISPATCH_MAX_WORKERS", "4"))
DISPATCH_TIMEZONE: str = os.getenv("TOOLPLUG_DISPATCH_TZ", "America/New_York")
DISPATCH_ERROR_BODY_CHARS: int = 300

# --- Email (Brevo) ---
EMAIL_API_URL: str = os.getenv("TOOLPLUG_EMAIL_API_URL", "https://api.brevo.com/v3/smtp/email")
EMAIL_TIMEOUT_SECONDS: float = float(os.getenv("TOOLPLUG_EMAIL_TIMEOUT", "15"))
EMAIL_MAX_ATTEMPTS: int = int(os.getenv("TOOLPLUG_EMAIL_MAX_ATTEMPTS", "2"))
EMAIL_SENDER_LOCAL_PART: str = "hello"

# --- API ---
SIGNUP_RATE_LIMIT_PER_HOUR: int = int(os.getenv("TOOLPLUG_SIGNUP_RATE_LIMIT", "10"))
SIGNUP_RATE_LIMIT_MAX_IPS: int = 10000
