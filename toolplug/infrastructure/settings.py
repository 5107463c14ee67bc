"""
Application-wide settings and environment configuration

Credentials are read through accessor functions at call time rather than
captured at import, because python-dotenv may load .env after this module.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project paths
TOOLPLUG_ROOT = Path(__file__).parent.parent
PROJECT_ROOT = TOOLPLUG_ROOT.parent

# Environment
ENV = os.getenv("TOOLPLUG_ENV", "development")
DEBUG = ENV == "development"

# API Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Google Cloud / Gemini
GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-001")
GEMINI_LOCATION = os.getenv("GEMINI_LOCATION", "us-central1")
GEMINI_MAX_TOKENS = int(os.getenv("GEMINI_MAX_TOKENS", "400"))
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.35"))

# Public site (links in emails point here)
SITE_DOMAIN = os.getenv("TOOLPLUG_DOMAIN", "toolplug.xyz")
SITE_NAME = "ToolPlug"


def is_production() -> bool:
    """Check if running in production"""
    return ENV == "production"


def is_development() -> bool:
    """Check if running in development"""
    return ENV == "development"


def get_env(key: str, default: str | None = None) -> str | None:
    """Get environment variable with fallback"""
    return os.getenv(key, default)


def product_hunt_token() -> str:
    """Product Hunt developer token, stripped; empty string when unset."""
    return (os.getenv("PH_DEV_TOKEN") or "").strip()


def brevo_api_key() -> str:
    """Brevo transactional email key, stripped; empty string when unset."""
    return (os.getenv("BREVO_API_KEY") or "").strip()


def admin_api_key() -> str | None:
    return os.getenv("TOOLPLUG_ADMIN_API_KEY") or None
