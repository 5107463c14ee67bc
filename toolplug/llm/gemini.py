"""
Shared Gemini model instances.

Two backends:
  1. Vertex AI SDK (production) - uses GOOGLE_CLOUD_PROJECT + service account
  2. google-generativeai (local dev) - uses GOOGLE_API_KEY
"""

from __future__ import annotations

import os
from functools import lru_cache

from toolplug.errors import ConfigurationError
from toolplug.infrastructure.settings import GEMINI_LOCATION, GEMINI_MODEL, GOOGLE_CLOUD_PROJECT
from toolplug.observability.logging import get_logger

logger = get_logger(__name__)

# Backend picked by get_gemini_model(): "vertexai" or "genai"
_backend: str | None = None


class GeminiInitializationError(ConfigurationError):
    """No Gemini backend can be initialized (missing credentials or SDK)."""


def _init_vertex():
    import vertexai
    from vertexai.generative_models import GenerativeModel

    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    location = os.getenv("GEMINI_LOCATION") or GEMINI_LOCATION
    if not project:
        raise GeminiInitializationError("GOOGLE_CLOUD_PROJECT not set")

    vertexai.init(project=project, location=location)
    logger.info(
        "Initialized Gemini (Vertex AI): project=%s location=%s model=%s",
        project,
        location,
        GEMINI_MODEL,
    )
    return GenerativeModel(GEMINI_MODEL)


def _init_genai():
    import google.generativeai as genai

    api_key = os.getenv("GOOGLE_API_KEY")
    if not api_key:
        raise GeminiInitializationError(
            "Neither Vertex AI nor GOOGLE_API_KEY is configured for Gemini"
        )
    genai.configure(api_key=api_key)
    logger.info("Initialized Gemini (google-generativeai): model=%s", GEMINI_MODEL)
    return genai.GenerativeModel(GEMINI_MODEL)


@lru_cache(maxsize=1)
def get_gemini_model():
    """
    Process-wide Gemini model without a system instruction.

    Prefers Vertex AI; when GOOGLE_CLOUD_PROJECT is unset but GOOGLE_API_KEY
    is, the google-generativeai SDK (``toolplug[genai]``) is used instead.

    Raises:
        GeminiInitializationError: If neither backend can be configured
    """
    global _backend

    if os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT or not os.getenv("GOOGLE_API_KEY"):
        model = _init_vertex()
        _backend = "vertexai"
        return model

    try:
        model = _init_genai()
    except ImportError as e:
        raise GeminiInitializationError(
            "GOOGLE_API_KEY is set but google-generativeai is not installed "
            "(pip install 'toolplug[genai]')"
        ) from e
    _backend = "genai"
    return model


def get_gemini_model_with_options(system_instruction: str | None = None):
    """Model carrying a system instruction (instructions are per instance)."""
    if system_instruction is None:
        return get_gemini_model()

    get_gemini_model()

    if _backend == "vertexai":
        from vertexai.generative_models import GenerativeModel

        return GenerativeModel(GEMINI_MODEL, system_instruction=system_instruction)

    import google.generativeai as genai

    return genai.GenerativeModel(GEMINI_MODEL, system_instruction=system_instruction)

