"""Single retried entry point for Gemini calls.

Transient Vertex AI failures are converted to builtin exception types so
tenacity can retry them; callers apply their own final-failure policy
(strict generation raises, lenient generation falls back to defaults).
"""

from __future__ import annotations

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from toolplug.config import LLM_MAX_RETRIES, LLM_TIMEOUT_SECONDS
from toolplug.infrastructure.settings import GEMINI_MAX_TOKENS, GEMINI_TEMPERATURE
from toolplug.llm.gemini import get_gemini_model_with_options
from toolplug.observability.logging import get_logger
from toolplug.observability.telemetry import counter

logger = get_logger(__name__)


@retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError, OSError)),
    reraise=True,
)
def call_llm(
    prompt: str,
    counter_prefix: str = "llm",
    system_instruction: str | None = None,
    json_output: bool = True,
) -> str:
    """Send one prompt and return the response text.

    Raises:
        TimeoutError: Deadline exceeded (retried).
        ConnectionError: Service unavailable or internal error (retried).
        OSError: Rate limited (retried).
        Exception: Anything else, unretried.
    """
    from google.api_core.exceptions import (
        DeadlineExceeded,
        InternalServerError,
        ResourceExhausted,
        ServiceUnavailable,
    )

    model = get_gemini_model_with_options(system_instruction=system_instruction)

    generation_config = {
        "temperature": GEMINI_TEMPERATURE,
        "max_output_tokens": GEMINI_MAX_TOKENS,
    }
    if json_output:
        generation_config["response_mime_type"] = "application/json"

    counter(f"{counter_prefix}.calls")
    try:
        response = model.generate_content(prompt, generation_config=generation_config)
        return response.text
    except DeadlineExceeded as e:
        counter(f"{counter_prefix}.timeout")
        logger.warning("LLM call timed out after %ds", LLM_TIMEOUT_SECONDS)
        raise TimeoutError(f"LLM call timed out: {e}") from e
    except ServiceUnavailable as e:
        counter(f"{counter_prefix}.service_unavailable")
        logger.warning("LLM service unavailable, will retry: %s", e)
        raise ConnectionError(f"LLM service unavailable: {e}") from e
    except ResourceExhausted as e:
        counter(f"{counter_prefix}.rate_limited")
        logger.warning("LLM rate limited (429), will retry: %s", e)
        raise OSError(f"LLM rate limited: {e}") from e
    except InternalServerError as e:
        counter(f"{counter_prefix}.internal_error")
        logger.warning("LLM internal error (500), will retry: %s", e)
        raise ConnectionError(f"LLM internal error: {e}") from e
