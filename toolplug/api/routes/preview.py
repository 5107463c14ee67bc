"""Landing-page preview: one lenient pick, never persisted."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from toolplug.errors import ToolPlugError
from toolplug.observability.telemetry import counter
from toolplug.utils.error_sanitizer import get_safe_error_detail

router = APIRouter(prefix="/api", tags=["preview"])


@router.get("/preview")
def preview() -> JSONResponse:
    from toolplug.pipeline.generation import GenerationPipeline

    try:
        result = GenerationPipeline().preview()
    except ToolPlugError as e:
        counter("api.preview.failed")
        return JSONResponse(
            status_code=502, content={"ok": False, "error": get_safe_error_detail(e, 502)}
        )

    if result is None:
        return JSONResponse(
            status_code=404, content={"ok": False, "error": "No recent posts to preview"}
        )
    return JSONResponse(content={"ok": True, **result})
