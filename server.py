from __future__ import annotations

import asyncio
import json
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from htmlpdf_backend.config import MIN_API_KEY_LENGTH, ServiceConfig, load_config
from htmlpdf_backend.errors import ConversionError
from htmlpdf_backend.logs import get_logger, setup_logging
from htmlpdf_backend.renderer import PdfRenderer
from htmlpdf_backend.security import API_KEY_HEADER, verify_api_key
from htmlpdf_backend.workspace import cleanup_old_files, ensure_temp_dir


SERVICE_NAME = "PDF Generation Service"

logger = get_logger("server")

# Floor for the sweep period.
MIN_CLEANUP_INTERVAL_SECONDS = 30

# Routing errors raised by Starlette itself carry its own wording; keep ours.
_ROUTING_ERRORS = {
    404: "Not found",
    405: "Method not allowed",
}


class ConversionRequest(BaseModel):
    html: str
    options: Dict[str, Any] = Field(default_factory=dict)


async def _cleanup_worker(config: ServiceConfig) -> None:
    # Periodically delete temp files left behind by crashed or killed renders.
    while True:
        await asyncio.sleep(max(MIN_CLEANUP_INTERVAL_SECONDS, config.cleanup_interval_seconds))
        try:
            await run_in_threadpool(cleanup_old_files, config.temp_dir, config.temp_max_age_seconds)
        except Exception:
            logger.exception("Temp file cleanup failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    config: ServiceConfig = app.state.config
    setup_logging(config.log_file, config.log_level)

    if not config.api_key:
        logger.warning("No API key configured; all conversion requests will be rejected")
    elif len(config.api_key) < MIN_API_KEY_LENGTH:
        logger.warning("API key is shorter than %d characters", MIN_API_KEY_LENGTH)
    if not app.state.renderer.binary_available:
        logger.warning("Renderer binary not found at %s", config.renderer_binary)

    # Run a cleanup pass at startup, then start the periodic cleanup task.
    try:
        ensure_temp_dir(config.temp_dir)
        cleanup_old_files(config.temp_dir, config.temp_max_age_seconds)
    except OSError as e:
        logger.error("Temp dir %s unusable at startup: %s", config.temp_dir, e)

    task = asyncio.create_task(_cleanup_worker(config))
    app.state.cleanup_task = task
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def _error(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


def build_app(config: Optional[ServiceConfig] = None) -> FastAPI:
    """Build the FastAPI application around one explicit configuration."""
    if config is None:
        config = load_config()

    app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)
    app.state.config = config
    app.state.renderer = PdfRenderer(config)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        if isinstance(exc, HTTPException):
            # Raised by our own handlers with a message meant for the caller.
            return _error(exc.status_code, message, exc.headers)
        return _error(exc.status_code, _ROUTING_ERRORS.get(exc.status_code, message), exc.headers)

    @app.get("/")
    @app.get("/health")
    async def health() -> JSONResponse:
        renderer: PdfRenderer = app.state.renderer
        return JSONResponse(
            {
                "status": "ok",
                "service": SERVICE_NAME,
                "wkhtmltopdf": "available" if renderer.binary_available else "missing",
            }
        )

    @app.post("/generate")
    async def generate(request: Request) -> Response:
        # Authenticate before touching the body.
        if not verify_api_key(request.headers.get(API_KEY_HEADER), config.api_key):
            client = request.client.host if request.client else "unknown"
            logger.error("Unauthorized access attempt from %s", client)
            raise HTTPException(status_code=401, detail="Unauthorized")

        body = await request.body()
        try:
            data = json.loads(body)
        except RecursionError:
            raise HTTPException(status_code=400, detail="Invalid JSON: Maximum nesting depth exceeded")
        except ValueError as e:
            reason = e.msg if isinstance(e, json.JSONDecodeError) else str(e)
            raise HTTPException(status_code=400, detail=f"Invalid JSON: {reason}")

        html = data.get("html") if isinstance(data, dict) else None
        if not html or not isinstance(html, str):
            raise HTTPException(status_code=400, detail="Missing or invalid HTML")

        try:
            html_size = len(html.encode("utf-8"))
        except UnicodeEncodeError:
            # Lone surrogate escapes decode fine but are not valid text.
            raise HTTPException(status_code=400, detail="Missing or invalid HTML")
        if html_size > config.max_html_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"HTML too large (max {config.max_html_megabytes}MB)",
            )

        try:
            payload = ConversionRequest(html=html, options=data.get("options") or {})
        except ValidationError:
            raise HTTPException(status_code=400, detail="Invalid options")

        renderer: PdfRenderer = app.state.renderer
        try:
            pdf_bytes = await run_in_threadpool(renderer.render, payload.html, payload.options)
        except ConversionError as e:
            logger.error("PDF generation failed: %s", e)
            return _error(500, "PDF generation failed")

        headers = {"Cache-Control": "no-cache, no-store, must-revalidate"}
        return Response(content=pdf_bytes, media_type="application/pdf", headers=headers)

    return app


app = build_app()


if __name__ == "__main__":
    # Convenience: python server.py
    import uvicorn

    host = os.environ.get("HOST", "127.0.0.1")
    port = int(os.environ.get("PORT", "8888"))
    uvicorn.run("server:app", host=host, port=port, reload=False)
