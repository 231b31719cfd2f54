# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""FastAPI application exposing the pipeline stages over HTTP.

This module keeps the HTTP wiring lightweight and reuses the validation and
response mappers defined in :mod:`amountdetect.api_http`. Callers can pass a
pre-built :class:`~amountdetect.pipeline.AmountPipeline` (tests inject one
with mock collaborators) or let the app build one from the environment.
"""

import time
import uuid
from typing import Any, Dict, Optional

from amountdetect._version import __version__
from amountdetect.api_http import (
    classify_from_payload,
    extract_from_inputs,
    finalize_from_payload,
    normalize_from_payload,
    process_from_inputs,
)
from amountdetect.config import Settings, build_pipeline
from amountdetect.logging_utils import configure_logging, get_logger, log_event
from amountdetect.pipeline import AmountPipeline

__all__ = ["create_app"]

_UPLOAD_CHUNK_BYTES = 1024 * 1024


def create_app(
    *,
    pipeline: Optional[AmountPipeline] = None,
    settings: Optional[Settings] = None,
):
    """Return a FastAPI instance exposing ``/step1``..``/step4``, ``/process`` and ``/health``."""

    try:
        from fastapi import Body, FastAPI, File, Form, HTTPException, Request, UploadFile
        from fastapi.responses import JSONResponse
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError(
            "FastAPI dependencies are missing. Install with `pip install -e '.[api]'` "
            "(or `pip install 'amount-detect[api]'`)."
        ) from exc

    try:
        import python_multipart  # noqa: F401
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError(
            "python-multipart is required for file uploads. Install with `pip install -e '.[api]'`."
        ) from exc

    try:
        import anyio
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("anyio is required (it should be installed with FastAPI).") from exc

    from jsonschema import ValidationError

    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.log_format)
    logger = get_logger("amountdetect.api")
    amount_pipeline = pipeline or build_pipeline(settings)
    max_upload_bytes = settings.max_upload_bytes

    app = FastAPI(
        title="Amount Detection API",
        version=__version__,
        description="Extract total/paid/due amounts from bill and receipt text or images.",
    )

    @app.middleware("http")
    async def _request_observability(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        t0 = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            dt = time.perf_counter() - t0
            status_code = int(getattr(response, "status_code", 500)) if response is not None else 500
            if response is not None:
                response.headers["X-Request-ID"] = request_id
            log_event(
                logger,
                "http_request",
                {
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status": status_code,
                    "duration_ms": int(round(dt * 1000.0)),
                },
                level="info" if status_code < 500 else "error",
            )

    def _json(status: int, body: Dict[str, Any]) -> JSONResponse:
        return JSONResponse(status_code=status, content=body)

    def _server_error(exc: Exception) -> JSONResponse:
        logger.exception("request failed")
        log_event(logger, "server_error", {"error": type(exc).__name__}, level="error")
        return _json(500, {"error": "server_error"})

    async def _read_upload(upload: Optional[UploadFile]) -> Optional[bytes]:
        if upload is None:
            return None
        chunks = []
        written = 0
        try:
            while True:
                chunk = await upload.read(_UPLOAD_CHUNK_BYTES)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_upload_bytes:
                    raise HTTPException(
                        status_code=413,
                        detail=f"File too large (>{settings.max_upload_mb} MB).",
                    )
                chunks.append(chunk)
        finally:
            await upload.close()
        data = b"".join(chunks)
        return data or None

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/step1")
    async def step1(text: Optional[str] = Form(None), file: Optional[UploadFile] = File(None)):
        image = await _read_upload(file)
        try:
            status, body = await anyio.to_thread.run_sync(
                lambda: extract_from_inputs(amount_pipeline, text=text, image=image)
            )
        except Exception as exc:
            return _server_error(exc)
        return _json(status, body)

    @app.post("/step2")
    def step2(payload: Dict[str, Any] = Body(...)):
        try:
            status, body = normalize_from_payload(amount_pipeline, payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.message) from exc
        except Exception as exc:
            return _server_error(exc)
        return _json(status, body)

    @app.post("/step3")
    def step3(payload: Dict[str, Any] = Body(...)):
        try:
            status, body = classify_from_payload(amount_pipeline, payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.message) from exc
        except Exception as exc:
            return _server_error(exc)
        return _json(status, body)

    @app.post("/step4")
    def step4(payload: Dict[str, Any] = Body(...)):
        try:
            status, body = finalize_from_payload(amount_pipeline, payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.message) from exc
        except Exception as exc:
            return _server_error(exc)
        return _json(status, body)

    @app.post("/process")
    async def process(text: Optional[str] = Form(None), file: Optional[UploadFile] = File(None)):
        image = await _read_upload(file)
        try:
            status, body = await anyio.to_thread.run_sync(
                lambda: process_from_inputs(amount_pipeline, text=text, image=image)
            )
        except Exception as exc:
            return _server_error(exc)
        return _json(status, body)

    return app
