"""Transport-neutral helpers that wrap the pipeline stages.

These utilities keep a minimal dependency footprint while giving web handlers
(FastAPI here, but equally Flask or Lambda) and the CLI one way to:

- validate incoming JSON bodies against the v0 schemas,
- run the matching pipeline stage, and
- map the stage result to a ``(status_code, body)`` pair.

Success maps to 200, guardrails to 400 with ``{status, reason}`` and internal
faults to 500 with ``{error: "server_error"}``. Schema violations raise
:class:`jsonschema.ValidationError` for the caller to translate.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

from amountdetect.api_spec import (
    CLASSIFY_REQUEST_SCHEMA_V0,
    FINALIZE_REQUEST_SCHEMA_V0,
    FINALIZE_RESPONSE_SCHEMA_V0,
    GUARDRAIL_RESPONSE_SCHEMA_V0,
    NORMALIZE_REQUEST_SCHEMA_V0,
)
from amountdetect.pipeline import AmountPipeline, StageResult
from amountdetect.pipeline.input_handler import ImageSource

__all__ = [
    "classify_from_payload",
    "extract_from_inputs",
    "finalize_from_payload",
    "normalize_from_payload",
    "process_from_inputs",
    "stage_response",
]

Response = Tuple[int, Dict[str, Any]]


def stage_response(result: StageResult[Any]) -> Response:
    body = result.to_payload()
    if result.failed:
        return 500, body
    if result.guardrail:
        Draft202012Validator(GUARDRAIL_RESPONSE_SCHEMA_V0).validate(body)
        return 400, body
    return 200, body


def _finalize_response(result: StageResult[Any]) -> Response:
    status, body = stage_response(result)
    if status == 200:
        Draft202012Validator(FINALIZE_RESPONSE_SCHEMA_V0).validate(body)
    return status, body


def extract_from_inputs(
    pipeline: AmountPipeline,
    *,
    text: Optional[str] = None,
    image: Optional[ImageSource] = None,
) -> Response:
    return stage_response(pipeline.extract(text=text, image=image))


def normalize_from_payload(pipeline: AmountPipeline, payload: Dict[str, Any]) -> Response:
    Draft202012Validator(NORMALIZE_REQUEST_SCHEMA_V0).validate(payload)
    return stage_response(pipeline.normalize(payload.get("raw_tokens") or []))


def classify_from_payload(pipeline: AmountPipeline, payload: Dict[str, Any]) -> Response:
    Draft202012Validator(CLASSIFY_REQUEST_SCHEMA_V0).validate(payload)
    result = pipeline.classify(
        payload.get("normalized_amounts") or [],
        payload.get("raw_text") or "",
        payload.get("raw_tokens") or [],
    )
    return stage_response(result)


def finalize_from_payload(pipeline: AmountPipeline, payload: Dict[str, Any]) -> Response:
    Draft202012Validator(FINALIZE_REQUEST_SCHEMA_V0).validate(payload)
    currency = payload.get("currency") or payload.get("currency_hint") or "UNKNOWN"
    result = pipeline.finalize(payload.get("amounts") or [], currency, payload.get("raw_text") or "")
    return _finalize_response(result)


def process_from_inputs(
    pipeline: AmountPipeline,
    *,
    text: Optional[str] = None,
    image: Optional[ImageSource] = None,
    trace: Optional[List[Dict[str, Any]]] = None,
) -> Response:
    return _finalize_response(pipeline.run_full(text=text, image=image, trace=trace))
