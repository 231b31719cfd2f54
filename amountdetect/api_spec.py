"""JSON Schemas for the stage payloads of the amount detection surface.

The schemas follow Draft 2020-12 and capture the request bodies of the JSON
stages (``step2``..``step4``) plus the shared response shapes, so HTTP
handlers, the CLI and tests import a single source of truth. Request schemas
only pin types: a well-typed but empty body is a valid request that the
pipeline answers with a guardrail.
"""
from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict

__all__ = [
    "CLASSIFY_REQUEST_SCHEMA_V0",
    "FINALIZE_REQUEST_SCHEMA_V0",
    "FINALIZE_RESPONSE_SCHEMA_V0",
    "GUARDRAIL_RESPONSE_SCHEMA_V0",
    "NORMALIZE_REQUEST_SCHEMA_V0",
    "get_api_schemas_v0",
]

_DRAFT = "https://json-schema.org/draft/2020-12/schema"

NORMALIZE_REQUEST_SCHEMA_V0: Dict[str, Any] = {
    "$schema": _DRAFT,
    "title": "NormalizeRequest",
    "type": "object",
    "properties": {
        "raw_tokens": {"type": "array", "items": {"type": "string"}},
    },
}

CLASSIFY_REQUEST_SCHEMA_V0: Dict[str, Any] = {
    "$schema": _DRAFT,
    "title": "ClassifyRequest",
    "type": "object",
    "properties": {
        "normalized_amounts": {"type": "array", "items": {"type": "number"}},
        "raw_text": {"type": "string"},
        "raw_tokens": {"type": "array", "items": {"type": "string"}},
    },
}

FINALIZE_REQUEST_SCHEMA_V0: Dict[str, Any] = {
    "$schema": _DRAFT,
    "title": "FinalizeRequest",
    "type": "object",
    "properties": {
        "amounts": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["type", "value"],
                "properties": {
                    "type": {"type": "string"},
                    "value": {"type": "number"},
                    "source": {"type": "string"},
                },
            },
        },
        "currency": {"type": "string"},
        "currency_hint": {"type": "string"},
        "raw_text": {"type": "string"},
    },
}

FINALIZE_RESPONSE_SCHEMA_V0: Dict[str, Any] = {
    "$schema": _DRAFT,
    "title": "FinalizeResponse",
    "type": "object",
    "additionalProperties": False,
    "required": ["currency", "amounts", "status"],
    "properties": {
        "currency": {"type": "string", "enum": ["INR", "USD", "EUR", "UNKNOWN"]},
        "amounts": {
            "type": "array",
            "maxItems": 3,
            "items": {
                "type": "object",
                "additionalProperties": False,
                "required": ["type", "value", "source"],
                "properties": {
                    "type": {"type": "string", "enum": ["total_bill", "paid", "due"]},
                    "value": {"type": "number"},
                    "source": {"type": "string"},
                },
            },
        },
        "status": {"type": "string", "enum": ["ok"]},
    },
}

GUARDRAIL_RESPONSE_SCHEMA_V0: Dict[str, Any] = {
    "$schema": _DRAFT,
    "title": "GuardrailResponse",
    "type": "object",
    "additionalProperties": False,
    "required": ["status", "reason"],
    "properties": {
        "status": {"type": "string", "enum": ["no_amounts_found"]},
        "reason": {"type": "string", "minLength": 1},
    },
}


def get_api_schemas_v0() -> Dict[str, Dict[str, Any]]:
    """Return deep copies of the schemas keyed by stage name."""

    return {
        "normalize_request": deepcopy(NORMALIZE_REQUEST_SCHEMA_V0),
        "classify_request": deepcopy(CLASSIFY_REQUEST_SCHEMA_V0),
        "finalize_request": deepcopy(FINALIZE_REQUEST_SCHEMA_V0),
        "finalize_response": deepcopy(FINALIZE_RESPONSE_SCHEMA_V0),
        "guardrail_response": deepcopy(GUARDRAIL_RESPONSE_SCHEMA_V0),
    }
