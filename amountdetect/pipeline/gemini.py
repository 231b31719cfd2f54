# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Label service backed by the Gemini ``generateContent`` REST endpoint.

The model is asked to label every value with one of the six roles and to
answer with strict JSON. Anything that goes wrong (no network, HTTP errors,
timeouts, prose around the JSON, unknown labels) is absorbed here: the
service answers ``None`` and the classifier keeps its text-window heuristic.
"""
from __future__ import annotations

import json
import math
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..logging_utils import get_logger, log_event
from .interfaces import LabelService
from .models import AmountRole

logger = get_logger(__name__)

DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com"
DEFAULT_MODEL = "gemini-1.5-flash"
DEFAULT_TIMEOUT_SEC = 10.0

ALLOWED_LABELS = "|".join(role.value for role in AmountRole)


def build_label_prompt(text: str, values: Sequence[float]) -> str:
    return "\n".join(
        [
            "You are labeling amounts in medical bills/receipts.",
            "Allowed labels: " + ", ".join(role.value for role in AmountRole) + ".",
            "Given the full text and a list of numeric values, assign one label to each value.",
            "Return strict JSON only in this schema:",
            '{"labels": [{"value": number, "type": "' + ALLOWED_LABELS + '"}]}',
            "",
            "Full text:",
            text,
            "",
            "Values:",
            json.dumps(list(values)),
        ]
    )


def parse_label_response(text_out: Optional[str]) -> Optional[Dict[float, AmountRole]]:
    """Pull the ``{"labels": [...]}`` object out of a model reply.

    Items with a non-numeric value are skipped; unknown labels become
    ``unknown``. Returns ``None`` when no usable JSON object is present.
    """

    if not text_out:
        return None
    start = text_out.find("{")
    end = text_out.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        parsed = json.loads(text_out[start : end + 1])
    except ValueError:
        return None
    items = parsed.get("labels") if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        return None

    labels: Dict[float, AmountRole] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        raw_value = item.get("value")
        if isinstance(raw_value, bool):
            continue
        try:
            value = float(raw_value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            continue
        if not math.isfinite(value):
            continue
        labels[value] = AmountRole.parse(item.get("type", "unknown"))
    return labels


def _response_text(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    chunks: List[str] = []
    for candidate in body.get("candidates") or []:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        if not isinstance(content, dict):
            continue
        for part in content.get("parts") or []:
            text = part.get("text") if isinstance(part, dict) else None
            if isinstance(text, str):
                chunks.append(text)
    return "".join(chunks)


class GeminiLabelService(LabelService):
    """Ask Gemini for value labels over HTTP.

    Args:
        api_key: Google API key. Required.
        model: Model identifier used in the ``models/{model}:generateContent`` path.
        timeout_sec: Per-request timeout; a slow answer counts as unavailable.
        endpoint: Base URL, overridable for private gateways.
        client: Optional pre-built ``httpx.Client`` (tests inject a mock transport).
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        endpoint: str = DEFAULT_ENDPOINT,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if not api_key:
            raise ValueError("GeminiLabelService requires an API key")
        self.api_key = api_key
        self.model = model
        self.timeout_sec = timeout_sec
        self.endpoint = endpoint.rstrip("/")
        self._client = client

    @property
    def url(self) -> str:
        return f"{self.endpoint}/v1beta/models/{self.model}:generateContent"

    def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        params = {"key": self.api_key}
        if self._client is not None:
            return self._client.post(self.url, params=params, json=payload, timeout=self.timeout_sec)
        with httpx.Client(timeout=httpx.Timeout(self.timeout_sec)) as client:
            return client.post(self.url, params=params, json=payload)

    def label_values(self, text: str, values: Sequence[float]) -> Optional[Dict[float, AmountRole]]:
        if not values:
            return None
        payload = {"contents": [{"role": "user", "parts": [{"text": build_label_prompt(text, values)}]}]}
        try:
            response = self._post(payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            log_event(
                logger,
                "label_service_unavailable",
                {"model": self.model, "error": type(exc).__name__},
                level="warning",
            )
            return None
        labels = parse_label_response(_response_text(body))
        if labels is None:
            log_event(logger, "label_service_malformed", {"model": self.model}, level="warning")
        return labels


__all__ = [
    "DEFAULT_MODEL",
    "GeminiLabelService",
    "build_label_prompt",
    "parse_label_response",
]
