# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Role classification for normalized amounts.

Every value is traced back to the token it came from, located in the raw text
and labeled from the words around it. An optional external label service can
override those labels; it is best-effort and any failure leaves the
text-window heuristic in charge. When no value ends up with a required role
the raw text is scanned for explicit "Label: amount" pairs as a last resort.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Dict, List, Mapping, Optional, Sequence

from ..logging_utils import get_logger, log_event
from .context import classify_by_context, extract_explicit_labeled_amounts, format_value, snippet_around
from .interfaces import LabelService
from .models import (
    AmountKind,
    AmountRole,
    ClassifiedAmount,
    ClassifyOutput,
    NormalizedAmount,
    StageResult,
)
from .normalizer import normalize_token
from .scoring import compute_confidence, label_weight

logger = get_logger(__name__)

EXPLICIT_SOURCE = "text: 'explicit labeled'"


class LabelPolicy(str, Enum):
    """How an external label combines with the text-window heuristic."""

    EXTERNAL_FIRST = "external_first"
    CONTEXT_FIRST = "context_first"

    @classmethod
    def parse(cls, raw: object) -> "LabelPolicy":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.EXTERNAL_FIRST


@dataclass(frozen=True)
class ClassifierConfig:
    label_service: Optional[LabelService] = None
    label_policy: LabelPolicy = LabelPolicy.EXTERNAL_FIRST


def _as_finite_float(raw: object) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, NormalizedAmount):
        raw = raw.value
    if isinstance(raw, Real):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def validate_label_map(raw: object) -> Optional[Dict[float, AmountRole]]:
    """Keep only numeric keys; unknown role strings become ``unknown``."""

    if not isinstance(raw, Mapping):
        return None
    labels: Dict[float, AmountRole] = {}
    for key, label in raw.items():
        value = _as_finite_float(key)
        if value is None:
            continue
        labels[value] = AmountRole.parse(label)
    return labels


class ContextClassifier:
    """Assign roles to amounts; see the module docstring for the precedence."""

    def __init__(self, config: Optional[ClassifierConfig] = None) -> None:
        self.config = config or ClassifierConfig()

    def _external_labels(self, raw_text: str, values: Sequence[float]) -> Optional[Dict[float, AmountRole]]:
        service = self.config.label_service
        if service is None:
            return None
        try:
            raw = service.label_values(raw_text, list(values))
        except Exception as exc:
            log_event(
                logger,
                "label_service_failed",
                {"error": type(exc).__name__, "detail": str(exc)},
                level="warning",
            )
            return None
        labels = validate_label_map(raw)
        if raw is not None and labels is None:
            log_event(logger, "label_service_malformed", {"type": type(raw).__name__}, level="warning")
        return labels

    def _choose_role(self, value: float, token: str, raw_text: str, external: Optional[Dict[float, AmountRole]]) -> AmountRole:
        external_role = external.get(value) if external else None
        if external_role is not None and self.config.label_policy == LabelPolicy.EXTERNAL_FIRST:
            return external_role
        role = classify_by_context(token, raw_text)
        if role == AmountRole.UNKNOWN and external_role is not None:
            return external_role
        return role

    def classify(
        self,
        values: Optional[Sequence[object]],
        raw_text: Optional[str],
        raw_tokens: Optional[Sequence[object]] = None,
    ) -> StageResult[ClassifyOutput]:
        amounts_in = [v for v in (_as_finite_float(raw) for raw in (values or [])) if v is not None]
        if not amounts_in:
            return StageResult.guardrail_hit("no normalized amounts")

        text = raw_text if isinstance(raw_text, str) else ""
        tokens = [tok for tok in (raw_tokens or []) if isinstance(tok, str) and tok]
        parsed_tokens: List[Optional[NormalizedAmount]] = [normalize_token(tok) for tok in tokens]

        external = self._external_labels(text, amounts_in)

        amounts: List[ClassifiedAmount] = []
        weights: List[float] = []
        for value in amounts_in:
            token = self._origin_token(value, tokens, parsed_tokens)
            role = self._choose_role(value, token, text, external)
            snippet = snippet_around(text, token)
            amounts.append(ClassifiedAmount(type=role, value=value, source=f"text: '{snippet}'"))
            weights.append(label_weight(role))

        confidence = round(compute_confidence(weights), 2)

        if not any(a.type.is_required for a in amounts):
            amounts.extend(self._explicit_fallback(text, amounts))

        return StageResult.success(ClassifyOutput(amounts=amounts, confidence=confidence))

    @staticmethod
    def _origin_token(value: float, tokens: Sequence[str], parsed: Sequence[Optional[NormalizedAmount]]) -> str:
        for token, item in zip(tokens, parsed):
            if item is not None and item.kind == AmountKind.AMOUNT and item.value == value:
                return token
        return format_value(value)

    @staticmethod
    def _explicit_fallback(raw_text: str, existing: Sequence[ClassifiedAmount]) -> List[ClassifiedAmount]:
        seen = {a.value for a in existing}
        merged: List[ClassifiedAmount] = []
        for role, value in extract_explicit_labeled_amounts(raw_text):
            if value in seen:
                continue
            merged.append(ClassifiedAmount(type=role, value=value, source=EXPLICIT_SOURCE))
        if merged:
            log_event(logger, "explicit_label_fallback", {"merged": len(merged)}, level="debug")
        return merged


__all__ = [
    "ClassifierConfig",
    "ContextClassifier",
    "EXPLICIT_SOURCE",
    "LabelPolicy",
    "validate_label_map",
]
