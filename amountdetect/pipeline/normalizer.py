# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Turn raw tokens into numbers.

Parsing is attempted in two passes. The direct pass only removes currency
markers and grouping separators; if that does not yield a number the token is
run through the OCR correction table and parsed again, which scores lower
because the correction may have guessed wrong. Percent tokens are parsed but
kept out of the amount list.
"""
from __future__ import annotations

import math
import re
from typing import List, Optional, Sequence

from .models import AmountKind, NormalizeOutput, NormalizedAmount, StageResult
from .ocr_table import correct_ocr_digits
from .scoring import (
    CORRECTED_PARSE_WEIGHT,
    DIRECT_PARSE_WEIGHT,
    PERCENT_WEIGHT,
    UNPARSEABLE_WEIGHT,
    compute_confidence,
)

_CURRENCY_MARKERS_RE = re.compile(r"₹|\$|€|Rs\.?|INR\.?", re.IGNORECASE)
_GROUPING_RE = re.compile(r"[,\s]")
_NON_NUMERIC_RE = re.compile(r"[^0-9.]")
_NUMBER_RE = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)$")


def _to_float(text: str) -> Optional[float]:
    if not _NUMBER_RE.match(text):
        return None
    value = float(text)
    if not math.isfinite(value):
        return None
    return value


def strip_currency(token: str) -> str:
    return _GROUPING_RE.sub("", _CURRENCY_MARKERS_RE.sub("", token))


def parse_percent(token: str) -> Optional[NormalizedAmount]:
    value = _to_float(_NON_NUMERIC_RE.sub("", token))
    if value is None:
        return None
    return NormalizedAmount(value=value, kind=AmountKind.PERCENT, token=token, confidence=PERCENT_WEIGHT)


def parse_amount(token: str) -> Optional[NormalizedAmount]:
    """Parse a non-percent token, correcting OCR confusions when needed."""

    stripped = strip_currency(token)
    value = _to_float(stripped)
    if value is not None:
        return NormalizedAmount(value=value, token=token, confidence=DIRECT_PARSE_WEIGHT)

    corrected, _ = correct_ocr_digits(stripped)
    value = _to_float(_NON_NUMERIC_RE.sub("", corrected))
    if value is None:
        return None
    return NormalizedAmount(value=value, token=token, confidence=CORRECTED_PARSE_WEIGHT)


def normalize_token(token: object) -> Optional[NormalizedAmount]:
    if not isinstance(token, str) or not token.strip():
        return None
    if "%" in token:
        return parse_percent(token)
    return parse_amount(token)


def normalize_tokens(raw_tokens: Optional[Sequence[object]]) -> StageResult[NormalizeOutput]:
    tokens = list(raw_tokens or [])
    if not tokens:
        return StageResult.guardrail_hit("no numeric tokens")

    amounts: List[NormalizedAmount] = []
    percentages: List[NormalizedAmount] = []
    weights: List[float] = []
    for token in tokens:
        parsed = normalize_token(token)
        if parsed is None:
            weights.append(UNPARSEABLE_WEIGHT)
            continue
        weights.append(parsed.confidence)
        if parsed.kind == AmountKind.PERCENT:
            percentages.append(parsed)
        else:
            amounts.append(parsed)

    if not amounts:
        return StageResult.guardrail_hit("normalized nothing")

    return StageResult.success(
        NormalizeOutput(
            amounts=amounts,
            percentages=percentages,
            normalization_confidence=compute_confidence(weights),
        )
    )


__all__ = [
    "normalize_token",
    "normalize_tokens",
    "parse_amount",
    "parse_percent",
    "strip_currency",
]
