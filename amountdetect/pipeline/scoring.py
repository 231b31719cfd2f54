"""Confidence aggregation helpers."""
from __future__ import annotations

from statistics import mean
from typing import Dict, Iterable

from .models import AmountRole

DIRECT_PARSE_WEIGHT = 0.95
CORRECTED_PARSE_WEIGHT = 0.75
PERCENT_WEIGHT = 0.6
UNPARSEABLE_WEIGHT = 0.2

LABEL_WEIGHTS: Dict[AmountRole, float] = {
    AmountRole.TOTAL_BILL: 0.90,
    AmountRole.PAID: 0.88,
    AmountRole.DUE: 0.86,
    AmountRole.TAX: 0.80,
    AmountRole.DISCOUNT: 0.75,
    AmountRole.UNKNOWN: 0.70,
}


def compute_confidence(scores: Iterable[float]) -> float:
    """Mean of ``scores`` clamped to [0, 1]; an empty input scores 0."""

    values = [float(s) for s in scores]
    if not values:
        return 0.0
    return max(0.0, min(1.0, mean(values)))


def label_weight(role: AmountRole) -> float:
    return LABEL_WEIGHTS.get(role, LABEL_WEIGHTS[AmountRole.UNKNOWN])


__all__ = [
    "CORRECTED_PARSE_WEIGHT",
    "DIRECT_PARSE_WEIGHT",
    "LABEL_WEIGHTS",
    "PERCENT_WEIGHT",
    "UNPARSEABLE_WEIGHT",
    "compute_confidence",
    "label_weight",
]
