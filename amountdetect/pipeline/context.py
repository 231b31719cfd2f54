# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Text-window heuristics for assigning roles to amounts."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

from .models import AmountRole

LEFT_WINDOW = 30
SYMMETRIC_WINDOW = 50
SNIPPET_WINDOW = 30

# Evaluated in order; the first family found in a window decides the role.
ROLE_KEYWORDS: Tuple[Tuple[AmountRole, Pattern[str]], ...] = (
    (AmountRole.DUE, re.compile(r"\b(due|balance|outstanding|remaining)\b")),
    (AmountRole.PAID, re.compile(r"\b(paid|payment|received)\b")),
    (AmountRole.DISCOUNT, re.compile(r"\b(discount|rebate|offer)\b")),
    (AmountRole.TAX, re.compile(r"\b(tax|gst|vat)\b")),
    (AmountRole.TOTAL_BILL, re.compile(r"\b(total|amount|bill|subtotal|grand total)\b")),
)

_NUMERAL = r"([0-9][\d,]*(?:\.[0-9]{1,2})?)"
_CURRENCY_PREFIX = r"(₹|\$|€|rs\.?|inr)?"

EXPLICIT_LABEL_PATTERNS: Tuple[Tuple[AmountRole, Pattern[str]], ...] = (
    (
        AmountRole.TOTAL_BILL,
        re.compile(r"(total|grand\s*total|amount\s*due)\s*[:\-]?\s*" + _CURRENCY_PREFIX + r"\s*" + _NUMERAL, re.I),
    ),
    (
        AmountRole.PAID,
        re.compile(r"(paid|payment\s*received)\s*[:\-]?\s*" + _CURRENCY_PREFIX + r"\s*" + _NUMERAL, re.I),
    ),
    (
        AmountRole.DUE,
        re.compile(
            r"(due|balance|outstanding|remaining)\s*[:\-]?\s*" + _CURRENCY_PREFIX + r"\s*" + _NUMERAL,
            re.I,
        ),
    ),
)


def index_of_number_token(haystack: str, needle: str) -> int:
    """Find ``needle`` in ``haystack`` where it is not glued to other digits.

    Returns -1 when every occurrence has a digit directly before or after it,
    so "23" is never located inside "1234".
    """

    if not isinstance(haystack, str) or not isinstance(needle, str) or not needle:
        return -1
    start = 0
    while True:
        idx = haystack.find(needle, start)
        if idx == -1:
            return -1
        end = idx + len(needle)
        before = haystack[idx - 1] if idx > 0 else ""
        after = haystack[end] if end < len(haystack) else ""
        if not before.isdigit() and not after.isdigit():
            return idx
        start = idx + 1


@dataclass(frozen=True)
class ContextWindows:
    left: str
    symmetric: str
    found: bool


def context_windows(text: str, token: str) -> ContextWindows:
    idx = index_of_number_token(text, token)
    if idx == -1:
        return ContextWindows(left=text, symmetric=text, found=False)
    end = idx + len(token)
    return ContextWindows(
        left=text[max(0, idx - LEFT_WINDOW) : idx],
        symmetric=text[max(0, idx - SYMMETRIC_WINDOW) : min(len(text), end + SYMMETRIC_WINDOW)],
        found=True,
    )


def role_from_window(window: str) -> Optional[AmountRole]:
    for role, pattern in ROLE_KEYWORDS:
        if pattern.search(window):
            return role
    return None


def classify_by_context(token: object, raw_text: object) -> AmountRole:
    if not token or not isinstance(raw_text, str):
        return AmountRole.UNKNOWN
    text = raw_text.lower()
    windows = context_windows(text, str(token).lower())
    # The left window is checked first so a neighbouring line's label does not
    # leak into this amount.
    return role_from_window(windows.left) or role_from_window(windows.symmetric) or AmountRole.UNKNOWN


def snippet_around(text: str, token: str, window: int = SNIPPET_WINDOW) -> str:
    if not text or not token:
        return text or ""
    idx = text.find(token)
    if idx == -1:
        return text
    return text[max(0, idx - window) : min(len(text), idx + len(token) + window)]


def format_value(value: float) -> str:
    """Render like a receipt would: integral values without a trailing ".0"."""

    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _parse_grouped(numeral: str) -> Optional[float]:
    try:
        return float(numeral.replace(",", ""))
    except ValueError:
        return None


def extract_explicit_labeled_amounts(raw_text: object) -> List[Tuple[AmountRole, float]]:
    """Scan for "Label: amount" pairs, first hit per role."""

    if not isinstance(raw_text, str) or not raw_text:
        return []
    found: List[Tuple[AmountRole, float]] = []
    for role, pattern in EXPLICIT_LABEL_PATTERNS:
        for match in pattern.finditer(raw_text):
            value = _parse_grouped(match.group(3) or "")
            if value is not None:
                found.append((role, value))
                break
    return found


__all__ = [
    "ContextWindows",
    "EXPLICIT_LABEL_PATTERNS",
    "LEFT_WINDOW",
    "ROLE_KEYWORDS",
    "SYMMETRIC_WINDOW",
    "classify_by_context",
    "context_windows",
    "extract_explicit_labeled_amounts",
    "format_value",
    "index_of_number_token",
    "role_from_window",
    "snippet_around",
]
