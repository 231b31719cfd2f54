# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Candidate numeric token extraction.

Two modes are available:

* **financial-line** keeps only lines that mention a financial keyword or a
  currency marker and matches plain or currency-prefixed numerals inside
  them;
* **unrestricted** scans the whole text and also accepts digit runs with
  OCR-confusable letters embedded (``l2O``).

:func:`extract_tokens` prefers the financial-line result and only falls back
to the unrestricted scan when it finds nothing.
"""
from __future__ import annotations

import re
from typing import List, Optional, Sequence

from .models import CurrencyHint
from .rules import (
    CURRENCY_HINT_RULES,
    CURRENCY_MARKER_RE,
    FINANCIAL_KEYWORDS_RE,
    FINANCIAL_LINE_RULES,
    INR_MARKER_RE,
    UNRESTRICTED_RULES,
    TokenKind,
    TokenRule,
    iter_rule_matches,
)

_EDGE_NOISE_RE = re.compile(r"^[:\s\"'`]+|[:;\s\"'`.,!?)\]]+$")
# Leading junk an unrestricted match can drag in ("#", "x", "(") unless the
# token opens with a currency symbol.
_LEADING_JUNK_RE = re.compile(r"^(?![₹$€])[^0-9₹$€OIlSBTAGQoDiZatgqs|]+")
_SEPARATORS_RE = re.compile(r"[\r\n|]")


def clean_token(raw: str, *, strip_leading_junk: bool = False) -> str:
    token = _EDGE_NOISE_RE.sub("", raw)
    if strip_leading_junk:
        token = _LEADING_JUNK_RE.sub("", token)
    return token


def _collect(text: str, rules: Sequence[TokenRule], *, strip_leading_junk: bool) -> List[str]:
    tokens: List[str] = []
    for rule, raw in iter_rule_matches(text, rules):
        token = clean_token(raw, strip_leading_junk=strip_leading_junk and rule.kind == TokenKind.OCR)
        if token:
            tokens.append(token)
    return tokens


def is_financial_line(line: str) -> bool:
    return bool(FINANCIAL_KEYWORDS_RE.search(line) or CURRENCY_MARKER_RE.search(line))


def extract_financial_tokens(text: Optional[str]) -> List[str]:
    """Tokens from lines that look financial, in reading order."""

    if not text:
        return []
    tokens: List[str] = []
    for line in re.split(r"\r?\n", text):
        if line and is_financial_line(line):
            tokens.extend(_collect(line, FINANCIAL_LINE_RULES, strip_leading_junk=False))
    return tokens


def extract_unrestricted_tokens(text: Optional[str]) -> List[str]:
    if not text:
        return []
    flattened = _SEPARATORS_RE.sub(" ", text)
    return _collect(flattened, UNRESTRICTED_RULES, strip_leading_junk=True)


def extract_tokens(text: Optional[str]) -> List[str]:
    financial = extract_financial_tokens(text)
    if financial:
        return financial
    return extract_unrestricted_tokens(text)


def detect_currency_hint(text: Optional[str]) -> CurrencyHint:
    if not text:
        return CurrencyHint.UNKNOWN
    for hint, pattern in CURRENCY_HINT_RULES:
        if pattern.search(text):
            return hint
    if INR_MARKER_RE.search(text):
        return CurrencyHint.INR
    return CurrencyHint.UNKNOWN


__all__ = [
    "clean_token",
    "detect_currency_hint",
    "extract_financial_tokens",
    "extract_tokens",
    "extract_unrestricted_tokens",
    "is_financial_line",
]
