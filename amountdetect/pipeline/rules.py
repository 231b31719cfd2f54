# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Declarative pattern tables used by the tokenizer.

Each rule is a named regular expression tagged with the kind of token it
produces. Rule order matters: the rules of a table are compiled into one
alternation, so at any position the earliest rule that matches wins (the same
"prioritize currency-prefixed amounts" behaviour a hand-written alternation
gives). New currency formats are added by inserting a rule, not by editing
the tokenizer.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Pattern, Sequence, Tuple

from .models import CurrencyHint
from .ocr_table import CONFUSABLE_CHARS


class TokenKind(str, Enum):
    CURRENCY = "currency"
    NUMBER = "number"
    OCR = "ocr"


@dataclass(frozen=True)
class TokenRule:
    name: str
    pattern: str
    kind: TokenKind
    flags: int = 0

    def compile(self) -> Pattern[str]:
        return re.compile(self.pattern, self.flags)


_DECIMALS = r"(?:\.[0-9]{1,2})?"
_CONFUSABLE = re.escape(CONFUSABLE_CHARS)

SYMBOL_AMOUNT = TokenRule(
    "symbol_amount",
    r"(?:₹|\$|€)\s*[0-9,]+" + _DECIMALS,
    TokenKind.CURRENCY,
)
CODE_AMOUNT = TokenRule(
    "code_amount",
    r"\b(?i:rs\.?|inr)\s*[0-9,]+" + _DECIMALS,
    TokenKind.CURRENCY,
)
BARE_NUMBER = TokenRule(
    "bare_number",
    r"\b[0-9][\d,]*" + _DECIMALS + r"%?",
    TokenKind.NUMBER,
)
_RUN_CHARS = r"[0-9" + _CONFUSABLE + r".,]"

# A whole run of digits and digit-lookalikes that is not part of a longer word,
# so "l2O" is one token but the "l" in "Total" never is. The run only matches
# from its first character to its last; it never ends early in front of
# another run character.
OCR_RUN = TokenRule(
    "ocr_run",
    r"(?<![A-Za-z0-9.,])(?=" + _RUN_CHARS + r"*\d)" + _RUN_CHARS + r"+%?(?![A-Za-z0-9.,])",
    TokenKind.OCR,
)
# Digits glued to a unit or word ("250kg", "10am") keep the whole digit run.
DIGIT_RUN = TokenRule(
    "digit_run",
    r"(?<![\d.,])\d[\d.,]*%?",
    TokenKind.NUMBER,
)

FINANCIAL_LINE_RULES: Tuple[TokenRule, ...] = (SYMBOL_AMOUNT, CODE_AMOUNT, BARE_NUMBER)
UNRESTRICTED_RULES: Tuple[TokenRule, ...] = (SYMBOL_AMOUNT, CODE_AMOUNT, OCR_RUN, DIGIT_RUN)

FINANCIAL_KEYWORDS_RE = re.compile(
    r"(total|amount|paid|due|balance|subtotal|grand\s*total|discount|invoice|tax|gst|vat)",
    re.IGNORECASE,
)
CURRENCY_MARKER_RE = re.compile(r"₹|\$|€|\bRs\.?\b|\bINR\b", re.IGNORECASE)
INR_MARKER_RE = re.compile(r"₹|\bRs\.?\b|\bINR\b", re.IGNORECASE)

# Checked in order; the first hit decides the hint.
CURRENCY_HINT_RULES: Tuple[Tuple[CurrencyHint, Pattern[str]], ...] = (
    (CurrencyHint.INR, re.compile(r"₹|\b(?:INR|RS)\b", re.IGNORECASE)),
    (CurrencyHint.USD, re.compile(r"\$|\bUSD\b", re.IGNORECASE)),
    (CurrencyHint.EUR, re.compile(r"€|\bEUR\b", re.IGNORECASE)),
)


def compile_rules(rules: Sequence[TokenRule]) -> Pattern[str]:
    """Fuse ``rules`` into one alternation with a named group per rule."""

    parts = [f"(?P<{rule.name}>{rule.pattern})" for rule in rules]
    return re.compile("|".join(parts))


def iter_rule_matches(text: str, rules: Sequence[TokenRule]) -> Iterator[Tuple[TokenRule, str]]:
    by_name = {rule.name: rule for rule in rules}
    for match in compile_rules(rules).finditer(text):
        rule = by_name[match.lastgroup or ""]
        yield rule, match.group(0)


__all__ = [
    "BARE_NUMBER",
    "CODE_AMOUNT",
    "CURRENCY_HINT_RULES",
    "CURRENCY_MARKER_RE",
    "DIGIT_RUN",
    "FINANCIAL_KEYWORDS_RE",
    "FINANCIAL_LINE_RULES",
    "INR_MARKER_RE",
    "OCR_RUN",
    "SYMBOL_AMOUNT",
    "TokenKind",
    "TokenRule",
    "UNRESTRICTED_RULES",
    "compile_rules",
    "iter_rule_matches",
]
