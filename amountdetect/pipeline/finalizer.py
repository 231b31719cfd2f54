# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Deduplicate classified amounts and attach provenance."""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .context import extract_explicit_labeled_amounts, format_value
from .models import (
    CANONICAL_LABELS,
    AmountRole,
    ClassifiedAmount,
    CurrencyHint,
    FinalAmount,
    FinalizeOutput,
    StageResult,
)

CURRENCY_PREFIXES = {
    CurrencyHint.INR: "INR ",
    CurrencyHint.USD: "$",
    CurrencyHint.EUR: "€",
}

_ANY_CURRENCY = r"(?:(?:₹|\$|€|rs\.?|inr)\s*)?"


def currency_prefix(currency_hint: object) -> str:
    return CURRENCY_PREFIXES.get(CurrencyHint.parse(currency_hint), "")


def _value_pattern(value: float) -> str:
    """Regex for ``value`` as it may be printed: optional grouping commas and trailing zeros."""

    text = format_value(value)
    whole, _, fraction = text.partition(".")
    digits = ",?".join(re.escape(ch) for ch in whole)
    if fraction:
        return digits + r"\." + re.escape(fraction) + r"0*"
    return digits + r"(?:\.0+)?"


def find_labeled_occurrence(raw_text: str, label: str, value: float) -> Optional[str]:
    """Locate "Label: [currency]value" in ``raw_text``, case-insensitively."""

    if not raw_text:
        return None
    pattern = re.compile(
        r"\b" + re.escape(label) + r"\s*:?\s*" + _ANY_CURRENCY + _value_pattern(value) + r"(?![\d])",
        re.IGNORECASE,
    )
    match = pattern.search(raw_text)
    return match.group(0) if match else None


def build_provenance(role: AmountRole, value: float, raw_text: str, currency_hint: object) -> str:
    label = CANONICAL_LABELS.get(role, role.value)
    found = find_labeled_occurrence(raw_text, label, value)
    if found:
        return f"text: '{found}'"
    prefix = currency_prefix(currency_hint) if role == AmountRole.TOTAL_BILL else ""
    return f"text: '{label}: {prefix}{format_value(value)}'"


def _first_per_role(entries: Iterable[Tuple[AmountRole, float]], raw_text: str, currency_hint: object) -> List[FinalAmount]:
    seen: Set[AmountRole] = set()
    final: List[FinalAmount] = []
    for role, value in entries:
        if not role.is_required or role in seen:
            continue
        seen.add(role)
        final.append(
            FinalAmount(type=role, value=value, source=build_provenance(role, value, raw_text, currency_hint))
        )
    return final


def finalize_amounts(
    amounts: Optional[Sequence[ClassifiedAmount]],
    currency_hint: object = CurrencyHint.UNKNOWN,
    raw_text: Optional[str] = None,
) -> StageResult[FinalizeOutput]:
    """Keep the first amount per required role, in input order.

    When nothing required survives, explicit "Label: amount" pairs found in
    ``raw_text`` are used instead.
    """

    text = raw_text if isinstance(raw_text, str) else ""
    items = list(amounts or [])

    final = _first_per_role(((a.type, a.value) for a in items), text, currency_hint)
    if not final:
        final = _first_per_role(extract_explicit_labeled_amounts(text), text, currency_hint)
    if not final:
        reason = "no required labels detected" if items else "no classified amounts"
        return StageResult.guardrail_hit(reason)

    currency = CurrencyHint.parse(currency_hint).value
    return StageResult.success(FinalizeOutput(currency=currency, amounts=final))


__all__ = [
    "CURRENCY_PREFIXES",
    "build_provenance",
    "currency_prefix",
    "finalize_amounts",
    "find_labeled_occurrence",
]
