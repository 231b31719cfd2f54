# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Static table of characters OCR engines commonly confuse with digits."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Tuple

OCR_DIGIT_MAP: Mapping[str, str] = MappingProxyType(
    {
        "O": "0",
        "o": "0",
        "D": "0",
        "I": "1",
        "l": "1",
        "i": "1",
        "|": "1",
        "Z": "2",
        "A": "4",
        "a": "4",
        "T": "7",
        "t": "7",
        "G": "6",
        "g": "9",
        "Q": "9",
        "q": "9",
        "S": "5",
        "s": "5",
        "B": "8",
    }
)

_TRANSLATION = str.maketrans(dict(OCR_DIGIT_MAP))

# Letters the unrestricted tokenizer accepts inside digit runs.
CONFUSABLE_CHARS = "".join(sorted(OCR_DIGIT_MAP))


def correct_ocr_digits(token: str) -> Tuple[str, bool]:
    """Return ``(corrected, changed)`` with confusable characters mapped to digits."""

    corrected = token.translate(_TRANSLATION)
    return corrected, corrected != token


__all__ = ["CONFUSABLE_CHARS", "OCR_DIGIT_MAP", "correct_ocr_digits"]
