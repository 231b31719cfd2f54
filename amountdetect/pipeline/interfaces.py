# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Interfaces for the collaborators the pipeline consumes."""
from __future__ import annotations

from typing import Dict, Optional, Protocol, Sequence

from .models import AmountRole


class TextRecognizer(Protocol):
    """OCR engine turning one image into text; ``None`` when nothing was read."""

    def recognize(self, image: object) -> Optional[str]:
        ...


class LabelService(Protocol):
    """Optional semantic labeler mapping values to roles given the full text.

    Returns ``None`` when the service is unavailable. Implementations are
    untrusted: the classifier validates every key and label it receives.
    """

    def label_values(self, text: str, values: Sequence[float]) -> Optional[Dict[float, AmountRole]]:
        ...
