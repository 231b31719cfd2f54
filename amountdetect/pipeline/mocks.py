"""Mock collaborators for tests and dependency-free smoke runs."""
from __future__ import annotations

import time
from typing import Dict, List, Optional, Sequence, Tuple

from .interfaces import LabelService, TextRecognizer
from .models import AmountRole


class MockRecognizer(TextRecognizer):
    def __init__(self, text: Optional[str] = "", *, error: Optional[Exception] = None, delay_sec: float = 0.0) -> None:
        self.text = text
        self.error = error
        self.delay_sec = delay_sec
        self.calls: List[object] = []

    def recognize(self, image: object) -> Optional[str]:
        self.calls.append(image)
        if self.delay_sec:
            time.sleep(self.delay_sec)
        if self.error is not None:
            raise self.error
        return self.text


class MockLabelService(LabelService):
    def __init__(self, labels: Optional[object] = None, *, error: Optional[Exception] = None) -> None:
        self.labels = labels
        self.error = error
        self.calls: List[Tuple[str, List[float]]] = []

    def label_values(self, text: str, values: Sequence[float]) -> Optional[Dict[float, AmountRole]]:
        self.calls.append((text, list(values)))
        if self.error is not None:
            raise self.error
        return self.labels  # type: ignore[return-value]
