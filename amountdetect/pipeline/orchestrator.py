# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Stage orchestration: extract -> normalize -> classify -> finalize.

Each stage is available on its own (for step-by-step callers such as the
HTTP surface) and fused in :meth:`AmountPipeline.run_full`. A stage either
succeeds or reports a guardrail; the fused run halts on the first guardrail
and hands that stage's result back unchanged. No exception leaves a public
method: unexpected faults are logged and returned as an internal-error
result.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, cast

from ..logging_utils import get_logger, log_event
from .classifier import ContextClassifier
from .finalizer import finalize_amounts
from .input_handler import BasicInputHandler, ImageSource
from .interfaces import TextRecognizer
from .models import (
    ClassifiedAmount,
    ClassifyOutput,
    CurrencyHint,
    ExtractOutput,
    FinalizeOutput,
    NormalizeOutput,
    StageResult,
)
from .normalizer import normalize_tokens
from .scoring import compute_confidence
from .tesseract import DEFAULT_OCR_TIMEOUT_SEC, recognize_with_deadline
from .tokenizer import detect_currency_hint, extract_tokens

logger = get_logger(__name__)

T = TypeVar("T")

TraceSink = List[Dict[str, Any]]


class PipelineState(str, Enum):
    EXTRACTED = "extracted"
    NORMALIZED = "normalized"
    CLASSIFIED = "classified"
    FINALIZED = "finalized"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AmountPipeline:
    """Amount detection pipeline with pluggable OCR and labeling collaborators."""

    recognizer: Optional[TextRecognizer] = None
    classifier: ContextClassifier = field(default_factory=ContextClassifier)
    input_handler: BasicInputHandler = field(default_factory=BasicInputHandler)
    ocr_timeout_sec: float = DEFAULT_OCR_TIMEOUT_SEC

    # -- collaborators ---------------------------------------------------

    def _ocr(self, image: ImageSource) -> Optional[str]:
        if self.recognizer is None:
            log_event(logger, "ocr_unavailable", {"reason": "no recognizer configured"}, level="warning")
            return None
        try:
            pages = self.input_handler.load(image)
        except (OSError, ValueError, TypeError, RuntimeError) as exc:
            log_event(logger, "image_unreadable", {"error": type(exc).__name__, "detail": str(exc)}, level="warning")
            return None
        texts = [recognize_with_deadline(self.recognizer, page, self.ocr_timeout_sec) for page in pages]
        joined = "\n".join(t for t in texts if t)
        return joined or None

    # -- stage implementations -------------------------------------------

    def _extract(self, text: Optional[str], image: Optional[ImageSource]) -> StageResult[ExtractOutput]:
        combined = ""
        if image is not None:
            ocr_text = self._ocr(image)
            if ocr_text:
                combined += ocr_text + "\n"
        if text:
            combined += text

        if not combined.strip():
            return StageResult.guardrail_hit("document too noisy")

        raw_tokens = extract_tokens(combined)
        if not raw_tokens:
            return StageResult.guardrail_hit("document too noisy")

        currency_hint = detect_currency_hint(combined)
        token_score = min(1.0, len(raw_tokens) / 5)
        currency_score = 0.5 if currency_hint == CurrencyHint.UNKNOWN else 1.0
        return StageResult.success(
            ExtractOutput(
                raw_tokens=raw_tokens,
                currency_hint=currency_hint,
                confidence=compute_confidence([token_score, currency_score]),
                raw_text=combined,
            )
        )

    def _finalize(
        self,
        amounts: Optional[Sequence[object]],
        currency_hint: object,
        raw_text: Optional[str],
    ) -> StageResult[FinalizeOutput]:
        coerced = [a for a in (ClassifiedAmount.coerce(item) for item in (amounts or [])) if a is not None]
        return finalize_amounts(coerced, currency_hint, raw_text)

    # -- public stage entry points ---------------------------------------

    def _guarded(self, stage: str, fn: Callable[..., StageResult[T]], *args: Any) -> StageResult[T]:
        try:
            result = fn(*args)
        except Exception as exc:
            logger.exception("stage %s raised", stage)
            log_event(logger, "stage_internal_error", {"stage": stage, "error": type(exc).__name__}, level="error")
            return StageResult.internal_error()
        if result.guardrail:
            log_event(logger, "guardrail", {"stage": stage, "reason": result.reason})
        return result

    def extract(self, text: Optional[str] = None, image: Optional[ImageSource] = None) -> StageResult[ExtractOutput]:
        return self._guarded("extract", self._extract, text, image)

    def normalize(self, raw_tokens: Optional[Sequence[object]]) -> StageResult[NormalizeOutput]:
        return self._guarded("normalize", normalize_tokens, raw_tokens)

    def classify(
        self,
        normalized_amounts: Optional[Sequence[object]],
        raw_text: Optional[str],
        raw_tokens: Optional[Sequence[object]] = None,
    ) -> StageResult[ClassifyOutput]:
        return self._guarded("classify", self.classifier.classify, normalized_amounts, raw_text, raw_tokens)

    def finalize(
        self,
        amounts: Optional[Sequence[object]],
        currency_hint: object = CurrencyHint.UNKNOWN,
        raw_text: Optional[str] = None,
    ) -> StageResult[FinalizeOutput]:
        return self._guarded("finalize", self._finalize, amounts, currency_hint, raw_text)

    # -- fused run -------------------------------------------------------

    def run_full(
        self,
        text: Optional[str] = None,
        image: Optional[ImageSource] = None,
        *,
        trace: Optional[TraceSink] = None,
    ) -> StageResult[FinalizeOutput]:
        """Run all stages, stopping at the first guardrail or fault.

        ``trace`` is an optional caller-owned list that receives one entry per
        state reached (``state``, ``elapsed_ms``, ``ok``, ``reason``).
        """

        def _record(state: PipelineState, t0: float, result: Optional[StageResult[Any]] = None) -> None:
            if trace is None:
                return
            trace.append(
                {
                    "state": state.value,
                    "elapsed_ms": round((time.perf_counter() - t0) * 1000.0, 3),
                    "ok": None if result is None else result.ok,
                    "reason": None if result is None else (result.reason or result.error),
                }
            )

        t0 = time.perf_counter()
        s1 = self.extract(text, image)
        if not s1.ok:
            _record(PipelineState.FAILED, t0, s1)
            return s1  # type: ignore[return-value]
        _record(PipelineState.EXTRACTED, t0, s1)
        extracted = cast(ExtractOutput, s1.output)

        t0 = time.perf_counter()
        s2 = self.normalize(extracted.raw_tokens)
        if not s2.ok:
            _record(PipelineState.FAILED, t0, s2)
            return s2  # type: ignore[return-value]
        _record(PipelineState.NORMALIZED, t0, s2)
        normalized = cast(NormalizeOutput, s2.output)

        t0 = time.perf_counter()
        s3 = self.classify(normalized.normalized_amounts, extracted.raw_text, extracted.raw_tokens)
        if not s3.ok:
            _record(PipelineState.FAILED, t0, s3)
            return s3  # type: ignore[return-value]
        _record(PipelineState.CLASSIFIED, t0, s3)
        classified = cast(ClassifyOutput, s3.output)

        t0 = time.perf_counter()
        s4 = self.finalize(classified.amounts, extracted.currency_hint, extracted.raw_text)
        if not s4.ok:
            _record(PipelineState.FAILED, t0, s4)
            return s4
        _record(PipelineState.FINALIZED, t0, s4)
        _record(PipelineState.DONE, time.perf_counter())
        return s4


__all__ = ["AmountPipeline", "PipelineState", "TraceSink"]
