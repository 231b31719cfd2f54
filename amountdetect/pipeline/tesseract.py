"""Text recognizer backed by pytesseract.

This module provides the reference implementation of the ``TextRecognizer``
protocol. It enables LSTM-based OCR (``--oem 3``) and treats the input as a
single uniform block of text (``--psm 6``), which suits receipts and bills.
Every call is bounded by a deadline; a timeout or engine failure yields
``None`` ("no text") instead of an exception so the pipeline can carry on
with whatever text the caller supplied.
"""
from __future__ import annotations

import os
import re
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path
from typing import Optional

import pytesseract

from ..logging_utils import get_logger, log_event
from .interfaces import TextRecognizer

logger = get_logger(__name__)

DEFAULT_OCR_TIMEOUT_SEC = 35.0

_TRAILING_WS_RE = re.compile(r"\s+$")
_LINE_LEADING_NOISE_RE = re.compile(r"^[^a-zA-Z0-9₹$€]+", re.MULTILINE)


def _pytesseract_allowed() -> bool:
    raw = os.environ.get("AMOUNTDETECT_ALLOW_PYTESSERACT")
    if raw is None:
        return True
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def clean_ocr_text(text: Optional[str]) -> Optional[str]:
    """Drop trailing whitespace and stray symbols at line starts (currency signs survive)."""

    if not text:
        return None
    cleaned = _TRAILING_WS_RE.sub("", text)
    cleaned = _LINE_LEADING_NOISE_RE.sub("", cleaned)
    return cleaned or None


class TesseractRecognizer(TextRecognizer):
    """Run OCR on a page image using pytesseract.

    Args:
        lang: Language passed to Tesseract.
        oem: OCR Engine Mode. ``3`` enables the LSTM engine.
        psm: Page segmentation mode. ``6`` assumes one uniform block of text.
        timeout_sec: Hard upper bound for one recognition call.
        tessdata_dir: Local traineddata directory, used when it holds the
            requested language.
        char_whitelist: Optional ``tessedit_char_whitelist`` value.
    """

    def __init__(
        self,
        lang: str = "eng",
        oem: int = 3,
        psm: int = 6,
        timeout_sec: float = DEFAULT_OCR_TIMEOUT_SEC,
        tessdata_dir: Optional[str] = None,
        char_whitelist: Optional[str] = None,
    ) -> None:
        if not _pytesseract_allowed():
            raise RuntimeError(
                "pytesseract is disabled by AMOUNTDETECT_ALLOW_PYTESSERACT; set it to 1/true to enable"
            )
        self.lang = lang
        self.timeout_sec = timeout_sec
        parts = [f"--oem {oem}", f"--psm {psm}", "-c preserve_interword_spaces=1"]
        if tessdata_dir and self._has_local_lang(tessdata_dir, lang):
            parts.append(f'--tessdata-dir "{tessdata_dir}"')
        if char_whitelist:
            parts.append(f"-c tessedit_char_whitelist={char_whitelist}")
        self.config = " ".join(parts)

    @staticmethod
    def _has_local_lang(tessdata_dir: str, lang: str) -> bool:
        root = Path(tessdata_dir)
        first = lang.split("+", 1)[0]
        return (root / f"{first}.traineddata").exists() or (root / f"{first}.traineddata.gz").exists()

    def recognize(self, image: object) -> Optional[str]:
        try:
            text = pytesseract.image_to_string(
                image,
                lang=self.lang,
                config=self.config,
                timeout=self.timeout_sec,
            )
        except Exception as exc:
            # pytesseract raises RuntimeError on timeout and TesseractError on engine failures.
            log_event(logger, "ocr_failed", {"error": type(exc).__name__, "detail": str(exc)}, level="warning")
            return None
        return clean_ocr_text(text)


def recognize_with_deadline(
    recognizer: TextRecognizer,
    image: object,
    timeout_sec: float = DEFAULT_OCR_TIMEOUT_SEC,
) -> Optional[str]:
    """Run any recognizer under a deadline; failures and timeouts yield ``None``.

    The worker thread is abandoned on timeout; it holds no shared state.
    """

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="amountdetect-ocr")
    future = executor.submit(recognizer.recognize, image)
    try:
        text = future.result(timeout=timeout_sec if timeout_sec and timeout_sec > 0 else None)
    except FutureTimeout:
        log_event(logger, "ocr_timeout", {"timeout_sec": timeout_sec}, level="warning")
        return None
    except Exception as exc:
        log_event(logger, "ocr_failed", {"error": type(exc).__name__, "detail": str(exc)}, level="warning")
        return None
    finally:
        executor.shutdown(wait=False)
    if not isinstance(text, str) or not text.strip():
        return None
    return text


__all__ = [
    "DEFAULT_OCR_TIMEOUT_SEC",
    "TesseractRecognizer",
    "clean_ocr_text",
    "recognize_with_deadline",
]
