# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Process configuration read from the environment.

Settings are read once at startup and are treated as read-only afterwards;
nothing in the pipeline mutates them. A missing ``GEMINI_API_KEY`` simply
leaves the external label service disabled.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .logging_utils import get_logger, log_event
from .pipeline.classifier import ClassifierConfig, ContextClassifier, LabelPolicy
from .pipeline.gemini import DEFAULT_MODEL, GeminiLabelService
from .pipeline.interfaces import LabelService, TextRecognizer
from .pipeline.orchestrator import AmountPipeline
from .pipeline.tesseract import DEFAULT_OCR_TIMEOUT_SEC, TesseractRecognizer

logger = get_logger(__name__)


def _env_str(env: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    raw = env.get(name)
    if raw is None:
        return default
    raw = raw.strip()
    return raw or default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    raw = raw.strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    raw = raw.strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_truthy(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:
    ocr_timeout_sec: float = DEFAULT_OCR_TIMEOUT_SEC
    ocr_lang: str = "eng"
    ocr_psm: int = 6
    tessdata_dir: Optional[str] = None
    ocr_enabled: bool = True
    gemini_api_key: Optional[str] = None
    label_model: str = DEFAULT_MODEL
    label_timeout_sec: float = 10.0
    label_policy: LabelPolicy = LabelPolicy.EXTERNAL_FIRST
    max_upload_mb: int = 5
    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        ocr_timeout = _env_float(env, "AMOUNTDETECT_OCR_TIMEOUT_SEC", DEFAULT_OCR_TIMEOUT_SEC)
        return cls(
            ocr_timeout_sec=ocr_timeout if ocr_timeout > 0 else DEFAULT_OCR_TIMEOUT_SEC,
            ocr_lang=_env_str(env, "AMOUNTDETECT_OCR_LANG", "eng") or "eng",
            ocr_psm=_env_int(env, "AMOUNTDETECT_OCR_PSM", 6),
            tessdata_dir=_env_str(env, "AMOUNTDETECT_TESSDATA_DIR"),
            ocr_enabled=_env_truthy(env, "AMOUNTDETECT_ALLOW_PYTESSERACT", True),
            gemini_api_key=_env_str(env, "GEMINI_API_KEY") or _env_str(env, "gemini_api_key"),
            label_model=_env_str(env, "AMOUNTDETECT_LABEL_MODEL", DEFAULT_MODEL) or DEFAULT_MODEL,
            label_timeout_sec=max(0.1, _env_float(env, "AMOUNTDETECT_LABEL_TIMEOUT_SEC", 10.0)),
            label_policy=LabelPolicy.parse(_env_str(env, "AMOUNTDETECT_LABEL_POLICY")),
            max_upload_mb=max(1, _env_int(env, "AMOUNTDETECT_MAX_UPLOAD_MB", 5)),
            log_level=(_env_str(env, "AMOUNTDETECT_LOG_LEVEL", "INFO") or "INFO").upper(),
            log_format=(_env_str(env, "AMOUNTDETECT_LOG_FORMAT", "json") or "json").lower(),
        )

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb) * 1024 * 1024


def build_recognizer(settings: Settings) -> Optional[TextRecognizer]:
    if not settings.ocr_enabled:
        return None
    return TesseractRecognizer(
        lang=settings.ocr_lang,
        psm=settings.ocr_psm,
        timeout_sec=settings.ocr_timeout_sec,
        tessdata_dir=settings.tessdata_dir,
    )


def build_label_service(settings: Settings) -> Optional[LabelService]:
    if not settings.gemini_api_key:
        return None
    return GeminiLabelService(
        api_key=settings.gemini_api_key,
        model=settings.label_model,
        timeout_sec=settings.label_timeout_sec,
    )


def build_pipeline(settings: Optional[Settings] = None) -> AmountPipeline:
    settings = settings or Settings.from_env()
    label_service = build_label_service(settings)
    pipeline = AmountPipeline(
        recognizer=build_recognizer(settings),
        classifier=ContextClassifier(
            ClassifierConfig(label_service=label_service, label_policy=settings.label_policy)
        ),
        ocr_timeout_sec=settings.ocr_timeout_sec,
    )
    log_event(
        logger,
        "pipeline_configured",
        {
            "ocr": settings.ocr_enabled,
            "ocr_timeout_sec": settings.ocr_timeout_sec,
            "label_service": label_service is not None,
            "label_policy": settings.label_policy.value,
        },
        level="debug",
    )
    return pipeline


__all__ = ["Settings", "build_label_service", "build_pipeline", "build_recognizer"]
