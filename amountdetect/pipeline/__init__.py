"""Amount detection pipeline: tokenizer, normalizer, classifier, finalizer."""

from .classifier import ClassifierConfig, ContextClassifier, LabelPolicy, validate_label_map
from .context import classify_by_context, extract_explicit_labeled_amounts, index_of_number_token
from .finalizer import build_provenance, finalize_amounts
from .input_handler import BasicInputHandler
from .interfaces import LabelService, TextRecognizer
from .mocks import MockLabelService, MockRecognizer
from .models import (
    CANONICAL_LABELS,
    REQUIRED_ROLES,
    AmountKind,
    AmountRole,
    ClassifiedAmount,
    ClassifyOutput,
    CurrencyHint,
    ExtractOutput,
    FinalAmount,
    FinalizeOutput,
    NormalizeOutput,
    NormalizedAmount,
    StageResult,
)
from .normalizer import normalize_token, normalize_tokens
from .ocr_table import OCR_DIGIT_MAP, correct_ocr_digits
from .orchestrator import AmountPipeline, PipelineState
from .tokenizer import detect_currency_hint, extract_tokens

__all__ = [
    "AmountKind",
    "AmountPipeline",
    "AmountRole",
    "BasicInputHandler",
    "CANONICAL_LABELS",
    "ClassifiedAmount",
    "ClassifierConfig",
    "ClassifyOutput",
    "ContextClassifier",
    "CurrencyHint",
    "ExtractOutput",
    "FinalAmount",
    "FinalizeOutput",
    "LabelPolicy",
    "LabelService",
    "MockLabelService",
    "MockRecognizer",
    "NormalizeOutput",
    "NormalizedAmount",
    "OCR_DIGIT_MAP",
    "PipelineState",
    "REQUIRED_ROLES",
    "StageResult",
    "TextRecognizer",
    "build_provenance",
    "classify_by_context",
    "correct_ocr_digits",
    "detect_currency_hint",
    "extract_explicit_labeled_amounts",
    "extract_tokens",
    "finalize_amounts",
    "index_of_number_token",
    "normalize_token",
    "normalize_tokens",
    "validate_label_map",
]
