"""Data models for the amount detection pipeline.

These models keep inputs and outputs explicit across each stage of the
pipeline so stages can be run one at a time (e.g. behind an HTTP handler) or
fused end to end without changing data exchange formats. Pydantic is used for
validation and convenience when constructing objects in tests; every model is
frozen so a stage can never mutate what an earlier stage handed it.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

NO_AMOUNTS_FOUND = "no_amounts_found"
INTERNAL_ERROR = "error"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class AmountKind(str, Enum):
    AMOUNT = "amount"
    PERCENT = "percent"


class AmountRole(str, Enum):
    TOTAL_BILL = "total_bill"
    PAID = "paid"
    DUE = "due"
    DISCOUNT = "discount"
    TAX = "tax"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: object) -> "AmountRole":
        """Map an untrusted label string onto a role; anything else is ``unknown``."""

        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            return cls.UNKNOWN
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_required(self) -> bool:
        return self in REQUIRED_ROLES


REQUIRED_ROLES = (AmountRole.TOTAL_BILL, AmountRole.PAID, AmountRole.DUE)

CANONICAL_LABELS: Dict[AmountRole, str] = {
    AmountRole.TOTAL_BILL: "Total",
    AmountRole.PAID: "Paid",
    AmountRole.DUE: "Due",
}


class CurrencyHint(str, Enum):
    INR = "INR"
    USD = "USD"
    EUR = "EUR"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: object) -> "CurrencyHint":
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            try:
                return cls(raw.strip().upper())
            except ValueError:
                pass
        return cls.UNKNOWN


class NormalizedAmount(_Frozen):
    """A token resolved to a number."""

    value: float = Field(..., ge=0.0, allow_inf_nan=False)
    kind: AmountKind = AmountKind.AMOUNT
    token: str = ""
    confidence: float = Field(0.95, ge=0.0, le=1.0)


class ClassifiedAmount(_Frozen):
    type: AmountRole
    value: float = Field(..., allow_inf_nan=False)
    source: str = ""

    @classmethod
    def coerce(cls, item: object) -> Optional["ClassifiedAmount"]:
        """Build from a model or a ``{type, value, source?}`` mapping; ``None`` if unusable."""

        if isinstance(item, cls):
            return item
        if not isinstance(item, dict):
            return None
        value = item.get("value")
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            return None
        return cls(
            type=AmountRole.parse(item.get("type")),
            value=float(value),
            source=str(item.get("source") or ""),
        )


class FinalAmount(_Frozen):
    """Deduplicated amount for one of the required roles."""

    type: AmountRole
    value: float = Field(..., allow_inf_nan=False)
    source: str

    @property
    def label(self) -> str:
        return CANONICAL_LABELS.get(self.type, self.type.value)


class ExtractOutput(_Frozen):
    raw_tokens: List[str]
    currency_hint: CurrencyHint
    confidence: float = Field(..., ge=0.0, le=1.0)
    raw_text: str = ""

    def to_payload(self) -> Dict[str, Any]:
        # raw_text stays internal; later stages receive it from the caller.
        return {
            "raw_tokens": list(self.raw_tokens),
            "currency_hint": self.currency_hint.value,
            "confidence": self.confidence,
        }


class NormalizeOutput(_Frozen):
    amounts: List[NormalizedAmount]
    percentages: List[NormalizedAmount] = Field(default_factory=list)
    normalization_confidence: float = Field(..., ge=0.0, le=1.0)

    @property
    def normalized_amounts(self) -> List[float]:
        return [item.value for item in self.amounts]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "normalized_amounts": self.normalized_amounts,
            "normalization_confidence": self.normalization_confidence,
        }


class ClassifyOutput(_Frozen):
    amounts: List[ClassifiedAmount]
    confidence: float = Field(..., ge=0.0, le=1.0)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "amounts": [{"type": a.type.value, "value": a.value} for a in self.amounts],
            "confidence": self.confidence,
        }


class FinalizeOutput(_Frozen):
    currency: str
    amounts: List[FinalAmount]
    status: str = "ok"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "currency": self.currency,
            "amounts": [
                {"type": a.type.value, "value": a.value, "source": a.source} for a in self.amounts
            ],
            "status": self.status,
        }


T = TypeVar("T")


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Discriminated stage outcome: success, guardrail, or internal fault.

    Guardrails are expected terminal answers ("could not find amounts") and
    carry ``status="no_amounts_found"`` plus a reason. Internal faults are
    unexpected errors caught at the outermost boundary and never carry stage
    output.
    """

    output: Optional[T] = None
    status: str = "ok"
    reason: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, output: T) -> "StageResult[T]":
        return cls(output=output)

    @classmethod
    def guardrail_hit(cls, reason: str) -> "StageResult[T]":
        return cls(status=NO_AMOUNTS_FOUND, reason=reason)

    @classmethod
    def internal_error(cls, error: str = "server_error") -> "StageResult[T]":
        return cls(status=INTERNAL_ERROR, error=error)

    @property
    def guardrail(self) -> bool:
        return self.status == NO_AMOUNTS_FOUND

    @property
    def failed(self) -> bool:
        return self.status == INTERNAL_ERROR

    @property
    def ok(self) -> bool:
        return self.output is not None and not self.guardrail and not self.failed

    def to_payload(self) -> Dict[str, Any]:
        if self.failed:
            return {"error": self.error or "server_error"}
        if self.guardrail:
            return {"status": self.status, "reason": self.reason}
        to_payload = getattr(self.output, "to_payload", None)
        if callable(to_payload):
            return to_payload()
        return dict(self.output or {})  # type: ignore[call-overload]
