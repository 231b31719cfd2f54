"""amount-detect public package surface."""

from __future__ import annotations

from importlib import import_module as _import_module
from typing import Any, Dict

from ._version import __version__

__all__ = [
    "AmountPipeline",
    "Settings",
    "__version__",
    "build_pipeline",
    "create_app",
]

# Mapping of public attribute -> (module, attribute); resolved on first access
# so importing the package does not pull in FastAPI or the OCR stack.
_ATTR_TO_SPEC: Dict[str, tuple] = {
    "AmountPipeline": (".pipeline", "AmountPipeline"),
    "Settings": (".config", "Settings"),
    "build_pipeline": (".config", "build_pipeline"),
    "create_app": (".api_app", "create_app"),
}


def __getattr__(name: str) -> Any:
    spec = _ATTR_TO_SPEC.get(name)
    if spec is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = _import_module(spec[0], __name__)
    value = getattr(module, spec[1])
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(__all__ + list(globals().keys())))
