"""Structured logging helpers shared by the pipeline, CLI and HTTP app.

Records are emitted as one JSON object per line (``{"ts", "event", ...}``)
unless the text format is selected, in which case the same fields are
rendered as a short human-readable line.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional

ROOT_LOGGER = "amountdetect"

_FORMAT_ATTR = "_amountdetect_format"
_HANDLER_ATTR = "_amountdetect_handler"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if not name:
        return logging.getLogger(ROOT_LOGGER)
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(level: str = "INFO", fmt: str = "json", stream: Optional[IO[str]] = None) -> logging.Logger:
    """Install a single stream handler (stdout by default) on the package logger.

    Calling it again replaces that handler instead of stacking a new one;
    the CLI points it at stderr so stdout only carries results.
    """

    logger = logging.getLogger(ROOT_LOGGER)
    for old in [h for h in logger.handlers if getattr(h, _HANDLER_ATTR, False)]:
        logger.removeHandler(old)
    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    setattr(handler, _HANDLER_ATTR, True)
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, (level or "INFO").strip().upper(), logging.INFO))
    logger.propagate = False
    setattr(logger, _FORMAT_ATTR, (fmt or "json").strip().lower())
    return logger


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _log_format() -> str:
    return getattr(logging.getLogger(ROOT_LOGGER), _FORMAT_ATTR, "json")


def log_event(logger: logging.Logger, event: str, payload: Dict[str, Any], *, level: str = "info") -> None:
    record = {"ts": _utc_now_iso(), "event": event, **payload}
    if _log_format() == "json":
        msg = json.dumps(record, ensure_ascii=False, default=str)
    else:
        msg = f"{record.get('ts')} {event} {payload}"
    fn = getattr(logger, level, logger.info)
    fn(msg)


__all__ = ["ROOT_LOGGER", "configure_logging", "get_logger", "log_event"]
