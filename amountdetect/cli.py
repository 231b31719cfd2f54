# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 amount-detect contributors

"""Command line access to the amount detection pipeline.

Subcommands mirror the HTTP surface and print JSON to stdout:

- ``run``: the fused pipeline over ``--text``/``--text-file``/``--image``.
- ``stage``: a single stage; ``step1`` reads text/image inputs, ``step2``..
  ``step4`` read a JSON body from ``--payload`` (``-`` for stdin).
- ``serve``: start the FastAPI app under uvicorn.

Exit codes: ``0`` success, ``2`` guardrail or invalid payload, ``1``
internal error.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from jsonschema import ValidationError

from amountdetect.api_http import (
    Response,
    classify_from_payload,
    extract_from_inputs,
    finalize_from_payload,
    normalize_from_payload,
    process_from_inputs,
)
from amountdetect.config import Settings, build_pipeline
from amountdetect.logging_utils import configure_logging
from amountdetect.pipeline import AmountPipeline

EXIT_OK = 0
EXIT_INTERNAL = 1
EXIT_GUARDRAIL = 2

_PAYLOAD_STAGES: Dict[str, Callable[[AmountPipeline, Dict[str, Any]], Response]] = {
    "step2": normalize_from_payload,
    "step3": classify_from_payload,
    "step4": finalize_from_payload,
}


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amountdetect", description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the full pipeline and print the final amounts")
    _add_input_args(run)
    run.add_argument("--out", help="Also write the JSON result to this path")
    run.add_argument("--trace", action="store_true", help="Print the per-stage trace to stderr")

    stage = sub.add_parser("stage", help="Run a single stage (step1..step4)")
    stage.add_argument("name", choices=["step1", *sorted(_PAYLOAD_STAGES)])
    _add_input_args(stage)
    stage.add_argument("--payload", help="JSON body for step2..step4 (file path or '-' for stdin)")

    serve = sub.add_parser("serve", help="Serve the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=3000)

    return parser


def _add_input_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--text", help="Bill text")
    parser.add_argument("--text-file", type=Path, help="Read bill text from a UTF-8 file")
    parser.add_argument("--image", type=Path, help="Bill image or PDF to OCR")


def _print_json(payload: Dict[str, Any]) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def _exit_code(status: int) -> int:
    if status == 200:
        return EXIT_OK
    if status >= 500:
        return EXIT_INTERNAL
    return EXIT_GUARDRAIL


def _read_text(args: argparse.Namespace) -> Optional[str]:
    parts = []
    if args.text:
        parts.append(args.text)
    if args.text_file is not None:
        parts.append(args.text_file.read_text(encoding="utf-8"))
    return "\n".join(parts) or None


def _read_payload(source: Optional[str]) -> Dict[str, Any]:
    if not source:
        raise ValueError("--payload is required for step2..step4")
    raw = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError("payload must be a JSON object")
    return payload


def _handle_run(pipeline: AmountPipeline, args: argparse.Namespace) -> int:
    trace: Optional[List[Dict[str, Any]]] = [] if args.trace else None
    status, body = process_from_inputs(pipeline, text=_read_text(args), image=args.image, trace=trace)
    if trace is not None:
        json.dump(trace, sys.stderr)
        sys.stderr.write("\n")
    _print_json(body)
    if args.out:
        Path(args.out).write_text(json.dumps(body, ensure_ascii=False, indent=2), encoding="utf-8")
    return _exit_code(status)


def _handle_stage(pipeline: AmountPipeline, args: argparse.Namespace) -> int:
    if args.name == "step1":
        status, body = extract_from_inputs(pipeline, text=_read_text(args), image=args.image)
    else:
        try:
            payload = _read_payload(args.payload)
            status, body = _PAYLOAD_STAGES[args.name](pipeline, payload)
        except (ValidationError, ValueError, OSError) as exc:
            message = exc.message if isinstance(exc, ValidationError) else str(exc)
            sys.stderr.write(f"invalid payload: {message}\n")
            return EXIT_GUARDRAIL
    _print_json(body)
    return _exit_code(status)


def _handle_serve(settings: Settings, args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("uvicorn is required to serve. Install with `pip install -e '.[api]'`.") from exc

    from amountdetect.api_app import create_app

    uvicorn.run(create_app(settings=settings), host=args.host, port=args.port)
    return EXIT_OK


def main(argv: Optional[List[str]] = None, *, pipeline: Optional[AmountPipeline] = None) -> int:
    parser = _parser()
    args = parser.parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_format, stream=sys.stderr)
    if args.command == "serve":
        return _handle_serve(settings, args)
    pipeline = pipeline or build_pipeline(settings)
    if args.command == "run":
        return _handle_run(pipeline, args)
    if args.command == "stage":
        return _handle_stage(pipeline, args)
    parser.error(f"Unknown command {args.command}")  # pragma: no cover - argparse enforces choices
    return EXIT_INTERNAL


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
