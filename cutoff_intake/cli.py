from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from cutoff_intake import __version__ as TOOL_VERSION
from cutoff_intake.config import settings
from cutoff_intake.errors import ParseError, StoreError, StructuralError
from cutoff_intake.loader import load_csv_text
from cutoff_intake.logger import configure_logging
from cutoff_intake.orchestrator import IngestionOrchestrator, Progress, validate_text
from cutoff_intake.report import (
    build_ingestion_payload,
    build_validation_payload,
    render_ingestion_text,
    render_validation_text,
)
from cutoff_intake.store import JsonFileStore, RestStore, SnapshotStore

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_HEADER_REJECTED = 3
EXIT_INVALID_ROWS = 4
EXIT_STORE_FAILED = 5

logger = logging.getLogger(__name__)


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class IntakeArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, ParseError):
        return EXIT_PARSE_FAILED
    if isinstance(exc, StructuralError):
        return EXIT_HEADER_REJECTED
    if isinstance(exc, StoreError):
        return EXIT_STORE_FAILED
    return EXIT_COMMAND_ERROR


def resolve_input(raw: str) -> Path:
    input_path = Path(raw)
    if not input_path.exists():
        raise CliError(f"Input file not found: {input_path}", EXIT_COMMAND_ERROR)
    if input_path.suffix.lower() != ".csv":
        raise CliError(
            f"Unsupported file type '{input_path.suffix or '[missing extension]'}'. Supported: .csv",
            EXIT_COMMAND_ERROR,
        )
    return input_path


def resolve_store(args: argparse.Namespace) -> tuple[SnapshotStore, str]:
    if args.remote:
        store = RestStore()
        return store, store.rest_root
    path = Path(args.store) if args.store else settings.store_path
    return JsonFileStore(path), str(path)


def build_parser() -> argparse.ArgumentParser:
    parser = IntakeArgumentParser(prog="cutoff-intake", description="Validate and ingest JoSAA cutoff CSV exports.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Check headers and rows without touching the dataset.")
    validate.add_argument("input", help="Input CSV path")
    validate.add_argument("--allow-extra-columns", action="store_true", default=None, help="Warn instead of rejecting extra header columns")
    validate.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    validate.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    validate.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    ingest = subparsers.add_parser("ingest", help="Append a CSV to the dataset.")
    ingest.add_argument("input", help="Input CSV path")
    target = ingest.add_mutually_exclusive_group()
    target.add_argument("--store", help="JSON data file (default: CUTOFF_INTAKE_STORE_PATH)")
    target.add_argument("--remote", action="store_true", help="Use the configured REST backend")
    ingest.add_argument("--chunk-size", type=int, default=None, help="Rows processed per chunk")
    ingest.add_argument("--allow-extra-columns", action="store_true", default=None, help="Warn instead of rejecting extra header columns")
    ingest.add_argument("--dry-run", action="store_true", help="Run the merge without saving")
    ingest.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    ingest.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    ingest.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    subparsers.add_parser("version", help="Print version")
    return parser


def setup_logging(args: argparse.Namespace) -> None:
    if getattr(args, "verbose", False):
        configure_logging("DEBUG")
    elif getattr(args, "quiet", False):
        configure_logging("WARNING")
    else:
        configure_logging()


def run_validate(args: argparse.Namespace) -> int:
    try:
        input_path = resolve_input(args.input)
        text = load_csv_text(input_path)
        report = validate_text(text, allow_extra_columns=args.allow_extra_columns)
        if args.json:
            maybe_emit_json_stdout(build_validation_payload(report, input_path), True)
        else:
            emit_human(render_validation_text(report, input_path).rstrip(), quiet=args.quiet)
        if report.blocked:
            return EXIT_HEADER_REJECTED
        if report.rows.invalid_rows:
            return EXIT_INVALID_ROWS
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_ingest(args: argparse.Namespace) -> int:
    try:
        input_path = resolve_input(args.input)
        if args.chunk_size is not None and args.chunk_size < 1:
            raise CliError("--chunk-size must be at least 1", EXIT_COMMAND_ERROR)
        store, target = resolve_store(args)
        existing = store.load_snapshot()

        def report_progress(progress: Progress) -> None:
            logger.debug("%d/%d rows (%d%%)", progress.processed, progress.total, progress.percent)

        orchestrator = IngestionOrchestrator(
            chunk_size=args.chunk_size,
            allow_extra_columns=args.allow_extra_columns,
        )
        result = orchestrator.run_file(input_path, existing, on_progress=report_progress)

        saved = False
        if result.committable and not args.dry_run:
            store.save_snapshot(result.snapshot)
            saved = True
            emit_human(f"Dataset saved: {target}", quiet=args.quiet)
        elif result.committable:
            emit_human("Dry run: dataset not saved.", quiet=args.quiet)

        if args.json:
            maybe_emit_json_stdout(build_ingestion_payload(result, input_path, output_path=target, saved=saved), True)
        else:
            emit_human(render_ingestion_text(result, input_path).rstrip(), quiet=args.quiet)
        result.raise_for_state()
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        setup_logging(args)
        if args.command == "validate":
            return run_validate(args)
        if args.command == "ingest":
            return run_ingest(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
