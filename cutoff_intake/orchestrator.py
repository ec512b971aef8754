"""
End-to-end ingestion run.

    Idle → HeaderValidating → (Rejected | RowProcessing) → Finalizing → Complete

Decode failures end in ``Failed``; a cancel flag observed at a chunk boundary
ends in ``Cancelled``. Only a ``Complete`` result carries a snapshot, so a
caller can never commit a partial run.

Rows are processed in fixed-size chunks. ``iter_run`` yields a ``Progress``
after each chunk, which is the only point where control returns to the
caller (UI thread, event loop, CLI progress line).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Generator, Protocol

from cutoff_intake.config import settings
from cutoff_intake.errors import IntakeError, ParseError, StructuralError
from cutoff_intake.headers import HeaderValidation, validate_headers
from cutoff_intake.inference import infer_entities
from cutoff_intake.loader import decode_csv_bytes, load_csv_text
from cutoff_intake.merge import MergeEngine
from cutoff_intake.models import AdmissionRecord, Snapshot
from cutoff_intake.rows import VALID, RowReport, classify_line
from cutoff_intake.tokenizer import iter_document_lines, tokenize_line

logger = logging.getLogger(__name__)

EMPTY_DOCUMENT_MESSAGE = "CSV file must contain at least a header row and one data row"


class RunState(str, Enum):
    IDLE = "Idle"
    HEADER_VALIDATING = "HeaderValidating"
    REJECTED = "Rejected"
    ROW_PROCESSING = "RowProcessing"
    FINALIZING = "Finalizing"
    COMPLETE = "Complete"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


class CancelFlag(Protocol):
    def is_set(self) -> bool: ...


@dataclass
class Progress:
    processed: int
    total: int
    chunk: int
    chunks: int

    @property
    def percent(self) -> int:
        if not self.total:
            return 100
        return round(self.processed * 100 / self.total)


@dataclass
class ValidationReport:
    header: HeaderValidation
    rows: RowReport
    warnings: list[str] = field(default_factory=list)
    error: str | None = None
    blocked: bool = False

    @property
    def can_ingest(self) -> bool:
        return not self.blocked and self.error is None and self.rows.valid_rows > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": self.header.to_dict(),
            "rows": self.rows.to_dict(),
            "warnings": list(self.warnings),
            "error": self.error,
            "blocked": self.blocked,
            "can_ingest": self.can_ingest,
        }


@dataclass
class IngestionResult:
    state: RunState
    validation: ValidationReport | None = None
    snapshot: Snapshot | None = None
    new_records: list[AdmissionRecord] = field(default_factory=list)
    duplicates_skipped: int = 0
    starting_rank: int = 0
    summary: str = ""
    error: str | None = None

    @property
    def new_records_added(self) -> int:
        return len(self.new_records)

    @property
    def total_records(self) -> int:
        return len(self.snapshot.records) if self.snapshot else 0

    @property
    def committable(self) -> bool:
        return self.state is RunState.COMPLETE and self.snapshot is not None

    def raise_for_state(self) -> None:
        """Raise the error matching a non-complete terminal state."""
        if self.state is RunState.COMPLETE:
            return
        message = self.error or self.summary
        if self.state is RunState.REJECTED:
            header = self.validation.header if self.validation else None
            raise StructuralError(
                message,
                missing_headers=header.missing_headers if header else None,
                extra_headers=header.extra_headers if header else None,
            )
        if self.state is RunState.FAILED:
            raise ParseError(message)
        raise IntakeError(self.summary)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "summary": self.summary,
            "error": self.error,
            "new_records_added": self.new_records_added,
            "duplicates_skipped": self.duplicates_skipped,
            "total_records": self.total_records,
            "starting_rank": self.starting_rank,
            "validation": self.validation.to_dict() if self.validation else None,
            "collection_counts": self.snapshot.counts() if self.snapshot else None,
        }


def build_summary(new_records_added: int, duplicates_skipped: int, total_records: int) -> str:
    parts = [f"Upload complete! {new_records_added} new records added."]
    if duplicates_skipped > 0:
        parts.append(f"{duplicates_skipped} duplicates skipped.")
    parts.append(f"Total records: {total_records}.")
    return " ".join(parts)


def split_document(text: str) -> tuple[list[str] | None, list[tuple[int, str]]]:
    lines = list(iter_document_lines(text))
    if not lines:
        return None, []
    _, header_line = lines[0]
    return tokenize_line(header_line), lines[1:]


def _check_header(
    headers: list[str] | None,
    data_lines: list[tuple[int, str]],
    allow_extra_columns: bool,
    preview_rows: int,
) -> ValidationReport:
    header = validate_headers(headers or [])
    report = ValidationReport(header=header, rows=RowReport(preview_limit=preview_rows))

    if headers is None or not data_lines:
        report.error = EMPTY_DOCUMENT_MESSAGE
        report.blocked = True
        return report

    duplicates = sorted({name for name in headers if name and headers.count(name) > 1})
    if duplicates:
        report.warnings.append("Duplicate headers (last column wins): " + ", ".join(duplicates))
    if header.missing_headers:
        report.blocked = True
    elif header.extra_headers:
        if allow_extra_columns:
            report.warnings.append("Extra columns ignored: " + ", ".join(header.extra_headers))
        else:
            report.blocked = True
    return report


def validate_text(
    text: str,
    *,
    preview_rows: int | None = None,
    allow_extra_columns: bool | None = None,
) -> ValidationReport:
    """Header and row report for a document without merging anything. Runs even on a header mismatch."""
    preview_rows = settings.preview_rows if preview_rows is None else preview_rows
    allow_extra = settings.allow_extra_columns if allow_extra_columns is None else allow_extra_columns

    headers, data_lines = split_document(text)
    report = _check_header(headers, data_lines, allow_extra, preview_rows)
    if headers is not None:
        for line_number, line in data_lines:
            report.rows.record(classify_line(line, headers, line_number))
    return report


class IngestionOrchestrator:
    def __init__(
        self,
        *,
        chunk_size: int | None = None,
        preview_rows: int | None = None,
        allow_extra_columns: bool | None = None,
        cancel: CancelFlag | None = None,
    ) -> None:
        self.chunk_size = settings.chunk_size if chunk_size is None else chunk_size
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.preview_rows = settings.preview_rows if preview_rows is None else preview_rows
        self.allow_extra_columns = (
            settings.allow_extra_columns if allow_extra_columns is None else allow_extra_columns
        )
        self.cancel = cancel
        self.state = RunState.IDLE
        self.transitions: list[RunState] = [RunState.IDLE]

    def _enter(self, state: RunState) -> None:
        self.state = state
        self.transitions.append(state)

    def _fail(self, message: str) -> IngestionResult:
        self._enter(RunState.FAILED)
        logger.error("Ingestion failed: %s", message)
        return IngestionResult(
            state=RunState.FAILED,
            summary=f"Error processing file: {message}",
            error=message,
        )

    def iter_run(
        self,
        source: str | bytes,
        existing: Snapshot | None = None,
    ) -> Generator[Progress, None, IngestionResult]:
        self.state = RunState.IDLE
        self.transitions = [RunState.IDLE]

        if isinstance(source, bytes):
            try:
                source = decode_csv_bytes(source)
            except ParseError as exc:
                return self._fail(str(exc))

        self._enter(RunState.HEADER_VALIDATING)
        headers, data_lines = split_document(source)
        validation = _check_header(headers, data_lines, self.allow_extra_columns, self.preview_rows)
        for warning in validation.warnings:
            logger.warning(warning)

        if validation.blocked or headers is None:
            self._enter(RunState.REJECTED)
            message = validation.error or "Header mismatch. " + "; ".join(validation.header.problems())
            logger.info("Ingestion rejected: %s", message)
            return IngestionResult(
                state=RunState.REJECTED,
                validation=validation,
                summary=message,
                error=message,
            )

        self._enter(RunState.ROW_PROCESSING)
        engine = MergeEngine(existing)
        total = len(data_lines)
        chunks = math.ceil(total / self.chunk_size)
        processed = 0
        logger.info("Processing %d data lines in %d chunk(s) from rank %d", total, chunks, engine.starting_rank)

        for chunk_index in range(chunks):
            if self.cancel is not None and self.cancel.is_set():
                self._enter(RunState.CANCELLED)
                logger.warning("Ingestion cancelled after %d of %d lines", processed, total)
                return IngestionResult(
                    state=RunState.CANCELLED,
                    validation=validation,
                    summary="Ingestion cancelled; nothing was saved.",
                    error="cancelled",
                )

            start = chunk_index * self.chunk_size
            for line_number, line in data_lines[start : start + self.chunk_size]:
                outcome = classify_line(line, headers, line_number)
                validation.rows.record(outcome)
                if outcome.status == VALID and outcome.row is not None:
                    engine.merge(infer_entities(outcome.row))
                processed += 1

            progress = Progress(processed=processed, total=total, chunk=chunk_index + 1, chunks=chunks)
            logger.debug("Chunk %d/%d done (%d%%)", progress.chunk, chunks, progress.percent)
            yield progress

        self._enter(RunState.FINALIZING)
        snapshot = engine.snapshot()
        summary = build_summary(engine.new_records_added, engine.duplicates_skipped, len(snapshot.records))
        if validation.rows.invalid_rows:
            logger.warning("%d invalid row(s) excluded", len(validation.rows.invalid_rows))
        if engine.duplicates_skipped:
            logger.warning("%d duplicate record(s) skipped", engine.duplicates_skipped)

        self._enter(RunState.COMPLETE)
        logger.info(summary)
        return IngestionResult(
            state=RunState.COMPLETE,
            validation=validation,
            snapshot=snapshot,
            new_records=list(engine.new_records),
            duplicates_skipped=engine.duplicates_skipped,
            starting_rank=engine.starting_rank,
            summary=summary,
        )

    def run(
        self,
        source: str | bytes,
        existing: Snapshot | None = None,
        on_progress: Callable[[Progress], None] | None = None,
    ) -> IngestionResult:
        run = self.iter_run(source, existing)
        while True:
            try:
                progress = next(run)
            except StopIteration as stop:
                return stop.value
            if on_progress is not None:
                on_progress(progress)

    def run_file(
        self,
        path: str | Path,
        existing: Snapshot | None = None,
        on_progress: Callable[[Progress], None] | None = None,
    ) -> IngestionResult:
        self.state = RunState.IDLE
        self.transitions = [RunState.IDLE]
        try:
            text = load_csv_text(path)
        except ParseError as exc:
            return self._fail(str(exc))
        return self.run(text, existing, on_progress)


def ingest(
    source: str | bytes,
    existing: Snapshot | None = None,
    **options: Any,
) -> IngestionResult:
    return IngestionOrchestrator(**options).run(source, existing)
