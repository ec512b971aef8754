"""
JSON payloads and plain-text renderings of validation and ingestion runs.

Both payloads follow the versioned contract layout used across the tool:
``contract``, ``schema_version``, ``tool_version`` and a ``run_summary``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Sequence

import pandas as pd

from cutoff_intake import __version__ as TOOL_VERSION
from cutoff_intake.config import settings
from cutoff_intake.orchestrator import IngestionResult, RunState, ValidationReport, split_document
from cutoff_intake.tokenizer import tokenize_line

PREVIEW_COLUMNS = {
    "college": "College",
    "course": "Course",
    "category": "Category",
    "opening_rank": "Opening Rank",
    "closing_rank": "Closing Rank",
}

RUN_STATUS = {
    RunState.COMPLETE: "ok",
    RunState.REJECTED: "rejected",
    RunState.FAILED: "failed",
    RunState.CANCELLED: "cancelled",
}

CONTRACT_VERSIONS = {
    "cutoff_intake.validation": "1.0.0",
    "cutoff_intake.ingestion": "1.0.0",
}


def generated_at() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _envelope(
    contract_name: str,
    command: str,
    input_path: Path | None,
    *,
    status: str,
    metrics: dict[str, Any],
    warnings: list[str],
    output_path: Path | str | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Header fields and ``run_summary`` block shared by every payload."""
    version = CONTRACT_VERSIONS[contract_name]
    input_file = str(input_path) if input_path else None
    header = {
        "contract": {"name": contract_name, "version": version},
        "schema_version": version,
        "tool_version": TOOL_VERSION,
        "input_file": input_file,
    }
    run_summary = {
        "tool": "cutoff-intake",
        "command": command,
        "status": status,
        "generated_at": generated_at(),
        "input_file": input_file,
        "output_file": str(output_path) if output_path else None,
        "warnings_count": len(warnings),
        "warnings": list(warnings),
        "metrics": metrics,
    }
    return header, run_summary


def format_invalid_rows(line_numbers: Sequence[int], limit: int | None = None) -> str:
    limit = settings.invalid_rows_shown if limit is None else limit
    shown = ", ".join(str(number) for number in line_numbers[:limit])
    if len(line_numbers) > limit:
        shown += f"... ({len(line_numbers)} total)"
    return shown


def preview_frame(preview: Sequence[dict[str, str]]) -> pd.DataFrame:
    frame = pd.DataFrame(list(preview), columns=list(PREVIEW_COLUMNS))
    return frame.rename(columns=PREVIEW_COLUMNS)


def build_validation_payload(report: ValidationReport, input_path: Path | None = None) -> dict[str, Any]:
    rows = report.rows
    header, run_summary = _envelope(
        "cutoff_intake.validation",
        "validate",
        input_path,
        status="ok" if report.can_ingest else "blocked",
        metrics={
            "total_rows": rows.total_rows,
            "valid_rows": rows.valid_rows,
            "empty_rows": rows.empty_rows,
            "invalid_rows": len(rows.invalid_rows),
            "header_mismatch": report.header.header_mismatch,
        },
        warnings=report.warnings,
    )
    return {**header, **report.to_dict(), "run_summary": run_summary}


def build_ingestion_payload(
    result: IngestionResult,
    input_path: Path | None = None,
    *,
    output_path: Path | str | None = None,
    saved: bool = False,
) -> dict[str, Any]:
    validation = result.validation
    header, run_summary = _envelope(
        "cutoff_intake.ingestion",
        "ingest",
        input_path,
        status=RUN_STATUS.get(result.state, "failed"),
        output_path=output_path if saved else None,
        metrics={
            "new_records_added": result.new_records_added,
            "duplicates_skipped": result.duplicates_skipped,
            "total_records": result.total_records,
            "starting_rank": result.starting_rank,
            "invalid_rows": len(validation.rows.invalid_rows) if validation else 0,
        },
        warnings=validation.warnings if validation else [],
    )
    return {
        **header,
        "saved": saved,
        "new_records": [record.to_dict() for record in result.new_records],
        **result.to_dict(),
        "run_summary": run_summary,
    }


def _validation_lines(report: ValidationReport, *, invalid_limit: int | None = None) -> list[str]:
    rows = report.rows
    lines = []
    if report.error:
        lines.append(f"Error: {report.error}")
    lines.extend(report.header.problems())
    lines.extend(f"Warning: {warning}" for warning in report.warnings)
    lines.extend(
        [
            f"Total rows: {rows.total_rows}",
            f"Valid rows: {rows.valid_rows}",
            f"Empty rows: {rows.empty_rows}",
            f"Invalid rows: {len(rows.invalid_rows)}",
        ]
    )
    if rows.invalid_rows:
        lines.append("Invalid row numbers: " + format_invalid_rows(rows.invalid_rows, invalid_limit))
    return lines


def render_validation_text(
    report: ValidationReport,
    input_path: Path | None = None,
    *,
    invalid_limit: int | None = None,
) -> str:
    lines = [
        "cutoff-intake validate",
        f"File: {input_path or '[upload]'}",
        f"Ready to ingest: {'yes' if report.can_ingest else 'no'}",
    ]
    lines.extend(_validation_lines(report, invalid_limit=invalid_limit))
    if report.rows.preview:
        lines.append("Preview:")
        lines.append(preview_frame(report.rows.preview).to_string(index=False))
    return "\n".join(lines) + "\n"


def render_ingestion_text(
    result: IngestionResult,
    input_path: Path | None = None,
    *,
    invalid_limit: int | None = None,
) -> str:
    lines = [
        "cutoff-intake ingest",
        f"File: {input_path or '[upload]'}",
        f"State: {result.state.value}",
        result.summary,
    ]
    if result.validation is not None and result.state is RunState.COMPLETE:
        rows = result.validation.rows
        if rows.invalid_rows:
            lines.append(
                f"Invalid rows excluded: {len(rows.invalid_rows)} "
                f"(lines {format_invalid_rows(rows.invalid_rows, invalid_limit)})"
            )
        lines.extend(f"Warning: {warning}" for warning in result.validation.warnings)
    if result.new_records:
        first, last = result.new_records[0].rank, result.new_records[-1].rank
        lines.append(f"Assigned ranks: {first}-{last}")
    return "\n".join(lines) + "\n"


def raw_preview_frame(text: str, limit: int = 10) -> pd.DataFrame:
    """First ``limit`` data lines exactly as tokenized, under the file's own headers."""
    headers, data_lines = split_document(text)
    if not headers:
        return pd.DataFrame()
    width = len(headers)
    rows = []
    for _, line in data_lines[:limit]:
        values = tokenize_line(line)[:width]
        rows.append(values + [""] * (width - len(values)))
    columns = unique_labels(name or f"(column {index + 1})" for index, name in enumerate(headers))
    return pd.DataFrame(rows, columns=columns)


def unique_labels(names: Iterable[str]) -> list[str]:
    """Suffix repeated names with `` (n)``, never reusing a name that appears elsewhere in the header."""
    names = list(names)
    reserved = set(names)
    used: set[str] = set()
    labels = []
    for name in names:
        label = name
        suffix = 2
        while label in used or (label != name and label in reserved):
            label = f"{name} ({suffix})"
            suffix += 1
        used.add(label)
        labels.append(label)
    return labels
