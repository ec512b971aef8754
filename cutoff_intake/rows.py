from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from cutoff_intake.headers import REQUIRED_FIELDS
from cutoff_intake.tokenizer import tokenize_line

VALID = "valid"
EMPTY = "empty"
INVALID = "invalid"


@dataclass
class RowOutcome:
    status: str
    line_number: int
    row: dict[str, str] | None = None
    reason: str = ""


def classify_line(line: str, headers: Sequence[str], line_number: int) -> RowOutcome:
    values = tokenize_line(line)
    if len(values) != len(headers):
        return RowOutcome(
            INVALID,
            line_number,
            reason=f"expected {len(headers)} fields, found {len(values)}",
        )

    if all(not value.strip() for value in values):
        return RowOutcome(EMPTY, line_number)

    row = dict(zip(headers, values))
    missing = [name for name in REQUIRED_FIELDS if not row.get(name, "").strip()]
    if missing:
        return RowOutcome(
            INVALID,
            line_number,
            row=row,
            reason="missing required field(s): " + ", ".join(missing),
        )
    return RowOutcome(VALID, line_number, row=row)


def preview_entry(row: dict[str, str]) -> dict[str, str]:
    return {
        "college": row.get("College", ""),
        "course": row.get("Couse", ""),
        "category": row.get("Seat Type", ""),
        "opening_rank": row.get("Opening Rank", ""),
        "closing_rank": row.get("Closing Rank", ""),
    }


@dataclass
class RowReport:
    total_rows: int = 0
    valid_rows: int = 0
    empty_rows: int = 0
    invalid_rows: list[int] = field(default_factory=list)
    invalid_details: list[dict[str, Any]] = field(default_factory=list)
    preview: list[dict[str, str]] = field(default_factory=list)
    preview_limit: int = 5

    def record(self, outcome: RowOutcome) -> None:
        self.total_rows += 1
        if outcome.status == EMPTY:
            self.empty_rows += 1
        elif outcome.status == INVALID:
            self.invalid_rows.append(outcome.line_number)
            self.invalid_details.append({"line": outcome.line_number, "reason": outcome.reason})
        else:
            self.valid_rows += 1
            if outcome.row is not None and len(self.preview) < self.preview_limit:
                self.preview.append(preview_entry(outcome.row))

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "empty_rows": self.empty_rows,
            "invalid_row_count": len(self.invalid_rows),
            "invalid_rows": list(self.invalid_rows),
            "invalid_details": [dict(item) for item in self.invalid_details],
            "preview": [dict(item) for item in self.preview],
        }


def classify_lines(
    lines: Iterable[tuple[int, str]],
    headers: Sequence[str],
    *,
    preview_limit: int = 5,
) -> RowReport:
    report = RowReport(preview_limit=preview_limit)
    for line_number, line in lines:
        report.record(classify_line(line, headers, line_number))
    return report
