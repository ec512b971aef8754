from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

# "Couse" is the exporter's own spelling; the header is matched literally.
EXPECTED_HEADERS = (
    "Year",
    "Round",
    "College",
    "Couse",
    "Quota",
    "Seat Type",
    "Gender",
    "Opening Rank",
    "Closing Rank",
)
REQUIRED_FIELDS = ("College", "Couse", "Opening Rank", "Closing Rank")


@dataclass
class HeaderValidation:
    headers: list[str]
    missing_headers: list[str] = field(default_factory=list)
    extra_headers: list[str] = field(default_factory=list)

    @property
    def header_mismatch(self) -> bool:
        return bool(self.missing_headers or self.extra_headers)

    def problems(self) -> list[str]:
        messages = []
        if self.missing_headers:
            messages.append("Missing headers: " + ", ".join(self.missing_headers))
        if self.extra_headers:
            messages.append("Extra headers: " + ", ".join(self.extra_headers))
        return messages

    def to_dict(self) -> dict[str, Any]:
        return {
            "headers": list(self.headers),
            "missing_headers": list(self.missing_headers),
            "extra_headers": list(self.extra_headers),
            "header_mismatch": self.header_mismatch,
        }


def validate_headers(
    headers: Sequence[str],
    expected: Sequence[str] = EXPECTED_HEADERS,
) -> HeaderValidation:
    present = set(headers)
    wanted = set(expected)
    return HeaderValidation(
        headers=list(headers),
        missing_headers=[name for name in expected if name not in present],
        extra_headers=[name for name in headers if name not in wanted],
    )
