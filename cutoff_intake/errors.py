from __future__ import annotations


class IntakeError(Exception):
    """Base class for run-level ingestion failures."""


class ParseError(IntakeError):
    """The input file could not be read or decoded."""


class StructuralError(IntakeError):
    def __init__(
        self,
        message: str,
        *,
        missing_headers: list[str] | None = None,
        extra_headers: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.missing_headers = list(missing_headers or [])
        self.extra_headers = list(extra_headers or [])


class StoreError(IntakeError):
    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table
