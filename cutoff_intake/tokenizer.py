"""
Line-level CSV tokenizer for cutoff exports.

Quoted fields may contain commas and doubled quotes (``""`` → ``"``) but not
raw newlines: the document is split into lines before tokenizing, so a field
spanning lines is mis-tokenized. Malformed quoting never raises; the line is
split on a best-effort basis instead.
"""

from __future__ import annotations

from typing import Iterator

QUOTE = '"'
DELIMITER = ","
_PADDING = " \t"


def _closes_span(line: str, index: int) -> bool:
    """True when the quote at ``index`` is followed only by padding before a delimiter or EOL."""
    j = index + 1
    while j < len(line) and line[j] in _PADDING:
        j += 1
    return j == len(line) or line[j] == DELIMITER


def tokenize_line(line: str) -> list[str]:
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    n = len(line)

    while i < n:
        char = line[i]
        if in_quotes:
            if char == QUOTE and i + 1 < n and line[i + 1] == QUOTE:
                current.append(QUOTE)
                i += 2
                continue
            if char == QUOTE and _closes_span(line, i):
                in_quotes = False
            else:
                # stray quotes inside a span are kept literally
                current.append(char)
        elif char == DELIMITER:
            fields.append("".join(current).strip())
            current = []
        elif char == QUOTE and not "".join(current).strip():
            in_quotes = True
            current = []
        else:
            current.append(char)
        i += 1

    fields.append("".join(current).strip())
    return fields


def iter_document_lines(text: str) -> Iterator[tuple[int, str]]:
    """
    Yield ``(physical_line_number, line)`` for every non-blank line.

    Numbering is 1-based and counts blank lines, so reported numbers point at
    the line a user sees in an editor.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    for number, line in enumerate(text.split("\n"), start=1):
        line = line.rstrip("\r")
        if line.strip():
            yield number, line
