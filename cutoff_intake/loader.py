"""
Read and decode uploaded cutoff CSV files.

UTF-8 (with or without BOM) is tried first. Anything else is decoded with
the encoding chardet reports, but only when it is confident enough; a file
that cannot be decoded raises ``ParseError`` instead of being guessed at.
"""

from __future__ import annotations

from pathlib import Path

import chardet

from cutoff_intake.config import settings
from cutoff_intake.errors import ParseError


def detect_encoding(raw: bytes) -> dict:
    result = chardet.detect(raw)
    detected = result.get("encoding") or "unknown"
    confidence = round(result.get("confidence") or 0.0, 2)
    return {
        "detected": detected,
        "confidence": confidence,
        "is_utf8": detected.upper().replace("-", "") in ("UTF8", "ASCII", "UTF8SIG"),
    }


def decode_csv_bytes(raw: bytes, *, min_confidence: float | None = None) -> str:
    threshold = settings.min_encoding_confidence if min_confidence is None else min_confidence
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as utf8_error:
        info = detect_encoding(raw)
        encoding = info["detected"]
        if encoding == "unknown" or info["confidence"] < threshold:
            raise ParseError(
                "Could not decode file: it is not UTF-8 and the encoding could not be "
                f"detected reliably (best guess {encoding}, confidence {info['confidence']})."
            ) from utf8_error
        try:
            text = raw.decode(encoding)
        except (LookupError, UnicodeDecodeError) as exc:
            raise ParseError(f"Could not decode file as {encoding}: {exc}") from exc

    # NUL bytes survive some exporters and are never meaningful here
    return text.replace("\x00", "")


def load_csv_text(path: str | Path, *, min_confidence: float | None = None) -> str:
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ParseError(f"Could not read {path}: {exc.strerror or exc}") from exc
    return decode_csv_bytes(raw, min_confidence=min_confidence)
