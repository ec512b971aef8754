from __future__ import annotations

import logging
import sys

from cutoff_intake.config import settings

LOGGER_NAME = "cutoff_intake"

logger = logging.getLogger(LOGGER_NAME)


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """Attach a single stderr handler to the package logger."""
    resolved = level if level is not None else settings.log_level
    if isinstance(resolved, str):
        resolved = logging.getLevelName(resolved.upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO

    logger.setLevel(resolved)
    if not any(getattr(h, "_cutoff_intake", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-5s [cutoff-intake] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        handler._cutoff_intake = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(resolved)
    return logger
