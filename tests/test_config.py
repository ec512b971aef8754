from __future__ import annotations

import logging
import os
import unittest
from pathlib import Path
from unittest import mock

from pydantic import ValidationError

from cutoff_intake.config import Settings
from cutoff_intake.logger import LOGGER_NAME, configure_logging


class SettingsTests(unittest.TestCase):
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)
        self.assertEqual(settings.chunk_size, 100)
        self.assertEqual(settings.preview_rows, 5)
        self.assertEqual(settings.invalid_rows_shown, 10)
        self.assertFalse(settings.allow_extra_columns)
        self.assertEqual(settings.store_path, Path("cutoff-data.json"))
        self.assertIsNone(settings.store_url)

    def test_environment_overrides(self):
        env = {
            "CUTOFF_INTAKE_CHUNK_SIZE": "25",
            "CUTOFF_INTAKE_ALLOW_EXTRA_COLUMNS": "true",
            "CUTOFF_INTAKE_TABLE_SUFFIX": "_2025",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)
        self.assertEqual(settings.chunk_size, 25)
        self.assertTrue(settings.allow_extra_columns)
        self.assertEqual(settings.table_suffix, "_2025")

    def test_chunk_size_must_be_positive(self):
        with mock.patch.dict(os.environ, {"CUTOFF_INTAKE_CHUNK_SIZE": "0"}, clear=True):
            with self.assertRaises(ValidationError):
                Settings(_env_file=None)


class LoggingTests(unittest.TestCase):
    def test_configure_is_idempotent(self):
        logger = configure_logging("DEBUG")
        configure_logging("WARNING")
        handlers = [h for h in logger.handlers if getattr(h, "_cutoff_intake", False)]
        self.assertEqual(logger.name, LOGGER_NAME)
        self.assertEqual(len(handlers), 1)
        self.assertEqual(logger.level, logging.WARNING)

    def test_unknown_level_falls_back_to_info(self):
        self.assertEqual(configure_logging("chatty").level, logging.INFO)


if __name__ == "__main__":
    unittest.main()
