from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from cutoff_intake.errors import ParseError
from cutoff_intake.loader import decode_csv_bytes, detect_encoding, load_csv_text

HEADER = "Year,Round,College,Couse,Quota,Seat Type,Gender,Opening Rank,Closing Rank"


class DecodeTests(unittest.TestCase):
    def test_utf8_with_bom(self):
        self.assertEqual(decode_csv_bytes(("\ufeff" + HEADER).encode("utf-8")), HEADER)

    def test_nul_bytes_are_removed(self):
        self.assertEqual(decode_csv_bytes(b"a,\x00b"), "a,b")

    def test_non_utf8_uses_confident_detection(self):
        raw = "Université,Zürich".encode("latin-1")
        with mock.patch(
            "cutoff_intake.loader.chardet.detect",
            return_value={"encoding": "ISO-8859-1", "confidence": 0.73},
        ):
            self.assertEqual(decode_csv_bytes(raw), "Université,Zürich")

    def test_low_confidence_detection_raises(self):
        raw = "Université".encode("latin-1")
        with mock.patch(
            "cutoff_intake.loader.chardet.detect",
            return_value={"encoding": "ISO-8859-1", "confidence": 0.2},
        ):
            with self.assertRaises(ParseError) as ctx:
                decode_csv_bytes(raw)
        self.assertIn("confidence 0.2", str(ctx.exception))

    def test_threshold_can_be_overridden(self):
        raw = "Université".encode("latin-1")
        with mock.patch(
            "cutoff_intake.loader.chardet.detect",
            return_value={"encoding": "ISO-8859-1", "confidence": 0.2},
        ):
            self.assertEqual(decode_csv_bytes(raw, min_confidence=0.1), "Université")

    def test_unknown_codec_raises(self):
        with mock.patch(
            "cutoff_intake.loader.chardet.detect",
            return_value={"encoding": "not-a-codec", "confidence": 0.99},
        ):
            with self.assertRaises(ParseError):
                decode_csv_bytes(b"\xff\xfe\xfa")

    def test_detect_encoding_flags_utf8(self):
        with mock.patch(
            "cutoff_intake.loader.chardet.detect",
            return_value={"encoding": "utf-8", "confidence": 0.99},
        ):
            info = detect_encoding(b"abc")
        self.assertEqual(info, {"detected": "utf-8", "confidence": 0.99, "is_utf8": True})


class LoadFileTests(unittest.TestCase):
    def test_reads_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "cutoffs.csv"
            path.write_bytes((HEADER + "\r\n").encode("utf-8"))
            self.assertEqual(load_csv_text(path), HEADER + "\r\n")

    def test_missing_file_raises_parse_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ParseError):
                load_csv_text(Path(tmpdir) / "nope.csv")


if __name__ == "__main__":
    unittest.main()
