from __future__ import annotations

import unittest

from cutoff_intake.headers import EXPECTED_HEADERS
from cutoff_intake.rows import EMPTY, INVALID, VALID, classify_line, classify_lines

HEADERS = list(EXPECTED_HEADERS)
GOOD = '2025,1,Indian Institute of Technology Bombay,"CSE (4 Years, Bachelor of Technology)",AI,OPEN,Gender-Neutral,1,63'


class ClassifyLineTests(unittest.TestCase):
    def test_valid_row_is_mapped_by_header_name(self):
        outcome = classify_line(GOOD, HEADERS, 2)
        self.assertEqual(outcome.status, VALID)
        self.assertEqual(outcome.row["Couse"], "CSE (4 Years, Bachelor of Technology)")
        self.assertEqual(outcome.row["Closing Rank"], "63")

    def test_field_count_mismatch_is_invalid(self):
        outcome = classify_line("2025,1,IIT Bombay,CSE,AI,OPEN,Gender-Neutral", HEADERS, 7)
        self.assertEqual(outcome.status, INVALID)
        self.assertEqual(outcome.line_number, 7)
        self.assertEqual(outcome.reason, "expected 9 fields, found 7")
        self.assertIsNone(outcome.row)

    def test_all_blank_fields_are_empty(self):
        self.assertEqual(classify_line(",,,,,,,,", HEADERS, 3).status, EMPTY)
        self.assertEqual(classify_line(" , ,,\"\",,,,,", HEADERS, 3).status, EMPTY)

    def test_missing_required_field_is_invalid(self):
        outcome = classify_line("2025,1,IIT Bombay,,AI,OPEN,Gender-Neutral,1,", HEADERS, 4)
        self.assertEqual(outcome.status, INVALID)
        self.assertEqual(outcome.reason, "missing required field(s): Couse, Closing Rank")

    def test_optional_fields_may_be_blank(self):
        outcome = classify_line(",,IIT Bombay,CSE,,,,1,63", HEADERS, 2)
        self.assertEqual(outcome.status, VALID)


class RowReportTests(unittest.TestCase):
    def test_counts_invalid_lines_and_bounded_preview(self):
        lines = [(n, GOOD) for n in range(2, 10)]
        lines.insert(2, (50, "too,few"))
        lines.append((60, ",,,,,,,,"))
        report = classify_lines(lines, HEADERS, preview_limit=5)
        self.assertEqual(report.total_rows, 10)
        self.assertEqual(report.valid_rows, 8)
        self.assertEqual(report.empty_rows, 1)
        self.assertEqual(report.invalid_rows, [50])
        self.assertEqual(len(report.preview), 5)
        self.assertEqual(
            report.preview[0],
            {
                "college": "Indian Institute of Technology Bombay",
                "course": "CSE (4 Years, Bachelor of Technology)",
                "category": "OPEN",
                "opening_rank": "1",
                "closing_rank": "63",
            },
        )
        payload = report.to_dict()
        self.assertEqual(payload["invalid_row_count"], 1)
        self.assertEqual(payload["invalid_details"], [{"line": 50, "reason": "expected 9 fields, found 2"}])


if __name__ == "__main__":
    unittest.main()
