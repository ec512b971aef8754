from __future__ import annotations

import unittest

from cutoff_intake.headers import EXPECTED_HEADERS, validate_headers


class HeaderValidationTests(unittest.TestCase):
    def test_exact_headers_in_any_order_match(self):
        result = validate_headers(list(reversed(EXPECTED_HEADERS)))
        self.assertFalse(result.header_mismatch)
        self.assertEqual(result.problems(), [])

    def test_missing_headers_keep_expected_order(self):
        headers = [name for name in EXPECTED_HEADERS if name not in {"Closing Rank", "Year"}]
        result = validate_headers(headers)
        self.assertTrue(result.header_mismatch)
        self.assertEqual(result.missing_headers, ["Year", "Closing Rank"])
        self.assertEqual(result.extra_headers, [])

    def test_extra_headers_keep_input_order(self):
        result = validate_headers(["Remarks", *EXPECTED_HEADERS, "Institute Id"])
        self.assertEqual(result.extra_headers, ["Remarks", "Institute Id"])
        self.assertTrue(result.header_mismatch)

    def test_corrected_spelling_is_not_accepted(self):
        headers = ["Course" if name == "Couse" else name for name in EXPECTED_HEADERS]
        result = validate_headers(headers)
        self.assertEqual(result.missing_headers, ["Couse"])
        self.assertEqual(result.extra_headers, ["Course"])
        self.assertEqual(result.problems(), ["Missing headers: Couse", "Extra headers: Course"])

    def test_to_dict(self):
        payload = validate_headers(["Year"]).to_dict()
        self.assertEqual(payload["headers"], ["Year"])
        self.assertTrue(payload["header_mismatch"])
        self.assertEqual(len(payload["missing_headers"]), 8)


if __name__ == "__main__":
    unittest.main()
