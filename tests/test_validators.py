"""
Unit tests for header matching, type inference and field validators
"""

import unittest
from datetime import datetime

from csv_sensei.rules.schemas import DATE, NUMBER, STRING
from csv_sensei.utils.validators import (
    FORMAT_ERROR,
    FUTURE_DATE,
    NEGATIVE_VALUE,
    TYPE_MISMATCH,
    find_best_field_match,
    infer_data_types,
    parse_date,
    parse_number,
    validate_date,
    validate_number,
)


class TestHeaderMatcher(unittest.TestCase):
    """Schema field to CSV header matching"""

    def test_exact_match_ignores_case(self):
        self.assertEqual(find_best_field_match("Patient_ID", ["name", "patient_id"]), "patient_id")

    def test_token_match_with_space(self):
        self.assertEqual(find_best_field_match("Patient_ID", ["Patient ID"]), "Patient ID")

    def test_substring_token_match(self):
        self.assertEqual(find_best_field_match("Patient_ID", ["PatientIdentifier"]), "PatientIdentifier")

    def test_does_not_match_other_id_column(self):
        self.assertIsNone(find_best_field_match("Patient_ID", ["Doctor_ID"]))

    def test_substring_match(self):
        self.assertEqual(find_best_field_match("Total_Amount", ["Bill_No", "Amount"]), "Amount")

    def test_reordered_tokens(self):
        self.assertEqual(find_best_field_match("Bill_Date", ["date_of_bill"]), "date_of_bill")

    def test_exact_match_wins_over_earlier_substring(self):
        self.assertEqual(find_best_field_match("Amount", ["Total_Amount", "amount"]), "amount")

    def test_no_match(self):
        self.assertIsNone(find_best_field_match("License_Expiry", ["city", "population"]))


class TestTypeInference(unittest.TestCase):
    """Column type inference from sampled values"""

    def test_infers_number_date_and_string(self):
        rows = [
            {"age": "30", "seen": "2024-01-01", "name": "A"},
            {"age": "41.5", "seen": "01/02/2024", "name": "B"},
            {"age": "x", "seen": "2024-03-09", "name": "C"},
            {"age": "50", "seen": "3/4/2024", "name": "D"},
            {"age": "61", "seen": "09.05.2024", "name": "E"},
        ]
        types = infer_data_types(rows, ["age", "seen", "name"])
        self.assertEqual(types, {"age": NUMBER, "seen": DATE, "name": STRING})

    def test_empty_column_is_string(self):
        rows = [{"notes": ""}, {"notes": None}]
        self.assertEqual(infer_data_types(rows, ["notes"]), {"notes": STRING})

    def test_below_threshold_is_string(self):
        rows = [{"v": "1"}, {"v": "2"}, {"v": "a"}, {"v": "b"}]
        self.assertEqual(infer_data_types(rows, ["v"])["v"], STRING)

    def test_only_first_ten_values_are_sampled(self):
        rows = [{"v": str(i)} for i in range(10)] + [{"v": "text"} for _ in range(20)]
        self.assertEqual(infer_data_types(rows, ["v"])["v"], NUMBER)

    def test_leading_blanks_are_skipped(self):
        rows = [{"v": ""} for _ in range(12)] + [{"v": "5"}, {"v": "6"}]
        self.assertEqual(infer_data_types(rows, ["v"])["v"], NUMBER)


class TestParsing(unittest.TestCase):

    def test_parse_number_is_strict(self):
        self.assertEqual(parse_number(" 12.5 "), 12.5)
        self.assertEqual(parse_number(7), 7.0)
        self.assertIsNone(parse_number("12abc"))
        self.assertIsNone(parse_number(""))
        self.assertIsNone(parse_number("inf"))
        self.assertIsNone(parse_number(True))

    def test_parse_date_prefers_month_first(self):
        self.assertEqual(parse_date("03/04/2024"), datetime(2024, 3, 4))

    def test_parse_date_falls_back_to_day_first(self):
        self.assertEqual(parse_date("31/12/2024"), datetime(2024, 12, 31))

    def test_parse_date_european(self):
        self.assertEqual(parse_date("05.06.2023"), datetime(2023, 6, 5))

    def test_parse_date_rejects_garbage(self):
        self.assertIsNone(parse_date("not a date"))
        self.assertIsNone(parse_date("12345"))
        self.assertIsNone(parse_date(""))


class TestFieldValidators(unittest.TestCase):

    def test_valid_date_has_no_issue(self):
        self.assertIsNone(validate_date("2024-01-15", "Visit_Date", now=datetime(2025, 1, 1)))

    def test_empty_date_has_no_issue(self):
        self.assertIsNone(validate_date("  ", "Visit_Date"))

    def test_unknown_date_format(self):
        issue = validate_date("15 Jan", "Visit_Date")
        self.assertEqual(issue.kind, FORMAT_ERROR)
        self.assertEqual(issue.severity, "error")

    def test_impossible_date_is_format_error(self):
        issue = validate_date("2024-13-45", "Visit_Date")
        self.assertEqual(issue.kind, FORMAT_ERROR)
        self.assertIn("Invalid date value", issue.message)

    def test_future_date_is_warning(self):
        issue = validate_date("2030-01-01", "Visit_Date", now=datetime(2025, 1, 1))
        self.assertEqual(issue.kind, FUTURE_DATE)
        self.assertEqual(issue.severity, "warning")

    def test_number_checks(self):
        self.assertIsNone(validate_number("12.5", "Quantity"))
        self.assertIsNone(validate_number("", "Quantity"))
        self.assertIsNone(validate_number("-3", "Balance"))
        self.assertEqual(validate_number("abc", "Quantity").kind, TYPE_MISMATCH)
        self.assertEqual(validate_number("-5", "Quantity", allow_negative=False).kind, NEGATIVE_VALUE)

    def test_issue_position_and_dict(self):
        issue = validate_number("abc", "Quantity").at(3, "qty")
        self.assertEqual(issue.to_dict()["row"], 3)
        self.assertEqual(issue.to_dict()["column"], "qty")
        self.assertNotIn("row", validate_number("abc", "Quantity").to_dict())


if __name__ == "__main__":
    unittest.main()
