"""
Tests for the layered schema validation engine
"""

import unittest
from datetime import datetime

from csv_sensei.pipeline.engine import (
    ALL_PURPOSE,
    DYNAMIC,
    INDUSTRY,
    ValidationEngine,
    data_quality_score,
    map_headers,
    validate,
)
from csv_sensei.rules.schemas import OP_BILLING_SCHEMA, build_all_purpose_schema
from csv_sensei.utils.validators import EMPTY_VALUE, EXTRA_FIELD, FORMAT_ERROR, FUTURE_DATE, MISSING_FIELD, TYPE_MISMATCH

NOW = datetime(2025, 1, 1)


def roster_row(**overrides):
    row = {
        "Doctor_ID": "D1",
        "Doctor_Name": "Dr. A",
        "Specialty": "General",
        "License_No": "LIC-1",
        "License_Expiry": "2024-12-31",
        "Shift_Start": "09:00",
        "Shift_End": "17:00",
    }
    row.update(overrides)
    return row


def billing_row(**overrides):
    row = {
        "Bill_ID": "B1",
        "Bill_Date": "2024-01-05",
        "Patient_ID": "P1",
        "Patient_Name": "Asha",
        "Doctor_ID": "D1",
        "Doctor_Name": "Dr. A",
        "Department": "OPD",
        "Service_Code": "OP100",
        "Service_Description": "Consultation",
        "Quantity": "1",
        "Unit_Price": "500",
        "Total_Amount": "500",
        "Payment_Status": "Paid",
    }
    row.update(overrides)
    return row


class TestValidationEngine(unittest.TestCase):
    """Industry, dynamic and all-purpose layers"""

    def setUp(self):
        self.engine = ValidationEngine(now=NOW)

    def test_empty_input(self):
        result = self.engine.validate([], "opbilling")
        self.assertFalse(result.is_valid)
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0].kind, FORMAT_ERROR)
        self.assertEqual(result.summary.data_quality_score, 0.0)

    def test_valid_roster_stays_on_industry_layer(self):
        result = self.engine.validate([roster_row(), roster_row(Doctor_ID="D2")], "doctor_roster")
        self.assertTrue(result.is_valid)
        self.assertEqual(result.fallback_level, INDUSTRY)
        self.assertEqual(result.summary.schema_used, "Doctor_roster")
        self.assertEqual(result.warnings, [])
        self.assertEqual(result.summary.data_quality_score, 100)
        self.assertEqual(result.summary.valid_rows, 2)

    def test_valid_billing_stays_on_industry_layer(self):
        result = self.engine.validate([billing_row(), billing_row(Bill_ID="B2")], "OPBilling")
        self.assertTrue(result.is_valid)
        self.assertEqual(result.fallback_level, INDUSTRY)
        self.assertEqual(result.summary.schema_used, "Opbilling")

    def test_future_date_warns_without_invalidating(self):
        result = self.engine.validate([roster_row(License_Expiry="2026-06-30")], "doctor_roster")
        self.assertTrue(result.is_valid)
        self.assertEqual([w.kind for w in result.warnings], [FUTURE_DATE])

    def test_few_errors_keep_industry_result(self):
        result = self.engine.validate([billing_row(Quantity="abc")], "opbilling")
        self.assertFalse(result.is_valid)
        self.assertEqual(result.fallback_level, INDUSTRY)
        self.assertEqual([e.kind for e in result.errors], [TYPE_MISMATCH])
        self.assertEqual(result.errors[0].row, 1)
        self.assertEqual(result.errors[0].column, "Quantity")
        self.assertEqual(result.summary.error_rows, 1)

    def test_empty_required_value(self):
        result = self.engine.validate([billing_row(Patient_Name="")], "opbilling")
        self.assertEqual([e.kind for e in result.errors], [EMPTY_VALUE])

    def test_negative_amount_rejected(self):
        result = self.engine.validate([billing_row(Total_Amount="-10")], "opbilling")
        self.assertFalse(result.is_valid)
        self.assertEqual(result.errors[0].field, "Total_Amount")

    def test_unknown_shape_escalates_to_dynamic(self):
        rows = [
            {"city": "Pune", "population": "1000", "founded": "1900-01-01"},
            {"city": "Goa", "population": "2000", "founded": "1910-05-01"},
        ]
        result = self.engine.validate(rows, "opbilling")
        self.assertTrue(result.is_valid)
        self.assertEqual(result.fallback_level, DYNAMIC)
        self.assertEqual(result.summary.schema_used, "Dynamic Schema")

    def test_dynamic_failure_escalates_to_all_purpose(self):
        # first 10 values infer as number, the remaining 8 then fail the dynamic schema
        rows = [{"value": str(i)} for i in range(10)] + [{"value": "abc"} for _ in range(8)]
        result = self.engine.validate(rows, "doctor_roster")
        self.assertTrue(result.is_valid)
        self.assertEqual(result.fallback_level, ALL_PURPOSE)
        self.assertEqual(result.summary.schema_used, "All-Purpose Schema")
        self.assertEqual(result.errors, [])

    def test_layer_one_reports_missing_fields(self):
        rows = [{"value": "1"}]
        layer_one = self.engine.run_validation(rows, OP_BILLING_SCHEMA, INDUSTRY)
        missing = [e for e in layer_one.errors if e.kind == MISSING_FIELD]
        self.assertEqual(len(missing), len(OP_BILLING_SCHEMA.required_fields))
        self.assertEqual([w.kind for w in layer_one.warnings], [EXTRA_FIELD])
        self.assertGreater(layer_one.structural_error_count, 0)

    def test_others_uses_generic_schema(self):
        result = validate([{"a": "1", "b": "x"}], "others")
        self.assertTrue(result.is_valid)
        self.assertEqual(result.fallback_level, INDUSTRY)
        self.assertEqual(result.summary.schema_used, "Generic")

    def test_extra_column_not_claimed_by_optional_field(self):
        result = self.engine.validate([billing_row(Message="hello")], "opbilling")
        self.assertTrue(result.is_valid)
        self.assertEqual(result.fallback_level, INDUSTRY)
        self.assertEqual([(w.kind, w.field) for w in result.warnings], [(EXTRA_FIELD, "Message")])

        result = self.engine.validate([roster_row(Last_Updated_By="admin")], "doctor_roster")
        self.assertTrue(result.is_valid)
        self.assertEqual([(w.kind, w.field) for w in result.warnings], [(EXTRA_FIELD, "Last_Updated_By")])

    def test_exact_optional_column_is_type_checked(self):
        result = self.engine.validate([billing_row(Age="abc")], "opbilling")
        self.assertFalse(result.is_valid)
        self.assertEqual([(e.kind, e.field) for e in result.errors], [(TYPE_MISMATCH, "Age")])

    def test_result_dict_uses_camel_case(self):
        out = self.engine.validate([roster_row()], "doctor_roster").to_dict()
        self.assertEqual(out["fallbackLevel"], "industry")
        self.assertIn("dataQualityScore", out["summary"])
        self.assertEqual(len(out["insights"]), 6)


class TestEscalationThreshold(unittest.TestCase):
    """Layer 1 escalates only when structural errors exceed ratio x header count"""

    def rows(self, bad):
        # 14 headers: 13 required billing fields plus one extra column
        rows = [billing_row(Bill_ID=f"B{i}", Ward="W1") for i in range(10)]
        for row in rows[:bad]:
            row["Quantity"] = "abc"
        return rows

    def test_errors_at_threshold_keep_industry_result(self):
        result = ValidationEngine(now=NOW).validate(self.rows(7), "opbilling")
        self.assertFalse(result.is_valid)
        self.assertEqual(result.fallback_level, INDUSTRY)
        self.assertEqual(result.structural_error_count, 7)

    def test_one_error_over_threshold_escalates(self):
        result = ValidationEngine(now=NOW).validate(self.rows(8), "opbilling")
        self.assertEqual(result.fallback_level, DYNAMIC)

    def test_ratio_is_configurable(self):
        self.assertEqual(ValidationEngine(escalation_ratio=0.1, now=NOW).validate(self.rows(3), "opbilling").fallback_level, DYNAMIC)
        self.assertEqual(ValidationEngine(escalation_ratio=1.0, now=NOW).validate(self.rows(8), "opbilling").fallback_level, INDUSTRY)


class TestHeaderMapping(unittest.TestCase):

    def test_exact_headers_claimed_before_fuzzy_matches(self):
        mapped = map_headers(OP_BILLING_SCHEMA, ["Visit_Date", "Bill_Date"])
        self.assertEqual(mapped["Bill_Date"], "Bill_Date")
        self.assertEqual(mapped["Visit_Date"], "Visit_Date")

    def test_all_purpose_maps_every_header(self):
        self.assertEqual(map_headers(build_all_purpose_schema(), ["x", "y"]), {"x": "x", "y": "y"})


class TestQualityScore(unittest.TestCase):

    def test_score_formula(self):
        self.assertEqual(data_quality_score(1, 2, 10), 91)

    def test_score_is_clamped(self):
        self.assertEqual(data_quality_score(100, 0, 0), 0)


if __name__ == "__main__":
    unittest.main()
