"""
Tests for the billing/doctor roster compliance rules
"""

import unittest
from datetime import datetime

from csv_sensei.rules.engine import (
    HIGH,
    LOW,
    MEDIUM,
    ComplianceEngine,
    Violation,
    risk_score,
    run_compliance,
)

NOW = datetime(2025, 6, 1)


def billing(**overrides):
    row = {
        "Patient_ID": "P1",
        "Visit_ID": "V1",
        "Age": "45",
        "Visit_Date": "2023-01-01",
        "Doctor_ID": "D1",
        "Procedure_Code": "OP100",
        "Total_Amount": "500",
        "Consent_Flag": "Y",
        "Payer_Type": "CASH",
    }
    row.update(overrides)
    return row


def doctor(**overrides):
    row = {
        "Doctor_ID": "D1",
        "Doctor_Name": "Dr. A",
        "Specialization": "General",
        "License_Expiry": "2030-01-01",
    }
    row.update(overrides)
    return row


class TestComplianceEngine(unittest.TestCase):
    """R1-R10 evaluation, risk score and summaries"""

    def setUp(self):
        self.engine = ComplianceEngine(now=NOW)

    def rules_for(self, billing_rows, roster_rows=None):
        result = self.engine.run(billing_rows, roster_rows if roster_rows is not None else [doctor()])
        return [(v.rule, v.row) for v in result.violations]

    def test_clean_rows_have_no_violations(self):
        result = run_compliance([billing()], [doctor()])
        self.assertEqual(result.violations, [])
        self.assertEqual(result.risk_score, 0)

    def test_unknown_doctor_is_single_r4(self):
        result = run_compliance([billing(Doctor_ID="D9")], [doctor()])
        self.assertEqual([(v.rule, v.severity) for v in result.violations], [("R4", HIGH)])
        self.assertEqual(result.risk_score, 3)

    def test_age_bounds(self):
        self.assertIn(("R2", 1), self.rules_for([billing(Age="-1")]))
        self.assertIn(("R2", 1), self.rules_for([billing(Age="121")]))
        self.assertIn(("R2", 1), self.rules_for([billing(Age="")]))
        self.assertEqual(self.rules_for([billing(Age="0"), billing(Age="120")]), [])

    def test_consent_required_for_op300(self):
        cardio = doctor(Specialization="Cardiology")
        for consent in ("N", ""):
            found = self.rules_for([billing(Procedure_Code="OP300", Consent_Flag=consent)], [cardio])
            self.assertEqual(found.count(("R8", 1)), 1)
        self.assertEqual(self.rules_for([billing(Procedure_Code="OP300", Consent_Flag="Y")], [cardio]), [])

    def test_consent_column_missing(self):
        row = billing(Procedure_Code="OP300")
        del row["Consent_Flag"]
        found = self.rules_for([row], [doctor(Specialization="Cardiology")])
        self.assertEqual(found.count(("R8", 1)), 1)
        self.assertIn(("R1", 0), found)

    def test_visit_patient_drift(self):
        found = self.rules_for([billing(), billing(Patient_ID="P2")])
        self.assertEqual(found, [("R1", 2)])

    def test_missing_patient_id(self):
        self.assertEqual(self.rules_for([billing(Patient_ID=" ")]), [("R1", 1)])

    def test_future_or_bad_visit_date(self):
        self.assertEqual(self.rules_for([billing(Visit_Date="2026-01-01")]), [("R3", 1)])
        self.assertEqual(self.rules_for([billing(Visit_Date="soon")]), [("R3", 1)])

    def test_expired_license(self):
        found = self.rules_for([billing()], [doctor(License_Expiry="2022-12-31")])
        self.assertEqual(found, [("R5", 1)])

    def test_invalid_procedure_skips_specialization(self):
        self.assertEqual(self.rules_for([billing(Procedure_Code="OP999")]), [("R6", 1)])

    def test_amount_range(self):
        self.assertEqual(self.rules_for([billing(Total_Amount="0")]), [("R7", 1)])
        self.assertEqual(self.rules_for([billing(Total_Amount="100001")]), [("R7", 1)])
        self.assertEqual(self.rules_for([billing(Total_Amount="100000")]), [])

    def test_amount_column_preferred(self):
        self.assertEqual(self.rules_for([billing(Amount="250", Total_Amount="0")]), [])

    def test_amount_reason_names_the_parsed_column(self):
        result = self.engine.run([billing(Amount="-5", Total_Amount="500")], [doctor()])
        self.assertEqual([v.reason for v in result.violations], ["Invalid Amount: -5"])
        result = self.engine.run([billing(Total_Amount="0")], [doctor()])
        self.assertEqual([v.reason for v in result.violations], ["Invalid Total_Amount: 0"])

    def test_specialization_mismatch_is_medium(self):
        result = self.engine.run([billing(Procedure_Code="OP200")], [doctor()])
        self.assertEqual([(v.rule, v.severity) for v in result.violations], [("R9", MEDIUM)])
        self.assertEqual(result.risk_score, 2)

    def test_payer_type_is_low(self):
        result = self.engine.run([billing(Payer_Type="card")], [doctor()])
        self.assertEqual([(v.rule, v.severity) for v in result.violations], [("R10", LOW)])
        self.assertEqual(result.risk_score, 1)

    def test_payer_type_case_insensitive(self):
        self.assertEqual(self.rules_for([billing(Payer_Type="insurance")]), [])

    def test_missing_columns_reported_at_row_zero(self):
        result = self.engine.run([{"Patient_ID": "P1"}], [{"Doctor_ID": "D1"}])
        header_violations = [v for v in result.violations if v.row == 0]
        self.assertTrue(any(v.dataset == "op_billing" and v.rule == "R1" for v in header_violations))
        self.assertEqual(
            sorted(v.reason for v in header_violations if v.dataset == "doctor_roster"),
            [
                "Missing required column: Doctor_Name",
                "Missing required column: License_Expiry",
                "Missing required column: Specialization",
            ],
        )

    def test_empty_inputs_do_not_raise(self):
        result = self.engine.run([], [])
        self.assertTrue(all(v.row == 0 for v in result.violations))
        self.assertEqual(result.analysis_view, [])

    def test_malformed_values_do_not_raise(self):
        row = billing(Age=None, Visit_Date=None, Total_Amount="abc", Payer_Type=None)
        result = self.engine.run([row, {}], [doctor(License_Expiry="never")])
        self.assertGreater(result.risk_score, 0)

    def test_deterministic(self):
        rows = [billing(), billing(Patient_ID="P2", Age="130"), billing(Doctor_ID="D9", Payer_Type="x")]
        first = self.engine.run(rows, [doctor()])
        second = self.engine.run(rows, [doctor()])
        self.assertEqual(first.violations, second.violations)
        self.assertEqual(first.risk_score, second.risk_score)

    def test_risk_score_matches_weights(self):
        rows = [billing(Doctor_ID="D9", Payer_Type="x"), billing(Visit_ID="V2", Procedure_Code="OP200")]
        result = self.engine.run(rows, [doctor()])
        expected = sum({HIGH: 3, MEDIUM: 2, LOW: 1}[v.severity] for v in result.violations)
        self.assertEqual(result.risk_score, expected)
        synthetic = [
            Violation("op_billing", 1, "R1", HIGH, "x"),
            Violation("op_billing", 1, "R9", MEDIUM, "x"),
            Violation("op_billing", 2, "R10", LOW, "x"),
        ]
        self.assertEqual(risk_score(synthetic), 6)

    def test_analysis_view_and_summaries(self):
        rows = [
            billing(),
            billing(Visit_ID="V2", Doctor_ID="D9", Doctor_Name="Dr. Row", Payer_Type="GOVT", Total_Amount="300"),
            billing(Visit_ID="V3", Doctor_ID="D8", Payer_Type="cash", Total_Amount="100"),
        ]
        out = self.engine.run(rows, [doctor()]).to_dict()
        view = out["analysisView"]
        self.assertEqual(view[0]["Doctor_Name"], "Dr. A")
        self.assertEqual(view[0]["_doctor"]["Doctor_ID"], "D1")
        self.assertEqual(view[1]["Doctor_Name"], "Dr. Row")
        self.assertIsNone(view[1]["_doctor"])
        self.assertEqual(view[2]["Doctor_Name"], "Doctor 3")
        summaries = out["summaries"]
        self.assertAlmostEqual(summaries["averageAmount"], 300.0)
        self.assertEqual(summaries["payerDistribution"], {"CASH": 2, "GOVT": 1})
        self.assertEqual(summaries["violationRanking"], [{"rule": "R4", "count": 2, "severity": HIGH}])


if __name__ == "__main__":
    unittest.main()
