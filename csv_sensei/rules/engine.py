from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..utils.validators import is_empty, parse_date, parse_number

logger = logging.getLogger(__name__)

OP_BILLING = "op_billing"
DOCTOR_ROSTER = "doctor_roster"

HIGH = "HIGH"
MEDIUM = "MEDIUM"
LOW = "LOW"

SEVERITY_WEIGHT = {HIGH: 3, MEDIUM: 2, LOW: 1}

# Columns the rules read; checked once per dataset against the uploaded headers
REQUIRED_BILLING_COLUMNS = (
    "Patient_ID",
    "Visit_ID",
    "Age",
    "Visit_Date",
    "Doctor_ID",
    "Procedure_Code",
    "Consent_Flag",
    "Payer_Type",
)
BILLING_AMOUNT_COLUMNS = ("Amount", "Total_Amount")
REQUIRED_DOCTOR_COLUMNS = ("Doctor_ID", "Doctor_Name", "Specialization", "License_Expiry")

VALID_PROCEDURES = ("OP100", "OP200", "OP300")
PROCEDURE_SPECIALTY = {
    "OP100": "General",
    "OP200": "Orthopedics",
    "OP300": "Cardiology",
}
VALID_PAYERS = ("CASH", "INSURANCE", "GOVT")
MIN_AGE = 0
MAX_AGE = 120
MAX_AMOUNT = 100000


@dataclass(frozen=True)
class Violation:
    dataset: str
    row: int
    rule: str
    severity: str
    reason: str

    @property
    def weight(self) -> int:
        return SEVERITY_WEIGHT[self.severity]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dataset": self.dataset,
            "row": self.row,
            "rule": self.rule,
            "severity": self.severity,
            "reason": self.reason,
        }


@dataclass
class ComplianceResult:
    violations: List[Violation]
    risk_score: int
    analysis_view: List[Dict[str, Any]]
    average_amount: Optional[float]
    payer_distribution: Dict[str, int]
    violation_ranking: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        summaries: Dict[str, Any] = {
            "payerDistribution": dict(self.payer_distribution),
            "violationRanking": list(self.violation_ranking),
        }
        if self.average_amount is not None:
            summaries["averageAmount"] = self.average_amount
        return {
            "violations": [v.to_dict() for v in self.violations],
            "riskScore": self.risk_score,
            "analysisView": self.analysis_view,
            "summaries": summaries,
        }


def _text(value: Any) -> str:
    if is_empty(value):
        return ""
    return str(value).strip()


@dataclass
class BillingRecord:
    """One billing row with the values the rules read, parsed once."""

    row_num: int
    raw: Mapping[str, Any]
    patient_id: str
    visit_id: str
    age: Optional[float]
    visit_date: Optional[datetime]
    doctor_id: str
    procedure: str
    amount: Optional[float]
    consent: str
    payer_type: str
    doctor: Optional[Mapping[str, Any]] = None
    amount_column: str = "Total_Amount"
    raw_amount: Any = None

    @classmethod
    def from_row(cls, row_num: int, row: Mapping[str, Any], doctors: Mapping[str, Mapping[str, Any]]) -> "BillingRecord":
        doctor_id = _text(row.get("Doctor_ID"))
        amount_column = "Amount"
        raw_amount = row.get("Amount")
        if is_empty(raw_amount):
            amount_column = "Total_Amount"
            raw_amount = row.get("Total_Amount")
        return cls(
            row_num=row_num,
            raw=row,
            patient_id=_text(row.get("Patient_ID")),
            visit_id=_text(row.get("Visit_ID")),
            age=parse_number(row.get("Age")),
            visit_date=parse_date(row.get("Visit_Date")),
            doctor_id=doctor_id,
            procedure=_text(row.get("Procedure_Code")),
            amount=parse_number(raw_amount),
            consent=_text(row.get("Consent_Flag")).upper(),
            payer_type=_text(row.get("Payer_Type")).upper(),
            doctor=doctors.get(doctor_id) if doctor_id else None,
            amount_column=amount_column,
            raw_amount=raw_amount,
        )


@dataclass
class ComplianceContext:
    now: datetime
    visit_to_patient: Dict[str, str] = field(default_factory=dict)


class BaseRule:
    rule_id: str = "R0"
    severity: str = HIGH

    def apply(self, record: BillingRecord, ctx: ComplianceContext) -> List[Violation]:
        raise NotImplementedError

    def violation(self, record: BillingRecord, reason: str) -> Violation:
        return Violation(dataset=OP_BILLING, row=record.row_num, rule=self.rule_id, severity=self.severity, reason=reason)


class PatientIdentityRule(BaseRule):
    rule_id = "R1"

    def apply(self, record: BillingRecord, ctx: ComplianceContext) -> List[Violation]:
        if not record.patient_id:
            return [self.violation(record, "Patient_ID is missing")]
        if not record.visit_id:
            return []
        existing = ctx.visit_to_patient.setdefault(record.visit_id, record.patient_id)
        if existing != record.patient_id:
            return [self.violation(
                record,
                f"Patient_ID must be unique per Visit_ID. Found {record.patient_id} but expected {existing}",
            )]
        return []


class AgeRangeRule(BaseRule):
    rule_id = "R2"

    def apply(self, record: BillingRecord, ctx: ComplianceContext) -> List[Violation]:
        if record.age is None or not (MIN_AGE <= record.age <= MAX_AGE):
            return [self.violation(record, f"Invalid Age: {record.raw.get('Age')}")]
        return []


class VisitDateRule(BaseRule):
    rule_id = "R3"

    def apply(self, record: BillingRecord, ctx: ComplianceContext) -> List[Violation]:
        if record.visit_date is None or record.visit_date > ctx.now:
            return [self.violation(record, f"Visit_Date invalid or in future: {record.raw.get('Visit_Date')}")]
        return []


class DoctorExistsRule(BaseRule):
    rule_id = "R4"

    def apply(self, record: BillingRecord, ctx: ComplianceContext) -> List[Violation]:
        if record.doctor is None:
            return [self.violation(record, f"Doctor_ID not found in roster: {record.doctor_id or 'N/A'}")]
        return []


class LicenseValidityRule(BaseRule):
    rule_id = "R5"

    def apply(self, record: BillingRecord, ctx: ComplianceContext) -> List[Violation]:
        # Only evaluated when both the doctor and the visit date resolve
        if record.doctor is None or record.visit_date is None:
            return []
        expiry = parse_date(record.doctor.get("License_Expiry"))
        if expiry is None or expiry < record.visit_date:
            return [self.violation(
                record,
                f"License expired before visit: License_Expiry={record.doctor.get('License_Expiry')}, "
                f"Visit_Date={record.raw.get('Visit_Date')}",
            )]
        return []


class ProcedureCodeRule(BaseRule):
    rule_id = "R6"

    def apply(self, record: BillingRecord, ctx: ComplianceContext) -> List[Violation]:
        if record.procedure not in VALID_PROCEDURES:
            return [self.violation(record, f"Invalid Procedure_Code: {record.procedure or 'N/A'}")]
        return []


class AmountRangeRule(BaseRule):
    rule_id = "R7"

    def apply(self, record: BillingRecord, ctx: ComplianceContext) -> List[Violation]:
        if record.amount is None or not (0 < record.amount <= MAX_AMOUNT):
            return [self.violation(record, f"Invalid {record.amount_column}: {record.raw_amount}")]
        return []


class ConsentRule(BaseRule):
    rule_id = "R8"

    def apply(self, record: BillingRecord, ctx: ComplianceContext) -> List[Violation]:
        if record.procedure == "OP300" and record.consent != "Y":
            return [self.violation(record, "Consent_Flag must be Y for OP300")]
        return []


class SpecializationRule(BaseRule):
    rule_id = "R9"
    severity = MEDIUM

    def apply(self, record: BillingRecord, ctx: ComplianceContext) -> List[Violation]:
        expected = PROCEDURE_SPECIALTY.get(record.procedure)
        if record.doctor is None or expected is None:
            return []
        specialty = _text(record.doctor.get("Specialization"))
        if specialty != expected:
            return [self.violation(record, f"Specialization mismatch. Expected {expected}, got {specialty or 'N/A'}")]
        return []


class PayerTypeRule(BaseRule):
    rule_id = "R10"
    severity = LOW

    def apply(self, record: BillingRecord, ctx: ComplianceContext) -> List[Violation]:
        if record.payer_type not in VALID_PAYERS:
            return [self.violation(record, f"Invalid Payer_Type: {record.raw.get('Payer_Type')}")]
        return []


def missing_header_violations(billing_rows: Sequence[Mapping[str, Any]], roster_rows: Sequence[Mapping[str, Any]]) -> List[Violation]:
    violations: List[Violation] = []
    billing_headers = set(billing_rows[0].keys()) if billing_rows else set()
    for col in REQUIRED_BILLING_COLUMNS:
        if col not in billing_headers:
            violations.append(Violation(OP_BILLING, 0, "R1", HIGH, f"Missing required column: {col}"))
    if not billing_headers.intersection(BILLING_AMOUNT_COLUMNS):
        violations.append(Violation(OP_BILLING, 0, "R1", HIGH, "Missing required column: Total_Amount"))

    roster_headers = set(roster_rows[0].keys()) if roster_rows else set()
    for col in REQUIRED_DOCTOR_COLUMNS:
        if col not in roster_headers:
            violations.append(Violation(DOCTOR_ROSTER, 0, "R4", HIGH, f"Missing required column: {col}"))
    return violations


def risk_score(violations: Sequence[Violation]) -> int:
    return sum(v.weight for v in violations)


def violation_ranking(violations: Sequence[Violation]) -> List[Dict[str, Any]]:
    ranking: Dict[str, Dict[str, Any]] = {}
    for v in violations:
        entry = ranking.setdefault(v.rule, {"rule": v.rule, "count": 0, "severity": v.severity})
        entry["count"] += 1
    # stable sort keeps first-seen order for ties
    return sorted(ranking.values(), key=lambda e: e["count"], reverse=True)


class ComplianceEngine:
    """Deterministic R1-R10 rule engine joining billing rows to the doctor roster."""

    def __init__(self, now: Optional[datetime] = None) -> None:
        self.now = now
        # Deterministic order R1..R10
        self.rules: List[BaseRule] = [
            PatientIdentityRule(),
            AgeRangeRule(),
            VisitDateRule(),
            DoctorExistsRule(),
            LicenseValidityRule(),
            ProcedureCodeRule(),
            AmountRangeRule(),
            ConsentRule(),
            SpecializationRule(),
            PayerTypeRule(),
        ]

    def run(self, billing_rows: Sequence[Mapping[str, Any]], roster_rows: Sequence[Mapping[str, Any]]) -> ComplianceResult:
        billing_rows = list(billing_rows or [])
        roster_rows = list(roster_rows or [])
        violations = missing_header_violations(billing_rows, roster_rows)

        doctors: Dict[str, Mapping[str, Any]] = {}
        for doc in roster_rows:
            doc_id = _text(doc.get("Doctor_ID")) if doc else ""
            if doc_id:
                doctors[doc_id] = doc

        ctx = ComplianceContext(now=self.now or datetime.now())
        analysis_view: List[Dict[str, Any]] = []
        payer_distribution: Dict[str, int] = {}
        amount_sum = 0.0
        amount_count = 0

        for row_num, row in enumerate(billing_rows, start=1):
            record = BillingRecord.from_row(row_num, row or {}, doctors)
            for rule in self.rules:
                violations.extend(rule.apply(record, ctx))

            if record.amount is not None:
                amount_sum += record.amount
                amount_count += 1
            if record.payer_type:
                payer_distribution[record.payer_type] = payer_distribution.get(record.payer_type, 0) + 1

            analysis_view.append({
                **record.raw,
                "_doctor": dict(record.doctor) if record.doctor is not None else None,
                "Doctor_Name": self._display_name(record),
            })

        score = risk_score(violations)
        logger.info(
            "compliance: %d billing rows, %d doctors, %d violations, risk score %d",
            len(billing_rows),
            len(doctors),
            len(violations),
            score,
        )
        return ComplianceResult(
            violations=violations,
            risk_score=score,
            analysis_view=analysis_view,
            average_amount=amount_sum / amount_count if amount_count else None,
            payer_distribution=payer_distribution,
            violation_ranking=violation_ranking(violations),
        )

    @staticmethod
    def _display_name(record: BillingRecord) -> str:
        if record.doctor is not None and _text(record.doctor.get("Doctor_Name")):
            return _text(record.doctor.get("Doctor_Name"))
        if _text(record.raw.get("Doctor_Name")):
            return _text(record.raw.get("Doctor_Name"))
        return f"Doctor {record.row_num}"


def run_compliance(billing_rows: Sequence[Mapping[str, Any]], roster_rows: Sequence[Mapping[str, Any]]) -> ComplianceResult:
    return ComplianceEngine().run(billing_rows, roster_rows)
