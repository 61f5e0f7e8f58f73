from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..utils.validators import is_empty, parse_date, parse_number

AMOUNT_FIELDS = ["Amount", "Total_Amount", "TotalAmount", "Amount_Billed", "Bill_Amount", "Gross_Amount"]
PAYER_FIELDS = ["Payer_Type", "Payer", "PayerType"]
DOCTOR_ID_FIELDS = ["Doctor_ID", "doctor_id", "DoctorId", "ID", "id"]
DOCTOR_NAME_FIELDS = ["Doctor_Name", "doctor_name", "DoctorName", "Name", "name"]
PATIENT_ID_FIELDS = ["Patient_ID", "patient_id", "PatientId"]
PATIENT_NAME_FIELDS = ["Patient_Name", "patient_name", "PatientName", "Name", "name"]
PROCEDURE_FIELDS = ["Procedure_Code", "Service_Code", "Procedure", "Proc_Code"]
AGE_FIELDS = ["Age", "age", "Patient_Age", "patient_age"]
PAYMENT_STATUS_FIELDS = ["Payment_Status", "PaymentStatus", "Status", "Payment_Status_Desc"]
CONSENT_FIELDS = ["Consent_Flag", "consent_flag", "Consent", "consent"]
DATE_FIELDS = ["Bill_Date", "Visit_Date", "Date", "Transaction_Date"]

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}
CATEGORY_ORDER = {"revenue": 4, "performance": 3, "compliance": 2, "data_quality": 1, "anomaly": 0}

AGE_GROUPS = (("0-18", 18), ("19-35", 35), ("36-50", 50), ("51-65", 65), ("65+", math.inf))

_AMOUNT_STRIP_RE = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass
class Insight:
    id: str
    title: str
    description: str
    category: str
    priority: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def get_field_value(row: Mapping[str, Any], possible_names: Sequence[str], fallback: Any = None) -> Any:
    """First non-empty value among ``possible_names``, else ``fallback``."""
    for name in possible_names:
        value = row.get(name)
        if value is not None and value != "":
            return value
    return fallback


def parse_amount(value: Any) -> float:
    """Lenient money parse: drops separators and currency symbols, 0 when unreadable."""
    if value is None or value == "" or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    cleaned = _AMOUNT_STRIP_RE.sub("", re.sub(r"[,\s]", "", str(value)))
    m = _LEADING_NUMBER_RE.match(cleaned)
    if not m:
        return 0.0
    n = float(m.group(0))
    return n if math.isfinite(n) else 0.0


def _money(value: float) -> str:
    return f"₹{value:,.2f}"


def _age_group(age: float) -> str:
    for label, upper in AGE_GROUPS:
        if age <= upper:
            return label
    return AGE_GROUPS[-1][0]


def _top(totals: Mapping[str, float]) -> Optional[tuple]:
    if not totals:
        return None
    return sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[0]


def generate_insights(billing_data: Sequence[Mapping[str, Any]], doctor_roster_data: Sequence[Mapping[str, Any]] = ()) -> List[Insight]:
    insights: List[Insight] = []
    if not billing_data:
        return insights

    rows = [row or {} for row in billing_data]
    total_records = len(rows)
    amounts = [parse_amount(get_field_value(r, AMOUNT_FIELDS)) for r in rows]
    total_revenue = sum(amounts)

    insights.append(Insight(
        id="data_volume",
        title="Data Volume Analysis",
        description=f"Successfully processed {total_records} billing records with total revenue of {_money(total_revenue)}",
        category="data_quality",
        priority="high",
    ))

    revenue_by_payer: Dict[str, float] = {}
    for row, amount in zip(rows, amounts):
        payer = str(get_field_value(row, PAYER_FIELDS, "Unknown"))
        revenue_by_payer[payer] = revenue_by_payer.get(payer, 0.0) + amount
    top_payer = _top(revenue_by_payer)
    if top_payer:
        share = (top_payer[1] / total_revenue * 100) if total_revenue else 0.0
        insights.append(Insight(
            id="top_payer",
            title="Top Revenue Source",
            description=f"{top_payer[0]} generates the highest revenue at {_money(top_payer[1])} ({share:.1f}% of total)",
            category="revenue",
            priority="high",
        ))

    doctor_stats: Dict[str, Dict[str, Any]] = {}
    for row, amount in zip(rows, amounts):
        doctor_id = get_field_value(row, DOCTOR_ID_FIELDS)
        if doctor_id is None:
            continue
        key = str(doctor_id)
        stats = doctor_stats.setdefault(key, {
            "name": str(get_field_value(row, DOCTOR_NAME_FIELDS, f"Doctor {doctor_id}")),
            "revenue": 0.0,
            "visits": 0,
            "patients": set(),
        })
        stats["revenue"] += amount
        stats["visits"] += 1
        patient_id = get_field_value(row, PATIENT_ID_FIELDS)
        if patient_id is not None:
            stats["patients"].add(patient_id)
    if doctor_stats:
        top_doctor = sorted(doctor_stats.values(), key=lambda s: s["revenue"], reverse=True)[0]
        insights.append(Insight(
            id="top_doctor",
            title="Top Performing Doctor",
            description=f"{top_doctor['name']} leads with {_money(top_doctor['revenue'])} revenue from {top_doctor['visits']} visits",
            category="performance",
            priority="high",
        ))

    procedure_revenue: Dict[str, float] = {}
    procedure_count: Dict[str, int] = {}
    for row, amount in zip(rows, amounts):
        procedure = str(get_field_value(row, PROCEDURE_FIELDS, "Unknown"))
        procedure_revenue[procedure] = procedure_revenue.get(procedure, 0.0) + amount
        procedure_count[procedure] = procedure_count.get(procedure, 0) + 1
    top_procedure = _top(procedure_revenue)
    if top_procedure:
        insights.append(Insight(
            id="top_procedure",
            title="Most Profitable Procedure",
            description=f"{top_procedure[0]} generates {_money(top_procedure[1])} from {procedure_count[top_procedure[0]]} procedures",
            category="revenue",
            priority="medium",
        ))

    age_groups = {label: 0 for label, _ in AGE_GROUPS}
    for row in rows:
        age = parse_number(get_field_value(row, AGE_FIELDS))
        if age is not None:
            age_groups[_age_group(age)] += 1
    dominant = sorted(age_groups.items(), key=lambda kv: kv[1], reverse=True)[0]
    if dominant[1] > 0:
        insights.append(Insight(
            id="age_distribution",
            title="Patient Demographics",
            description=f"{dominant[0]} age group represents the largest patient segment with {dominant[1]} patients",
            category="data_quality",
            priority="medium",
        ))

    status_counts: Dict[str, int] = {}
    for row in rows:
        status = str(get_field_value(row, PAYMENT_STATUS_FIELDS, "Unknown"))
        status_counts[status] = status_counts.get(status, 0) + 1
    paid = status_counts.get("Paid", 0)
    pending = status_counts.get("Pending") or status_counts.get("Outstanding", 0)
    payment_rate = paid / total_records * 100
    if payment_rate > 0:
        insights.append(Insight(
            id="payment_rate",
            title="Payment Performance",
            description=f"{payment_rate:.1f}% payment completion rate with {paid} paid and {pending} pending bills",
            category="performance",
            priority="high",
        ))

    consent_values = [get_field_value(row, CONSENT_FIELDS) for row in rows]
    consent_values = [v for v in consent_values if v is not None]
    consent_yes = sum(1 for v in consent_values if v == "Y")
    if consent_yes:
        consent_rate = consent_yes / len(consent_values) * 100
        insights.append(Insight(
            id="consent_rate",
            title="Consent Compliance",
            description=f"{consent_rate:.1f}% consent rate with {consent_yes} out of {len(consent_values)} records having consent",
            category="compliance",
            priority="high",
        ))

    missing_names = sum(1 for row in rows if is_empty(get_field_value(row, PATIENT_NAME_FIELDS)))
    if missing_names:
        insights.append(Insight(
            id="data_quality",
            title="Data Quality Alert",
            description=f"{missing_names} records are missing patient names, affecting data completeness",
            category="data_quality",
            priority="medium",
        ))

    dates = [parse_date(get_field_value(row, DATE_FIELDS)) for row in rows]
    dates = [d for d in dates if d is not None]
    if dates:
        first, last = min(dates), max(dates)
        days = math.ceil((last - first).total_seconds() / 86400)
        insights.append(Insight(
            id="date_range",
            title="Data Coverage",
            description=f"Data spans {days} days from {first.date().isoformat()} to {last.date().isoformat()}",
            category="data_quality",
            priority="low",
        ))

    if doctor_roster_data:
        active = len({get_field_value(row, DOCTOR_ID_FIELDS) for row in rows})
        roster_size = len(doctor_roster_data)
        utilization = active / roster_size * 100
        insights.append(Insight(
            id="doctor_utilization",
            title="Doctor Utilization",
            description=f"{active} out of {roster_size} doctors are active ({utilization:.1f}% utilization rate)",
            category="performance",
            priority="medium",
        ))

    # Stable: equal priority and category keep generation order
    insights.sort(key=lambda i: (-PRIORITY_ORDER[i.priority], -CATEGORY_ORDER[i.category]))
    return insights
