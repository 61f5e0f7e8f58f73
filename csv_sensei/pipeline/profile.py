"""Descriptive profile of an uploaded dataset and simple keyword queries over it."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from ..utils.validators import is_empty, match_date_format, parse_number
from .insights import parse_amount

NUMERIC_RATIO = 0.8
PROFILE_SAMPLE_SIZE = 10

DASHBOARD_LABELS = {
    "billing": "billing data",
    "compliance": "compliance data",
    "doctor-roster": "doctor roster data",
}

# dashboard -> (insight prefix, field-name keywords)
DASHBOARD_FIELD_HINTS = {
    "billing": ("Financial data includes", ("amount", "revenue", "total")),
    "compliance": ("Compliance tracking includes", ("violation", "compliance", "audit")),
    "doctor-roster": ("Staff information includes", ("doctor", "staff", "name")),
}

AMOUNT_KEYWORDS = ("amount", "revenue", "total")


def _fields(rows: Sequence[Mapping[str, Any]]) -> List[str]:
    return list(rows[0].keys()) if rows else []


def _frame(rows: Sequence[Mapping[str, Any]], fields: Sequence[str]) -> pd.DataFrame:
    """Stripped string cells; None, NaN and missing keys become ''."""
    frame = pd.DataFrame(list(rows), columns=list(fields), dtype=object).fillna("")
    for col in frame.columns:
        frame[col] = frame[col].astype(str).str.strip()
    return frame


def calculate_completeness(rows: Sequence[Mapping[str, Any]]) -> int:
    """Rounded percentage of non-empty cells over the first row's columns."""
    fields = _fields(rows)
    total_cells = len(rows) * len(fields)
    if not total_cells:
        return 0
    empty = int((_frame(rows, fields) == "").sum().sum())
    return round((total_cells - empty) / total_cells * 100)


def infer_profile_types(rows: Sequence[Mapping[str, Any]]) -> Dict[str, str]:
    types: Dict[str, str] = {}
    for f in _fields(rows):
        values = [row.get(f) for row in rows[:PROFILE_SAMPLE_SIZE]]
        values = [v for v in values if not is_empty(v)]
        if not values:
            types[f] = "unknown"
        elif sum(1 for v in values if parse_number(v) is not None) > len(values) * NUMERIC_RATIO:
            types[f] = "numeric"
        elif sum(1 for v in values if match_date_format(str(v).strip())) > len(values) * NUMERIC_RATIO:
            types[f] = "date"
        else:
            types[f] = "text"
    return types


def calculate_statistics(rows: Sequence[Mapping[str, Any]], fields: Sequence[str]) -> Dict[str, Dict[str, Any]]:
    stats: Dict[str, Dict[str, Any]] = {}
    frame = _frame(rows, fields)
    for f in fields:
        values = frame[f][frame[f] != ""]
        if values.empty:
            stats[f] = {"type": "empty", "count": 0}
            continue

        nums = pd.to_numeric(values, errors="coerce")
        nums = nums[nums.abs() != float("inf")].dropna()
        if len(nums) > len(values) * NUMERIC_RATIO:
            stats[f] = {
                "type": "numeric",
                "count": len(values),
                "min": float(nums.min()),
                "max": float(nums.max()),
                "avg": float(nums.mean()),
                "sum": float(nums.sum()),
            }
        else:
            counts = values.value_counts()
            stats[f] = {
                "type": "categorical",
                "count": len(values),
                "uniqueCount": int(values.nunique()),
                "topValues": [[value, int(n)] for value, n in counts.head(5).items()],
            }
    return stats


def _summary(rows: Sequence[Mapping[str, Any]], fields: Sequence[str], dashboard: Optional[str], completeness: int) -> str:
    summary = f"Dataset contains {len(rows)} records with {len(fields)} fields. "
    if dashboard:
        label = DASHBOARD_LABELS.get(dashboard, "business data")
        summary += f"This is {label} with fields like {', '.join(fields[:5])}. "
    summary += f"Data completeness is {completeness}%. "
    return summary


def _insights(rows: Sequence[Mapping[str, Any]], fields: Sequence[str], dashboard: Optional[str], completeness: int) -> List[str]:
    out = [
        f"Dataset contains {len(rows)} records",
        f"Data has {len(fields)} columns: {', '.join(fields)}",
    ]
    hint = DASHBOARD_FIELD_HINTS.get(dashboard or "")
    if hint:
        prefix, keywords = hint
        matched = [f for f in fields if any(k in f.lower() for k in keywords)]
        if matched:
            out.append(f"{prefix}: {', '.join(matched)}")
    if completeness < 80:
        out.append(f"Data completeness is {completeness}% - some fields may have missing values")
    else:
        out.append(f"Data quality is excellent with {completeness}% completeness")
    return out


def profile_dataset(rows: Sequence[Mapping[str, Any]], dashboard: Optional[str] = None) -> Dict[str, Any]:
    if not rows:
        return {
            "summary": "No data available for analysis",
            "insights": ["No data to analyze"],
            "dataFields": [],
            "recordCount": 0,
            "dataTypes": {},
            "sampleData": [],
            "statistics": {},
        }

    fields = _fields(rows)
    completeness = calculate_completeness(rows)
    return {
        "summary": _summary(rows, fields, dashboard, completeness),
        "insights": _insights(rows, fields, dashboard, completeness),
        "dataFields": fields,
        "recordCount": len(rows),
        "dataTypes": infer_profile_types(rows),
        "sampleData": [dict(r) for r in rows[:3]],
        "statistics": calculate_statistics(rows, fields),
    }


def _find_field(fields: Sequence[str], *keywords: str, require: Optional[str] = None) -> Optional[str]:
    for f in fields:
        lower = f.lower()
        if any(k in lower for k in keywords) and (require is None or require in lower):
            return f
    return None


def query_dataset(rows: Sequence[Mapping[str, Any]], query: str) -> Optional[Dict[str, Any]]:
    """Answer count/sum/average/top keyword queries; None when nothing applies."""
    if not rows or not query:
        return None
    q = query.lower()
    fields = _fields(rows)

    if any(k in q for k in ("count", "number", "total")):
        if "patient" in q:
            f = _find_field(fields, "patient", require="id")
            if f:
                return {"type": "count", "value": len({row.get(f) for row in rows}), "field": "patients"}
        if "doctor" in q:
            f = _find_field(fields, "doctor", require="id")
            if f:
                return {"type": "count", "value": len({row.get(f) for row in rows}), "field": "doctors"}
        if "record" in q or "row" in q:
            return {"type": "count", "value": len(rows), "field": "records"}

    amount_field = _find_field(fields, *AMOUNT_KEYWORDS)
    if amount_field is None:
        return None

    if "total" in q and ("revenue" in q or "amount" in q):
        return {"type": "sum", "value": sum(parse_amount(r.get(amount_field)) for r in rows), "field": amount_field}

    if "average" in q or "avg" in q:
        total = sum(parse_amount(r.get(amount_field)) for r in rows)
        return {"type": "average", "value": total / len(rows), "field": amount_field}

    if any(k in q for k in ("top", "highest", "most")):
        ranked = sorted(rows, key=lambda r: parse_amount(r.get(amount_field)), reverse=True)
        return {"type": "top", "value": [dict(r) for r in ranked[:5]], "field": amount_field}

    return None
