from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

from ..rules.schemas import DATE, NUMBER, STRING

MISSING_FIELD = "MISSING_FIELD"
TYPE_MISMATCH = "TYPE_MISMATCH"
FORMAT_ERROR = "FORMAT_ERROR"
EMPTY_VALUE = "EMPTY_VALUE"
OUTLIER = "OUTLIER"
EXTRA_FIELD = "EXTRA_FIELD"
DUPLICATE = "DUPLICATE"
NEGATIVE_VALUE = "NEGATIVE_VALUE"
INVALID_RANGE = "INVALID_RANGE"
FUTURE_DATE = "FUTURE_DATE"
BILLING_ERROR = "BILLING_ERROR"
DELAYED_PAYMENT = "DELAYED_PAYMENT"

STRUCTURAL_KINDS = frozenset({MISSING_FIELD, TYPE_MISMATCH, FORMAT_ERROR})

# (pattern, label, strptime formats tried in order)
DATE_FORMATS: tuple[tuple[re.Pattern, str, tuple[str, ...]], ...] = (
    (re.compile(r"^\d{4}-\d{2}-\d{2}$"), "YYYY-MM-DD (ISO)", ("%Y-%m-%d",)),
    (re.compile(r"^\d{2}/\d{2}/\d{4}$"), "MM/DD/YYYY (US)", ("%m/%d/%Y", "%d/%m/%Y")),
    (re.compile(r"^\d{2}-\d{2}-\d{4}$"), "MM-DD-YYYY", ("%m-%d-%Y", "%d-%m-%Y")),
    (re.compile(r"^\d{4}/\d{2}/\d{2}$"), "YYYY/MM/DD", ("%Y/%m/%d",)),
    (re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$"), "M/D/YYYY", ("%m/%d/%Y", "%d/%m/%Y")),
    (re.compile(r"^\d{1,2}-\d{1,2}-\d{4}$"), "M-D-YYYY", ("%m-%d-%Y", "%d-%m-%Y")),
    (re.compile(r"^\d{2}/\d{2}/\d{2}$"), "MM/DD/YY", ("%m/%d/%y", "%d/%m/%y")),
    (re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$"), "YYYY-M-D", ("%Y-%m-%d",)),
    (re.compile(r"^\d{1,2}/\d{1,2}/\d{2}$"), "M/D/YY", ("%m/%d/%y", "%d/%m/%y")),
    (re.compile(r"^\d{2}\.\d{2}\.\d{4}$"), "DD.MM.YYYY (European)", ("%d.%m.%Y",)),
    (re.compile(r"^\d{1,2}\.\d{1,2}\.\d{4}$"), "D.M.YYYY", ("%d.%m.%Y",)),
)

NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
TOKEN_SPLIT_RE = re.compile(r"[\s_-]+")

# Tokens shorter than this never take part in token-overlap matching
# ("id" would otherwise tie Patient_ID to Doctor_ID).
MIN_MATCH_TOKEN_LENGTH = 3
TYPE_SAMPLE_SIZE = 10
TYPE_INFERENCE_RATIO = 0.8


@dataclass(frozen=True)
class FieldIssue:
    field: str
    message: str
    kind: str
    severity: str
    row: int | None = None
    column: str | None = None

    def at(self, row: int, column: str) -> "FieldIssue":
        return replace(self, row=row, column=column)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "field": self.field,
            "message": self.message,
            "kind": self.kind,
            "severity": self.severity,
        }
        if self.row is not None:
            out["row"] = self.row
        if self.column is not None:
            out["column"] = self.column
        return out


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def parse_number(value: Any) -> float | None:
    """Strict finite-float parse; blank, bools and partial numbers give None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    text = str(value).strip()
    if not NUMBER_RE.fullmatch(text):
        return None
    number = float(text)
    return number if math.isfinite(number) else None


def _naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def match_date_format(text: str) -> tuple[str, tuple[str, ...]] | None:
    for pattern, label, formats in DATE_FORMATS:
        if pattern.fullmatch(text):
            return label, formats
    return None


def _strptime_any(text: str, formats: Sequence[str]) -> datetime | None:
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_date(value: Any) -> datetime | None:
    """Lenient date parse used by the compliance and analytics code."""
    if is_empty(value) or isinstance(value, bool):
        return None
    if isinstance(value, pd.Timestamp):
        return _naive(value.to_pydatetime())
    if isinstance(value, datetime):
        return _naive(value)
    text = str(value).strip()
    matched = match_date_format(text)
    if matched:
        return _strptime_any(text, matched[1])
    if NUMBER_RE.fullmatch(text):
        # bare numbers are not dates here
        return None
    try:
        return _naive(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return _naive(parsed.to_pydatetime())


def _tokens(text: str) -> list[str]:
    return [t for t in TOKEN_SPLIT_RE.split(text.lower()) if len(t) >= MIN_MATCH_TOKEN_LENGTH]


def find_best_field_match(required_field: str, headers: Sequence[str]) -> str | None:
    required_lower = required_field.lower()

    for header in headers:
        if header.lower() == required_lower:
            return header

    for header in headers:
        h = header.lower()
        if h and (required_lower in h or h in required_lower):
            return header

    required_words = _tokens(required_field)
    for header in headers:
        header_words = _tokens(header)
        if any(hw in w or w in hw for w in required_words for hw in header_words):
            return header
    return None


def infer_data_types(rows: Sequence[Mapping[str, Any]], headers: Iterable[str]) -> dict[str, str]:
    types: dict[str, str] = {}
    for header in headers:
        non_empty = []
        for row in rows:
            value = row.get(header)
            if is_empty(value):
                continue
            non_empty.append(value)
            if len(non_empty) == TYPE_SAMPLE_SIZE:
                break
        if not non_empty:
            types[header] = STRING
            continue

        threshold = TYPE_INFERENCE_RATIO * len(non_empty)
        numeric = sum(1 for v in non_empty if parse_number(v) is not None)
        if numeric >= threshold:
            types[header] = NUMBER
            continue

        dates = sum(1 for v in non_empty if match_date_format(str(v).strip()))
        if dates >= threshold:
            types[header] = DATE
            continue

        types[header] = STRING
    return types


def validate_date(value: Any, field_name: str, now: datetime | None = None) -> FieldIssue | None:
    if is_empty(value):
        return None

    date_str = str(value).strip()
    matched = match_date_format(date_str)
    if not matched:
        expected = ", ".join(label for _, label, _ in DATE_FORMATS)
        return FieldIssue(
            field=field_name,
            message=f'Invalid date format for "{field_name}". Expected formats: {expected}',
            kind=FORMAT_ERROR,
            severity="error",
        )

    parsed = _strptime_any(date_str, matched[1])
    if parsed is None:
        return FieldIssue(
            field=field_name,
            message=f'Invalid date value for "{field_name}": {date_str}',
            kind=FORMAT_ERROR,
            severity="error",
        )

    if parsed > (now or datetime.now()):
        return FieldIssue(
            field=field_name,
            message=f'Future date detected in "{field_name}": {date_str}',
            kind=FUTURE_DATE,
            severity="warning",
        )
    return None


def validate_number(value: Any, field_name: str, allow_negative: bool = True) -> FieldIssue | None:
    if is_empty(value):
        return None

    num = parse_number(value)
    if num is None:
        return FieldIssue(
            field=field_name,
            message=f'Invalid number format for "{field_name}": {str(value).strip()}',
            kind=TYPE_MISMATCH,
            severity="error",
        )

    if not allow_negative and num < 0:
        return FieldIssue(
            field=field_name,
            message=f'Negative value not allowed for "{field_name}": {value}',
            kind=NEGATIVE_VALUE,
            severity="error",
        )
    return None
