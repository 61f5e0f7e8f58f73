from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence

import pandas as pd

from ..utils.validators import parse_date, parse_number

TimePoint = Dict[str, Any]


def total(values: Iterable[Any]) -> float:
    """Sum of the finite numbers in ``values``; anything else counts as 0."""
    out = 0.0
    for v in values:
        n = parse_number(v)
        if n is not None:
            out += n
    return out


def average(values: Sequence[Any]) -> float:
    if not values:
        return 0.0
    return total(values) / len(values)


def group_by(rows: Iterable[Mapping[str, Any]], key_fn: Callable[[Mapping[str, Any]], str]) -> Dict[str, List[Mapping[str, Any]]]:
    groups: Dict[str, List[Mapping[str, Any]]] = {}
    for row in rows:
        groups.setdefault(key_fn(row), []).append(row)
    return groups


def format_month(d: datetime) -> str:
    return f"{d.year}-{d.month:02d}"


def build_monthly_series(rows: Iterable[Mapping[str, Any]], date_field: str, value_field: str) -> List[TimePoint]:
    """Sum ``value_field`` per calendar month of ``date_field``, months ascending."""
    buckets: Dict[str, float] = defaultdict(float)
    for row in rows:
        if not row:
            continue
        d = parse_date(row.get(date_field))
        v = parse_number(row.get(value_field))
        if d is None or v is None:
            continue
        buckets[format_month(d)] += v
    return [{"date": month, "value": buckets[month]} for month in sorted(buckets)]


def _next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def moving_average_forecast(series: Sequence[TimePoint], window: int = 3, horizon: int = 3) -> List[TimePoint]:
    """Trailing moving average; each forecast feeds the next window."""
    if not series:
        return []
    if window < 1:
        raise ValueError("window must be at least 1")

    values = [float(p["value"]) for p in series]
    year, month = (int(part) for part in str(series[-1]["date"]).split("-")[:2])
    forecasts: List[TimePoint] = []
    for _ in range(max(horizon, 0)):
        tail = values[-window:]
        f = sum(tail) / len(tail)
        year, month = _next_month(year, month)
        forecasts.append({"date": f"{year}-{month:02d}", "value": f})
        values.append(f)
    return forecasts


def detect_anomalies(values: Sequence[float], z_threshold: float = 2) -> List[Dict[str, float]]:
    """Flag values whose population z-score magnitude reaches ``z_threshold``."""
    if not values or len(values) < 2:
        return []
    s = pd.Series(values, dtype="float64")
    mean = s.mean()
    std = s.std(ddof=0)
    if std == 0 or math.isnan(std):
        return []
    z = (s - mean) / std
    return [
        {"index": int(i), "value": float(s[i]), "z": float(z[i])}
        for i in z.index
        if abs(z[i]) >= z_threshold
    ]


def top_n_by_sum(rows: Iterable[Mapping[str, Any]], key_field: str, value_field: str, n: int = 5) -> List[Dict[str, Any]]:
    stats: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        row = row or {}
        raw_key = row.get(key_field)
        key = "Unknown" if raw_key is None else str(raw_key)
        entry = stats.setdefault(key, {"key": key, "total": 0.0, "count": 0})
        v = parse_number(row.get(value_field))
        if v is not None:
            entry["total"] += v
        entry["count"] += 1
    return sorted(stats.values(), key=lambda e: e["total"], reverse=True)[:n]
