from __future__ import annotations

import logging
from io import BytesIO
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import pandas as pd

from .error_handler import UnsupportedFileError, UploadParseError

logger = logging.getLogger(__name__)

MAX_UPLOAD_ROWS = 100_000

CSV_SEPARATORS = (",", ";", "\t")
EXCEL_SUFFIXES = (".xlsx",)


def _read_csv(buf: BytesIO) -> pd.DataFrame:
    last_exc: Exception | None = None
    for sep in CSV_SEPARATORS:
        try:
            buf.seek(0)
            df = pd.read_csv(buf, dtype=str, keep_default_na=False, na_filter=False, sep=sep)
        except Exception as e:  # noqa: BLE001
            last_exc = e
            continue
        # a single column whose name still holds another separator was split on the wrong one
        if len(df.columns) == 1 and any(s in str(df.columns[0]) for s in CSV_SEPARATORS if s != sep):
            continue
        return df
    if last_exc is not None:
        raise last_exc
    raise ValueError("could not detect CSV delimiter")


def load_rows(filename: str, content: bytes) -> List[Dict[str, Any]]:
    """Parse an uploaded CSV/Excel file into row dicts of strings."""
    name = (filename or "").lower()
    buf = BytesIO(content)
    try:
        if name.endswith(".csv"):
            df = _read_csv(buf)
        elif name.endswith(EXCEL_SUFFIXES):
            df = pd.read_excel(buf, dtype=str).fillna("")
        else:
            raise UnsupportedFileError(f"unsupported file type: {filename or 'unnamed'}")
    except UnsupportedFileError:
        raise
    except pd.errors.EmptyDataError:
        return []
    except Exception as exc:  # noqa: BLE001
        raise UploadParseError(f"failed to parse file: {exc}") from exc

    df.columns = [str(c).strip() for c in df.columns]
    rows = df.to_dict(orient="records")
    logger.debug("parsed %s: %d rows, %d columns", filename, len(rows), len(df.columns))
    return rows


def validate_row_limit(rows: Sequence[Any], max_rows: int = MAX_UPLOAD_ROWS) -> Dict[str, Any]:
    actual = len(rows)
    if actual <= max_rows:
        return {
            "isValid": True,
            "actualRows": actual,
            "maxRows": max_rows,
            "message": f"File contains {actual:,} rows (within limit)",
            "canTruncate": False,
        }
    return {
        "isValid": False,
        "actualRows": actual,
        "maxRows": max_rows,
        "message": (
            f"Cannot support large data files. File contains {actual:,} rows, but maximum supported is "
            f"{max_rows:,} rows. Please reduce your file size or split it into smaller files."
        ),
        "canTruncate": False,
    }


def truncate_to_limit(rows: Sequence[Any], max_rows: int = MAX_UPLOAD_ROWS) -> List[Any]:
    if len(rows) <= max_rows:
        return list(rows)
    logger.warning("data truncated from %d to %d rows", len(rows), max_rows)
    return list(rows[:max_rows])


def to_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    """Serialize rows; the header is the ordered union of all row keys."""
    rows = list(rows)
    if not rows:
        return ""
    header: Dict[str, None] = {}
    for row in rows:
        for key in row:
            header.setdefault(key, None)
    frame = pd.DataFrame(rows, columns=list(header), dtype=object)
    return frame.to_csv(index=False, lineterminator="\n")


def violations_to_csv(violations: Iterable[Any]) -> str:
    return to_csv(v.to_dict() if hasattr(v, "to_dict") else v for v in violations)
