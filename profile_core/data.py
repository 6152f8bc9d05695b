from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd


RECORD_COLUMNS = ["id", "type", "amount", "grade", "createdAt", "path", "object_name", "object_type"]

Record = Dict[str, Any]


@dataclass(frozen=True)
class RawRecords:
    """Everything one fetch cycle returned, before derivation."""

    user: Mapping[str, Any] = field(default_factory=dict)
    transactions: Tuple[Record, ...] = ()
    audits: Tuple[Record, ...] = ()
    progress: Tuple[Record, ...] = ()
    results: Tuple[Record, ...] = ()
    projects: Tuple[Record, ...] = ()
    skills: Tuple[Record, ...] = ()
    skills_available: bool = True


def as_records(values: Optional[Iterable[object]]) -> Tuple[Record, ...]:
    """Keep only mapping rows, copied, so later consumers cannot reach the caller's objects."""
    if not values:
        return ()
    return tuple(dict(v) for v in values if isinstance(v, Mapping))


def as_float(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(out) or math.isinf(out):
        return None
    return out


def _as_text(value: object) -> Optional[str]:
    return value if isinstance(value, str) else None


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = df[col].map(as_float).astype(float)
    return df


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].map(_as_text).astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA})
            df[col] = series
    return df


def records_frame(records: Optional[Iterable[object]]) -> pd.DataFrame:
    """Flatten raw records into a typed frame; malformed fields become NA instead of raising."""
    rows: List[Dict[str, Any]] = []
    for rec in records or []:
        if not isinstance(rec, Mapping):
            continue
        obj = rec.get("object")
        obj = obj if isinstance(obj, Mapping) else {}
        rows.append(
            {
                "id": rec.get("id"),
                "type": rec.get("type"),
                "amount": rec.get("amount"),
                "grade": rec.get("grade"),
                "createdAt": rec.get("createdAt"),
                "path": rec.get("path"),
                "object_name": obj.get("name"),
                "object_type": obj.get("type"),
            }
        )
    df = pd.DataFrame(rows, columns=RECORD_COLUMNS)
    df = numericize(df, ["amount", "grade"])
    df = coerce_str_safe(df, ["type", "path", "object_name", "object_type"])
    df["created_at"] = pd.to_datetime(df["createdAt"].map(_as_text), errors="coerce", utc=True, format="ISO8601")
    return df


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def as_number(value: float) -> float | int:
    """Integral floats come back as int so panels print ``3000`` rather than ``3000.0``."""
    value = float(value)
    return int(value) if value.is_integer() else value


def format_xp(amount: object) -> str:
    value = as_float(amount) or 0.0
    if value >= 1_000_000:
        return f"{value / 1_000_000:.2f} MB"
    if value >= 1000:
        return f"{int(round_half_up(value / 1000) or 0)} kB"
    return f"{as_number(value)} B"


def format_ratio(value: object) -> str:
    number = as_float(value)
    if number is None:
        return str(value)
    return f"{number:.2f}"
