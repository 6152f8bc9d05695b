from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Literal, Optional

import pandas as pd

from profile_core.config import XP_PER_LEVEL
from profile_core.data import as_float, as_number, as_records, records_frame

POINT_TYPES = {"xp"}
UNKNOWN_PROJECT = "Unknown"

Aggregate = Literal["sum", "count"]


def point_events(frame: pd.DataFrame) -> pd.DataFrame:
    """Rows that grant points: untyped rows or rows typed ``xp``."""
    if frame.empty:
        return frame
    kind = frame["type"].fillna("").str.lower()
    return frame[(kind == "") | kind.isin(POINT_TYPES)]


def total_points(transactions: Optional[Iterable[object]]) -> float | int:
    events = point_events(records_frame(transactions))
    total = float(events["amount"].fillna(0).sum()) if not events.empty else 0.0
    return as_number(max(total, 0.0))


def calculate_level(total: object, threshold: int = XP_PER_LEVEL) -> int:
    value = as_float(total) or 0.0
    if threshold <= 0 or value <= 0:
        return 0
    return max(0, math.floor(value / threshold))


def sorted_events(transactions: Optional[Iterable[object]]) -> List[Dict[str, Any]]:
    """Raw event rows ordered ascending by ``createdAt``; unparseable timestamps sort last."""
    rows = list(as_records(transactions))
    if not rows:
        return []
    stamps = records_frame(rows)["created_at"]
    order = stamps.sort_values(kind="mergesort", na_position="last").index
    return [rows[i] for i in order]


def cumulative_points(transactions: Optional[Iterable[object]]) -> pd.DataFrame:
    """Running point total over time, one row per dated point event."""
    events = point_events(records_frame(transactions))
    events = events.dropna(subset=["created_at"])
    if events.empty:
        return pd.DataFrame(columns=["created_at", "amount", "cumulative", "path"])
    out = events.sort_values("created_at", kind="mergesort")[["created_at", "amount", "path"]].copy()
    out["amount"] = out["amount"].fillna(0)
    out["cumulative"] = out["amount"].cumsum()
    return out.reset_index(drop=True)[["created_at", "amount", "cumulative", "path"]]


def project_key(path: object) -> str:
    if not isinstance(path, str):
        return UNKNOWN_PROJECT
    trimmed = path.strip().rstrip("/")
    if not trimmed:
        return UNKNOWN_PROJECT
    return trimmed.split("/")[-1] or UNKNOWN_PROJECT


def group_by_path(
    frame: pd.DataFrame,
    *,
    value_col: str = "amount",
    how: Aggregate = "sum",
    top_n: Optional[int] = None,
    name_col: str = "name",
) -> pd.DataFrame:
    """Group rows by the last path segment, aggregate, sort descending and optionally keep the top N."""
    if frame.empty:
        return pd.DataFrame(columns=[name_col, value_col])
    keyed = frame.assign(**{name_col: frame["path"].map(project_key).astype(str)})
    if how == "count":
        grouped = keyed.groupby(name_col).size().reset_index(name=value_col)
    else:
        keyed[value_col] = keyed[value_col].fillna(0)
        grouped = keyed.groupby(name_col)[value_col].sum().reset_index()
    grouped = grouped.sort_values([value_col, name_col], ascending=[False, True], kind="mergesort")
    if top_n is not None:
        grouped = grouped.head(max(0, int(top_n)))
    return grouped.reset_index(drop=True)


def xp_by_project(transactions: Optional[Iterable[object]], top_n: Optional[int] = 10) -> List[Dict[str, Any]]:
    events = point_events(records_frame(transactions))
    events = events[events["amount"] > 0] if not events.empty else events
    grouped = group_by_path(events, value_col="amount", how="sum", top_n=top_n)
    return [{"name": str(r["name"]), "xp": as_number(r["amount"])} for r in grouped.to_dict(orient="records")]
