from __future__ import annotations

from typing import Dict, Iterable, Optional, Union

from profile_core.data import as_float, as_number, records_frame

GIVEN_TYPE = "up"
RECEIVED_TYPE = "down"

# Audit ratio when nothing was received, whatever was given
NOT_APPLICABLE = "N/A"

Ratio = Union[float, str]


def audit_totals(audits: Optional[Iterable[object]]) -> Dict[str, float | int]:
    """Sum ``up`` (given) and ``down`` (received) audit events independently."""
    frame = records_frame(audits)
    if frame.empty:
        return {"given": 0, "received": 0}
    kind = frame["type"].fillna("").str.lower()
    amounts = frame["amount"].fillna(0)
    given = float(amounts[kind == GIVEN_TYPE].sum())
    received = float(amounts[kind == RECEIVED_TYPE].sum())
    return {"given": as_number(given), "received": as_number(received)}


def audit_ratio(given: object, received: object) -> Ratio:
    up = as_float(given) or 0.0
    down = as_float(received) or 0.0
    if down <= 0:
        return NOT_APPLICABLE
    ratio = up / down
    return max(ratio, 0.0)
