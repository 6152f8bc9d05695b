from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from profile_core.data import round_half_up, records_frame

PASS_GRADE = 1

# (track label, literal path fragments); first matching rule wins
TRACK_RULES: Sequence[Tuple[str, Tuple[str, ...]]] = (
    ("JavaScript", ("piscine-js", "/js/")),
    ("Go", ("piscine-go", "/go/")),
)


def _grades(frame: pd.DataFrame) -> pd.Series:
    return frame["grade"] if not frame.empty else pd.Series(dtype=float)


def pass_fail_counts(progress: Optional[Iterable[object]]) -> Dict[str, int]:
    """Grade >= 1 passes, grade == 0 fails; missing, negative or other fractional grades count as neither."""
    grades = _grades(records_frame(progress))
    passed = int((grades >= PASS_GRADE).sum())
    failed = int((grades == 0).sum())
    return {"passed": passed, "failed": failed, "total": passed + failed}


def pass_rate(passed: int, failed: int) -> int:
    """Whole-number percentage; 0 (not "N/A") when nothing was graded."""
    total = passed + failed
    if total <= 0:
        return 0
    return int(round_half_up(100 * passed / total) or 0)


def classify_track(path: object) -> Optional[str]:
    if not isinstance(path, str):
        return None
    lowered = path.lower()
    for label, fragments in TRACK_RULES:
        if any(fragment in lowered for fragment in fragments):
            return label
    return None


def track_stats(progress: Optional[Iterable[object]]) -> List[Dict[str, Any]]:
    frame = records_frame(progress)
    if frame.empty:
        return []
    frame = frame.assign(track=frame["path"].map(classify_track))
    frame = frame.dropna(subset=["track"])
    stats: List[Dict[str, Any]] = []
    for label, _ in TRACK_RULES:
        bucket = frame[frame["track"] == label]
        if bucket.empty:
            continue
        stats.append(
            {
                "track": label,
                "passed": int((bucket["grade"] >= PASS_GRADE).sum()),
                "failed": int((bucket["grade"] == 0).sum()),
                "total": int(len(bucket)),
            }
        )
    return stats
