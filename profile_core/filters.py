from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from profile_core.config import settings


@dataclass(frozen=True)
class DashboardOptions:
    top_n_projects: int = 10
    top_n_skills: int = 5
    xp_per_level: int = 66000


def default_options() -> DashboardOptions:
    return DashboardOptions(
        top_n_projects=settings.top_n_projects,
        top_n_skills=settings.top_n_skills,
        xp_per_level=settings.xp_per_level,
    )


def _bounded_int(value: object, default: int, *, lo: int, hi: int) -> int:
    try:
        out = int(value)  # type: ignore[arg-type]
    except Exception:
        out = default
    return max(lo, min(hi, out))


def normalize_options(raw: Optional[dict] = None) -> DashboardOptions:
    raw = raw or {}
    base = default_options()
    return DashboardOptions(
        top_n_projects=_bounded_int(raw.get("top_n_projects", base.top_n_projects), base.top_n_projects, lo=1, hi=50),
        top_n_skills=_bounded_int(raw.get("top_n_skills", base.top_n_skills), base.top_n_skills, lo=1, hi=20),
        xp_per_level=_bounded_int(raw.get("xp_per_level", base.xp_per_level), base.xp_per_level, lo=1, hi=10_000_000),
    )
