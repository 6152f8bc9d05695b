from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from profile_core.data import RawRecords, Record, as_records, format_xp
from profile_core.filters import DashboardOptions, default_options
from profile_core.metrics_audit import Ratio, audit_ratio, audit_totals
from profile_core.metrics_progress import pass_fail_counts, pass_rate, track_stats
from profile_core.metrics_xp import calculate_level, sorted_events, total_points, xp_by_project
from profile_core.skills import Skill, SkillSource, infer_skills


@dataclass(frozen=True)
class ProfileDataset:
    """Derived view of one learner, rebuilt wholesale on every successful fetch cycle."""

    identity: int
    login: str
    first_name: str
    last_name: str
    email: str
    total_xp: float | int
    level: int
    formatted_xp: str
    transactions: Tuple[Record, ...]
    audit_given: float | int
    audit_received: float | int
    audit_ratio: Ratio
    progress: Tuple[Record, ...]
    results: Tuple[Record, ...]
    projects: Tuple[Record, ...]
    passed: int
    failed: int
    total_projects: int
    pass_rate: int
    skills: Tuple[Skill, ...]
    skill_source: SkillSource
    xp_by_project: Tuple[Dict[str, Any], ...]
    piscine: Tuple[Dict[str, Any], ...]
    assembled_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "login": self.login,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "total_xp": self.total_xp,
            "level": self.level,
            "formatted_xp": self.formatted_xp,
            "transactions": [dict(r) for r in self.transactions],
            "audit_given": self.audit_given,
            "audit_received": self.audit_received,
            "audit_ratio": self.audit_ratio,
            "progress": [dict(r) for r in self.progress],
            "results": [dict(r) for r in self.results],
            "projects": [dict(r) for r in self.projects],
            "passed": self.passed,
            "failed": self.failed,
            "total_projects": self.total_projects,
            "pass_rate": self.pass_rate,
            "skills": [{"name": s.name, "magnitude": s.magnitude} for s in self.skills],
            "skill_source": self.skill_source.value,
            "xp_by_project": [dict(g) for g in self.xp_by_project],
            "piscine": [dict(t) for t in self.piscine],
            "assembled_at": self.assembled_at,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ProfileDataset:
        """Rebuild a persisted dataset; raises KeyError/TypeError/ValueError when the copy is unusable."""
        return cls(
            identity=int(raw["identity"]),
            login=str(raw["login"]),
            first_name=str(raw["first_name"]),
            last_name=str(raw["last_name"]),
            email=str(raw["email"]),
            total_xp=raw["total_xp"],
            level=int(raw["level"]),
            formatted_xp=str(raw["formatted_xp"]),
            transactions=as_records(raw["transactions"]),
            audit_given=raw["audit_given"],
            audit_received=raw["audit_received"],
            audit_ratio=raw["audit_ratio"],
            progress=as_records(raw["progress"]),
            results=as_records(raw["results"]),
            projects=as_records(raw["projects"]),
            passed=int(raw["passed"]),
            failed=int(raw["failed"]),
            total_projects=int(raw["total_projects"]),
            pass_rate=int(raw["pass_rate"]),
            skills=tuple(Skill(name=str(s["name"]), magnitude=s["magnitude"]) for s in raw["skills"]),
            skill_source=SkillSource(raw["skill_source"]),
            xp_by_project=as_records(raw["xp_by_project"]),
            piscine=as_records(raw["piscine"]),
            assembled_at=str(raw["assembled_at"]),
        )


def build_dataset(
    records: RawRecords,
    identity: int,
    *,
    options: Optional[DashboardOptions] = None,
    assembled_at: Optional[datetime] = None,
) -> ProfileDataset:
    """Derive every panel value from one cycle's raw records. Never raises on malformed rows."""
    options = options or default_options()
    user = records.user or {}

    transactions = tuple(sorted_events(records.transactions))
    total = total_points(transactions)
    level = calculate_level(total, options.xp_per_level)

    audits = audit_totals(records.audits)
    counts = pass_fail_counts(records.progress)
    ranking = infer_skills(
        records.skills,
        records.progress,
        records.projects,
        level=level,
        completed_projects=pass_fail_counts(records.results)["passed"],
    )

    login = str(user.get("login") or "")
    stamp = assembled_at or datetime.now(timezone.utc)
    return ProfileDataset(
        identity=int(identity),
        login=login,
        first_name=str(user.get("firstName") or login),
        last_name=str(user.get("lastName") or ""),
        email=str(user.get("email") or ""),
        total_xp=total,
        level=level,
        formatted_xp=format_xp(total),
        transactions=transactions,
        audit_given=audits["given"],
        audit_received=audits["received"],
        audit_ratio=audit_ratio(audits["given"], audits["received"]),
        progress=as_records(records.progress),
        results=as_records(records.results),
        projects=as_records(records.projects),
        passed=counts["passed"],
        failed=counts["failed"],
        total_projects=counts["total"],
        pass_rate=pass_rate(counts["passed"], counts["failed"]),
        skills=ranking.skills,
        skill_source=ranking.source,
        xp_by_project=tuple(xp_by_project(transactions, top_n=options.top_n_projects)),
        piscine=tuple(track_stats(records.progress)),
        assembled_at=stamp.isoformat(),
    )
