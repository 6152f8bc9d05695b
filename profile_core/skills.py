"""Skill ranking with a fallback chain.

1. explicit skill transactions, when the skills query returned any
2. skills inferred from completed progress/project entries by path rules
3. a fixed placeholder set, lightly scaled by level, so the chart is never empty
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from profile_core.data import as_float, as_number, as_records, records_frame

FALLBACK_LABEL = "Programming"


class SkillSource(str, Enum):
    EXPLICIT = "explicit"
    INFERRED = "inferred"
    PLACEHOLDER = "placeholder"


@dataclass(frozen=True)
class Skill:
    name: str
    magnitude: float | int


@dataclass(frozen=True)
class SkillRanking:
    source: SkillSource
    skills: Tuple[Skill, ...]

    def as_records(self) -> List[Dict[str, Any]]:
        return [{"name": s.name, "magnitude": s.magnitude} for s in self.skills]


Predicate = Callable[[str, str], bool]


def _path_has(*fragments: str) -> Predicate:
    return lambda path, name: any(f in path for f in fragments)


def _path_word(*words: str) -> Predicate:
    # Short tokens like "go" would match "algorithms" as plain substrings
    pattern = re.compile(r"(?<![a-z])(?:%s)(?![a-z])" % "|".join(map(re.escape, words)))
    return lambda path, name: bool(pattern.search(path))


def _name_has(*fragments: str) -> Predicate:
    return lambda path, name: any(f in name for f in fragments)


def _name_word(*words: str) -> Predicate:
    pattern = re.compile(r"(?<![a-z])(?:%s)(?![a-z])" % "|".join(map(re.escape, words)))
    return lambda path, name: bool(pattern.search(name))


SKILL_RULES: Sequence[Tuple[Predicate, str]] = (
    (_path_has("javascript"), "JavaScript"),
    (_path_word("js"), "JavaScript"),
    (_path_has("golang"), "Go"),
    (_path_word("go"), "Go"),
    (_path_has("python"), "Python"),
    (_path_has("rust"), "Rust"),
    (_path_has("sql"), "SQL"),
    (_path_has("docker"), "Docker"),
    (_path_has("linux"), "Linux"),
    (_path_has("algorithm"), "Algorithms"),
    (_path_has("math"), "Mathematics"),
    (_name_has("javascript"), "JavaScript"),
    (_name_word("js"), "JavaScript"),
    (_name_has("golang"), "Go"),
    (_name_word("go"), "Go"),
    (_name_has("algorithm"), "Algorithms"),
    (_name_has("math"), "Mathematics"),
    (_name_has("web"), "Web Development"),
    (_name_word("api"), "API Development"),
    (_name_has("database"), "Database"),
    (_name_word("db"), "Database"),
)

SKILL_TYPE_LABELS: Dict[str, str] = {
    "go": "Go",
    "js": "JavaScript",
    "sql": "SQL",
    "html": "HTML",
    "css": "CSS",
    "ai": "AI",
    "prog": "Programming",
    "algo": "Algorithms",
    "sys-admin": "Sys Admin",
    "front-end": "Front End",
    "back-end": "Back End",
}

PLACEHOLDER_SKILLS: Sequence[Tuple[str, int]] = (
    ("Programming", 85),
    ("Problem Solving", 75),
    ("Algorithms", 65),
    ("Web Development", 60),
    ("Teamwork", 55),
)


def infer_label(path: object, name: object = None) -> str:
    path_text = path.lower() if isinstance(path, str) else ""
    name_text = name.lower() if isinstance(name, str) else ""
    for predicate, label in SKILL_RULES:
        if predicate(path_text, name_text):
            return label
    return FALLBACK_LABEL


def _label_from_type(kind: object) -> Optional[str]:
    """``skill_go`` -> ``Go``; plain ``skill`` carries no name."""
    if not isinstance(kind, str) or "_" not in kind:
        return None
    suffix = kind.split("_", 1)[1].strip().lower()
    if not suffix:
        return None
    return SKILL_TYPE_LABELS.get(suffix, suffix.replace("-", " ").title())


def _ranked(frame: pd.DataFrame) -> Tuple[Skill, ...]:
    frame = frame.sort_values(["magnitude", "name"], ascending=[False, True], kind="mergesort")
    return tuple(Skill(name=str(r["name"]), magnitude=as_number(r["magnitude"])) for r in frame.to_dict(orient="records"))


def explicit_skills(skill_records: Optional[Iterable[object]]) -> Tuple[Skill, ...]:
    rows = []
    for rec in as_records(skill_records):
        obj = rec.get("object") if isinstance(rec.get("object"), dict) else {}
        obj_name = obj.get("name") if isinstance(obj.get("name"), str) else ""
        name = _label_from_type(rec.get("type")) or obj_name.strip()
        if not name:
            continue
        rows.append({"name": name, "magnitude": as_float(rec.get("amount")) or 0.0})
    if not rows:
        return ()
    # Skill transactions record the level reached; keep the highest per skill
    grouped = pd.DataFrame(rows).groupby("name")["magnitude"].max().reset_index()
    return _ranked(grouped)


def completed_entries(*entry_sets: Optional[Iterable[object]]) -> List[Dict[str, Any]]:
    """Entries graded >= 1 across the given sets, deduplicated by id."""
    seen = set()
    out: List[Dict[str, Any]] = []
    for entries in entry_sets:
        for entry in entries or []:
            if not isinstance(entry, dict):
                continue
            grade = as_float(entry.get("grade"))
            if grade is None or grade < 1:
                continue
            key = entry.get("id")
            if key is not None:
                if key in seen:
                    continue
                seen.add(key)
            out.append(entry)
    return out


def inferred_skills(completed: Sequence[Dict[str, Any]]) -> Tuple[Skill, ...]:
    frame = records_frame(completed)
    if frame.empty:
        return ()
    labels = [infer_label(path, name) for path, name in zip(frame["path"], frame["object_name"])]
    grouped = frame.assign(name=labels).groupby("name")["grade"].sum().reset_index(name="magnitude")
    return _ranked(grouped)


def placeholder_skills(level: int = 0, completed_projects: int = 0) -> Tuple[Skill, ...]:
    bonus = 2 * max(0, int(level)) + max(0, int(completed_projects))
    frame = pd.DataFrame([{"name": name, "magnitude": base + bonus} for name, base in PLACEHOLDER_SKILLS])
    return _ranked(frame)


def infer_skills(
    skill_records: Optional[Iterable[object]],
    progress: Optional[Iterable[object]] = None,
    projects: Optional[Iterable[object]] = None,
    *,
    level: int = 0,
    completed_projects: int = 0,
) -> SkillRanking:
    """Explicit skills, else skills inferred from completed work, else the placeholder set.

    ``completed_projects`` only feeds the placeholder bonus; it counts passes the
    inference sets do not carry (graded results).
    """
    explicit = explicit_skills(skill_records)
    if explicit:
        return SkillRanking(SkillSource.EXPLICIT, explicit)
    completed = completed_entries(progress, projects)
    inferred = inferred_skills(completed)
    if inferred:
        return SkillRanking(SkillSource.INFERRED, inferred)
    return SkillRanking(SkillSource.PLACEHOLDER, placeholder_skills(level, completed_projects))
