"""Chart renderers.

Each ``render_*`` is a pure function of (data, target) returning a ``Drawing``:
a table of pixel-space marks (rects, paths, circles, text) plus a Vega-Lite
spec built with Altair. The shell decides which one to materialise.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import altair as alt
import pandas as pd

from profile_core.config import CHART_COLORS
from profile_core.data import as_float, as_number, format_xp, round_half_up
from profile_core.dataset import ProfileDataset
from profile_core.filters import DashboardOptions, default_options
from profile_core.metrics_xp import cumulative_points

alt.data_transformers.disable_max_rows()

Mark = Dict[str, Any]

# Share of the plot height used by a full track bar
TRACK_BAR_SCALE = 0.8
LABEL_MAX_CHARS = 15


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


@dataclass(frozen=True)
class Margins:
    top: int = 20
    right: int = 20
    bottom: int = 20
    left: int = 20


@dataclass(frozen=True)
class ChartTarget:
    """Opaque container handle supplied by the shell, plus the pixel box to draw into."""

    container: str
    width: int
    height: int
    margins: Margins = field(default_factory=Margins)

    @property
    def inner_width(self) -> float:
        return max(0, self.width - self.margins.left - self.margins.right)

    @property
    def inner_height(self) -> float:
        return max(0, self.height - self.margins.top - self.margins.bottom)


DEFAULT_TARGETS: Dict[str, ChartTarget] = {
    "xp_progress": ChartTarget("xp-progress-chart", 600, 300, Margins(top=20, right=30, bottom=40, left=60)),
    "audit": ChartTarget("audit-chart", 400, 200),
    "pass_fail": ChartTarget("project-ratio-chart", 200, 200),
    "skills": ChartTarget("skills-chart", 400, 300, Margins(top=20, right=20, bottom=60, left=100)),
    "top_projects": ChartTarget("xp-by-project-chart", 500, 350, Margins(top=20, right=20, bottom=80, left=60)),
    "piscine": ChartTarget("piscine-chart", 450, 300, Margins(top=20, right=20, bottom=60, left=80)),
}

PIE_RADIUS = 80


@dataclass(frozen=True)
class Drawing:
    kind: str
    container: str
    width: int
    height: int
    placeholder: Optional[str]
    marks: Tuple[Mark, ...]
    spec: Dict[str, Any]

    @property
    def is_placeholder(self) -> bool:
        return self.placeholder is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "container": self.container,
            "width": self.width,
            "height": self.height,
            "placeholder": self.placeholder,
            "marks": [dict(m) for m in self.marks],
            "spec": self.spec,
        }


def _px(value: float) -> float:
    return round(float(value), 2)


def _target(kind: str, target: Optional[ChartTarget]) -> ChartTarget:
    return target or DEFAULT_TARGETS[kind]


def _drawing(kind: str, target: ChartTarget, marks: Iterable[Mark], chart: alt.Chart) -> Drawing:
    return Drawing(
        kind=kind,
        container=target.container,
        width=target.width,
        height=target.height,
        placeholder=None,
        marks=tuple(marks),
        spec=to_vega_spec(chart),
    )


def placeholder_drawing(kind: str, target: ChartTarget, message: str) -> Drawing:
    """Centered message instead of a chart; used for every degenerate input."""
    text = {
        "type": "text",
        "x": _px(target.width / 2),
        "y": _px(target.height / 2),
        "anchor": "middle",
        "fill": CHART_COLORS["muted"],
        "text": message,
    }
    chart = (
        alt.Chart(pd.DataFrame({"message": [message]}))
        .mark_text(size=14, color=CHART_COLORS["muted"])
        .encode(text="message:N")
        .properties(width=target.width, height=target.height)
    )
    return Drawing(
        kind=kind,
        container=target.container,
        width=target.width,
        height=target.height,
        placeholder=message,
        marks=(text,),
        spec=to_vega_spec(chart),
    )


def _short_date(ts: pd.Timestamp) -> str:
    return f"{ts:%b} {ts.day}, {ts.year}"


def _percent(value: float, total: float) -> int:
    if total <= 0:
        return 0
    return int(round_half_up(100 * value / total) or 0)


def _truncate(label: str, limit: int = LABEL_MAX_CHARS) -> str:
    return label if len(label) <= limit else label[:limit] + "..."


# ---------------- Cumulative XP line ----------------

def render_xp_progress(transactions: Optional[Iterable[object]], target: Optional[ChartTarget] = None) -> Drawing:
    kind = "xp_progress"
    target = _target(kind, target)
    series = cumulative_points(transactions)
    if len(series) < 2:
        return placeholder_drawing(kind, target, "Not enough XP data to chart progress")

    start = series["created_at"].min()
    span = (series["created_at"].max() - start).total_seconds()
    peak = float(series["cumulative"].max())
    if span <= 0 or peak <= 0:
        return placeholder_drawing(kind, target, "Not enough XP data to chart progress")

    left, top = target.margins.left, target.margins.top
    width, height = target.inner_width, target.inner_height
    offsets = (series["created_at"] - start).dt.total_seconds()
    xs = [_px(left + s / span * width) for s in offsets]
    ys = [_px(top + height - c / peak * height) for c in series["cumulative"]]

    path = "M " + " L ".join(f"{x} {y}" for x, y in zip(xs, ys))
    marks: List[Mark] = [{"type": "path", "d": path, "fill": "none", "stroke": CHART_COLORS["primary"], "stroke_width": 3}]
    for x, y, ts, cum, amount in zip(xs, ys, series["created_at"], series["cumulative"], series["amount"]):
        marks.append(
            {
                "type": "circle",
                "cx": x,
                "cy": y,
                "r": 4,
                "fill": CHART_COLORS["primary"],
                "tooltip": f"Date: {_short_date(ts)}\nXP: {format_xp(cum)}\nGained: {format_xp(amount)}",
            }
        )

    frame = pd.DataFrame(
        {
            "date": series["created_at"].dt.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "cumulative": series["cumulative"].astype(float),
            "amount": series["amount"].astype(float),
            "project": series["path"].fillna("").astype(str),
        }
    )
    chart = (
        alt.Chart(frame)
        .mark_line(point=True, color=CHART_COLORS["primary"])
        .encode(
            x=alt.X("date:T", title="Time"),
            y=alt.Y("cumulative:Q", title="XP", axis=alt.Axis(format=",")),
            tooltip=[
                alt.Tooltip("date:T", title="Date"),
                alt.Tooltip("cumulative:Q", title="XP", format=","),
                alt.Tooltip("amount:Q", title="Gained", format=","),
                "project",
            ],
        )
        .properties(width=width, height=height)
    )
    return _drawing(kind, target, marks, chart)


# ---------------- Audit given vs received ----------------

def render_audit_bars(given: object, received: object, target: Optional[ChartTarget] = None) -> Drawing:
    kind = "audit"
    target = _target(kind, target)
    up = max(as_float(given) or 0.0, 0.0)
    down = max(as_float(received) or 0.0, 0.0)
    if up == 0 and down == 0:
        return placeholder_drawing(kind, target, "No audit data available")

    peak = max(up, down)
    span = target.width - target.margins.left - target.margins.right
    bar_height = target.height * 0.15
    rows = (
        ("Audit Given", up, target.height * 0.3, CHART_COLORS["success"]),
        ("Audit Received", down, target.height * 0.6, CHART_COLORS["danger"]),
    )
    marks: List[Mark] = []
    for label, value, y, color in rows:
        text = f"{label}: {format_xp(value)}"
        marks.append(
            {
                "type": "rect",
                "x": target.margins.left,
                "y": _px(y),
                "width": _px(value / peak * span),
                "height": _px(bar_height),
                "fill": color,
                "tooltip": text,
            }
        )
        marks.append({"type": "text", "x": target.margins.left, "y": _px(y - 5), "text": text, "fill": CHART_COLORS["text"]})

    frame = pd.DataFrame({"direction": [r[0] for r in rows], "amount": [r[1] for r in rows]})
    chart = (
        alt.Chart(frame)
        .mark_bar()
        .encode(
            y=alt.Y("direction:N", sort=None, title=None),
            x=alt.X("amount:Q", title="Amount", axis=alt.Axis(format=",")),
            color=alt.Color(
                "direction:N",
                scale=alt.Scale(domain=[r[0] for r in rows], range=[r[3] for r in rows]),
                legend=None,
            ),
            tooltip=["direction", alt.Tooltip("amount:Q", format=",")],
        )
        .properties(width=span, height=target.inner_height)
    )
    return _drawing(kind, target, marks, chart)


# ---------------- Pass / fail pie ----------------

def _point(cx: float, cy: float, radius: float, angle: float) -> Tuple[float, float]:
    return _px(cx + radius * math.cos(angle)), _px(cy + radius * math.sin(angle))


def pie_slice_path(cx: float, cy: float, radius: float, start: float, end: float) -> Tuple[str, int]:
    """SVG path for a slice from ``start`` to ``end`` radians; returns (path, large_arc flag)."""
    sweep = end - start
    x1, y1 = _point(cx, cy, radius, start)
    if sweep >= 2 * math.pi - 1e-9:
        # A single arc cannot start and end on the same point
        xm, ym = _point(cx, cy, radius, start + math.pi)
        path = f"M {_px(cx)} {_px(cy)} L {x1} {y1} A {radius} {radius} 0 0 1 {xm} {ym} A {radius} {radius} 0 0 1 {x1} {y1} Z"
        return path, 0
    large_arc = 1 if sweep > math.pi else 0
    x2, y2 = _point(cx, cy, radius, end)
    path = f"M {_px(cx)} {_px(cy)} L {x1} {y1} A {radius} {radius} 0 {large_arc} 1 {x2} {y2} Z"
    return path, large_arc


def render_pass_fail(passed: int, failed: int, target: Optional[ChartTarget] = None, *, radius: float = PIE_RADIUS) -> Drawing:
    kind = "pass_fail"
    target = _target(kind, target)
    passed = max(int(passed or 0), 0)
    failed = max(int(failed or 0), 0)
    total = passed + failed
    if total == 0:
        return placeholder_drawing(kind, target, "No project data")

    cx, cy = target.width / 2, target.height / 2
    passed_angle = passed / total * 2 * math.pi
    slices = (
        ("Passed", passed, 0.0, passed_angle, CHART_COLORS["success"]),
        ("Failed", failed, passed_angle, 2 * math.pi, CHART_COLORS["danger"]),
    )
    marks: List[Mark] = []
    rows: List[Dict[str, Any]] = []
    for label, count, start, end, color in slices:
        if count <= 0:
            continue
        path, large_arc = pie_slice_path(cx, cy, radius, start, end)
        tooltip = f"{label}: {count} ({_percent(count, total)}%)"
        marks.append(
            {
                "type": "path",
                "d": path,
                "large_arc": large_arc,
                "start_angle": start,
                "end_angle": end,
                "fill": color,
                "stroke": "white",
                "tooltip": tooltip,
            }
        )
        rows.append({"status": label, "count": count, "start_angle": start, "end_angle": end, "tooltip": tooltip})
    marks.append({"type": "text", "x": _px(cx), "y": _px(cy - 5), "anchor": "middle", "text": f"{_percent(passed, total)}%"})
    marks.append({"type": "text", "x": _px(cx), "y": _px(cy + 15), "anchor": "middle", "text": "Pass Rate"})

    chart = (
        alt.Chart(pd.DataFrame(rows))
        .mark_arc(outerRadius=radius, stroke="white")
        .encode(
            theta=alt.Theta("start_angle:Q", scale=None),
            theta2=alt.Theta2("end_angle:Q"),
            color=alt.Color(
                "status:N",
                scale=alt.Scale(domain=["Passed", "Failed"], range=[CHART_COLORS["success"], CHART_COLORS["danger"]]),
                title="Projects",
            ),
            tooltip=[alt.Tooltip("tooltip:N", title="Share")],
        )
        .properties(width=target.width, height=target.height)
    )
    return _drawing(kind, target, marks, chart)


# ---------------- Top projects by XP ----------------

def render_top_projects(
    groups: Optional[Sequence[Mapping[str, Any]]],
    target: Optional[ChartTarget] = None,
    *,
    top_n: Optional[int] = None,
) -> Drawing:
    """Vertical bars for already grouped ``{name, xp}`` rows, scaled to the largest one shown.

    ``top_n`` can only narrow the rows; the dataset already holds at most the
    number of projects it was built with.
    """
    kind = "top_projects"
    target = _target(kind, target)
    rows = [
        {"name": str(g.get("name") or "Unknown"), "xp": as_float(g.get("xp")) or 0.0}
        for g in (groups or [])
        if isinstance(g, Mapping)
    ]
    if top_n is not None:
        rows = rows[: max(top_n, 0)]
    peak = max((r["xp"] for r in rows), default=0.0)
    if not rows or peak <= 0:
        return placeholder_drawing(kind, target, "No project data to display")

    left, top = target.margins.left, target.margins.top
    width, height = target.inner_width, target.inner_height
    bar_width = max(width / len(rows) - 10, 1)
    marks: List[Mark] = []
    for i, row in enumerate(rows):
        bar_height = row["xp"] / peak * height
        x = left + i * (bar_width + 10)
        y = top + height - bar_height
        marks.append(
            {
                "type": "rect",
                "x": _px(x),
                "y": _px(y),
                "width": _px(bar_width),
                "height": _px(bar_height),
                "fill": CHART_COLORS["primary"],
                "tooltip": f"{row['name']}: {format_xp(row['xp'])}",
            }
        )
        marks.append({"type": "text", "x": _px(x + bar_width / 2), "y": _px(top + height + 15), "rotate": 45, "text": _truncate(row["name"])})
        marks.append({"type": "text", "x": _px(x + bar_width / 2), "y": _px(y - 5), "anchor": "middle", "text": format_xp(row["xp"])})

    chart = (
        alt.Chart(pd.DataFrame(rows))
        .mark_bar(color=CHART_COLORS["primary"])
        .encode(
            x=alt.X("name:N", sort=None, title="Project", axis=alt.Axis(labelAngle=45)),
            y=alt.Y("xp:Q", title="XP Earned", axis=alt.Axis(format=",")),
            tooltip=["name", alt.Tooltip("xp:Q", format=",")],
        )
        .properties(width=width, height=height)
    )
    return _drawing(kind, target, marks, chart)


# ---------------- Skills ----------------

def render_skills(skills: Optional[Sequence[Any]], target: Optional[ChartTarget] = None, *, top_n: int = 5) -> Drawing:
    """Horizontal bars for the top ranked skills; accepts ``Skill`` objects or ``{name, magnitude}`` rows."""
    kind = "skills"
    target = _target(kind, target)
    rows: List[Dict[str, Any]] = []
    for s in skills or []:
        if isinstance(s, Mapping):
            name, magnitude = s.get("name"), s.get("magnitude")
        else:
            name, magnitude = getattr(s, "name", None), getattr(s, "magnitude", None)
        if not name:
            continue
        rows.append({"name": str(name), "magnitude": as_float(magnitude) or 0.0})
    rows = sorted(rows, key=lambda r: (-r["magnitude"], r["name"]))[: max(1, int(top_n))]
    peak = max((r["magnitude"] for r in rows), default=0.0)
    if not rows or peak <= 0:
        return placeholder_drawing(kind, target, "Skills data will appear here as you complete more projects!")

    left, top = target.margins.left, target.margins.top
    width, height = target.inner_width, target.inner_height
    bar_height = max(height / len(rows) - 10, 1)
    marks: List[Mark] = []
    for i, row in enumerate(rows):
        y = top + i * (bar_height + 10)
        bar_width = row["magnitude"] / peak * width
        value = as_number(row["magnitude"])
        marks.append(
            {
                "type": "rect",
                "x": left,
                "y": _px(y),
                "width": _px(bar_width),
                "height": _px(bar_height),
                "fill": CHART_COLORS["info"],
                "tooltip": f"{row['name']}: {value}",
            }
        )
        marks.append({"type": "text", "x": left - 5, "y": _px(y + bar_height / 2 + 5), "anchor": "end", "text": row["name"]})
        marks.append({"type": "text", "x": _px(left + bar_width + 5), "y": _px(y + bar_height / 2 + 5), "text": str(value)})

    chart = (
        alt.Chart(pd.DataFrame(rows))
        .mark_bar(color=CHART_COLORS["info"])
        .encode(
            y=alt.Y("name:N", sort=None, title=None),
            x=alt.X("magnitude:Q", title="Level"),
            tooltip=["name", "magnitude"],
        )
        .properties(width=width, height=height)
    )
    return _drawing(kind, target, marks, chart)


# ---------------- Piscine tracks ----------------

def render_piscine(stats: Optional[Sequence[Mapping[str, Any]]], target: Optional[ChartTarget] = None) -> Drawing:
    """Grouped passed/failed/total bars per track, each group scaled to its own total."""
    kind = "piscine"
    target = _target(kind, target)
    tracks = []
    for s in stats or []:
        if not isinstance(s, Mapping):
            continue
        total = int(as_float(s.get("total")) or 0)
        if total <= 0:
            continue
        tracks.append(
            {
                "track": str(s.get("track")),
                "passed": int(as_float(s.get("passed")) or 0),
                "failed": int(as_float(s.get("failed")) or 0),
                "total": total,
            }
        )
    if not tracks:
        return placeholder_drawing(kind, target, "No piscine data found")

    left, top = target.margins.left, target.margins.top
    width, height = target.inner_width, target.inner_height
    group_width = width / len(tracks)
    bar_width = max(group_width / 3 - 5, 1)
    full = height * TRACK_BAR_SCALE
    base = top + height

    marks: List[Mark] = []
    rows: List[Dict[str, Any]] = []
    for i, t in enumerate(tracks):
        group_x = left + i * group_width
        bars = (
            ("Passed", t["passed"], CHART_COLORS["success"]),
            ("Failed", t["failed"], CHART_COLORS["danger"]),
            ("Total", t["total"], CHART_COLORS["dark"]),
        )
        for j, (metric, count, color) in enumerate(bars):
            share = count / t["total"]
            bar_height = share * full
            mark: Mark = {
                "type": "rect",
                "group": t["track"],
                "metric": metric,
                "x": _px(group_x + j * (bar_width + 5)),
                "y": _px(base - bar_height),
                "width": _px(bar_width),
                "height": _px(bar_height),
                "tooltip": (
                    f"{t['track']} Total: {t['total']}"
                    if metric == "Total"
                    else f"{t['track']} {metric}: {count}/{t['total']} ({_percent(count, t['total'])}%)"
                ),
            }
            if metric == "Total":
                mark.update({"fill": "none", "stroke": color, "dash": "5,5"})
            else:
                mark["fill"] = color
            marks.append(mark)
            rows.append({"track": t["track"], "metric": metric, "count": count, "share": share})
        marks.append({"type": "text", "x": _px(group_x + group_width / 2), "y": _px(base + 20), "anchor": "middle", "text": t["track"]})
        marks.append(
            {
                "type": "text",
                "x": _px(group_x + group_width / 2),
                "y": _px(base + 40),
                "anchor": "middle",
                "text": f"{t['passed']}P / {t['failed']}F / {t['total']}T",
            }
        )

    metrics = ["Passed", "Failed", "Total"]
    chart = (
        alt.Chart(pd.DataFrame(rows))
        .mark_bar()
        .encode(
            x=alt.X("track:N", sort=None, title=None),
            xOffset=alt.XOffset("metric:N", sort=metrics),
            y=alt.Y("share:Q", title="Success Rate", axis=alt.Axis(format=".0%"), scale=alt.Scale(domain=[0, 1])),
            color=alt.Color(
                "metric:N",
                sort=metrics,
                scale=alt.Scale(
                    domain=metrics,
                    range=[CHART_COLORS["success"], CHART_COLORS["danger"], CHART_COLORS["dark"]],
                ),
            ),
            tooltip=["track", "metric", "count", alt.Tooltip("share:Q", format=".0%")],
        )
        .properties(width=width, height=height)
    )
    return _drawing(kind, target, marks, chart)


CHART_KINDS: Tuple[str, ...] = tuple(DEFAULT_TARGETS)


def render_chart(dataset: ProfileDataset, kind: str, options: Optional[DashboardOptions] = None) -> Drawing:
    options = options or default_options()
    if kind == "xp_progress":
        return render_xp_progress(dataset.transactions)
    if kind == "audit":
        return render_audit_bars(dataset.audit_given, dataset.audit_received)
    if kind == "pass_fail":
        return render_pass_fail(dataset.passed, dataset.failed)
    if kind == "top_projects":
        return render_top_projects(dataset.xp_by_project, top_n=options.top_n_projects)
    if kind == "skills":
        return render_skills(dataset.skills, top_n=options.top_n_skills)
    if kind == "piscine":
        return render_piscine(dataset.piscine)
    raise KeyError(kind)


def render_dashboard(dataset: ProfileDataset, options: Optional[DashboardOptions] = None) -> Dict[str, Drawing]:
    """Every chart for one dataset, keyed by kind. Each renderer runs independently."""
    return {kind: render_chart(dataset, kind, options) for kind in CHART_KINDS}
