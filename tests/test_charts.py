import copy
import math

import pytest

from profile_core.charts import (
    CHART_KINDS,
    DEFAULT_TARGETS,
    ChartTarget,
    Margins,
    pie_slice_path,
    render_audit_bars,
    render_chart,
    render_dashboard,
    render_pass_fail,
    render_piscine,
    render_skills,
    render_top_projects,
    render_xp_progress,
)
from profile_core.data import RawRecords
from profile_core.dataset import build_dataset
from profile_core.filters import DashboardOptions
from profile_core.skills import Skill

EVENTS = [
    {"type": "xp", "amount": 1000, "createdAt": "2024-01-01T00:00:00Z", "path": "/school/a"},
    {"type": "xp", "amount": 2000, "createdAt": "2024-01-11T00:00:00Z", "path": "/school/b"},
]


def _rects(drawing, **match):
    return [m for m in drawing.marks if m["type"] == "rect" and all(m.get(k) == v for k, v in match.items())]


def test_xp_progress_single_point_is_placeholder():
    drawing = render_xp_progress(EVENTS[:1])
    assert drawing.is_placeholder
    assert drawing.marks[0]["type"] == "text"
    assert drawing.spec["mark"]["type"] == "text"


@pytest.mark.parametrize(
    "events",
    [
        [],
        None,
        [dict(EVENTS[0]), dict(EVENTS[0])],
        [{"amount": 0, "createdAt": "2024-01-01T00:00:00Z"}, {"amount": 0, "createdAt": "2024-01-02T00:00:00Z"}],
    ],
)
def test_xp_progress_degenerate_inputs(events):
    assert render_xp_progress(events).is_placeholder


def test_xp_progress_maps_time_and_cumulative_into_plot_area():
    target = ChartTarget("c", 600, 300, Margins(top=20, right=30, bottom=40, left=60))
    drawing = render_xp_progress(list(reversed(EVENTS)), target)
    assert not drawing.is_placeholder
    path = drawing.marks[0]
    assert path["type"] == "path"
    assert path["d"] == "M 60.0 180.0 L 570.0 20.0"
    points = [m for m in drawing.marks if m["type"] == "circle"]
    assert [(p["cx"], p["cy"]) for p in points] == [(60.0, 180.0), (570.0, 20.0)]
    assert "XP: 3 kB" in points[1]["tooltip"]
    assert drawing.spec["mark"]["type"] == "line"


def test_audit_bars_scale_against_their_max():
    drawing = render_audit_bars(300, 150)
    given, received = _rects(drawing)
    assert given["width"] == 360.0
    assert received["width"] == 180.0
    assert given["y"] == 60.0 and received["y"] == 120.0
    assert render_audit_bars(0, 0).placeholder == "No audit data available"


def test_pass_fail_large_arc_flag():
    drawing = render_pass_fail(3, 1)
    passed, failed = [m for m in drawing.marks if m["type"] == "path"]
    assert passed["large_arc"] == 1
    assert failed["large_arc"] == 0
    assert math.isclose(passed["end_angle"], 1.5 * math.pi)
    assert passed["tooltip"] == "Passed: 3 (75%)"
    texts = [m["text"] for m in drawing.marks if m["type"] == "text"]
    assert "75%" in texts


def test_pass_fail_full_circle_and_empty():
    drawing = render_pass_fail(4, 0)
    slices = [m for m in drawing.marks if m["type"] == "path"]
    assert len(slices) == 1
    assert slices[0]["d"].count(" A ") == 2
    assert render_pass_fail(0, 0).is_placeholder


def test_pie_slice_path_half_turn_is_not_large():
    path, large_arc = pie_slice_path(100, 100, 80, 0, math.pi)
    assert large_arc == 0
    assert path.startswith("M 100.0 100.0 L 180.0 100.0 A 80 80 0 0 1 20.0 ")


def test_top_projects_bars_relative_to_displayed_max():
    groups = [{"name": "big-project-with-long-name", "xp": 400}, {"name": "small", "xp": 100}]
    drawing = render_top_projects(groups)
    big, small = _rects(drawing)
    plot_height = DEFAULT_TARGETS["top_projects"].inner_height
    assert big["height"] == plot_height
    assert small["height"] == plot_height / 4
    labels = [m["text"] for m in drawing.marks if m.get("rotate") == 45]
    assert labels[0] == "big-project-wit..."
    assert render_top_projects([]).is_placeholder


def test_skills_chart_takes_top_n():
    skills = [Skill(f"s{i}", i) for i in range(1, 9)]
    drawing = render_skills(skills, top_n=3)
    bars = _rects(drawing)
    assert [b["tooltip"] for b in bars] == ["s8: 8", "s7: 7", "s6: 6"]
    assert bars[0]["width"] == DEFAULT_TARGETS["skills"].inner_width
    assert render_skills([]).is_placeholder


def test_piscine_normalises_each_bucket_independently():
    alone = render_piscine([{"track": "Go", "passed": 4, "failed": 6, "total": 10}])
    together = render_piscine(
        [
            {"track": "JavaScript", "passed": 900, "failed": 100, "total": 1000},
            {"track": "Go", "passed": 4, "failed": 6, "total": 10},
        ]
    )
    plot_height = DEFAULT_TARGETS["piscine"].inner_height

    def heights(drawing, track):
        return {m["metric"]: m["height"] for m in _rects(drawing, group=track)}

    assert heights(alone, "Go") == heights(together, "Go")
    go = heights(together, "Go")
    assert go["Total"] == pytest.approx(plot_height * 0.8)
    assert go["Passed"] == pytest.approx(plot_height * 0.8 * 0.4, abs=0.01)
    assert render_piscine([]).is_placeholder


def test_renderers_are_idempotent_and_do_not_mutate_input():
    events = copy.deepcopy(EVENTS)
    first = render_xp_progress(events)
    second = render_xp_progress(events)
    assert first == second
    assert events == EVENTS

    stats = [{"track": "Go", "passed": 1, "failed": 1, "total": 2}]
    assert render_piscine(stats).to_dict() == render_piscine(stats).to_dict()
    assert stats == [{"track": "Go", "passed": 1, "failed": 1, "total": 2}]


def test_render_dashboard_covers_every_kind():
    records = RawRecords(
        transactions=tuple(EVENTS),
        audits=({"type": "up", "amount": 10}, {"type": "down", "amount": 5}),
        progress=({"grade": 1, "path": "/piscine-go/a"}, {"grade": 0, "path": "/piscine-js/b"}),
    )
    dataset = build_dataset(records, 1)
    drawings = render_dashboard(dataset, DashboardOptions(top_n_skills=2))
    assert set(drawings) == set(CHART_KINDS)
    assert not any(d.is_placeholder for d in drawings.values())
    assert drawings["piscine"].container == DEFAULT_TARGETS["piscine"].container
    assert render_chart(dataset, "audit").to_dict() == drawings["audit"].to_dict()
    with pytest.raises(KeyError):
        render_chart(dataset, "radar")


def test_top_projects_cap_applies_at_render_time():
    dataset = build_dataset(RawRecords(transactions=tuple(EVENTS)), 1)
    assert len(dataset.xp_by_project) == 2
    drawing = render_chart(dataset, "top_projects", DashboardOptions(top_n_projects=1))
    bars = _rects(drawing)
    assert len(bars) == 1
    assert bars[0]["tooltip"].startswith("b:")
    assert len(_rects(render_top_projects(dataset.xp_by_project))) == 2
