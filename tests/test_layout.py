import pytest

from conftest import make_course
from program_timeline.layout import TimelineEngine, build_layout, period_backgrounds
from program_timeline.models import CourseGroup, LayerVisibility, LayoutConfig, Viewport
from program_timeline.time_grid import LayoutConfigurationError, TimeGrid


def _sample_program(program_factory):
    return program_factory(
        make_course("DD1310", (1, "P1", 7.5), exams=["P1"], reexams=["P1"]),
        make_course("SF1625", (1, "P1", 3), (1, "P2", 4.5), prerequisites=["DD1310"], exams=["P2"]),
        make_course("DD1320", (1, "P3", 6), prerequisites=["DD1310"], participation=["SF1625"]),
        make_course("DD2350", (2, "P1", 6), prerequisites=["DD1320", "SF1625"], exams_by_year={2: []}, exams=["P1"]),
    )


def test_build_layout_is_idempotent(program_factory):
    program = _sample_program(program_factory)
    viewport = Viewport(1000, 500)

    assert build_layout(program, viewport) == build_layout(program, viewport)


def test_layer_toggle_reuses_baseline_and_geometry(program_factory):
    engine = TimelineEngine(_sample_program(program_factory))
    viewport = Viewport(1000, 500)

    full = engine.layout(viewport)
    baseline = engine.baseline
    hidden = engine.layout(viewport, LayerVisibility(course_bars=False, prereq_participation=False))

    assert engine.baseline is baseline
    assert hidden.bars == full.bars
    assert hidden.arrows == full.arrows
    assert hidden.layers.course_bars is False


def test_viewport_change_recomputes_baseline(program_factory):
    engine = TimelineEngine(_sample_program(program_factory))

    small = engine.layout(Viewport(1000, 400))
    large = engine.layout(Viewport(1000, 800))

    assert large.baseline.px_per_credit > small.baseline.px_per_credit
    assert engine.baseline == large.baseline


def test_set_program_invalidates_baseline(program_factory):
    engine = TimelineEngine(_sample_program(program_factory))
    engine.layout(Viewport(1000, 500))

    engine.set_program(program_factory(make_course("X", (3, "P1", 5))))

    assert engine.baseline is None
    assert engine.layout(Viewport(1000, 500)).baseline.num_years == 3


def test_grown_height_does_not_feed_back_into_bar_size(program_factory):
    crowded = program_factory(*(make_course(f"C{idx}", (1, "P1", 10)) for idx in range(6)))
    engine = TimelineEngine(crowded)
    viewport = Viewport(1000, 300)

    first = engine.layout(viewport)
    second = engine.layout(viewport, LayerVisibility(exams=False))

    assert first.height > viewport.height
    assert second.baseline.px_per_credit == pytest.approx(300 / 15)
    assert [bar.height for bar in second.bars] == [bar.height for bar in first.bars]


def test_exam_markers_follow_exam_windows(program_factory, periods):
    program = _sample_program(program_factory)

    layout = build_layout(program, Viewport(1000, 500))

    grid = TimeGrid(periods, 1000)
    markers = {(m.course_id, m.period_id, m.kind): m for m in layout.markers}
    assert set(markers) == {("DD1310", "P1", "exam"), ("DD1310", "P1", "reexam"), ("SF1625", "P2", "exam")}
    exam = markers[("DD1310", "P1", "exam")]
    bar = next(b for b in layout.bars if b.course_id == "DD1310")
    assert exam.x == pytest.approx(grid.midpoint(periods[0].exam_start, periods[0].exam_end))
    assert exam.y == pytest.approx(bar.y_center)
    assert markers[("DD1310", "P1", "reexam")].style_class == "reexam-dot"


def test_period_backgrounds_extend_beyond_chart(periods):
    grid = TimeGrid(periods, 1000)

    backgrounds = period_backgrounds(grid, 400, LayoutConfig())

    assert len(backgrounds) == 3 * len(periods)
    assert {bg.kind for bg in backgrounds} == {"study-period", "exam-period", "reexam-period"}
    assert all(bg.y == -10 and bg.height == 420 for bg in backgrounds)


def test_layout_collects_every_element(program_factory):
    layout = build_layout(_sample_program(program_factory), Viewport(1000, 500))

    assert len(layout.bars) == 5
    assert len(layout.connectors) == 1
    assert len(layout.arrows) == 5
    assert [label for label, _ in layout.period_labels] == ["P1", "P2", "P3", "P4"]
    assert len(layout.bands) == 2


def test_bad_calendar_is_fatal(program_factory, periods):
    program = program_factory(make_course("A", (1, "P1", 5)))
    program.periods = list(reversed(periods))

    with pytest.raises(LayoutConfigurationError):
        build_layout(program, Viewport(1000, 500))


def test_totals_use_real_credits(program_factory):
    program = program_factory(
        make_course("A", (1, "P1", 1), (1, "P2", 0.5)),
        make_course("B", (1, "P3", 5), prerequisites=["A"]),
    )

    assert program.course("A").total_credits == pytest.approx(1.5)
    assert program.dependents("A") == ["B"]


def test_degenerate_viewport_is_clamped(program_factory):
    layout = build_layout(_sample_program(program_factory), Viewport(0, -20))

    assert layout.width == LayoutConfig().min_size
    assert layout.baseline.viewport_height == LayoutConfig().min_size
    assert len(layout.bars) == 5
    assert all(bar.width >= LayoutConfig().min_size for bar in layout.bars)


def test_repeated_credit_entries_merge_into_one_bar(program_factory):
    program = program_factory(
        make_course("A", (1, "P1", 3), (1, "P1", 4.5), (1, "P2", 2), exams=["P1"], reexams=["P1"]),
    )

    layout = build_layout(program, Viewport(1000, 500))

    assert [(bar.period_id, bar.credits) for bar in layout.bars] == [("P1", 7.5), ("P2", 2.0)]
    assert [(m.period_id, m.kind) for m in layout.markers] == [("P1", "exam"), ("P1", "reexam")]
    assert program.course("A").total_credits == pytest.approx(9.5)


def _grouped_program(program_factory):
    program = program_factory(
        make_course("DD1310", (1, "P1", 3), (1, "P2", 4.5), exams=["P2"], brief_name="Prog"),
        make_course("DD1320", (1, "P3", 6), prerequisites=["DD1310"]),
        make_course("SF1625", (1, "P1", 7.5), exams=["P1"]),
        make_course("SF1624", (1, "P2", 7.5)),
    )
    program.groups = [
        CourseGroup("Computer science", "blue", ["DD1310", "DD1320"]),
        CourseGroup("Mathematics", "green", ["SF1625"]),
        CourseGroup("Other", "yellow", ["DD1320"]),
    ]
    return program


def test_course_style_follows_group_order(program_factory):
    program = _grouped_program(program_factory)

    assert program.course_style("DD1310") == "course-blue-0"
    assert program.course_style("DD1320") == "course-blue-1"
    assert program.course_style("SF1625") == "course-green-0"
    assert program.course_style("SF1624") == "course-default"


def test_course_style_wraps_around_family_tones(program_factory):
    program = program_factory()
    program.groups = [CourseGroup("Maths", "green", ["A", "B", "C"])]

    assert [program.course_style(code) for code in "ABC"] == ["course-green-0", "course-green-1", "course-green-0"]


def test_bars_connectors_and_markers_carry_course_style(program_factory):
    layout = build_layout(_grouped_program(program_factory), Viewport(1000, 500))

    bars = {bar.key: bar for bar in layout.bars}
    assert bars[("DD1310", 1, "P1")].style_class == "course-blue-0"
    assert bars[("DD1310", 1, "P1")].label == "Prog"
    assert bars[("DD1320", 1, "P3")].style_class == "course-blue-1"
    assert bars[("DD1320", 1, "P3")].label == "Course DD1320"
    assert bars[("SF1624", 1, "P2")].style_class == "course-default"
    (connector,) = layout.connectors
    assert connector.style_class == "course-blue-0"
    markers = {(m.course_id, m.period_id): m for m in layout.markers}
    assert markers[("DD1310", "P2")].course_style == "course-blue-0"
    assert markers[("SF1625", "P1")].course_style == "course-green-0"
    assert markers[("SF1625", "P1")].style_class == "exam-dot"
