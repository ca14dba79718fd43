from conftest import make_course
from program_timeline.layout import build_layout
from program_timeline.models import CourseGroup, LayerVisibility, Viewport
from program_timeline.render_timeline import COURSE_PALETTES, render_timeline


def _layout(program_factory, layers=LayerVisibility()):
    program = program_factory(
        make_course("DD1310", (1, "P1", 7.5), exams=["P1"], reexams=["P1"]),
        make_course("SF1625", (1, "P1", 3), (1, "P2", 4.5), prerequisites=["DD1310"]),
        make_course("DD1320", (2, "P3", 6), participation=["SF1625"], prerequisites=["DD1310"]),
    )
    return build_layout(program, Viewport(900, 400), layers=layers)


def test_renderer_produces_svg(tmp_path, program_factory):
    out_file = tmp_path / "chart.svg"

    render_timeline(_layout(program_factory), out_path=str(out_file), title="Program timeline")

    assert out_file.exists()
    assert out_file.stat().st_size > 0
    assert "<svg" in out_file.read_text(encoding="utf-8")


def test_renderer_skips_hidden_layers(tmp_path, program_factory):
    hidden = LayerVisibility(
        course_bars=False,
        prereq_completed=False,
        prereq_participation=False,
        exams=False,
        reexams=False,
        study_periods=False,
    )
    out_file = tmp_path / "nested" / "chart.png"

    render_timeline(_layout(program_factory, hidden), out_path=str(out_file))

    assert out_file.exists()
    assert out_file.stat().st_size > 0


def test_renderer_colours_bars_by_course_group(tmp_path, program_factory):
    program = program_factory(
        make_course("DD1310", (1, "P1", 7.5), (1, "P2", 3), exams=["P1"], brief_name="Prog"),
        make_course("SF1625", (1, "P2", 7.5), reexams=["P2"], prerequisites=["DD1310"]),
        make_course("ME1003", (1, "P3", 6)),
    )
    program.groups = [CourseGroup("Maths", "brick", ["SF1625"]), CourseGroup("CS", "turquoise", ["DD1310"])]
    layout = build_layout(program, Viewport(900, 400))
    out_file = tmp_path / "grouped.svg"

    render_timeline(layout, out_path=str(out_file))

    svg = out_file.read_text(encoding="utf-8").upper()
    for style in {bar.style_class for bar in layout.bars}:
        fill, stroke, _ = COURSE_PALETTES[style]
        assert fill.upper() in svg
        assert stroke.upper() in svg
