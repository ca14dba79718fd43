import textwrap

from program_timeline.__main__ import main

PROGRAM_YAML = textwrap.dedent(
    """
    program: {code: T, name: Test}
    periods:
      - {id: P1, start: 2025-08-25, end: 2025-10-24, lecture_end: 2025-10-17,
         exam_start: 2025-10-20, exam_end: 2025-10-24,
         re_exam_start: 2026-01-07, re_exam_end: 2026-01-13}
      - {id: P2, start: 2025-10-27, end: 2026-01-16, lecture_end: 2026-01-09,
         exam_start: 2026-01-10, exam_end: 2026-01-16,
         re_exam_start: 2026-03-30, re_exam_end: 2026-04-03}
    courses:
      - {code: A, name: Alpha, period_credits: {P1: 7.5}}
      - {code: B, name: Beta, period_credits: {P2: 7.5}, prerequisites: [A, MISSING]}
    """
)


def test_cli_renders_program(tmp_path):
    program = tmp_path / "program.yaml"
    program.write_text(PROGRAM_YAML, encoding="utf-8")
    out_file = tmp_path / "out" / "timeline.svg"

    code = main([str(program), "--out", str(out_file), "--no-view", "--hide", "exams"])

    assert code == 0
    assert out_file.stat().st_size > 0


def test_cli_reports_validation_errors(tmp_path, capsys):
    program = tmp_path / "program.yaml"
    program.write_text("program: {code: T}\nperiods: []\ncourses: []\n", encoding="utf-8")

    code = main([str(program), "--out", str(tmp_path / "x.svg"), "--no-view"])

    assert code == 2
    assert "Error: program: missing required field 'name'" in capsys.readouterr().err


def test_cli_reports_bad_calendar(tmp_path, capsys):
    program = tmp_path / "program.yaml"
    program.write_text("program: {code: T, name: T}\nperiods: []\ncourses: []\n", encoding="utf-8")

    code = main([str(program), "--out", str(tmp_path / "x.svg"), "--no-view"])

    assert code == 2
    assert "at least one period" in capsys.readouterr().err


def test_cli_missing_file(tmp_path, capsys):
    code = main([str(tmp_path / "nope.yaml"), "--no-view"])

    assert code == 1
    assert "program file not found" in capsys.readouterr().err
