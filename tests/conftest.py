import datetime as dt

import pytest

from program_timeline.models import Course, CourseCredit, PeriodDefinition, Program


def make_period(period_id: str, start: dt.date) -> PeriodDefinition:
    return PeriodDefinition(
        id=period_id,
        start=start,
        end=start + dt.timedelta(days=63),
        lecture_end=start + dt.timedelta(days=49),
        exam_start=start + dt.timedelta(days=50),
        exam_end=start + dt.timedelta(days=56),
        re_exam_start=start + dt.timedelta(days=57),
        re_exam_end=start + dt.timedelta(days=63),
    )


def make_course(code: str, *slots, prerequisites=(), participation=(), **kwargs) -> Course:
    """Build a course from (year, period_id, credits) triples."""
    return Course(
        code=code,
        name=f"Course {code}",
        credits=[CourseCredit(year=year, period_id=period_id, credits=credits) for year, period_id, credits in slots],
        prerequisites_completed=list(prerequisites),
        prerequisites_participation=list(participation),
        **kwargs,
    )


@pytest.fixture
def periods() -> list[PeriodDefinition]:
    first = dt.date(2024, 9, 2)
    return [make_period(f"P{idx + 1}", first + dt.timedelta(days=70 * idx)) for idx in range(4)]


@pytest.fixture
def program_factory(periods):
    def _make(*courses: Course) -> Program:
        return Program(code="TEST", name="Test programme", periods=periods, courses=list(courses))

    return _make
