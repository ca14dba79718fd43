from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal


PrerequisiteKind = Literal["completion", "participation"]
"""Prerequisite flavours: the source course must be passed, or merely attended."""

SegmentType = Literal["horizontal", "vertical"]
SegmentRole = Literal["trunk", "start", "end"]
"""Trunk is the horizontal corridor run; start/end are the verticals beside source and target bars."""

MarkerKind = Literal["exam", "reexam"]
BackgroundKind = Literal["study-period", "exam-period", "reexam-period"]

ColorFamily = Literal["blue", "green", "turquoise", "brick", "yellow"]
"""Colour families a course group can draw from; each has a fixed number of tones."""

COLOR_FAMILY_VARIANTS: dict[str, int] = {"blue": 3, "green": 2, "turquoise": 2, "brick": 2, "yellow": 2}
DEFAULT_COURSE_STYLE = "course-default"

Instant = date | datetime
Point = tuple[float, float]


@dataclass(frozen=True)
class PeriodDefinition:
    """One academic sub-term with its study, exam and re-exam windows."""

    id: str
    start: Instant
    end: Instant
    lecture_end: Instant
    exam_start: Instant
    exam_end: Instant
    re_exam_start: Instant
    re_exam_end: Instant


@dataclass
class CourseCredit:
    """Credits a course awards in one period of one study year."""

    year: int
    period_id: str
    credits: float


@dataclass
class Course:
    """A course of the program together with its credit allocation and prerequisites."""

    code: str
    name: str
    credits: list[CourseCredit] = field(default_factory=list)
    prerequisites_completed: list[str] = field(default_factory=list)
    prerequisites_participation: list[str] = field(default_factory=list)
    brief_name: str | None = None
    exams: list[str] = field(default_factory=list)
    reexams: list[str] = field(default_factory=list)
    exams_by_year: dict[int, list[str]] | None = None
    reexams_by_year: dict[int, list[str]] | None = None
    meta: dict[str, Any] | None = None

    @property
    def total_credits(self) -> float:
        """Real credit sum across all slots; never clamped to the height floor."""
        return sum(credit.credits for credit in self.credits)

    @property
    def label(self) -> str:
        return self.brief_name or self.name

    def slots(self) -> list["CourseCreditSlot"]:
        """One slot per (year, period); repeated entries for the same cell are summed."""
        merged: dict[tuple[int, str], float] = {}
        for c in self.credits:
            merged[(c.year, c.period_id)] = merged.get((c.year, c.period_id), 0.0) + c.credits
        return [CourseCreditSlot(self.code, year, period_id, credits) for (year, period_id), credits in merged.items()]

    def has_exam(self, year: int, period_id: str, kind: MarkerKind = "exam") -> bool:
        """Whether the course examines in the given period, honouring per-year overrides."""
        by_year = self.exams_by_year if kind == "exam" else self.reexams_by_year
        default = self.exams if kind == "exam" else self.reexams
        if by_year is not None and year in by_year:
            return period_id in by_year[year]
        return period_id in default


@dataclass
class CourseGroup:
    """Named set of courses drawn in tones of one colour family."""

    name: str
    color_family: ColorFamily
    courses: list[str] = field(default_factory=list)
    name_en: str | None = None


@dataclass
class Program:
    """Root container: the period calendar plus every course of the program."""

    code: str
    name: str
    periods: list[PeriodDefinition] = field(default_factory=list)
    courses: list[Course] = field(default_factory=list)
    meta: dict[str, Any] | None = None
    groups: list[CourseGroup] = field(default_factory=list)

    def group_of(self, code: str) -> CourseGroup | None:
        """First group listing the course, if any."""
        for group in self.groups:
            if code in group.courses:
                return group
        return None

    def course_style(self, code: str) -> str:
        """
        Style class of a course's bars, e.g. `course-blue-1`.

        The tone is the course's position in its group, wrapped around the
        family's tones; ungrouped courses get the default style.
        """
        group = self.group_of(code)
        if group is None:
            return DEFAULT_COURSE_STYLE
        variant = group.courses.index(code) % COLOR_FAMILY_VARIANTS[group.color_family]
        return f"course-{group.color_family}-{variant}"

    def course(self, code: str) -> Course | None:
        for course in self.courses:
            if course.code == code:
                return course
        return None

    def dependents(self, code: str) -> list[str]:
        """Codes of courses listing `code` as a prerequisite of either kind."""
        return [
            course.code
            for course in self.courses
            if code in course.prerequisites_completed or code in course.prerequisites_participation
        ]

    def slots(self) -> list["CourseCreditSlot"]:
        """Every credit slot in course order, then slot order."""
        return [slot for course in self.courses for slot in course.slots()]


@dataclass(frozen=True)
class CourseCreditSlot:
    course_id: str
    year: int
    period_id: str
    credits: float


@dataclass(frozen=True)
class Viewport:
    """Measured drawing area in pixels, excluding outer margins."""

    width: float
    height: float


@dataclass(frozen=True)
class LayerVisibility:
    """Toggleable visual layers; carried to the renderer, never used for geometry."""

    exams: bool = True
    reexams: bool = True
    prereq_completed: bool = True
    prereq_participation: bool = True
    course_bars: bool = True
    study_periods: bool = True
    exam_periods: bool = True
    reexam_periods: bool = True


@dataclass(frozen=True)
class LayoutConfig:
    """Pixel and credit constants of the layout engine."""

    year_gap: float = 58.0
    stack_gap: float = 4.0
    min_credits_for_height: float = 2.0
    credits_per_full_band: float = 15.0
    bar_inset: float = 2.0
    connector_radius: float = 4.0
    lane_spacing: float = 4.0
    vertical_lane_spacing: float = 4.0
    arrow_corner_radius: float = 8.0
    corridor_padding: float = 8.0
    period_extension: float = 10.0
    min_size: float = 1.0


@dataclass(frozen=True)
class LayoutBaseline:
    """
    Measurements frozen once per (data, viewport) change.

    px_per_credit is derived from the initial viewport height only, so
    re-running the layout (e.g. after toggling layers) can never feed a
    grown chart height back into bar sizes.
    """

    viewport_height: float
    num_years: int
    band_height: float
    px_per_credit: float


@dataclass(frozen=True)
class BarGeometry:
    course_id: str
    year: int
    period_id: str
    x: float
    y: float
    width: float
    height: float
    credits: float
    label: str = ""
    style_class: str = DEFAULT_COURSE_STYLE
    label_suppressed: bool = False
    connected_left: bool = False
    connected_right: bool = False

    @property
    def x_end(self) -> float:
        return self.x + self.width

    @property
    def y_end(self) -> float:
        return self.y + self.height

    @property
    def y_center(self) -> float:
        return self.y + self.height / 2

    @property
    def key(self) -> tuple[str, int, str]:
        return (self.course_id, self.year, self.period_id)


@dataclass(frozen=True)
class YearBand:
    year: int
    y_offset: float
    height: float

    @property
    def bottom(self) -> float:
        return self.y_offset + self.height


@dataclass(frozen=True)
class ConnectorGeometry:
    """
    Fill polygon bridging two bars of one course in consecutive periods.

    Points run top-right of the earlier bar, top-left of the later bar,
    bottom-left of the later bar, bottom-right of the earlier bar.
    """

    course_id: str
    year: int
    from_period: str
    to_period: str
    points: tuple[Point, Point, Point, Point]
    style_class: str = DEFAULT_COURSE_STYLE

    @property
    def border_edges(self) -> tuple[tuple[Point, Point], tuple[Point, Point]]:
        """Top and bottom edges only; the vertical sides sit inside the bars."""
        top_right, top_left, bottom_left, bottom_right = self.points
        return (top_right, top_left), (bottom_left, bottom_right)


@dataclass(frozen=True)
class ArrowEdge:
    source_id: str
    target_id: str
    kind: PrerequisiteKind

    @property
    def arrow_id(self) -> str:
        return f"{self.kind}:{self.source_id}->{self.target_id}"


@dataclass(frozen=True)
class ArrowSegment:
    """One straight piece of a route, tagged with the corridor it occupies."""

    arrow_id: str
    type: SegmentType
    role: SegmentRole
    gap_key: str
    x1: float
    y1: float
    x2: float
    y2: float
    source_x: float
    source_y: float

    @property
    def interval(self) -> tuple[float, float]:
        """Projection on the axis the segment runs along."""
        if self.type == "horizontal":
            return (min(self.x1, self.x2), max(self.x1, self.x2))
        return (min(self.y1, self.y2), max(self.y1, self.y2))


PathCommand = tuple[str, tuple[float, ...]]
"""('M', (x, y)), ('L', (x, y)) or ('Q', (cx, cy, x, y))."""


@dataclass(frozen=True)
class RoutedArrow:
    source_id: str
    target_id: str
    kind: PrerequisiteKind
    points: tuple[Point, ...]
    path: tuple[PathCommand, ...]
    style_class: str
    marker: str

    @property
    def arrow_id(self) -> str:
        return f"{self.kind}:{self.source_id}->{self.target_id}"

    def svg_path(self) -> str:
        parts: list[str] = []
        for op, coords in self.path:
            pairs = [f"{coords[i]:g},{coords[i + 1]:g}" for i in range(0, len(coords), 2)]
            parts.append(op + " ".join(pairs))
        return " ".join(parts)


@dataclass(frozen=True)
class ExamMarker:
    course_id: str
    year: int
    period_id: str
    kind: MarkerKind
    x: float
    y: float
    style_class: str
    course_style: str = DEFAULT_COURSE_STYLE


@dataclass(frozen=True)
class PeriodBackground:
    period_id: str
    kind: BackgroundKind
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class TimelineLayout:
    """Everything a renderer needs for one layout pass."""

    width: float
    height: float
    baseline: LayoutBaseline
    bands: tuple[YearBand, ...]
    bars: tuple[BarGeometry, ...]
    connectors: tuple[ConnectorGeometry, ...]
    arrows: tuple[RoutedArrow, ...]
    markers: tuple[ExamMarker, ...] = ()
    backgrounds: tuple[PeriodBackground, ...] = ()
    period_labels: tuple[tuple[str, float], ...] = ()
    layers: LayerVisibility = field(default_factory=LayerVisibility)
