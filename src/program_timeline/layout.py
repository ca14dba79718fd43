from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from .bar_stack import compute_baseline, stack_bars
from .connectors import build_connectors
from .models import (
    DEFAULT_COURSE_STYLE,
    BarGeometry,
    Course,
    ExamMarker,
    LayerVisibility,
    LayoutBaseline,
    LayoutConfig,
    PeriodBackground,
    Program,
    TimelineLayout,
    Viewport,
)
from .routing import derive_edges, route_arrows
from .time_grid import TimeGrid

logger = logging.getLogger(__name__)


def build_layout(
    program: Program,
    viewport: Viewport,
    config: LayoutConfig = LayoutConfig(),
    baseline: LayoutBaseline | None = None,
    layers: LayerVisibility = LayerVisibility(),
) -> TimelineLayout:
    """
    Run one full layout pass: grid, stacking, connectors, arrows, markers.

    - Pure: identical inputs give identical output.
    - `baseline` should come from an earlier pass over the same data and
      viewport; when omitted it is computed from `viewport.height`.
    - Raises LayoutConfigurationError for an unusable period calendar; every
      other problem drops the offending element and is logged. A zero or
      negative viewport is clamped to `config.min_size`.
    """

    grid = TimeGrid(program.periods, viewport.width, config.min_size)
    slots = program.slots()
    if baseline is None:
        baseline = compute_baseline(slots, viewport.height, config)

    stack = stack_bars(slots, grid, baseline, config)
    joined = build_connectors(tag_bars(stack.bars, program), grid, config)
    arrows = route_arrows(derive_edges(program.courses), joined.bars, stack.bands, grid, config)

    logger.debug(
        "Laid out %d bar(s), %d connector(s), %d arrow(s) across %d year(s)",
        len(joined.bars),
        len(joined.connectors),
        len(arrows),
        len(stack.bands),
    )

    return TimelineLayout(
        width=grid.width,
        height=stack.height,
        baseline=baseline,
        bands=stack.bands,
        bars=joined.bars,
        connectors=joined.connectors,
        arrows=arrows,
        markers=tuple(exam_markers(program.courses, joined.bars, grid)),
        backgrounds=tuple(period_backgrounds(grid, stack.height, config)),
        period_labels=tuple(
            (period.id, grid.midpoint(period.start, period.lecture_end)) for period in grid.periods
        ),
        layers=layers,
    )


def tag_bars(bars: Iterable[BarGeometry], program: Program) -> tuple[BarGeometry, ...]:
    """Attach each course's label (brief name, else name) and group style class to its bars."""

    tags: dict[str, tuple[str, str]] = {}
    for course in program.courses:
        tags[course.code] = (course.label, program.course_style(course.code))
    tagged: list[BarGeometry] = []
    for bar in bars:
        label, style_class = tags.get(bar.course_id, ("", DEFAULT_COURSE_STYLE))
        tagged.append(replace(bar, label=label, style_class=style_class))
    return tuple(tagged)


def exam_markers(courses: Iterable[Course], bars: Iterable[BarGeometry], grid: TimeGrid) -> list[ExamMarker]:
    """Place exam and re-exam dots at the middle of the period's window, level with the bar."""

    by_key = {bar.key: bar for bar in bars}
    markers: list[ExamMarker] = []
    for course in courses:
        for slot in course.slots():
            bar = by_key.get((course.code, slot.year, slot.period_id))
            period = grid.period(slot.period_id)
            if bar is None or period is None:
                continue
            windows = (
                ("exam", "exam-dot", period.exam_start, period.exam_end),
                ("reexam", "reexam-dot", period.re_exam_start, period.re_exam_end),
            )
            for kind, style_class, start, end in windows:
                if not course.has_exam(slot.year, slot.period_id, kind):
                    continue
                markers.append(
                    ExamMarker(
                        course_id=course.code,
                        year=slot.year,
                        period_id=slot.period_id,
                        kind=kind,
                        x=grid.midpoint(start, end),
                        y=bar.y_center,
                        style_class=style_class,
                        course_style=bar.style_class,
                    )
                )
    return markers


def period_backgrounds(grid: TimeGrid, chart_height: float, config: LayoutConfig = LayoutConfig()) -> list[PeriodBackground]:
    top = -config.period_extension
    height = chart_height + 2 * config.period_extension
    backgrounds: list[PeriodBackground] = []
    for period in grid.periods:
        for kind, start, end in (
            ("study-period", period.start, period.lecture_end),
            ("exam-period", period.exam_start, period.exam_end),
            ("reexam-period", period.re_exam_start, period.re_exam_end),
        ):
            x, width = grid.span(start, end)
            backgrounds.append(PeriodBackground(period.id, kind, x, top, max(config.min_size, width), height))
    return backgrounds


class TimelineEngine:
    """
    Layout cache that owns the frozen baseline between passes.

    The baseline is recomputed only when the program or the viewport
    changes; changing layer visibility reuses it, so bar sizes stay put.
    """

    def __init__(self, program: Program, config: LayoutConfig = LayoutConfig()) -> None:
        self.program = program
        self.config = config
        self._baseline: LayoutBaseline | None = None
        self._viewport: Viewport | None = None

    @property
    def baseline(self) -> LayoutBaseline | None:
        return self._baseline

    def set_program(self, program: Program) -> None:
        self.program = program
        self.invalidate()

    def invalidate(self) -> None:
        self._baseline = None
        self._viewport = None

    def layout(self, viewport: Viewport, layers: LayerVisibility = LayerVisibility()) -> TimelineLayout:
        if self._baseline is None or viewport != self._viewport:
            self._baseline = compute_baseline(self.program.slots(), viewport.height, self.config)
            self._viewport = viewport
        return build_layout(self.program, viewport, self.config, self._baseline, layers)
