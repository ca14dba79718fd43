from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from .models import BarGeometry, ConnectorGeometry, LayoutConfig
from .time_grid import TimeGrid


@dataclass(frozen=True)
class ConnectorResult:
    connectors: tuple[ConnectorGeometry, ...]
    bars: tuple[BarGeometry, ...]


def build_connectors(
    bars: Iterable[BarGeometry],
    grid: TimeGrid,
    config: LayoutConfig = LayoutConfig(),
) -> ConnectorResult:
    """
    Join bars of the same course that sit in consecutive periods of one year.

    Returns the connector polygons and a copy of the bars with connectivity
    flags set; the later bar of each joined pair loses its label. Input bars
    are left untouched and keep their order.
    """

    bar_list = list(bars)
    by_course: dict[str, dict[int, list[BarGeometry]]] = {}
    for bar in bar_list:
        by_course.setdefault(bar.course_id, {}).setdefault(bar.year, []).append(bar)

    connectors: list[ConnectorGeometry] = []
    right: set[tuple[str, int, str]] = set()
    left: set[tuple[str, int, str]] = set()

    for course_id, years in by_course.items():
        for year, year_bars in years.items():
            ordered = sorted(year_bars, key=lambda bar: grid.ordinal(bar.period_id) or 0)
            for current, following in zip(ordered, ordered[1:]):
                if (grid.ordinal(following.period_id) or 0) - (grid.ordinal(current.period_id) or 0) != 1:
                    continue
                connectors.append(_bridge(course_id, year, current, following, config.connector_radius))
                right.add(current.key)
                left.add(following.key)

    flagged = tuple(
        replace(
            bar,
            label_suppressed=bar.key in left,
            connected_left=bar.key in left,
            connected_right=bar.key in right,
        )
        if bar.key in left or bar.key in right
        else bar
        for bar in bar_list
    )
    return ConnectorResult(connectors=tuple(connectors), bars=flagged)


def _bridge(course_id: str, year: int, current: BarGeometry, following: BarGeometry, radius: float) -> ConnectorGeometry:
    # Inset by the corner radius so the fill covers the rounded corners it replaces.
    x1 = current.x_end - radius
    x2 = following.x + radius
    return ConnectorGeometry(
        course_id=course_id,
        year=year,
        from_period=current.period_id,
        to_period=following.period_id,
        points=(
            (x1, current.y),
            (x2, following.y),
            (x2, following.y_end),
            (x1, current.y_end),
        ),
        style_class=current.style_class,
    )
