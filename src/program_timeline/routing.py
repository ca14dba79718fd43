from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Literal, Mapping, Sequence

from .models import (
    ArrowEdge,
    ArrowSegment,
    BarGeometry,
    Course,
    LayoutConfig,
    PathCommand,
    Point,
    RoutedArrow,
    SegmentRole,
    SegmentType,
    YearBand,
)
from .bar_stack import bar_span
from .time_grid import TimeGrid

logger = logging.getLogger(__name__)

STYLE_CLASSES = {"completion": "prereq-completed", "participation": "prereq-participation"}
MARKERS = {"completion": "arrow-completed", "participation": "arrow-participation"}
EPS = 1e-6

CorridorKind = Literal["period", "year"]
BucketKey = tuple[str, SegmentType, SegmentRole]
LaneKey = tuple[str, SegmentRole]
Column = tuple[int, int]


@dataclass(frozen=True)
class ArrowRoute:
    """
    A classified edge with its resolved anchors and corridor keys.

    `trunk_base` is the y of the trunk before lanes are applied: the source
    centre for a period corridor, the corridor top plus padding for a year
    corridor. `start_column` and `end_column` are the (left, right) period
    ordinals of the gaps holding the two verticals; 0 and n + 1 stand for
    the grid edges.
    """

    edge: ArrowEdge
    corridor: CorridorKind
    start: Point
    end: Point
    trunk_gap: str
    trunk_base: float
    start_column: Column
    end_column: Column

    @property
    def arrow_id(self) -> str:
        return self.edge.arrow_id


def derive_edges(courses: Sequence[Course]) -> list[ArrowEdge]:
    """
    Build one edge per distinct (prerequisite, course, kind) triple.

    Completion prerequisites come before participation ones for each course;
    references to codes absent from `courses` are logged and skipped.
    """

    known = {course.code for course in courses}
    seen: set[ArrowEdge] = set()
    edges: list[ArrowEdge] = []
    for course in courses:
        for kind, refs in (
            ("completion", course.prerequisites_completed),
            ("participation", course.prerequisites_participation),
        ):
            for ref in refs:
                if ref not in known:
                    logger.warning("Course %s requires unknown course '%s'; no arrow drawn", course.code, ref)
                    continue
                edge = ArrowEdge(source_id=ref, target_id=course.code, kind=kind)
                if edge in seen:
                    continue
                seen.add(edge)
                edges.append(edge)
    return edges


def anchor_bars(bars: Iterable[BarGeometry], grid: TimeGrid) -> dict[str, tuple[BarGeometry, BarGeometry]]:
    """Map each course to its (first, last) bar in chronological order."""

    by_course: dict[str, list[BarGeometry]] = {}
    for bar in bars:
        by_course.setdefault(bar.course_id, []).append(bar)

    anchors: dict[str, tuple[BarGeometry, BarGeometry]] = {}
    for course_id, course_bars in by_course.items():
        ordered = sorted(course_bars, key=lambda bar: (bar.year, grid.ordinal(bar.period_id) or 0))
        anchors[course_id] = (ordered[0], ordered[-1])
    return anchors


def period_gap_key(year: int, left: int, right: int, grid: TimeGrid) -> str:
    """Corridor between two chronologically adjacent periods (or a grid edge) of one year."""
    left_period = grid.period_at(left)
    right_period = grid.period_at(right)
    left_id = left_period.id if left_period else "start"
    right_id = right_period.id if right_period else "end"
    return f"period-gap-y{year}-{left_id}-{right_id}"


def year_gap_key(upper_year: int) -> str:
    """Corridor directly below `upper_year`'s band."""
    return f"year-gap-{upper_year}-{upper_year + 1}"


def column_key(column: Column) -> str:
    """
    Vertical lane bucket for the physical gap between two periods.

    Shared by every year: a vertical that crosses several year bands must
    stay clear of the verticals it passes, and verticals of different years
    never overlap in y otherwise.
    """
    left, right = column
    return f"period-column-{left}-{right}"


def classify_route(
    edge: ArrowEdge,
    anchors: Mapping[str, tuple[BarGeometry, BarGeometry]],
    bands: Sequence[YearBand],
    grid: TimeGrid,
    config: LayoutConfig = LayoutConfig(),
) -> ArrowRoute | None:
    """
    Decide which corridor carries the edge.

    Same year and target period directly after the source period: the
    inter-period corridor between them. Anything else: an inter-year
    corridor, below the shared year for same-year edges, otherwise the one
    directly above the later of the two years.
    """

    source_anchor = anchors.get(edge.source_id)
    target_anchor = anchors.get(edge.target_id)
    if source_anchor is None or target_anchor is None:
        missing = edge.source_id if source_anchor is None else edge.target_id
        logger.warning("Dropping arrow %s: course '%s' has no placed bars", edge.arrow_id, missing)
        return None

    source = source_anchor[1]
    target = target_anchor[0]
    from_ord = grid.ordinal(source.period_id) or 0
    to_ord = grid.ordinal(target.period_id) or 0
    start = (source.x_end, source.y_center)
    end = (target.x, target.y_center)
    start_column = (from_ord, from_ord + 1)
    end_column = (to_ord - 1, to_ord)

    if source.year == target.year and to_ord == from_ord + 1:
        return ArrowRoute(
            edge=edge,
            corridor="period",
            start=start,
            end=end,
            trunk_gap=period_gap_key(source.year, from_ord, to_ord, grid),
            start_column=start_column,
            end_column=end_column,
            trunk_base=start[1],
        )

    upper_year = source.year if source.year == target.year else max(source.year, target.year) - 1
    band = bands[upper_year - 1]
    return ArrowRoute(
        edge=edge,
        corridor="year",
        start=start,
        end=end,
        trunk_gap=year_gap_key(upper_year),
        start_column=start_column,
        end_column=end_column,
        trunk_base=band.bottom + config.corridor_padding,
    )


def extract_segments(
    routes: Iterable[ArrowRoute],
    trunk_levels: Mapping[str, float] | None = None,
) -> list[ArrowSegment]:
    """
    Emit trunk, start and end segments for every route.

    Verticals sit on their column anchor (the bar edge) and span from the
    bar centre to the trunk level; without resolved levels the trunk base is
    used.
    """

    segments: list[ArrowSegment] = []
    for route in routes:
        trunk_y = route.trunk_base if trunk_levels is None else trunk_levels.get(route.arrow_id, route.trunk_base)
        (sx, sy), (ex, ey) = route.start, route.end
        common = {"arrow_id": route.arrow_id, "source_x": sx, "source_y": sy}
        segments.append(
            ArrowSegment(type="horizontal", role="trunk", gap_key=route.trunk_gap, x1=sx, y1=trunk_y, x2=ex, y2=trunk_y, **common)
        )
        segments.append(
            ArrowSegment(type="vertical", role="start", gap_key=column_key(route.start_column), x1=sx, y1=sy, x2=sx, y2=trunk_y, **common)
        )
        segments.append(
            ArrowSegment(type="vertical", role="end", gap_key=column_key(route.end_column), x1=ex, y1=trunk_y, x2=ex, y2=ey, **common)
        )
    return segments


def group_segments(segments: Iterable[ArrowSegment]) -> dict[BucketKey, list[ArrowSegment]]:
    """Bucket by corridor and orientation; verticals are further split by start/end column."""
    buckets: dict[BucketKey, list[ArrowSegment]] = {}
    for seg in segments:
        buckets.setdefault((seg.gap_key, seg.type, seg.role), []).append(seg)
    return buckets


def _order_key(seg: ArrowSegment) -> tuple[float, float, float, str]:
    # Interval start, then source y, source x, and the arrow id as the final tie-break.
    return (seg.interval[0], seg.source_y, seg.source_x, seg.arrow_id)


def detect_overlaps(segments: Iterable[ArrowSegment]) -> list[list[ArrowSegment]]:
    """Sweep sorted intervals into groups; a group closes when the next start exceeds its max end."""

    groups: list[list[ArrowSegment]] = []
    group_end = -math.inf
    for seg in sorted(segments, key=_order_key):
        lo, hi = seg.interval
        if groups and lo <= group_end:
            groups[-1].append(seg)
            group_end = max(group_end, hi)
        else:
            groups.append([seg])
            group_end = hi
    return groups


def assign_lanes(group: Iterable[ArrowSegment]) -> dict[str, int]:
    """
    First-fit interval colouring, keyed by arrow id.

    A lane is reusable only when its last interval ended strictly before the
    current one starts, so touching intervals get different lanes.
    """

    lane_ends: list[float] = []
    lanes: dict[str, int] = {}
    for seg in sorted(group, key=_order_key):
        lo, hi = seg.interval
        for idx, end in enumerate(lane_ends):
            if end < lo:
                lane_ends[idx] = hi
                break
        else:
            idx = len(lane_ends)
            lane_ends.append(hi)
        lanes[seg.arrow_id] = idx
    return lanes


def resolve_trunk_levels(segments: Iterable[ArrowSegment], config: LayoutConfig = LayoutConfig()) -> dict[str, float]:
    """Trunk y per arrow: the overlap group's topmost base plus lane x lane spacing."""

    levels: dict[str, float] = {}
    horizontal = (seg for seg in segments if seg.type == "horizontal")
    for (gap_key, _, _), bucket in group_segments(horizontal).items():
        for group in detect_overlaps(bucket):
            base = min(seg.y1 for seg in group)
            lanes = assign_lanes(group)
            for arrow_id, lane in lanes.items():
                levels[arrow_id] = base + lane * config.lane_spacing
            logger.debug("Corridor %s: %d trunk(s) in %d lane(s)", gap_key, len(group), max(lanes.values()) + 1)
    return levels


def resolve_vertical_lanes(segments: Iterable[ArrowSegment]) -> dict[LaneKey, int]:
    lanes: dict[LaneKey, int] = {}
    vertical = (seg for seg in segments if seg.type == "vertical")
    for (gap_key, _, role), bucket in group_segments(vertical).items():
        for group in detect_overlaps(bucket):
            for arrow_id, lane in assign_lanes(group).items():
                lanes[(arrow_id, role)] = lane
    return lanes


def column_spacing(
    routes: Iterable[ArrowRoute],
    vertical_lanes: Mapping[LaneKey, int],
    grid: TimeGrid,
    config: LayoutConfig = LayoutConfig(),
) -> dict[Column, float]:
    """
    Lane spacing per physical column.

    A column holds its start lanes against the left bar edge and its end
    lanes against the right one. When both sets do not fit at the
    configured spacing the spacing shrinks, so that the outermost start lane
    always stays left of the innermost end lane.
    """

    start_lanes: dict[Column, int] = {}
    end_lanes: dict[Column, int] = {}
    for route in routes:
        start = vertical_lanes.get((route.arrow_id, "start"), 0) + 1
        end = vertical_lanes.get((route.arrow_id, "end"), 0) + 1
        start_lanes[route.start_column] = max(start_lanes.get(route.start_column, 0), start)
        end_lanes[route.end_column] = max(end_lanes.get(route.end_column, 0), end)

    spacing: dict[Column, float] = {}
    for column in sorted(start_lanes.keys() | end_lanes.keys()):
        slots = start_lanes.get(column, 0) + end_lanes.get(column, 0) + 1
        width = max(0.0, _column_width(column, grid, config))
        spacing[column] = min(config.vertical_lane_spacing, width / slots)
        if spacing[column] < config.vertical_lane_spacing:
            logger.debug("Column %s: %d lane(s) squeezed to %.2f px", column_key(column), slots - 1, spacing[column])
    return spacing


def _column_width(column: Column, grid: TimeGrid, config: LayoutConfig) -> float:
    left, right = column
    left_period = grid.period_at(left)
    right_period = grid.period_at(right)
    left_x = sum(bar_span(left_period, grid, config)) if left_period else 0.0
    right_x = bar_span(right_period, grid, config)[0] if right_period else grid.width
    return right_x - left_x


def route_arrows(
    edges: Iterable[ArrowEdge],
    bars: Iterable[BarGeometry],
    bands: Sequence[YearBand],
    grid: TimeGrid,
    config: LayoutConfig = LayoutConfig(),
) -> tuple[RoutedArrow, ...]:
    """
    Route every edge through its corridor with non-overlapping lanes.

    Trunk lanes are resolved first; the verticals are then extracted
    against the resolved trunk levels and given their own column lanes.
    Edges whose courses have no placed bars are dropped.
    """

    anchors = anchor_bars(bars, grid)
    routes = [route for route in (classify_route(edge, anchors, bands, grid, config) for edge in edges) if route]
    trunk_levels = resolve_trunk_levels(extract_segments(routes), config)
    vertical_lanes = resolve_vertical_lanes(extract_segments(routes, trunk_levels))
    spacing = column_spacing(routes, vertical_lanes, grid, config)
    return tuple(
        _build_arrow(
            route,
            trunk_levels[route.arrow_id],
            spacing[route.start_column] * (1 + vertical_lanes.get((route.arrow_id, "start"), 0)),
            spacing[route.end_column] * (1 + vertical_lanes.get((route.arrow_id, "end"), 0)),
            config,
        )
        for route in routes
    )


def _build_arrow(route: ArrowRoute, trunk_y: float, out_offset: float, in_offset: float, config: LayoutConfig) -> RoutedArrow:
    (sx, sy), (ex, ey) = route.start, route.end
    x_out = sx + out_offset
    x_in = ex - in_offset
    points = [(sx, sy), (x_out, sy), (x_out, trunk_y), (x_in, trunk_y), (x_in, ey), (ex, ey)]
    points = _simplify_polyline(_dedupe_points(points))
    edge = route.edge
    return RoutedArrow(
        source_id=edge.source_id,
        target_id=edge.target_id,
        kind=edge.kind,
        points=tuple(points),
        path=rounded_path(points, config.arrow_corner_radius),
        style_class=STYLE_CLASSES[edge.kind],
        marker=MARKERS[edge.kind],
    )


def rounded_path(points: Sequence[Point], radius: float) -> tuple[PathCommand, ...]:
    """
    Turn an orthogonal polyline into M/L/Q commands with rounded corners.

    Each corner is cut back by up to `radius` on both sides and replaced by
    a quadratic curve through the corner. Interior segments give at most
    half their length to each of their corners; the first and last segments
    may be used up completely, so the path never overshoots its endpoints.
    """

    if not points:
        return ()
    commands: list[PathCommand] = [("M", tuple(points[0]))]
    last = len(points) - 1
    for i in range(1, last):
        prev, corner, nxt = points[i - 1], points[i], points[i + 1]
        len_in = _distance(prev, corner)
        len_out = _distance(corner, nxt)
        trim = min(
            radius,
            len_in if i == 1 else len_in / 2,
            len_out if i + 1 == last else len_out / 2,
        )
        if trim <= 0 or not _is_turn(prev, corner, nxt):
            _line_to(commands, corner)
            continue
        _line_to(commands, _toward(corner, prev, trim))
        after = _toward(corner, nxt, trim)
        commands.append(("Q", (corner[0], corner[1], after[0], after[1])))
    if last > 0:
        _line_to(commands, points[last])
    return terminate_at(commands, points[last])


def terminate_at(commands: Sequence[PathCommand], target: Point) -> tuple[PathCommand, ...]:
    """
    Make the path end exactly on `target`.

    An end within EPS is snapped. Otherwise the last horizontal line at the
    target's height is stretched to it (dropping anything after it), and
    only when no such line exists is a final forward line appended.
    """

    result = list(commands)
    if not result:
        return ()
    op, coords = result[-1]
    end = (coords[-2], coords[-1])
    if _close(end, target):
        result[-1] = (op, (*coords[:-2], target[0], target[1]))
        return tuple(result)

    for idx in range(len(result) - 1, 0, -1):
        op_i, coords_i = result[idx]
        if op_i != "L":
            continue
        prev_coords = result[idx - 1][1]
        if abs(coords_i[1] - prev_coords[-1]) < EPS and abs(coords_i[1] - target[1]) < EPS:
            result[idx] = ("L", (target[0], target[1]))
            return tuple(result[: idx + 1])

    forward = (target[0] > end[0] and abs(target[1] - end[1]) < EPS) or abs(target[0] - end[0]) < EPS
    if forward:
        result.append(("L", (target[0], target[1])))
    return tuple(result)


def _line_to(commands: list[PathCommand], point: Point) -> None:
    coords = commands[-1][1]
    if _close((coords[-2], coords[-1]), point):
        return
    commands.append(("L", (point[0], point[1])))


def _close(a: Point, b: Point) -> bool:
    return abs(a[0] - b[0]) < EPS and abs(a[1] - b[1]) < EPS


def _distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def _toward(origin: Point, target: Point, dist: float) -> Point:
    length = _distance(origin, target)
    if length == 0:
        return origin
    return (origin[0] + (target[0] - origin[0]) / length * dist, origin[1] + (target[1] - origin[1]) / length * dist)


def _is_turn(prev: Point, corner: Point, nxt: Point) -> bool:
    horizontal_in = abs(prev[1] - corner[1]) < EPS
    horizontal_out = abs(corner[1] - nxt[1]) < EPS
    return horizontal_in != horizontal_out


def _dedupe_points(points: list[Point]) -> list[Point]:
    """Remove consecutive duplicate points to avoid zero-length segments."""
    if not points:
        return points
    cleaned = [points[0]]
    for pt in points[1:]:
        if not _close(pt, cleaned[-1]):
            cleaned.append(pt)
    return cleaned


def _simplify_polyline(points: list[Point], eps: float = 1e-9) -> list[Point]:
    """Remove collinear interior points from an orthogonal polyline."""
    if len(points) <= 2:
        return points
    simplified = [points[0]]
    for i in range(1, len(points) - 1):
        x1, y1 = simplified[-1]
        x2, y2 = points[i]
        x3, y3 = points[i + 1]
        dx1, dy1 = x2 - x1, y2 - y1
        dx2, dy2 = x3 - x2, y3 - y2
        if abs(dx1 * dy2 - dy1 * dx2) < eps:
            continue
        simplified.append(points[i])
    simplified.append(points[-1])
    return simplified
