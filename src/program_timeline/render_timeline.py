from __future__ import annotations

from pathlib import Path
from importlib import metadata

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.path as mpath
import matplotlib.pyplot as plt
from matplotlib.patches import Circle, FancyArrowPatch, FancyBboxPatch, PathPatch, Polygon, Rectangle

from .models import DEFAULT_COURSE_STYLE, BarGeometry, ExamMarker, RoutedArrow, TimelineLayout

# Page geometry, in layout pixels.
MARGIN_TOP = 100
MARGIN_RIGHT = 40
MARGIN_BOTTOM = 40
MARGIN_LEFT = 100
DPI = 100
BAR_RADIUS = 4
MARKER_RADIUS = 4
FONT_SCALE = 1.0
TITLE_FONT = 14 * FONT_SCALE
LABEL_FONT = 8 * FONT_SCALE
YEAR_FONT = 11 * FONT_SCALE
PERIOD_FONT = 11 * FONT_SCALE
FOOTER_FONT = 7 * FONT_SCALE

BAR_FILL = "#6298D2"
BAR_STROKE = "#004791"
HEADING_COLOR = "#004791"
# (fill, stroke, text) per course style class; tones follow each family's order.
FAMILY_TONES = {
    "blue": [("#000061", "#004791", "#DEF0FF"), ("#004791", "#000061", "#DEF0FF"), ("#6298D2", "#000061", "#DEF0FF")],
    "green": [("#4DA061", "#0D4A21", "#C7EBBA"), ("#0D4A21", "#4DA061", "#C7EBBA")],
    "turquoise": [("#339C9C", "#1C434C", "#B2E0E0"), ("#1C434C", "#339C9C", "#B2E0E0")],
    "brick": [("#E86A58", "#78001A", "#FFCCC4"), ("#78001A", "#E86A58", "#FFCCC4")],
    "yellow": [("#FFBE00", "#A65900", "#FFF0B0"), ("#A65900", "#FFBE00", "#FFF0B0")],
}
COURSE_PALETTES = {
    f"course-{family}-{idx}": tone for family, tones in FAMILY_TONES.items() for idx, tone in enumerate(tones)
}
COURSE_PALETTES[DEFAULT_COURSE_STYLE] = (BAR_FILL, BAR_STROKE, "#DEF0FF")
NAME_MIN_HEIGHT = 22
BACKGROUND_COLORS = {
    "study-period": ("#EBE5E0", 0.25),
    "exam-period": ("#DEF0FF", 0.5),
    "reexam-period": ("#E6E6E6", 0.5),
}
ARROW_STYLES = {
    "prereq-completed": {"color": "#004791", "linestyle": "-"},
    "prereq-participation": {"color": "#999999", "linestyle": (0, (4, 3))},
}
MARKER_FILLED = {"exam-dot": True, "reexam-dot": False}


def render_timeline(layout: TimelineLayout, out_path: str, title: str = "") -> None:
    """
    Draw a computed timeline layout to `out_path`.

    - Geometry is taken as-is from the layout; colours come from style classes.
    - Hidden layers are skipped.
    - The output format follows the file suffix (svg, png, pdf).
    """

    extent_bottom = max([layout.height, *(y for arrow in layout.arrows for _, y in arrow.points)])
    total_w = layout.width + MARGIN_LEFT + MARGIN_RIGHT
    total_h = extent_bottom + MARGIN_TOP + MARGIN_BOTTOM

    fig = plt.figure(figsize=(total_w / DPI, total_h / DPI), dpi=DPI)
    ax = fig.add_axes([0, 0, 1, 1])
    ax.set_xlim(-MARGIN_LEFT, layout.width + MARGIN_RIGHT)
    ax.set_ylim(extent_bottom + MARGIN_BOTTOM, -MARGIN_TOP)
    ax.axis("off")

    layers = layout.layers
    visible_backgrounds = {
        "study-period": layers.study_periods,
        "exam-period": layers.exam_periods,
        "reexam-period": layers.reexam_periods,
    }
    for bg in layout.backgrounds:
        if not visible_backgrounds[bg.kind]:
            continue
        color, alpha = BACKGROUND_COLORS[bg.kind]
        ax.add_patch(Rectangle((bg.x, bg.y), bg.width, bg.height, facecolor=color, alpha=alpha, edgecolor="none", zorder=0))

    if title:
        ax.text(layout.width / 2, -75, title, ha="center", va="center", fontsize=TITLE_FONT, fontweight="bold", color=HEADING_COLOR)
    for period_id, x in layout.period_labels:
        ax.text(x, -50, period_id, ha="center", va="center", fontsize=PERIOD_FONT, color=HEADING_COLOR)
    for band in layout.bands:
        ax.text(
            -MARGIN_LEFT + 12,
            band.y_offset + band.height / 2,
            f"Year {band.year}",
            ha="left",
            va="center",
            fontsize=YEAR_FONT,
            fontweight="bold",
            color=HEADING_COLOR,
        )

    if layers.course_bars:
        for connector in layout.connectors:
            fill, _, _ = _palette(connector.style_class)
            ax.add_patch(Polygon(connector.points, closed=True, facecolor=fill, edgecolor="none", zorder=2))
        for bar in layout.bars:
            _draw_bar(ax, bar)
        for connector in layout.connectors:
            _, stroke, _ = _palette(connector.style_class)
            for (x0, y0), (x1, y1) in connector.border_edges:
                ax.plot([x0, x1], [y0, y1], color=stroke, linewidth=0.8, zorder=4)

    visible_arrows = {"prereq-completed": layers.prereq_completed, "prereq-participation": layers.prereq_participation}
    for arrow in layout.arrows:
        if visible_arrows.get(arrow.style_class, True):
            _draw_arrow(ax, arrow)

    visible_markers = {"exam": layers.exams, "reexam": layers.reexams}
    for marker in layout.markers:
        if visible_markers[marker.kind]:
            _draw_marker(ax, marker)

    footer = f"Program timeline v{_tool_version()}"
    fig.text(0.99, 0.01, footer, ha="right", va="bottom", fontsize=FOOTER_FONT, alpha=0.8)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format=Path(out_path).suffix.lstrip(".") or "svg")
    plt.close(fig)


def _palette(style_class: str) -> tuple[str, str, str]:
    return COURSE_PALETTES.get(style_class, COURSE_PALETTES[DEFAULT_COURSE_STYLE])


def _draw_bar(ax: plt.Axes, bar: BarGeometry) -> None:
    fill, stroke, text = _palette(bar.style_class)
    radius = min(BAR_RADIUS, bar.width / 2, bar.height / 2)
    ax.add_patch(
        FancyBboxPatch(
            (bar.x, bar.y),
            bar.width,
            bar.height,
            boxstyle=f"round,pad=0,rounding_size={radius}",
            facecolor=fill,
            edgecolor="none",
            zorder=3,
        )
    )
    ax.add_patch(PathPatch(_bar_border(bar, radius), facecolor="none", edgecolor=stroke, linewidth=0.8, zorder=4))
    if bar.label_suppressed:
        return
    label = bar.course_id
    if bar.label and bar.height >= NAME_MIN_HEIGHT:
        label = f"{bar.course_id}\n{bar.label}"
    ax.text(
        bar.x + 4,
        bar.y + 2,
        label,
        ha="left",
        va="top",
        fontsize=LABEL_FONT,
        fontweight="bold",
        color=text,
        clip_on=True,
        zorder=5,
    )


def _draw_marker(ax: plt.Axes, marker: ExamMarker) -> None:
    fill, stroke, _ = _palette(marker.course_style)
    facecolor = fill if MARKER_FILLED[marker.style_class] else "none"
    ax.add_patch(Circle((marker.x, marker.y), MARKER_RADIUS, facecolor=facecolor, edgecolor=stroke, linewidth=1, zorder=6))


def _bar_border(bar: BarGeometry, r: float) -> mpath.Path:
    """Rounded outline that leaves out the sides shared with a connector."""
    x0, y0, x1, y1 = bar.x, bar.y, bar.x_end, bar.y_end
    P = mpath.Path
    verts: list[tuple[float, float]] = [(x0 + r, y0), (x1 - r, y0)]
    codes = [P.MOVETO, P.LINETO]
    if bar.connected_right:
        verts += [(x1 - r, y1)]
        codes += [P.MOVETO]
    else:
        verts += [(x1, y0), (x1, y0 + r), (x1, y1 - r), (x1, y1), (x1 - r, y1)]
        codes += [P.CURVE3, P.CURVE3, P.LINETO, P.CURVE3, P.CURVE3]
    verts += [(x0 + r, y1)]
    codes += [P.LINETO]
    if bar.connected_left:
        verts += [(x0 + r, y0)]
        codes += [P.MOVETO]
    else:
        verts += [(x0, y1), (x0, y1 - r), (x0, y0 + r), (x0, y0), (x0 + r, y0)]
        codes += [P.CURVE3, P.CURVE3, P.LINETO, P.CURVE3, P.CURVE3]
    return P(verts, codes)


def _arrow_path(arrow: RoutedArrow) -> mpath.Path:
    verts: list[tuple[float, float]] = []
    codes: list[int] = []
    for op, coords in arrow.path:
        if op == "M":
            verts.append((coords[0], coords[1]))
            codes.append(mpath.Path.MOVETO)
        elif op == "L":
            verts.append((coords[0], coords[1]))
            codes.append(mpath.Path.LINETO)
        elif op == "Q":
            verts += [(coords[0], coords[1]), (coords[2], coords[3])]
            codes += [mpath.Path.CURVE3, mpath.Path.CURVE3]
        else:
            raise ValueError(f"unsupported path command '{op}'")
    return mpath.Path(verts, codes)


def _draw_arrow(ax: plt.Axes, arrow: RoutedArrow) -> None:
    if len(arrow.path) < 2:
        return
    style = ARROW_STYLES.get(arrow.style_class, ARROW_STYLES["prereq-completed"])
    ax.add_patch(
        FancyArrowPatch(
            path=_arrow_path(arrow),
            arrowstyle="-|>",
            mutation_scale=8.0,
            lw=0.9,
            color=style["color"],
            linestyle=style["linestyle"],
            shrinkA=0,
            shrinkB=0,
            zorder=5,
        )
    )


def _tool_version() -> str:
    try:
        return metadata.version("program-timeline")
    except Exception:
        return "0.0.0"
