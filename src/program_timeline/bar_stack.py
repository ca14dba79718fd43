from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .models import BarGeometry, CourseCreditSlot, LayoutBaseline, LayoutConfig, PeriodDefinition, YearBand
from .time_grid import TimeGrid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BarStack:
    """Stacked bars plus the resolved year bands they sit in."""

    bars: tuple[BarGeometry, ...]
    bands: tuple[YearBand, ...]
    height: float


def compute_baseline(
    slots: Iterable[CourseCreditSlot],
    viewport_height: float,
    config: LayoutConfig = LayoutConfig(),
) -> LayoutBaseline:
    """
    Derive the frozen per-pass measurements from the initial viewport height.

    The baseline band height splits the viewport (minus inter-year gaps)
    evenly across years; px_per_credit maps one full band to
    `credits_per_full_band` credits.
    """

    viewport_height = max(config.min_size, viewport_height)
    years = [slot.year for slot in slots if slot.year >= 1]
    num_years = max([1, *years])
    total_gaps = (num_years - 1) * config.year_gap
    band_height = max(config.min_size, (viewport_height - total_gaps) / num_years)
    return LayoutBaseline(
        viewport_height=viewport_height,
        num_years=num_years,
        band_height=band_height,
        px_per_credit=band_height / config.credits_per_full_band,
    )


def effective_credits(credits: float, config: LayoutConfig) -> float:
    """Credits used for bar height only; clamped to the readability floor."""
    return max(credits, config.min_credits_for_height)


def stack_bars(
    slots: Iterable[CourseCreditSlot],
    grid: TimeGrid,
    baseline: LayoutBaseline,
    config: LayoutConfig = LayoutConfig(),
) -> BarStack:
    """
    Stack every slot inside its year x period cell.

    - Slots with an unknown period, a year below 1 or non-positive credits are
      dropped with a warning.
    - Within a cell, slots keep first-seen order; each bar starts one stack
      gap below the previous one.
    - A year's band is at least the baseline height and grows to fit its
      tallest period stack; years without slots keep the baseline.
    """

    cells: dict[tuple[int, str], list[CourseCreditSlot]] = {}
    cell_periods: dict[tuple[int, str], PeriodDefinition] = {}
    for slot, period in _valid_slots(slots, grid):
        cells.setdefault((slot.year, slot.period_id), []).append(slot)
        cell_periods[(slot.year, slot.period_id)] = period

    num_years = max([baseline.num_years, *(year for year, _ in cells)])

    needed: dict[int, float] = {}
    for (year, _), cell in cells.items():
        needed[year] = max(needed.get(year, 0.0), _stack_height(cell, baseline, config))

    bands: list[YearBand] = []
    offset = 0.0
    for year in range(1, num_years + 1):
        height = max(baseline.band_height, needed.get(year, 0.0))
        bands.append(YearBand(year=year, y_offset=offset, height=height))
        offset += height + config.year_gap

    required = sum(band.height for band in bands) + (num_years - 1) * config.year_gap
    height = max(baseline.viewport_height, required)
    if required > baseline.viewport_height:
        logger.debug("Growing chart height from %.1f to %.1f to fit stacked bars", baseline.viewport_height, required)

    bars: list[BarGeometry] = []
    for (year, period_id), cell in cells.items():
        bar_x, bar_width = bar_span(cell_periods[(year, period_id)], grid, config)
        cursor = bands[year - 1].y_offset
        for slot in cell:
            bar_height = _bar_height(slot, baseline, config)
            bars.append(
                BarGeometry(
                    course_id=slot.course_id,
                    year=year,
                    period_id=period_id,
                    x=bar_x,
                    y=cursor,
                    width=bar_width,
                    height=bar_height,
                    credits=slot.credits,
                )
            )
            cursor += bar_height + config.stack_gap

    return BarStack(bars=tuple(bars), bands=tuple(bands), height=height)


def bar_span(period: PeriodDefinition, grid: TimeGrid, config: LayoutConfig = LayoutConfig()) -> tuple[float, float]:
    """Bar x and width for a period: its study span, inset on both sides."""
    x, span = grid.span(period.start, period.lecture_end)
    return x + config.bar_inset, max(config.min_size, span - 2 * config.bar_inset)


def _valid_slots(
    slots: Iterable[CourseCreditSlot], grid: TimeGrid
) -> Iterable[tuple[CourseCreditSlot, PeriodDefinition]]:
    for slot in slots:
        period = grid.period(slot.period_id)
        if period is None:
            logger.warning("Dropping slot of %s: unknown period '%s'", slot.course_id, slot.period_id)
            continue
        if slot.year < 1:
            logger.warning("Dropping slot of %s: invalid year %s", slot.course_id, slot.year)
            continue
        if slot.credits <= 0:
            logger.warning("Dropping slot of %s in %s: non-positive credits %s", slot.course_id, slot.period_id, slot.credits)
            continue
        yield slot, period


def _bar_height(slot: CourseCreditSlot, baseline: LayoutBaseline, config: LayoutConfig) -> float:
    return max(config.min_size, effective_credits(slot.credits, config) * baseline.px_per_credit)


def _stack_height(cell: list[CourseCreditSlot], baseline: LayoutBaseline, config: LayoutConfig) -> float:
    heights = sum(_bar_height(slot, baseline, config) for slot in cell)
    return heights + max(0, len(cell) - 1) * config.stack_gap
