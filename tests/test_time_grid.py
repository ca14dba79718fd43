import datetime as dt
from dataclasses import replace

import pytest

from program_timeline.time_grid import LayoutConfigurationError, TimeGrid


def test_grid_spans_first_start_to_last_reexam_end(periods):
    grid = TimeGrid(periods, 800)

    assert grid.pixel(periods[0].start) == pytest.approx(0)
    assert grid.pixel(periods[-1].re_exam_end) == pytest.approx(800)


def test_pixel_is_strictly_increasing(periods):
    grid = TimeGrid(periods, 800)
    day = periods[0].start
    previous = grid.pixel(day)
    while day < periods[-1].re_exam_end:
        day += dt.timedelta(days=1)
        current = grid.pixel(day)
        assert current > previous
        previous = current


def test_datetime_and_date_agree_at_midnight(periods):
    grid = TimeGrid(periods, 800)
    day = periods[1].start

    assert grid.pixel(dt.datetime.combine(day, dt.time())) == pytest.approx(grid.pixel(day))


def test_ordinals_are_one_based_and_unknown_is_none(periods):
    grid = TimeGrid(periods, 800)

    assert grid.ordinal("P1") == 1
    assert grid.ordinal("P4") == 4
    assert grid.ordinal("P9") is None
    assert grid.period_at(0) is None
    assert grid.period_at(2).id == "P2"
    assert grid.period_count == 4


def test_non_chronological_periods_raise(periods):
    shuffled = [periods[1], periods[0], *periods[2:]]

    with pytest.raises(LayoutConfigurationError):
        TimeGrid(shuffled, 800)


def test_period_with_inverted_window_raises(periods):
    broken = replace(periods[0], exam_start=periods[0].exam_end + dt.timedelta(days=1))

    with pytest.raises(LayoutConfigurationError):
        TimeGrid([broken, *periods[1:]], 800)


def test_empty_calendar_raises():
    with pytest.raises(LayoutConfigurationError):
        TimeGrid([], 800)


@pytest.mark.parametrize("width", [0, -5, 0.25])
def test_width_below_min_size_is_clamped(periods, width):
    grid = TimeGrid(periods, width)

    assert grid.width == 1.0
    assert grid.pixel(periods[0].start) == pytest.approx(0)
    assert grid.pixel(periods[-1].re_exam_end) == pytest.approx(1.0)


def test_clamp_follows_configured_min_size(periods):
    assert TimeGrid(periods, 0, min_size=3.0).width == 3.0
    assert TimeGrid(periods, 800, min_size=3.0).width == 800
