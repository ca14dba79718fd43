from __future__ import annotations

from datetime import date, datetime, time
from typing import Sequence

from .models import Instant, PeriodDefinition


class LayoutConfigurationError(Exception):
    """Raised when the period calendar cannot define a horizontal grid."""


class TimeGrid:
    """
    Monotonic projection from calendar instants to horizontal pixels.

    The domain spans the first period's start to the last period's re-exam
    end and maps linearly onto [0, width]. A width below `min_size` is
    raised to it.
    """

    def __init__(self, periods: Sequence[PeriodDefinition], width: float, min_size: float = 1.0) -> None:
        _validate_periods(periods)
        self.periods: tuple[PeriodDefinition, ...] = tuple(periods)
        self.width = max(float(min_size), float(width))
        self._t0 = _timestamp(periods[0].start)
        self._t1 = _timestamp(periods[-1].re_exam_end)
        self._ordinals = {period.id: idx + 1 for idx, period in enumerate(self.periods)}

    def pixel(self, instant: Instant) -> float:
        return (_timestamp(instant) - self._t0) / (self._t1 - self._t0) * self.width

    def period(self, period_id: str) -> PeriodDefinition | None:
        idx = self._ordinals.get(period_id)
        return self.periods[idx - 1] if idx is not None else None

    def ordinal(self, period_id: str) -> int | None:
        """1-based chronological position of the period, None when unknown."""
        return self._ordinals.get(period_id)

    def period_at(self, ordinal: int) -> PeriodDefinition | None:
        if 1 <= ordinal <= len(self.periods):
            return self.periods[ordinal - 1]
        return None

    @property
    def period_count(self) -> int:
        return len(self.periods)

    def span(self, start: Instant, end: Instant) -> tuple[float, float]:
        """Pixel x and width of an instant range."""
        x0 = self.pixel(start)
        return x0, self.pixel(end) - x0

    def midpoint(self, start: Instant, end: Instant) -> float:
        return (self.pixel(start) + self.pixel(end)) / 2


def _timestamp(value: Instant) -> float:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, date):
        return datetime.combine(value, time()).timestamp()
    raise TypeError(f"expected date or datetime, got {type(value).__name__}")


def _validate_periods(periods: Sequence[PeriodDefinition]) -> None:
    if not periods:
        raise LayoutConfigurationError("at least one period definition is required")

    for period in periods:
        windows = [
            ("start", period.start, "lecture_end", period.lecture_end),
            ("lecture_end", period.lecture_end, "end", period.end),
            ("exam_start", period.exam_start, "exam_end", period.exam_end),
            ("re_exam_start", period.re_exam_start, "re_exam_end", period.re_exam_end),
        ]
        for first_name, first, second_name, second in windows:
            if _timestamp(first) > _timestamp(second):
                raise LayoutConfigurationError(
                    f"period '{period.id}': {first_name} {first} is after {second_name} {second}"
                )
        if _timestamp(period.start) >= _timestamp(period.end):
            raise LayoutConfigurationError(f"period '{period.id}' must end after it starts")

    for prev, current in zip(periods, periods[1:]):
        if _timestamp(current.start) <= _timestamp(prev.start):
            raise LayoutConfigurationError(
                f"periods are not chronological: '{current.id}' starts {current.start}, "
                f"not after '{prev.id}' ({prev.start})"
            )

    seen: set[str] = set()
    for period in periods:
        if period.id in seen:
            raise LayoutConfigurationError(f"duplicate period id '{period.id}'")
        seen.add(period.id)

    if _timestamp(periods[-1].re_exam_end) <= _timestamp(periods[0].start):
        raise LayoutConfigurationError("last re-exam end must be after the first period start")
