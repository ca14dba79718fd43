"""Layout and arrow routing for academic program timelines."""

from .layout import TimelineEngine, build_layout
from .models import LayerVisibility, LayoutConfig, Program, TimelineLayout, Viewport
from .parse_program import ProgramValidationError, load_program
from .time_grid import LayoutConfigurationError, TimeGrid

__all__ = [
    "LayerVisibility",
    "LayoutConfig",
    "LayoutConfigurationError",
    "Program",
    "ProgramValidationError",
    "TimeGrid",
    "TimelineEngine",
    "TimelineLayout",
    "Viewport",
    "build_layout",
    "load_program",
]
