from __future__ import annotations

import argparse
import logging
import sys
import webbrowser
from dataclasses import fields
from pathlib import Path

import yaml

from .layout import TimelineEngine
from .models import LayerVisibility, Viewport
from .parse_program import ProgramValidationError, load_program
from .render_timeline import render_timeline
from .time_grid import LayoutConfigurationError

LAYER_NAMES = [f.name for f in fields(LayerVisibility)]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Academic program timeline renderer",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("program", help="Path to program YAML")
    parser.add_argument("--out", default="output/program_timeline.svg", help="Output path; suffix selects svg/png/pdf")
    parser.add_argument("--width", type=float, default=1100.0, help="Chart width in pixels")
    parser.add_argument("--height", type=float, default=460.0, help="Initial chart height in pixels")
    parser.add_argument(
        "--hide",
        action="append",
        choices=LAYER_NAMES,
        default=[],
        metavar="LAYER",
        help=f"Hide a layer (repeatable): {', '.join(LAYER_NAMES)}",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log layout details")
    parser.add_argument(
        "--view",
        dest="view",
        action="store_true",
        default=True,
        help="Best-effort open the output file after rendering",
    )
    parser.add_argument(
        "--no-view",
        dest="view",
        action="store_false",
        help="Do not open the output file after rendering",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    program_path = Path(args.program)

    try:
        program, config = load_program(str(program_path))
    except (yaml.YAMLError, ProgramValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: program file not found: {program_path}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        print(f"Unexpected error while loading program: {exc}", file=sys.stderr)
        return 1

    layers = LayerVisibility(**{name: False for name in args.hide})
    engine = TimelineEngine(program, config)
    try:
        layout = engine.layout(Viewport(width=args.width, height=args.height), layers)
    except LayoutConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:
        print(f"Unexpected error during layout: {exc}", file=sys.stderr)
        return 1

    try:
        render_timeline(layout, out_path=args.out, title=f"{program.name} ({program.code})")
    except Exception as exc:
        print(f"Unexpected error while rendering: {exc}", file=sys.stderr)
        return 1

    if args.view:
        try:
            webbrowser.open(Path(args.out).resolve().as_uri())
        except Exception:
            pass

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
