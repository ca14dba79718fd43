from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, fields
from typing import Any

import yaml

from .models import COLOR_FAMILY_VARIANTS, Course, CourseCredit, CourseGroup, LayoutConfig, PeriodDefinition, Program


class ProgramValidationError(Exception):
    """Raised when a program file is structurally invalid (types, fields, duplicates)."""


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like courses[0].period_credits."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


_PERIOD_DATES = ("start", "end", "lecture_end", "exam_start", "exam_end", "re_exam_start", "re_exam_end")
_COURSE_KEYS = {
    "code",
    "name",
    "brief_name",
    "year",
    "period_credits",
    "credits",
    "prerequisites",
    "prerequisites_participation",
    "exams",
    "reexams",
    "exams_by_year",
    "reexams_by_year",
    "meta",
}


def load_program(path: str) -> tuple[Program, LayoutConfig]:
    """Load a Program and its layout settings from a YAML file (no layout is run)."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_program(raw)


def parse_program(data: Any) -> tuple[Program, LayoutConfig]:
    path = _Path()
    if not isinstance(data, dict):
        raise ProgramValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"program", "periods", "courses", "groups", "layout"}, path)

    program_raw = data.get("program")
    if not isinstance(program_raw, dict):
        raise ProgramValidationError(f"{path}: missing required mapping 'program'")
    _assert_allowed_keys(program_raw, {"code", "name", "meta"}, path.child("program"))
    code = _require_str(program_raw, "code", path.child("program"))
    name = _require_str(program_raw, "name", path.child("program"))
    meta = _parse_meta(program_raw.get("meta"), path.child("program.meta"))

    periods_raw = _require_list(data, "periods", path)
    period_ids: set[str] = set()
    periods: list[PeriodDefinition] = []
    for idx, period_raw in enumerate(periods_raw):
        period = _parse_period(period_raw, path.child(f"periods[{idx}]"))
        if period.id in period_ids:
            raise ProgramValidationError(f"{path}.periods[{idx}]: duplicate period id '{period.id}'")
        period_ids.add(period.id)
        periods.append(period)

    courses_raw = _require_list(data, "courses", path)
    codes: set[str] = set()
    courses: list[Course] = []
    for idx, course_raw in enumerate(courses_raw):
        course = _parse_course(course_raw, path.child(f"courses[{idx}]"))
        if course.code in codes:
            raise ProgramValidationError(f"{path}.courses[{idx}]: duplicate course code '{course.code}'")
        codes.add(course.code)
        courses.append(course)

    groups = [
        _parse_group(group_raw, path.child(f"groups[{idx}]"))
        for idx, group_raw in enumerate(_optional_list(data, "groups", path))
    ]

    config = _parse_layout(data.get("layout"), path.child("layout"))
    return Program(code=code, name=name, periods=periods, courses=courses, meta=meta, groups=groups), config


def _parse_period(data: Any, path: _Path) -> PeriodDefinition:
    if not isinstance(data, dict):
        raise ProgramValidationError(f"{path}: expected mapping for period")
    _assert_allowed_keys(data, {"id", *_PERIOD_DATES}, path)
    period_id = _require_str(data, "id", path)
    dates = {key: _parse_date(_require_value(data, key, path), path.child(key)) for key in _PERIOD_DATES}
    return PeriodDefinition(id=period_id, **dates)


def _parse_course(data: Any, path: _Path) -> Course:
    if not isinstance(data, dict):
        raise ProgramValidationError(f"{path}: expected mapping for course")
    _assert_allowed_keys(data, _COURSE_KEYS, path)

    code = _require_str(data, "code", path)
    name = _require_str(data, "name", path)
    brief_name = data.get("brief_name")
    if brief_name is not None and not isinstance(brief_name, str):
        raise ProgramValidationError(f"{path}.brief_name: expected string")

    year = data.get("year", 1)
    if not isinstance(year, int) or isinstance(year, bool):
        raise ProgramValidationError(f"{path}.year: expected integer")

    credits: list[CourseCredit] = []
    period_credits = data.get("period_credits") or {}
    if not isinstance(period_credits, dict):
        raise ProgramValidationError(f"{path}.period_credits: expected mapping of period id to credits")
    for period_id, value in period_credits.items():
        credits.append(CourseCredit(year=year, period_id=str(period_id), credits=_parse_number(value, path.child(f"period_credits.{period_id}"))))

    explicit = data.get("credits") or []
    if not isinstance(explicit, list):
        raise ProgramValidationError(f"{path}.credits: expected list")
    for idx, entry in enumerate(explicit):
        credits.append(_parse_credit(entry, path.child(f"credits[{idx}]"), default_year=year))

    return Course(
        code=code,
        name=name,
        brief_name=brief_name,
        # Zero-credit entries carry no bar; drop them here so the layout never sees them.
        credits=[credit for credit in credits if credit.credits > 0],
        prerequisites_completed=_parse_str_list(data.get("prerequisites"), path.child("prerequisites")),
        prerequisites_participation=_parse_str_list(
            data.get("prerequisites_participation"), path.child("prerequisites_participation")
        ),
        exams=_parse_str_list(data.get("exams"), path.child("exams")),
        reexams=_parse_str_list(data.get("reexams"), path.child("reexams")),
        exams_by_year=_parse_by_year(data.get("exams_by_year"), path.child("exams_by_year")),
        reexams_by_year=_parse_by_year(data.get("reexams_by_year"), path.child("reexams_by_year")),
        meta=_parse_meta(data.get("meta"), path.child("meta")),
    )


def _parse_credit(data: Any, path: _Path, default_year: int) -> CourseCredit:
    if not isinstance(data, dict):
        raise ProgramValidationError(f"{path}: expected mapping with period and credits")
    _assert_allowed_keys(data, {"year", "period", "credits"}, path)
    year = data.get("year", default_year)
    if not isinstance(year, int) or isinstance(year, bool):
        raise ProgramValidationError(f"{path}.year: expected integer")
    period_id = _require_str(data, "period", path)
    credits = _parse_number(_require_value(data, "credits", path), path.child("credits"))
    return CourseCredit(year=year, period_id=period_id, credits=credits)


def _parse_group(data: Any, path: _Path) -> CourseGroup:
    if not isinstance(data, dict):
        raise ProgramValidationError(f"{path}: expected mapping for group")
    _assert_allowed_keys(data, {"name", "name_en", "color_family", "courses"}, path)
    family = _require_str(data, "color_family", path)
    if family not in COLOR_FAMILY_VARIANTS:
        raise ProgramValidationError(
            f"{path}.color_family: expected one of {sorted(COLOR_FAMILY_VARIANTS)}, got '{family}'"
        )
    name_en = data.get("name_en")
    if name_en is not None and not isinstance(name_en, str):
        raise ProgramValidationError(f"{path}.name_en: expected string")
    return CourseGroup(
        name=_require_str(data, "name", path),
        color_family=family,
        courses=_parse_str_list(data.get("courses"), path.child("courses")),
        name_en=name_en,
    )


def _parse_layout(value: Any, path: _Path) -> LayoutConfig:
    if value is None:
        return LayoutConfig()
    if not isinstance(value, dict):
        raise ProgramValidationError(f"{path}: expected mapping")
    allowed = {f.name for f in fields(LayoutConfig)}
    _assert_allowed_keys(value, allowed, path)
    overrides = {key: _parse_number(raw, path.child(key)) for key, raw in value.items()}
    return LayoutConfig(**overrides)


def _parse_by_year(value: Any, path: _Path) -> dict[int, list[str]] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ProgramValidationError(f"{path}: expected mapping of year to period ids")
    result: dict[int, list[str]] = {}
    for key, periods in value.items():
        try:
            year = int(key)
        except (TypeError, ValueError) as exc:
            raise ProgramValidationError(f"{path}: year key '{key}' is not an integer") from exc
        result[year] = _parse_str_list(periods, path.child(str(key)))
    return result


def _parse_str_list(value: Any, path: _Path) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProgramValidationError(f"{path}: expected list of strings")
    items: list[str] = []
    for idx, item in enumerate(value):
        if not isinstance(item, str):
            raise ProgramValidationError(f"{path}[{idx}]: expected string")
        items.append(item)
    return items


def _parse_number(value: Any, path: _Path) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProgramValidationError(f"{path}: expected number")
    return float(value)


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(str(key) for key in set(data.keys()) - allowed)
    if extras:
        raise ProgramValidationError(f"{path}: unexpected fields {extras}")


def _require_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = _require_value(data, key, path)
    if not isinstance(value, list):
        raise ProgramValidationError(f"{path.child(key)}: expected list")
    return value


def _optional_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProgramValidationError(f"{path.child(key)}: expected list")
    return value


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise ProgramValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise ProgramValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _parse_date(value: Any, path: _Path) -> _dt.date:
    # PyYAML already turns unquoted ISO dates into date objects.
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        raise ProgramValidationError(f"{path}: expected YYYY-MM-DD date")
    try:
        parsed = _dt.date.fromisoformat(value)
    except ValueError as exc:
        raise ProgramValidationError(f"{path}: expected YYYY-MM-DD date") from exc
    return parsed


def _parse_meta(value: Any, path: _Path) -> dict[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ProgramValidationError(f"{path}: expected mapping for meta")
    return value
