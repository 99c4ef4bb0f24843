"""Resolution of date-math index names.

Supports the expressions Elasticsearch accepts in index names, for example
``<logs-{now/d}>``, ``<logs-{now/M{yyyy.MM}}>`` or
``<logs-{now/d-1d{yyyy.MM.dd|Europe/Paris}}>``. Names that are not wrapped in
angle brackets are returned unchanged.
"""

from __future__ import annotations

import calendar
import re
from datetime import UTC, datetime, timedelta, timezone, tzinfo
from typing import TYPE_CHECKING, Final
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import DateMathError

if TYPE_CHECKING:
    from collections.abc import Callable

DEFAULT_FORMAT: Final[str] = "uuuu.MM.dd"

_MATH_TOKEN = re.compile(r"(?:([+-])(\d+)|/)([yMwdhHms])")
_PATTERN_TOKEN = re.compile(r"([A-Za-z])\1*|'[^']*'|.")
_OFFSET = re.compile(r"([+-])(\d{2}):?(\d{2})")

_FIELDS: Final[dict[str, Callable[[datetime], str]]] = {
    "yyyy": lambda moment: f"{moment.year:04d}",
    "uuuu": lambda moment: f"{moment.year:04d}",
    "yy": lambda moment: f"{moment.year % 100:02d}",
    "MM": lambda moment: f"{moment.month:02d}",
    "dd": lambda moment: f"{moment.day:02d}",
    "HH": lambda moment: f"{moment.hour:02d}",
    "mm": lambda moment: f"{moment.minute:02d}",
    "ss": lambda moment: f"{moment.second:02d}",
}


def is_date_math(name: str) -> bool:
    return len(name) > 2 and name.startswith("<") and name.endswith(">")


def resolve_index_name(name: str, now: datetime) -> str:
    """Return the concrete index name ``name`` denotes at ``now``."""

    if not is_date_math(name):
        return name

    inner = name[1:-1]
    parts: list[str] = []
    pos = 0
    while pos < len(inner):
        char = inner[pos]
        if char == "\\" and pos + 1 < len(inner):
            parts.append(inner[pos + 1])
            pos += 2
            continue
        if char == "}":
            raise DateMathError(f"Unbalanced braces in date math index name: {name}")
        if char != "{":
            parts.append(char)
            pos += 1
            continue
        end = _closing_brace(inner, pos, name)
        parts.append(_evaluate(inner[pos + 1 : end], now, name))
        pos = end + 1

    resolved = "".join(parts)
    if not resolved:
        raise DateMathError(f"Date math index name resolves to an empty name: {name}")
    return resolved


def _closing_brace(text: str, start: int, name: str) -> int:
    depth = 0
    for index in range(start, len(text)):
        if text[index] == "{":
            depth += 1
        elif text[index] == "}":
            depth -= 1
            if depth == 0:
                return index
    raise DateMathError(f"Unbalanced braces in date math index name: {name}")


def _evaluate(expression: str, now: datetime, name: str) -> str:
    math_part, brace, format_part = expression.partition("{")
    if brace:
        if not format_part.endswith("}"):
            raise DateMathError(f"Malformed date format in index name: {name}")
        format_part = format_part[:-1]
    pattern, _, zone = format_part.partition("|")

    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    moment = now.astimezone(_parse_timezone(zone, name) if zone else UTC)
    moment = _apply_math(math_part.strip(), moment, name)
    return _format(moment, pattern or DEFAULT_FORMAT, name)


def _parse_timezone(value: str, name: str) -> tzinfo:
    match = _OFFSET.fullmatch(value)
    if match is not None:
        sign, hours, minutes = match.groups()
        delta = timedelta(hours=int(hours), minutes=int(minutes))
        return timezone(-delta if sign == "-" else delta)
    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise DateMathError(f"Unknown time zone {value!r} in index name: {name}") from exc


def _apply_math(expression: str, moment: datetime, name: str) -> datetime:
    if not expression.startswith("now"):
        raise DateMathError(f"Date math must start with 'now' in index name: {name}")

    rest = expression[3:]
    pos = 0
    while pos < len(rest):
        match = _MATH_TOKEN.match(rest, pos)
        if match is None:
            raise DateMathError(f"Invalid date math {expression!r} in index name: {name}")
        sign, amount, unit = match.groups()
        if sign is None:
            moment = _round_down(moment, unit)
        else:
            moment = _shift(moment, unit, int(amount) if sign == "+" else -int(amount))
        pos = match.end()
    return moment


def _round_down(moment: datetime, unit: str) -> datetime:
    match unit:
        case "y":
            return moment.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
        case "M":
            return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        case "w":
            start = moment - timedelta(days=moment.weekday())
            return start.replace(hour=0, minute=0, second=0, microsecond=0)
        case "d":
            return moment.replace(hour=0, minute=0, second=0, microsecond=0)
        case "h" | "H":
            return moment.replace(minute=0, second=0, microsecond=0)
        case "m":
            return moment.replace(second=0, microsecond=0)
        case _:
            return moment.replace(microsecond=0)


def _shift(moment: datetime, unit: str, amount: int) -> datetime:
    match unit:
        case "y":
            return _add_months(moment, amount * 12)
        case "M":
            return _add_months(moment, amount)
        case "w":
            return moment + timedelta(weeks=amount)
        case "d":
            return moment + timedelta(days=amount)
        case "h" | "H":
            return moment + timedelta(hours=amount)
        case "m":
            return moment + timedelta(minutes=amount)
        case _:
            return moment + timedelta(seconds=amount)


def _add_months(moment: datetime, months: int) -> datetime:
    year, month_index = divmod(moment.month - 1 + months, 12)
    year += moment.year
    month = month_index + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _format(moment: datetime, pattern: str, name: str) -> str:
    parts: list[str] = []
    for match in _PATTERN_TOKEN.finditer(pattern):
        token = match.group(0)
        if token[0].isalpha():
            formatter = _FIELDS.get(token)
            if formatter is None:
                raise DateMathError(f"Unsupported date pattern {token!r} in index name: {name}")
            parts.append(formatter(moment))
        elif len(token) > 1 and token.startswith("'"):
            parts.append(token[1:-1])
        else:
            parts.append(token)
    return "".join(parts)
