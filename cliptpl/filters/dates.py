"""
Фильтры дат и продолжительностей на основе pendulum.

Форматы вывода используют токены pendulum (YYYY, MM, DD, HH, mm, dddd ...).
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import pendulum

from .params import parse_args, single_arg, unquote
from .registry import FilterSpec

logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = "YYYY-MM-DD"

_MODIFIER = re.compile(r"^([+-])\s*(\d+)\s*(\w+?)s?$")
_UNITS = {
    "year": "years",
    "month": "months",
    "week": "weeks",
    "day": "days",
    "hour": "hours",
    "minute": "minutes",
    "second": "seconds",
}


def parse_date(text: str, input_format: str = "") -> Optional[pendulum.DateTime]:
    """
    Разбирает дату из строки.

    Args:
        text: Строка с датой
        input_format: Формат pendulum; без него формат угадывается

    Returns:
        DateTime или None, если строку нельзя разобрать как дату
    """
    text = text.strip()
    if not text:
        return None
    try:
        if input_format:
            return pendulum.from_format(text, input_format)
        parsed = pendulum.parse(text, strict=False)
    except (ValueError, OverflowError):
        return None

    # pendulum.parse может вернуть DateTime, Date, Time или Duration
    if isinstance(parsed, pendulum.DateTime):
        return parsed
    if isinstance(parsed, pendulum.Date):
        return pendulum.datetime(parsed.year, parsed.month, parsed.day)
    return None


def date(value: str, param: Optional[str] = None) -> str:
    """
    Переформатирует дату: date:"YYYY-MM-DD" или date:("DD.MM.YYYY","MM/DD/YYYY").

    Второй параметр задаёт формат входной строки.
    """
    args = parse_args(param)
    output_format = args[0].strip() if args and args[0].strip() else DEFAULT_DATE_FORMAT
    input_format = args[1].strip() if len(args) > 1 else ""

    parsed = parse_date(value, input_format)
    if parsed is None:
        logger.warning(f"Invalid date for date filter: {value!r}")
        return value
    return parsed.format(output_format)


def date_modify(value: str, param: Optional[str] = None) -> str:
    """Сдвигает дату: date_modify:"+1 day", date_modify:"-2 weeks"."""
    if not param:
        logger.warning("date_modify filter requires a parameter")
        return value

    parsed = parse_date(value)
    if parsed is None:
        logger.warning(f"Invalid date for date_modify filter: {value!r}")
        return value

    modifier = single_arg(param).strip()
    match = _MODIFIER.match(modifier)
    unit = _UNITS.get(match.group(3).lower()) if match else None
    if unit is None:
        logger.warning(f"Invalid format for date_modify filter: {modifier}")
        return value

    amount = int(match.group(2))
    if match.group(1) == "+":
        shifted = parsed.add(**{unit: amount})
    else:
        shifted = parsed.subtract(**{unit: amount})
    return shifted.format(DEFAULT_DATE_FORMAT)


# ============================================================================
# Продолжительность
# ============================================================================

_SECONDS = re.compile(r"^\d+$")
_DURATION_TOKEN = re.compile(r"HH|H|mm|m|ss|s")


def _duration_seconds(text: str) -> Optional[int]:
    """Число секунд из строки ISO 8601 (PT1H30M) или целого числа секунд."""
    if _SECONDS.match(text):
        return int(text)
    try:
        parsed = pendulum.parse(text)
    except (ValueError, OverflowError):
        return None
    # Годы и месяцы pendulum считает как 365 и 30 дней
    if isinstance(parsed, pendulum.Duration):
        return int(parsed.total_seconds())
    return None


def duration(value: str, param: Optional[str] = None) -> str:
    """
    Форматирует продолжительность: duration:"HH:mm:ss".

    Токены формата: HH, H, mm, m, ss, s. Без формата берётся HH:mm:ss
    для продолжительности от часа и mm:ss для более короткой.
    """
    text = unquote(value.strip())
    if not text:
        return value

    seconds = _duration_seconds(text)
    if seconds is None:
        logger.warning(f"Invalid duration for duration filter: {value!r}")
        return value

    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    pattern = single_arg(param) or ("HH:mm:ss" if hours else "mm:ss")
    parts = {
        "HH": f"{hours:02d}",
        "H": str(hours),
        "mm": f"{minutes:02d}",
        "m": str(minutes),
        "ss": f"{secs:02d}",
        "s": str(secs),
    }
    return _DURATION_TOKEN.sub(lambda m: parts[m.group(0)], pattern)


FILTERS = [
    FilterSpec("date", date, 'Format a date: date:"YYYY-MM-DD"'),
    FilterSpec("date_modify", date_modify, 'Shift a date: date_modify:"+1 day"'),
    FilterSpec("duration", duration, 'Format a duration: duration:"HH:mm:ss"'),
]


__all__ = ["DEFAULT_DATE_FORMAT", "FILTERS", "parse_date", "date", "date_modify", "duration"]
