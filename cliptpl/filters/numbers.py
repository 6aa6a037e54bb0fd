"""
Числовые фильтры: арифметика, округление и форматирование.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Optional

from .params import parse_args, single_arg
from .registry import FilterSpec
from ..values import format_number, to_json

_NUMERIC_PREFIX = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")


def calc(value: str, param: Optional[str] = None) -> str:
    """
    Арифметика над числом: calc:"+10", calc:"*2", calc:"**2", calc:"/3".

    Нечисловое значение, неизвестная операция и деление на ноль
    возвращают значение без изменений.
    """
    if not param:
        return value
    try:
        number = float(value)
    except ValueError:
        return value

    expression = single_arg(param).strip()
    if expression.startswith("**"):
        operator, operand_text = "**", expression[2:]
    else:
        operator, operand_text = expression[:1], expression[1:]

    try:
        operand = float(operand_text.strip())
    except ValueError:
        return value

    if operator == "+":
        result = number + operand
    elif operator == "-":
        result = number - operand
    elif operator == "*":
        result = number * operand
    elif operator == "/":
        if operand == 0:
            return value
        result = number / operand
    elif operator in ("**", "^"):
        try:
            result = number ** operand
        except (OverflowError, ZeroDivisionError):
            return value
        if isinstance(result, complex):
            return value
    else:
        return value

    return format_number(round(result, 10))


def _round_half_up(number: float, decimals: int) -> float | int:
    factor = 10 ** decimals
    rounded = math.floor(number * factor + 0.5) / factor
    return int(rounded) if decimals == 0 else rounded


def round_filter(value: str, param: Optional[str] = None) -> str:
    """
    Округление до заданного числа знаков (по умолчанию до целого).

    Применяется рекурсивно к числам внутри JSON-массивов и объектов.
    """
    decimals = 0
    if param:
        try:
            decimals = int(single_arg(param))
        except ValueError:
            return value

    def walk(item: Any) -> Any:
        if isinstance(item, bool):
            return item
        if isinstance(item, (int, float)):
            return _round_half_up(item, decimals)
        if isinstance(item, str):
            try:
                return format_number(_round_half_up(float(item), decimals))
            except ValueError:
                return item
        if isinstance(item, list):
            return [walk(v) for v in item]
        if isinstance(item, dict):
            return {k: walk(v) for k, v in item.items()}
        return item

    try:
        data = json.loads(value)
    except ValueError:
        return value

    if isinstance(data, (int, float)) and not isinstance(data, bool):
        return format_number(walk(data))
    if isinstance(data, (list, dict)):
        return to_json(walk(data))
    return value


def _format_grouped(number: float, decimals: int, dec_point: str, thousands: str) -> str:
    fixed = f"{abs(number):.{decimals}f}"
    integer_part, _, fraction = fixed.partition(".")
    integer_part = re.sub(r"\B(?=(\d{3})+(?!\d))", thousands, integer_part)
    sign = "-" if number < 0 and float(fixed) != 0 else ""
    if decimals > 0:
        return f"{sign}{integer_part}{dec_point}{fraction}"
    return f"{sign}{integer_part}"


def number_format(value: str, param: Optional[str] = None) -> str:
    """
    Форматирует число: number_format:2,".",",".

    Args:
        value: Число, строка с числом в начале или JSON со вложенными числами
        param: Знаки после запятой, десятичный разделитель, разделитель тысяч

    Returns:
        Отформатированная строка или JSON с отформатированными значениями
    """
    args = parse_args(param)
    try:
        decimals = int(args[0]) if args and args[0] else 0
    except ValueError:
        decimals = 0
    dec_point = args[1] if len(args) > 1 else "."
    thousands = args[2] if len(args) > 2 else ","

    def format_item(item: Any) -> Any:
        if isinstance(item, bool):
            return item
        if isinstance(item, (int, float)):
            return _format_grouped(item, decimals, dec_point, thousands)
        if isinstance(item, str):
            match = _NUMERIC_PREFIX.match(item)
            if match:
                return _format_grouped(float(match.group(1)), decimals, dec_point, thousands)
            return item
        if isinstance(item, list):
            return [format_item(v) for v in item]
        if isinstance(item, dict):
            return {k: format_item(v) for k, v in item.items()}
        return item

    try:
        data = json.loads(value)
    except ValueError:
        return format_item(value)

    if isinstance(data, (list, dict)):
        return to_json(format_item(data))
    if isinstance(data, (int, float)) and not isinstance(data, bool):
        return format_item(data)
    return value


FILTERS = [
    FilterSpec("calc", calc, 'Arithmetic: calc:"+10", calc:"**2"'),
    FilterSpec("round", round_filter, "Round to N decimals: round:2"),
    FilterSpec("number_format", number_format, 'Format a number: number_format:2,".",","'),
]


__all__ = ["FILTERS", "calc", "round_filter", "number_format"]
