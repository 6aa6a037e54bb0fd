"""
Грамматика строки параметров фильтра.

Параметры разделяются запятыми верхнего уровня (вне кавычек и скобок),
обратная косая черта экранирует следующий символ, парные кавычки
снимаются уже после разделения.
"""

from __future__ import annotations

import re
from typing import List

_OUTER_PARENS = re.compile(r"^\((.*)\)$", re.DOTALL)
_ESCAPE = re.compile(r"\\(.)", re.DOTALL)


def strip_parens(param: str) -> str:
    """Снимает внешние круглые скобки: (a, b) -> a, b."""
    return _OUTER_PARENS.sub(r"\1", param.strip())


def unquote(part: str) -> str:
    """Снимает парные внешние кавычки ('x' или "x")."""
    part = part.strip()
    if len(part) >= 2 and part[0] == part[-1] and part[0] in "\"'":
        return part[1:-1]
    return part


def unescape(part: str) -> str:
    """Раскрывает экранирование: \\x -> x."""
    return _ESCAPE.sub(r"\1", part)


def split_params(param: str, separator: str = ",") -> List[str]:
    """
    Разделяет строку параметров по разделителю верхнего уровня.

    Разделитель внутри кавычек или скобок не учитывается, экранированный
    символ не меняет состояния. Части возвращаются обрезанными, но с
    сохранёнными кавычками и экранированием.

    Args:
        param: Строка параметров без внешних скобок
        separator: Односимвольный разделитель

    Returns:
        Список частей (пустая строка даёт пустой список)
    """
    if not param.strip():
        return []

    parts: List[str] = []
    current: List[str] = []
    quote = ""
    depth = 0
    escape_next = False

    for char in param:
        if escape_next:
            current.append(char)
            escape_next = False
            continue
        if char == "\\":
            current.append(char)
            escape_next = True
            continue
        if quote:
            if char == quote:
                quote = ""
            current.append(char)
            continue
        if char in "\"'":
            quote = char
        elif char in "([{":
            depth += 1
        elif char in ")]}":
            depth = max(0, depth - 1)
        elif char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)

    parts.append("".join(current).strip())
    return parts


def parse_args(param: str | None, separator: str = ",") -> List[str]:
    """
    Полный разбор параметров: скобки, разделение, кавычки, экранирование.

    Кавычки снимаются до раскрытия экранирования, поэтому "\\"" даёт ".
    """
    if not param:
        return []
    return [unescape(unquote(part)) for part in split_params(strip_parens(param), separator)]


def single_arg(param: str | None) -> str:
    """Параметр как одно значение: без скобок, внешних кавычек и экранирования."""
    if not param:
        return ""
    return unescape(unquote(strip_parens(param)))


__all__ = ["strip_parens", "unquote", "unescape", "split_params", "parse_args", "single_arg"]
