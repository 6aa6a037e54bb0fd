"""
Значения шаблона: истинность, строковое представление и поиск переменных.

Общие правила, которыми пользуются и рендерер, и фильтры, и постпроцессор.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

_BRACKET_KEY = re.compile(r"^([^\[]*)\[([^\]]+)\]")


def is_truthy(value: Any) -> bool:
    """
    Истинность значения в условиях шаблона.

    Ложны: None, '', 0, False и пустой список. Всё остальное истинно,
    в том числе строка '0' и непустые словари.
    """
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0
    if isinstance(value, list):
        return len(value) > 0
    return True


def format_number(value: float | int) -> str:
    """Число без лишнего .0 у целых значений."""
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return str(value)
        if value.is_integer():
            return str(int(value))
    return str(value)


def to_json(value: Any) -> str:
    """Компактный JSON без экранирования не-ASCII символов."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def value_to_string(value: Any) -> str:
    """
    Строковое представление значения для вывода.

    None -> '', bool -> true/false, целые float без дробной части,
    списки и словари -> компактный JSON.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, (list, dict, tuple)):
        return to_json(value)
    return str(value)


def parse_json_like(value: Any) -> Any:
    """
    Разбирает строку, похожую на JSON-массив или объект.

    Строки, не начинающиеся с [ или {, и невалидный JSON возвращаются как есть.
    """
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if not stripped or stripped[0] not in "[{":
        return value
    try:
        return json.loads(stripped)
    except ValueError:
        return value


def resolve_variable(name: str, variables: Mapping[str, Any]) -> Any:
    """
    Ищет переменную по имени.

    Порядок: ключ {{name}} (так хранятся извлечённые переменные),
    затем ключ name (переменные из {% set %}), затем обход пути по точкам.

    Returns:
        Значение или None, если переменная не найдена
    """
    trimmed = name.strip()

    wrapped = variables.get("{{" + trimmed + "}}")
    if wrapped is not None:
        return wrapped

    plain = variables.get(trimmed)
    if plain is not None:
        return plain

    if "." in trimmed or "[" in trimmed:
        return get_nested_value(variables, trimmed)

    return None


def get_nested_value(obj: Any, path: str) -> Any:
    """
    Обходит путь вида author.name или items[0].title.

    На каждом шаге сначала пробуется ключ в обёртке {{key}}.
    """
    if not path or obj is None:
        return None

    value = obj
    for key in path.split("."):
        if value is None:
            return None

        match = _BRACKET_KEY.match(key)
        if match:
            array_key, index = match.group(1), match.group(2)
            base = _lookup_key(value, array_key) if array_key else value
            value = _index_into(base, index)
            continue

        value = _lookup_key(value, key)

    return value


def _lookup_key(value: Any, key: str) -> Any:
    if isinstance(value, dict):
        wrapped = value.get("{{" + key + "}}")
        if wrapped is not None:
            return wrapped
        return value.get(key)
    if isinstance(value, list) and key.isdigit():
        index = int(key)
        return value[index] if index < len(value) else None
    if isinstance(value, (list, str)) and key == "length":
        return len(value)
    return None


def _index_into(base: Any, index: str) -> Any:
    if isinstance(base, list):
        try:
            position = int(index)
        except ValueError:
            return None
        if -len(base) <= position < len(base):
            return base[position]
        return None
    if isinstance(base, dict):
        return base.get(index.strip("\"'"))
    return None


__all__ = [
    "is_truthy",
    "format_number",
    "to_json",
    "value_to_string",
    "parse_json_like",
    "resolve_variable",
    "get_nested_value",
]
