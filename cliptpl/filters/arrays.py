"""
Фильтры для массивов и объектов.

Значение приходит строкой; если это JSON-массив или объект, фильтр
работает со структурой и сериализует результат обратно в JSON.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional

from .params import parse_args, single_arg, split_params, unescape, unquote
from .registry import FilterSpec
from ..values import get_nested_value, to_json, value_to_string

logger = logging.getLogger(__name__)


def _load(value: str) -> Any:
    """JSON-разбор; при неудаче возвращает None."""
    try:
        return json.loads(value)
    except ValueError:
        return None


def first(value: str, param: Optional[str] = None) -> str:
    data = _load(value)
    if isinstance(data, list) and data:
        return value_to_string(data[0])
    return value


def last(value: str, param: Optional[str] = None) -> str:
    if value == "":
        return value
    data = _load(value)
    if isinstance(data, list) and data:
        return value_to_string(data[-1])
    return value


def join(value: str, param: Optional[str] = None) -> str:
    """Склеивает массив разделителем (по умолчанию запятая); \\n и \\t раскрываются."""
    data = _load(value)
    if not isinstance(data, list):
        return value
    separator = ","
    if param:
        raw = single_arg(param)
        try:
            separator = json.loads('"' + raw.replace('"', '\\"') + '"')
        except ValueError:
            separator = raw
    return separator.join(value_to_string(item) for item in data)


def _parse_index(part: str) -> Optional[int]:
    match = re.match(r"^\s*(-?\d+)", part)
    return int(match.group(1)) if match else None


def slice_filter(value: str, param: Optional[str] = None) -> str:
    """
    Срез массива или строки: slice:1,3 / slice:-2 / slice:,5.

    Срез массива из одного элемента возвращает сам элемент.
    """
    if not param or value == "":
        return value
    parts = split_params(single_arg(param))
    start = _parse_index(parts[0]) if parts else None
    end = _parse_index(parts[1]) if len(parts) > 1 else None

    data = _load(value)
    if isinstance(data, list):
        sliced = data[start:end]
        if len(sliced) == 1:
            return value_to_string(sliced[0])
        return to_json(sliced)
    return value[start:end]


def nth(value: str, param: Optional[str] = None) -> str:
    """
    Выбор элементов по позиции в стиле CSS :nth-child.

    Форматы: 3 (только третий), 5n (каждый пятый), n+7 (с седьмого),
    1,2:7 (позиции 1 и 2 в каждой группе из 7).
    """
    if not value or value in ("undefined", "null"):
        return value
    data = _load(value)
    if not isinstance(data, list):
        return value
    if not param:
        return to_json(data)

    expression = single_arg(param).strip()

    if ":" in expression:
        positions_text, _, basis_text = expression.partition(":")
        positions = {
            int(p) for p in (s.strip() for s in positions_text.split(",")) if p.isdigit() and int(p) > 0
        }
        basis = int(basis_text.strip())
        return to_json([item for i, item in enumerate(data) if (i % basis) + 1 in positions])

    if re.fullmatch(r"\d+", expression):
        position = int(expression)
        return to_json([item for i, item in enumerate(data) if i + 1 == position])

    if re.fullmatch(r"\d+n", expression):
        multiplier = int(expression[:-1])
        return to_json([item for i, item in enumerate(data) if (i + 1) % multiplier == 0])

    match = re.fullmatch(r"n\+(\d+)", expression)
    if match:
        offset = int(match.group(1))
        return to_json([item for i, item in enumerate(data) if i + 1 >= offset])

    logger.warning(f"Invalid nth filter syntax: {expression}")
    return value


def merge(value: str, param: Optional[str] = None) -> str:
    """Добавляет элементы к массиву: merge:("a","b")."""
    if not value or value in ("undefined", "null"):
        return "[]"
    data = _load(value)
    if data is None:
        return value
    if not isinstance(data, list):
        data = [value]
    return to_json(data + parse_args(param))


def unique(value: str, param: Optional[str] = None) -> str:
    """
    Удаляет дубликаты.

    Для объектов остаются ключи последних вхождений каждого значения.
    """
    data = _load(value)
    if isinstance(data, list):
        seen = set()
        result: List[Any] = []
        for item in data:
            key = to_json(item)
            if key not in seen:
                seen.add(key)
                result.append(item)
        return to_json(result)

    if isinstance(data, dict):
        seen = set()
        kept = []
        for key, item in reversed(list(data.items())):
            marker = to_json(item)
            if marker not in seen:
                seen.add(marker)
                kept.append((key, item))
        return to_json(dict(reversed(kept)))

    return value


def object_filter(value: str, param: Optional[str] = None) -> str:
    """Объект в массив пар, ключей или значений: object:array|keys|values."""
    data = _load(value)
    if not isinstance(data, dict):
        return value
    mode = single_arg(param)
    if mode == "array":
        return to_json([[k, v] for k, v in data.items()])
    if mode == "keys":
        return to_json(list(data.keys()))
    if mode == "values":
        return to_json(list(data.values()))
    return value


def length(value: str, param: Optional[str] = None) -> str:
    """Число элементов массива, ключей объекта или символов строки."""
    data = _load(value)
    if isinstance(data, (list, dict)):
        return str(len(data))
    return str(len(value))


def reverse(value: str, param: Optional[str] = None) -> str:
    if not value or value in ("undefined", "null"):
        return ""
    try:
        data = json.loads(value)
    except ValueError:
        return value[::-1]
    if isinstance(data, list):
        return to_json(list(reversed(data)))
    if isinstance(data, dict):
        return to_json(dict(reversed(list(data.items()))))
    return value


# ============================================================================
# Отображение элементов
# ============================================================================

_ARROW = re.compile(r"^\s*(\w+)\s*=>\s*(.+)$", re.DOTALL)
_MAP_SLOT = re.compile(r"\$\{([\w.\[\]]+)\}")


def _map_lookup(path: str, arg: str, item: Any) -> Any:
    path = path.strip()
    if path == arg:
        return item
    if path.startswith(arg + "."):
        return get_nested_value(item, path[len(arg) + 1:])
    if path.startswith(arg + "["):
        return get_nested_value(item, path[len(arg):])
    try:
        return json.loads(path)
    except ValueError:
        return None


def _map_value(body: str, arg: str, item: Any) -> Any:
    """Тело стрелочной функции для одного элемента."""
    body = body.strip()
    if body.startswith("(") and body.endswith(")"):
        body = body[1:-1].strip()

    if body.startswith("{") and body.endswith("}"):
        result = {}
        for part in split_params(body[1:-1]):
            key, sep, field_body = part.partition(":")
            if sep:
                result[unquote(key)] = _map_value(field_body, arg, item)
        return result

    if len(body) >= 2 and body[0] == body[-1] and body[0] in "\"'":
        return _MAP_SLOT.sub(
            lambda m: value_to_string(_map_lookup(m.group(1), arg, item)),
            unescape(body[1:-1]),
        )

    return _map_lookup(body, arg, item)


def map_filter(value: str, param: Optional[str] = None) -> str:
    """
    Преобразует каждый элемент массива стрелочной функцией: map:"item => item.name".

    Тело функции - путь от аргумента (item.author.name), строка
    с подстановками ("${item.name}: ${item.url}") или объектный литерал
    ({title: item.name, link: item.url}). Не-JSON значение считается
    массивом из одного элемента.
    """
    match = _ARROW.match(single_arg(param))
    if match is None:
        logger.warning(f"Invalid arrow function for map filter: {param!r}")
        return value

    data = _load(value)
    if data is None:
        data = [value]
    if not isinstance(data, list):
        return value

    arg, body = match.group(1), match.group(2)
    return to_json([_map_value(body, arg, item) for item in data])


FILTERS = [
    FilterSpec("first", first, "First element of an array"),
    FilterSpec("last", last, "Last element of an array"),
    FilterSpec("join", join, 'Join array items: join:", "'),
    FilterSpec("slice", slice_filter, "Slice an array or string: slice:0,5"),
    FilterSpec("nth", nth, "Pick items by position: nth:3, nth:5n, nth:n+7, nth:1,2:7"),
    FilterSpec("merge", merge, 'Append items to an array: merge:("a","b")'),
    FilterSpec("unique", unique, "Remove duplicate items"),
    FilterSpec("object", object_filter, "Object to array|keys|values"),
    FilterSpec("length", length, "Number of items, keys or characters"),
    FilterSpec("reverse", reverse, "Reverse an array, object or string"),
    FilterSpec("map", map_filter, 'Map array items: map:"item => item.name"'),
]


__all__ = [
    "FILTERS",
    "first", "last", "join", "slice_filter", "nth", "merge", "unique", "object_filter",
    "length", "reverse", "map_filter",
]
