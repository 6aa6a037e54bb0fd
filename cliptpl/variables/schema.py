"""
Поиск значений schema.org среди извлечённых переменных.

Извлечённые данные хранятся под ключами вида {{schema:@Article:author}}.
Поддерживается сокращённая запись без типа (schema:author) и проекция
массивов: schema:director[*].name, schema:director[0].name.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Optional

SCHEMA_PREFIX = "schema:"

_ARRAY_ACCESS = re.compile(r"^(.*?)\[(\*|\d+)\](.*)$")


def find_schema_key(key: str, variables: Mapping[str, Any]) -> Optional[str]:
    """
    Находит ключ переменной для имени schema без префикса.

    Сначала точный ключ {{schema:key}}, затем сокращённая форма:
    первый ключ с типом (@), оканчивающийся на :key.

    Returns:
        Ключ в карте переменных или None
    """
    wrapped = "{{" + SCHEMA_PREFIX + key + "}}"
    if wrapped in variables:
        return wrapped
    if "@" not in key:
        suffix = f":{key}}}}}"
        for candidate in variables:
            if candidate.startswith("{{" + SCHEMA_PREFIX) and "@" in candidate and candidate.endswith(suffix):
                return candidate
    return None


def lookup_schema(name: str, variables: Mapping[str, Any]) -> Optional[Any]:
    """
    Значение переменной schema:... или None, если данных нет.

    Args:
        name: Имя с префиксом schema: (фильтры уже отделены)
        variables: Карта переменных рендеринга

    Returns:
        Найденное значение; для [*] список значений свойства по всем элементам
    """
    key = name[len(SCHEMA_PREFIX):].strip() if name.startswith(SCHEMA_PREFIX) else name.strip()
    if not key:
        return None

    match = _ARRAY_ACCESS.match(key)
    if match is None:
        found = find_schema_key(key, variables)
        return variables[found] if found is not None else None

    array_key, index, rest = match.groups()
    found = find_schema_key(array_key, variables)
    if found is None:
        return None

    items = _as_structure(variables[found])
    if not isinstance(items, list):
        return None

    path = rest[1:] if rest.startswith(".") else rest
    if index == "*":
        return [value for value in (_property(item, path) for item in items) if value]

    position = int(index)
    if position >= len(items):
        return None
    return _property(items[position], path)


def _as_structure(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


def _property(obj: Any, path: str) -> Any:
    for part in filter(None, path.split(".")):
        if not isinstance(obj, dict):
            return None
        obj = obj.get(part)
    return obj


__all__ = ["SCHEMA_PREFIX", "find_schema_key", "lookup_schema"]
