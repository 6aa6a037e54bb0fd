"""
Текстовые фильтры: регистр, замены, разбиение, очистка имён и HTML.
"""

from __future__ import annotations

import html
import json
import re
from typing import Any, List, Optional
from urllib.parse import unquote as url_unquote

from .params import single_arg, split_params, strip_parens, unescape, unquote
from .registry import FilterSpec
from ..values import get_nested_value, value_to_string

# ============================================================================
# Регистр
# ============================================================================

_TITLE_WORD = re.compile(r"[^\W\d_]\S*")
_CAMEL_BOUNDARY = re.compile(r"(?:^\w|[A-Z]|\b\w)")


def lower(value: str, param: Optional[str] = None) -> str:
    return value.lower()


def upper(value: str, param: Optional[str] = None) -> str:
    return value.upper()


def _capitalize_word(text: str) -> str:
    return text[:1].upper() + text[1:].lower()


def capitalize(value: str, param: Optional[str] = None) -> str:
    """Первая буква заглавная, остальные строчные; JSON обрабатывается рекурсивно."""
    def walk(item: Any) -> Any:
        if isinstance(item, str):
            return _capitalize_word(item)
        if isinstance(item, list):
            return [walk(v) for v in item]
        if isinstance(item, dict):
            return {_capitalize_word(k): walk(v) for k, v in item.items()}
        return item

    try:
        parsed = json.loads(value)
    except ValueError:
        return _capitalize_word(value)
    return json.dumps(walk(parsed), ensure_ascii=False)


def title(value: str, param: Optional[str] = None) -> str:
    return _TITLE_WORD.sub(lambda m: _capitalize_word(m.group(0)), value)


def camel(value: str, param: Optional[str] = None) -> str:
    converted = _CAMEL_BOUNDARY.sub(
        lambda m: m.group(0).lower() if m.start() == 0 else m.group(0).upper(),
        value,
    )
    return re.sub(r"[\s_-]+", "", converted)


def pascal(value: str, param: Optional[str] = None) -> str:
    converted = re.sub(r"[\s_-]+(.)", lambda m: m.group(1).upper(), value)
    return converted[:1].upper() + converted[1:]


def kebab(value: str, param: Optional[str] = None) -> str:
    converted = re.sub(r"([a-z])([A-Z])", r"\1-\2", value)
    return re.sub(r"[\s_]+", "-", converted).lower()


def snake(value: str, param: Optional[str] = None) -> str:
    converted = re.sub(r"([a-z])([A-Z])", r"\1_\2", value)
    return re.sub(r"[\s-]+", "_", converted).lower()


def uncamel(value: str, param: Optional[str] = None) -> str:
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", value)
    return re.sub(r"([A-Z])([A-Z][a-z])", r"\1 \2", spaced).lower()


def trim(value: str, param: Optional[str] = None) -> str:
    return value.strip()


# ============================================================================
# Замены и разбиение
# ============================================================================

def _replace_pair(text: str, pair: str) -> str:
    parts = split_params(pair, ":")
    if not parts:
        return text
    search = unescape(unquote(parts[0]))
    replacement = unescape(unquote(parts[1])) if len(parts) > 1 else ""
    if not search:
        return text
    return text.replace(search, replacement)


def replace(value: str, param: Optional[str] = None) -> str:
    """
    Замена подстрок: replace:"old":"new" или replace:"a":"b","c":"d".

    Без второй части подстрока удаляется.
    """
    if not param:
        return value
    result = value
    for pair in split_params(strip_parens(param)):
        result = _replace_pair(result, pair)
    return result


def split(value: str, param: Optional[str] = None) -> str:
    """
    Разбивает строку в JSON-массив.

    Односимвольный разделитель используется как есть, более длинный
    трактуется как регулярное выражение.
    """
    if not param:
        return json.dumps([value], ensure_ascii=False)
    separator = single_arg(param)
    if len(separator) == 1:
        parts: List[str] = value.split(separator)
    elif not separator:
        parts = list(value)
    else:
        parts = re.split(separator, value)
    return json.dumps(parts, ensure_ascii=False)


def unescape_filter(value: str, param: Optional[str] = None) -> str:
    return value.replace('\\"', '"').replace("\\n", "\n")


def decode_uri(value: str, param: Optional[str] = None) -> str:
    try:
        return url_unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value


# ============================================================================
# Имена файлов и HTML
# ============================================================================

_RESERVED_WINDOWS = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE)
_MAX_NAME_LENGTH = 245  # оставляет место для " 1.md"


def safe_name(value: str, param: Optional[str] = None) -> str:
    """
    Делает строку допустимым именем файла.

    Параметр выбирает платформу: windows, mac, linux или default
    (самый строгий набор правил).
    """
    platform = single_arg(param).lower().strip() or "default"
    name = re.sub(r"[#|\^\[\]]", "", value)

    if platform == "windows":
        name = re.sub(r'[<>:"/\\|?*\x00-\x1F]', "", name)
        name = _RESERVED_WINDOWS.sub(r"_\1\2", name)
        name = re.sub(r"[\s.]+$", "", name)
    elif platform == "mac":
        name = re.sub(r"[/:\x00-\x1F]", "", name)
        name = re.sub(r"^\.", "_", name)
    elif platform == "linux":
        name = re.sub(r"[/\x00-\x1F]", "", name)
        name = re.sub(r"^\.", "_", name)
    else:
        name = re.sub(r'[<>:"/\\|?*\x00-\x1F]', "", name)
        name = _RESERVED_WINDOWS.sub(r"_\1\2", name)
        name = re.sub(r"[\s.]+$", "", name)
        name = re.sub(r"^\.", "_", name)

    name = re.sub(r"^\.+", "", name)[:_MAX_NAME_LENGTH]
    return name or "Untitled"


def strip_tags(value: str, param: Optional[str] = None) -> str:
    """
    Удаляет HTML-теги, кроме перечисленных в параметре, и раскрывает сущности.
    """
    keep = [tag.strip() for tag in single_arg(param).split(",") if tag.strip()]

    if keep:
        allowed = "|".join(re.escape(tag) for tag in keep)
        result = re.sub(rf"<(?!/?(?:{allowed})\b)[^>]+>", "", value, flags=re.IGNORECASE)
    else:
        result = re.sub(r"</?[^>]+(>|$)", "", value)

    result = html.unescape(result).replace("\xa0", " ")
    result = re.sub(r"\n{3,}", "\n\n", result)
    return result.strip()


# ============================================================================
# Подстановка
# ============================================================================

_TEMPLATE_SLOT = re.compile(r"\$\{([\w.\[\]]+)\}")


def template(value: str, param: Optional[str] = None) -> str:
    """
    Подставляет поля значения в строку: template:"${name} (${year})".

    Не-JSON значение доступно как ${value}.
    """
    if not param:
        return value
    pattern = single_arg(param)
    try:
        data = json.loads(value)
    except ValueError:
        data = {"value": value}

    def substitute(match: re.Match) -> str:
        path = re.sub(r"\[(\w+)\]", r".\1", match.group(1))
        found = get_nested_value(data, path)
        return value_to_string(found) if found else ""

    return _TEMPLATE_SLOT.sub(substitute, pattern)


FILTERS = [
    FilterSpec("lower", lower, "Lowercase"),
    FilterSpec("upper", upper, "Uppercase"),
    FilterSpec("capitalize", capitalize, "First letter uppercase, rest lowercase"),
    FilterSpec("title", title, "Title Case Every Word"),
    FilterSpec("camel", camel, "camelCase"),
    FilterSpec("pascal", pascal, "PascalCase"),
    FilterSpec("kebab", kebab, "kebab-case"),
    FilterSpec("snake", snake, "snake_case"),
    FilterSpec("uncamel", uncamel, "camelCase -> space separated lowercase"),
    FilterSpec("trim", trim, "Strip surrounding whitespace"),
    FilterSpec("replace", replace, 'Replace text: replace:"old":"new"'),
    FilterSpec("split", split, 'Split into an array: split:","'),
    FilterSpec("unescape", unescape_filter, 'Unescape \\" and \\n'),
    FilterSpec("decode_uri", decode_uri, "Decode percent-encoding"),
    FilterSpec("safe_name", safe_name, "Make a safe file name: safe_name:windows"),
    FilterSpec("strip_tags", strip_tags, 'Remove HTML tags: strip_tags:("p,b")'),
    FilterSpec("template", template, 'Fill a pattern: template:"${title}"'),
]


__all__ = [
    "FILTERS",
    "lower", "upper", "capitalize", "title", "camel", "pascal", "kebab", "snake", "uncamel", "trim",
    "replace", "split", "unescape_filter", "decode_uri", "safe_name", "strip_tags", "template",
]
