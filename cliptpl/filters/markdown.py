"""
Фильтры, формирующие Markdown: цитаты, ссылки, изображения, списки, таблицы.
"""

from __future__ import annotations

import json
import re
from typing import Any, List, Optional
from urllib.parse import quote, urljoin

from .params import parse_args, single_arg
from .registry import FilterSpec
from ..values import to_json, value_to_string

_RELATIVE_URL = re.compile(r"^(?:/|\./|\.\./)")


def _load(value: str) -> Any:
    try:
        return json.loads(value)
    except ValueError:
        return None


def escape_markdown(text: str) -> str:
    """Экранирует квадратные скобки, ломающие синтаксис ссылок."""
    return re.sub(r"([\[\]])", r"\\\1", text)


def _resolve_url(url: str, current_url: str) -> str:
    url = url.strip().replace(" ", "%20")
    if current_url and _RELATIVE_URL.match(url):
        return urljoin(current_url, url)
    return url


# ============================================================================
# Цитаты
# ============================================================================

def blockquote(value: str, param: Optional[str] = None) -> str:
    return "\n".join(f"> {line}" for line in value.split("\n"))


def callout(value: str, param: Optional[str] = None) -> str:
    """
    Оборачивает текст в callout: callout:("warning","Title",true).

    Третий параметр управляет сворачиванием: true даёт свёрнутый (-),
    false развёрнутый (+) callout.
    """
    args = parse_args(param)
    kind = args[0] if args and args[0] else "info"
    heading = args[1] if len(args) > 1 else ""
    fold = ""
    if len(args) > 2:
        if args[2].lower() == "true":
            fold = "-"
        elif args[2].lower() == "false":
            fold = "+"

    header = f"> [!{kind}]{fold}"
    if heading:
        header += f" {heading}"
    body = "\n".join(f"> {line}" for line in value.split("\n"))
    return f"{header}\n{body}"


# ============================================================================
# Ссылки и изображения
# ============================================================================

def link(value: str, param: Optional[str] = None, current_url: str = "") -> str:
    """
    Превращает URL (или массив/объект URL) в Markdown-ссылки.

    Для объекта ключ считается URL, значение текстом ссылки.
    Относительные URL разрешаются от адреса текущей страницы.
    """
    if not value.strip():
        return value
    text = single_arg(param) or "link"
    data = _load(value)

    if isinstance(data, list):
        return "\n".join(
            f"[{escape_markdown(text)}]({_resolve_url(value_to_string(item), current_url)})"
            for item in data if value_to_string(item).strip()
        )
    if isinstance(data, dict):
        return "\n".join(
            f"[{escape_markdown(value_to_string(label))}]({_resolve_url(url, current_url)})"
            for url, label in data.items()
        )
    return f"[{escape_markdown(text)}]({_resolve_url(value, current_url)})"


def image(value: str, param: Optional[str] = None, current_url: str = "") -> str:
    """Превращает URL (или массив/объект URL) в Markdown-изображения."""
    if not value.strip():
        return value
    alt = single_arg(param)
    data = _load(value)

    if isinstance(data, list):
        return "\n".join(
            f"![{escape_markdown(alt)}]({_resolve_url(value_to_string(item), current_url)})"
            for item in data if value_to_string(item).strip()
        )
    if isinstance(data, dict):
        return "\n".join(
            f"![{escape_markdown(value_to_string(label))}]({_resolve_url(url, current_url)})"
            for url, label in data.items()
        )
    return f"![{escape_markdown(alt)}]({_resolve_url(value, current_url)})"


def wikilink(value: str, param: Optional[str] = None) -> str:
    """Вики-ссылка [[target|alias]]; для массива возвращает JSON-массив ссылок."""
    if not value.strip():
        return value
    alias = single_arg(param)
    suffix = f"|{alias}" if alias else ""
    data = _load(value)

    if isinstance(data, list):
        return to_json([f"[[{value_to_string(item)}{suffix}]]" for item in data if value_to_string(item).strip()])
    if isinstance(data, dict):
        return to_json([f"[[{key}|{value_to_string(item)}]]" for key, item in data.items()])
    return f"[[{value}{suffix}]]"


def _kebab_key(key: str) -> str:
    return re.sub(r"\s+", "-", re.sub(r"([a-z])([A-Z])", r"\1-\2", key)).lower()


def footnote(value: str, param: Optional[str] = None) -> str:
    """Массив или объект в список сносок [^1]: текст."""
    data = _load(value)
    if isinstance(data, list):
        return "\n\n".join(f"[^{i}]: {value_to_string(item)}" for i, item in enumerate(data, start=1))
    if isinstance(data, dict):
        return "\n\n".join(f"[^{_kebab_key(key)}]: {value_to_string(item)}" for key, item in data.items())
    return value


# ============================================================================
# Списки
# ============================================================================

def _list_lines(items: List[Any], kind: str, depth: int) -> List[str]:
    lines: List[str] = []
    number = 0
    indent = "\t" * depth
    for item in items:
        if isinstance(item, list):
            lines.extend(_list_lines(item, kind, depth + 1))
            continue
        number += 1
        text = value_to_string(item)
        if kind == "numbered":
            marker = f"{number}. "
        elif kind == "task":
            marker = "- [ ] "
        elif kind == "numbered-task":
            marker = f"{number}. [ ] "
        else:
            marker = "- "
        lines.append(f"{indent}{marker}{text}")
    return lines


def list_filter(value: str, param: Optional[str] = None) -> str:
    """
    Markdown-список из массива: list, list:numbered, list:task, list:numbered-task.

    Вложенные массивы становятся вложенными списками с отступом табуляцией.
    """
    kind = single_arg(param) or "bullet"
    data = _load(value)
    if not isinstance(data, list):
        data = [value]
    return "\n".join(_list_lines(data, kind, 0))


# ============================================================================
# Таблицы
# ============================================================================

def _cell(value: Any) -> str:
    return value_to_string(value).replace("|", "\\|")


def _row(cells: List[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def _table(headers: List[str], rows: List[List[str]]) -> str:
    lines = [_row(headers), _row(["-"] * len(headers))]
    lines.extend(_row(row) for row in rows)
    return "\n".join(lines)


def table(value: str, param: Optional[str] = None) -> str:
    """
    Markdown-таблица из JSON: table или table:("Name","Year").

    Объект даёт таблицу ключ-значение, массив объектов - строку на объект,
    массив массивов - строку на вложенный массив. Простой массив с
    заголовками раскладывается по строкам из len(headers) ячеек,
    без заголовков выводится одной колонкой Value.
    """
    if not value or value in ("undefined", "null"):
        return value
    data = _load(value)
    headers = parse_args(param)

    if isinstance(data, dict):
        if not data:
            return value
        rows = [[_cell(key), _cell(item)] for key, item in data.items()]
        return _table(rows[0], rows[1:])

    if not isinstance(data, list) or not data:
        return value

    if isinstance(data[0], dict):
        columns = headers or list(data[0])
        rows = [
            [_cell(row.get(column)) if isinstance(row, dict) else "" for column in columns]
            for row in data
        ]
        return _table(columns, rows)

    if isinstance(data[0], list):
        width = max(len(row) if isinstance(row, list) else 1 for row in data)
        rows = []
        for row in data:
            cells = [_cell(cell) for cell in (row if isinstance(row, list) else [row])]
            rows.append(cells + [""] * (width - len(cells)))
        return _table(headers or [""] * width, rows)

    if headers:
        width = len(headers)
        rows = []
        for start in range(0, len(data), width):
            cells = [_cell(cell) for cell in data[start:start + width]]
            rows.append(cells + [""] * (width - len(cells)))
        return _table(headers, rows)

    return _table(["Value"], [[_cell(item)] for item in data])


# ============================================================================
# Очистка разметки и ссылки на фрагменты
# ============================================================================

_STRIP_MD_RULES = [
    (re.compile(r"!\[([^\]]*)\]\([^)]+\)"), ""),
    (re.compile(r"!\[\[([^\]]+)\]\]"), ""),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"https?://\S+"), ""),
    (re.compile(r"```[\s\S]*?```"), ""),
    (re.compile(r"(\*\*|__)(.*?)\1"), r"\2"),
    (re.compile(r"(\*|_)(.*?)\1"), r"\2"),
    (re.compile(r"==(.*?)=="), r"\1"),
    (re.compile(r"^#+\s+", re.MULTILINE), ""),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"~~(.*?)~~"), r"\1"),
    (re.compile(r"^[-*+] (\[[x ]\] )?", re.MULTILINE), ""),
    (re.compile(r"^([-*_]){3,}\s*$", re.MULTILINE), ""),
    (re.compile(r"^>\s+", re.MULTILINE), ""),
    (re.compile(r"\|.*\|"), ""),
    (re.compile(r"([~^])(\w+)\1"), r"\2"),
    (re.compile(r":[a-z_]+:"), ""),
    (re.compile(r"<[^>]+>"), ""),
    (re.compile(r"\[\s*\]"), ""),
    (re.compile(r"\[\^[^\]]+\]"), ""),
    (re.compile(r"^\*\[[^\]]+\]:.+$", re.MULTILINE), ""),
    (re.compile(r"\[\[([^\]|]+)\|?([^\]]*)\]\]"), lambda m: m.group(2) or m.group(1)),
]


def strip_md(value: str, param: Optional[str] = None) -> str:
    """Убирает Markdown-разметку, оставляя текст; изображения и таблицы удаляются целиком."""
    for pattern, replacement in _STRIP_MD_RULES:
        value = pattern.sub(replacement, value)
    return re.sub(r"\n{3,}", "\n\n", value).strip()


_FRAGMENT_PARAM = re.compile(r"^(.*?):?((?:https?|file)://.*)$")
# Символы, которые encodeURIComponent оставляет как есть
_URI_COMPONENT_SAFE = "-_.!~*'()"


def _text_fragment(text: str) -> str:
    """#:~:text= для выделенного текста; длинный текст задаётся началом и концом."""
    words = strip_md(text).split()
    if len(words) > 10:
        start, end = " ".join(words[:5]), " ".join(words[-5:])
        return (
            "#:~:text=" + quote(start, safe=_URI_COMPONENT_SAFE)
            + "," + quote(end, safe=_URI_COMPONENT_SAFE)
        )
    return "#:~:text=" + quote(" ".join(words), safe=_URI_COMPONENT_SAFE)


def fragment_link(value: str, param: Optional[str] = None, current_url: str = "") -> str:
    """
    Дописывает к выделениям ссылку на фрагмент текста страницы.

    fragment_link, fragment_link:"text" или fragment_link:"text":"https://..."
    Без URL в параметре используется адрес текущей страницы. Для
    объектов выделений с полем text ссылка дописывается в это поле.
    Возвращает JSON-массив.
    """
    if not value.strip():
        return value

    text = re.sub(r"[\"']", "", param or "")
    match = _FRAGMENT_PARAM.match(text)
    if match:
        label, url = match.group(1).strip() or "link", match.group(2).strip()
    else:
        label, url = text.strip() or "link", current_url
    if not url:
        return value

    def linked(item: str) -> str:
        return f"{item} [{label}]({url}{_text_fragment(item)})"

    data = _load(value)
    if isinstance(data, list):
        result: List[Any] = []
        for item in data:
            if isinstance(item, dict) and "text" in item:
                result.append({**item, "text": linked(value_to_string(item["text"]))})
            else:
                result.append(linked(value_to_string(item)))
        return to_json(result)
    if isinstance(data, dict):
        return to_json([linked(value_to_string(item)) for item in data.values()])
    if isinstance(data, str):
        return to_json([linked(data)])
    return to_json([linked(value)])


FILTERS = [
    FilterSpec("blockquote", blockquote, "Prefix every line with >"),
    FilterSpec("callout", callout, 'Callout block: callout:("info","Title",false)'),
    FilterSpec("link", link, 'Markdown link: link:"text"', wants_url=True),
    FilterSpec("image", image, 'Markdown image: image:"alt"', wants_url=True),
    FilterSpec("wikilink", wikilink, 'Wiki link: wikilink:"alias"'),
    FilterSpec("footnote", footnote, "Footnote list from an array or object"),
    FilterSpec("list", list_filter, "Markdown list: list:numbered, list:task"),
    FilterSpec("table", table, 'Markdown table: table:("Name","Year")'),
    FilterSpec("strip_md", strip_md, "Remove Markdown formatting"),
    FilterSpec("fragment_link", fragment_link, 'Append text fragment links: fragment_link:"source"', wants_url=True),
]


__all__ = [
    "FILTERS",
    "escape_markdown",
    "blockquote", "callout", "link", "image", "wikilink", "footnote", "list_filter",
    "table", "strip_md", "fragment_link",
]
