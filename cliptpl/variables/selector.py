"""
Переменные selector: и selectorHtml:.

Значение берётся со страницы по CSS-селектору через внешний резолвер.
Необязательный атрибут задаётся после ?: selector:img.hero?src
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

SELECTOR_PREFIX = "selector:"
SELECTOR_HTML_PREFIX = "selectorHtml:"

_ATTRIBUTE = re.compile(r"^(.+?)\?(.+)$", re.DOTALL)


@dataclass(frozen=True)
class SelectorQuery:
    """Запрос к странице: селектор, атрибут и режим извлечения HTML."""
    selector: str
    attribute: Optional[str] = None
    extract_html: bool = False


# Резолвер селекторов: запрос -> текст, список строк или None
SelectorResolver = Callable[[SelectorQuery], Awaitable[Any]]


def is_selector_name(name: str) -> bool:
    return name.startswith(SELECTOR_PREFIX) or name.startswith(SELECTOR_HTML_PREFIX)


def parse_selector(name: str) -> SelectorQuery:
    """
    Разбирает имя selector:CSS?attr в запрос.

    Args:
        name: Имя с префиксом selector: или selectorHtml: (без фильтров)

    Returns:
        SelectorQuery; экранированные кавычки в селекторе раскрываются

    Raises:
        ValueError: Если имя не начинается с префикса селектора
    """
    if name.startswith(SELECTOR_HTML_PREFIX):
        extract_html, body = True, name[len(SELECTOR_HTML_PREFIX):]
    elif name.startswith(SELECTOR_PREFIX):
        extract_html, body = False, name[len(SELECTOR_PREFIX):]
    else:
        raise ValueError(f"Not a selector variable: {name}")

    match = _ATTRIBUTE.match(body.strip())
    selector, attribute = (match.group(1), match.group(2)) if match else (body.strip(), None)
    return SelectorQuery(selector.replace('\\"', '"').strip(), attribute, extract_html)


__all__ = [
    "SELECTOR_PREFIX",
    "SELECTOR_HTML_PREFIX",
    "SelectorQuery",
    "SelectorResolver",
    "is_selector_name",
    "parse_selector",
]
