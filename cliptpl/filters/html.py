"""
HTML-фильтры: удаление элементов, тегов и атрибутов, HTML в JSON и в Markdown.

Разметку разбирает BeautifulSoup со встроенным html.parser, поэтому
фрагмент не дополняется тегами html/body. Markdown строит html2text.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import html2text
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from .params import parse_args, single_arg, split_params, strip_parens, unescape, unquote
from .registry import FilterSpec
from ..values import to_json

logger = logging.getLogger(__name__)


def _soup(value: str) -> BeautifulSoup:
    return BeautifulSoup(value, "html.parser")


def _list_param(param: Optional[str]) -> List[str]:
    """Список из параметра: ("a,b"), ("a","b") и a дают одинаковый результат."""
    return [name.strip() for arg in parse_args(param) for name in arg.split(",") if name.strip()]


def _names(param: Optional[str]) -> List[str]:
    return [name.lower() for name in _list_param(param)]


# ============================================================================
# Элементы и теги
# ============================================================================

def _select(soup: BeautifulSoup, selector: str) -> List[Tag]:
    """
    Упрощённый селектор: .class (подстрока в class), #id или имя тега.
    """
    if selector.startswith("."):
        fragment = selector[1:]
        return soup.find_all(lambda tag: fragment in " ".join(tag.get("class", [])))
    if selector.startswith("#"):
        return soup.find_all(id=selector[1:])
    return soup.find_all(selector.lower())


def remove_html(value: str, param: Optional[str] = None) -> str:
    """Удаляет элементы вместе с содержимым: remove_html:(".ad,#nav,script")."""
    selectors = _list_param(param)
    if not selectors:
        return value

    soup = _soup(value)
    for selector in selectors:
        for element in _select(soup, selector):
            if not element.decomposed:
                element.decompose()
    return str(soup)


def remove_tags(value: str, param: Optional[str] = None) -> str:
    """Удаляет перечисленные теги, сохраняя их содержимое: remove_tags:("a,span")."""
    names = _names(param)
    if not names:
        return value

    soup = _soup(value)
    for tag in soup.find_all(names):
        tag.unwrap()
    return str(soup)


def replace_tags(value: str, param: Optional[str] = None) -> str:
    """
    Переименовывает теги с сохранением атрибутов: replace_tags:"strong":"b".

    Несколько замен перечисляются через запятую. Пустое новое имя
    убирает тег, оставляя содержимое.
    """
    if not param:
        return value

    replacements = []
    for pair in split_params(strip_parens(param)):
        parts = [unescape(unquote(part)).strip().lower() for part in split_params(pair, ":")]
        if parts and parts[0]:
            replacements.append((parts[0], parts[1] if len(parts) > 1 else ""))
    if not replacements:
        logger.warning(f"Invalid parameter for replace_tags filter: {param!r}")
        return value

    soup = _soup(value)
    for source, target in replacements:
        for tag in soup.find_all(source):
            if target:
                tag.name = target
            else:
                tag.unwrap()
    return str(soup)


# ============================================================================
# Атрибуты
# ============================================================================

def strip_attr(value: str, param: Optional[str] = None) -> str:
    """Удаляет все атрибуты, кроме перечисленных: strip_attr:("href,src")."""
    keep = set(_names(param))
    soup = _soup(value)
    for tag in soup.find_all(True):
        tag.attrs = {name: attr for name, attr in tag.attrs.items() if name in keep}
    return str(soup)


def remove_attr(value: str, param: Optional[str] = None) -> str:
    """Удаляет перечисленные атрибуты: remove_attr:("style,class")."""
    names = _names(param)
    if not names:
        return value

    soup = _soup(value)
    for tag in soup.find_all(True):
        for name in names:
            if name in tag.attrs:
                del tag[name]
    return str(soup)


# ============================================================================
# Преобразование
# ============================================================================

def _attribute_value(value: Any) -> str:
    # class и другие многозначные атрибуты BeautifulSoup отдаёт списком
    if isinstance(value, list):
        return " ".join(value)
    return value


def _node_to_json(node: Any) -> Optional[Dict[str, Any]]:
    if isinstance(node, Tag):
        result: Dict[str, Any] = {"type": "element", "tag": node.name}
        if node.attrs:
            result["attributes"] = {name: _attribute_value(v) for name, v in node.attrs.items()}
        children = [child for child in map(_node_to_json, node.children) if child is not None]
        if children:
            result["children"] = children
        return result

    # Комментарии, doctype и CDATA пропускаются
    if isinstance(node, NavigableString) and not isinstance(node, PreformattedString):
        text = node.strip()
        return {"type": "text", "content": text} if text else None

    return None


def html_to_json(value: str, param: Optional[str] = None) -> str:
    """
    Дерево HTML в JSON: {"type": "element", "tag", "attributes", "children"}.

    Текстовые узлы: {"type": "text", "content"}. Пустые атрибуты и дети
    не выводятся. Единственный узел верхнего уровня возвращается сам по
    себе, несколько - массивом.
    """
    soup = _soup(value)
    root = soup.body or soup
    nodes = [node for node in map(_node_to_json, root.children) if node is not None]
    return to_json(nodes[0] if len(nodes) == 1 else nodes)


def markdown(value: str, param: Optional[str] = None, current_url: str = "") -> str:
    """
    HTML в Markdown.

    Относительные ссылки разрешаются от URL из параметра, а без него
    от адреса текущей страницы.
    """
    converter = html2text.HTML2Text()
    converter.baseurl = single_arg(param) or current_url
    converter.body_width = 0
    converter.ignore_links = False
    converter.ignore_images = False
    converter.ignore_tables = False
    converter.skip_internal_links = True
    converter.inline_links = True
    return converter.handle(value).strip()


FILTERS = [
    FilterSpec("remove_html", remove_html, 'Remove elements: remove_html:(".ad,#nav,script")'),
    FilterSpec("remove_tags", remove_tags, 'Unwrap tags keeping content: remove_tags:("a,span")'),
    FilterSpec("replace_tags", replace_tags, 'Rename tags: replace_tags:"strong":"b"'),
    FilterSpec("strip_attr", strip_attr, 'Keep only listed attributes: strip_attr:("href")'),
    FilterSpec("remove_attr", remove_attr, 'Remove attributes: remove_attr:("style,class")'),
    FilterSpec("html_to_json", html_to_json, "HTML tree as JSON"),
    FilterSpec("markdown", markdown, "Convert HTML to Markdown", wants_url=True),
]


__all__ = [
    "FILTERS",
    "remove_html", "remove_tags", "replace_tags", "strip_attr", "remove_attr",
    "html_to_json", "markdown",
]
