"""
Постобработка вывода рендерера.

Рендерер оставляет в тексте плейсхолдеры {{...}} для значений, которые
он не может вычислить сам (селекторы без резолвера, schema без данных,
промпты). Постпроцессор находит их, разрешает по префиксу через внешние
резолверы и заново применяет прикреплённую цепочку фильтров.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from ..cache import ExpiringCache
from ..filters.params import split_params
from ..filters.registry import FilterRegistry, create_default_registry
from ..values import resolve_variable, value_to_string
from .prompt import PromptResolver, is_prompt_name, parse_prompt
from .schema import SCHEMA_PREFIX, lookup_schema
from .selector import SelectorResolver, is_selector_name, parse_selector

logger = logging.getLogger(__name__)

# }} внутри строки в кавычках не закрывает плейсхолдер
PLACEHOLDER_RE = re.compile(
    r"\{\{((?:\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*'|[^\"'}]|\}(?!\}))*)\}\}",
    re.DOTALL,
)


def split_placeholder(body: str) -> tuple[str, str]:
    """
    Делит содержимое плейсхолдера на голову и цепочку фильтров.

    Returns:
        (голова, цепочка фильтров без ведущего |)
    """
    parts = split_params(body, "|")
    if not parts:
        return "", ""
    return parts[0], "|".join(parts[1:])


class PostProcessor:
    """
    Второй проход: разрешение отложенных плейсхолдеров в готовом тексте.

    Все коллабораторы передаются в конструктор; без резолвера селекторов
    селектор рендерится пустой строкой, без резолвера промптов
    плейсхолдер промпта остаётся в тексте.
    """

    def __init__(
        self,
        selector_resolver: Optional[SelectorResolver] = None,
        prompt_resolver: Optional[PromptResolver] = None,
        registry: Optional[FilterRegistry] = None,
        *,
        prompts_enabled: bool = True,
        cache: Optional[ExpiringCache] = None,
    ):
        self.selector_resolver = selector_resolver
        self.prompt_resolver = prompt_resolver
        self.registry = registry if registry is not None else create_default_registry()
        self.prompts_enabled = prompts_enabled
        self.cache = cache

    async def process(
        self,
        text: str,
        variables: Dict[str, Any],
        current_url: str = "",
        *,
        tab_id: Optional[int] = None,
    ) -> str:
        """
        Заменяет все плейсхолдеры в тексте.

        Подставленные значения повторно не сканируются.

        Args:
            text: Вывод рендерера
            variables: Карта переменных рендеринга
            current_url: URL страницы для фильтров ссылок и ключа кэша селекторов
            tab_id: Идентификатор вкладки (часть ключа кэша селекторов)

        Returns:
            Текст с разрешёнными плейсхолдерами
        """
        pieces: List[str] = []
        last = 0
        for match in PLACEHOLDER_RE.finditer(text):
            pieces.append(text[last:match.start()])
            pieces.append(await self._replace(match, variables, current_url, tab_id))
            last = match.end()
        pieces.append(text[last:])
        return "".join(pieces)

    async def _replace(
        self,
        match: re.Match,
        variables: Dict[str, Any],
        current_url: str,
        tab_id: Optional[int],
    ) -> str:
        body = match.group(1).strip()
        head, chain = split_placeholder(body)

        if is_selector_name(head):
            value = await self.resolve_selector(head, current_url, tab_id)
        elif head.startswith(SCHEMA_PREFIX):
            value = lookup_schema(head, variables)
        elif is_prompt_name(head):
            if not self.prompts_enabled:
                return ""
            value = await self._resolve_prompt(head, variables)
            if value is None:
                return match.group(0)
        else:
            value = resolve_variable(head, variables)

        return self._apply_chain(value, chain, current_url)

    async def resolve_selector(self, head: str, current_url: str = "", tab_id: Optional[int] = None) -> Any:
        """
        Значение селектора через резолвер (с кэшем, если он задан).

        Кэш различает страницы: ключ включает вкладку и URL.
        """
        query = parse_selector(head)
        key = (tab_id, current_url, query)
        if self.selector_resolver is None:
            logger.debug(f"No selector resolver for {head}")
            return None

        if self.cache is not None and key in self.cache:
            return self.cache.get(key)

        try:
            content = await self.selector_resolver(query)
        except Exception as e:
            logger.warning(f"Error extracting content by selector {query.selector!r}: {e}")
            return None

        if self.cache is not None:
            self.cache.put(key, content)
        return content

    async def _resolve_prompt(self, head: str, variables: Dict[str, Any]) -> Optional[str]:
        placeholder = parse_prompt(head)
        if placeholder is None:
            logger.warning(f"Invalid prompt format: {head}")
            return None
        if self.prompt_resolver is None:
            return None
        try:
            return await self.prompt_resolver(placeholder.prompt, variables)
        except Exception as e:
            logger.warning(f"Error resolving prompt {placeholder.prompt!r}: {e}")
            return ""

    def _apply_chain(self, value: Any, chain: str, current_url: str) -> str:
        if chain:
            value = self.registry.apply_chain(value, chain, current_url)
        return value_to_string(value)


__all__ = ["PLACEHOLDER_RE", "PostProcessor", "split_placeholder"]
