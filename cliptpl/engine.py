"""
Точка входа движка шаблонов.

TemplateEngine связывает разбор (с кэшем), рендеринг и постобработку.
Кэши и конфигурация передаются в конструктор, глобального состояния нет.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from .cache import ExpiringCache, ParseCache
from .config import EngineConfig
from .filters.registry import FilterRegistry, create_default_registry
from .template.context import UNRESOLVED, AsyncResolver, RenderContext, RenderError
from .template.parser import ParseResult, parse_template
from .template.renderer import RenderResult, TemplateRenderer
from .variables.processor import PostProcessor
from .variables.prompt import PromptResolver
from .variables.selector import SelectorResolver, is_selector_name

logger = logging.getLogger(__name__)

_TEXT_FRAGMENT = re.compile(r"#:~:text=[^&]+(&|$)")


def strip_text_fragment(url: str) -> str:
    """Удаляет из URL фрагмент подсветки текста #:~:text=..."""
    return _TEXT_FRAGMENT.sub("", url, count=1)


class TemplateEngine:
    """
    Движок шаблонов.

    Args:
        config: Настройки движка
        parse_cache: Кэш разобранных шаблонов (по умолчанию по config.parse_cache_size)
        registry: Реестр фильтров (по умолчанию все встроенные)
        resolver_cache: Кэш результатов резолвера селекторов
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        parse_cache: Optional[ParseCache[ParseResult]] = None,
        registry: Optional[FilterRegistry] = None,
        resolver_cache: Optional[ExpiringCache] = None,
    ):
        self.config = config or EngineConfig()
        self.parse_cache = parse_cache if parse_cache is not None else ParseCache(self.config.parse_cache_size)
        self.registry = registry if registry is not None else create_default_registry()
        self.resolver_cache = (
            resolver_cache if resolver_cache is not None else ExpiringCache(self.config.resolver_cache_ttl)
        )
        self.renderer = TemplateRenderer(trim_output=self.config.trim_output)

    def parse(self, text: str) -> ParseResult:
        return self.parse_cache.get_or_parse(text, parse_template)

    def invalidate(self) -> None:
        """Сбрасывает кэш разбора и кэш резолвера."""
        self.parse_cache.invalidate()
        self.resolver_cache.invalidate()
        logger.debug("Template engine caches invalidated")

    def create_context(
        self,
        variables: Dict[str, Any],
        current_url: str = "",
        *,
        async_resolver: Optional[AsyncResolver] = None,
        tab_id: Optional[int] = None,
    ) -> RenderContext:
        return RenderContext(
            variables=variables,
            current_url=current_url,
            tab_id=tab_id,
            async_resolver=async_resolver,
            registry=self.registry,
        )

    async def render(self, text: str, context: RenderContext) -> RenderResult:
        """
        Разбирает и рендерит шаблон.

        Ошибка разбора не бросается: результат содержит пустой вывод и ошибки.

        Args:
            text: Текст шаблона
            context: Контекст рендеринга

        Returns:
            RenderResult
        """
        parsed = self.parse(text)
        if not parsed.ok:
            errors = [RenderError(e.message, e.line, e.column) for e in parsed.errors]
            logger.debug(f"Template not rendered: {len(errors)} parse error(s)")
            return RenderResult("", errors, False)
        return await self.renderer.render(parsed.ast, context)

    async def render_template(self, text: str, variables: Dict[str, Any], current_url: str = "") -> str:
        """Рендерит шаблон и возвращает только вывод; ошибки пишутся в лог."""
        result = await self.render(text, self.create_context(dict(variables), current_url))
        if result.errors:
            logger.error("Template render errors: " + "; ".join(str(e) for e in result.errors))
        return result.output

    def post_processor(
        self,
        selector_resolver: Optional[SelectorResolver] = None,
        prompt_resolver: Optional[PromptResolver] = None,
    ) -> PostProcessor:
        return PostProcessor(
            selector_resolver,
            prompt_resolver,
            self.registry,
            prompts_enabled=self.config.prompts_enabled,
            cache=self.resolver_cache,
        )

    async def compile_template(
        self,
        text: str,
        variables: Dict[str, Any],
        current_url: str = "",
        *,
        selector_resolver: Optional[SelectorResolver] = None,
        prompt_resolver: Optional[PromptResolver] = None,
        tab_id: Optional[int] = None,
    ) -> str:
        """
        Полная компиляция шаблона: рендеринг и, при необходимости, постобработка.

        Селекторы разрешаются ещё на этапе рендеринга, если задан резолвер
        селекторов, поэтому их значения можно использовать в условиях и циклах.

        Args:
            text: Текст шаблона
            variables: Переменные страницы (не изменяются)
            current_url: URL страницы
            selector_resolver: Резолвер CSS-селекторов
            prompt_resolver: Резолвер промптов
            tab_id: Идентификатор вкладки (передаётся в контекст)

        Returns:
            Итоговый текст
        """
        if self.config.strip_text_fragment:
            current_url = strip_text_fragment(current_url)

        processor = self.post_processor(selector_resolver, prompt_resolver)

        async def resolve(name: str, context: RenderContext) -> Any:
            if selector_resolver is not None and is_selector_name(name):
                value = await processor.resolve_selector(name, current_url, tab_id)
                return "" if value is None else value
            return UNRESOLVED

        context = self.create_context(dict(variables), current_url, async_resolver=resolve, tab_id=tab_id)
        result = await self.render(text, context)

        if result.errors:
            logger.error(
                "Template compilation errors: "
                + "; ".join(f"Line {e.line}: {e.message}" for e in result.errors)
            )

        if not result.has_deferred_variables:
            return result.output

        return await processor.process(result.output, context.variables, current_url, tab_id=tab_id)


# ============================================================================
# Функции верхнего уровня
# ============================================================================

async def render(text: str, context: RenderContext) -> RenderResult:
    """Рендерит шаблон в новом движке с настройками по умолчанию."""
    return await TemplateEngine(registry=context.registry).render(text, context)


async def render_template(text: str, variables: Dict[str, Any], current_url: str = "") -> str:
    return await TemplateEngine().render_template(text, variables, current_url)


async def compile_template(
    text: str,
    variables: Dict[str, Any],
    current_url: str = "",
    *,
    selector_resolver: Optional[SelectorResolver] = None,
    prompt_resolver: Optional[PromptResolver] = None,
    engine: Optional[TemplateEngine] = None,
) -> str:
    engine = engine or TemplateEngine()
    return await engine.compile_template(
        text,
        variables,
        current_url,
        selector_resolver=selector_resolver,
        prompt_resolver=prompt_resolver,
    )


__all__ = [
    "TemplateEngine",
    "strip_text_fragment",
    "render",
    "render_template",
    "compile_template",
]
