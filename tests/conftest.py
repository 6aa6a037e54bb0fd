import asyncio
from typing import Any, Callable, Dict, Optional

import pytest

from cliptpl.engine import TemplateEngine
from cliptpl.template.renderer import RenderResult


@pytest.fixture
def engine() -> TemplateEngine:
    """Движок с настройками по умолчанию и собственными кэшами."""
    return TemplateEngine()


@pytest.fixture
def run_render(engine: TemplateEngine) -> Callable[..., RenderResult]:
    """
    Синхронная обёртка над engine.render.

    Принимает текст шаблона, переменные и необязательные
    url / filters / async_resolver для контекста.
    """
    def _run(
        text: str,
        variables: Optional[Dict[str, Any]] = None,
        *,
        url: str = "",
        filters: Optional[Dict[str, Callable[..., Any]]] = None,
        async_resolver=None,
    ) -> RenderResult:
        context = engine.create_context(dict(variables or {}), url, async_resolver=async_resolver)
        if filters:
            context.filters.update(filters)
        return asyncio.run(engine.render(text, context))

    return _run
