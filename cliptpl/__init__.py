"""
cliptpl - движок шаблонов веб-клиппера.

Основной API:
    compile_template  полный цикл: рендеринг плюс постобработка плейсхолдеров
    render            рендеринг с ошибками и флагом отложенных переменных
    render_template   рендеринг в строку с записью ошибок в лог
"""

from __future__ import annotations

from .config import EngineConfig, load_config
from .engine import TemplateEngine, compile_template, render, render_template
from .errors import CliptplUserError, ConfigError, TemplateEvaluationError
from .filters import FilterRegistry, create_default_registry
from .template import UNRESOLVED, RenderContext, RenderError, RenderResult, TemplateSyntaxError, parse_template
from .variables import PostProcessor, SelectorQuery

__all__ = [
    "TemplateEngine",
    "compile_template",
    "render",
    "render_template",
    "parse_template",
    "EngineConfig",
    "load_config",
    "FilterRegistry",
    "create_default_registry",
    "PostProcessor",
    "SelectorQuery",
    "RenderContext",
    "RenderError",
    "RenderResult",
    "UNRESOLVED",
    # Errors
    "CliptplUserError",
    "ConfigError",
    "TemplateEvaluationError",
    "TemplateSyntaxError",
]
