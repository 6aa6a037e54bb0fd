"""
Шаблонизатор: лексер, парсер, AST и асинхронный рендерер.
"""

from __future__ import annotations

from .context import UNRESOLVED, AsyncResolver, Deferred, RenderContext, RenderError
from .evaluator import ExpressionEvaluator
from .lexer import TemplateLexer, tokenize_template
from .nodes import TemplateAST, dump_ast, format_expression
from .parser import ParseResult, TemplateParser, parse_template
from .renderer import RenderResult, RenderState, TemplateRenderer
from .tokens import TemplateSyntaxError, Token, TokenType

__all__ = [
    # Разбор
    "TemplateLexer",
    "tokenize_template",
    "TemplateParser",
    "ParseResult",
    "parse_template",
    "Token",
    "TokenType",
    "TemplateSyntaxError",
    "TemplateAST",
    "dump_ast",
    "format_expression",
    # Рендеринг
    "AsyncResolver",
    "Deferred",
    "ExpressionEvaluator",
    "RenderContext",
    "RenderError",
    "RenderResult",
    "RenderState",
    "TemplateRenderer",
    "UNRESOLVED",
]
