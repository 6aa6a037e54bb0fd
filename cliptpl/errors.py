"""
Исключения cliptpl.

Ошибки, которые пользователь может исправить сам (синтаксис шаблона,
файл настроек, файл переменных), наследуют CliptplUserError: CLI
показывает их одной строкой без трассировки. Остальные исключения
считаются ошибками программы и не перехватываются.
"""

from __future__ import annotations


class CliptplUserError(Exception):
    """
    Base class for all user-facing errors in cliptpl.

    These errors indicate problems that the user can fix:
    broken template syntax, bad configuration files, unreadable variable files.
    """
    pass


class ConfigError(CliptplUserError):
    """Invalid or unreadable engine configuration."""
    pass


class TemplateEvaluationError(CliptplUserError):
    """
    Node-local failure while rendering.

    Raised inside the evaluator and converted by the renderer into a
    RenderError entry; never escapes the render call.
    """
    pass


__all__ = ["CliptplUserError", "ConfigError", "TemplateEvaluationError"]
