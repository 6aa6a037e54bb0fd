"""
Контекст рендеринга.

Хранит карту переменных и коллабораторов одного прохода рендеринга:
асинхронный резолвер специальных переменных, пользовательские фильтры
и реестр встроенных фильтров. Цикл создаёт производный контекст,
не изменяя родительский.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from ..filters.registry import FilterRegistry, create_default_registry

# Асинхронный резолвер: (имя переменной, контекст) -> значение или UNRESOLVED
AsyncResolver = Callable[[str, "RenderContext"], Awaitable[Any]]

# Пользовательский фильтр: (значение, *аргументы) -> значение
CustomFilter = Callable[..., Any]


class _Unresolved:
    """Маркер отказа резолвера: переменная будет отложена до постобработки."""

    _instance: Optional[_Unresolved] = None

    def __new__(cls) -> _Unresolved:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False


UNRESOLVED = _Unresolved()


@dataclass(frozen=True)
class Deferred:
    """
    Значение, которое рендерер не может вычислить сам.

    source - текст выражения в синтаксисе шаблона (без {{ }}), включая
    уже прикреплённую цепочку фильтров. Выводится как исходный плейсхолдер,
    который затем разрешает постпроцессор.
    """
    source: str

    def placeholder(self) -> str:
        return "{{" + self.source + "}}"

    def __str__(self) -> str:
        return self.placeholder()


@dataclass(frozen=True)
class RenderError:
    """Ошибка разбора или рендеринга с позицией в шаблоне."""
    message: str
    line: Optional[int] = None
    column: Optional[int] = None

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} (line {self.line}, column {self.column})"


@dataclass
class RenderContext:
    """
    Контекст рендеринга шаблона.

    Создаётся один раз на вызов render и передаётся по ссылке через весь
    проход. {% set %} изменяет variables текущего контекста.
    """
    variables: Dict[str, Any] = field(default_factory=dict)
    current_url: str = ""
    tab_id: Optional[int] = None
    async_resolver: Optional[AsyncResolver] = None
    filters: Dict[str, CustomFilter] = field(default_factory=dict)
    registry: FilterRegistry = field(default_factory=create_default_registry)

    def derive(self, bindings: Dict[str, Any]) -> RenderContext:
        """
        Создаёт производный контекст для итерации цикла.

        Переменные копируются поверхностно и дополняются привязками;
        родительский контекст не изменяется.

        Args:
            bindings: Переменные итерации (итератор, индекс, loop)

        Returns:
            Новый контекст с теми же коллабораторами
        """
        variables = dict(self.variables)
        variables.update(bindings)
        return RenderContext(
            variables=variables,
            current_url=self.current_url,
            tab_id=self.tab_id,
            async_resolver=self.async_resolver,
            filters=self.filters,
            registry=self.registry,
        )


def loop_bindings(iterator: str, item: Any, index: int, length: int) -> Dict[str, Any]:
    """Привязки одной итерации цикла for."""
    return {
        iterator: item,
        f"{iterator}_index": index,
        "loop": {
            "index": index + 1,
            "index0": index,
            "first": index == 0,
            "last": index == length - 1,
            "length": length,
        },
    }


__all__ = [
    "AsyncResolver",
    "CustomFilter",
    "UNRESOLVED",
    "Deferred",
    "RenderError",
    "RenderContext",
    "loop_bindings",
]
