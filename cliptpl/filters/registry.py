"""
Реестр фильтров.

Сопоставляет имя фильтра с его реализацией и применяет фильтры
с защитой: фильтр никогда не выбрасывает исключение наружу, при
сбое возвращается исходное значение и пишется предупреждение.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from .params import split_params
from ..values import parse_json_like, value_to_string

logger = logging.getLogger(__name__)

# Реализация фильтра: (строковое значение, строка параметров[, текущий URL]) -> значение
FilterFunc = Callable[..., Any]


@dataclass(frozen=True)
class FilterSpec:
    """Зарегистрированный фильтр."""
    name: str
    func: FilterFunc
    description: str = ""
    wants_url: bool = False

    def apply(self, value: str, param: Optional[str], current_url: str = "") -> Any:
        if self.wants_url:
            return self.func(value, param, current_url)
        return self.func(value, param)


class FilterRegistry:
    """
    Реестр фильтров шаблонизатора.

    Заполняется при старте встроенными фильтрами; пользователь может
    зарегистрировать свои или переопределить встроенные.
    """

    def __init__(self):
        self._filters: Dict[str, FilterSpec] = {}

    def register(self, name: str, func: FilterFunc, description: str = "", wants_url: bool = False) -> None:
        """
        Регистрирует фильтр.

        Args:
            name: Имя фильтра в шаблоне
            func: Реализация (value, param) -> value
            description: Краткое описание для `cliptpl filters`
            wants_url: Передавать ли реализации URL текущей страницы третьим аргументом
        """
        if name in self._filters:
            logger.warning(f"Filter '{name}' overwrites existing filter")
        self._filters[name] = FilterSpec(name, func, description, wants_url)

    def register_all(self, specs: Iterable[FilterSpec]) -> None:
        for spec in specs:
            self.register(spec.name, spec.func, spec.description, spec.wants_url)

    def get(self, name: str) -> Optional[FilterSpec]:
        return self._filters.get(name)

    def names(self) -> List[str]:
        return sorted(self._filters)

    def specs(self) -> Iterable[FilterSpec]:
        return (self._filters[name] for name in self.names())

    def __contains__(self, name: str) -> bool:
        return name in self._filters

    def apply(self, name: str, value: Any, param: Optional[str] = None, current_url: str = "") -> Any:
        """
        Применяет один фильтр.

        Значение приводится к строке (списки и словари в JSON), результат,
        похожий на JSON-массив или объект, разбирается обратно.
        Неизвестный фильтр и любой сбой внутри фильтра возвращают
        значение без изменений.

        Args:
            name: Имя фильтра
            value: Входное значение
            param: Строка параметров (как записана в шаблоне) или None
            current_url: URL страницы для фильтров, разрешающих ссылки

        Returns:
            Результат фильтра или исходное значение
        """
        spec = self._filters.get(name)
        if spec is None:
            logger.warning(f"Invalid filter: {name}")
            return value

        text = value if isinstance(value, str) else value_to_string(value)
        try:
            output = spec.apply(text, param or None, current_url)
        except Exception as e:
            logger.warning(f"Filter '{name}' failed on {text[:40]!r}: {e}")
            return value

        return parse_json_like(output)

    def apply_chain(self, value: Any, chain: str, current_url: str = "") -> Any:
        """
        Применяет цепочку фильтров в текстовой форме: "trim|replace:\\"a\\":\\"b\\"|upper".

        Args:
            value: Входное значение
            chain: Фильтры через | (разделители в кавычках не учитываются)
            current_url: URL страницы

        Returns:
            Значение после всех фильтров
        """
        for item in split_params(chain, "|"):
            if not item:
                continue
            name, _, param = item.partition(":")
            value = self.apply(name.strip(), value, param.strip() or None, current_url)
        return value


def create_default_registry() -> FilterRegistry:
    """Создаёт реестр со всеми встроенными фильтрами."""
    from . import arrays, dates, html, markdown, numbers, text

    registry = FilterRegistry()
    for module in (text, arrays, numbers, markdown, html, dates):
        registry.register_all(module.FILTERS)
    return registry


__all__ = ["FilterFunc", "FilterSpec", "FilterRegistry", "create_default_registry"]
