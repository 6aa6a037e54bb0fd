"""
Вычисление выражений шаблона.

Вычислитель асинхронный: идентификаторы с зарезервированными префиксами
(selector:, selectorHtml:, schema:, prompt:) могут разрешаться внешним
резолвером. Если резолвера нет или он отказался, возвращается Deferred,
который выводится исходным плейсхолдером для постобработки.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, List, Optional

from ..errors import TemplateEvaluationError
from ..values import format_number, is_truthy, resolve_variable, to_json, value_to_string
from ..variables.prompt import is_prompt_name
from ..variables.schema import SCHEMA_PREFIX, lookup_schema
from ..variables.selector import is_selector_name
from .context import UNRESOLVED, Deferred, RenderContext
from .nodes import (
    Binary, Expression, Filter, Group, Identifier, Literal, Member, Unary,
    format_expression, quote_string,
)

if TYPE_CHECKING:
    from .renderer import RenderState

logger = logging.getLogger(__name__)


# ============================================================================
# Семантика значений
# ============================================================================

def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip()) if value.strip() else 0.0
        except ValueError:
            return None
    return None


def _comparable(value: Any) -> Any:
    return str(value) if isinstance(value, Deferred) else value


def loose_equals(left: Any, right: Any) -> bool:
    """
    Нестрогое равенство.

    None равен только None; число равно строке с тем же числом;
    логические значения сравниваются как 1 и 0.
    """
    left, right = _comparable(left), _comparable(right)
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if isinstance(left, (list, dict)) or isinstance(right, (list, dict)):
        return left is right or left == right
    left_number, right_number = _as_number(left), _as_number(right)
    if left_number is not None and right_number is not None:
        return left_number == right_number
    return left == right


def compare(operator: str, left: Any, right: Any) -> bool:
    """
    Сравнение порядка (>, <, >=, <=).

    Две строки сравниваются лексикографически, иначе оба операнда
    приводятся к числам. Несравнимые значения дают False.
    """
    left, right = _comparable(left), _comparable(right)
    if left is None or right is None:
        return False
    if isinstance(left, str) and isinstance(right, str):
        a, b = left, right
    else:
        a, b = _as_number(left), _as_number(right)
        if a is None or b is None:
            return False
    if operator == ">":
        return a > b
    if operator == "<":
        return a < b
    if operator == ">=":
        return a >= b
    return a <= b


def contains(left: Any, right: Any) -> bool:
    """
    Оператор contains.

    Для списка: совпадение элемента (строки без учёта регистра),
    для строки: подстрока без учёта регистра, иначе False.
    """
    left, right = _comparable(left), _comparable(right)
    if left is None or right is None:
        return False
    if isinstance(left, list):
        for item in left:
            if isinstance(item, str) and isinstance(right, str):
                if item.lower() == right.lower():
                    return True
            elif loose_equals(item, right):
                return True
        return False
    if isinstance(left, str):
        return value_to_string(right).lower() in left.lower()
    return False


def is_nullish(value: Any) -> bool:
    """Значение, которое ?? заменяет правой частью."""
    return value is None or value == "" or (isinstance(value, list) and not value)


def format_param_value(value: Any) -> str:
    """Аргумент фильтра в виде, пригодном для строки параметров."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    if value is None:
        return ""
    if isinstance(value, (list, dict)):
        return to_json(value)
    return quote_string(str(value))


def type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Deferred):
        return "deferred"
    return type(value).__name__


# ============================================================================
# Вычислитель
# ============================================================================

class ExpressionEvaluator:
    """
    Вычисляет узлы выражений в контексте рендеринга.

    Один вычислитель обслуживает весь проход рендеринга; флаг отложенных
    переменных пишется в общее состояние прохода.
    """

    def __init__(self, state: RenderState):
        self.state = state

    async def evaluate(self, expr: Expression, context: RenderContext) -> Any:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, Identifier):
            return await self._evaluate_identifier(expr, context)
        if isinstance(expr, Binary):
            return await self._evaluate_binary(expr, context)
        if isinstance(expr, Unary):
            return not is_truthy(await self.evaluate(expr.argument, context))
        if isinstance(expr, Filter):
            return await self._evaluate_filter(expr, context)
        if isinstance(expr, Group):
            return await self.evaluate(expr.expression, context)
        if isinstance(expr, Member):
            return await self._evaluate_member(expr, context)
        raise TemplateEvaluationError(f"Unknown expression type: {type(expr).__name__}")

    def defer(self, source: str) -> Deferred:
        """Помечает проход как содержащий отложенные переменные."""
        self.state.has_deferred_variables = True
        return Deferred(source)

    async def _evaluate_identifier(self, expr: Identifier, context: RenderContext) -> Any:
        name = expr.name

        if name.startswith(SCHEMA_PREFIX):
            value = lookup_schema(name, context.variables)
            if value is not None:
                return value
            return await self._resolve_external(name, context)

        if is_selector_name(name) or is_prompt_name(name):
            return await self._resolve_external(name, context)

        return resolve_variable(name, context.variables)

    async def _resolve_external(self, name: str, context: RenderContext) -> Any:
        if context.async_resolver is not None:
            try:
                value = await context.async_resolver(name, context)
            except Exception as e:
                raise TemplateEvaluationError(f"Resolver failed for {name}: {e}") from e
            if value is not UNRESOLVED:
                return value
        logger.debug(f"Deferring {name} to post-processing")
        return self.defer(name)

    async def _evaluate_member(self, expr: Member, context: RenderContext) -> Any:
        obj = await self.evaluate(expr.object, context)
        prop = await self.evaluate(expr.property, context)

        if isinstance(obj, Deferred):
            if isinstance(prop, int) and not isinstance(prop, bool):
                return Deferred(f"{obj.source}[{prop}]")
            return Deferred(f"{obj.source}.{value_to_string(prop)}")

        if obj is None or prop is None:
            return None

        if isinstance(obj, list):
            if isinstance(prop, float) and prop.is_integer():
                prop = int(prop)
            if isinstance(prop, str) and prop.isdigit():
                prop = int(prop)
            if isinstance(prop, int) and not isinstance(prop, bool) and -len(obj) <= prop < len(obj):
                return obj[prop]
            if prop == "length":
                return len(obj)
            return None

        if isinstance(obj, dict):
            key = value_to_string(prop)
            value = obj.get("{{" + key + "}}")
            return value if value is not None else obj.get(key)

        if isinstance(obj, str) and prop == "length":
            return len(obj)
        return None

    async def _evaluate_binary(self, expr: Binary, context: RenderContext) -> Any:
        operator = expr.operator
        left = await self.evaluate(expr.left, context)

        if operator == "??":
            if not is_nullish(left):
                return left
            return await self.evaluate(expr.right, context)

        right = await self.evaluate(expr.right, context)

        if operator == "==":
            return loose_equals(left, right)
        if operator == "!=":
            return not loose_equals(left, right)
        if operator in (">", "<", ">=", "<="):
            return compare(operator, left, right)
        if operator == "contains":
            return contains(left, right)
        if operator == "and":
            return is_truthy(left) and is_truthy(right)
        if operator == "or":
            return is_truthy(left) or is_truthy(right)
        raise TemplateEvaluationError(f"Unknown binary operator: {operator}")

    async def _evaluate_filter(self, expr: Filter, context: RenderContext) -> Any:
        value = await self.evaluate(expr.value, context)
        args = [await self._evaluate_argument(arg, context) for arg in expr.args]

        param = self._build_param(expr, args)

        if isinstance(value, Deferred):
            suffix = f"|{expr.name}:{param}" if param else f"|{expr.name}"
            return Deferred(value.source + suffix)

        custom = context.filters.get(expr.name)
        if custom is not None:
            try:
                return custom(value, *args)
            except Exception as e:
                raise TemplateEvaluationError(f"Filter '{expr.name}' failed: {e}") from e

        return context.registry.apply(expr.name, value, param, context.current_url)

    async def _evaluate_argument(self, arg: Expression, context: RenderContext) -> Any:
        """
        Аргумент фильтра; неразрешённое «голое» имя передаётся как текст.

        Так list:numbered и date:YYYY-MM-DD работают без кавычек.
        """
        value = await self.evaluate(arg, context)
        if value is None and isinstance(arg, Identifier):
            return arg.name
        if isinstance(value, Deferred):
            return value.placeholder()
        return value

    @staticmethod
    def _build_param(expr: Filter, args: List[Any]) -> Optional[str]:
        """Строка параметров фильтра с исходными разделителями."""
        if not expr.args:
            return None
        parts = [format_param_value(value) for value in args]
        if expr.parenthesized:
            return "(" + ", ".join(parts) + ")"
        text = parts[0]
        for separator, part in zip(expr.separators, parts[1:]):
            text += separator + part
        return text


def prompt_source(expr: Expression) -> Optional[str]:
    """
    Исходный текст промпта-плейсхолдера или None.

    Промпт - интерполяция, основа которой (под цепочкой фильтров)
    строковый литерал: {{"summary"}}, {{"tags"|split:","}}.
    """
    base = expr
    while isinstance(base, Filter):
        base = base.value
    if isinstance(base, Literal) and isinstance(base.value, str):
        return format_expression(expr)
    return None


__all__ = [
    "ExpressionEvaluator",
    "loose_equals",
    "compare",
    "contains",
    "is_nullish",
    "format_param_value",
    "type_name",
    "prompt_source",
]
