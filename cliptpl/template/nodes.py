"""
AST-узлы шаблона и выражений.

Определяет иерархию неизменяемых классов узлов для представления
структуры шаблона (текст, интерполяции, блоки if/for, присваивания)
и отдельную иерархию узлов выражений.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from ..values import format_number

# ============================================================================
# Выражения
# ============================================================================

LiteralValue = Union[str, int, float, bool, None]


@dataclass(frozen=True)
class Expression:
    """Базовый класс для всех узлов выражений."""
    line: int = field(default=0, compare=False, kw_only=True)
    column: int = field(default=0, compare=False, kw_only=True)

    def __str__(self) -> str:
        return format_expression(self)


@dataclass(frozen=True)
class Literal(Expression):
    """Строка, число, логическое значение или null."""
    value: LiteralValue


@dataclass(frozen=True)
class Identifier(Expression):
    """
    Имя переменной.

    Может содержать зарезервированный префикс (selector:, schema:, prompt:),
    точечный путь (page.title) и двоеточия (meta:og:title).
    """
    name: str


@dataclass(frozen=True)
class Member(Expression):
    """Доступ к свойству: obj.name или obj[expr]."""
    object: Expression
    property: Expression
    computed: bool = False


@dataclass(frozen=True)
class Unary(Expression):
    """Логическое отрицание."""
    operator: str
    argument: Expression


@dataclass(frozen=True)
class Binary(Expression):
    """
    Бинарная операция.

    operator - одно из: ==, !=, >, <, >=, <=, contains, and, or, ??
    """
    operator: str
    left: Expression
    right: Expression


@dataclass(frozen=True)
class Group(Expression):
    """Выражение в круглых скобках."""
    expression: Expression


@dataclass(frozen=True)
class Filter(Expression):
    """
    Применение фильтра: value|name:arg1,arg2

    separators хранит разделители между аргументами (',' или ':'),
    чтобы строка параметров восстанавливалась в исходном виде.
    parenthesized отмечает форму name:(a, b).
    """
    value: Expression
    name: str
    args: Tuple[Expression, ...] = ()
    separators: Tuple[str, ...] = ()
    parenthesized: bool = False


# ============================================================================
# Узлы шаблона
# ============================================================================

@dataclass(frozen=True)
class TemplateNode:
    """Базовый класс для всех узлов AST шаблона."""
    line: int = field(default=0, compare=False, kw_only=True)
    column: int = field(default=0, compare=False, kw_only=True)


@dataclass(frozen=True)
class TextNode(TemplateNode):
    """
    Обычный текстовый контент в шаблоне.

    Выводится в результат как есть.
    """
    text: str


@dataclass(frozen=True)
class VariableNode(TemplateNode):
    """Интерполяция {{ expr }}."""
    expression: Expression
    trim_left: bool = False
    trim_right: bool = False


@dataclass(frozen=True)
class ElseIfBranch:
    """Ветка {% elseif cond %} блока if."""
    condition: Expression
    body: List[TemplateNode]


@dataclass(frozen=True)
class IfNode(TemplateNode):
    """
    Условный блок {% if %}...{% elseif %}...{% else %}...{% endif %}.

    Ветки проверяются в порядке следования, выигрывает первая истинная.
    """
    condition: Expression
    consequent: List[TemplateNode]
    elseifs: List[ElseIfBranch] = field(default_factory=list)
    alternate: Optional[List[TemplateNode]] = None
    trim_left: bool = False
    trim_right: bool = False


@dataclass(frozen=True)
class ForNode(TemplateNode):
    """Цикл {% for item in expr %}...{% endfor %}."""
    iterator: str
    iterable: Expression
    body: List[TemplateNode]
    trim_left: bool = False
    trim_right: bool = False


@dataclass(frozen=True)
class SetNode(TemplateNode):
    """Присваивание {% set name = expr %}."""
    variable: str
    value: Expression
    trim_left: bool = False
    trim_right: bool = False


# Алиас для списка узлов (AST)
TemplateAST = List[TemplateNode]


# ============================================================================
# Восстановление исходного синтаксиса
# ============================================================================

def format_literal(value: LiteralValue) -> str:
    """Форматирует литерал так, как он записывается в шаблоне."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    return quote_string(value)


def quote_string(value: str) -> str:
    """Заключает строку в двойные кавычки, экранируя \\ и "."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_expression(expr: Expression) -> str:
    """
    Восстанавливает текст выражения в синтаксисе шаблона.

    Используется для повторного вывода отложенных плейсхолдеров
    и в диагностике.
    """
    if isinstance(expr, Literal):
        return format_literal(expr.value)
    if isinstance(expr, Identifier):
        return expr.name
    if isinstance(expr, Member):
        obj = format_expression(expr.object)
        if expr.computed:
            return f"{obj}[{format_expression(expr.property)}]"
        prop = expr.property.value if isinstance(expr.property, Literal) else format_expression(expr.property)
        return f"{obj}.{prop}"
    if isinstance(expr, Unary):
        return f"not {format_expression(expr.argument)}"
    if isinstance(expr, Binary):
        return f"{format_expression(expr.left)} {expr.operator} {format_expression(expr.right)}"
    if isinstance(expr, Group):
        return f"({format_expression(expr.expression)})"
    if isinstance(expr, Filter):
        base = f"{format_expression(expr.value)}|{expr.name}"
        if not expr.args:
            return base
        return f"{base}:{format_filter_args(expr)}"
    raise TypeError(f"Unknown expression node: {type(expr).__name__}")


def format_filter_args(expr: Filter) -> str:
    """Собирает аргументы фильтра с исходными разделителями."""
    parts = [format_expression(arg) for arg in expr.args]
    if expr.parenthesized:
        return "(" + ", ".join(parts) + ")"
    text = parts[0]
    for sep, part in zip(expr.separators, parts[1:]):
        text += sep + part
    return text


def to_json_compatible(node: TemplateNode | Expression) -> object:
    """Представление узла в виде словаря (для отладочного вывода CLI)."""
    result: dict = {"type": type(node).__name__}
    for name, value in vars(node).items():
        if name in ("line", "column"):
            continue
        if isinstance(value, (TemplateNode, Expression, ElseIfBranch)):
            result[name] = _branch_or_node(value)
        elif isinstance(value, (list, tuple)):
            result[name] = [
                _branch_or_node(v) if isinstance(v, (TemplateNode, Expression, ElseIfBranch)) else v
                for v in value
            ]
        else:
            result[name] = value
    return result


def _branch_or_node(value) -> object:
    if isinstance(value, ElseIfBranch):
        return {
            "condition": to_json_compatible(value.condition),
            "body": [to_json_compatible(n) for n in value.body],
        }
    return to_json_compatible(value)


def dump_ast(ast: TemplateAST) -> str:
    return json.dumps([to_json_compatible(n) for n in ast], ensure_ascii=False, indent=2)


__all__ = [
    # Выражения
    "Expression", "Literal", "Identifier", "Member", "Unary", "Binary", "Group", "Filter",
    # Узлы шаблона
    "TemplateNode", "TextNode", "VariableNode", "ElseIfBranch", "IfNode", "ForNode", "SetNode",
    "TemplateAST",
    # Форматирование
    "format_expression", "format_filter_args", "format_literal",
    "quote_string", "dump_ast",
]
