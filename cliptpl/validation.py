"""
Проверка ссылок на переменные в разобранном шаблоне.

Ищет обращения к неизвестным переменным с учётом встроенных переменных
страницы, присваиваний {% set %} и переменных циклов. Для опечаток
предлагается ближайшая встроенная переменная.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Set

from .template.nodes import (
    Binary, Expression, Filter, ForNode, Group, Identifier, IfNode, Member,
    SetNode, TemplateNode, Unary, VariableNode,
)
from .variables.prompt import PROMPT_PREFIX

PRESET_VARIABLES: FrozenSet[str] = frozenset({
    "author",
    "content",
    "contentHtml",
    "date",
    "description",
    "domain",
    "favicon",
    "fullHtml",
    "highlights",
    "image",
    "published",
    "selection",
    "selectionHtml",
    "site",
    "title",
    "time",
    "url",
    "words",
})

SPECIAL_PREFIXES = ("schema:", "selector:", "selectorHtml:", "meta:", PROMPT_PREFIX)


@dataclass(frozen=True)
class VariableWarning:
    message: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.message} (line {self.line}, column {self.column})"


@dataclass(frozen=True)
class _Reference:
    name: str
    line: int
    column: int
    scope: FrozenSet[str]


def levenshtein(a: str, b: str) -> int:
    """Расстояние редактирования между строками."""
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def suggest_variable(name: str, candidates: Iterable[str] = PRESET_VARIABLES) -> Optional[str]:
    """Ближайшая переменная, если расстояние меньше половины длины имени."""
    best: Optional[str] = None
    best_distance = None
    for candidate in sorted(candidates):
        distance = levenshtein(name.lower(), candidate.lower())
        if distance < max(len(name), len(candidate)) / 2 and (best_distance is None or distance < best_distance):
            best, best_distance = candidate, distance
    return best


def _base_name(name: str) -> str:
    return name.split(".")[0].split("[")[0]


def _is_known(name: str, scope: FrozenSet[str], known: FrozenSet[str]) -> bool:
    if name.startswith('"') or name.startswith(SPECIAL_PREFIXES):
        return True
    if name in known or name in scope:
        return True
    base = _base_name(name)
    return base in known or base in scope or base == "loop"


def _root_identifier(expr: Expression) -> Optional[Identifier]:
    if isinstance(expr, Identifier):
        return expr
    if isinstance(expr, Filter):
        return _root_identifier(expr.value)
    if isinstance(expr, Member):
        return _root_identifier(expr.object)
    if isinstance(expr, Binary) and expr.operator == "??":
        return _root_identifier(expr.left)
    return None


class _Collector:
    def __init__(self):
        self.references: List[_Reference] = []

    def nodes(self, nodes: List[TemplateNode], defined: Set[str]) -> None:
        for node in nodes:
            if isinstance(node, VariableNode):
                root = _root_identifier(node.expression)
                if root is not None:
                    self._add(root, defined)
            elif isinstance(node, SetNode):
                defined.add(node.variable)
                self.expression(node.value, defined)
            elif isinstance(node, IfNode):
                self.expression(node.condition, defined)
                self.nodes(node.consequent, defined)
                for branch in node.elseifs:
                    self.expression(branch.condition, defined)
                    self.nodes(branch.body, defined)
                if node.alternate is not None:
                    self.nodes(node.alternate, defined)
            elif isinstance(node, ForNode):
                self.expression(node.iterable, defined)
                self.nodes(node.body, defined | {node.iterator, f"{node.iterator}_index"})

    def expression(self, expr: Expression, defined: Set[str]) -> None:
        if isinstance(expr, Identifier):
            self._add(expr, defined)
        elif isinstance(expr, Filter):
            # Аргументы фильтров часто «голые» слова (list:numbered), не переменные
            self.expression(expr.value, defined)
        elif isinstance(expr, Binary):
            self.expression(expr.left, defined)
            self.expression(expr.right, defined)
        elif isinstance(expr, Unary):
            self.expression(expr.argument, defined)
        elif isinstance(expr, Member):
            self.expression(expr.object, defined)
            if expr.computed:
                self.expression(expr.property, defined)
        elif isinstance(expr, Group):
            self.expression(expr.expression, defined)

    def _add(self, ident: Identifier, defined: Set[str]) -> None:
        self.references.append(_Reference(ident.name, ident.line, ident.column, frozenset(defined)))


def validate_variables(
    ast: List[TemplateNode],
    known: Iterable[str] = (),
) -> List[VariableWarning]:
    """
    Проверяет ссылки на переменные.

    Args:
        ast: Разобранный шаблон
        known: Дополнительные известные имена (пользовательские переменные)

    Returns:
        Предупреждения о неизвестных переменных в порядке появления
    """
    known_names = PRESET_VARIABLES | frozenset(known)
    collector = _Collector()
    collector.nodes(ast, set())

    warnings: List[VariableWarning] = []
    for ref in collector.references:
        if _is_known(ref.name, ref.scope, known_names):
            continue
        message = f'Unknown variable "{ref.name}"'
        similar = suggest_variable(ref.name, known_names)
        if similar:
            message += f'. Did you mean "{similar}"?'
        warnings.append(VariableWarning(message, ref.line, ref.column))
    return warnings


__all__ = [
    "PRESET_VARIABLES",
    "VariableWarning",
    "levenshtein",
    "suggest_variable",
    "validate_variables",
]
