"""
Рендерер шаблонов.

Обходит AST в порядке документа и собирает вывод, применяя протокол
обрезки пробелов. Ошибки рендеринга локальны для узла: узел даёт
пустую строку, ошибка записывается, остальные узлы рендерятся дальше.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import TemplateEvaluationError
from ..values import is_truthy, value_to_string
from .context import RenderContext, RenderError, loop_bindings
from .evaluator import ExpressionEvaluator, prompt_source, type_name
from .nodes import ForNode, IfNode, SetNode, TemplateAST, TemplateNode, TextNode, VariableNode

logger = logging.getLogger(__name__)

# Пробелы/табуляции и не более одного перевода строки
_LEADING_WHITESPACE = re.compile(r"\A[ \t]*(?:\r?\n)?")
_TRAILING_WHITESPACE = re.compile(r"[ \t]*(?:\r?\n)?[ \t]*\Z")


@dataclass
class RenderState:
    """Изменяемое состояние одного прохода рендеринга."""
    errors: List[RenderError] = field(default_factory=list)
    pending_trim_right: bool = False
    has_deferred_variables: bool = False

    def record(self, message: str, node: Optional[TemplateNode] = None) -> None:
        line = node.line if node is not None else None
        column = node.column if node is not None else None
        logger.debug(f"Render error: {message} at {line}:{column}")
        self.errors.append(RenderError(message, line, column))


@dataclass(frozen=True)
class RenderResult:
    output: str
    errors: List[RenderError] = field(default_factory=list)
    has_deferred_variables: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors


class TemplateRenderer:
    """
    Рендерер AST шаблона.

    Каждый вызов render создаёт собственное состояние, поэтому один
    экземпляр можно использовать повторно.
    """

    def __init__(self, trim_output: bool = False):
        self.trim_output = trim_output

    async def render(self, ast: TemplateAST, context: RenderContext) -> RenderResult:
        """
        Рендерит AST в строку.

        Args:
            ast: Узлы верхнего уровня
            context: Контекст рендеринга (изменяется узлами set)

        Returns:
            RenderResult с выводом, ошибками и флагом отложенных переменных
        """
        state = RenderState()
        pass_ = _RenderPass(state)
        output = await pass_.render_nodes(ast, context)
        if self.trim_output:
            output = output.strip()
        return RenderResult(output, list(state.errors), state.has_deferred_variables)


class _RenderPass:
    """Один проход рендеринга: состояние плюс вычислитель выражений."""

    def __init__(self, state: RenderState):
        self.state = state
        self.evaluator = ExpressionEvaluator(state)

    async def render_nodes(self, nodes: List[TemplateNode], context: RenderContext) -> str:
        output = ""
        for node in nodes:
            if getattr(node, "trim_left", False) and output:
                output = _TRAILING_WHITESPACE.sub("", output, count=1)

            node_output = await self.render_node(node, context)

            if self.state.pending_trim_right and node_output:
                node_output = _LEADING_WHITESPACE.sub("", node_output, count=1)
                self.state.pending_trim_right = False
            output += node_output

            if getattr(node, "trim_right", False):
                self.state.pending_trim_right = True
        return output

    async def render_node(self, node: TemplateNode, context: RenderContext) -> str:
        if isinstance(node, TextNode):
            return node.text
        if isinstance(node, VariableNode):
            return await self._render_variable(node, context)
        if isinstance(node, IfNode):
            return await self._render_if(node, context)
        if isinstance(node, ForNode):
            return await self._render_for(node, context)
        if isinstance(node, SetNode):
            return await self._render_set(node, context)
        self.state.record(f"Unknown node type: {type(node).__name__}", node)
        return ""

    async def _render_variable(self, node: VariableNode, context: RenderContext) -> str:
        source = prompt_source(node.expression)
        if source is not None:
            return self.evaluator.defer(source).placeholder()

        try:
            value = await self.evaluator.evaluate(node.expression, context)
        except TemplateEvaluationError as e:
            self.state.record(f"Error evaluating variable: {e}", node)
            return ""
        return value_to_string(value)

    async def _render_if(self, node: IfNode, context: RenderContext) -> str:
        try:
            if is_truthy(await self.evaluator.evaluate(node.condition, context)):
                return await self.render_nodes(node.consequent, context)

            for branch in node.elseifs:
                if is_truthy(await self.evaluator.evaluate(branch.condition, context)):
                    return await self.render_nodes(branch.body, context)
        except TemplateEvaluationError as e:
            self.state.record(f"Error evaluating if condition: {e}", node)
            return ""

        if node.alternate is not None:
            return await self.render_nodes(node.alternate, context)
        return ""

    async def _render_for(self, node: ForNode, context: RenderContext) -> str:
        try:
            iterable = await self.evaluator.evaluate(node.iterable, context)
            if iterable is None:
                return ""
            if not isinstance(iterable, (list, tuple)):
                raise TemplateEvaluationError(f"For loop iterable is not an array: {type_name(iterable)}")
        except TemplateEvaluationError as e:
            self.state.record(str(e), node)
            return ""

        pending = self.state.pending_trim_right
        results: List[str] = []
        length = len(iterable)
        for index, item in enumerate(iterable):
            scope = context.derive(loop_bindings(node.iterator, item, index, length))
            results.append((await self.render_nodes(node.body, scope)).strip())

        # Обрезка, начатая внутри тела цикла, не выходит за его пределы
        self.state.pending_trim_right = pending
        return "\n".join(results)

    async def _render_set(self, node: SetNode, context: RenderContext) -> str:
        try:
            context.variables[node.variable] = await self.evaluator.evaluate(node.value, context)
        except TemplateEvaluationError as e:
            self.state.record(f"Error in set: {e}", node)
        return ""


__all__ = ["RenderState", "RenderResult", "TemplateRenderer"]
