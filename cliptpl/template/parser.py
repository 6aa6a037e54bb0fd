"""
Парсер шаблонов.

Преобразует последовательность токенов в AST (абстрактное синтаксическое дерево)
с поддержкой интерполяций, условных блоков, циклов и присваиваний.

Выражения разбираются рекурсивным спуском с фиксированной лестницей
приоритетов (от низшего к высшему):

    ??  →  or  →  and  →  not  →  сравнение  →  фильтр |  →  постфикс  →  первичное

Ошибки не прерывают разбор: каждая записывается с позицией, парсер
восстанавливается до конца текущей конструкции и продолжает.
Шаблон с любой ошибкой разбора не рендерится.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .blocks import BlockMap, match_blocks
from .lexer import tokenize_template
from .nodes import (
    Binary, ElseIfBranch, Expression, Filter, ForNode, Group, Identifier, IfNode,
    Literal, Member, SetNode, TemplateAST, TemplateNode, TextNode, Unary, VariableNode,
    quote_string,
)
from .tokens import Token, TokenType, TemplateSyntaxError

logger = logging.getLogger(__name__)

# Обычный %} поглощает следующий за ним перевод строки
_IMPLICIT_NEWLINE = re.compile(r"\A[ \t]*\r?\n")
# Явные маркеры -%} / {%- снимают пробелы и не более одного перевода строки
_LEADING_TRIM = re.compile(r"\A[ \t]*(?:\r?\n)?")
_TRAILING_TRIM = re.compile(r"[ \t]*(?:\r?\n)?[ \t]*\Z")

_COMPARISON_OPERATORS = {
    TokenType.EQ: "==",
    TokenType.NEQ: "!=",
    TokenType.GT: ">",
    TokenType.LT: "<",
    TokenType.GTE: ">=",
    TokenType.LTE: "<=",
    TokenType.CONTAINS: "contains",
}

# Токены, из которых может состоять «голое» слово в аргументе фильтра (5n, n+7)
_BARE_WORD_PARTS = {TokenType.IDENTIFIER, TokenType.NUMBER, TokenType.UNKNOWN}

# Продолжение префиксного имени: schema:@Article:author, schema:director[*].name
_PREFIXED_NAME_PARTS = {
    TokenType.IDENTIFIER, TokenType.DOT, TokenType.COLON, TokenType.NUMBER,
    TokenType.LBRACKET, TokenType.RBRACKET,
}


@dataclass(frozen=True)
class ParseResult:
    """Результат разбора: AST и список ошибок (пустой при успехе)."""
    ast: TemplateAST
    errors: List[TemplateSyntaxError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class TemplateParser:
    """
    Рекурсивный парсер для шаблонов.

    Получает поток токенов и карту блоков, построенную заранее
    подсчётом глубины. Границы тел if/for берутся из карты.
    """

    def __init__(self, tokens: List[Token], blocks: Optional[BlockMap] = None):
        self.tokens = tokens
        self.position = 0
        self.blocks = blocks if blocks is not None else match_blocks(tokens)
        self.errors: List[TemplateSyntaxError] = []

    def parse(self) -> TemplateAST:
        """
        Парсит всю последовательность токенов в AST.

        Returns:
            Список корневых узлов AST (ошибки накапливаются в self.errors)
        """
        return self._parse_nodes(len(self.tokens) - 1)

    # ========================================================================
    # Узлы шаблона
    # ========================================================================

    def _parse_nodes(self, stop: int) -> List[TemplateNode]:
        nodes: List[TemplateNode] = []
        while self.position < stop and not self._is_at_end():
            node = self._parse_node()
            if node is not None:
                nodes.append(node)
        return nodes

    def _parse_node(self) -> Optional[TemplateNode]:
        current = self._current()

        if current.type == TokenType.TEXT:
            return self._parse_text()
        if current.type == TokenType.VARIABLE_START:
            return self._guarded(self._parse_variable, self._skip_variable)
        if current.type == TokenType.TAG_START:
            return self._parse_tag()

        # Сюда попадают только осколки незакрытого выражения
        self._record(TemplateSyntaxError.at(_unexpected_message(current), current))
        self._advance()
        return None

    def _guarded(
        self,
        parse: Callable[[], TemplateNode],
        recover: Callable[[], None],
    ) -> Optional[TemplateNode]:
        """Выполняет разбор конструкции; при ошибке записывает её и восстанавливается."""
        try:
            return parse()
        except TemplateSyntaxError as e:
            self._record(e)
            recover()
            return None

    def _parse_text(self) -> Optional[TextNode]:
        token = self._advance()
        text = token.value

        previous = self.tokens[self.position - 2] if self.position >= 2 else None
        if previous is not None and previous.type == TokenType.TAG_END and not previous.trim_right:
            text = _IMPLICIT_NEWLINE.sub("", text, count=1)

        if not text:
            return None
        return TextNode(text, line=token.line, column=token.column)

    def _parse_variable(self) -> VariableNode:
        start = self._advance()

        if self._check(TokenType.VARIABLE_END):
            raise TemplateSyntaxError.at("Empty variable - add a variable name between {{ and }}", start)

        expression = self._parse_expression()
        if expression is None:
            current = self._current()
            if current.type in (TokenType.UNKNOWN, TokenType.UNTERMINATED_STRING):
                raise TemplateSyntaxError.at(_unexpected_message(current), current)
            raise TemplateSyntaxError.at("Empty variable - add a variable name between {{ and }}", start)

        if self._check(TokenType.IDENTIFIER):
            raise TemplateSyntaxError.at(
                'Multiple words without quotes - if this is a prompt, '
                'wrap it in quotes: {{"your prompt here"}}',
                start,
            )

        end = self._expect_end(TokenType.VARIABLE_END, "Missing closing }}")
        return VariableNode(
            expression,
            trim_left=start.trim_left,
            trim_right=end.trim_right,
            line=start.line,
            column=start.column,
        )

    def _parse_tag(self) -> Optional[TemplateNode]:
        start_index = self.position
        keyword = self._peek(1)

        if keyword.type == TokenType.IF:
            return self._guarded(lambda: self._parse_if(start_index), lambda: self._skip_block(start_index))
        if keyword.type == TokenType.FOR:
            return self._guarded(lambda: self._parse_for(start_index), lambda: self._skip_block(start_index))
        if keyword.type == TokenType.SET:
            return self._guarded(self._parse_set, self._skip_tag)

        if keyword.type in (TokenType.ELSEIF, TokenType.ELSE, TokenType.ENDIF, TokenType.ENDFOR):
            message = f"Unexpected {{% {keyword.value.lower()} %}} - no matching opening tag"
        elif keyword.type in (TokenType.TAG_END, TokenType.EOF):
            message = "Empty tag - add a statement between {% and %}"
        else:
            message = f"Unknown tag: {{% {keyword.value} %}}"
        self._record(TemplateSyntaxError.at(message, keyword))
        self._skip_tag()
        return None

    def _parse_if(self, start_index: int) -> IfNode:
        block = self.blocks.blocks[start_index]
        boundaries = self.blocks.boundaries(start_index)

        start = self._advance()          # {%
        self._advance()                  # if
        condition = self._parse_expression()
        if condition is None:
            raise TemplateSyntaxError.at("{% if %} requires a condition", start)
        head_end = self._expect_end(TokenType.TAG_END, "Missing %} to close {% if %}")

        consequent = self._parse_body(head_end, boundaries[0])
        elseifs: List[ElseIfBranch] = []
        alternate: Optional[List[TemplateNode]] = None

        for i, branch_index in enumerate(block.branches):
            self.position = branch_index
            self._advance()              # {%
            branch_keyword = self._advance()
            if branch_keyword.type == TokenType.ELSEIF:
                branch_condition = self._parse_expression()
                if branch_condition is None:
                    raise TemplateSyntaxError.at("{% elseif %} requires a condition", branch_keyword)
                branch_end = self._expect_end(TokenType.TAG_END, "Missing %} to close {% elseif %}")
                body = self._parse_body(branch_end, boundaries[i + 1])
                elseifs.append(ElseIfBranch(branch_condition, body))
            else:
                branch_end = self._expect_end(TokenType.TAG_END, "Missing %} to close {% else %}")
                alternate = self._parse_body(branch_end, boundaries[i + 1])

        end = self._parse_closing_tag(block.end, "endif")
        return IfNode(
            condition,
            consequent,
            elseifs=elseifs,
            alternate=alternate,
            trim_left=start.trim_left,
            trim_right=end.trim_right,
            line=start.line,
            column=start.column,
        )

    def _parse_for(self, start_index: int) -> ForNode:
        block = self.blocks.blocks[start_index]

        start = self._advance()          # {%
        self._advance()                  # for
        if not self._check(TokenType.IDENTIFIER):
            raise TemplateSyntaxError.at(
                "{% for %} requires a variable name, e.g. {% for item in items %}", start
            )
        iterator = self._advance().value
        if not self._check(TokenType.IN):
            raise TemplateSyntaxError.at(
                '{% for %} requires "in" keyword, e.g. {% for item in items %}', start
            )
        self._advance()
        iterable = self._parse_expression()
        if iterable is None:
            raise TemplateSyntaxError.at('{% for %} requires something to loop over after "in"', start)
        head_end = self._expect_end(TokenType.TAG_END, "Missing %} to close {% for %}")

        body = self._parse_body(head_end, block.end)
        end = self._parse_closing_tag(block.end, "endfor")
        return ForNode(
            iterator,
            iterable,
            body,
            trim_left=start.trim_left,
            trim_right=end.trim_right,
            line=start.line,
            column=start.column,
        )

    def _parse_set(self) -> SetNode:
        start = self._advance()          # {%
        self._advance()                  # set
        if not self._check(TokenType.IDENTIFIER):
            raise TemplateSyntaxError.at(
                "{% set %} requires a variable name, e.g. {% set name = value %}", start
            )
        variable = self._advance().value
        if not self._check(TokenType.ASSIGN):
            raise TemplateSyntaxError.at('{% set %} requires "=" after variable name', start)
        self._advance()
        value = self._parse_expression()
        if value is None:
            raise TemplateSyntaxError.at('{% set %} requires a value after "="', start)
        end = self._expect_end(TokenType.TAG_END, "Missing %} to close {% set %}")
        return SetNode(
            variable,
            value,
            trim_left=start.trim_left,
            trim_right=end.trim_right,
            line=start.line,
            column=start.column,
        )

    def _parse_body(self, head_end: Token, stop: int) -> List[TemplateNode]:
        """
        Парсит тело блока до тега-границы с индексом stop.

        Явные маркеры на границах тела обрабатываются здесь же:
        -%} головного тега срезает начало тела, {%- следующего тега срезает конец.
        """
        body = self._parse_nodes(stop)
        if self.position != stop:
            raise TemplateSyntaxError.at("Unbalanced block body", self._current())

        if head_end.trim_right and body and isinstance(body[0], TextNode):
            body[0] = _retext(body[0], _LEADING_TRIM.sub("", body[0].text, count=1))
        if self.tokens[stop].trim_left and body and isinstance(body[-1], TextNode):
            body[-1] = _retext(body[-1], _TRAILING_TRIM.sub("", body[-1].text, count=1))

        return [node for node in body if not (isinstance(node, TextNode) and not node.text)]

    def _parse_closing_tag(self, index: Optional[int], name: str) -> Token:
        # Баланс проверен заранее, поэтому index всегда известен
        assert index is not None
        self.position = index
        self._advance()                  # {%
        self._advance()                  # endif / endfor
        return self._expect_end(TokenType.TAG_END, f"Missing %}} to close {{% {name} %}}")

    # ========================================================================
    # Выражения
    # ========================================================================

    def _parse_expression(self) -> Optional[Expression]:
        return self._parse_nullish()

    def _parse_nullish(self) -> Optional[Expression]:
        left = self._parse_or()
        if left is None:
            return None
        while self._check(TokenType.NULLISH):
            op = self._advance()
            right = self._parse_or()
            if right is None:
                raise TemplateSyntaxError.at("Missing fallback value after ??", op)
            left = Binary("??", left, right, line=op.line, column=op.column)
        return left

    def _parse_or(self) -> Optional[Expression]:
        left = self._parse_and()
        if left is None:
            return None
        while self._check(TokenType.OR):
            op = self._advance()
            right = self._parse_and()
            if right is None:
                raise TemplateSyntaxError.at('Missing value after "or"', op)
            left = Binary("or", left, right, line=op.line, column=op.column)
        return left

    def _parse_and(self) -> Optional[Expression]:
        left = self._parse_not()
        if left is None:
            return None
        while self._check(TokenType.AND):
            op = self._advance()
            right = self._parse_not()
            if right is None:
                raise TemplateSyntaxError.at('Missing value after "and"', op)
            left = Binary("and", left, right, line=op.line, column=op.column)
        return left

    def _parse_not(self) -> Optional[Expression]:
        if self._check(TokenType.NOT):
            op = self._advance()
            argument = self._parse_not()
            if argument is None:
                raise TemplateSyntaxError.at('Missing value after "not"', op)
            return Unary("not", argument, line=op.line, column=op.column)
        return self._parse_comparison()

    def _parse_comparison(self) -> Optional[Expression]:
        left = self._parse_filter()
        if left is None:
            return None
        operator = _COMPARISON_OPERATORS.get(self._current().type)
        if operator is None:
            return left
        op = self._advance()
        right = self._parse_filter()
        if right is None:
            raise TemplateSyntaxError.at(f'Missing value after "{op.value}"', op)
        return Binary(operator, left, right, line=op.line, column=op.column)

    def _parse_filter(self) -> Optional[Expression]:
        left = self._parse_postfix()
        if left is None:
            return None

        while self._check(TokenType.PIPE):
            self._advance()
            if not self._check(TokenType.IDENTIFIER):
                raise TemplateSyntaxError.at("Missing filter name after |", self._current())
            name_token = self._advance()

            args: List[Expression] = []
            separators: List[str] = []
            parenthesized = False

            if self._check(TokenType.COLON):
                self._advance()
                if self._check(TokenType.LPAREN):
                    parenthesized = True
                    args = self._parse_parenthesized_args()
                else:
                    first = self._parse_argument()
                    if first is not None:
                        args.append(first)
                        while self._current().type in (TokenType.COMMA, TokenType.COLON):
                            separator = self._advance().value
                            arg = self._parse_argument()
                            if arg is None:
                                raise TemplateSyntaxError.at(
                                    f'Missing filter argument after "{separator}"', self._current()
                                )
                            separators.append(separator)
                            args.append(arg)

            left = Filter(
                left,
                name_token.value,
                tuple(args),
                tuple(separators),
                parenthesized,
                line=name_token.line,
                column=name_token.column,
            )

        return left

    def _parse_parenthesized_args(self) -> List[Expression]:
        self._advance()  # (
        args: List[Expression] = []
        while not self._check(TokenType.RPAREN) and not self._at_expression_end():
            arg = self._parse_or()
            if arg is None:
                break
            args.append(arg)
            if not self._check(TokenType.COMMA):
                break
            self._advance()
        self._expect(TokenType.RPAREN, "Missing closing )")
        return args

    def _parse_argument(self) -> Optional[Expression]:
        """
        Аргумент фильтра: первичное выражение без склейки префиксов.

        Соседние без пробелов токены (5n, n+7, 2:7 уже разделён) склеиваются
        в одно «голое» слово, которое вычисляется как идентификатор.
        """
        first = self._current()
        if first.type in _BARE_WORD_PARTS and self._glues_to_next(self.position):
            end = self.position
            while end + 1 < len(self.tokens) and self._glues_to_next(end):
                end += 1
            raw = "".join(t.value for t in self.tokens[self.position:end + 1])
            self.position = end + 1
            return Identifier(raw, line=first.line, column=first.column)

        return self._parse_postfix(join_prefix=False)

    def _glues_to_next(self, index: int) -> bool:
        token, following = self.tokens[index], self.tokens[index + 1]
        return (
            token.type in _BARE_WORD_PARTS
            and following.type in _BARE_WORD_PARTS
            and token.position + len(token.value) == following.position
        )

    def _parse_postfix(self, join_prefix: bool = True) -> Optional[Expression]:
        expr = self._parse_primary(join_prefix)
        if expr is None:
            return None

        while True:
            if self._check(TokenType.LBRACKET):
                bracket = self._advance()
                if self._check(TokenType.RBRACKET):
                    raise TemplateSyntaxError.at("Empty brackets [] - add an index or key", bracket)
                index = self._parse_expression()
                if index is None:
                    raise TemplateSyntaxError.at("Empty brackets [] - add an index or key", bracket)
                self._expect(TokenType.RBRACKET, "Missing closing ]")
                expr = Member(expr, index, computed=True, line=bracket.line, column=bracket.column)
            elif self._check(TokenType.DOT) and self._peek(1).type == TokenType.IDENTIFIER:
                dot = self._advance()
                name = self._advance().value
                expr = Member(expr, Literal(name), line=dot.line, column=dot.column)
            else:
                return expr

    def _parse_primary(self, join_prefix: bool = True) -> Optional[Expression]:
        token = self._current()

        if token.type == TokenType.LPAREN:
            self._advance()
            if self._check(TokenType.RPAREN):
                raise TemplateSyntaxError.at("Empty parentheses () - add an expression", token)
            inner = self._parse_expression()
            if inner is None:
                raise TemplateSyntaxError.at("Empty parentheses () - add an expression", token)
            self._expect(TokenType.RPAREN, "Missing closing )")
            return Group(inner, line=token.line, column=token.column)

        if token.type == TokenType.STRING:
            self._advance()
            return Literal(token.value, line=token.line, column=token.column)

        if token.type == TokenType.NUMBER:
            self._advance()
            return Literal(_parse_number(token.value), line=token.line, column=token.column)

        if token.type == TokenType.BOOLEAN:
            self._advance()
            return Literal(token.value.lower() == "true", line=token.line, column=token.column)

        if token.type == TokenType.NULL:
            self._advance()
            return Literal(None, line=token.line, column=token.column)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            name = token.value
            if join_prefix and self._check(TokenType.COLON) and self._adjacent(token, self._current()):
                name = self._join_prefixed_name(name)
            return Identifier(name, line=token.line, column=token.column)

        if token.type in (TokenType.UNKNOWN, TokenType.UNTERMINATED_STRING):
            raise TemplateSyntaxError.at(_unexpected_message(token), token)

        return None

    def _join_prefixed_name(self, name: str) -> str:
        """
        Склеивает префиксное имя: schema:@Article:author, meta:og:title, prompt:"text".
        """
        previous = self._advance()  # :
        name += ":"
        while True:
            current = self._current()
            if not self._adjacent(previous, current):
                break
            if current.type == TokenType.STRING and name.endswith(":"):
                name += quote_string(current.value)
                self._advance()
                break
            if current.type not in _PREFIXED_NAME_PARTS and not (
                current.type == TokenType.UNKNOWN and current.value == "*"
            ):
                break
            name += current.value
            previous = self._advance()
        return name

    # ========================================================================
    # Восстановление после ошибок
    # ========================================================================

    def _skip_variable(self) -> None:
        """Пропускает остаток интерполяции до }} или до начала новой конструкции."""
        while not self._is_at_end():
            current = self._current()
            if current.type == TokenType.VARIABLE_END:
                self._advance()
                return
            if current.type in (TokenType.TEXT, TokenType.VARIABLE_START, TokenType.TAG_START):
                return
            self._advance()

    def _skip_tag(self) -> None:
        """Пропускает остаток тега до %} или до начала новой конструкции."""
        self._advance()  # {%
        while not self._is_at_end():
            current = self._current()
            if current.type == TokenType.TAG_END:
                self._advance()
                return
            if current.type in (TokenType.TEXT, TokenType.VARIABLE_START, TokenType.TAG_START):
                return
            self._advance()

    def _skip_block(self, start_index: int) -> None:
        """Пропускает весь блок целиком, включая закрывающий тег."""
        block = self.blocks.blocks.get(start_index)
        if block is None or block.end is None:
            self.position = start_index
            self._skip_tag()
            return
        self.position = block.end
        self._skip_tag()

    # ========================================================================
    # Вспомогательные методы
    # ========================================================================

    def _record(self, error: TemplateSyntaxError) -> None:
        logger.debug(f"Template syntax error: {error}")
        self.errors.append(error)

    def _current(self) -> Token:
        return self.tokens[min(self.position, len(self.tokens) - 1)]

    def _peek(self, offset: int) -> Token:
        return self.tokens[min(self.position + offset, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        token = self._current()
        if not self._is_at_end():
            self.position += 1
        return token

    def _check(self, token_type: TokenType) -> bool:
        return self._current().type == token_type

    def _is_at_end(self) -> bool:
        return self._current().type == TokenType.EOF

    def _at_expression_end(self) -> bool:
        return self._current().type in (
            TokenType.VARIABLE_END, TokenType.TAG_END, TokenType.EOF,
            TokenType.TEXT, TokenType.VARIABLE_START, TokenType.TAG_START,
        )

    def _expect(self, token_type: TokenType, message: str) -> Token:
        if not self._check(token_type):
            raise TemplateSyntaxError.at(message, self._current())
        return self._advance()

    def _expect_end(self, token_type: TokenType, message: str) -> Token:
        """Ожидает закрывающий токен; неизвестный символ перед ним сообщается точнее."""
        current = self._current()
        if current.type in (TokenType.UNKNOWN, TokenType.UNTERMINATED_STRING):
            raise TemplateSyntaxError.at(_unexpected_message(current), current)
        if current.type != token_type and not self._at_expression_end():
            raise TemplateSyntaxError.at(_unexpected_message(current), current)
        return self._expect(token_type, message)

    @staticmethod
    def _adjacent(left: Token, right: Token) -> bool:
        return left.position + len(left.value) == right.position


def _parse_number(raw: str) -> int | float:
    if "." in raw:
        return float(raw)
    return int(raw)


def _unexpected_message(token: Token) -> str:
    if token.type == TokenType.UNKNOWN:
        return f"Unexpected character '{token.value}' in template"
    if token.type == TokenType.UNTERMINATED_STRING:
        return f"Unclosed string - missing closing {token.value}"
    if token.type == TokenType.EOF:
        return "Unexpected end of template"
    return f'Unexpected "{token.value}" in template'


def _retext(node: TextNode, text: str) -> TextNode:
    return TextNode(text, line=node.line, column=node.column)


def parse_template(text: str) -> ParseResult:
    """
    Разбирает текст шаблона в AST.

    Сначала проверяется баланс блоков подсчётом глубины. Несбалансированный
    шаблон сразу возвращается с ошибками и пустым AST.

    Args:
        text: Исходный текст шаблона

    Returns:
        ParseResult с AST (пустым при ошибках) и списком ошибок
    """
    tokens = tokenize_template(text)
    blocks = match_blocks(tokens)

    if not blocks.balanced:
        errors = [TemplateSyntaxError(i.message, i.line, i.column) for i in blocks.issues]
        logger.debug(f"Unbalanced blocks: {len(errors)} issue(s)")
        return ParseResult([], errors)

    parser = TemplateParser(tokens, blocks)
    try:
        ast = parser.parse()
    except RecursionError:
        # Глубина блоков ограничена заранее; сюда доходят только вложенные скобки выражений
        logger.debug("Template expression nested too deeply")
        return ParseResult([], [TemplateSyntaxError("Template nested too deeply", 1, 1)])
    if parser.errors:
        return ParseResult([], list(parser.errors))

    logger.debug(f"Parsed template: {len(tokens)} tokens, {len(ast)} top-level nodes")
    return ParseResult(ast)


__all__ = ["TemplateParser", "ParseResult", "parse_template"]
