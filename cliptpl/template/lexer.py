"""
Лексический анализатор шаблонов.

Разбивает исходный текст на токены, переключаясь между тремя режимами:
обычный текст, содержимое {{ ... }} и содержимое {% ... %}.

Лексер никогда не выбрасывает исключений: проблемные места
(незакрытые строки, неизвестные символы) превращаются в специальные
токены, о которых затем сообщает парсер с точной позицией.
"""

from __future__ import annotations

import re
from typing import List, Optional

from .tokens import KEYWORDS, Token, TokenType

_TEXT, _VARIABLE, _TAG = "text", "variable", "tag"

_STRING_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'"}
_ARGUMENT_ESCAPES = {**_STRING_ESCAPES, ",": ",", "|": "|"}

_TWO_CHAR_OPERATORS = {
    "==": TokenType.EQ,
    "!=": TokenType.NEQ,
    ">=": TokenType.GTE,
    "<=": TokenType.LTE,
    "&&": TokenType.AND,
    "||": TokenType.OR,
    "??": TokenType.NULLISH,
}

_ONE_CHAR_TOKENS = {
    ">": TokenType.GT,
    "<": TokenType.LT,
    "!": TokenType.NOT,
    "=": TokenType.ASSIGN,
    "|": TokenType.PIPE,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ":": TokenType.COLON,
    ",": TokenType.COMMA,
    ".": TokenType.DOT,
}

_IDENT_START = re.compile(r"[A-Za-z_@]")
_IDENT_CHAR = re.compile(r"[A-Za-z0-9_@\-.]")
_NUMBER = re.compile(r"-?\d+(?:\.\d*)?")
_SELECTOR_PREFIXES = ("selector", "selectorHtml")


class TemplateLexer:
    """
    Лексический анализатор для шаблонов.

    Отслеживает позицию, строку и колонку для точных сообщений об ошибках.
    """

    def __init__(self, text: str):
        self.text = text
        self.position = 0
        self.line = 1
        self.column = 1
        self.length = len(text)
        self._mode = _TEXT
        self._tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """
        Разбивает весь текст на токены.

        Returns:
            Список токенов, всегда завершающийся токеном EOF
        """
        while self.position < self.length:
            if self._mode == _TEXT:
                self._tokenize_text()
            else:
                self._tokenize_expression()

        self._tokens.append(Token(TokenType.EOF, "", self.position, self.line, self.column))
        return self._tokens

    # ========================================================================
    # Режим текста
    # ========================================================================

    def _tokenize_text(self) -> None:
        start_pos, start_line, start_column = self.position, self.line, self.column
        next_open = self._find_next_opening()

        if next_open > start_pos:
            self._advance(next_open - start_pos)
            self._tokens.append(Token(
                TokenType.TEXT, self.text[start_pos:next_open], start_pos, start_line, start_column
            ))

        if self.position >= self.length:
            return

        is_variable = self.text.startswith("{{", self.position)
        trim_left = self._peek(2) == "-"
        pos, line, column = self.position, self.line, self.column
        width = 3 if trim_left else 2
        value = self.text[pos:pos + width]
        self._advance(width)

        if is_variable:
            self._tokens.append(Token(TokenType.VARIABLE_START, value, pos, line, column, trim_left=trim_left))
            self._mode = _VARIABLE
        else:
            self._tokens.append(Token(TokenType.TAG_START, value, pos, line, column, trim_left=trim_left))
            self._mode = _TAG

    def _find_next_opening(self) -> int:
        """Находит позицию ближайшего {{ или {% (или конец текста)."""
        candidates = [
            p for p in (self.text.find("{{", self.position), self.text.find("{%", self.position))
            if p != -1
        ]
        return min(candidates) if candidates else self.length

    # ========================================================================
    # Режим выражения (внутри {{ }} и {% %})
    # ========================================================================

    def _tokenize_expression(self) -> None:
        self._skip_whitespace()
        if self.position >= self.length:
            return

        if self._try_closing():
            return

        # Новое открытие внутри выражения: текущее не было закрыто.
        # Возвращаемся в режим текста, парсер сообщит об отсутствии закрытия.
        if self.text.startswith("{{", self.position) or self.text.startswith("{%", self.position):
            self._mode = _TEXT
            return

        char = self.text[self.position]
        next_char = self._peek(1)

        if char in "\"'":
            self._tokenize_string(char)
        elif char.isdigit() or (char == "-" and next_char.isdigit()):
            self._tokenize_number()
        elif self.text[self.position:self.position + 2] in _TWO_CHAR_OPERATORS:
            op = self.text[self.position:self.position + 2]
            self._emit_and_advance(_TWO_CHAR_OPERATORS[op], op)
        elif char in _ONE_CHAR_TOKENS:
            self._emit_and_advance(_ONE_CHAR_TOKENS[char], char)
        elif _IDENT_START.match(char):
            self._tokenize_identifier()
        elif char == "\\":
            self._tokenize_escaped_argument()
        else:
            self._emit_and_advance(TokenType.UNKNOWN, char)

    def _try_closing(self) -> bool:
        """
        Распознаёт закрывающую последовательность текущего режима.

        Флаг trim_right ставится только явным маркером (-}}, -%}).
        Перевод строки после обычного %} поглощает парсер.
        """
        closers = (
            (("-}}", True), ("}}", False)) if self._mode == _VARIABLE
            else (("-%}", True), ("%}", False))
        )
        token_type = TokenType.VARIABLE_END if self._mode == _VARIABLE else TokenType.TAG_END
        for marker, trim in closers:
            if self.text.startswith(marker, self.position):
                self._close(token_type, marker, trim)
                return True
        return False

    def _close(self, token_type: TokenType, marker: str, trim_right: bool) -> None:
        self._tokens.append(Token(
            token_type, marker, self.position, self.line, self.column, trim_right=trim_right
        ))
        self._advance(len(marker))
        self._mode = _TEXT

    def _tokenize_string(self, quote: str) -> None:
        start_pos, start_line, start_column = self.position, self.line, self.column
        self._advance(1)
        chars: List[str] = []

        while self.position < self.length:
            char = self.text[self.position]
            pair = self.text[self.position:self.position + 2]

            if char == quote:
                self._advance(1)
                self._tokens.append(Token(TokenType.STRING, "".join(chars), start_pos, start_line, start_column))
                return

            # Незакрытая строка не должна поглощать конец выражения
            if pair in ("}}", "%}"):
                break

            if char == "\\" and self.position + 1 < self.length:
                escaped = self.text[self.position + 1]
                chars.append(_STRING_ESCAPES.get(escaped, escaped))
                self._advance(2)
                continue

            chars.append(char)
            self._advance(1)

        self._tokens.append(Token(
            TokenType.UNTERMINATED_STRING, quote, start_pos, start_line, start_column
        ))

    def _tokenize_escaped_argument(self) -> None:
        """
        Экранированный аргумент фильтра вида \\", \\" или \\,.

        Читается до разделителя (|, %, }, )) с обработкой escape-последовательностей.
        """
        start_pos, start_line, start_column = self.position, self.line, self.column
        chars: List[str] = []

        while self.position < self.length:
            char = self.text[self.position]
            if char in "|%})":
                break
            if char == "\\" and self.position + 1 < self.length:
                escaped = self.text[self.position + 1]
                chars.append(_ARGUMENT_ESCAPES.get(escaped, escaped))
                self._advance(2)
                continue
            chars.append(char)
            self._advance(1)

        self._tokens.append(Token(TokenType.STRING, "".join(chars), start_pos, start_line, start_column))

    def _tokenize_number(self) -> None:
        match = _NUMBER.match(self.text, self.position)
        # Гарантировано проверкой в _tokenize_expression
        assert match is not None
        self._emit_and_advance(TokenType.NUMBER, match.group(0))

    def _tokenize_identifier(self) -> None:
        start_pos, start_line, start_column = self.position, self.line, self.column
        end = self.position
        while end < self.length and _IDENT_CHAR.match(self.text[end]):
            # -}} и -%} закрывают выражение, а не продолжают имя
            if self.text[end] == "-" and self.text[end + 1:end + 2] in ("}", "%"):
                break
            end += 1
        value = self.text[start_pos:end]
        self._advance(end - start_pos)

        if value in _SELECTOR_PREFIXES and self._peek(0) == ":":
            self._advance(1)
            value = value + ":" + self._read_css_selector()

        token_type = KEYWORDS.get(value.lower(), TokenType.IDENTIFIER)
        self._tokens.append(Token(token_type, value, start_pos, start_line, start_column))

    def _read_css_selector(self) -> str:
        """
        Читает CSS-селектор после префикса selector: или selectorHtml:.

        Селектор может содержать пробелы, комбинаторы, скобки и кавычки.
        Останавливается только на разделителях шаблона вне скобок и строк.
        """
        start = self.position
        bracket_depth = 0
        paren_depth = 0
        in_string: Optional[str] = None

        while self.position < self.length:
            char = self.text[self.position]
            pair = self.text[self.position:self.position + 2]

            if in_string is None and bracket_depth == 0 and paren_depth == 0:
                if char == "|" or pair in ("%}", "-%", "-}") or char == "}":
                    break
            # Разделители выражения закрывают даже несбалансированный селектор
            if pair in ("}}", "%}"):
                break

            if in_string is None and char == "\\" and self._peek(1) in ("\"", "'"):
                self._advance(2)
                continue
            if in_string is None and char in "\"'":
                in_string = char
            elif in_string is not None and char == in_string:
                in_string = None
            elif in_string is not None and char == "\\" and self.position + 1 < self.length:
                self._advance(2)
                continue
            elif in_string is None:
                if char == "[":
                    bracket_depth += 1
                elif char == "]":
                    bracket_depth = max(0, bracket_depth - 1)
                elif char == "(":
                    paren_depth += 1
                elif char == ")":
                    paren_depth = max(0, paren_depth - 1)

            self._advance(1)

        return self.text[start:self.position].rstrip()

    # ========================================================================
    # Вспомогательные методы
    # ========================================================================

    def _emit_and_advance(self, token_type: TokenType, value: str) -> None:
        self._tokens.append(Token(token_type, value, self.position, self.line, self.column))
        self._advance(len(value))

    def _skip_whitespace(self) -> None:
        while self.position < self.length and self.text[self.position] in " \t\r\n":
            self._advance(1)

    def _peek(self, offset: int) -> str:
        index = self.position + offset
        return self.text[index] if index < self.length else ""

    def _advance(self, count: int) -> None:
        """
        Перемещает позицию на указанное количество символов,
        обновляя номера строк и колонок.
        """
        for _ in range(count):
            if self.position < self.length:
                if self.text[self.position] == "\n":
                    self.line += 1
                    self.column = 1
                else:
                    self.column += 1
                self.position += 1


def tokenize_template(text: str) -> List[Token]:
    """Удобная обёртка: токенизирует текст шаблона."""
    return TemplateLexer(text).tokenize()


__all__ = ["TemplateLexer", "tokenize_template"]
