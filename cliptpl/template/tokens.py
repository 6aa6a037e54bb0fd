"""
Лексические типы.

Определяет типы токенов шаблона, сам токен с позиционной информацией
и ошибку синтаксического анализа.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from ..errors import CliptplUserError


class TokenType(enum.Enum):
    """Типы токенов в шаблоне."""
    # Структурные токены
    TEXT = "TEXT"
    VARIABLE_START = "VARIABLE_START"    # {{ или {{-
    VARIABLE_END = "VARIABLE_END"        # }} или -}}
    TAG_START = "TAG_START"              # {% или {%-
    TAG_END = "TAG_END"                  # %} или -%}

    # Ключевые слова
    IF = "IF"
    ELSEIF = "ELSEIF"
    ELSE = "ELSE"
    ENDIF = "ENDIF"
    FOR = "FOR"
    IN = "IN"
    ENDFOR = "ENDFOR"
    SET = "SET"

    # Операторы
    EQ = "EQ"
    NEQ = "NEQ"
    GT = "GT"
    LT = "LT"
    GTE = "GTE"
    LTE = "LTE"
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    CONTAINS = "CONTAINS"
    NULLISH = "NULLISH"
    ASSIGN = "ASSIGN"

    # Литералы и идентификаторы
    IDENTIFIER = "IDENTIFIER"
    STRING = "STRING"
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    NULL = "NULL"

    # Пунктуация
    PIPE = "PIPE"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    COLON = "COLON"
    COMMA = "COMMA"
    DOT = "DOT"

    # Проблемные места, о которых сообщает парсер
    UNKNOWN = "UNKNOWN"
    UNTERMINATED_STRING = "UNTERMINATED_STRING"

    EOF = "EOF"


# Ключевые слова сравниваются без учёта регистра
KEYWORDS = {
    "if": TokenType.IF,
    "elseif": TokenType.ELSEIF,
    "else": TokenType.ELSE,
    "endif": TokenType.ENDIF,
    "for": TokenType.FOR,
    "in": TokenType.IN,
    "endfor": TokenType.ENDFOR,
    "set": TokenType.SET,
    "and": TokenType.AND,
    "or": TokenType.OR,
    "not": TokenType.NOT,
    "contains": TokenType.CONTAINS,
    "true": TokenType.BOOLEAN,
    "false": TokenType.BOOLEAN,
    "null": TokenType.NULL,
}

# Ключевые слова, с которых начинается или которыми продолжается блок
BLOCK_KEYWORDS = {
    TokenType.IF,
    TokenType.ELSEIF,
    TokenType.ELSE,
    TokenType.ENDIF,
    TokenType.FOR,
    TokenType.ENDFOR,
}


@dataclass(frozen=True)
class Token:
    """
    Токен с позиционной информацией для точной диагностики ошибок.

    Флаги trim_left/trim_right имеют смысл только для структурных
    токенов: открывающих ({{-, {%-) и закрывающих (-}}, -%}, %}).
    """
    type: TokenType
    value: str
    position: int        # Позиция в исходном тексте
    line: int            # Номер строки (начиная с 1)
    column: int          # Номер колонки (начиная с 1)
    trim_left: bool = False
    trim_right: bool = False

    def __repr__(self) -> str:
        return f"Token({self.type.value}, {self.value!r}, {self.line}:{self.column})"


class TemplateSyntaxError(CliptplUserError):
    """Ошибка синтаксического анализа шаблона."""

    def __init__(self, message: str, line: int = 0, column: int = 0):
        super().__init__(f"{message} at {line}:{column}")
        self.message = message
        self.line = line
        self.column = column

    @classmethod
    def at(cls, message: str, token: Token) -> TemplateSyntaxError:
        return cls(message, token.line, token.column)


__all__ = [
    "TokenType",
    "KEYWORDS",
    "BLOCK_KEYWORDS",
    "Token",
    "TemplateSyntaxError",
]
