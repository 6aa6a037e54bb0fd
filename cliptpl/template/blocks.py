"""
Сопоставление блочных тегов.

Проверяет вложенность {% if %}/{% for %} явным подсчётом глубины
по потоку тегов (без регулярных выражений), так что внутренний
{% if %}...{% endif %} не закрывает внешний блок преждевременно.
Результат используется парсером для определения границ тел блоков.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .tokens import Token, TokenType

# Открывающий тег -> закрывающий тег
_CLOSERS = {
    TokenType.IF: TokenType.ENDIF,
    TokenType.FOR: TokenType.ENDFOR,
}

# Промежуточные теги, допустимые только внутри if
_BRANCHES = {TokenType.ELSEIF, TokenType.ELSE}

# Предельная глубина вложенности блоков
MAX_BLOCK_DEPTH = 64


@dataclass
class Block:
    """
    Найденный блок.

    Все индексы указывают на токен TAG_START соответствующего тега.
    """
    kind: TokenType
    start: int
    keyword: Token
    branches: List[int] = field(default_factory=list)
    end: Optional[int] = None


@dataclass(frozen=True)
class BlockIssue:
    """Нарушение баланса блоков."""
    message: str
    line: int
    column: int


@dataclass
class BlockMap:
    """
    Карта блоков шаблона.

    blocks - по индексу открывающего TAG_START.
    issues - все найденные нарушения (лишние или незакрытые теги).
    """
    blocks: Dict[int, Block] = field(default_factory=dict)
    issues: List[BlockIssue] = field(default_factory=list)

    @property
    def balanced(self) -> bool:
        return not self.issues

    def boundaries(self, start: int) -> List[int]:
        """
        Индексы тегов, завершающих тела блока: ветки elseif/else и закрывающий тег.
        """
        block = self.blocks[start]
        result = list(block.branches)
        if block.end is not None:
            result.append(block.end)
        return result


def _keyword_name(token: Token) -> str:
    return token.value.lower()


def match_blocks(tokens: List[Token]) -> BlockMap:
    """
    Сопоставляет открывающие и закрывающие теги подсчётом глубины.

    Args:
        tokens: Поток токенов лексера

    Returns:
        Карта блоков с перечнем нарушений баланса
    """
    result = BlockMap()
    stack: List[Block] = []

    for index, token in enumerate(tokens):
        if token.type != TokenType.TAG_START or index + 1 >= len(tokens):
            continue
        keyword = tokens[index + 1]

        if keyword.type in _CLOSERS:
            block = Block(kind=keyword.type, start=index, keyword=keyword)
            stack.append(block)
            result.blocks[index] = block
            if len(stack) == MAX_BLOCK_DEPTH + 1:
                result.issues.append(BlockIssue(
                    f"Template nested too deeply: more than {MAX_BLOCK_DEPTH} levels of blocks",
                    keyword.line, keyword.column,
                ))

        elif keyword.type in _BRANCHES:
            if stack and stack[-1].kind == TokenType.IF:
                stack[-1].branches.append(index)
            else:
                result.issues.append(BlockIssue(
                    f"Unexpected {{% {_keyword_name(keyword)} %}} - no matching opening tag",
                    keyword.line, keyword.column,
                ))

        elif keyword.type in (TokenType.ENDIF, TokenType.ENDFOR):
            if stack and _CLOSERS[stack[-1].kind] == keyword.type:
                stack.pop().end = index
            else:
                result.issues.append(BlockIssue(
                    f"Unexpected {{% {_keyword_name(keyword)} %}} - no matching opening tag",
                    keyword.line, keyword.column,
                ))

    # Всё, что осталось в стеке, не было закрыто
    for block in stack:
        opener = _keyword_name(block.keyword)
        closer = "endif" if block.kind == TokenType.IF else "endfor"
        result.issues.append(BlockIssue(
            f"Missing {{% {closer} %}} to close {{% {opener} %}}",
            block.keyword.line, block.keyword.column,
        ))

    return result


__all__ = ["MAX_BLOCK_DEPTH", "Block", "BlockIssue", "BlockMap", "match_blocks"]
