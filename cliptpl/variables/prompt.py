"""
Плейсхолдеры промптов: {{"summarize the page"}} и {{prompt:"..."}}.

Рендерер их не вычисляет, а выводит как есть; ответ модели подставляет
внешний резолвер промптов на этапе постобработки.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

PROMPT_PREFIX = "prompt:"

_PROMPT = re.compile(r'^(?:prompt:)?(?:"((?:\\.|[^"\\])*)"|([^|}]+?))\s*$', re.DOTALL)

# Резолвер промптов: (текст промпта, переменные) -> ответ или None
PromptResolver = Callable[[str, Dict[str, Any]], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class PromptPlaceholder:
    prompt: str


def is_prompt_name(name: str) -> bool:
    return name.startswith(PROMPT_PREFIX) or name.startswith('"')


def parse_prompt(head: str) -> Optional[PromptPlaceholder]:
    """
    Извлекает текст промпта из головы плейсхолдера (без фильтров).

    Returns:
        PromptPlaceholder или None, если формат не распознан
    """
    match = _PROMPT.match(head.strip())
    if match is None:
        return None
    if match.group(1) is not None:
        return PromptPlaceholder(re.sub(r"\\(.)", r"\1", match.group(1)))
    return PromptPlaceholder(match.group(2).strip())


__all__ = ["PROMPT_PREFIX", "PromptPlaceholder", "PromptResolver", "is_prompt_name", "parse_prompt"]
