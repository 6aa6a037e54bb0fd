"""
Специальные переменные: селекторы, schema.org и промпты, и их постобработка.
"""

from __future__ import annotations

from .processor import PostProcessor, split_placeholder
from .prompt import PromptResolver, is_prompt_name, parse_prompt
from .schema import SCHEMA_PREFIX, lookup_schema
from .selector import SelectorQuery, SelectorResolver, is_selector_name, parse_selector

__all__ = [
    "PostProcessor",
    "split_placeholder",
    # Prompts
    "PromptResolver",
    "is_prompt_name",
    "parse_prompt",
    # Schema
    "SCHEMA_PREFIX",
    "lookup_schema",
    # Selectors
    "SelectorQuery",
    "SelectorResolver",
    "is_selector_name",
    "parse_selector",
]
