"""
Фильтры шаблонизатора.
"""

from __future__ import annotations

from .params import parse_args, single_arg, split_params
from .registry import FilterFunc, FilterRegistry, FilterSpec, create_default_registry

__all__ = [
    "FilterFunc",
    "FilterRegistry",
    "FilterSpec",
    "create_default_registry",
    # Params
    "parse_args",
    "single_arg",
    "split_params",
]
