"""
Конфигурация движка шаблонов.

Читается из cliptpl.yaml; переменные окружения CLIPTPL_CACHE и
CLIPTPL_PROMPTS перекрывают значения из файла.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .errors import ConfigError

DEFAULT_CFG_FILE = "cliptpl.yaml"

_yaml = YAML(typ="safe")

_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class EngineConfig:
    """
    Настройки движка.

    Attributes:
        prompts_enabled: Разрешать ли плейсхолдеры промптов (иначе они дают '')
        trim_output: Обрезать ли пробелы по краям итогового вывода
        parse_cache_size: Ёмкость LRU-кэша разобранных шаблонов (0 - без кэша)
        resolver_cache_ttl: Время жизни результатов резолвера селекторов, секунды
        strip_text_fragment: Удалять ли #:~:text= из URL страницы
    """
    prompts_enabled: bool = True
    trim_output: bool = False
    parse_cache_size: int = 128
    resolver_cache_ttl: float = 30.0
    strip_text_fragment: bool = True

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> EngineConfig:
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(raw) - set(known))
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

        values: Dict[str, Any] = {}
        for name, value in raw.items():
            default = getattr(cls, name)
            try:
                if isinstance(default, bool):
                    values[name] = _to_bool(value)
                elif isinstance(default, int):
                    values[name] = int(value)
                elif isinstance(default, float):
                    values[name] = float(value)
                else:
                    values[name] = value
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for '{name}': {value!r}") from e

        if values.get("parse_cache_size", 0) < 0:
            raise ConfigError("parse_cache_size must be >= 0")
        return cls(**values)

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
        """Накладывает переопределения из окружения."""
        env = os.environ if environ is None else environ
        config = self
        cache = env.get("CLIPTPL_CACHE")
        if cache is not None and cache.strip().lower() in _FALSE_VALUES:
            config = replace(config, parse_cache_size=0, resolver_cache_ttl=0.0)
        prompts = env.get("CLIPTPL_PROMPTS")
        if prompts is not None:
            config = replace(config, prompts_enabled=prompts.strip().lower() not in _FALSE_VALUES)
        return config


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_VALUES
    if isinstance(value, (int, float)):
        return bool(value)
    raise ValueError(f"not a boolean: {value!r}")


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
    """
    Загружает конфигурацию движка.

    • Если файла нет - используются значения по умолчанию.
    • Файл должен содержать YAML-отображение.
    • Окружение применяется поверх файла.

    Args:
        path: Путь к YAML-файлу (по умолчанию ./cliptpl.yaml)
        environ: Окружение (по умолчанию os.environ)

    Returns:
        EngineConfig

    Raises:
        ConfigError: Файл не читается, не YAML-отображение или содержит неизвестные ключи
    """
    path = path if path is not None else Path(DEFAULT_CFG_FILE)
    if not path.is_file():
        return EngineConfig().with_env(environ)

    try:
        raw = _yaml.load(path.read_text(encoding="utf-8")) or {}
    except (OSError, YAMLError) as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"YAML must be a mapping: {path}")
    return EngineConfig.from_dict(raw).with_env(environ)


__all__ = ["DEFAULT_CFG_FILE", "EngineConfig", "load_config"]
