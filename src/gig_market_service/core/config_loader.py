"""
YAML settings loading helpers.

Settings models are validated by pydantic with no defaults; this module
only resolves the file path, parses YAML, and caches the result.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import yaml

if TYPE_CHECKING:
    from collections.abc import Callable

    from pydantic import BaseModel

SettingsT = TypeVar("SettingsT", bound="BaseModel")

REDACTION_MARKER = "***REDACTED***"

_SENSITIVE_KEY_PARTS: tuple[str, ...] = ("password", "secret", "token", "private_key", "api_key")


def get_config_path(env_var_name: str, default_filename: str) -> Path:
    """
    Resolve the configuration file path.

    The environment variable wins when set; otherwise the default filename
    is looked up in the current working directory.
    """
    override = os.environ.get(env_var_name)
    if override:
        return Path(override)
    return Path.cwd() / default_filename


def load_yaml_mapping(config_path: Path) -> dict[str, Any]:
    """Read a YAML file that must contain a mapping at the top level."""
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(config_path.read_text())
    if not isinstance(raw, dict):
        msg = f"Invalid config file: {config_path}"
        raise ValueError(msg)
    return raw


def create_settings_loader(
    settings_model: type[SettingsT],
    path_resolver: Callable[[], Path],
) -> tuple[Callable[[], SettingsT], Callable[[], None]]:
    """
    Build a cached ``get_settings`` function and its cache-clearing companion.

    Returns:
        (get_settings, clear_settings_cache)
    """

    @lru_cache(maxsize=1)
    def get_settings() -> SettingsT:
        raw = load_yaml_mapping(path_resolver())
        return settings_model(**raw)

    def clear_settings_cache() -> None:
        get_settings.cache_clear()

    return get_settings, clear_settings_cache


def _redact(value: Any, marker: str) -> Any:
    if isinstance(value, dict):
        redacted: dict[str, Any] = {}
        for key, item in value.items():
            lowered = str(key).lower()
            if any(part in lowered for part in _SENSITIVE_KEY_PARTS):
                redacted[key] = marker
            else:
                redacted[key] = _redact(item, marker)
        return redacted
    if isinstance(value, list):
        return [_redact(item, marker) for item in value]
    return value


def get_safe_model_config(settings: BaseModel, marker: str) -> dict[str, Any]:
    """Dump settings to a dict with sensitive-looking keys replaced by ``marker``."""
    return _redact(settings.model_dump(), marker)
