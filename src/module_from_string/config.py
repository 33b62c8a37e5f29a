"""Configuration helpers for environment settings and YAML option files."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

try:
    import yaml
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    yaml = None  # type: ignore[assignment]

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULTS: dict[str, Any] = {
    "globals": {},
    "use_current_global": False,
}


def _merge_dict(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def load_options(path: str | Path | None, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return loader options read from a YAML file and merged over the defaults.

    The result is suitable for the ``create_*`` factories, e.g.
    ``create_import_from_string(**load_options("plugins.yaml"))``.
    """

    options = copy.deepcopy(DEFAULTS)
    if path:
        if yaml is None:
            raise RuntimeError("PyYAML is required to load option files")
        with Path(path).open("r", encoding="utf-8") as fh:
            file_options = yaml.safe_load(fh) or {}
        if not isinstance(file_options, dict):
            raise ValueError(f"Option file {path} must contain a mapping")
        options = _merge_dict(options, file_options)
    if overrides:
        options = _merge_dict(options, overrides)
    return options


class ModuleFromStringSettings(BaseSettings):
    """Environment driven settings, read on every call."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    linked_modules: bool = Field(default=False, alias="MODULE_FROM_STRING_LINKED_MODULES")
    filename_suffix: str = Field(default=".py", alias="MODULE_FROM_STRING_FILENAME_SUFFIX")


def load_settings() -> ModuleFromStringSettings:
    """Return settings initialised from environment."""

    return ModuleFromStringSettings()
