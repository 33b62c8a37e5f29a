"""Validated loader options."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from .transform import TransformOptions
from .utils import ensure_path, get_caller_dirname, get_caller_globals


class Options(BaseModel):
    """Options accepted by every entry point.

    ``dir_path`` is accepted as an alias of ``dirname``.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    dirname: str | None = Field(default=None, validation_alias=AliasChoices("dirname", "dir_path"))
    filename: str | None = None
    globals: dict[str, Any] = Field(default_factory=dict)
    use_current_global: bool = False
    transform_options: TransformOptions | None = None

    _caller_globals: dict[str, Any] | None = PrivateAttr(default=None)

    @field_validator("dirname", mode="before")
    @classmethod
    def _normalize_dirname(cls, value: Any) -> Any:
        if isinstance(value, (str, os.PathLike)):
            return ensure_path(value)
        return value

    @property
    def caller_globals(self) -> dict[str, Any] | None:
        return self._caller_globals


def coerce_options(options: Options | Mapping[str, Any] | None) -> Options:
    if options is None:
        return Options()
    if isinstance(options, Options):
        return options
    return Options.model_validate(dict(options))


def bind_caller(options: Options) -> Options:
    """Return *options* with the calling module's directory and globals filled in."""

    bound = options if options.dirname is not None else options.model_copy(update={"dirname": get_caller_dirname()})
    if bound.use_current_global and bound._caller_globals is None:
        bound = bound.model_copy()
        bound._caller_globals = get_caller_globals()
    return bound
