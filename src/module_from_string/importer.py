"""Public ES module style entry points."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from .fallback import TranspileStrategy, import_transpiled_sync
from .linked import LinkedModuleStrategy, is_linked_module_available
from .options import bind_caller, coerce_options
from .strategy import ImportStrategy

logger = logging.getLogger(__name__)


def select_strategy() -> ImportStrategy:
    """Pick the linked strategy when the capability is present, else transpile."""

    strategy: ImportStrategy = LinkedModuleStrategy() if is_linked_module_available() else TranspileStrategy()
    logger.debug("selected %s strategy", strategy.name)
    return strategy


async def import_from_string(code: str, **options: Any) -> Mapping[str, Any]:
    """Execute *code* as a module and return its namespace."""

    bound = bind_caller(coerce_options(options))
    return await select_strategy().load(code, bound)


def import_from_string_sync(code: str, **options: Any) -> Mapping[str, Any]:
    """Synchronous form of :func:`import_from_string`, always transpiled."""

    return import_transpiled_sync(code, bind_caller(coerce_options(options)))


def create_import_from_string(**options: Any) -> Callable[..., Awaitable[Mapping[str, Any]]]:
    async def import_(code: str, **additional_options: Any) -> Mapping[str, Any]:
        return await import_from_string(code, **{**options, **additional_options})

    return import_


def create_import_from_string_sync(**options: Any) -> Callable[..., Mapping[str, Any]]:
    def import_sync(code: str, **additional_options: Any) -> Mapping[str, Any]:
        return import_from_string_sync(code, **{**options, **additional_options})

    return import_sync
