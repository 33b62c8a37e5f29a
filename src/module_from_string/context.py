"""Construction of the namespaces source text executes against."""

from __future__ import annotations

import builtins
from collections.abc import Mapping
from typing import Any


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


def create_global_object(
    globals_: Mapping[str, Any] | None,
    use_current_global: bool,
    caller_globals: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Return the builtins layer seen by executed code.

    A fresh layer holds the language builtins only. With
    *use_current_global* it also shares the caller's module-level names.
    Caller supplied *globals_* are applied last and shadow both.
    """

    global_object = dict(vars(builtins))
    if use_current_global and caller_globals:
        global_object.update(
            (name, value) for name, value in caller_globals.items() if not _is_dunder(name)
        )
    if globals_:
        global_object.update(globals_)
    return global_object


def create_context_object(bindings: Mapping[str, Any], global_object: dict[str, Any]) -> dict[str, Any]:
    """Return a module namespace holding exactly *bindings* over *global_object*."""

    context = dict(bindings)
    context["__builtins__"] = global_object
    return context
