"""Module records, export containers and namespace views."""

from __future__ import annotations

import importlib.abc
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Callable


class Exports(dict):
    """Export container that also accepts ``exports.name = value``."""

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        self[name] = value

    def __delattr__(self, name: str) -> None:
        try:
            del self[name]
        except KeyError:
            raise AttributeError(name) from None


@dataclass
class ModuleRecord:
    """CommonJS style module record, created per call and never cached."""

    id: str
    filename: str
    path: str
    parent: ModuleType | None = None
    exports: Any = field(default_factory=Exports)
    paths: list[str] = field(default_factory=list)
    require: Callable[[str], Any] | None = None
    loaded: bool = False


@dataclass
class ImportMeta:
    url: str
    resolve: Callable[[str], str]


class SourceTextLoader(importlib.abc.InspectLoader):
    """Serve the source of a string module to ``linecache`` and ``traceback``."""

    def __init__(self, source: str, filename: str) -> None:
        self._source = source
        self._filename = filename

    def __repr__(self) -> str:
        return f"<SourceTextLoader {self._filename}>"

    def get_source(self, fullname: str) -> str:
        return self._source

    def get_filename(self, fullname: str) -> str:
        return self._filename

    def is_package(self, fullname: str) -> bool:
        return False


def exported_names(namespace: Mapping[str, Any]) -> list[str]:
    """Return the names ``from module import *`` would bind for *namespace*."""

    names = namespace.get("__all__")
    if names is not None:
        return [str(name) for name in names]
    return [name for name in namespace if not name.startswith("_")]


class ModuleNamespace(Mapping[str, Any]):
    """Read-only live view of the exported bindings of an evaluated module."""

    __slots__ = ("_bindings", "_names")

    def __init__(self, bindings: Mapping[str, Any], names: Iterable[str] | None = None) -> None:
        object.__setattr__(self, "_bindings", bindings)
        object.__setattr__(self, "_names", tuple(exported_names(bindings) if names is None else names))

    def __getitem__(self, name: str) -> Any:
        if name not in self._names:
            raise KeyError(name)
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise TypeError("module namespace is read-only")

    def __repr__(self) -> str:
        return f"<ModuleNamespace {self._bindings.get('__name__')} {list(self._names)}>"


def commonjs_namespace(namespace: dict[str, Any], module: ModuleRecord) -> ModuleNamespace:
    """Return a live view over the top-level names of a converted module.

    The record's own ``module``, ``exports`` and ``require`` bindings are left
    out unless the source rebound them.
    """

    injected = {"module": module, "exports": module.exports, "require": module.require}
    names = [
        name
        for name in exported_names(namespace)
        if name not in injected or namespace.get(name) is not injected[name]
    ]
    return ModuleNamespace(namespace, names)
