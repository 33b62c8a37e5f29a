"""Specifier resolution and the two host loaders.

``require`` loads files as standalone modules: a file that relies on
package-relative imports is refused with :class:`RequireESMError`. Linked
modules load files as submodules of a synthetic package rooted at their
directory, so sibling imports inside them resolve.
"""

from __future__ import annotations

import hashlib
import importlib
import importlib.util
import logging
import os
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

from .errors import RequireESMError

logger = logging.getLogger(__name__)

_MODULE_PREFIX = "_module_from_string_"
_NO_PARENT_PACKAGE = "no known parent package"


def is_path_specifier(specifier: str) -> bool:
    return (
        specifier in (".", "..")
        or specifier.startswith(("./", "../", ".\\", "..\\"))
        or os.path.isabs(specifier)
    )


def resolve_module_specifier(specifier: str, dirname: str | os.PathLike[str]) -> str:
    """Resolve relative specifiers against *dirname*; pass everything else through."""

    if specifier in (".", "..") or specifier.startswith(("./", "../", ".\\", "..\\")):
        return os.path.normpath(os.path.join(os.fspath(dirname), specifier))
    return specifier


def find_module_file(path: str) -> Path:
    """Return the file a resolved path specifier refers to."""

    candidate = Path(path)
    for option in (candidate, candidate.with_name(candidate.name + ".py"), candidate / "__init__.py"):
        if option.is_file():
            return option.resolve()
    raise ModuleNotFoundError(f"Cannot find module '{path}'", name=path, path=path)


def _cache_name(path: Path) -> str:
    if path.name == "__init__.py":
        path = path.parent
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    stem = path.stem if path.suffix == ".py" else path.name
    safe_stem = "".join(char if char.isalnum() else "_" for char in stem)
    return f"{_MODULE_PREFIX}{digest}_{safe_stem}"


def _exec_new_module(name: str, path: Path, is_package: bool) -> ModuleType:
    spec = importlib.util.spec_from_file_location(
        name,
        path,
        submodule_search_locations=[str(path.parent)] if is_package else None,
    )
    if spec is None or spec.loader is None:  # pragma: no cover
        raise ImportError(f"Cannot load {path}", name=name, path=str(path))
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(name, None)
        raise
    return module


def load_file_module(path: Path) -> ModuleType:
    """Load *path* the way ``require`` does, caching it in ``sys.modules``."""

    name = _cache_name(path)
    cached = sys.modules.get(name)
    if cached is not None:
        return cached
    logger.debug("require loading %s as %s", path, name)
    try:
        return _exec_new_module(name, path, path.name == "__init__.py")
    except ImportError as exc:
        if exc.name is None and _NO_PARENT_PACKAGE in str(exc):
            raise RequireESMError(
                f"require() of module {path} which uses package-relative imports is not supported",
                name=name,
                path=str(path),
            ) from exc
        raise


def _directory_package(directory: Path) -> str:
    """Return the name of the package rooted at *directory*, loading it if needed.

    A directory with an ``__init__.py`` is loaded as that package, otherwise
    an empty namespace module stands in for it.
    """

    name = _cache_name(directory)
    if name in sys.modules:
        return name
    init = directory / "__init__.py"
    if init.is_file():
        load_file_module(init)
    else:
        package = ModuleType(name)
        package.__path__ = [str(directory)]
        package.__package__ = name
        sys.modules[name] = package
    return name


def load_linked_file_module(path: Path) -> ModuleType:
    """Load *path* as a submodule of its directory so relative imports work."""

    if path.name == "__init__.py":
        return sys.modules[_directory_package(path.parent)]
    package = _directory_package(path.parent)
    logger.debug("linked loading %s under %s", path, package)
    return importlib.import_module(f"{package}.{path.stem}")


def import_module_sync(specifier: str, dirname: str | os.PathLike[str], *, linked: bool) -> ModuleType:
    resolved = resolve_module_specifier(specifier, dirname)
    if is_path_specifier(resolved):
        path = find_module_file(resolved)
        return load_linked_file_module(path) if linked else load_file_module(path)
    return importlib.import_module(resolved)


async def import_module_dynamically(specifier: str, dirname: str | os.PathLike[str]) -> ModuleType:
    """Host dynamic import: resolve against *dirname* and load with package context."""

    return import_module_sync(specifier, dirname, linked=True)


class Require:
    """``require`` function bound to the directory of one module record."""

    def __init__(self, filename: str, dirname: str | None = None) -> None:
        self.filename = filename
        self.dirname = dirname or os.path.dirname(filename)

    def __repr__(self) -> str:
        return f"<require {self.filename}>"

    def __call__(self, specifier: str) -> Any:
        return import_module_sync(specifier, self.dirname, linked=False)

    def resolve(self, specifier: str) -> str:
        resolved = resolve_module_specifier(specifier, self.dirname)
        if is_path_specifier(resolved):
            return str(find_module_file(resolved))
        if importlib.util.find_spec(resolved) is None:
            raise ModuleNotFoundError(f"Cannot find module '{specifier}'", name=specifier)
        return resolved


def create_require(filename: str, dirname: str | None = None) -> Require:
    return Require(filename, dirname)
