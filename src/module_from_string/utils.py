"""Utility helpers."""

from __future__ import annotations

import inspect
import os
import sys
import uuid
from pathlib import Path
from types import FrameType
from typing import Any
from urllib.parse import unquote, urlparse

from .config import load_settings

_PACKAGE = __name__.partition(".")[0]
_SKIPPED_MODULES = (_PACKAGE, "asyncio", "concurrent", "threading", "contextvars")


def generate_filename() -> str:
    """Return a file name unique enough to never collide in ``sys.modules``."""

    return f"{uuid.uuid4().hex}{load_settings().filename_suffix}"


def get_caller_frame() -> FrameType | None:
    """Return the first stack frame that does not belong to this package."""

    frame = inspect.currentframe()
    while frame is not None:
        module_name = frame.f_globals.get("__name__") or ""
        if module_name.partition(".")[0] not in _SKIPPED_MODULES:
            return frame
        frame = frame.f_back
    return None


def get_caller_dirname() -> str:
    """Return the directory of the calling source file.

    Falls back to the directory of ``__main__``, then of ``sys.argv[0]``,
    then to the working directory.
    """

    frame = get_caller_frame()
    if frame is not None:
        filename = frame.f_code.co_filename
        if filename and not (filename.startswith("<") and filename.endswith(">")):
            return os.path.dirname(os.path.abspath(filename))
    main_file = getattr(sys.modules.get("__main__"), "__file__", None)
    if main_file:
        return os.path.dirname(os.path.abspath(main_file))
    if sys.argv and sys.argv[0]:
        return os.path.dirname(os.path.abspath(sys.argv[0]))
    return os.getcwd()


def get_caller_globals() -> dict[str, Any]:
    frame = get_caller_frame()
    return frame.f_globals if frame is not None else {}


def ensure_path(path: str | os.PathLike[str]) -> str:
    """Return *path* as a plain absolute file system path, accepting file URLs."""

    text = os.fspath(path)
    if text.startswith("file://"):
        text = unquote(urlparse(text).path)
    return os.path.abspath(text)


def ensure_file_url(path: str | os.PathLike[str]) -> str:
    text = os.fspath(path)
    if text.startswith("file://"):
        return text
    return Path(os.path.abspath(text)).as_uri()


def get_module_filename(dirname: str | os.PathLike[str], filename: str) -> str:
    """Join *filename* under *dirname* unless it is already absolute."""

    filename = ensure_path(filename) if filename.startswith("file://") else filename
    if os.path.isabs(filename):
        return os.path.normpath(filename)
    return os.path.normpath(os.path.join(ensure_path(dirname), filename))
