"""Synchronous CommonJS style execution of source text."""

from __future__ import annotations

import contextlib
import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Callable, Iterator

from .context import create_context_object, create_global_object
from .errors import get_es_module_error
from .options import Options, bind_caller, coerce_options
from .record import ModuleRecord, SourceTextLoader
from .resolution import create_require
from .utils import generate_filename, get_caller_dirname, get_module_filename

logger = logging.getLogger(__name__)

_linked_evaluation: ContextVar[bool] = ContextVar("linked_evaluation", default=False)


def is_in_es_module_scope() -> bool:
    """Return True while a linked module is being evaluated."""

    return _linked_evaluation.get()


@contextlib.contextmanager
def es_module_scope() -> Iterator[None]:
    token = _linked_evaluation.set(True)
    try:
        yield
    finally:
        _linked_evaluation.reset(token)


def run_commonjs(code: str, options: Options) -> Any:
    """Execute *code* against a fresh module record and return its exports."""

    main_module = sys.modules.get("__main__")
    dirname = options.dirname or get_caller_dirname()
    filename = get_module_filename(dirname, options.filename or generate_filename())

    record = ModuleRecord(
        id=filename,
        filename=filename,
        path=dirname,
        parent=main_module,
        paths=list(sys.path),
    )
    record.require = create_require(filename, dirname)

    global_object = create_global_object(options.globals, options.use_current_global, options.caller_globals)
    context = create_context_object(
        {
            "__name__": Path(filename).stem,
            "__file__": record.filename,
            "__dirname__": record.path,
            "__loader__": SourceTextLoader(code, filename),
            "exports": record.exports,
            "module": record,
            "require": record.require,
        },
        global_object,
    )

    logger.debug("executing %s", filename)
    exec(compile(code, filename, "exec", dont_inherit=True), context)
    record.loaded = True
    return record.exports


def require_from_string(code: str, **options: Any) -> Any:
    """Execute *code* as a CommonJS style module and return ``module.exports``."""

    if is_in_es_module_scope():
        raise get_es_module_error("require_from_string")
    return run_commonjs(code, bind_caller(coerce_options(options)))


def create_require_from_string(**options: Any) -> Callable[..., Any]:
    """Return ``require_from_string`` with *options* bound as defaults."""

    def require(code: str, **additional_options: Any) -> Any:
        return require_from_string(code, **{**options, **additional_options})

    return require
