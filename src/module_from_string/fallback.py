"""Transpile to CommonJS and execute through the synchronous synthesizer."""

from __future__ import annotations

import logging
from typing import Any

from .errors import ASYNC_ENTRY_POINT, SYNC_ENTRY_POINT, translate_require_error
from .options import Options
from .require import run_commonjs
from .strategy import ImportStrategy
from .transform import RECORD_MODULE, TransformOptions, coerce_transform_options, transform, transform_sync

logger = logging.getLogger(__name__)

IMPORT_META_URL_SHIM = '__import_meta_url__ = require("pathlib").Path(__file__).as_uri()'

IMPORT_META_RESOLVE_SHIM = '''def __import_meta_resolve__(specifier):
    raise NotImplementedError(
        """'__meta__.resolve' is not supported
Use asynchronous function 'import_from_string' and enable linked modules (MODULE_FROM_STRING_LINKED_MODULES=1).
Or use 'transform_options' to include a polyfill."""
    )'''

IMPORT_META_SHIM = f"__import_meta__ = require({RECORD_MODULE!r}).ImportMeta(__import_meta_url__, __import_meta_resolve__)"


def get_commonjs_options(transform_options: TransformOptions | None) -> TransformOptions:
    """Return *transform_options* with the CommonJS format and shims applied."""

    options = coerce_transform_options(transform_options)
    banner = f"{IMPORT_META_URL_SHIM}\n{IMPORT_META_RESOLVE_SHIM}\n{IMPORT_META_SHIM}\n{options.banner}"
    define = {
        "__meta__.url": "__import_meta_url__",
        "__meta__.resolve": "__import_meta_resolve__",
        "__meta__": "__import_meta__",
        **options.define,
    }
    return options.model_copy(update={"banner": banner, "define": define, "format": "cjs"})


def execute_transpiled(code: str, options: Options, entry_point: str) -> Any:
    logger.debug("executing transpiled source for %s", entry_point)
    try:
        return run_commonjs(code, options)
    except ImportError as error:
        translated = translate_require_error(error, entry_point)
        if translated is error:
            raise
        raise translated from None


def import_transpiled_sync(code: str, options: Options) -> Any:
    transformed = transform_sync(code, get_commonjs_options(options.transform_options))
    return execute_transpiled(transformed.code, options, SYNC_ENTRY_POINT)


class TranspileStrategy(ImportStrategy):
    """Run source through the transpiler and the CommonJS synthesizer."""

    name = "transpile"

    async def load(self, code: str, options: Options) -> Any:
        transformed = await transform(code, get_commonjs_options(options.transform_options))
        return execute_transpiled(transformed.code, options, ASYNC_ENTRY_POINT)
