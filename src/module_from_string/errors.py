"""Exception types and translation of loader errors."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

ERR_REQUIRE_ESM = "ERR_REQUIRE_ESM"

ASYNC_ENTRY_POINT = "import_from_string"
SYNC_ENTRY_POINT = "import_from_string_sync"


class UsageError(RuntimeError):
    pass


class RequireESMError(ImportError):
    """Raised by ``require`` when a file needs package-relative linking."""

    code = ERR_REQUIRE_ESM


class UnsupportedSyntaxError(ImportError):
    pass


def get_es_module_error(function_name: str) -> UsageError:
    return UsageError(
        f"Function '{function_name}' cannot be used while an ES module is being evaluated\n"
        f"Use '{ASYNC_ENTRY_POINT}' or '{SYNC_ENTRY_POINT}' instead."
    )


def is_require_esm_error(error: BaseException) -> bool:
    return getattr(error, "code", None) == ERR_REQUIRE_ESM


def translate_require_error(error: BaseException, entry_point: str) -> BaseException:
    """Return the error to raise for *error* caught by *entry_point*.

    Only the ``ERR_REQUIRE_ESM`` signal is rewritten; every other error is
    returned unchanged.
    """

    if not is_require_esm_error(error):
        return error
    if entry_point == SYNC_ENTRY_POINT:
        advice = (
            f"Use asynchronous function '{ASYNC_ENTRY_POINT}' instead "
            "or replace it with a dynamic 'importlib.import_module()' call."
        )
    else:
        advice = (
            "Enable linked modules (set MODULE_FROM_STRING_LINKED_MODULES=1) "
            "or replace it with a dynamic 'importlib.import_module()' call."
        )
    logger.debug("translating %s raised under %s", ERR_REQUIRE_ESM, entry_point)
    return UnsupportedSyntaxError(f"Package-relative 'import' statements are not supported\n{advice}")
