"""module_from_string public package exports."""

from .config import ModuleFromStringSettings, load_options, load_settings
from .errors import RequireESMError, UnsupportedSyntaxError, UsageError
from .importer import (
    create_import_from_string,
    create_import_from_string_sync,
    import_from_string,
    import_from_string_sync,
)
from .linked import is_linked_module_available
from .options import Options
from .record import Exports, ModuleNamespace, ModuleRecord
from .require import create_require_from_string, require_from_string
from .transform import TransformOptions, TransformResult, transform, transform_sync

__all__ = [
    "Exports",
    "ModuleFromStringSettings",
    "ModuleNamespace",
    "ModuleRecord",
    "Options",
    "RequireESMError",
    "TransformOptions",
    "TransformResult",
    "UnsupportedSyntaxError",
    "UsageError",
    "create_import_from_string",
    "create_import_from_string_sync",
    "create_require_from_string",
    "import_from_string",
    "import_from_string_sync",
    "is_linked_module_available",
    "load_options",
    "load_settings",
    "require_from_string",
    "transform",
    "transform_sync",
]
