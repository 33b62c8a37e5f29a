"""Linked module execution with synthesized re-export submodules.

Top-level ``import`` statements of the source are linked before evaluation:
each target is loaded through the host loader and replaced by a small
generated module that forwards the target's exported names. Imports that are
not linked statically (nested in functions, ``try`` blocks and so on) go
through the dynamic import handler at evaluation time.
"""

from __future__ import annotations

import ast
import inspect
import keyword
import logging
import sys
from collections.abc import Awaitable, Callable, Iterable, Mapping
from pathlib import Path
from types import CodeType, ModuleType
from typing import Any

from .config import load_settings
from .context import create_context_object, create_global_object
from .options import Options
from .record import ImportMeta, ModuleNamespace, SourceTextLoader, exported_names
from .require import es_module_scope
from .resolution import import_module_dynamically, import_module_sync, is_path_specifier, resolve_module_specifier
from .strategy import ImportStrategy
from .transform import TransformOptions, parse_source, relative_specifier, transform
from .utils import ensure_file_url, generate_filename, get_caller_dirname, get_module_filename

logger = logging.getLogger(__name__)

IMPORTS = "__imports_from_string__"

Linker = Callable[[str], Awaitable[ModuleType]]


def is_linked_module_available() -> bool:
    """Return True when linked execution is enabled and supported."""

    return load_settings().linked_modules and hasattr(ast, "PyCF_ALLOW_TOP_LEVEL_AWAIT")


def collect_import_specifiers(tree: ast.Module) -> list[str]:
    """Return the specifiers of the top-level imports of *tree*, in order."""

    specifiers: list[str] = []
    for node in tree.body:
        if isinstance(node, ast.Import):
            specifiers.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            if node.module == "__future__":
                continue
            if not node.level:
                specifiers.append(node.module or "")
            elif node.module:
                specifiers.append(relative_specifier(node.level, node.module))
            else:
                for alias in node.names:
                    name = None if alias.name == "*" else alias.name
                    specifiers.append(relative_specifier(node.level, None, name))
    return list(dict.fromkeys(specifiers))


def render_reexport_source(export_names: Iterable[str], specifier: str) -> str:
    """Return the source of a module forwarding *export_names* of *specifier*.

    Values are read from the hidden ``__imports_from_string__`` slot when the
    generated module executes. Any other attribute is looked up on the target
    on access, so submodules and private names stay reachable.
    """

    names = [name for name in export_names if name.isidentifier() and not keyword.iskeyword(name)]
    target = f"{IMPORTS}[{specifier!r}]"
    lines = []
    if "default" in names:
        lines.append(f"default = {target}.default")
    lines.extend(f"{name} = {target}.{name}" for name in names if name != "default")
    lines.append(f"__all__ = {names!r}")
    lines.append("")
    lines.append("")
    lines.append("def __getattr__(name):")
    lines.append(f"    return getattr({target}, name)")
    return "\n".join(lines) + "\n"


def submodule_specifier(specifier: str, name: str) -> str:
    """Return the specifier of submodule *name* of the package *specifier*."""

    if is_path_specifier(specifier):
        return f"{specifier}/{name}"
    return f"{specifier}.{name}"


class SourceTextModule:
    """A module built from source text, linked and evaluated in two steps."""

    def __init__(
        self,
        source: str,
        *,
        identifier: str,
        filename: str,
        context: dict[str, Any],
        initialize_import_meta: Callable[[ImportMeta], None] | None = None,
        import_module_dynamically: Callable[[str], ModuleType] | None = None,
    ) -> None:
        self.identifier = identifier
        self.filename = filename
        self.status = "unlinked"
        self._tree = parse_source(source, filename)
        self._links: dict[str, ModuleType] = {}
        self._targets: dict[str, ModuleType] = context["__builtins__"].setdefault(IMPORTS, {})
        self._import_dynamically = import_module_dynamically

        self.module = ModuleType(Path(filename).stem)
        vars(self.module).update(context)
        self.module.__loader__ = SourceTextLoader(source, filename)
        meta = ImportMeta(url=identifier, resolve=lambda specifier: specifier)
        if initialize_import_meta is not None:
            initialize_import_meta(meta)
        self.module.__meta__ = meta
        context["__builtins__"]["__import__"] = self._import

    @property
    def specifiers(self) -> list[str]:
        return collect_import_specifiers(self._tree)

    @property
    def namespace(self) -> ModuleNamespace:
        if self.status != "evaluated":
            raise RuntimeError(f"Module {self.identifier} has not been evaluated")
        return ModuleNamespace(vars(self.module))

    async def link(self, linker: Linker) -> None:
        for specifier in self.specifiers:
            self._links[specifier] = await linker(specifier)
        self.status = "linked"

    async def evaluate(self) -> None:
        if self.status != "linked":
            raise RuntimeError(f"Module {self.identifier} must be linked before evaluation")
        code: CodeType = compile(
            self._tree,
            self.filename,
            "exec",
            flags=ast.PyCF_ALLOW_TOP_LEVEL_AWAIT,
            dont_inherit=True,
        )
        self.status = "evaluating"
        with es_module_scope():
            result = eval(code, vars(self.module))
            if inspect.iscoroutine(result):
                await result
        self.status = "evaluated"

    def _load(self, specifier: str) -> ModuleType:
        """Return the re-export module of *specifier*, or the module itself when it was not linked."""

        linked = self._links.get(specifier)
        if linked is not None:
            return linked
        return self._load_target(specifier)

    def _load_target(self, specifier: str) -> ModuleType:
        target = self._targets.get(specifier)
        if target is not None:
            return target
        if self._import_dynamically is None:
            raise ImportError(f"Module '{specifier}' was not linked", name=specifier)
        return self._import_dynamically(specifier)

    def _load_submodules(self, specifier: str, fromlist: tuple[str, ...]) -> None:
        target = self._load_target(specifier)
        for item in fromlist:
            if item == "*" or hasattr(target, item):
                continue
            submodule = submodule_specifier(specifier, item)
            try:
                self._load_target(submodule)
            except ModuleNotFoundError as exc:
                # A missing name surfaces as ImportError from the import statement.
                if not (exc.name or "").replace("\\", "/").endswith((f".{item}", f"/{item}")):
                    raise

    def _import(
        self,
        name: str,
        globals: Mapping[str, Any] | None = None,  # noqa: A002
        locals: Mapping[str, Any] | None = None,  # noqa: A002
        fromlist: Iterable[str] | None = (),
        level: int = 0,
    ) -> ModuleType:
        fromlist = tuple(fromlist or ())
        if level and not name:
            if "*" in fromlist:
                return self._load(relative_specifier(level, None))
            holder = ModuleType(relative_specifier(level, None))
            for item in fromlist:
                setattr(holder, item, self._load_target(relative_specifier(level, None, item)))
            return holder
        specifier = relative_specifier(level, name) if level else name
        if fromlist:
            module = self._load(specifier)
            self._load_submodules(specifier, fromlist)
            return module
        target = self._load_target(specifier)
        if "." not in name:
            return target
        return sys.modules[name.partition(".")[0]]


def create_reexport_module(
    specifier: str,
    identifier: str,
    target: ModuleType,
    global_object: dict[str, Any],
) -> ModuleType:
    """Record *target* in the hidden slot and return a module forwarding its exports."""

    global_object[IMPORTS][specifier] = target
    source = render_reexport_source(exported_names(vars(target)), specifier)
    module = ModuleType(identifier)
    vars(module).update(__builtins__=global_object, __loader__=SourceTextLoader(source, identifier))
    exec(compile(source, identifier, "exec", dont_inherit=True), vars(module))
    return module


class LinkedModuleStrategy(ImportStrategy):
    """Execute source as a genuinely linked module."""

    name = "linked"

    async def load(self, code: str, options: Options) -> ModuleNamespace:
        if options.transform_options is not None:
            transform_options: TransformOptions = options.transform_options
            if "format" not in transform_options.model_fields_set:
                transform_options = transform_options.model_copy(update={"format": "esm"})
            code = (await transform(code, transform_options)).code

        dirname = options.dirname or get_caller_dirname()
        module_filename = get_module_filename(dirname, options.filename or generate_filename())
        module_url = ensure_file_url(module_filename)

        global_object = create_global_object(options.globals, options.use_current_global, options.caller_globals)
        global_object[IMPORTS] = {}
        context = create_context_object(
            {"__name__": Path(module_filename).stem, "__file__": module_filename, "__dirname__": dirname},
            global_object,
        )

        def resolve(specifier: str) -> str:
            resolved = resolve_module_specifier(specifier, dirname)
            return ensure_file_url(resolved) if is_path_specifier(resolved) else resolved

        def initialize_import_meta(meta: ImportMeta) -> None:
            meta.url = module_url
            meta.resolve = resolve

        module = SourceTextModule(
            code,
            identifier=module_url,
            filename=module_filename,
            context=context,
            initialize_import_meta=initialize_import_meta,
            import_module_dynamically=lambda specifier: import_module_sync(specifier, dirname, linked=True),
        )

        async def linker(specifier: str) -> ModuleType:
            resolved = resolve_module_specifier(specifier, dirname)
            target = await import_module_dynamically(specifier, dirname)
            logger.debug("linked %r of %s to %s", specifier, module_url, resolved)
            return create_reexport_module(specifier, resolved, target, global_object)

        await module.link(linker)
        await module.evaluate()
        return module.namespace
