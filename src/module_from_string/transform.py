"""Source-to-source conversion between linked module and CommonJS formats."""

from __future__ import annotations

import ast
import asyncio
import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

RECORD_MODULE = f"{__name__.rpartition('.')[0]}.record"

STAR_EXPORTS_HELPER = '''def __star_exports__(target):
    names = getattr(target, "__all__", None)
    if names is None:
        names = [name for name in dir(target) if not name.startswith("_")]
    return {name: getattr(target, name) for name in names}'''

COMMONJS_PRELUDE = "__cjs_module__, __cjs_exports__, __cjs_require__ = module, exports, require"

COMMONJS_FOOTER = f"""if __cjs_module__.exports is __cjs_exports__:
    __cjs_module__.exports = __cjs_require__({RECORD_MODULE!r}).commonjs_namespace(globals(), __cjs_module__)"""


class TransformOptions(BaseModel):
    """Options understood by :func:`transform` and :func:`transform_sync`."""

    model_config = ConfigDict(extra="forbid")

    format: Literal["cjs", "esm"] | None = None
    banner: str = ""
    footer: str = ""
    define: dict[str, str] = Field(default_factory=dict)
    sourcefile: str = "<stdin>"

    @field_validator("define")
    @classmethod
    def _check_define_keys(cls, value: dict[str, str]) -> dict[str, str]:
        for key in value:
            if not key or not all(part.isidentifier() for part in key.split(".")):
                raise ValueError(f"define key {key!r} is not a dotted name")
        return value


@dataclass(slots=True)
class TransformResult:
    code: str


def coerce_transform_options(options: TransformOptions | Mapping[str, Any] | None) -> TransformOptions:
    if options is None:
        return TransformOptions()
    if isinstance(options, TransformOptions):
        return options
    return TransformOptions.model_validate(dict(options))


def _dotted_name(node: ast.expr) -> str | None:
    parts: list[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if not isinstance(node, ast.Name):
        return None
    parts.append(node.id)
    return ".".join(reversed(parts))


class _DefineTransformer(ast.NodeTransformer):
    """Replace reads of defined dotted names with their expressions."""

    def __init__(self, define: Mapping[str, str]) -> None:
        self._replacements = {
            key: ast.parse(expression, mode="eval").body for key, expression in define.items()
        }

    def _replace(self, node: ast.Name | ast.Attribute) -> ast.AST | None:
        if not isinstance(node.ctx, ast.Load):
            return None
        name = _dotted_name(node)
        if name is None or name not in self._replacements:
            return None
        return ast.copy_location(copy.deepcopy(self._replacements[name]), node)

    def visit_Name(self, node: ast.Name) -> ast.AST:
        return self._replace(node) or node

    def visit_Attribute(self, node: ast.Attribute) -> ast.AST:
        return self._replace(node) or self.generic_visit(node)


def relative_specifier(level: int, module: str | None, name: str | None = None) -> str:
    """Return the path specifier of a package-relative import.

    ``from ..a.b import c`` is ``relative_specifier(2, "a.b")`` -> ``"../a/b"``.
    """

    base = "./" if level == 1 else "../" * (level - 1)
    target = module.replace(".", "/") if module else name
    if not target:
        return base.rstrip("/")
    return base + target


def _require_call(specifier: str) -> ast.Call:
    return ast.Call(
        func=ast.Name(id="__cjs_require__", ctx=ast.Load()),
        args=[ast.Constant(value=specifier)],
        keywords=[],
    )


class _CommonJSTransformer(ast.NodeTransformer):
    """Rewrite package-relative imports into ``require`` calls."""

    def __init__(self) -> None:
        self.uses_star = False

    def visit_ImportFrom(self, node: ast.ImportFrom) -> Any:
        if not node.level:
            return node
        statements: list[ast.stmt] = []
        for alias in node.names:
            if alias.name == "*":
                self.uses_star = True
                specifier = relative_specifier(node.level, node.module)
                update = ast.Call(
                    func=ast.Attribute(
                        value=ast.Call(func=ast.Name(id="globals", ctx=ast.Load()), args=[], keywords=[]),
                        attr="update",
                        ctx=ast.Load(),
                    ),
                    args=[
                        ast.Call(
                            func=ast.Name(id="__star_exports__", ctx=ast.Load()),
                            args=[_require_call(specifier)],
                            keywords=[],
                        )
                    ],
                    keywords=[],
                )
                statements.append(ast.Expr(value=update))
                continue
            if node.module:
                value: ast.expr = ast.Attribute(
                    value=_require_call(relative_specifier(node.level, node.module)),
                    attr=alias.name,
                    ctx=ast.Load(),
                )
            else:
                value = _require_call(relative_specifier(node.level, None, alias.name))
            target = ast.Name(id=alias.asname or alias.name, ctx=ast.Store())
            statements.append(ast.Assign(targets=[target], value=value))
        return [ast.copy_location(statement, node) for statement in statements]


def _split_head(body: list[ast.stmt]) -> tuple[list[ast.stmt], list[ast.stmt]]:
    """Split the docstring and ``__future__`` imports off *body*."""

    index = 0
    if body and isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant):
        if isinstance(body[0].value.value, str):
            index = 1
    while index < len(body):
        statement = body[index]
        if not (isinstance(statement, ast.ImportFrom) and statement.module == "__future__"):
            break
        index += 1
    return body[:index], body[index:]


def parse_source(code: str, filename: str = "<stdin>") -> ast.Module:
    """Parse *code*, accepting top-level ``await``."""

    return compile(
        code,
        filename,
        "exec",
        flags=ast.PyCF_ONLY_AST | ast.PyCF_ALLOW_TOP_LEVEL_AWAIT,
        dont_inherit=True,
    )


def transform_sync(
    code: str,
    options: TransformOptions | Mapping[str, Any] | None = None,
) -> TransformResult:
    """Convert *code* according to *options* and return the new source text."""

    options = coerce_transform_options(options)
    tree = parse_source(code, options.sourcefile)
    head, body = _split_head(tree.body)
    tree.body = body
    if options.define:
        tree = _DefineTransformer(options.define).visit(tree)

    helpers: list[str] = []
    footer: list[str] = []
    if options.format == "cjs":
        converter = _CommonJSTransformer()
        tree = converter.visit(tree)
        if converter.uses_star:
            helpers.append(STAR_EXPORTS_HELPER)
        helpers.append(COMMONJS_PRELUDE)
        footer.append(COMMONJS_FOOTER)
    ast.fix_missing_locations(tree)

    chunks = [ast.unparse(ast.Module(body=head, type_ignores=[]))] if head else []
    if options.banner:
        chunks.append(options.banner.rstrip("\n"))
    chunks.extend(helpers)
    if tree.body:
        chunks.append(ast.unparse(tree))
    chunks.extend(footer)
    if options.footer:
        chunks.append(options.footer.rstrip("\n"))
    logger.debug("transformed %s to format %s", options.sourcefile, options.format or "unchanged")
    return TransformResult(code="\n".join(chunks) + "\n")


async def transform(
    code: str,
    options: TransformOptions | Mapping[str, Any] | None = None,
) -> TransformResult:
    """Awaitable form of :func:`transform_sync`, run in a worker thread."""

    return await asyncio.to_thread(transform_sync, code, options)
