from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from module_from_string import (
    UnsupportedSyntaxError,
    create_import_from_string,
    create_import_from_string_sync,
    import_from_string,
    import_from_string_sync,
    is_linked_module_available,
)
from module_from_string.importer import select_strategy


@pytest.fixture(params=["linked", "transpile"])
def strategy(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setenv("MODULE_FROM_STRING_LINKED_MODULES", "1" if request.param == "linked" else "0")
    return request.param


def test_strategy_selection_follows_capability(strategy: str) -> None:
    assert is_linked_module_available() is (strategy == "linked")
    assert select_strategy().name == strategy


def test_default_binding(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string("default = 42")
        assert namespace["default"] == 42
        assert namespace.default == 42

    asyncio.run(_run())


def test_named_bindings(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string("a, b = 1, 2")
        assert dict(namespace) == {"a": 1, "b": 2}
        assert "default" not in namespace

    asyncio.run(_run())


def test_private_names_are_not_exported(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string("_hidden = 1\nvisible = 2")
        assert dict(namespace) == {"visible": 2}

    asyncio.run(_run())


def test_dunder_all_limits_exports(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string("__all__ = ['a']\na = 1\nb = 2")
        assert dict(namespace) == {"a": 1}

    asyncio.run(_run())


def test_relative_import_reexports_default_and_named(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string("from .fixtures.defaults import default, named")
        assert dict(namespace) == {"default": "default value", "named": "named value"}

    asyncio.run(_run())


def test_relative_import_uses_dirname(strategy: str, tmp_path: Path) -> None:
    (tmp_path / "local.py").write_text("answer = 42\n", encoding="utf-8")

    async def _run() -> None:
        namespace = await import_from_string(
            "from .local import answer\n__all__ = ['answer']",
            dirname=str(tmp_path),
        )
        assert namespace.answer == 42

    asyncio.run(_run())


def test_absolute_import_is_available(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string("import json\n__all__ = ['encoded']\nencoded = json.dumps({'a': 1})")
        assert namespace.encoded == '{"a": 1}'

    asyncio.run(_run())


def test_globals_are_visible_but_not_exported(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string("doubled = base * 2", globals={"base": 21})
        assert dict(namespace) == {"doubled": 42}

    asyncio.run(_run())


def test_meta_url_matches_file(strategy: str, tmp_path: Path) -> None:
    async def _run() -> None:
        namespace = await import_from_string("url = __meta__.url", dirname=str(tmp_path), filename="meta.py")
        assert namespace.url == (tmp_path / "meta.py").as_uri()

    asyncio.run(_run())


def test_execution_errors_propagate(strategy: str) -> None:
    async def _run() -> None:
        with pytest.raises(ValueError, match="bad value"):
            await import_from_string("raise ValueError('bad value')")

    asyncio.run(_run())


def test_concurrent_imports_do_not_interfere(strategy: str) -> None:
    async def _run() -> None:
        first, second = await asyncio.gather(
            import_from_string("value = 'first'"),
            import_from_string("value = 'second'"),
        )
        assert first.value == "first"
        assert second.value == "second"

    asyncio.run(_run())


def test_transform_options_banner_and_define(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string(
            "value = (PREFIX, FLAG)",
            transform_options={"banner": "PREFIX = 'banner'", "define": {"FLAG": "True"}},
        )
        assert namespace.value == ("banner", True)

    asyncio.run(_run())


def test_relative_importer_needs_linked_modules(strategy: str) -> None:
    async def _run() -> None:
        source = "from .fixtures.relative_importer import shout"
        if strategy == "linked":
            namespace = await import_from_string(source)
            assert namespace.shout == "HI"
        else:
            with pytest.raises(UnsupportedSyntaxError, match="MODULE_FROM_STRING_LINKED_MODULES"):
                await import_from_string(source)

    asyncio.run(_run())


def test_sync_import_default_and_named() -> None:
    namespace = import_from_string_sync("default = 42\nother = 'x'")
    assert dict(namespace) == {"default": 42, "other": "x"}


def test_sync_import_of_relative_importer_names_async_entry_point() -> None:
    with pytest.raises(UnsupportedSyntaxError, match="Use asynchronous function 'import_from_string'"):
        import_from_string_sync("from .fixtures.relative_importer import shout")


def test_sync_import_meta_resolve_is_unsupported() -> None:
    namespace = import_from_string_sync("def locate(name):\n    return __meta__.resolve(name)")
    with pytest.raises(NotImplementedError, match="is not supported"):
        namespace.locate("./fixtures/module")


def test_sync_import_star_from_relative_module() -> None:
    namespace = import_from_string_sync("from .fixtures.pkg import *")
    assert namespace.double(2) == 4


def test_sync_import_keeps_future_imports_first() -> None:
    source = '"""Docstring."""\nfrom __future__ import annotations\n\ndef f(x: Missing) -> int:\n    return 1'
    namespace = import_from_string_sync(source)
    assert namespace.f(0) == 1


def test_factories_bind_options(tmp_path: Path) -> None:
    (tmp_path / "local.py").write_text("answer = 42\n", encoding="utf-8")
    import_sync = create_import_from_string_sync(dirname=str(tmp_path))
    assert import_sync("from .local import answer").answer == 42

    async def _run() -> None:
        import_ = create_import_from_string(dirname=str(tmp_path), globals={"offset": 1})
        namespace = await import_("from .local import answer\ntotal = answer + offset")
        assert namespace.total == 43

    asyncio.run(_run())


def test_commonjs_names_are_ordinary_bindings(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string("module = 'x'\nvalue = 1")
        assert dict(namespace) == {"module": "x", "value": 1}

        namespace = await import_from_string(
            "import importlib\n__all__ = ['module', 'exports', 'require']\n"
            "module = importlib.import_module('json')\nexports = 'e'\nrequire = 'r'"
        )
        assert namespace.module.__name__ == "json"
        assert (namespace.exports, namespace.require) == ("e", "r")

    asyncio.run(_run())


def test_sync_import_rebinding_module() -> None:
    namespace = import_from_string_sync("import importlib\nmodule = importlib.import_module('json')\nvalue = 1")
    assert namespace.module.__name__ == "json"
    assert namespace.value == 1


def test_from_import_loads_submodules(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string(
            "from json import tool\nfrom xml.etree import ElementTree\n"
            "__all__ = ['names']\nnames = (tool.__name__, ElementTree.__name__)"
        )
        assert namespace.names == ("json.tool", "xml.etree.ElementTree")

    asyncio.run(_run())


def test_from_import_of_missing_name_raises(strategy: str) -> None:
    async def _run() -> None:
        with pytest.raises(ImportError, match="missing_name"):
            await import_from_string("from json import missing_name")

    asyncio.run(_run())


def test_plain_import_binds_whole_module(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string(
            "import collections\n__all__ = ['name', 'private']\n"
            "name = collections.abc.Mapping.__name__\nprivate = collections._sys.__name__"
        )
        assert namespace.name == "Mapping"
        assert namespace.private == "sys"

    asyncio.run(_run())


def test_relative_module_import_is_shared(strategy: str, tmp_path: Path) -> None:
    (tmp_path / "conf.py").write_text("flag = False\n\n\ndef read():\n    return flag\n", encoding="utf-8")

    async def _run() -> None:
        namespace = await import_from_string(
            "from . import conf\nconf.flag = True\n__all__ = ['result']\nresult = conf.read()",
            dirname=str(tmp_path),
        )
        assert namespace.result is True

    asyncio.run(_run())


def test_namespace_is_live_and_read_only(strategy: str) -> None:
    async def _run() -> None:
        namespace = await import_from_string("count = 0\ndef bump():\n    global count\n    count += 1")
        namespace.bump()
        assert namespace.count == 1
        with pytest.raises(TypeError):
            namespace.count = 5

    asyncio.run(_run())


def test_bare_meta_object(strategy: str, tmp_path: Path) -> None:
    async def _run() -> None:
        namespace = await import_from_string(
            "meta = __meta__\n__all__ = ['url']\nurl = meta.url",
            dirname=str(tmp_path),
            filename="bare.py",
        )
        assert namespace.url == (tmp_path / "bare.py").as_uri()

    asyncio.run(_run())
