"""Tests for local directory plugin discovery in PluginManager."""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

from recurdates.plugins.manager import PluginManager

_VALID_PLUGIN_SRC = """\
import pluggy

from recurdates.domain.rules import EveryDayRule

hookimpl = pluggy.HookimplMarker("recurdates")


class LocalTestPlugin:
    \"\"\"A minimal local plugin for testing.\"\"\"

    @hookimpl
    def register_rule_sources(self):
        return [EveryDayRule]
"""

_SYNTAX_ERROR_SRC = """\
def broken(
    # missing closing paren and colon
"""

_NO_HOOKS_SRC = """\
class PlainClass:
    \"\"\"A class with no hookimpl-decorated methods.\"\"\"
    def hello(self) -> str:
        return "world"
"""

_BAD_INIT_SRC = """\
import pluggy

hookimpl = pluggy.HookimplMarker("recurdates")


class NeedsArgsPlugin:
    def __init__(self, required):
        self.required = required

    @hookimpl
    def register_rule_sources(self):
        return []
"""


@pytest.fixture(autouse=True)
def _drop_local_plugin_modules() -> Generator[None]:
    yield
    for name in [n for n in sys.modules if n.startswith("recurdates_local_plugin_")]:
        sys.modules.pop(name, None)


class TestLocalDiscovery:
    """Tests for PluginManager._discover_local and friends."""

    def test_discovers_local_plugin(self, tmp_path: Path) -> None:
        (tmp_path / "myplugin.py").write_text(_VALID_PLUGIN_SRC, encoding="utf-8")

        pm = PluginManager()
        pm.discover_and_load(local_dir=tmp_path)

        names = pm.list_plugin_names()
        assert "recurdates_local_plugin_myplugin.LocalTestPlugin" in names

    def test_local_plugin_contributes_sources(self, tmp_path: Path) -> None:
        (tmp_path / "myplugin.py").write_text(_VALID_PLUGIN_SRC, encoding="utf-8")

        pm = PluginManager()
        pm._discover_local(tmp_path)

        from recurdates.domain.rules import EveryDayRule

        assert pm.collect_rule_sources() == [EveryDayRule]

    def test_skips_bad_plugin_gracefully(self, tmp_path: Path) -> None:
        (tmp_path / "broken.py").write_text(_SYNTAX_ERROR_SRC, encoding="utf-8")

        pm = PluginManager()
        names = pm.discover_and_load(local_dir=tmp_path)

        assert all("broken" not in n for n in names)
        assert "recurdates_local_plugin_broken" not in sys.modules

    def test_skips_uninstantiable_plugin(self, tmp_path: Path) -> None:
        (tmp_path / "needsargs.py").write_text(_BAD_INIT_SRC, encoding="utf-8")

        pm = PluginManager()
        names = pm.discover_and_load(local_dir=tmp_path)
        assert all("needsargs" not in n for n in names)

    def test_nonexistent_dir_is_noop(self, tmp_path: Path) -> None:
        pm = PluginManager()
        names = pm.discover_and_load(local_dir=tmp_path / "does_not_exist")
        assert pm.is_loaded is True
        assert isinstance(names, list)

    def test_skips_underscore_prefixed_files(self, tmp_path: Path) -> None:
        (tmp_path / "_helpers.py").write_text(_VALID_PLUGIN_SRC, encoding="utf-8")

        pm = PluginManager()
        pm.discover_and_load(local_dir=tmp_path)

        assert all("_helpers" not in n for n in pm.list_plugin_names())

    def test_skips_classes_without_hookimpls(self, tmp_path: Path) -> None:
        (tmp_path / "plain.py").write_text(_NO_HOOKS_SRC, encoding="utf-8")

        pm = PluginManager()
        pm.discover_and_load(local_dir=tmp_path)

        assert all("plain" not in n for n in pm.list_plugin_names())
