"""Tests for PluginManager — registration and rule source collection."""

from __future__ import annotations

import logging
from types import ModuleType

import pytest

from recurdates.domain import rules as core_rules
from recurdates.plugins.manager import PluginManager, hookimpl


class _ModulePlugin:
    @hookimpl
    def register_rule_sources(self) -> list[ModuleType | type]:
        return [core_rules]


class _TypePlugin:
    @hookimpl
    def register_rule_sources(self) -> list[ModuleType | type]:
        return [core_rules.EveryDayRule, core_rules.NeverRule]


class _NonePlugin:
    @hookimpl
    def register_rule_sources(self) -> None:
        return None


class _FailingPlugin:
    @hookimpl
    def register_rule_sources(self) -> list[ModuleType | type]:
        raise RuntimeError("boom")


class _NonListPlugin:
    @hookimpl
    def register_rule_sources(self) -> dict[str, type]:
        return {"every": core_rules.EveryDayRule}


class _MixedPlugin:
    @hookimpl
    def register_rule_sources(self) -> list[object]:
        return [core_rules.EveryDayRule, "recurdates.domain.rules", 42]


class TestPluginManager:
    """Tests for the PluginManager class."""

    def test_hook_relay_accessible(self) -> None:
        pm = PluginManager()
        assert hasattr(pm.hook, "register_rule_sources")

    def test_register_plugin(self) -> None:
        pm = PluginManager()
        pm.register_plugin(_ModulePlugin(), name="modules")
        assert "modules" in pm.list_plugin_names()

    def test_register_plugin_default_name(self) -> None:
        pm = PluginManager()
        pm.register_plugin(_ModulePlugin())
        assert "_ModulePlugin" in pm.list_plugin_names()

    def test_unregister_plugin(self) -> None:
        pm = PluginManager()
        plugin = _ModulePlugin()
        pm.register_plugin(plugin, name="modules")
        pm.unregister(plugin)
        assert "modules" not in pm.list_plugin_names()

    def test_is_loaded_false_before_discover(self) -> None:
        assert PluginManager().is_loaded is False

    def test_discover_without_entry_points(self) -> None:
        pm = PluginManager()
        names = pm.discover_and_load()
        assert pm.is_loaded is True
        assert isinstance(names, list)


class TestCollectRuleSources:
    def test_no_plugins(self) -> None:
        assert PluginManager().collect_rule_sources() == []

    def test_modules_and_types(self) -> None:
        pm = PluginManager()
        pm.register_plugin(_ModulePlugin())
        pm.register_plugin(_TypePlugin())
        sources = pm.collect_rule_sources()
        assert core_rules in sources
        assert core_rules.EveryDayRule in sources
        assert core_rules.NeverRule in sources
        assert len(sources) == 3

    def test_none_result_is_ignored(self) -> None:
        pm = PluginManager()
        pm.register_plugin(_NonePlugin())
        assert pm.collect_rule_sources() == []

    def test_failing_plugin_is_a_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        pm = PluginManager()
        pm.register_plugin(_FailingPlugin(), name="failing")
        pm.register_plugin(_TypePlugin())
        with caplog.at_level(logging.WARNING, logger="recurdates.plugins.manager"):
            sources = pm.collect_rule_sources()
        assert sources == [core_rules.EveryDayRule, core_rules.NeverRule]
        assert "failing" in caplog.text

    def test_non_list_result_is_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        pm = PluginManager()
        pm.register_plugin(_NonListPlugin(), name="dict_plugin")
        with caplog.at_level(logging.WARNING, logger="recurdates.plugins.manager"):
            assert pm.collect_rule_sources() == []
        assert "non-list" in caplog.text

    def test_invalid_entries_are_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        pm = PluginManager()
        pm.register_plugin(_MixedPlugin(), name="mixed")
        with caplog.at_level(logging.WARNING, logger="recurdates.plugins.manager"):
            sources = pm.collect_rule_sources()
        assert sources == [core_rules.EveryDayRule]
        assert "str" in caplog.text
        assert "int" in caplog.text
