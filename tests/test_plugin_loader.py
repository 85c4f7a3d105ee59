import logging
import sys
import types

from catgrid.core import plugin_loader
from catgrid.core.plugin_loader import PluginLoader
from tests.test_category_grid_plugin import FakeHost
from tests.conftest import FakeGrid, FakeItem, metadata_for


def _host(tmp_path, scheduler, logger):
    grid = FakeGrid([FakeItem("term", "Terminal")])
    return FakeHost(tmp_path, scheduler, logger, grid, metadata_for({"term": "System;"}))


def _fake_module(monkeypatch, name, **attrs):
    module = types.ModuleType(name)
    for key, value in attrs.items():
        setattr(module, key, value)
    monkeypatch.setitem(sys.modules, name, module)
    return name


def test_default_plugin_is_loaded_and_enabled(tmp_path, scheduler, logger):
    host = _host(tmp_path, scheduler, logger)
    loader = PluginLoader(host)

    plugins = loader.load_plugins()
    scheduler.run_all()

    assert list(plugins) == ["category_grid"]
    assert plugins["category_grid"].enabled
    assert [item.id for item in host.app_grid.ordered_items] == ["term"]


def test_explicit_empty_plugin_list_loads_nothing(tmp_path, scheduler, logger):
    loader = PluginLoader(_host(tmp_path, scheduler, logger))

    assert loader.load_plugins([]) == {}
    assert plugin_loader.DEFAULT_PLUGINS == ["catgrid.plugins.category_grid"]


def test_loading_twice_returns_same_instance(tmp_path, scheduler, logger):
    loader = PluginLoader(_host(tmp_path, scheduler, logger))

    first = loader.load_plugin("catgrid.plugins.category_grid")

    assert loader.load_plugin("catgrid.plugins.category_grid") is first


def test_module_without_entry_points_is_skipped(tmp_path, scheduler, logger, monkeypatch):
    name = _fake_module(monkeypatch, "catgrid_fake_plugin")
    loader = PluginLoader(_host(tmp_path, scheduler, logger))

    assert loader.load_plugin(name) is None
    assert name not in sys.modules
    assert logger.messages("error")


def test_metadata_without_required_fields_is_skipped(tmp_path, scheduler, logger, monkeypatch):
    name = _fake_module(
        monkeypatch,
        "catgrid_partial_plugin",
        get_plugin_metadata=lambda host: {"id": "partial"},
        get_plugin_class=lambda: object,
    )
    loader = PluginLoader(_host(tmp_path, scheduler, logger))

    assert loader.load_plugin(name) is None
    assert any("name, version" in message for message in logger.messages("error"))


def test_disabled_plugin_is_not_instantiated(tmp_path, scheduler, logger, monkeypatch):
    def never():
        raise AssertionError("must not be called")

    name = _fake_module(
        monkeypatch,
        "catgrid_disabled_plugin",
        get_plugin_metadata=lambda host: {"id": "x", "name": "X", "version": "1", "enabled": False},
        get_plugin_class=never,
    )
    loader = PluginLoader(_host(tmp_path, scheduler, logger))

    assert loader.load_plugin(name) is None


def test_unload_disables_everything(tmp_path, scheduler, logger):
    host = _host(tmp_path, scheduler, logger)
    loader = PluginLoader(host)
    plugin = loader.load_plugin("catgrid.plugins.category_grid")

    loader.unload_plugins()
    scheduler.run_all()

    assert not plugin.enabled
    assert loader.plugins == {}
    assert host.app_grid.calls == []


def test_missing_logger_is_configured_from_config(tmp_path, scheduler, logger, monkeypatch):
    levels = []

    def fake_setup_logging(level):
        levels.append(level)
        return logger

    monkeypatch.setattr(plugin_loader, "setup_logging", fake_setup_logging)
    (tmp_path / "config.toml").write_text('[logging]\nlevel = "DEBUG"\n')
    host = _host(tmp_path, scheduler, logger)
    host.logger = None

    PluginLoader(host)

    assert levels == [logging.DEBUG]
    assert host.logger is logger
