import toml

from catgrid.shared.config_handler import ConfigHandler
from catgrid.shared.config_template import PLUGIN_ID


def test_missing_file_is_created_without_hints(tmp_path, logger):
    handler = ConfigHandler(logger, PLUGIN_ID, config_dir=tmp_path)

    written = toml.load(tmp_path / "config.toml")
    assert written[PLUGIN_ID]["folder_placement"] == "last"
    assert "folder_placement_hint" not in written[PLUGIN_ID]
    assert "_section_hint" not in written
    assert handler.get_plugin_setting("reorder_delay_ms") == 100


def test_user_values_win_and_missing_keys_are_merged(tmp_path, logger):
    (tmp_path / "config.toml").write_text(
        f'["{PLUGIN_ID}"]\nfolder_placement = "first"\n'
    )

    handler = ConfigHandler(logger, PLUGIN_ID, config_dir=tmp_path)

    assert handler.get_plugin_setting("folder_placement") == "first"
    assert handler.get_plugin_setting("reorder_delay_ms") == 100
    assert handler.get_root_setting(["logging", "level"]) == "INFO"


def test_corrupt_file_uses_defaults_and_refuses_to_save(tmp_path, logger):
    config_file = tmp_path / "config.toml"
    config_file.write_text("this is [not toml")

    handler = ConfigHandler(logger, PLUGIN_ID, config_dir=tmp_path)

    assert handler.get_plugin_setting("folder_placement") == "last"
    assert handler.set_plugin_setting("folder_placement", "first") is False
    assert config_file.read_text() == "this is [not toml"
    assert logger.messages("error")


def test_missing_plugin_setting_with_default_is_written_back(tmp_path, logger):
    handler = ConfigHandler(logger, PLUGIN_ID, config_dir=tmp_path)

    assert handler.get_plugin_setting(["extra", "flag"], True) is True
    assert toml.load(tmp_path / "config.toml")[PLUGIN_ID]["extra"]["flag"] is True


def test_root_setting_falls_back_to_default(tmp_path, logger):
    handler = ConfigHandler(logger, PLUGIN_ID, config_dir=tmp_path)

    assert handler.get_root_setting(["nope", "deeper"], "fallback") == "fallback"


def test_external_edit_reloads_and_fires_callbacks(tmp_path, logger):
    handler = ConfigHandler(logger, PLUGIN_ID, config_dir=tmp_path)
    seen = []
    handler.add_reload_callback(lambda config: seen.append(config[PLUGIN_ID]["folder_placement"]))
    config_file = tmp_path / "config.toml"
    data = toml.load(config_file)
    data[PLUGIN_ID]["folder_placement"] = "first"
    config_file.write_text(toml.dumps(data))
    handler._last_mod_time = 0.0

    assert handler.check_for_changes() is True
    assert seen == ["first"]
    assert handler.get_plugin_setting("folder_placement") == "first"


def test_own_save_does_not_trigger_reload(tmp_path, logger):
    handler = ConfigHandler(logger, PLUGIN_ID, config_dir=tmp_path)
    seen = []
    handler.add_reload_callback(seen.append)

    handler.set_plugin_setting("reorder_delay_ms", 250)

    assert handler.check_for_changes() is False
    assert seen == []


def test_setting_hints_live_in_the_template_only(tmp_path, logger):
    handler = ConfigHandler(logger, PLUGIN_ID, config_dir=tmp_path)
    handler.set_setting_hint([PLUGIN_ID, "custom"], "A custom knob.")

    assert handler.get_setting_hint([PLUGIN_ID, "custom"]) == "A custom knob."
    assert "custom_hint" not in handler.default_config_stripped[PLUGIN_ID]
