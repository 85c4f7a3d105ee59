import os
import copy
import toml
import time
from pathlib import Path
from typing import Any, Callable, List, Optional, Dict, Union
from catgrid.shared import config_template

_MISSING_SETTING_SENTINEL = object()


class ConfigHandler:
    """
    Manages the catgrid configuration file (config.toml) and provides a
    layered access interface.
    Handles file I/O, merging with the hinted default template, and file
    change monitoring (via GIO) with reload callbacks.
    """

    def __init__(
        self,
        logger: Any,
        plugin_id: Optional[str] = None,
        config_dir: Optional[Union[str, Path]] = None,
    ):
        """
        Sets up paths and loads the initial configuration.
        Args:
            logger: Logger used for every configuration message.
            plugin_id: Section used by the plugin-scoped accessors.
            config_dir: Overrides the XDG configuration directory.
        """
        self.logger = logger
        self.plugin_id = plugin_id
        self._cached_config: Optional[Dict[str, Any]] = None
        self._last_mod_time: float = 0.0
        self._load_successful: bool = False
        self._reload_callbacks: List[Callable[[Dict[str, Any]], None]] = []
        self.default_config = copy.deepcopy(config_template.default_config)
        self.config_path: str = (
            str(config_dir) if config_dir else self.setup_config_path()
        )
        Path(self.config_path).mkdir(parents=True, exist_ok=True)
        self.config_file = Path(self.config_path) / "config.toml"
        self.config_monitor: Any = None
        self.config_data: Dict[str, Any] = self.load_config()

    def setup_config_path(self) -> str:
        """Returns $XDG_CONFIG_HOME/catgrid (or ~/.config/catgrid)."""
        home = os.path.expanduser("~")
        xdg_config_home = os.getenv("XDG_CONFIG_HOME", os.path.join(home, ".config"))
        return os.path.join(xdg_config_home, "catgrid")

    def _strip_hints(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Recursively removes keys ending with '_hint' so only values reach
        the TOML file.
        """
        stripped_data = {}
        for key, value in data.items():
            if key.endswith("_hint"):
                continue
            if isinstance(value, dict):
                stripped_data[key] = self._strip_hints(value)
            else:
                stripped_data[key] = copy.deepcopy(value)
        return stripped_data

    @property
    def default_config_stripped(self) -> Dict[str, Any]:
        return self._strip_hints(self.default_config)

    def _recursive_merge(
        self,
        user_config: Dict[str, Any],
        default_config: Dict[str, Any],
    ) -> bool:
        """
        Recursively merges missing keys from `default_config` into `user_config`.
        Returns:
            True if any key was added.
        """
        write_back_needed = False
        for key, default_value in default_config.items():
            if key not in user_config:
                user_config[key] = default_value
                write_back_needed = True
            elif isinstance(default_value, dict) and isinstance(
                user_config.get(key), dict
            ):
                if self._recursive_merge(user_config[key], default_value):
                    write_back_needed = True
        return write_back_needed

    def save_config(self) -> bool:
        """Writes self.config_data to the TOML file."""
        if not self._load_successful:
            self.logger.warning(
                "Skipping configuration save: the file failed to load. Please fix config.toml manually."
            )
            return False
        try:
            with open(self.config_file, "w") as f:
                toml.dump(self.config_data, f)
            self._last_mod_time = os.path.getmtime(self.config_file)
            self.logger.info("Configuration saved successfully.")
            return True
        except OSError as e:
            self.logger.error(f"Failed to save configuration to file: {e}")
            return False

    def reload_config(self) -> None:
        """Reloads from file and notifies the reload callbacks."""
        new_config = self.load_config(force_reload=True)
        self.config_data = new_config
        self.logger.info("Configuration reloaded from file.")
        for callback in list(self._reload_callbacks):
            try:
                callback(self.config_data)
            except Exception as e:
                self.logger.error(f"Error in configuration reload callback: {e}")

    def load_config(self, force_reload: bool = False) -> Dict[str, Any]:
        """
        Loads the configuration from file, or uses defaults if missing/corrupt.
        Args:
            force_reload: If True, bypasses the internal cache.
        Returns:
            The loaded and merged configuration dictionary.
        """
        if self._cached_config and not force_reload:
            return self._cached_config
        config_from_file: Dict[str, Any] = {}
        file_must_be_created = not self.config_file.exists()
        load_succeeded = False
        if file_must_be_created:
            self.logger.info("Config file is missing. Will apply defaults and create.")
            load_succeeded = True
        else:
            max_retries = 3
            retry_delay_seconds = 0.1
            for attempt in range(max_retries):
                try:
                    with open(self.config_file, "r") as f:
                        config_from_file = toml.load(f)
                    self.logger.debug("Existing config.toml loaded successfully.")
                    load_succeeded = True
                    self._last_mod_time = os.path.getmtime(self.config_file)
                    break
                except (OSError, toml.TomlDecodeError) as e:
                    self.logger.error(
                        f"Error loading config file on attempt {attempt + 1}: {e}. Retrying..."
                    )
                    time.sleep(retry_delay_seconds)
            else:
                self.logger.error(
                    "Failed to load config file after all retries. Using default configuration and skipping file save to preserve user data."
                )
                config_from_file = {}
        self._load_successful = load_succeeded
        self._recursive_merge(config_from_file, self.default_config_stripped)
        if file_must_be_created:
            self.logger.info(
                "Saving default configuration to file because it was missing."
            )
            self.config_data = config_from_file
            self.save_config()
        self._cached_config = config_from_file
        return config_from_file

    def add_reload_callback(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        self._reload_callbacks.append(callback)

    def remove_reload_callback(
        self, callback: Callable[[Dict[str, Any]], None]
    ) -> None:
        if callback in self._reload_callbacks:
            self._reload_callbacks.remove(callback)

    def _on_config_file_changed(self, monitor, file, other_file, event_type) -> None:
        """
        Callback for the GIO file monitor. Changes are debounced on the file
        modification time, so our own saves do not trigger a reload.
        """
        from gi.repository import Gio  # pyright: ignore

        if event_type not in (
            Gio.FileMonitorEvent.CHANGES_DONE_HINT,
            Gio.FileMonitorEvent.MOVED,
            Gio.FileMonitorEvent.CHANGED,
        ):
            return
        self.check_for_changes()

    def check_for_changes(self) -> bool:
        try:
            current_mod_time = os.path.getmtime(self.config_file)
        except FileNotFoundError:
            self.logger.warning("Config file not found during change check.")
            return False
        if current_mod_time <= self._last_mod_time:
            self.logger.debug("Change event received but ignored due to debounce.")
            return False
        self._last_mod_time = current_mod_time
        self.reload_config()
        return True

    def start_watcher(self) -> None:
        """Starts the GIO file monitor for live config updates."""
        if self.config_monitor is not None:
            return
        try:
            from gi.repository import Gio  # pyright: ignore

            gio_file = Gio.File.new_for_path(str(self.config_file))
            self.config_monitor = gio_file.monitor_file(Gio.FileMonitorFlags.NONE, None)
            self.config_monitor.connect("changed", self._on_config_file_changed)
        except Exception as e:
            self.config_monitor = None
            self.logger.error(f"Failed to start Gio.FileMonitor: {e}")

    def stop_watcher(self) -> None:
        if self.config_monitor is not None:
            self.config_monitor.cancel()
            self.config_monitor = None

    def get_root_setting(self, key_path: List[str], default_value: Any = None) -> Any:
        """
        Traverses self.config_data to retrieve a value.
        Args:
            key_path: List of keys, e.g. ['logging', 'level'].
            default_value: Returned if the path is not found.
        """
        current_data = self.config_data
        for i, key in enumerate(key_path):
            if isinstance(current_data, dict) and key in current_data:
                current_data = current_data[key]
            else:
                self.logger.debug(
                    f"Missing configuration key at path: {' -> '.join(key_path[: i + 1])}. Using default value: {default_value}"
                )
                return default_value
        return current_data

    def set_root_setting(self, key_path: List[str], new_value: Any) -> bool:
        """Sets a configuration value, creating sections as needed, and saves."""
        if not key_path:
            self.logger.error("Configuration key path cannot be empty.")
            return False
        if not self._load_successful:
            self.logger.warning(
                f"Update to key {' -> '.join(key_path)} skipped: Config file failed to load. Please fix config.toml manually."
            )
            return False
        current_data = self.config_data
        for key in key_path[:-1]:
            if not isinstance(current_data.get(key), dict):
                current_data[key] = {}
            current_data = current_data[key]
        current_data[key_path[-1]] = new_value
        self.logger.info(f"Set config key {' -> '.join(key_path)} to {new_value}.")
        return self.save_config()

    def _plugin_key_path(self, key: Optional[Union[str, List[str]]]) -> List[str]:
        key_path = [self.plugin_id]
        if isinstance(key, str):
            key_path.append(key)
        elif isinstance(key, list):
            key_path.extend(key)
        return key_path

    def get_plugin_setting(
        self, key: Optional[Union[str, List[str]]] = None, default_value: Any = None
    ) -> Any:
        """
        Retrieves a value from this plugin's section. A missing setting with
        a non-None default is written back so it shows up in config.toml.
        """
        if not self.plugin_id:
            return default_value
        key_path = self._plugin_key_path(key)
        result = self.get_root_setting(key_path, _MISSING_SETTING_SENTINEL)
        if result is _MISSING_SETTING_SENTINEL:
            if default_value is not None:
                self.set_root_setting(key_path, default_value)
            return default_value
        return result

    def set_plugin_setting(self, key: Union[str, List[str]], value: Any) -> bool:
        if not self.plugin_id:
            self.logger.error("Plugin ID is not set, cannot save setting.")
            return False
        return self.set_root_setting(self._plugin_key_path(key), value)

    def set_setting_hint(self, key_path: List[str], hint: str) -> None:
        """Injects a '<key>_hint' next to a setting in the default template."""
        current_data = self.default_config
        for key in key_path[:-1]:
            if not isinstance(current_data.get(key), dict):
                current_data[key] = {}
            current_data = current_data[key]
        current_data[f"{key_path[-1]}_hint"] = hint

    def get_setting_hint(self, key_path: List[str]) -> Optional[str]:
        current_data = self.default_config
        for key in key_path[:-1]:
            current_data = current_data.get(key)
            if not isinstance(current_data, dict):
                return None
        return current_data.get(f"{key_path[-1]}_hint")

    def get_settings(self) -> Dict[str, Any]:
        return self.config_data
