import importlib
import sys
from typing import Any, Dict, List, Optional

import structlog

from catgrid.core.log_setup import level_from_name, setup_logging
from catgrid.shared.config_handler import ConfigHandler

DEFAULT_PLUGINS = ["catgrid.plugins.category_grid"]
REQUIRED_METADATA = ["id", "name", "version"]


class PluginLoader:
    """
    Imports, validates and enables host plugins, and disables them again
    when the host shuts down.
    """

    def __init__(self, host: Any):
        self.host = host
        if getattr(host, "logger", None) is None:
            config = ConfigHandler(
                structlog.get_logger(), config_dir=getattr(host, "config_dir", None)
            )
            level = config.get_root_setting(["logging", "level"], "INFO")
            host.logger = setup_logging(level_from_name(level))
        self.logger = host.logger
        self.plugins: Dict[str, Any] = {}
        self.plugin_metadata_map: Dict[str, Dict[str, Any]] = {}

    def load_plugins(
        self, module_paths: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        if module_paths is None:
            module_paths = DEFAULT_PLUGINS
        for module_path in module_paths:
            self.load_plugin(module_path)
        return self.plugins

    def _forget(self, module_path: str) -> None:
        if module_path in sys.modules:
            del sys.modules[module_path]

    def load_plugin(self, module_path: str) -> Any:
        """Returns the enabled plugin instance, or None when it was skipped."""
        module_name = module_path.rsplit(".", 1)[-1]
        if module_name in self.plugins:
            return self.plugins[module_name]
        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            self.logger.error(f"Failed to import plugin {module_name}: {e}")
            return None
        if not hasattr(module, "get_plugin_metadata") or not hasattr(
            module, "get_plugin_class"
        ):
            self.logger.error(
                f"Module {module_name} is missing required functions (get_plugin_metadata or get_plugin_class). Skipping."
            )
            self._forget(module_path)
            return None
        metadata = module.get_plugin_metadata(self.host)
        if not isinstance(metadata, dict):
            self.logger.error(
                f"Plugin {module_name} get_plugin_metadata did not return a dictionary. Skipping."
            )
            self._forget(module_path)
            return None
        missing_fields = [f for f in REQUIRED_METADATA if f not in metadata]
        if missing_fields:
            self.logger.error(
                f"Plugin {module_name} is missing required metadata fields: {', '.join(missing_fields)}. Skipping."
            )
            self._forget(module_path)
            return None
        if not metadata.get("enabled", True):
            self.logger.info(f"Skipping disabled plugin: {module_name}")
            return None
        try:
            plugin_instance = module.get_plugin_class()(self.host)
            plugin_instance.enable()
        except Exception as e:
            self.logger.error(
                f"Failed to initialize plugin '{module_name}': {e}", exc_info=True
            )
            return None
        self.plugins[module_name] = plugin_instance
        self.plugin_metadata_map[module_name] = metadata
        self.logger.info(f"Initialized plugin: {module_name}")
        return plugin_instance

    def unload_plugins(self) -> None:
        for module_name, plugin_instance in list(self.plugins.items()):
            plugin_instance.disable()
            self.logger.info(f"Disabled plugin: {module_name}")
        self.plugins = {}
        self.plugin_metadata_map = {}
