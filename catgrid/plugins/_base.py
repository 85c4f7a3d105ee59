import os
import sys
import inspect
from typing import Any, ClassVar, Dict, List, Optional, Union

import structlog

from catgrid.shared.config_handler import ConfigHandler
from catgrid.shared.glib_helpers import GLibScheduler


class PluginLogAdapter:
    """
    A wrapper around the structlog logger that injects the caller's file,
    package, function name and line number into the log event's 'extra'
    dictionary.
    """

    def __init__(self, logger):
        self._logger = logger
        self._base_plugin_filename = os.path.basename(__file__)

    def _get_caller_context(self):
        frame = inspect.currentframe()
        if not frame:
            return {}
        f = frame.f_back
        while f:
            caller_file = os.path.basename(f.f_code.co_filename)
            if caller_file != self._base_plugin_filename:
                context = {
                    "file": caller_file,
                    "package": f.f_globals.get("__package__", "unknown"),
                    "func": f.f_code.co_name,
                    "line": f.f_lineno,
                }
                del f
                del frame
                return context
            f = f.f_back
        del frame
        return {}

    def _log_with_context(self, level: str, message: str, **kwargs):
        context = self._get_caller_context()
        if context:
            if "extra" in kwargs and isinstance(kwargs["extra"], dict):
                kwargs["extra"].update(context)
            else:
                kwargs["extra"] = context
        getattr(self._logger, level)(message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log_with_context("info", message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log_with_context("warning", message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log_with_context("error", message, **kwargs)

    def debug(self, message: str, **kwargs):
        self._log_with_context("debug", message, **kwargs)

    def exception(self, message: str, **kwargs):
        self._log_with_context("exception", message, **kwargs)

    def critical(self, message: str, **kwargs):
        self._log_with_context("critical", message, **kwargs)

    def __getattr__(self, name):
        return getattr(self._logger, name)


class BasePlugin:
    """
    Base class for host plugins: wires the logger, configuration and
    scheduler, and gives enable/disable hooks.
    """

    DEPS: ClassVar[List[str]] = []
    ConfigKeys = Union[str, List[str]]

    def __init__(self, host: Any):
        self._host = host
        self._logger_adapter = PluginLogAdapter(
            getattr(host, "logger", None) or structlog.get_logger()
        )
        self.scheduler = getattr(host, "scheduler", None) or GLibScheduler()
        self.dependencies: List[str] = list(getattr(self, "DEPS", []))
        self.enabled = False
        self.plugin_id: Optional[str] = None
        metadata = self.get_plugin_metadata()
        if metadata is not None and "id" in metadata:
            self.plugin_id = metadata["id"]
        self._config_handler = ConfigHandler(
            self._logger_adapter,
            self.plugin_id,
            config_dir=getattr(host, "config_dir", None),
        )

    def get_plugin_metadata(self) -> Optional[Dict[str, Any]]:
        module_object = sys.modules.get(self.__module__)
        if module_object is None or not hasattr(module_object, "get_plugin_metadata"):
            return None
        return module_object.get_plugin_metadata(self._host)

    def get_plugin_setting_add_hint(
        self, key: ConfigKeys, default_value: Any, hint: str
    ) -> Any:
        """
        Reads a plugin setting (writing the default back when it is missing)
        and records its hint in the default template.
        """
        key_path = [key] if isinstance(key, str) else list(key)
        self._config_handler.set_setting_hint([self.plugin_id] + key_path, hint)
        return self._config_handler.get_plugin_setting(key_path, default_value)

    def enable(self) -> None:
        if self.enabled:
            return
        self.enabled = True
        self.on_enable()

    def disable(self) -> None:
        """Disables the plugin; a disable without a prior enable does nothing."""
        if not self.enabled:
            return
        self.enabled = False
        try:
            self.on_disable()
        except Exception as e:
            self.logger.error(f"Error disabling plugin: {e}", exc_info=True)

    def on_enable(self):
        """Hook for when plugin is enabled"""
        pass

    def on_disable(self):
        """Hook for when plugin is disabled. Plugin authors should add any necessary cleanup here."""
        pass

    @property
    def host(self) -> Any:
        return self._host

    @property
    def logger(self) -> PluginLogAdapter:
        return self._logger_adapter

    @property
    def config_handler(self) -> ConfigHandler:
        return self._config_handler

    @property
    def get_plugin_setting(self):
        return self._config_handler.get_plugin_setting

    @property
    def set_plugin_setting(self):
        return self._config_handler.set_plugin_setting

    @property
    def get_root_setting(self):
        return self._config_handler.get_root_setting
