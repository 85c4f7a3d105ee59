from typing import Any, Callable, List, Optional, Tuple

import structlog

from catgrid.core import event_bus as events
from catgrid.core.event_bus import EventBus

SHELL_SCHEMA = "org.gnome.shell"
FOLDERS_SCHEMA = "org.gnome.desktop.app-folders"

SETTINGS_SIGNALS: List[Tuple[str, str, str]] = [
    (SHELL_SCHEMA, "changed::app-picker-layout", events.LAYOUT_CHANGED),
    (SHELL_SCHEMA, "changed::favorite-apps", events.FAVORITES_CHANGED),
    (FOLDERS_SCHEMA, "changed::folder-children", events.FOLDERS_CHANGED),
]


class SettingsWatcher:
    """
    Bridges desktop settings and the installed-applications monitor to the
    event bus, so layout, favorites, folder and install changes request a
    reorder.
    """

    def __init__(
        self,
        event_bus: EventBus,
        logger: Any = None,
        settings_factory: Optional[Callable[[str], Any]] = None,
        app_monitor: Any = None,
    ):
        self.event_bus = event_bus
        self.logger = logger or structlog.get_logger()
        self._settings_factory = settings_factory
        self._app_monitor = app_monitor
        self._settings: dict = {}
        self._handlers: List[Tuple[Any, int]] = []

    def _new_settings(self, schema: str) -> Any:
        if self._settings_factory is None:
            from gi.repository import Gio  # pyright: ignore

            self._settings_factory = lambda schema_id: Gio.Settings(schema=schema_id)
        return self._settings_factory(schema)

    def _get_app_monitor(self) -> Any:
        if self._app_monitor is None:
            from gi.repository import Gio  # pyright: ignore

            self._app_monitor = Gio.AppInfoMonitor.get()
        return self._app_monitor

    @property
    def is_connected(self) -> bool:
        return bool(self._handlers)

    def connect(self) -> None:
        if self._handlers:
            return
        for schema, signal, event_type in SETTINGS_SIGNALS:
            try:
                if schema not in self._settings:
                    self._settings[schema] = self._new_settings(schema)
                settings = self._settings[schema]
                handler_id = settings.connect(signal, self._make_publisher(event_type))
            except Exception as e:
                self.logger.warning(f"Could not watch {schema} {signal}: {e}")
                continue
            self._handlers.append((settings, handler_id))
        try:
            monitor = self._get_app_monitor()
            handler_id = monitor.connect(
                "changed", self._make_publisher(events.INSTALLED_CHANGED)
            )
            self._handlers.append((monitor, handler_id))
        except Exception as e:
            self.logger.warning(f"Could not watch installed applications: {e}")
        self.logger.debug(f"Watching {len(self._handlers)} host signals.")

    def disconnect(self) -> None:
        for source, handler_id in self._handlers:
            try:
                source.disconnect(handler_id)
            except Exception as e:
                self.logger.warning(f"Could not disconnect handler {handler_id}: {e}")
        self._handlers = []

    def _make_publisher(self, event_type: str) -> Callable[..., None]:
        def publish(*_args):
            self.event_bus.publish(event_type)

        return publish
