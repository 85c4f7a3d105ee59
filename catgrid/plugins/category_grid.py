from catgrid.shared.config_template import PLUGIN_ID


def get_plugin_metadata(host):
    """
    Returns the metadata for the Category Grid plugin.
    """
    about = (
        "Keeps the application grid grouped by category: every application "
        "joins its most popular declared category, categories in alphabetical order."
    )
    return {
        "id": PLUGIN_ID,
        "name": "Category Grid",
        "version": "1.0.0",
        "enabled": True,
        "priority": 10,
        "deps": [],
        "description": about,
    }


def get_plugin_class():
    """
    Imports the sorter stack and returns the CategoryGridPlugin class.
    """
    from catgrid.core import event_bus as events
    from catgrid.core.classifier import CategoryClassifier
    from catgrid.core.event_bus import EventBus
    from catgrid.core.reconciler import FOLDER_PLACEMENTS, FOLDERS_LAST, GridReconciler
    from catgrid.core.sorter import CategoryGridSorter
    from catgrid.plugins._base import BasePlugin
    from catgrid.shared.config_template import default_config
    from catgrid.shared.desktop_metadata import DesktopMetadataProvider
    from catgrid.shared.settings_watcher import SettingsWatcher

    defaults = default_config[PLUGIN_ID]

    class CategoryGridPlugin(BasePlugin):
        """
        Hosts the category sorter behind the host's grid view and event bus.
        """

        def __init__(self, host):
            super().__init__(host)
            self.grid = host.app_grid
            self.event_bus = getattr(host, "event_bus", None) or EventBus(
                self.scheduler, self.logger
            )
            self.metadata_provider = (
                getattr(host, "metadata_provider", None) or DesktopMetadataProvider()
            )
            self.watch_config = getattr(host, "watch_config", True)
            self.classifier = None
            self.reconciler = None
            self.sorter = None
            self.settings_watcher = None

        def _read_settings(self):
            ignored = self.get_plugin_setting_add_hint(
                "ignored_categories",
                defaults["ignored_categories"],
                defaults["ignored_categories_hint"],
            )
            if not isinstance(ignored, list):
                self.logger.warning(
                    f"ignored_categories must be a list, got {ignored!r}. Using defaults."
                )
                ignored = list(defaults["ignored_categories"])
            placement = self.get_plugin_setting_add_hint(
                "folder_placement",
                defaults["folder_placement"],
                defaults["folder_placement_hint"],
            )
            if placement not in FOLDER_PLACEMENTS:
                self.logger.warning(
                    f"Unknown folder_placement {placement!r}. Using '{FOLDERS_LAST}'."
                )
                placement = FOLDERS_LAST
            delay_ms = self.get_plugin_setting_add_hint(
                "reorder_delay_ms",
                defaults["reorder_delay_ms"],
                defaults["reorder_delay_ms_hint"],
            )
            if isinstance(delay_ms, bool) or not isinstance(delay_ms, int) or delay_ms < 0:
                self.logger.warning(
                    f"Invalid reorder_delay_ms {delay_ms!r}. Using {defaults['reorder_delay_ms']}."
                )
                delay_ms = defaults["reorder_delay_ms"]
            return [str(category) for category in ignored], placement, delay_ms

        def on_enable(self):
            self.logger.info("Initialize the category-based grid sorter")
            ignored, placement, delay_ms = self._read_settings()
            self.classifier = CategoryClassifier(
                self.metadata_provider, ignored, self.logger
            )
            self.reconciler = GridReconciler(
                self.grid, self.classifier, placement, self.logger
            )
            self.sorter = CategoryGridSorter(
                self.reconciler,
                self.grid,
                self.event_bus,
                self.scheduler,
                delay_ms=delay_ms,
                logger=self.logger,
            )
            self.settings_watcher = SettingsWatcher(
                self.event_bus,
                self.logger,
                settings_factory=getattr(self.host, "settings_factory", None),
                app_monitor=getattr(self.host, "app_monitor", None),
            )
            self.settings_watcher.connect()
            self.config_handler.add_reload_callback(self._on_config_reloaded)
            if self.watch_config:
                self.config_handler.start_watcher()
            self.sorter.start()

        def on_disable(self):
            if self.sorter:
                self.sorter.stop()
            if self.settings_watcher:
                self.settings_watcher.disconnect()
            self.config_handler.remove_reload_callback(self._on_config_reloaded)
            self.config_handler.stop_watcher()
            self.logger.info("Category grid disabled, sorter destroyed")

        def _on_config_reloaded(self, _config):
            ignored, placement, delay_ms = self._read_settings()
            self.classifier.ignored_categories = frozenset(ignored)
            self.reconciler.folder_placement = placement
            self.sorter.delay_ms = delay_ms
            self.event_bus.publish(events.LAYOUT_CHANGED)

        def about(self):
            """
            Groups the application grid by desktop-entry category and keeps it
            grouped as applications, folders and favorites change.
            """
            return self.about.__doc__

    return CategoryGridPlugin
