from typing import Any, Callable, Optional

from catgrid.core.errors import MetadataLookupFailure


class DesktopMetadataProvider:
    """Reads the ``Categories`` key of installed desktop entries."""

    def __init__(self, app_info_factory: Optional[Callable[[str], Any]] = None):
        self._app_info_factory = app_info_factory

    @property
    def app_info_factory(self) -> Callable[[str], Any]:
        if self._app_info_factory is None:
            from gi.repository import Gio  # pyright: ignore

            self._app_info_factory = Gio.DesktopAppInfo.new
        return self._app_info_factory

    def get_categories(self, app_id: str) -> Optional[str]:
        """
        Returns the unparsed categories string, or None when the entry
        declares none.

        Raises:
            MetadataLookupFailure: no desktop entry for ``app_id`` or the
                lookup itself failed.
        """
        try:
            info = self.app_info_factory(app_id)
        except Exception as e:
            raise MetadataLookupFailure(app_id, e) from e
        if info is None:
            raise MetadataLookupFailure(app_id, "no desktop entry")
        try:
            return info.get_categories()
        except Exception as e:
            raise MetadataLookupFailure(app_id, e) from e
