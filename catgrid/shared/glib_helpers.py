from typing import Any, Callable


class GLibScheduler:
    """
    Schedules work on the GLib main loop.

    GLib is imported on first use so the sorter core can be driven by any
    other scheduler without PyGObject installed.
    """

    def __init__(self):
        self._glib: Any = None

    @property
    def glib(self) -> Any:
        if self._glib is None:
            from gi.repository import GLib  # pyright: ignore

            self._glib = GLib
        return self._glib

    def timeout_add(self, interval_ms: int, callback: Callable[..., Any], *args) -> int:
        return self.glib.timeout_add(interval_ms, callback, *args)

    def idle_add(self, callback: Callable[..., Any], *args) -> int:
        return self.glib.idle_add(callback, *args)

    def source_remove(self, source_id: int) -> None:
        self.glib.Source.remove(source_id)
