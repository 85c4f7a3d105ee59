"""
Protocols the host toolkit implements so the sorter never has to reach into
private grid internals. Folder items carry ``app = None``.
"""

from typing import Any, Callable, List, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class AppInfo(Protocol):
    def get_id(self) -> str: ...

    def get_name(self) -> str: ...


@runtime_checkable
class GridItem(Protocol):
    id: str
    app: Optional[AppInfo]

    def destroy(self) -> None: ...


class GridView(Protocol):
    items_per_page: int
    ordered_items: List[GridItem]

    def load_items(self) -> Optional[Sequence[GridItem]]: ...

    def is_updating_pages(self) -> bool: ...

    def refresh_folders(self) -> None: ...

    def add_item(self, item: GridItem, page: int, position: int) -> None: ...

    def move_item(self, item: GridItem, page: int, position: int) -> None: ...

    def remove_item(self, item: GridItem) -> None: ...

    def emit_view_loaded(self) -> None: ...


class MetadataProvider(Protocol):
    def get_categories(self, app_id: str) -> Optional[str]: ...


class Scheduler(Protocol):
    def timeout_add(self, interval_ms: int, callback: Callable[..., Any], *args) -> int: ...

    def idle_add(self, callback: Callable[..., Any], *args) -> int: ...

    def source_remove(self, source_id: int) -> None: ...
