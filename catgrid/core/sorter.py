from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from catgrid.core import event_bus as events
from catgrid.core.event_bus import EventBus
from catgrid.core.interfaces import GridView, Scheduler
from catgrid.core.reconciler import GridReconciler

APP_GRID_STATE = "app-grid"

TRIGGER_REASONS: Dict[str, str] = {
    events.LAYOUT_CHANGED: "App grid layout changed, triggering reorder...",
    events.FAVORITES_CHANGED: "Favorite apps changed, triggering reorder...",
    events.ITEM_DRAG_END: "App movement detected, triggering reorder...",
    events.FOLDERS_CHANGED: "Folders changed, triggering reorder...",
    events.INSTALLED_CHANGED: "Installed apps changed, triggering reorder...",
    events.APP_GRID_OPENED: "App grid opened, triggering reorder...",
}


class CategoryGridSorter:
    """
    Owns the reorder lifecycle: listens for host triggers, coalesces them and
    runs at most one reconciliation pass at a time after a short delay.
    """

    def __init__(
        self,
        reconciler: GridReconciler,
        grid: GridView,
        event_bus: EventBus,
        scheduler: Scheduler,
        delay_ms: int = 100,
        logger: Any = None,
    ):
        self.reconciler = reconciler
        self.grid = grid
        self.event_bus = event_bus
        self.scheduler = scheduler
        self.delay_ms = delay_ms
        self.logger = logger or structlog.get_logger()
        self.last_result = None
        self._currently_updating = False
        self._reorder_timeout_id: Optional[int] = None
        self._subscriptions: List[Tuple[str, Callable]] = []
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_pending(self) -> bool:
        return self._reorder_timeout_id is not None

    def start(self) -> None:
        """Connects the trigger listeners and performs the initial grouping."""
        if self._started:
            return
        self._started = True
        self.logger.info("Connecting listeners...")
        for event_type, reason in TRIGGER_REASONS.items():
            self._subscribe(event_type, self._make_trigger(reason))
        self._subscribe(events.OVERVIEW_STATE_CHANGED, self._on_overview_state_changed)
        self.reorder_grid("Reordering app grid")

    def stop(self) -> None:
        """Disconnects listeners and cancels any pending reorder."""
        if not self._started and self._reorder_timeout_id is None:
            return
        self.logger.info("Destroying sorter, disconnecting listeners...")
        for event_type, callback in self._subscriptions:
            self.event_bus.unsubscribe_from_event(event_type, callback)
        self._subscriptions = []
        if self._reorder_timeout_id is not None:
            self.scheduler.source_remove(self._reorder_timeout_id)
            self._reorder_timeout_id = None
        self._currently_updating = False
        self._started = False

    def reorder_grid(self, reason: str) -> bool:
        """
        Schedules one reconciliation pass.

        Returns False when the request was dropped because a pass is already
        in flight or the grid is mid page update; the next trigger will ask
        again.
        """
        self.logger.info(reason)
        if self._currently_updating:
            self.logger.debug("Reorder request dropped: a pass is already in flight.")
            return False
        try:
            busy = self.grid.is_updating_pages()
        except Exception as e:
            self.logger.warning(f"Could not query grid page state: {e}")
            busy = True
        if busy:
            self.logger.debug("Reorder request dropped: grid pages are updating.")
            return False
        self._currently_updating = True
        self._reorder_timeout_id = self.scheduler.timeout_add(
            self.delay_ms, self._on_reorder_timeout
        )
        return True

    def _on_reorder_timeout(self) -> bool:
        self._reorder_timeout_id = None
        try:
            self.last_result = self.reconciler.reconcile()
        except Exception as e:
            self.logger.error(f"Error while reordering app grid: {e}", exc_info=True)
        finally:
            self._currently_updating = False
        return False

    def _subscribe(self, event_type: str, callback: Callable) -> None:
        self.event_bus.subscribe_to_event(event_type, callback, "category_grid")
        self._subscriptions.append((event_type, callback))

    def _make_trigger(self, reason: str) -> Callable[[Dict[str, Any]], None]:
        def trigger(_msg):
            self.reorder_grid(reason)

        return trigger

    def _on_overview_state_changed(self, msg: Dict[str, Any]) -> None:
        if msg.get("state") == APP_GRID_STATE:
            self.reorder_grid(TRIGGER_REASONS[events.APP_GRID_OPENED])
