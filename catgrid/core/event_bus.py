import collections
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from catgrid.core.interfaces import Scheduler

LAYOUT_CHANGED = "layout-changed"
FAVORITES_CHANGED = "favorites-changed"
ITEM_DRAG_END = "item-drag-end"
FOLDERS_CHANGED = "folders-changed"
INSTALLED_CHANGED = "installed-changed"
APP_GRID_OPENED = "app-grid-opened"
OVERVIEW_STATE_CHANGED = "overview-state-changed"


class EventBus:
    """
    Central publish/subscribe hub between the host and the sorter.

    Published events are queued and drained from the scheduler's idle
    callback, so a burst of host signals is delivered in one batch on the
    main loop instead of re-entering subscribers from inside a signal
    emission.
    """

    def __init__(self, scheduler: Scheduler, logger: Any = None):
        self.scheduler = scheduler
        self.logger = logger or structlog.get_logger()
        self.event_subscribers: Dict[str, List[Tuple[Callable, Optional[str]]]] = {}
        self.event_queue: collections.deque = collections.deque()
        self.is_processing_events = False
        self._drain_source_id: Optional[int] = None

    def subscribe_to_event(
        self, event_type: str, callback: Callable, plugin_name: Optional[str] = None
    ) -> None:
        """
        Registers ``callback`` for ``event_type``.

        Args:
            event_type (str): The type of event to subscribe to.
            callback (function): Called with the event message dict.
            plugin_name (str, optional): Name used in log lines.
        """
        self.event_subscribers.setdefault(event_type, []).append(
            (callback, plugin_name)
        )
        if plugin_name:
            self.logger.debug(f"Plugin '{plugin_name}' subscribed to event: {event_type}")
        else:
            self.logger.debug(f"Anonymous subscriber registered for event: {event_type}")

    def unsubscribe_from_event(self, event_type: str, callback: Callable) -> None:
        subscribers = self.event_subscribers.get(event_type)
        if not subscribers:
            return
        remaining = [entry for entry in subscribers if entry[0] != callback]
        if remaining:
            self.event_subscribers[event_type] = remaining
        else:
            del self.event_subscribers[event_type]
        self.logger.debug(f"Unsubscribed from event: {event_type}")

    def publish(self, event_type: str, msg: Optional[Dict[str, Any]] = None) -> None:
        event = dict(msg or {})
        event["event"] = event_type
        self.event_queue.append(event)
        self.logger.debug(f"Event queued. Current queue size: {len(self.event_queue)}")
        if self._drain_source_id is None:
            self._drain_source_id = self.scheduler.idle_add(self._process_queued_events)

    def _process_queued_events(self) -> bool:
        self._drain_source_id = None
        if self.is_processing_events:
            return False
        self.is_processing_events = True
        try:
            while self.event_queue:
                msg = self.event_queue.popleft()
                event_type = msg["event"]
                for callback, plugin_name in list(
                    self.event_subscribers.get(event_type, [])
                ):
                    try:
                        callback(msg)
                    except Exception as e:
                        self.logger.error(
                            f"Error executing callback for event '{event_type}': {e}",
                            exc_info=True,
                        )
                        continue
                    if plugin_name:
                        self.logger.debug(
                            f"Event '{event_type}' triggered for plugin '{plugin_name}'"
                        )
        finally:
            self.is_processing_events = False
        return False

    def clear(self) -> None:
        self.event_queue.clear()
        if self._drain_source_id is not None:
            self.scheduler.source_remove(self._drain_source_id)
            self._drain_source_id = None
