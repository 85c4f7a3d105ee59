"""Shared in-memory fakes for the grid, metadata, scheduler and logger."""

import pytest

from catgrid.core.classifier import CategoryClassifier
from catgrid.core.event_bus import EventBus
from catgrid.core.reconciler import GridReconciler


class FakeApp:
    def __init__(self, app_id, name):
        self._id = app_id
        self._name = name

    def get_id(self):
        return self._id

    def get_name(self):
        return self._name


class FakeItem:
    def __init__(self, item_id, name=None, app=True):
        self.id = item_id
        self.app = FakeApp(f"{item_id}.desktop", name or item_id) if app else None
        self.destroyed = 0

    def destroy(self):
        self.destroyed += 1

    def __repr__(self):
        return f"FakeItem({self.id!r})"


def folder(item_id):
    return FakeItem(item_id, app=False)


class FakeGrid:
    """Records every mutation instead of drawing anything."""

    def __init__(self, items=None, items_per_page=4):
        self.items = list(items or [])
        self.items_per_page = items_per_page
        self.ordered_items = []
        self.calls = []
        self.busy = False
        self.view_loaded = 0
        self.folders_refreshed = 0
        self.fail_on = {}

    def load_items(self):
        if "load" in self.fail_on:
            raise self.fail_on["load"]
        return list(self.items)

    def is_updating_pages(self):
        return self.busy

    def refresh_folders(self):
        self.folders_refreshed += 1

    def _record(self, kind, item, *where):
        if (kind, item.id) in self.fail_on:
            raise self.fail_on[(kind, item.id)]
        self.calls.append((kind, item.id) + where)

    def add_item(self, item, page, position):
        self._record("add", item, page, position)

    def move_item(self, item, page, position):
        self._record("move", item, page, position)

    def remove_item(self, item):
        self._record("remove", item)

    def emit_view_loaded(self):
        self.view_loaded += 1

    def calls_of(self, kind):
        return [call for call in self.calls if call[0] == kind]


class FakeMetadata:
    def __init__(self, categories=None, failing=()):
        self.categories = dict(categories or {})
        self.failing = set(failing)
        self.lookups = []

    def get_categories(self, app_id):
        self.lookups.append(app_id)
        if app_id in self.failing:
            raise LookupError(f"no entry for {app_id}")
        return self.categories.get(app_id)


class ManualScheduler:
    """GLib-like scheduler whose sources only run when the test says so."""

    def __init__(self):
        self._next_id = 1
        self.timeouts = {}
        self.idles = {}
        self.removed = []

    def _add(self, table, entry):
        source_id = self._next_id
        self._next_id += 1
        table[source_id] = entry
        return source_id

    def timeout_add(self, interval_ms, callback, *args):
        return self._add(self.timeouts, (interval_ms, callback, args))

    def idle_add(self, callback, *args):
        return self._add(self.idles, (callback, args))

    def source_remove(self, source_id):
        self.removed.append(source_id)
        self.timeouts.pop(source_id, None)
        self.idles.pop(source_id, None)

    def run_idle(self):
        while self.idles:
            source_id = min(self.idles)
            callback, args = self.idles.pop(source_id)
            if callback(*args):
                self.idles[source_id] = (callback, args)

    def run_timeouts(self):
        for source_id in sorted(self.timeouts):
            entry = self.timeouts.pop(source_id, None)
            if entry is None:
                continue
            _interval, callback, args = entry
            if callback(*args):
                self.timeouts[source_id] = entry

    def run_all(self):
        while self.idles or self.timeouts:
            self.run_idle()
            self.run_timeouts()


class RecordingLogger:
    def __init__(self):
        self.records = []

    def _log(self, level, message, **kwargs):
        self.records.append((level, message))

    def debug(self, message, **kwargs):
        self._log("debug", message)

    def info(self, message, **kwargs):
        self._log("info", message)

    def warning(self, message, **kwargs):
        self._log("warning", message)

    def error(self, message, **kwargs):
        self._log("error", message)

    def exception(self, message, **kwargs):
        self._log("exception", message)

    def critical(self, message, **kwargs):
        self._log("critical", message)

    def messages(self, level):
        return [message for lvl, message in self.records if lvl == level]


def metadata_for(desktop_entries):
    """Builds FakeMetadata from {item_id: 'Cat1;Cat2;'}."""
    return FakeMetadata({f"{item_id}.desktop": raw for item_id, raw in desktop_entries.items()})


@pytest.fixture
def logger():
    return RecordingLogger()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def bus(scheduler, logger):
    return EventBus(scheduler, logger)


@pytest.fixture
def make_reconciler(logger):
    def factory(grid, categories, ignored=(), folder_placement="last"):
        classifier = CategoryClassifier(metadata_for(categories), ignored, logger)
        return GridReconciler(grid, classifier, folder_placement, logger)

    return factory
