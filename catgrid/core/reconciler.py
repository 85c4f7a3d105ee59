from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import structlog

from catgrid.core.classifier import CategoryClassifier
from catgrid.core.errors import EnumerationFailure, MutationFailure
from catgrid.core.interfaces import GridItem, GridView

FOLDERS_FIRST = "first"
FOLDERS_LAST = "last"
FOLDER_PLACEMENTS = (FOLDERS_FIRST, FOLDERS_LAST)

ADD = "add"
MOVE = "move"
REMOVE = "remove"
RELEASE = "release"


@dataclass(frozen=True)
class GridOperation:
    kind: str
    item_id: str
    page: Optional[int] = None
    position: Optional[int] = None


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    target: List[GridItem]
    operations: List[GridOperation] = field(default_factory=list)
    failures: List[GridOperation] = field(default_factory=list)
    categories: Dict[str, List[str]] = field(default_factory=dict)

    def _of_kind(self, kind: str) -> List[GridOperation]:
        return [op for op in self.operations if op.kind == kind]

    @property
    def added(self) -> List[GridOperation]:
        return self._of_kind(ADD)

    @property
    def moved(self) -> List[GridOperation]:
        return self._of_kind(MOVE)

    @property
    def removed(self) -> List[GridOperation]:
        return self._of_kind(REMOVE)

    @property
    def target_ids(self) -> List[str]:
        return [item.id for item in self.target]


class GridReconciler:
    """
    Rebuilds the live grid into category order with as few grid mutations as
    possible. Item ids are the only identity used when matching the live
    ordering against a fresh enumeration.
    """

    def __init__(
        self,
        grid: GridView,
        classifier: CategoryClassifier,
        folder_placement: str = FOLDERS_LAST,
        logger: Any = None,
    ):
        if folder_placement not in FOLDER_PLACEMENTS:
            raise ValueError(
                f"folder_placement must be one of {FOLDER_PLACEMENTS}, got {folder_placement!r}"
            )
        self.grid = grid
        self.classifier = classifier
        self.folder_placement = folder_placement
        self.logger = logger or structlog.get_logger()
        # Items whose last move failed; they still sit at their old slot.
        self._misplaced_ids: Set[str] = set()
        # Items already taken off the grid whose destroy() failed.
        self._pending_releases: Dict[str, GridItem] = {}

    @staticmethod
    def merge_items(
        previous: Sequence[GridItem], fresh: Sequence[GridItem]
    ) -> List[GridItem]:
        """
        Keeps the previous ordering for items that still exist and appends new
        arrivals in enumeration order.
        """
        fresh_ids = {item.id for item in fresh}
        merged: List[GridItem] = []
        seen = set()
        for item in previous:
            if item.id in fresh_ids and item.id not in seen:
                merged.append(item)
                seen.add(item.id)
        for item in fresh:
            if item.id not in seen:
                merged.append(item)
                seen.add(item.id)
        return merged

    def build_target_order(
        self, merged: Sequence[GridItem]
    ) -> Tuple[List[GridItem], Dict[str, List[GridItem]]]:
        app_items = [item for item in merged if item.app is not None]
        folder_items = [item for item in merged if item.app is None]
        assignment = self.classifier.classify(app_items)
        groups = self.classifier.group(app_items, assignment)
        target: List[GridItem] = []
        for category_items in groups.values():
            target.extend(category_items)
        if self.folder_placement == FOLDERS_FIRST:
            target = folder_items + target
        else:
            target.extend(folder_items)
        return target, groups

    def _load_items(self, previous: Sequence[GridItem]) -> List[GridItem]:
        try:
            items = self.grid.load_items()
        except Exception as e:
            raise EnumerationFailure(f"Item enumeration raised: {e}") from e
        if items is None:
            raise EnumerationFailure("Item enumeration returned nothing")
        try:
            items = list(items)
        except TypeError as e:
            raise EnumerationFailure(
                f"Item enumeration returned {type(items).__name__}"
            ) from e
        if not items and previous:
            raise EnumerationFailure(
                f"Item enumeration is empty while {len(previous)} items are placed"
            )
        return items

    def reconcile(self) -> Optional[ReconcileResult]:
        """
        Runs one full pass: enumerate, merge, classify, diff and apply.

        Returns None when the pass was aborted before touching the grid.
        """
        try:
            self.grid.refresh_folders()
        except Exception as e:
            self.logger.warning(f"Folder views could not be refreshed: {e}")

        previous = list(self.grid.ordered_items or [])
        try:
            fresh = self._load_items(previous)
        except EnumerationFailure as e:
            self.logger.error(f"Reconciliation aborted, grid left untouched: {e}")
            return None

        items_per_page = self.grid.items_per_page
        if not isinstance(items_per_page, int) or items_per_page < 1:
            self.logger.error(
                f"Reconciliation aborted, invalid items per page: {items_per_page!r}"
            )
            return None

        merged = self.merge_items(previous, fresh)
        target, groups = self.build_target_order(merged)
        self.logger.info(f"Categories found: {', '.join(groups)}")

        result = ReconcileResult(
            target=target,
            categories={
                category: [item.id for item in items]
                for category, items in groups.items()
            },
        )
        failed_removals = self._remove_stale(previous, result)
        failed_add_ids = self._place_items(previous, items_per_page, result)

        stored = [item for item in target if item.id not in failed_add_ids]
        stored.extend(failed_removals)
        self.grid.ordered_items = stored
        try:
            self.grid.emit_view_loaded()
        except Exception as e:
            self.logger.error(f"view-loaded notification failed: {e}")
        self.logger.info(
            f"Redisplay complete, {len(target)} icons placed "
            f"({len(result.added)} added, {len(result.moved)} moved, "
            f"{len(result.removed)} removed, {len(result.failures)} failed)"
        )
        return result

    def _remove_stale(
        self, previous: Sequence[GridItem], result: ReconcileResult
    ) -> List[GridItem]:
        for item in list(self._pending_releases.values()):
            self._release(item, result)

        target_ids = set(result.target_ids)
        failed: List[GridItem] = []
        removed = set()
        for item in previous:
            if item.id in target_ids or item.id in removed:
                continue
            operation = GridOperation(REMOVE, item.id)
            try:
                self.grid.remove_item(item)
            except Exception as e:
                self._record_failure(result, MutationFailure(operation, e))
                failed.append(item)
                continue
            removed.add(item.id)
            result.operations.append(operation)
            self._release(item, result)
        return failed

    def _release(self, item: GridItem, result: ReconcileResult) -> None:
        """Destroys an item that is no longer on the grid, at most once."""
        try:
            item.destroy()
        except Exception as e:
            self._pending_releases[item.id] = item
            self._record_failure(
                result, MutationFailure(GridOperation(RELEASE, item.id), e)
            )
            return
        self._pending_releases.pop(item.id, None)

    def _place_items(
        self,
        previous: Sequence[GridItem],
        items_per_page: int,
        result: ReconcileResult,
    ) -> set:
        target_ids = set(result.target_ids)
        survivors = [item for item in previous if item.id in target_ids]
        current: Dict[str, Tuple[int, int]] = {}
        for index, item in enumerate(survivors):
            current.setdefault(item.id, divmod(index, items_per_page))

        failed_add_ids = set()
        failed_move_ids = set()
        for index, item in enumerate(result.target):
            page, position = divmod(index, items_per_page)
            if item.id not in current:
                operation = GridOperation(ADD, item.id, page, position)
                mutate = self.grid.add_item
            elif (
                current[item.id] != (page, position)
                or item.id in self._misplaced_ids
            ):
                operation = GridOperation(MOVE, item.id, page, position)
                mutate = self.grid.move_item
            else:
                continue
            try:
                mutate(item, page, position)
            except Exception as e:
                self._record_failure(result, MutationFailure(operation, e))
                if operation.kind == ADD:
                    failed_add_ids.add(item.id)
                else:
                    failed_move_ids.add(item.id)
                continue
            result.operations.append(operation)
        self._misplaced_ids = failed_move_ids
        return failed_add_ids

    def _record_failure(self, result: ReconcileResult, failure: MutationFailure):
        result.failures.append(failure.operation)
        self.logger.error(f"Skipping item for this pass: {failure}")
