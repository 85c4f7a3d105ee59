import collections
from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog

from catgrid.core.errors import MetadataLookupFailure
from catgrid.core.interfaces import GridItem, MetadataProvider

DEFAULT_CATEGORY = "Other"


def parse_categories(raw: Optional[str]) -> List[str]:
    """
    Splits a desktop-entry ``Categories`` value into labels.

    Empty tokens (including the customary trailing ``;``) are dropped and
    duplicates are removed keeping the first occurrence. An empty result
    becomes ``["Other"]``.
    """
    categories: List[str] = []
    if raw:
        for token in raw.strip().split(";"):
            token = token.strip()
            if token and token not in categories:
                categories.append(token)
    return categories or [DEFAULT_CATEGORY]


def filter_categories(categories: Sequence[str], ignored: Iterable[str]) -> List[str]:
    """Drops ignored labels unless that would leave nothing to choose from."""
    ignored = set(ignored)
    kept = [category for category in categories if category not in ignored]
    return kept or list(categories)


class CategoryClassifier:
    """
    Assigns every application item exactly one category label.

    The label is the most popular of the item's own (filtered) categories
    across the whole pass; equal counts resolve to the smaller label.
    """

    def __init__(
        self,
        metadata_provider: MetadataProvider,
        ignored_categories: Iterable[str] = (),
        logger: Any = None,
    ):
        self.metadata_provider = metadata_provider
        self.ignored_categories = frozenset(ignored_categories)
        self.logger = logger or structlog.get_logger()

    def categories_for(self, item: GridItem) -> List[str]:
        """Returns the filtered category set of one application item."""
        app_id = item.id
        raw = None
        try:
            app_id = item.app.get_id()
            raw = self.metadata_provider.get_categories(app_id)
        except MetadataLookupFailure as e:
            self.logger.warning(f"{e}. Using '{DEFAULT_CATEGORY}'.")
        except Exception as e:
            self.logger.warning(
                f"Error reading categories for {app_id}: {e}. Using '{DEFAULT_CATEGORY}'."
            )
        return filter_categories(parse_categories(raw), self.ignored_categories)

    @staticmethod
    def count_categories(
        category_sets: Iterable[Sequence[str]],
    ) -> "collections.Counter[str]":
        counts: "collections.Counter[str]" = collections.Counter()
        for categories in category_sets:
            counts.update(set(categories))
        return counts

    @staticmethod
    def choose_category(categories: Sequence[str], counts: Dict[str, int]) -> str:
        if len(categories) == 1:
            return categories[0]
        return min(categories, key=lambda category: (-counts.get(category, 0), category))

    def classify(self, items: Iterable[GridItem]) -> Dict[str, str]:
        """
        Maps each application item's id to its chosen category.

        Counts are built over the complete set before any choice is made, so
        the result does not depend on the order ``items`` is given in.
        """
        category_sets: Dict[str, List[str]] = {}
        for item in items:
            if item.id in category_sets:
                continue
            category_sets[item.id] = self.categories_for(item)
        counts = self.count_categories(category_sets.values())
        self.logger.debug(f"Category counts: {dict(sorted(counts.items()))}")
        return {
            item_id: self.choose_category(categories, counts)
            for item_id, categories in category_sets.items()
        }

    @staticmethod
    def group(
        items: Iterable[GridItem], assignment: Dict[str, str]
    ) -> Dict[str, List[GridItem]]:
        """Buckets items by label, categories and names in ascending order."""
        groups: Dict[str, List[GridItem]] = {}
        for item in items:
            category = assignment.get(item.id, DEFAULT_CATEGORY)
            groups.setdefault(category, []).append(item)
        return {
            category: sorted(groups[category], key=_display_name_key)
            for category in sorted(groups)
        }


def _display_name_key(item: GridItem):
    name = item.app.get_name() or ""
    return (name.casefold(), name, item.id)
