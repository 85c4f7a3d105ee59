from typing import Any, Optional


class CatgridError(Exception):
    """Base class for every error raised by the grid sorter."""


class MetadataLookupFailure(CatgridError):
    """The categories of a single application could not be read."""

    def __init__(self, app_id: str, reason: Any = None):
        self.app_id = app_id
        self.reason = reason
        super().__init__(f"Could not read categories for {app_id}: {reason}")


class EnumerationFailure(CatgridError):
    """The host could not list the items currently in the grid."""


class MutationFailure(CatgridError):
    """An add/move/remove call on the live grid failed."""

    def __init__(self, operation: Any, reason: Optional[BaseException] = None):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation.kind} failed for {operation.item_id}: {reason}")
