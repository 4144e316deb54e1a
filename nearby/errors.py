"""
Error taxonomy for proximity search.

QueryValidationError -> caller input is wrong, reported as 400, storage never touched.
StorageError -> a range query failed or timed out, whole search aborted (500).
DataError -> a single stored entity is unusable; it is skipped, never surfaced.
"""


class SearchError(Exception):
    """Base class for proximity search failures."""


class QueryValidationError(SearchError, ValueError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class StorageError(SearchError, RuntimeError):
    """A range query against the storage collaborator failed or exceeded the deadline."""


class DataError(SearchError):
    def __init__(self, entity_id: str | None, reason: str):
        super().__init__(f"entity {entity_id!r}: {reason}")
        self.entity_id = entity_id
        self.reason = reason
