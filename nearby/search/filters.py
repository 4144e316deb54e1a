"""Attribute predicates: pushed down to storage where indexed, then re-checked in process."""
from typing import Any, Mapping, NamedTuple

from nearby.data.businesses_repo import FILTER_COLUMNS


class NearbyFilters(NamedTuple):
    has_delivery: bool | None = None
    is_open: bool | None = None
    category: str | None = None


def _normalize_category(value: Any) -> str | None:
    # Tags are plain strings or {"name": ...} objects
    if isinstance(value, Mapping):
        value = value.get("name")
    if not isinstance(value, str):
        return None
    return value.strip().lower()


def _boolean_predicates(filters: NearbyFilters) -> dict[str, bool]:
    predicates: dict[str, bool] = {"state": True}
    if filters.has_delivery is not None:
        predicates["hasDelivery"] = filters.has_delivery
    if filters.is_open is not None:
        predicates["isOpen"] = filters.is_open
    return predicates


def storage_filters(filters: NearbyFilters) -> dict[str, bool]:
    """Equality predicates the store can apply before returning rows."""
    return {k: v for k, v in _boolean_predicates(filters).items() if k in FILTER_COLUMNS}


def category_matches(doc: Mapping[str, Any], category: str) -> bool:
    wanted = category.strip().lower()
    tags = doc.get("categories")
    if not isinstance(tags, list):
        return False
    return any(_normalize_category(tag) == wanted for tag in tags)


def matches(doc: Mapping[str, Any], filters: NearbyFilters) -> bool:
    """Authoritative check; only active businesses pass, other predicates apply when given."""
    for field, expected in _boolean_predicates(filters).items():
        if doc.get(field) is not expected:
            return False
    if filters.category is not None and filters.category.strip():
        return category_matches(doc, filters.category)
    return True
