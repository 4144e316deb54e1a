"""Final ordering and response shape for nearby results."""
import math
from typing import Any, Iterable

from nearby.search.merge import Candidate


def round_meters(distance_m: float) -> int:
    # Half-up, not banker's rounding: 1111.5 -> 1112
    return int(math.floor(distance_m + 0.5))


def rank(candidates: Iterable[Candidate]) -> list[Candidate]:
    """
    Ascending by displayed (rounded) distance, then name, then id.
    Two results showing the same distanceMeters are ordered by name.
    """
    return sorted(candidates, key=lambda c: (round_meters(c.distance_m), c.name, c.business_id))


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(result) else result


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def to_business(candidate: Candidate) -> dict[str, Any]:
    """Normalize a stored document to the public business shape with defaults."""
    data = candidate.doc
    state = data.get("state")
    return {
        "id": candidate.business_id,
        "businessId": candidate.business_id,
        "ownerId": data.get("ownerId") or "",
        "name": data.get("name") or "",
        "description": data.get("description") or "",
        "direction": data.get("direction") or "",
        "phone": data.get("phone") or "",
        "state": True if state is None else state,
        "date": data.get("date") or None,
        "logoUrl": data.get("logoUrl") or None,
        "isOpen": bool(data.get("isOpen")),
        "hasDelivery": bool(data.get("hasDelivery")),
        "deliveryPrice": _number(data.get("deliveryPrice")),
        "latitude": data.get("latitude"),
        "longitude": data.get("longitude"),
        "geohash": data.get("geohash") or None,
        "categories": _list(data.get("categories")),
        "schedule": _list(data.get("schedule")),
        "addressNotes": data.get("addressNotes") or None,
        "bank": data.get("bank") or "",
        "phonePayment": data.get("phonePayment") or "",
        "idCardPayment": data.get("idCardPayment") or "",
        "distanceMeters": round_meters(candidate.distance_m),
    }
