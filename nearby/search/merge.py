"""
Candidate refinement and dedup.

Rows coming back from range queries are turned into candidates with an exact
haversine distance. The merger keeps one candidate per business id, always the
one with the smallest distance seen, whichever bound or pass produced it.
"""
import logging
from typing import Any, Iterable, Mapping, NamedTuple

from nearby.data.geo import refine
from nearby.errors import DataError

logger = logging.getLogger(__name__)


class Candidate(NamedTuple):
    business_id: str
    name: str
    doc: dict[str, Any]
    distance_m: float


def refine_rows(
    center: tuple[float, float],
    rows: Iterable[Mapping[str, Any]],
    radius_m: float,
) -> list[Candidate]:
    """
    Candidates within radius_m of center. Distances are always recomputed here,
    so a pass never inherits a distance measured for another radius.
    Rows without an id, a geohash, or usable coordinates are skipped.
    """
    out: list[Candidate] = []
    for row in rows:
        business_id = row.get("id")
        try:
            if not isinstance(business_id, str) or not business_id:
                raise DataError(None, "missing id")
            if not row.get("geohash"):
                raise DataError(business_id, "missing geohash")
            distance = refine(center, row)
        except DataError as e:
            logger.debug("telemetry nearby_row_skipped reason=%s", e)
            continue
        if distance > radius_m:
            continue
        name = row.get("name")
        out.append(
            Candidate(
                business_id=business_id,
                name=name if isinstance(name, str) else "",
                doc=dict(row),
                distance_m=distance,
            )
        )
    return out


class CandidateMerger:
    """Identity -> best (minimum distance) candidate."""

    def __init__(self) -> None:
        self._best: dict[str, Candidate] = {}

    def __len__(self) -> int:
        return len(self._best)

    def offer(self, candidate: Candidate) -> bool:
        """Keep candidate if it is new or closer than the current one. Returns True when kept."""
        current = self._best.get(candidate.business_id)
        if current is not None and current.distance_m <= candidate.distance_m:
            return False
        self._best[candidate.business_id] = candidate
        return True

    def offer_all(self, candidates: Iterable[Candidate]) -> None:
        for c in candidates:
            self.offer(c)

    def merge(self, other: "CandidateMerger") -> None:
        self.offer_all(other.candidates())

    def get(self, business_id: str) -> Candidate | None:
        return self._best.get(business_id)

    def candidates(self) -> list[Candidate]:
        return list(self._best.values())
