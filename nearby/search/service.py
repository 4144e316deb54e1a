"""
Proximity search orchestration.

Flow for one query:
  COLLECT_WIDE -> REFINE_WIDE
  -> (two_pass and radius_km > threshold: COLLECT_NARROW -> REFINE_NARROW -> MERGE)
  -> FINAL_FILTER -> RANK -> DONE

The wide pass reads bounds for a radius enlarged by wide_margin so entities at
the fringe of coarse geohash cells are not lost; the narrow pass re-reads a
smaller disc and can only add entities or lower their distance. The final
filter against the requested radius and attribute predicates is authoritative.
"""
import logging
import math
import time
from typing import Any, NamedTuple

from nearby.data.businesses_repo import BusinessStore
from nearby.data.geo import LAT_MAX, LAT_MIN, LNG_MAX, LNG_MIN
from nearby.data.geohash import GEOHASH_PRECISION, query_bounds
from nearby.errors import QueryValidationError
from nearby.search.executor import fetch_bounds
from nearby.search.filters import NearbyFilters, matches, storage_filters
from nearby.search.merge import CandidateMerger, refine_rows
from nearby.search.ranker import rank, to_business

logger = logging.getLogger(__name__)

STRATEGY_SINGLE = "single"
STRATEGY_TWO_PASS = "two_pass"
STRATEGIES = frozenset({STRATEGY_SINGLE, STRATEGY_TWO_PASS})

DEFAULT_MAX_RADIUS_KM = 100.0
DEFAULT_TWO_PASS_THRESHOLD_KM = 10.0
DEFAULT_WIDE_MARGIN = 0.2
DEFAULT_NARROW_MARGIN = 0.2
DEFAULT_TIMEOUT_SECONDS = 10.0


class NearbyQuery(NamedTuple):
    lat: Any
    lng: Any
    radius_km: Any = 10.0
    filters: NearbyFilters = NearbyFilters()


class SearchPass(NamedTuple):
    radius_m: float
    bounds: int
    rows: int
    candidates: int


class SearchResult(NamedTuple):
    businesses: list[dict[str, Any]]
    strategy: str
    passes: list[SearchPass]
    elapsed_ms: float

    def meta(self) -> dict[str, Any]:
        return {
            "elapsedMs": round(self.elapsed_ms, 1),
            "strategy": self.strategy,
            "passes": len(self.passes),
            "boundsQueried": sum(p.bounds for p in self.passes),
            "rowsScanned": sum(p.rows for p in self.passes),
        }


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (math.isnan(value) or math.isinf(value))


def validate_query(query: NearbyQuery, max_radius_km: float = DEFAULT_MAX_RADIUS_KM) -> None:
    """Raise QueryValidationError when lat, lng or radius are missing or out of range."""
    if not _is_number(query.lat):
        raise QueryValidationError("lat", "lat must be a number")
    if not _is_number(query.lng):
        raise QueryValidationError("lng", "lng must be a number")
    if not (LAT_MIN <= query.lat <= LAT_MAX):
        raise QueryValidationError("lat", f"lat must be between {LAT_MIN} and {LAT_MAX}")
    if not (LNG_MIN <= query.lng <= LNG_MAX):
        raise QueryValidationError("lng", f"lng must be between {LNG_MIN} and {LNG_MAX}")
    if not _is_number(query.radius_km):
        raise QueryValidationError("radiusKm", "radiusKm must be a number")
    if not (0 < query.radius_km <= max_radius_km):
        raise QueryValidationError("radiusKm", f"radiusKm must be greater than 0 and at most {max_radius_km:g}")


class ProximitySearch:
    """Nearby search over an injected BusinessStore."""

    def __init__(
        self,
        store: BusinessStore,
        *,
        strategy: str = STRATEGY_TWO_PASS,
        max_radius_km: float = DEFAULT_MAX_RADIUS_KM,
        two_pass_threshold_km: float = DEFAULT_TWO_PASS_THRESHOLD_KM,
        wide_margin: float = DEFAULT_WIDE_MARGIN,
        narrow_margin: float = DEFAULT_NARROW_MARGIN,
        timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
        key_precision: int = GEOHASH_PRECISION,
    ):
        if strategy not in STRATEGIES:
            raise ValueError(f"strategy must be one of {sorted(STRATEGIES)}, got {strategy!r}")
        if wide_margin < 0 or not (0 <= narrow_margin < 1):
            raise ValueError("wide_margin must be >= 0 and narrow_margin in [0, 1)")
        self.store = store
        self.strategy = strategy
        self.max_radius_km = max_radius_km
        self.two_pass_threshold_km = two_pass_threshold_km
        self.wide_margin = wide_margin
        self.narrow_margin = narrow_margin
        self.timeout_seconds = timeout_seconds
        self.key_precision = key_precision

    def pass_radii_m(self, radius_km: float) -> list[float]:
        """Radius in meters of each pass, in the order they run."""
        radius_m = radius_km * 1000.0
        if self.strategy == STRATEGY_TWO_PASS and radius_km > self.two_pass_threshold_km:
            return [radius_m * (1 + self.wide_margin), radius_m * (1 - self.narrow_margin)]
        return [radius_m]

    async def _run_pass(
        self,
        center: tuple[float, float],
        radius_m: float,
        pushdown: dict[str, bool],
        merger: CandidateMerger,
        deadline: float | None,
    ) -> SearchPass:
        bounds = query_bounds(center, radius_m, self.key_precision)
        remaining = None if deadline is None else deadline - time.monotonic()
        per_bound = await fetch_bounds(self.store, pushdown, bounds, timeout=remaining)
        # Fetches are joined above; only this coroutine writes to the merger
        rows = 0
        candidates = 0
        for bound_rows in per_bound:
            rows += len(bound_rows)
            refined = refine_rows(center, bound_rows, radius_m)
            candidates += len(refined)
            merger.offer_all(refined)
        return SearchPass(radius_m=radius_m, bounds=len(bounds), rows=rows, candidates=candidates)

    async def search(self, query: NearbyQuery) -> SearchResult:
        """Validate, fan out, merge, filter and rank. Raises QueryValidationError or StorageError."""
        start = time.monotonic()
        validate_query(query, self.max_radius_km)
        center = (float(query.lat), float(query.lng))
        radius_m = float(query.radius_km) * 1000.0
        deadline = None if self.timeout_seconds is None else start + self.timeout_seconds
        pushdown = storage_filters(query.filters)

        radii = self.pass_radii_m(float(query.radius_km))
        strategy = STRATEGY_TWO_PASS if len(radii) > 1 else STRATEGY_SINGLE
        merger = CandidateMerger()
        passes: list[SearchPass] = []
        for pass_radius_m in radii:
            pass_merger = CandidateMerger()
            passes.append(await self._run_pass(center, pass_radius_m, pushdown, pass_merger, deadline))
            merger.merge(pass_merger)

        final = [
            c
            for c in merger.candidates()
            if c.distance_m <= radius_m and matches(c.doc, query.filters)
        ]
        businesses = [to_business(c) for c in rank(final)]
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(
            "telemetry nearby_search strategy=%s radius_km=%s passes=%s rows=%s results=%s elapsed_ms=%.1f",
            strategy,
            query.radius_km,
            len(passes),
            sum(p.rows for p in passes),
            len(businesses),
            elapsed_ms,
        )
        return SearchResult(businesses=businesses, strategy=strategy, passes=passes, elapsed_ms=elapsed_ms)
