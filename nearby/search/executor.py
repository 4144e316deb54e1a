"""
Interval query fanout: one range query per geohash bound, run concurrently.
A failure or timeout on any bound fails the whole fetch; rows from the other
bounds are discarded rather than returned as a partial answer.
"""
import asyncio
import logging
from typing import Any, Mapping, Sequence

from nearby.data.businesses_repo import BusinessStore
from nearby.data.geohash import Bound
from nearby.errors import StorageError

logger = logging.getLogger(__name__)


async def fetch_bounds(
    store: BusinessStore,
    filters: Mapping[str, Any],
    bounds: Sequence[Bound],
    timeout: float | None = None,
) -> list[list[dict[str, Any]]]:
    """Return one row list per bound, in bound order. Raises StorageError."""
    if timeout is not None and timeout <= 0:
        raise StorageError("search deadline exceeded before range queries started")

    tasks = [asyncio.ensure_future(store.fetch_range(filters, b.low, b.high)) for b in bounds]
    try:
        return list(await asyncio.wait_for(asyncio.gather(*tasks), timeout=timeout))
    except asyncio.TimeoutError as e:
        logger.warning("telemetry range_query_timeout bounds=%s timeout_s=%s", len(bounds), timeout)
        raise StorageError(f"range queries did not finish within {timeout}s") from e
    except StorageError:
        raise
    except Exception as e:
        logger.warning("telemetry range_query_error bounds=%s error=%s", len(bounds), str(e))
        raise StorageError(f"range query failed: {e}") from e
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
