"""
Businesses repository: SQLite-backed collection queried by geohash ranges.

Each business is stored as a JSON document next to a few indexed columns
(geohash plus the boolean flags that support equality pre-filtering). Search
code only talks to the BusinessStore protocol so tests and other backends can
be swapped in.
"""
import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Mapping, Protocol

from nearby.data.geohash import GEOHASH_PRECISION, encode

logger = logging.getLogger(__name__)

# Document field -> indexed column usable for equality pre-filtering
FILTER_COLUMNS = {
    "state": "state",
    "isOpen": "is_open",
    "hasDelivery": "has_delivery",
}


class BusinessStore(Protocol):
    async def fetch_range(self, filters: Mapping[str, Any], low: str, high: str) -> list[dict[str, Any]]:
        """Rows matching every equality filter with low <= geohash <= high, ordered by geohash."""
        ...


def _flag(value: Any) -> int | None:
    if isinstance(value, bool):
        return int(value)
    return None


def init_db(db_path: str | Path) -> None:
    """Create businesses table and indexes if they do not exist."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS businesses (
                id TEXT PRIMARY KEY,
                geohash TEXT,
                state INTEGER,
                is_open INTEGER,
                has_delivery INTEGER,
                doc TEXT NOT NULL
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_businesses_geohash ON businesses(geohash)")
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_businesses_flags_geohash "
            "ON businesses(state, is_open, has_delivery, geohash)"
        )
        conn.commit()


def upsert_business(db_path: str | Path, business_id: str, doc: Mapping[str, Any]) -> None:
    """
    Insert or replace one business document.
    The geohash is taken from the document, or derived from latitude/longitude when absent.
    """
    doc = dict(doc)
    doc.pop("id", None)
    geohash = doc.get("geohash")
    if not geohash:
        lat, lng = doc.get("latitude"), doc.get("longitude")
        try:
            geohash = encode(float(lat), float(lng), GEOHASH_PRECISION)
        except (TypeError, ValueError):
            geohash = None
        doc["geohash"] = geohash
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            INSERT OR REPLACE INTO businesses (id, geohash, state, is_open, has_delivery, doc)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                business_id,
                geohash,
                _flag(doc.get("state")),
                _flag(doc.get("isOpen")),
                _flag(doc.get("hasDelivery")),
                json.dumps(doc),
            ),
        )
        conn.commit()


class SQLiteBusinessStore:
    """BusinessStore over the local SQLite DB. Queries run in a worker thread."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)

    def _query(self, filters: Mapping[str, Any], low: str, high: str) -> list[dict[str, Any]]:
        clauses = ["geohash >= ?", "geohash <= ?"]
        params: list[Any] = [low, high]
        for field, value in filters.items():
            column = FILTER_COLUMNS.get(field)
            if column is None:
                raise ValueError(f"field {field!r} does not support equality pre-filtering")
            clauses.append(f"{column} = ?")
            params.append(_flag(value) if isinstance(value, bool) else value)
        sql = (
            "SELECT id, geohash, doc FROM businesses WHERE "
            + " AND ".join(clauses)
            + " ORDER BY geohash"
        )
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(sql, params).fetchall()

        out: list[dict[str, Any]] = []
        for r in rows:
            try:
                doc = json.loads(r["doc"])
            except json.JSONDecodeError:
                logger.warning("telemetry business_doc_unreadable id=%s", r["id"])
                continue
            if not isinstance(doc, dict):
                continue
            doc["id"] = r["id"]
            doc["geohash"] = r["geohash"]
            out.append(doc)
        return out

    async def fetch_range(self, filters: Mapping[str, Any], low: str, high: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._query, filters, low, high)
