"""Pytest configuration and fixtures."""
import asyncio
import math
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Ensure project root is on path when running pytest from repo root or tests/
root = Path(__file__).resolve().parent.parent
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

# main.py reads settings at import; keep the app's own DB out of the working tree
os.environ.setdefault("BUSINESSES_DB_PATH", str(Path(tempfile.mkdtemp()) / "businesses.db"))

from nearby.data.businesses_repo import init_db, upsert_business
from nearby.data.geo import EARTH_RADIUS_M
from nearby.data.geohash import encode

CENTER = (10.000, -66.000)


def meters_north(lat: float, meters: float) -> float:
    """Latitude `meters` due north of lat (negative goes south); exact on the haversine sphere."""
    return lat + math.degrees(meters / EARTH_RADIUS_M)


def business(business_id: str, lat: float, lng: float, **fields) -> dict:
    doc = {
        "id": business_id,
        "name": business_id,
        "state": True,
        "isOpen": True,
        "hasDelivery": False,
        "categories": [],
        "latitude": lat,
        "longitude": lng,
    }
    doc.update(fields)
    if "geohash" not in fields:
        doc["geohash"] = encode(lat, lng)
    return doc


@pytest.fixture
def temp_db():
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    try:
        init_db(path)
        yield path
    finally:
        Path(path).unlink(missing_ok=True)


@pytest.fixture
def seed(temp_db):
    """Insert business docs into temp_db: seed(doc, doc, ...)."""

    def _seed(*docs: dict) -> str:
        for doc in docs:
            upsert_business(temp_db, doc["id"], doc)
        return temp_db

    return _seed


class RecordingStore:
    """In-memory BusinessStore that serves fixed rows for every bound and records calls."""

    def __init__(self, rows=None, delay: float = 0.0):
        self.rows = list(rows or [])
        self.delay = delay
        self.calls: list[tuple[dict, str, str]] = []

    async def fetch_range(self, filters, low, high):
        self.calls.append((dict(filters), low, high))
        if self.delay:
            await asyncio.sleep(self.delay)
        return [dict(r) for r in self.rows]


class FailingStore(RecordingStore):
    """Every range query raises, like a dropped storage connection."""

    async def fetch_range(self, filters, low, high):
        self.calls.append((dict(filters), low, high))
        raise ConnectionError("storage unavailable")
