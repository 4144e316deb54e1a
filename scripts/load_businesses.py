#!/usr/bin/env python3
"""
Load business documents from a JSON file into the local SQLite DB.

The file holds a list of objects (or an object keyed by business id). Each
business needs an "id" (unless keyed) and "latitude"/"longitude"; "geohash"
is computed when missing. Every other field is stored as-is and returned by
POST /api/nearby.

  python scripts/load_businesses.py --json path/to/businesses.json
"""
import argparse
import json
import sys
from pathlib import Path

# Add project root to path
root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(root))

from nearby.data.businesses_repo import init_db, upsert_business


def _iter_documents(data):
    if isinstance(data, dict):
        for business_id, doc in data.items():
            if isinstance(doc, dict):
                yield str(business_id), doc
    elif isinstance(data, list):
        for doc in data:
            if isinstance(doc, dict) and doc.get("id"):
                yield str(doc["id"]), doc


def main() -> int:
    parser = argparse.ArgumentParser(description="Load businesses JSON into SQLite")
    parser.add_argument("--json", required=True, type=Path, help="Path to businesses JSON")
    parser.add_argument(
        "--db",
        default=root / "data" / "businesses.db",
        type=Path,
        help="Path to SQLite DB file",
    )
    args = parser.parse_args()

    if not args.json.exists():
        print(f"Error: JSON not found: {args.json}", file=sys.stderr)
        return 1
    try:
        data = json.loads(args.json.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        print(f"Error: invalid JSON in {args.json}: {e}", file=sys.stderr)
        return 1

    init_db(args.db)
    count = 0
    skipped = 0
    for business_id, doc in _iter_documents(data):
        lat, lng = doc.get("latitude"), doc.get("longitude")
        if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in (lat, lng)):
            skipped += 1
            continue
        upsert_business(args.db, business_id, doc)
        count += 1

    print(f"Loaded {count} businesses into {args.db} (skipped {skipped} without coordinates)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
