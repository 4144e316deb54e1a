"""In-memory request and search metrics for /metrics endpoint (production: replace with Prometheus or similar)."""
import time
from collections.abc import MutableMapping
from threading import Lock

_start_time = time.monotonic()
_counts: MutableMapping[str, int] = {}
_search_ms_total = 0.0
_lock = Lock()


def record_request(status_code: int) -> None:
    if 200 <= status_code < 300:
        bucket = "2xx"
    elif 400 <= status_code < 500:
        bucket = "4xx"
    elif status_code >= 500:
        bucket = "5xx"
    else:
        bucket = "other"
    with _lock:
        _counts[bucket] = _counts.get(bucket, 0) + 1


def record_search(outcome: str, elapsed_ms: float = 0.0) -> None:
    """outcome: "ok", "invalid" or "storage_error"."""
    global _search_ms_total
    key = f"search_{outcome}"
    with _lock:
        _counts[key] = _counts.get(key, 0) + 1
        if outcome == "ok":
            _search_ms_total += elapsed_ms


def get_metrics() -> dict:
    with _lock:
        counts = dict(_counts)
        search_ms_total = _search_ms_total
    uptime_seconds = time.monotonic() - _start_time
    searches_ok = counts.get("search_ok", 0)
    return {
        "requests_total": sum(v for k, v in counts.items() if not k.startswith("search_")),
        "requests_2xx": counts.get("2xx", 0),
        "requests_4xx": counts.get("4xx", 0),
        "requests_5xx": counts.get("5xx", 0),
        "searches_ok": searches_ok,
        "searches_invalid": counts.get("search_invalid", 0),
        "searches_storage_error": counts.get("search_storage_error", 0),
        "search_avg_ms": round(search_ms_total / searches_ok, 1) if searches_ok else 0.0,
        "uptime_seconds": round(uptime_seconds, 1),
    }
