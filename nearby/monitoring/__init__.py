from nearby.monitoring.metrics import get_metrics, record_request, record_search

__all__ = ["get_metrics", "record_request", "record_search"]
