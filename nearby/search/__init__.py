from nearby.search.service import NearbyQuery, ProximitySearch, SearchResult

__all__ = ["NearbyQuery", "ProximitySearch", "SearchResult"]
