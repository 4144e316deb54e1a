"""Pydantic models for POST /api/nearby."""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

from nearby.search.filters import NearbyFilters
from nearby.search.service import NearbyQuery


class NearbyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Strict: JSON true or "10" is not a coordinate. Range checks live in validate_query.
    lat: StrictFloat | StrictInt | None = None
    lng: StrictFloat | StrictInt | None = None
    radius_km: StrictFloat | StrictInt = Field(default=10.0, alias="radiusKm")
    has_delivery: bool | None = Field(default=None, alias="hasDelivery")
    is_open: bool | None = Field(default=None, alias="isOpen")
    category: str | None = None

    def to_query(self) -> NearbyQuery:
        return NearbyQuery(
            lat=self.lat,
            lng=self.lng,
            radius_km=self.radius_km,
            filters=NearbyFilters(
                has_delivery=self.has_delivery,
                is_open=self.is_open,
                category=self.category,
            ),
        )


class SearchMeta(BaseModel):
    elapsedMs: float
    strategy: str
    passes: int
    boundsQueried: int
    rowsScanned: int


class NearbyResponse(BaseModel):
    # Business documents carry arbitrary extra attributes; keep them as dicts
    businesses: list[dict[str, Any]]
    meta: SearchMeta | None = None
