"""
API routes.

Endpoints:
- GET `/api/nearby/listings`: plant listings ranked by distance from `lat`/`lon`.
- GET `/api/nearby/communities`: communities ranked by distance from `lat`/`lon`.
- GET `/api/settings`: public settings for clients (no URLs of private services).

Domain errors (`FetchFailed`, `InvalidCoordinate`, ...) propagate to the app-level handler
in `bloommarket.api.app`, which renders `{"detail": {"code", "message"}}`.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Query

from bloommarket.config.settings import get_settings
from bloommarket.core.proximity import Ranked, rank
from bloommarket.domain.models import Coordinate, format_address
from bloommarket.ingestion.base import MarketDataService
from bloommarket.ingestion.factory import build_data_service

router = APIRouter()


@lru_cache
def _data_service() -> MarketDataService:
    return build_data_service(get_settings())


def _ranked_payload(reference: Coordinate, ranked: list[Ranked[Any]], key: str) -> dict:
    return {
        "reference": reference.to_wire(),
        "count": len(ranked),
        key: [{**r.item.to_wire(), "distanceKm": round(r.distance_km, 3)} for r in ranked],
    }


@router.get("/api/nearby/listings")
async def get_nearby_listings(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    max_km: float | None = Query(default=None, gt=0),
    limit: int = Query(default=50, ge=1, le=500),
) -> dict:
    """Return listings around the given point, nearest first."""
    reference = Coordinate(latitude=lat, longitude=lon, address=format_address(lat, lon))
    listings = await _data_service().fetch_listings(reference)
    ranked = rank(reference, listings, max_distance_km=max_km, limit=limit)
    return _ranked_payload(reference, ranked, "listings")


@router.get("/api/nearby/communities")
async def get_nearby_communities(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    max_km: float | None = Query(default=None, gt=0),
    limit: int = Query(default=50, ge=1, le=500),
) -> dict:
    """Return communities around the given point, nearest first."""
    reference = Coordinate(latitude=lat, longitude=lon, address=format_address(lat, lon))
    communities = await _data_service().fetch_communities(reference)
    ranked = rank(reference, communities, max_distance_km=max_km, limit=limit)
    return _ranked_payload(reference, ranked, "communities")


@router.get("/api/settings")
def get_public_settings() -> dict:
    """Return safe-to-expose settings for client defaults."""
    settings = get_settings()
    return {
        "app": {"name": settings.app.name},
        "location": settings.location.model_dump(mode="json"),
        "catalog": settings.catalog.model_dump(mode="json"),
    }
