"""Geocoding endpoints: single lookups and batch coordinate enrichment.

``POST /api/geocode/batch`` and ``POST /api/geocode/trips`` each process one
page of records; the web client calls them repeatedly until ``remaining`` is 0.
"""

from __future__ import annotations

import asyncpg
from fastapi import APIRouter, Depends, Query

from konterra.api.deps import get_config, get_current_user_id, get_geocoder, get_pool
from konterra.api.models import GeocodeBatchResponse
from konterra.config import KonterraConfig
from konterra.errors import NotFoundError
from konterra.geocoding import Geocoder, GeocodeResult
from konterra.tools import enrichment
from konterra.tools.enrichment import EntityKind

router = APIRouter(prefix="/api/geocode", tags=["geocode"])


@router.get("", response_model=GeocodeResult)
async def geocode(
    q: str = Query(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    geocoder: Geocoder = Depends(get_geocoder),
) -> GeocodeResult:
    """Resolve a free-text location. 404 when nothing matches or the provider fails."""
    result = await geocoder.geocode(q)
    if result is None:
        raise NotFoundError("Location", q)
    return result


async def _run_batch(
    kind: EntityKind,
    user_id: str,
    pool: asyncpg.Pool,
    geocoder: Geocoder,
    config: KonterraConfig,
) -> GeocodeBatchResponse:
    target = enrichment.enrichment_target(kind, config.enrichment)
    result = await enrichment.enrich_batch(pool, user_id, target, geocoder)
    return GeocodeBatchResponse(
        geocoded=result.enriched,
        remaining=result.remaining,
        skipped=result.skipped,
        failed=result.failed,
    )


@router.post("/batch", response_model=GeocodeBatchResponse)
async def geocode_contacts_batch(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
    geocoder: Geocoder = Depends(get_geocoder),
    config: KonterraConfig = Depends(get_config),
) -> GeocodeBatchResponse:
    return await _run_batch(EntityKind.CONTACTS, user_id, pool, geocoder, config)


@router.post("/trips", response_model=GeocodeBatchResponse)
async def geocode_trips_batch(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
    geocoder: Geocoder = Depends(get_geocoder),
    config: KonterraConfig = Depends(get_config),
) -> GeocodeBatchResponse:
    return await _run_batch(EntityKind.TRIPS, user_id, pool, geocoder, config)
