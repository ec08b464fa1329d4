"""Travel endpoints: trips, visited countries, and the country wishlist."""

from __future__ import annotations

from typing import Any
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Body, Depends

from konterra.api.deps import get_current_user_id, get_pool
from konterra.api.models import TripRequest, VisitedCountriesRequest, WishlistRequest
from konterra.tools import countries, trips

router = APIRouter(prefix="/api", tags=["travel"])


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------


@router.get("/trips")
async def list_trips(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    return await trips.trip_list(pool, user_id)


@router.post("/trips", status_code=201)
async def create_trips(
    body: dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    """Create one trip, or many when the body is ``{"trips": [...]}``.

    In bulk mode invalid entries are skipped; a payload with no valid entry is a 400.
    """
    if isinstance(body.get("trips"), list):
        entries: list[dict[str, Any]] = []
        malformed = 0
        for entry in body["trips"]:
            try:
                entries.append(TripRequest.model_validate(entry).model_dump())
            except ValueError:
                malformed += 1
        result = await trips.trips_create_bulk(pool, user_id, entries)
        result["skipped"] += malformed
        return result
    request = TripRequest.model_validate(body)
    return await trips.trip_create(pool, user_id, **request.model_dump())


@router.delete("/trips")
async def delete_all_trips(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    count = await trips.trips_delete_all(pool, user_id)
    return {"deleted": True, "count": count}


@router.delete("/trips/{trip_id}")
async def delete_trip(
    trip_id: UUID,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, bool]:
    await trips.trip_delete(pool, user_id, trip_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Visited countries
# ---------------------------------------------------------------------------


@router.get("/visited-countries")
async def list_visited_countries(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[str]:
    return await countries.visited_list(pool, user_id)


@router.post("/visited-countries")
async def add_visited_countries(
    request: VisitedCountriesRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[str]:
    return await countries.visited_add(pool, user_id, request.countries)


@router.delete("/visited-countries/{country}")
async def remove_visited_country(
    country: str,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, bool]:
    await countries.visited_remove(pool, user_id, country)
    return {"success": True}


# ---------------------------------------------------------------------------
# Wishlist
# ---------------------------------------------------------------------------


@router.get("/wishlist-countries")
async def list_wishlist(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    return await countries.wishlist_list(pool, user_id)


@router.post("/wishlist-countries")
async def upsert_wishlist_entry(
    request: WishlistRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    return await countries.wishlist_upsert(
        pool,
        user_id,
        request.country,
        priority=request.priority,
        status=request.status,
        notes=request.notes,
    )


@router.delete("/wishlist-countries/{wishlist_id}")
async def remove_wishlist_entry(
    wishlist_id: UUID,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, bool]:
    await countries.wishlist_remove(pool, user_id, wishlist_id)
    return {"success": True}
