"""Contact-scoped history endpoints: interactions, favors, introductions, and country links."""

from __future__ import annotations

from typing import Any
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends

from konterra.api.deps import get_current_user_id, get_pool
from konterra.api.models import (
    CountryLinkDeleteRequest,
    CountryLinkRequest,
    FavorRequest,
    InteractionRequest,
    IntroductionRequest,
)
from konterra.tools import countries, interactions

router = APIRouter(prefix="/api", tags=["records"])


# ---------------------------------------------------------------------------
# Interactions and favors
# ---------------------------------------------------------------------------


@router.get("/contacts/{contact_id}/interactions")
async def list_interactions(
    contact_id: UUID,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    return await interactions.interaction_list(pool, user_id, contact_id)


@router.post("/contacts/{contact_id}/interactions", status_code=201)
async def log_interaction(
    contact_id: UUID,
    request: InteractionRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    return await interactions.interaction_log(
        pool,
        user_id,
        contact_id,
        request.type,
        occurred_at=request.date,
        location=request.location,
        notes=request.notes,
    )


@router.get("/contacts/{contact_id}/favors")
async def list_favors(
    contact_id: UUID,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    return await interactions.favor_list(pool, user_id, contact_id)


@router.post("/contacts/{contact_id}/favors", status_code=201)
async def create_favor(
    contact_id: UUID,
    request: FavorRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    return await interactions.favor_create(
        pool,
        user_id,
        contact_id,
        request.direction,
        request.type,
        value=request.value,
        status=request.status,
        description=request.description,
        occurred_at=request.date,
    )


# ---------------------------------------------------------------------------
# Introductions
# ---------------------------------------------------------------------------


@router.get("/introductions")
async def list_introductions(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    return await interactions.introduction_list(pool, user_id)


@router.post("/introductions", status_code=201)
async def create_introduction(
    request: IntroductionRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    return await interactions.introduction_create(
        pool,
        user_id,
        request.contact_a_id,
        request.contact_b_id,
        request.initiated_by,
        status=request.status,
        notes=request.notes,
    )


# ---------------------------------------------------------------------------
# Contact country links
# ---------------------------------------------------------------------------


@router.get("/country-connections")
async def list_all_country_links(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    return await countries.contact_country_list(pool, user_id)


@router.get("/contacts/{contact_id}/country-connections")
async def list_contact_country_links(
    contact_id: UUID,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    return await countries.contact_country_list(pool, user_id, contact_id)


@router.post("/contacts/{contact_id}/country-connections", status_code=201)
async def create_contact_country_link(
    contact_id: UUID,
    request: CountryLinkRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    return await countries.contact_country_add(
        pool, user_id, contact_id, request.country, notes=request.notes, tags=request.tags
    )


@router.delete("/contacts/{contact_id}/country-connections")
async def delete_contact_country_link(
    contact_id: UUID,
    request: CountryLinkDeleteRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, bool]:
    await countries.contact_country_delete(pool, user_id, contact_id, request.link_id)
    return {"success": True}
