"""Contact endpoints: CRUD, merge, duplicate candidates, and the self contact.

Handlers are thin: they resolve the caller, delegate to ``konterra.tools``,
and shape the response. Errors raised by the tools are mapped to status codes
by ``konterra.api.middleware``.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Body, Depends

from konterra.api.deps import get_current_user_id, get_pool
from konterra.api.models import MergeRequest, MergeResponse
from konterra.errors import NotFoundError
from konterra.tools import contacts as contact_tools
from konterra.tools import dedup, merge

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["contacts"])


@router.get("/contacts")
async def list_contacts(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    return await contact_tools.contact_list(pool, user_id)


@router.post("/contacts", status_code=201)
async def create_contact(
    body: dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    return await contact_tools.contact_create(pool, user_id, **body)


@router.post("/contacts/merge", response_model=MergeResponse)
async def merge_contacts(
    request: MergeRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> MergeResponse:
    """Merge ``loserId`` into ``winnerId``.

    Returns 404 when either contact is missing or owned by another user, and
    400 when the ids are equal or an override is invalid.
    """
    result = await merge.contact_merge(
        pool,
        user_id,
        request.winner_id,
        request.loser_id,
        field_overrides=request.field_overrides,
    )
    if result is None:
        raise NotFoundError("Contact pair", f"{request.winner_id}/{request.loser_id}")
    return MergeResponse(winner=result["winner"], deleted_id=result["deleted_id"])


@router.get("/contacts/duplicates")
async def list_duplicates(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    """Candidate duplicate groups, largest first."""
    return await dedup.duplicate_groups(pool, user_id)


@router.get("/contacts/{contact_id}")
async def get_contact(
    contact_id: UUID,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    return await contact_tools.contact_get(pool, user_id, contact_id)


@router.patch("/contacts/{contact_id}")
async def update_contact(
    contact_id: UUID,
    body: dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    return await contact_tools.contact_update(pool, user_id, contact_id, **body)


@router.delete("/contacts/{contact_id}")
async def delete_contact(
    contact_id: UUID,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, bool]:
    if not await contact_tools.contact_delete(pool, user_id, contact_id):
        raise NotFoundError("Contact", contact_id)
    return {"success": True}


@router.get("/me/contact")
async def get_self_contact(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    """The caller's self contact, created on first access."""
    return await contact_tools.contact_get_or_create_self(pool, user_id)
