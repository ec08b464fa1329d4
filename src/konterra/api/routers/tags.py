"""Tag catalogue endpoints."""

from __future__ import annotations

from typing import Any
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends

from konterra.api.deps import get_current_user_id, get_pool
from konterra.api.models import TagRequest
from konterra.tools import tags as tag_tools

router = APIRouter(prefix="/api/tags", tags=["tags"])


@router.get("")
async def list_tags(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    return await tag_tools.tag_list(pool, user_id)


@router.post("", status_code=201)
async def create_tag(
    request: TagRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    return await tag_tools.tag_create(pool, user_id, request.name, color=request.color)


@router.patch("/{tag_id}")
async def rename_tag(
    tag_id: UUID,
    request: TagRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    """Rename a tag; contacts carrying the old name are rewritten."""
    return await tag_tools.tag_rename(pool, user_id, tag_id, request.name, color=request.color)


@router.delete("/{tag_id}")
async def delete_tag(
    tag_id: UUID,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, bool]:
    await tag_tools.tag_delete(pool, user_id, tag_id)
    return {"success": True}
