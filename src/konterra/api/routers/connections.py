"""Relationship graph endpoints: per-contact edges, the paged edge list, and graph aggregates."""

from __future__ import annotations

from typing import Any
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, Query

from konterra.api.deps import get_current_user_id, get_pool
from konterra.api.models import (
    ConnectionCreateRequest,
    ConnectionDeleteRequest,
    RelationsImportRequest,
)
from konterra.tools import aggregates
from konterra.tools import connections as connection_tools

router = APIRouter(prefix="/api", tags=["connections"])


@router.get("/contacts/{contact_id}/connections")
async def list_contact_connections(
    contact_id: UUID,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    return await connection_tools.connection_list_for_contact(pool, user_id, contact_id)


@router.post("/contacts/{contact_id}/connections", status_code=201)
async def create_contact_connection(
    contact_id: UUID,
    request: ConnectionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    """Create (or update) the edge ``contact_id -> targetContactId``."""
    return await connection_tools.connection_create(
        pool,
        user_id,
        contact_id,
        request.target_contact_id,
        request.connection_type.value,
        strength=request.strength,
        bidirectional=request.bidirectional,
        notes=request.notes,
    )


@router.delete("/contacts/{contact_id}/connections")
async def delete_contact_connection(
    contact_id: UUID,
    request: ConnectionDeleteRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, bool]:
    """Delete an edge by id. Deleting an already-absent edge still succeeds."""
    await connection_tools.connection_delete(pool, user_id, request.connection_id)
    return {"success": True}


@router.get("/connections")
async def list_connections(
    page: int = Query(1),
    limit: int = Query(connection_tools.DEFAULT_PAGE_LIMIT),
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    """All of the caller's edges, paged; ``limit`` is clamped to 1..100."""
    return await connection_tools.connection_list_all(pool, user_id, page=page, limit=limit)


@router.get("/connections/countries")
async def list_country_connections(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> list[dict[str, Any]]:
    """Edges bucketed by the unordered pair of endpoint countries."""
    return await aggregates.country_connections(pool, user_id)


@router.get("/connections/metrics")
async def get_network_metrics(
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    return await aggregates.network_metrics(pool, user_id)


@router.post("/import/relations")
async def import_relations(
    request: RelationsImportRequest,
    user_id: str = Depends(get_current_user_id),
    pool: asyncpg.Pool = Depends(get_pool),
) -> dict[str, Any]:
    return await connection_tools.connections_import(pool, user_id, request.relations)
