"""Relationship graph store: directed, typed, weighted edges between a user's contacts.

An edge is ``source -> target`` with a ``connection_type`` and a strength in
[1, 5]. ``bidirectional`` marks the edge as undirected for display and
aggregation; it never implies a mirrored row. Every statement carries the
owning ``user_id`` in its predicate.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import asyncpg

from konterra.errors import NotFoundError, ValidationError
from konterra.tools._schema import (
    DEFAULT_STRENGTH,
    ConnectionType,
    clamp_strength,
    coerce_uuid,
    parse_enum,
    parse_row,
    validate_strength,
)
from konterra.tools.contacts import contacts_owned

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100

_EDGE_COLUMNS = (
    "id, user_id, source_contact_id, target_contact_id, connection_type, "
    "strength, bidirectional, notes, created_at, updated_at"
)


async def connection_list_for_contact(
    pool: asyncpg.Pool, user_id: str, contact_id: uuid.UUID
) -> list[dict[str, Any]]:
    """Return every edge where *contact_id* is either endpoint.

    Raises:
        NotFoundError: If the contact does not exist or belongs to another user.
    """
    if not await contacts_owned(pool, user_id, [contact_id]):
        raise NotFoundError("Contact", contact_id)
    rows = await pool.fetch(
        f"""
        SELECT {_EDGE_COLUMNS}
        FROM contact_connections
        WHERE user_id = $1 AND (source_contact_id = $2 OR target_contact_id = $2)
        ORDER BY created_at, id
        """,  # noqa: S608
        user_id,
        contact_id,
    )
    return [dict(row) for row in rows]


async def connection_create(
    pool: asyncpg.Pool,
    user_id: str,
    source_contact_id: uuid.UUID,
    target_contact_id: uuid.UUID,
    connection_type: str,
    strength: int = DEFAULT_STRENGTH,
    bidirectional: bool = True,
    notes: str | None = None,
) -> dict[str, Any]:
    """Create an edge ``source -> target``.

    Creating an edge that already exists for the same ``(source, target, type)``
    updates that edge in place, so the no-duplicate invariant holds.

    Raises:
        ValidationError: On a self-edge, an unknown type, or a strength outside [1, 5].
        NotFoundError: If either endpoint does not exist or belongs to another user.
    """
    source_contact_id = coerce_uuid(source_contact_id, "source_contact_id")
    target_contact_id = coerce_uuid(target_contact_id, "target_contact_id")
    if source_contact_id == target_contact_id:
        raise ValidationError("A contact cannot be connected to itself")
    ctype = parse_enum(ConnectionType, connection_type, "connection_type")
    strength = validate_strength(strength)
    if not isinstance(bidirectional, bool):
        raise ValidationError(f"bidirectional must be a boolean, got {bidirectional!r}")
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("notes must be a string")

    async with pool.acquire() as conn:
        async with conn.transaction():
            owned = await contacts_owned(conn, user_id, [source_contact_id, target_contact_id])
            for endpoint in (source_contact_id, target_contact_id):
                if endpoint not in owned:
                    raise NotFoundError("Contact", endpoint)
            row = await conn.fetchrow(
                f"""
                INSERT INTO contact_connections
                    (user_id, source_contact_id, target_contact_id, connection_type,
                     strength, bidirectional, notes)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (user_id, source_contact_id, target_contact_id, connection_type)
                DO UPDATE SET strength = EXCLUDED.strength,
                              bidirectional = EXCLUDED.bidirectional,
                              notes = EXCLUDED.notes,
                              updated_at = now()
                RETURNING {_EDGE_COLUMNS}
                """,  # noqa: S608
                user_id,
                source_contact_id,
                target_contact_id,
                ctype.value,
                strength,
                bidirectional,
                notes,
            )
    logger.info(
        "Connection %s saved: %s -[%s]-> %s",
        row["id"],
        source_contact_id,
        ctype.value,
        target_contact_id,
    )
    return dict(row)


async def connection_delete(pool: asyncpg.Pool, user_id: str, connection_id: uuid.UUID) -> bool:
    """Delete an edge; a missing or foreign edge is a no-op. Returns whether a row went away."""
    status = await pool.execute(
        "DELETE FROM contact_connections WHERE id = $1 AND user_id = $2",
        connection_id,
        user_id,
    )
    deleted = status == "DELETE 1"
    if deleted:
        logger.info("Deleted connection %s", connection_id)
    return deleted


async def connection_list_all(
    pool: asyncpg.Pool,
    user_id: str,
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> dict[str, Any]:
    """Return one page of the user's edges with both endpoint contacts resolved.

    ``page`` is 1-based and floored at 1; ``limit`` is clamped to [1, 100].
    """
    page = max(1, int(page))
    limit = max(1, min(MAX_PAGE_LIMIT, int(limit)))
    offset = (page - 1) * limit

    total = await pool.fetchval(
        "SELECT count(*) FROM contact_connections WHERE user_id = $1",
        user_id,
    )
    rows = await pool.fetch(
        """
        SELECT cc.id, cc.source_contact_id, cc.target_contact_id, cc.connection_type,
               cc.strength, cc.bidirectional, cc.notes, cc.created_at,
               s.name AS source_name, s.city AS source_city, s.country AS source_country,
               s.lat AS source_lat, s.lng AS source_lng,
               t.name AS target_name, t.city AS target_city, t.country AS target_country,
               t.lat AS target_lat, t.lng AS target_lng
        FROM contact_connections cc
        JOIN contacts s ON s.id = cc.source_contact_id AND s.user_id = cc.user_id
        JOIN contacts t ON t.id = cc.target_contact_id AND t.user_id = cc.user_id
        WHERE cc.user_id = $1
        ORDER BY cc.created_at DESC, cc.id
        OFFSET $2 LIMIT $3
        """,
        user_id,
        offset,
        limit,
    )
    return {
        "items": [_denormalize(row) for row in rows],
        "total": total or 0,
        "page": page,
        "limit": limit,
    }


def _denormalize(row: asyncpg.Record) -> dict[str, Any]:
    d = dict(row)
    endpoints = {}
    for side in ("source", "target"):
        endpoints[side] = {
            "id": d[f"{side}_contact_id"],
            "name": d.pop(f"{side}_name"),
            "city": d.pop(f"{side}_city"),
            "country": d.pop(f"{side}_country"),
            "lat": d.pop(f"{side}_lat"),
            "lng": d.pop(f"{side}_lng"),
        }
    d["source"] = endpoints["source"]
    d["target"] = endpoints["target"]
    return d


def _import_flag(value: Any) -> bool:
    """Imported ``bidirectional``: a boolean, or the strings ``"true"``/``"false"``."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"bidirectional must be a boolean, got {value!r}")


async def connections_import(
    pool: asyncpg.Pool, user_id: str, relations: list[dict[str, Any]]
) -> dict[str, Any]:
    """Bulk-create edges from imported records.

    Each record carries ``source``, ``target`` (contact ids) and ``connectionType``,
    plus optional ``strength``, ``bidirectional`` and ``notes``. Imported strengths
    are clamped into [1, 5] before insertion. Records that would be rejected
    (self-edges, unknown types, unknown contacts) are skipped and reported.
    """
    if not isinstance(relations, list):
        raise ValidationError("relations must be a list")

    created = 0
    skipped = 0
    errors: list[str] = []
    for index, relation in enumerate(relations):
        if not isinstance(relation, dict):
            skipped += 1
            errors.append(f"relations[{index}]: not an object")
            continue
        try:
            await connection_create(
                pool,
                user_id,
                relation.get("source"),
                relation.get("target"),
                relation.get("connectionType", ConnectionType.KNOWS.value),
                strength=clamp_strength(relation.get("strength", DEFAULT_STRENGTH)),
                bidirectional=_import_flag(relation.get("bidirectional", True)),
                notes=relation.get("notes"),
            )
        except (ValidationError, NotFoundError) as exc:
            skipped += 1
            errors.append(f"relations[{index}]: {exc}")
            continue
        created += 1

    logger.info("Imported relations: created=%d skipped=%d", created, skipped)
    return {"created": created, "skipped": skipped, "errors": errors}


async def edge_touching(
    conn: asyncpg.Connection, user_id: str, contact_ids: list[uuid.UUID]
) -> list[dict[str, Any]]:
    """Lock and return every edge with an endpoint in *contact_ids*."""
    rows = await conn.fetch(
        f"""
        SELECT {_EDGE_COLUMNS}
        FROM contact_connections
        WHERE user_id = $1
          AND (source_contact_id = ANY($2::uuid[]) OR target_contact_id = ANY($2::uuid[]))
        ORDER BY created_at, id
        FOR UPDATE
        """,  # noqa: S608
        user_id,
        list(contact_ids),
    )
    return [parse_row(row) for row in rows]
