"""User-scoped tags.

Contacts carry tag names in their ``tags`` array; the ``tags`` table holds the
user's tag catalogue (name plus optional color). Renaming or deleting a tag
rewrites the contact arrays in the same transaction.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import asyncpg

from konterra.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

TAG_NAME_MAX = 50


def _validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Tag name is required")
    name = name.strip()
    if len(name) > TAG_NAME_MAX:
        raise ValidationError(f"Tag name must be {TAG_NAME_MAX} characters or less")
    return name


async def tag_list(pool: asyncpg.Pool, user_id: str) -> list[dict[str, Any]]:
    """The user's tags with the number of contacts referencing each."""
    rows = await pool.fetch(
        """
        SELECT t.id, t.name, t.color, t.created_at,
               (SELECT count(*) FROM contacts c
                WHERE c.user_id = t.user_id AND t.name = ANY(c.tags)) AS contact_count
        FROM tags t
        WHERE t.user_id = $1
        ORDER BY t.name
        """,
        user_id,
    )
    return [dict(row) for row in rows]


async def tag_create(
    pool: asyncpg.Pool, user_id: str, name: str, color: str | None = None
) -> dict[str, Any]:
    """Create a tag, or update the color of an existing tag with the same name."""
    name = _validate_name(name)
    row = await pool.fetchrow(
        """
        INSERT INTO tags (user_id, name, color)
        VALUES ($1, $2, $3)
        ON CONFLICT (user_id, name) DO UPDATE SET color = COALESCE(EXCLUDED.color, tags.color)
        RETURNING id, name, color, created_at
        """,
        user_id,
        name,
        color,
    )
    return dict(row)


async def tag_rename(
    pool: asyncpg.Pool, user_id: str, tag_id: uuid.UUID, name: str, color: str | None = None
) -> dict[str, Any]:
    """Rename a tag and rewrite it in every contact's tag array."""
    name = _validate_name(name)
    async with pool.acquire() as conn:
        async with conn.transaction():
            old_name = await conn.fetchval(
                "SELECT name FROM tags WHERE id = $1 AND user_id = $2 FOR UPDATE",
                tag_id,
                user_id,
            )
            if old_name is None:
                raise NotFoundError("Tag", tag_id)
            try:
                row = await conn.fetchrow(
                    """
                    UPDATE tags SET name = $3, color = COALESCE($4, color)
                    WHERE id = $1 AND user_id = $2
                    RETURNING id, name, color, created_at
                    """,
                    tag_id,
                    user_id,
                    name,
                    color,
                )
            except asyncpg.UniqueViolationError:
                raise ValidationError(f"Tag {name!r} already exists") from None
            if old_name != name:
                await conn.execute(
                    """
                    UPDATE contacts SET tags = array_replace(tags, $2, $3), updated_at = now()
                    WHERE user_id = $1 AND $2 = ANY(tags)
                    """,
                    user_id,
                    old_name,
                    name,
                )
    logger.info("Renamed tag %s from %r to %r", tag_id, old_name, name)
    return dict(row)


async def tag_delete(pool: asyncpg.Pool, user_id: str, tag_id: uuid.UUID) -> None:
    """Delete a tag and remove it from every contact's tag array."""
    async with pool.acquire() as conn:
        async with conn.transaction():
            name = await conn.fetchval(
                "DELETE FROM tags WHERE id = $1 AND user_id = $2 RETURNING name",
                tag_id,
                user_id,
            )
            if name is None:
                raise NotFoundError("Tag", tag_id)
            await conn.execute(
                """
                UPDATE contacts SET tags = array_remove(tags, $2), updated_at = now()
                WHERE user_id = $1 AND $2 = ANY(tags)
                """,
                user_id,
                name,
            )
    logger.info("Deleted tag %s (%r)", tag_id, name)
