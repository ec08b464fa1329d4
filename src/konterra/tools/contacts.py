"""Contact CRUD: create, update, get, list, delete, and the lazily created self contact."""

from __future__ import annotations

import logging
import uuid
from typing import Any

import asyncpg

from konterra.errors import NotFoundError, ValidationError
from konterra.tools._schema import parse_row, validate_contact_fields

logger = logging.getLogger(__name__)

SELF_CONTACT_NAME = "Me"

# Location columns whose change invalidates stored coordinates.
_LOCATION_FIELDS = ("city", "country")


async def contact_get(
    pool: asyncpg.Pool, user_id: str, contact_id: uuid.UUID
) -> dict[str, Any]:
    """Return one contact owned by *user_id*.

    Raises:
        NotFoundError: If the contact does not exist or belongs to another user.
    """
    row = await pool.fetchrow(
        "SELECT * FROM contacts WHERE id = $1 AND user_id = $2",
        contact_id,
        user_id,
    )
    if row is None:
        raise NotFoundError("Contact", contact_id)
    return parse_row(row)


async def contact_list(pool: asyncpg.Pool, user_id: str) -> list[dict[str, Any]]:
    """List all of a user's contacts, most recently updated first."""
    rows = await pool.fetch(
        "SELECT * FROM contacts WHERE user_id = $1 ORDER BY updated_at DESC, id",
        user_id,
    )
    return [parse_row(row) for row in rows]


async def contact_create(pool: asyncpg.Pool, user_id: str, /, **fields: Any) -> dict[str, Any]:
    """Create a contact. ``name`` is required; see ``CONTACT_FIELDS`` for the rest."""
    cleaned = validate_contact_fields(fields, creating=True)
    columns = ["user_id", *cleaned.keys()]
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    row = await pool.fetchrow(
        f"INSERT INTO contacts ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *",  # noqa: S608
        user_id,
        *cleaned.values(),
    )
    logger.info("Created contact %s", row["id"])
    return parse_row(row)


async def contact_update(
    pool: asyncpg.Pool, user_id: str, contact_id: uuid.UUID, /, **fields: Any
) -> dict[str, Any]:
    """Update the given contact fields; untouched fields keep their values.

    Changing city or country without supplying coordinates clears ``lat``/``lng``
    so the next enrichment batch geocodes the new location.

    Raises:
        NotFoundError: If the contact does not exist or belongs to another user.
        ValidationError: If any field is unknown or malformed.
    """
    if not fields:
        raise ValidationError("No fields to update")
    cleaned = validate_contact_fields(fields, creating=False)

    if "lat" not in cleaned and "lng" not in cleaned:
        existing = await contact_get(pool, user_id, contact_id)
        if any(
            f in cleaned and (cleaned[f] or None) != (existing.get(f) or None)
            for f in _LOCATION_FIELDS
        ):
            cleaned["lat"] = None
            cleaned["lng"] = None

    assignments = ", ".join(f"{col} = ${i}" for i, col in enumerate(cleaned, start=3))
    row = await pool.fetchrow(
        f"""
        UPDATE contacts SET {assignments}, updated_at = now()
        WHERE id = $1 AND user_id = $2
        RETURNING *
        """,  # noqa: S608
        contact_id,
        user_id,
        *cleaned.values(),
    )
    if row is None:
        raise NotFoundError("Contact", contact_id)
    return parse_row(row)


async def contact_delete(pool: asyncpg.Pool, user_id: str, contact_id: uuid.UUID) -> bool:
    """Delete a contact owned by *user_id*.

    Edges and contact-scoped records go with it through the foreign keys.
    Returns ``True`` when a row was removed.
    """
    status = await pool.execute(
        "DELETE FROM contacts WHERE id = $1 AND user_id = $2",
        contact_id,
        user_id,
    )
    deleted = status == "DELETE 1"
    if deleted:
        logger.info("Deleted contact %s", contact_id)
    return deleted


async def contact_get_or_create_self(
    pool: asyncpg.Pool, user_id: str, name: str = SELF_CONTACT_NAME
) -> dict[str, Any]:
    """Return the user's self contact, creating it on first use.

    The partial unique index on ``(user_id) WHERE is_self`` makes concurrent
    first calls converge on one row.
    """
    row = await pool.fetchrow(
        "SELECT * FROM contacts WHERE user_id = $1 AND is_self",
        user_id,
    )
    if row is not None:
        return parse_row(row)

    row = await pool.fetchrow(
        """
        INSERT INTO contacts (user_id, name, is_self)
        VALUES ($1, $2, true)
        ON CONFLICT (user_id) WHERE is_self DO NOTHING
        RETURNING *
        """,
        user_id,
        name,
    )
    if row is None:
        row = await pool.fetchrow(
            "SELECT * FROM contacts WHERE user_id = $1 AND is_self",
            user_id,
        )
    else:
        logger.info("Created self contact %s", row["id"])
    return parse_row(row)


async def contacts_owned(
    conn: asyncpg.Pool | asyncpg.Connection, user_id: str, contact_ids: list[uuid.UUID]
) -> set[uuid.UUID]:
    """Return the subset of *contact_ids* that *user_id* owns."""
    rows = await conn.fetch(
        "SELECT id FROM contacts WHERE user_id = $1 AND id = ANY($2::uuid[])",
        user_id,
        list(contact_ids),
    )
    return {row["id"] for row in rows}
