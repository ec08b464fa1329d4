"""Country-level records: visited countries, the travel wishlist, and per-contact country links."""

from __future__ import annotations

import uuid
from typing import Any

import asyncpg

from konterra.errors import NotFoundError, ValidationError
from konterra.tools._schema import WishlistPriority, WishlistStatus, parse_enum
from konterra.tools.contacts import contacts_owned

WISHLIST_NOTES_MAX = 2000


def _country(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("country is required")
    return value.strip()


# ---------------------------------------------------------------------------
# Visited countries
# ---------------------------------------------------------------------------


async def visited_list(pool: asyncpg.Pool, user_id: str) -> list[str]:
    rows = await pool.fetch(
        "SELECT country FROM visited_countries WHERE user_id = $1 ORDER BY country",
        user_id,
    )
    return [row["country"] for row in rows]


async def visited_add(pool: asyncpg.Pool, user_id: str, countries: list[str]) -> list[str]:
    """Mark countries as visited (already-visited ones are left alone)."""
    names = sorted({_country(c) for c in countries})
    if names:
        await pool.execute(
            """
            INSERT INTO visited_countries (user_id, country)
            SELECT $1, unnest($2::text[])
            ON CONFLICT (user_id, country) DO NOTHING
            """,
            user_id,
            names,
        )
    return await visited_list(pool, user_id)


async def visited_remove(pool: asyncpg.Pool, user_id: str, country: str) -> None:
    await pool.execute(
        "DELETE FROM visited_countries WHERE user_id = $1 AND country = $2",
        user_id,
        _country(country),
    )


# ---------------------------------------------------------------------------
# Wishlist
# ---------------------------------------------------------------------------


async def wishlist_list(pool: asyncpg.Pool, user_id: str) -> list[dict[str, Any]]:
    rows = await pool.fetch(
        "SELECT * FROM wishlist_countries WHERE user_id = $1 ORDER BY created_at, id",
        user_id,
    )
    return [dict(row) for row in rows]


async def wishlist_upsert(
    pool: asyncpg.Pool,
    user_id: str,
    country: str,
    priority: str = WishlistPriority.MEDIUM.value,
    status: str = WishlistStatus.IDEA.value,
    notes: str | None = None,
) -> dict[str, Any]:
    """Add a country to the wishlist, or update its priority/status/notes."""
    country = _country(country)
    wpriority = parse_enum(WishlistPriority, priority, "priority")
    wstatus = parse_enum(WishlistStatus, status, "status")
    if notes is not None:
        if not isinstance(notes, str):
            raise ValidationError("notes must be a string")
        if len(notes) > WISHLIST_NOTES_MAX:
            raise ValidationError(f"notes must be {WISHLIST_NOTES_MAX} characters or less")

    row = await pool.fetchrow(
        """
        INSERT INTO wishlist_countries (user_id, country, priority, status, notes)
        VALUES ($1, $2, $3, $4, $5)
        ON CONFLICT (user_id, country) DO UPDATE
        SET priority = EXCLUDED.priority, status = EXCLUDED.status,
            notes = EXCLUDED.notes, updated_at = now()
        RETURNING *
        """,
        user_id,
        country,
        wpriority.value,
        wstatus.value,
        notes,
    )
    return dict(row)


async def wishlist_remove(pool: asyncpg.Pool, user_id: str, wishlist_id: uuid.UUID) -> None:
    status = await pool.execute(
        "DELETE FROM wishlist_countries WHERE id = $1 AND user_id = $2",
        wishlist_id,
        user_id,
    )
    if status != "DELETE 1":
        raise NotFoundError("Wishlist entry", wishlist_id)


# ---------------------------------------------------------------------------
# Contact country links
# ---------------------------------------------------------------------------


async def contact_country_list(
    pool: asyncpg.Pool, user_id: str, contact_id: uuid.UUID | None = None
) -> list[dict[str, Any]]:
    """Country links for one contact, or for all of the user's contacts."""
    if contact_id is None:
        rows = await pool.fetch(
            """
            SELECT * FROM contact_country_connections
            WHERE user_id = $1
            ORDER BY country, created_at
            """,
            user_id,
        )
    else:
        if not await contacts_owned(pool, user_id, [contact_id]):
            raise NotFoundError("Contact", contact_id)
        rows = await pool.fetch(
            """
            SELECT * FROM contact_country_connections
            WHERE user_id = $1 AND contact_id = $2
            ORDER BY country, created_at
            """,
            user_id,
            contact_id,
        )
    return [_parse_link(row) for row in rows]


async def contact_country_add(
    pool: asyncpg.Pool,
    user_id: str,
    contact_id: uuid.UUID,
    country: str,
    notes: str | None = None,
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Link a contact to a country they have ties with (beyond where they live)."""
    country = _country(country)
    if tags is not None and (
        not isinstance(tags, list) or not all(isinstance(t, str) for t in tags)
    ):
        raise ValidationError("tags must be a list of strings")
    if not await contacts_owned(pool, user_id, [contact_id]):
        raise NotFoundError("Contact", contact_id)
    row = await pool.fetchrow(
        """
        INSERT INTO contact_country_connections (user_id, contact_id, country, notes, tags)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING *
        """,
        user_id,
        contact_id,
        country,
        notes,
        [t.strip() for t in tags or [] if t.strip()],
    )
    return _parse_link(row)


async def contact_country_delete(
    pool: asyncpg.Pool, user_id: str, contact_id: uuid.UUID, link_id: uuid.UUID
) -> None:
    status = await pool.execute(
        """
        DELETE FROM contact_country_connections
        WHERE id = $1 AND contact_id = $2 AND user_id = $3
        """,
        link_id,
        contact_id,
        user_id,
    )
    if status != "DELETE 1":
        raise NotFoundError("Country connection", link_id)


def _parse_link(row: asyncpg.Record) -> dict[str, Any]:
    d = dict(row)
    d["tags"] = list(d.get("tags") or [])
    return d
