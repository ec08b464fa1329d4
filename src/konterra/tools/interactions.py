"""Interactions, favors, and introductions: contact-scoped history records.

These are the dependent rows a contact merge repoints onto the winner.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import asyncpg

from konterra.errors import NotFoundError, ValidationError
from konterra.tools._schema import (
    FavorDirection,
    FavorStatus,
    FavorType,
    FavorValue,
    InteractionType,
    IntroductionStatus,
    coerce_uuid,
    parse_enum,
)
from konterra.tools.contacts import contacts_owned

_EARLIEST_INTERACTION = datetime(1970, 1, 1, tzinfo=UTC)


def _parse_timestamp(value: Any, field: str) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"Invalid {field}: {value!r}") from None
    if not isinstance(value, datetime):
        raise ValidationError(f"Invalid {field}: {value!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


async def _require_contact(pool: asyncpg.Pool, user_id: str, contact_id: uuid.UUID) -> None:
    if not await contacts_owned(pool, user_id, [contact_id]):
        raise NotFoundError("Contact", contact_id)


async def interaction_log(
    pool: asyncpg.Pool,
    user_id: str,
    contact_id: uuid.UUID,
    type: str,
    occurred_at: datetime | str | None = None,
    location: str | None = None,
    notes: str | None = None,
) -> dict[str, Any]:
    """Record an interaction with a contact.

    ``occurred_at`` defaults to now; it may be at most one day in the future
    and no earlier than 1970.
    """
    itype = parse_enum(InteractionType, type, "type")
    when = _parse_timestamp(occurred_at, "date") or datetime.now(UTC)
    if when > datetime.now(UTC) + timedelta(days=1):
        raise ValidationError("Date cannot be in the future")
    if when < _EARLIEST_INTERACTION:
        raise ValidationError("Date is too far in the past")
    await _require_contact(pool, user_id, contact_id)

    row = await pool.fetchrow(
        """
        INSERT INTO interactions (user_id, contact_id, type, occurred_at, location, notes)
        VALUES ($1, $2, $3, $4, $5, $6)
        RETURNING *
        """,
        user_id,
        contact_id,
        itype.value,
        when,
        location,
        notes,
    )
    return dict(row)


async def interaction_list(
    pool: asyncpg.Pool, user_id: str, contact_id: uuid.UUID
) -> list[dict[str, Any]]:
    """Interactions with a contact, newest first."""
    await _require_contact(pool, user_id, contact_id)
    rows = await pool.fetch(
        """
        SELECT * FROM interactions
        WHERE user_id = $1 AND contact_id = $2
        ORDER BY occurred_at DESC, id
        """,
        user_id,
        contact_id,
    )
    return [dict(row) for row in rows]


async def favor_create(
    pool: asyncpg.Pool,
    user_id: str,
    contact_id: uuid.UUID,
    direction: str,
    type: str,
    value: str = FavorValue.MEDIUM.value,
    status: str = FavorStatus.ACTIVE.value,
    description: str | None = None,
    occurred_at: datetime | str | None = None,
) -> dict[str, Any]:
    """Record a favor given to or received from a contact."""
    fdirection = parse_enum(FavorDirection, direction, "direction")
    ftype = parse_enum(FavorType, type, "type")
    fvalue = parse_enum(FavorValue, value, "value")
    fstatus = parse_enum(FavorStatus, status, "status")
    when = _parse_timestamp(occurred_at, "date")
    await _require_contact(pool, user_id, contact_id)

    row = await pool.fetchrow(
        """
        INSERT INTO favors
            (user_id, contact_id, direction, type, value, status, description, occurred_at)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
        RETURNING *
        """,
        user_id,
        contact_id,
        fdirection.value,
        ftype.value,
        fvalue.value,
        fstatus.value,
        description,
        when,
    )
    return dict(row)


async def favor_list(
    pool: asyncpg.Pool, user_id: str, contact_id: uuid.UUID
) -> list[dict[str, Any]]:
    await _require_contact(pool, user_id, contact_id)
    rows = await pool.fetch(
        """
        SELECT * FROM favors
        WHERE user_id = $1 AND contact_id = $2
        ORDER BY created_at DESC, id
        """,
        user_id,
        contact_id,
    )
    return [dict(row) for row in rows]


async def introduction_create(
    pool: asyncpg.Pool,
    user_id: str,
    contact_a_id: uuid.UUID,
    contact_b_id: uuid.UUID,
    initiated_by: str,
    status: str = IntroductionStatus.PLANNED.value,
    notes: str | None = None,
) -> dict[str, Any]:
    """Record an introduction between two of the user's contacts."""
    contact_a_id = coerce_uuid(contact_a_id, "contact_a_id")
    contact_b_id = coerce_uuid(contact_b_id, "contact_b_id")
    if contact_a_id == contact_b_id:
        raise ValidationError("A contact cannot be introduced to itself")
    if not isinstance(initiated_by, str) or not initiated_by.strip():
        raise ValidationError("initiated_by is required")
    istatus = parse_enum(IntroductionStatus, status, "status")

    owned = await contacts_owned(pool, user_id, [contact_a_id, contact_b_id])
    for contact_id in (contact_a_id, contact_b_id):
        if contact_id not in owned:
            raise NotFoundError("Contact", contact_id)

    row = await pool.fetchrow(
        """
        INSERT INTO introductions (user_id, contact_a_id, contact_b_id, initiated_by, status, notes)
        VALUES ($1, $2, $3, $4, $5, $6)
        RETURNING *
        """,
        user_id,
        contact_a_id,
        contact_b_id,
        initiated_by.strip(),
        istatus.value,
        notes,
    )
    return dict(row)


async def introduction_list(pool: asyncpg.Pool, user_id: str) -> list[dict[str, Any]]:
    rows = await pool.fetch(
        "SELECT * FROM introductions WHERE user_id = $1 ORDER BY created_at DESC, id",
        user_id,
    )
    return [dict(row) for row in rows]
