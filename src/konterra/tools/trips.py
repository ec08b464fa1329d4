"""Trips: user-scoped travel records, geocoded by the same enrichment runner as contacts."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

import asyncpg

from konterra.errors import NotFoundError, ValidationError

_INSERT_TRIP = """
    INSERT INTO trips
        (user_id, city, country, arrival_date, departure_date, duration_days, notes, lat, lng)
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
    RETURNING *
"""


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return float(value)


def normalize_trip(data: dict[str, Any]) -> tuple[Any, ...]:
    """Validate one trip payload and return its insert arguments (without user_id).

    Raises:
        ValidationError: If city, country, or a parseable arrival date is missing.
    """
    city = data.get("city")
    country = data.get("country")
    if not city or not country or not data.get("arrival_date"):
        raise ValidationError("city, country, and arrival_date are required")
    arrival = _parse_date(data.get("arrival_date"))
    if arrival is None:
        raise ValidationError(f"Invalid arrival_date: {data.get('arrival_date')!r}")
    departure = _parse_date(data.get("departure_date"))
    if departure is not None and departure < arrival:
        raise ValidationError("departure_date cannot be before arrival_date")
    duration = data.get("duration_days")
    if isinstance(duration, bool) or not isinstance(duration, int) or duration < 0:
        duration = None
    notes = data.get("notes") if isinstance(data.get("notes"), str) else None
    return (
        str(city).strip(),
        str(country).strip(),
        arrival,
        departure,
        duration,
        notes,
        _number(data.get("lat")),
        _number(data.get("lng")),
    )


async def trip_create(pool: asyncpg.Pool, user_id: str, /, **data: Any) -> dict[str, Any]:
    row = await pool.fetchrow(_INSERT_TRIP, user_id, *normalize_trip(data))
    return dict(row)


async def trips_create_bulk(
    pool: asyncpg.Pool, user_id: str, trips: list[dict[str, Any]]
) -> dict[str, int]:
    """Insert every valid trip in *trips*; invalid entries are skipped.

    Raises:
        ValidationError: If no entry is valid.
    """
    rows: list[tuple[Any, ...]] = []
    skipped = 0
    for trip in trips:
        try:
            rows.append((user_id, *normalize_trip(trip)))
        except (ValidationError, AttributeError):
            skipped += 1
    if not rows:
        raise ValidationError("No valid trips in payload")
    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.executemany(_INSERT_TRIP, rows)
    return {"created": len(rows), "skipped": skipped}


async def trip_list(pool: asyncpg.Pool, user_id: str) -> list[dict[str, Any]]:
    rows = await pool.fetch(
        "SELECT * FROM trips WHERE user_id = $1 ORDER BY arrival_date DESC, id",
        user_id,
    )
    return [dict(row) for row in rows]


async def trip_delete(pool: asyncpg.Pool, user_id: str, trip_id: uuid.UUID) -> None:
    status = await pool.execute(
        "DELETE FROM trips WHERE id = $1 AND user_id = $2",
        trip_id,
        user_id,
    )
    if status != "DELETE 1":
        raise NotFoundError("Trip", trip_id)


async def trips_delete_all(pool: asyncpg.Pool, user_id: str) -> int:
    status = await pool.execute("DELETE FROM trips WHERE user_id = $1", user_id)
    return int(status.split()[-1])
