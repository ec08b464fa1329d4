"""Rate-limited batch enrichment: backfill missing coordinates via the geocoder.

One invocation processes a single bounded page of records, calls the geocoder
sequentially with a fixed pause between consecutive lookups, writes back the
hits, and reports how many records still lack coordinates. A miss or failure
for one record never aborts the batch; the record simply stays a candidate for
the next invocation. Contacts and trips share this algorithm through
``EnrichmentTarget``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import asyncpg
from opentelemetry import trace
from pydantic import BaseModel, ConfigDict

from konterra.config import EnrichmentConfig
from konterra.geocoding import Geocoder

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("konterra")

SleepFn = Callable[[float], Awaitable[Any]]


class EntityKind(enum.StrEnum):
    CONTACTS = "contacts"
    TRIPS = "trips"


@dataclass(frozen=True)
class EnrichmentTarget:
    """Which table to enrich and how hard to hit the geocoder while doing it.

    ``candidate_predicate`` is appended to ``user_id = $1`` and must only
    reference columns of ``table``.
    """

    kind: EntityKind
    table: str
    batch_size: int
    delay_seconds: float
    candidate_predicate: str

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")


_CONTACT_PREDICATE = (
    "lat IS NULL AND (NULLIF(TRIM(city), '') IS NOT NULL OR NULLIF(TRIM(country), '') IS NOT NULL)"
)
_TRIP_PREDICATE = "lat IS NULL"

CONTACTS = EnrichmentTarget(
    kind=EntityKind.CONTACTS,
    table="contacts",
    batch_size=20,
    delay_seconds=0.35,
    candidate_predicate=_CONTACT_PREDICATE,
)
TRIPS = EnrichmentTarget(
    kind=EntityKind.TRIPS,
    table="trips",
    batch_size=25,
    delay_seconds=0.30,
    candidate_predicate=_TRIP_PREDICATE,
)


def enrichment_target(
    kind: EntityKind | str, config: EnrichmentConfig | None = None
) -> EnrichmentTarget:
    """Return the target for *kind*, with batch size and delay taken from *config*."""
    kind = EntityKind(kind)
    base = CONTACTS if kind is EntityKind.CONTACTS else TRIPS
    if config is None:
        return base
    settings = config.contacts if kind is EntityKind.CONTACTS else config.trips
    return EnrichmentTarget(
        kind=base.kind,
        table=base.table,
        batch_size=settings.batch_size,
        delay_seconds=settings.delay_ms / 1000,
        candidate_predicate=base.candidate_predicate,
    )


class EnrichmentResult(BaseModel):
    """Outcome of one batch."""

    model_config = ConfigDict(extra="forbid")

    enriched: int = 0
    remaining: int = 0
    skipped: int = 0
    failed: int = 0


def build_location_query(city: str | None, country: str | None) -> str:
    """``"City, Country"`` from whichever parts are present (may be empty)."""
    return ", ".join(part.strip() for part in (city, country) if part and part.strip())


async def count_remaining(pool: asyncpg.Pool, user_id: str, target: EnrichmentTarget) -> int:
    """Exact number of *user_id*'s records still matching the candidate predicate."""
    count = await pool.fetchval(
        f"SELECT count(*) FROM {target.table} WHERE user_id = $1 AND {target.candidate_predicate}",  # noqa: S608
        user_id,
    )
    return int(count or 0)


async def enrich_batch(
    pool: asyncpg.Pool,
    user_id: str,
    target: EnrichmentTarget,
    geocoder: Geocoder,
    *,
    sleep: SleepFn = asyncio.sleep,
) -> EnrichmentResult:
    """Geocode one page of *user_id*'s records that lack coordinates.

    Records are processed in selection order. The pause between lookups is
    only inserted between two external calls, never after the last one and
    never around records skipped for having no location text. Coordinates are
    written back only while the row still lacks them, filtered by id and owner.
    """
    with tracer.start_as_current_span("konterra.enrich_batch") as span:
        span.set_attribute("konterra.enrichment.kind", target.kind.value)

        rows = await pool.fetch(
            f"""
            SELECT id, city, country
            FROM {target.table}
            WHERE user_id = $1 AND {target.candidate_predicate}
            ORDER BY created_at, id
            LIMIT $2
            """,  # noqa: S608
            user_id,
            target.batch_size,
        )
        if not rows:
            return EnrichmentResult()

        result = EnrichmentResult()
        called = False
        for row in rows:
            query = build_location_query(row["city"], row["country"])
            if not query:
                result.skipped += 1
                continue

            if called and target.delay_seconds > 0:
                await sleep(target.delay_seconds)
            called = True

            location = await geocoder.geocode(query)
            if location is None:
                result.failed += 1
                logger.debug("No coordinates for %s %s (%r)", target.kind, row["id"], query)
                continue

            status = await pool.execute(
                f"""
                UPDATE {target.table} SET lat = $1, lng = $2
                WHERE id = $3 AND user_id = $4 AND lat IS NULL
                """,  # noqa: S608
                location.lat,
                location.lng,
                row["id"],
                user_id,
            )
            if status == "UPDATE 1":
                result.enriched += 1

        result.remaining = await count_remaining(pool, user_id, target)

        span.set_attribute("konterra.enrichment.enriched", result.enriched)
        span.set_attribute("konterra.enrichment.remaining", result.remaining)
        logger.info(
            "Enrichment batch for %s: enriched=%d skipped=%d failed=%d remaining=%d",
            target.kind,
            result.enriched,
            result.skipped,
            result.failed,
            result.remaining,
        )
        return result
