"""Contact merge: fold a duplicate ("loser") contact into a surviving ("winner") one.

The merge runs in one transaction:

1. lock both contacts (by id and owner);
2. resolve the surviving field values;
3. repoint every edge touching the loser, dropping edges that would become
   self-edges and collapsing edges that would become duplicates;
4. repoint interactions, favors, introductions, and contact country links;
5. verify nothing references the loser any more;
6. delete the loser, last.

Planning (steps 2 and 3) is done by pure functions so the policy can be
exercised without a database.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import asyncpg
from opentelemetry import trace
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from konterra.errors import MergeIntegrityError, ValidationError
from konterra.tools._schema import (
    CONTACT_FIELDS,
    coerce_uuid,
    is_empty,
    parse_row,
    validate_contact_fields,
)
from konterra.tools.connections import edge_touching

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("konterra")

_COORD_FIELDS = ("lat", "lng")
_LOCATION_FIELDS = ("city", "country")

# Contact-scoped tables repointed from loser to winner: (table, fk column).
_DEPENDENT_TABLES: tuple[tuple[str, str], ...] = (
    ("interactions", "contact_id"),
    ("favors", "contact_id"),
    ("contact_country_connections", "contact_id"),
    ("introductions", "contact_a_id"),
    ("introductions", "contact_b_id"),
)

# Every (table, column) that may reference a contact; checked before the delete.
_REFERENCE_CHECKS: tuple[tuple[str, str], ...] = (
    ("contact_connections", "source_contact_id"),
    ("contact_connections", "target_contact_id"),
    *_DEPENDENT_TABLES,
)


class FieldOverrides(BaseModel):
    """User-chosen surviving values, keyed by contact column.

    Unknown keys and mistyped values are rejected so that a bad override fails
    the merge before anything is written.
    """

    model_config = ConfigDict(extra="forbid", strict=True)

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    role: str | None = None
    city: str | None = None
    country: str | None = None
    address: str | None = None
    website: str | None = None
    notes: str | None = None
    birthday: date | None = Field(default=None, strict=False)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    tags: list[str] | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            raise ValueError("name cannot be empty")
        return value.strip()


def parse_field_overrides(raw: dict[str, Any] | None) -> dict[str, Any]:
    """Validate *raw* overrides and return only the keys the caller supplied.

    Values go through the same checks as ``contact_update``, and coordinates
    may only be overridden as a pair.
    """
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError("fieldOverrides must be an object")
    try:
        model = FieldOverrides.model_validate(raw)
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'fieldOverrides'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(f"Invalid field override(s): {problems}") from None
    overrides = model.model_dump(exclude_unset=True)
    if ("lat" in overrides) != ("lng" in overrides):
        raise ValidationError("lat and lng overrides must be given together")
    # Same column rules as a direct edit; also turns a null tags override into [].
    return validate_contact_fields(overrides, creating=False)


# ---------------------------------------------------------------------------
# Field resolution
# ---------------------------------------------------------------------------


def _location_key(contact: dict[str, Any]) -> tuple[str | None, ...]:
    return tuple(
        None if is_empty(contact.get(f)) else str(contact[f]).strip().casefold()
        for f in _LOCATION_FIELDS
    )


def _has_coords(contact: dict[str, Any]) -> bool:
    return contact.get("lat") is not None and contact.get("lng") is not None


def _union_tags(*tag_lists: list[str] | None) -> list[str]:
    seen: set[str] = set()
    merged: list[str] = []
    for tags in tag_lists:
        for tag in tags or []:
            if tag not in seen:
                seen.add(tag)
                merged.append(tag)
    return merged


def resolve_merge_fields(
    winner: dict[str, Any],
    loser: dict[str, Any],
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Compute the winner's post-merge values for every mergeable field.

    - scalar fields: winner's non-empty value, else loser's;
    - ``tags``: ordered union, winner's first;
    - ``lat``/``lng``: taken from whichever contact the resolved city/country
      came from, or cleared when neither matches (so enrichment refills them);
    - *overrides* beat all of the above.
    """
    overrides = overrides or {}
    resolved: dict[str, Any] = {}
    for f in CONTACT_FIELDS:
        if f in _COORD_FIELDS or f == "tags":
            continue
        value = winner.get(f)
        resolved[f] = loser.get(f) if is_empty(value) else value

    resolved["tags"] = _union_tags(winner.get("tags"), loser.get("tags"))

    for f, value in overrides.items():
        if f not in _COORD_FIELDS:
            resolved[f] = value

    location = _location_key(resolved)
    resolved["lat"] = None
    resolved["lng"] = None
    for candidate in (winner, loser):
        if _location_key(candidate) == location and _has_coords(candidate):
            resolved["lat"] = candidate["lat"]
            resolved["lng"] = candidate["lng"]
            break

    for f in _COORD_FIELDS:
        if f in overrides:
            resolved[f] = overrides[f]
    return resolved


# ---------------------------------------------------------------------------
# Edge repoint planning
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EdgeUpdate:
    """Final state of an edge that survives the merge."""

    id: uuid.UUID
    source_contact_id: uuid.UUID
    target_contact_id: uuid.UUID
    strength: int
    bidirectional: bool
    notes: str | None


@dataclass
class EdgePlan:
    """Statements needed to repoint a loser's edges onto the winner."""

    deletes: list[uuid.UUID] = field(default_factory=list)
    updates: list[EdgeUpdate] = field(default_factory=list)
    repointed: int = 0
    collapsed: int = 0
    dropped_self: int = 0


def merge_notes(*notes: str | None) -> str | None:
    """Join non-empty notes with newlines, dropping exact repeats."""
    seen: set[str] = set()
    parts: list[str] = []
    for note in notes:
        if note is None or not note.strip():
            continue
        text = note.strip()
        if text not in seen:
            seen.add(text)
            parts.append(text)
    return "\n".join(parts) if parts else None


def plan_edge_repoint(
    edges: list[dict[str, Any]],
    winner_id: uuid.UUID,
    loser_id: uuid.UUID,
) -> EdgePlan:
    """Plan how *edges* (everything touching winner or loser) change in a merge.

    Loser endpoints are substituted by the winner. Edges that become
    ``winner -> winner`` are deleted. Edges that land on the same
    ``(source, target, type)`` collapse into one: it keeps the highest strength
    (on a tie, the edge that was already attached to the winner), is
    bidirectional if any of them was, and carries the de-duplicated notes.
    """
    plan = EdgePlan()
    groups: dict[tuple[uuid.UUID, uuid.UUID, str], list[tuple[dict[str, Any], bool]]] = {}

    for edge in edges:
        source = edge["source_contact_id"]
        target = edge["target_contact_id"]
        moved = loser_id in (source, target)
        new_source = winner_id if source == loser_id else source
        new_target = winner_id if target == loser_id else target
        if new_source == new_target:
            plan.deletes.append(edge["id"])
            plan.dropped_self += 1
            continue
        key = (new_source, new_target, str(edge["connection_type"]))
        groups.setdefault(key, []).append((edge, moved))

    for (new_source, new_target, _ctype), members in groups.items():
        # max() keeps the first of equal keys, so order the winner's own edges first
        ordered = sorted(members, key=lambda m: m[1])
        survivor, survivor_moved = max(ordered, key=lambda m: m[0].get("strength") or 0)
        others = [edge for edge, _ in ordered if edge is not survivor]

        strength = max(edge.get("strength") or 0 for edge, _ in members)
        bidirectional = any(bool(edge.get("bidirectional")) for edge, _ in members)
        notes = merge_notes(survivor.get("notes"), *(edge.get("notes") for edge in others))

        plan.deletes.extend(edge["id"] for edge in others)
        plan.collapsed += len(others)

        changed = (
            survivor_moved
            or strength != survivor.get("strength")
            or bidirectional != bool(survivor.get("bidirectional"))
            or notes != survivor.get("notes")
        )
        if changed:
            plan.updates.append(
                EdgeUpdate(
                    id=survivor["id"],
                    source_contact_id=new_source,
                    target_contact_id=new_target,
                    strength=strength,
                    bidirectional=bidirectional,
                    notes=notes,
                )
            )
        if survivor_moved:
            plan.repointed += 1
    return plan


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def _apply_edge_plan(conn: asyncpg.Connection, user_id: str, plan: EdgePlan) -> None:
    # Deletes go first so surviving rows never collide on the unique key.
    if plan.deletes:
        await conn.execute(
            "DELETE FROM contact_connections WHERE user_id = $1 AND id = ANY($2::uuid[])",
            user_id,
            plan.deletes,
        )
    for update in plan.updates:
        await conn.execute(
            """
            UPDATE contact_connections
            SET source_contact_id = $3, target_contact_id = $4, strength = $5,
                bidirectional = $6, notes = $7, updated_at = now()
            WHERE id = $1 AND user_id = $2
            """,
            update.id,
            user_id,
            update.source_contact_id,
            update.target_contact_id,
            update.strength,
            update.bidirectional,
            update.notes,
        )


async def _repoint_dependents(
    conn: asyncpg.Connection, user_id: str, winner_id: uuid.UUID, loser_id: uuid.UUID
) -> None:
    # An introduction of the winner to the loser has no meaning once they are one person.
    await conn.execute(
        """
        DELETE FROM introductions
        WHERE user_id = $1
          AND ((contact_a_id = $2 AND contact_b_id = $3)
               OR (contact_a_id = $3 AND contact_b_id = $2))
        """,
        user_id,
        winner_id,
        loser_id,
    )
    for table, fk_col in _DEPENDENT_TABLES:
        await conn.execute(
            f"UPDATE {table} SET {fk_col} = $1 WHERE {fk_col} = $2 AND user_id = $3",  # noqa: S608
            winner_id,
            loser_id,
            user_id,
        )


async def _dangling_references(
    conn: asyncpg.Connection, user_id: str, loser_id: uuid.UUID
) -> dict[str, int]:
    dangling: dict[str, int] = {}
    for table, fk_col in _REFERENCE_CHECKS:
        count = await conn.fetchval(
            f"SELECT count(*) FROM {table} WHERE {fk_col} = $1 AND user_id = $2",  # noqa: S608
            loser_id,
            user_id,
        )
        if count:
            dangling[f"{table}.{fk_col}"] = count
    return dangling


async def contact_merge(
    pool: asyncpg.Pool,
    user_id: str,
    winner_id: uuid.UUID,
    loser_id: uuid.UUID,
    field_overrides: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Merge *loser_id* into *winner_id* for *user_id*.

    Returns ``{"winner": <contact>, "deleted_id": loser_id, "edges": {...}}``,
    or ``None`` when either contact is missing or owned by someone else (in
    which case nothing is written).

    Raises:
        ValidationError: If the ids are equal or malformed, or an override is
            unknown or mistyped. Raised before any write.
        MergeIntegrityError: If rows still reference the loser right before its
            deletion; the transaction is rolled back.
    """
    winner_id = coerce_uuid(winner_id, "winner_id")
    loser_id = coerce_uuid(loser_id, "loser_id")
    if winner_id == loser_id:
        raise ValidationError("Cannot merge a contact with itself")
    overrides = parse_field_overrides(field_overrides)

    with tracer.start_as_current_span("konterra.contact_merge") as span:
        span.set_attribute("konterra.merge.winner_id", str(winner_id))
        span.set_attribute("konterra.merge.loser_id", str(loser_id))
        logger.info("Merging contact %s into %s", loser_id, winner_id)

        async with pool.acquire() as conn:
            async with conn.transaction():
                rows = await conn.fetch(
                    "SELECT * FROM contacts WHERE user_id = $1 AND id = ANY($2::uuid[]) "
                    "ORDER BY id FOR UPDATE",
                    user_id,
                    [winner_id, loser_id],
                )
                by_id = {row["id"]: parse_row(row) for row in rows}
                winner = by_id.get(winner_id)
                loser = by_id.get(loser_id)
                if winner is None or loser is None:
                    logger.info(
                        "Merge aborted, contact not found (winner=%s loser=%s)",
                        winner_id,
                        loser_id,
                    )
                    return None

                resolved = resolve_merge_fields(winner, loser, overrides)

                edges = await edge_touching(conn, user_id, [winner_id, loser_id])
                plan = plan_edge_repoint(edges, winner_id, loser_id)
                await _apply_edge_plan(conn, user_id, plan)
                await _repoint_dependents(conn, user_id, winner_id, loser_id)

                # The loser's flag is released first: only one self contact may exist.
                becomes_self = bool(winner.get("is_self") or loser.get("is_self"))
                if loser.get("is_self"):
                    await conn.execute(
                        "UPDATE contacts SET is_self = false WHERE id = $1 AND user_id = $2",
                        loser_id,
                        user_id,
                    )

                assignments = ", ".join(
                    f"{col} = ${i}" for i, col in enumerate(resolved, start=4)
                )
                try:
                    updated = await conn.fetchrow(
                        f"""
                        UPDATE contacts
                        SET {assignments}, is_self = $3, updated_at = now()
                        WHERE id = $1 AND user_id = $2
                        RETURNING *
                        """,  # noqa: S608
                        winner_id,
                        user_id,
                        becomes_self,
                        *resolved.values(),
                    )
                except (asyncpg.DataError, asyncpg.IntegrityConstraintViolationError) as exc:
                    raise ValidationError(f"Invalid merged value: {exc}") from exc

                dangling = await _dangling_references(conn, user_id, loser_id)
                if dangling:
                    raise MergeIntegrityError(loser_id, dangling)

                await conn.execute(
                    "DELETE FROM contacts WHERE id = $1 AND user_id = $2",
                    loser_id,
                    user_id,
                )

        span.set_attribute("konterra.merge.edges_repointed", plan.repointed)
        span.set_attribute("konterra.merge.edges_collapsed", plan.collapsed)
        logger.info(
            "Merged contact %s into %s (edges repointed=%d collapsed=%d dropped_self=%d)",
            loser_id,
            winner_id,
            plan.repointed,
            plan.collapsed,
            plan.dropped_self,
        )
        return {
            "winner": parse_row(updated),
            "deleted_id": loser_id,
            "edges": {
                "repointed": plan.repointed,
                "collapsed": plan.collapsed,
                "dropped_self": plan.dropped_self,
            },
        }
