"""Pydantic request/response models for the konterra API.

Request bodies use the camelCase keys the web client sends; snake_case names
are accepted too. Field-level rules (enum membership, strength range, name
length) are enforced by the tools, so these models only pin the shape.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from konterra.tools._schema import DEFAULT_STRENGTH, ConnectionType

# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Structured error payload."""

    code: str
    message: str
    details: dict | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: ErrorDetail


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class MergeRequest(_Request):
    winner_id: UUID
    loser_id: UUID
    field_overrides: dict[str, Any] | None = None


class ConnectionCreateRequest(_Request):
    target_contact_id: UUID
    connection_type: ConnectionType
    strength: int = DEFAULT_STRENGTH
    bidirectional: bool = True
    notes: str | None = None


class ConnectionDeleteRequest(_Request):
    connection_id: UUID


class RelationsImportRequest(_Request):
    relations: list[dict[str, Any]]


class CountryLinkRequest(_Request):
    country: str
    notes: str | None = None
    tags: list[str] | None = None


class CountryLinkDeleteRequest(_Request):
    link_id: UUID


class InteractionRequest(_Request):
    type: str
    date: str | None = None
    location: str | None = None
    notes: str | None = None


class FavorRequest(_Request):
    direction: str
    type: str
    value: str = "medium"
    status: str = "active"
    description: str | None = None
    date: str | None = None


class IntroductionRequest(_Request):
    contact_a_id: UUID
    contact_b_id: UUID
    initiated_by: str
    status: str = "planned"
    notes: str | None = None


class TripRequest(_Request):
    city: str | None = None
    country: str | None = None
    arrival_date: str | None = None
    departure_date: str | None = None
    duration_days: int | None = None
    notes: str | None = None
    lat: float | None = None
    lng: float | None = None


class TagRequest(_Request):
    name: str
    color: str | None = None


class VisitedCountriesRequest(_Request):
    countries: list[str] = Field(min_length=1)


class WishlistRequest(_Request):
    country: str
    priority: str = "medium"
    status: str = "idea"
    notes: str | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class MergeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    winner: dict[str, Any]
    deleted_id: UUID = Field(serialization_alias="deletedId")


class GeocodeBatchResponse(BaseModel):
    """Progress of one enrichment batch as reported to the web client."""

    geocoded: int
    remaining: int
    skipped: int = 0
    failed: int = 0
