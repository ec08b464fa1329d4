"""Closed enumerations and shared row helpers for konterra tools.

Every enumerated column is validated here before it reaches SQL so that an
unknown value fails the whole operation with a ``ValidationError`` instead of
surfacing as a database constraint violation halfway through a write.
"""

from __future__ import annotations

import enum
import re
import uuid
from datetime import date, datetime
from typing import Any, TypeVar

import asyncpg

from konterra.errors import ValidationError


class ConnectionType(enum.StrEnum):
    """Kind of directed relationship between two contacts."""

    KNOWS = "knows"
    INTRODUCED_BY = "introduced_by"
    WORKS_WITH = "works_with"
    REPORTS_TO = "reports_to"
    INVESTED_IN = "invested_in"
    REFERRED_BY = "referred_by"


class InteractionType(enum.StrEnum):
    MEETING = "meeting"
    CALL = "call"
    MESSAGE = "message"
    EMAIL = "email"
    EVENT = "event"
    INTRODUCTION = "introduction"
    DEAL = "deal"
    NOTE = "note"


class FavorDirection(enum.StrEnum):
    GIVEN = "given"
    RECEIVED = "received"


class FavorType(enum.StrEnum):
    INTRODUCTION = "introduction"
    ADVICE = "advice"
    REFERRAL = "referral"
    MONEY = "money"
    OPPORTUNITY = "opportunity"
    RESOURCE = "resource"
    TIME = "time"


class FavorValue(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FavorStatus(enum.StrEnum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    EXPIRED = "expired"
    REPAID = "repaid"


class IntroductionStatus(enum.StrEnum):
    PLANNED = "planned"
    INTRODUCED = "introduced"
    CONNECTED = "connected"
    FAILED = "failed"
    COMPLETED = "completed"
    MADE = "made"


class WishlistPriority(enum.StrEnum):
    DREAM = "dream"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class WishlistStatus(enum.StrEnum):
    IDEA = "idea"
    RESEARCHING = "researching"
    PLANNING = "planning"
    READY = "ready"


STRENGTH_MIN = 1
STRENGTH_MAX = 5
DEFAULT_STRENGTH = 3

# Contact columns a caller may write directly; also the set of fields a merge resolves.
CONTACT_FIELDS: tuple[str, ...] = (
    "name",
    "email",
    "phone",
    "company",
    "role",
    "city",
    "country",
    "address",
    "website",
    "notes",
    "birthday",
    "lat",
    "lng",
    "tags",
)

CONTACT_NAME_MAX = 200

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_WEBSITE_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)


E = TypeVar("E", bound=enum.StrEnum)


def parse_enum(enum_cls: type[E], value: Any, field: str) -> E:
    """Coerce *value* into *enum_cls* or raise ``ValidationError``."""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field}: {value!r}. Must be one of: {allowed}") from None


def validate_strength(strength: Any) -> int:
    """Return *strength* when it is an integer in [1, 5].

    Booleans are rejected even though they are ``int`` subclasses.
    """
    if isinstance(strength, bool) or not isinstance(strength, int):
        raise ValidationError(f"strength must be an integer, got {strength!r}")
    if not STRENGTH_MIN <= strength <= STRENGTH_MAX:
        raise ValidationError(
            f"strength must be between {STRENGTH_MIN} and {STRENGTH_MAX}, got {strength}"
        )
    return strength


def clamp_strength(strength: Any) -> int:
    """Pre-clamp an imported strength into [1, 5], defaulting non-numbers to 3."""
    if isinstance(strength, bool):
        return DEFAULT_STRENGTH
    try:
        value = int(strength)
    except (TypeError, ValueError):
        return DEFAULT_STRENGTH
    return max(STRENGTH_MIN, min(STRENGTH_MAX, value))


def coerce_uuid(value: Any, field: str) -> uuid.UUID:
    """Parse *value* as a UUID, raising ``ValidationError`` on malformed ids."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field} is not a valid id: {value!r}") from None


def is_empty(value: Any) -> bool:
    """True for ``None``, blank strings, and empty lists."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple):
        return len(value) == 0
    return False


def validate_contact_fields(fields: dict[str, Any], *, creating: bool) -> dict[str, Any]:
    """Validate caller-supplied contact columns and return the cleaned mapping."""
    unknown = set(fields) - set(CONTACT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown contact field(s): {', '.join(sorted(unknown))}")

    cleaned = dict(fields)
    if creating or "name" in cleaned:
        name = cleaned.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name is required")
        if len(name.strip()) > CONTACT_NAME_MAX:
            raise ValidationError(f"name must be at most {CONTACT_NAME_MAX} characters")
        cleaned["name"] = name.strip()

    email = cleaned.get("email")
    if not is_empty(email):
        if not isinstance(email, str) or _EMAIL_PATTERN.fullmatch(email.strip()) is None:
            raise ValidationError(f"Invalid email: {email!r}")
        cleaned["email"] = email.strip()

    website = cleaned.get("website")
    if not is_empty(website):
        if not isinstance(website, str) or _WEBSITE_PATTERN.fullmatch(website.strip()) is None:
            raise ValidationError(f"website must start with http:// or https://, got {website!r}")
        cleaned["website"] = website.strip()

    if "tags" in cleaned:
        tags = cleaned["tags"]
        if tags is None:
            cleaned["tags"] = []
        elif not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise ValidationError("tags must be a list of strings")
        else:
            cleaned["tags"] = _dedupe_tags(tags)

    if "birthday" in cleaned:
        cleaned["birthday"] = _parse_birthday(cleaned["birthday"])

    for coord in ("lat", "lng"):
        value = cleaned.get(coord)
        if value is not None and (isinstance(value, bool) or not isinstance(value, int | float)):
            raise ValidationError(f"{coord} must be a number, got {value!r}")

    return cleaned


def _parse_birthday(value: Any) -> date | None:
    if is_empty(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"birthday must be an ISO date (YYYY-MM-DD), got {value!r}")


def _dedupe_tags(tags: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for tag in tags:
        name = tag.strip()
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


def parse_row(row: asyncpg.Record | None) -> dict[str, Any] | None:
    """Convert a record to a plain dict, normalising array columns to lists."""
    if row is None:
        return None
    d = dict(row)
    if "tags" in d:
        d["tags"] = list(d["tags"] or [])
    return d
