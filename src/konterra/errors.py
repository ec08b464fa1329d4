"""Semantic error kinds raised by the konterra tools.

The tools never return transport status codes; the HTTP boundary maps these
classes onto responses (see ``konterra.api.middleware``).
"""

from __future__ import annotations


class KonterraError(Exception):
    """Base class for all konterra domain errors."""


class ValidationError(KonterraError, ValueError):
    """Raised for malformed input, before any mutation is applied."""


class NotFoundError(KonterraError, LookupError):
    """Raised when a referenced entity is absent or owned by another user."""

    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class UnauthorizedError(KonterraError):
    """Raised at the HTTP boundary when no caller identity is present."""


class MergeIntegrityError(KonterraError):
    """Raised when rows still reference a merge loser right before its deletion."""

    def __init__(self, loser_id: object, dangling: dict[str, int]) -> None:
        self.loser_id = loser_id
        self.dangling = dangling
        tables = ", ".join(f"{table}={count}" for table, count in sorted(dangling.items()))
        super().__init__(f"Contact {loser_id} is still referenced after repoint ({tables})")
