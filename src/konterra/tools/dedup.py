"""Duplicate contact detection, producing candidate pairs for the merge engine.

Contacts sharing an email address or a phone number are grouped with
``exact`` confidence (union-find, so A~B and B~C put A, B, C together).
Contacts left ungrouped are then compared by name; fuzzy name matches form
``possible`` groups.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any

import asyncpg
from rapidfuzz.distance import Levenshtein

MIN_PHONE_DIGITS = 7

_NON_ALNUM = re.compile(r"[^\w\s]", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str | None) -> str:
    """Lowercase, strip accents and punctuation, collapse whitespace."""
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFD", name.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    cleaned = _NON_ALNUM.sub("", stripped).replace("_", "")
    return _WHITESPACE.sub(" ", cleaned).strip()


def normalize_phone(phone: str | None) -> str:
    """Digits only, keeping a leading ``+``; empty when too short to be a number."""
    if not phone:
        return ""
    stripped = phone.strip()
    digits = re.sub(r"\D", "", stripped)
    if len(digits) < MIN_PHONE_DIGITS:
        return ""
    return f"+{digits}" if stripped.startswith("+") else digits


def tokens_match(a: str, b: str) -> bool:
    """Equal tokens, or long-enough tokens within a small edit distance."""
    if a == b:
        return True
    if len(a) < 4 or len(b) < 4:
        return False
    max_distance = 1 if max(len(a), len(b)) <= 6 else 2
    return Levenshtein.distance(a, b, score_cutoff=max_distance) <= max_distance


def names_match(a: str | None, b: str | None) -> bool:
    """Fuzzy full-name comparison tolerant of typos, accents, and one extra token.

    Every token of the shorter name must match a distinct token of the longer
    one, and the longer name may carry at most one unmatched token
    ("Anna Maria Lopez" matches "Anna Lopez").
    """
    tokens_a = normalize_name(a).split()
    tokens_b = normalize_name(b).split()
    if not tokens_a or not tokens_b:
        return False
    if len(tokens_a) <= len(tokens_b):
        shorter, longer = tokens_a, tokens_b
    else:
        shorter, longer = tokens_b, tokens_a
    if len(shorter) == 1 and len(longer) == 1:
        return tokens_match(shorter[0], longer[0])

    used: set[int] = set()
    matched = 0
    for token in shorter:
        for index, candidate in enumerate(longer):
            if index not in used and tokens_match(token, candidate):
                used.add(index)
                matched += 1
                break
    return matched >= len(shorter) and len(longer) - matched <= 1


class _UnionFind:
    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, x: int) -> int:
        while self._parent[x] != x:
            self._parent[x] = self._parent[self._parent[x]]
            x = self._parent[x]
        return x

    def union(self, a: int, b: int) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            self._parent[root_b] = root_a


def _group_id(members: list[dict[str, Any]]) -> str:
    return "-".join(sorted(str(m["id"]) for m in members))


def find_duplicate_groups(contacts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Group likely duplicates among *contacts* (dicts with id, name, email, phone).

    Returns ``[{"id", "confidence", "reason", "contacts"}]`` sorted by group
    size, largest first. Each contact appears in at most one group.
    """
    uf = _UnionFind(len(contacts))
    reasons: dict[int, set[str]] = {}

    for field, normalize in (
        ("email", lambda v: (v or "").strip().lower()),
        ("phone", normalize_phone),
    ):
        first_seen: dict[str, int] = {}
        for index, contact in enumerate(contacts):
            key = normalize(contact.get(field))
            if not key:
                continue
            if key in first_seen:
                uf.union(first_seen[key], index)
                reasons.setdefault(index, set()).add(field)
                reasons.setdefault(first_seen[key], set()).add(field)
            else:
                first_seen[key] = index

    clusters: dict[int, list[int]] = {}
    for index in range(len(contacts)):
        clusters.setdefault(uf.find(index), []).append(index)

    groups: list[dict[str, Any]] = []
    grouped: set[int] = set()
    for members in clusters.values():
        if len(members) < 2:
            continue
        grouped.update(members)
        member_contacts = [contacts[i] for i in members]
        fields = sorted({r for i in members for r in reasons.get(i, set())})
        groups.append(
            {
                "id": _group_id(member_contacts),
                "confidence": "exact",
                "reason": " + ".join(fields),
                "contacts": member_contacts,
            }
        )

    remaining = [i for i in range(len(contacts)) if i not in grouped]
    claimed: set[int] = set()
    for position, i in enumerate(remaining):
        if i in claimed:
            continue
        members = [i]
        for j in remaining[position + 1 :]:
            if j not in claimed and names_match(contacts[i].get("name"), contacts[j].get("name")):
                members.append(j)
        if len(members) < 2:
            continue
        claimed.update(members)
        member_contacts = [contacts[k] for k in members]
        groups.append(
            {
                "id": _group_id(member_contacts),
                "confidence": "possible",
                "reason": "name",
                "contacts": member_contacts,
            }
        )

    groups.sort(key=lambda g: len(g["contacts"]), reverse=True)
    return groups


async def duplicate_groups(pool: asyncpg.Pool, user_id: str) -> list[dict[str, Any]]:
    """Duplicate candidate groups among *user_id*'s contacts."""
    rows = await pool.fetch(
        """
        SELECT id, name, email, phone, company, city, country, is_self
        FROM contacts
        WHERE user_id = $1
        ORDER BY created_at, id
        """,
        user_id,
    )
    return find_duplicate_groups([dict(row) for row in rows])
