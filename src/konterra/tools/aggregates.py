"""Read-only projections over the relationship graph, recomputed on every read."""

from __future__ import annotations

from typing import Any

import asyncpg


def country_pair(a: str, b: str) -> tuple[str, str]:
    """Order-independent key for a pair of countries."""
    return (a, b) if a <= b else (b, a)


def summarize_country_connections(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Bucket edges by the unordered pair of their endpoints' countries.

    Each row needs ``source_country``, ``target_country``, ``strength`` and
    ``bidirectional``. Rows with a missing country on either end are ignored;
    same-country pairs form their own bucket. Buckets are ordered by edge
    count (descending), then by country pair.
    """
    buckets: dict[tuple[str, str], dict[str, Any]] = {}
    for row in rows:
        source = (row.get("source_country") or "").strip()
        target = (row.get("target_country") or "").strip()
        if not source or not target:
            continue
        key = country_pair(source, target)
        bucket = buckets.setdefault(
            key,
            {
                "countries": list(key),
                "count": 0,
                "strength_sum": 0,
                "max_strength": 0,
                "bidirectional_count": 0,
            },
        )
        strength = int(row.get("strength") or 0)
        bucket["count"] += 1
        bucket["strength_sum"] += strength
        bucket["max_strength"] = max(bucket["max_strength"], strength)
        if row.get("bidirectional"):
            bucket["bidirectional_count"] += 1

    result = []
    for bucket in buckets.values():
        strength_sum = bucket.pop("strength_sum")
        bucket["avg_strength"] = round(strength_sum / bucket["count"], 2)
        result.append(bucket)
    result.sort(key=lambda b: (-b["count"], b["countries"]))
    return result


async def country_connections(pool: asyncpg.Pool, user_id: str) -> list[dict[str, Any]]:
    """Country-to-country connection summary for *user_id*."""
    rows = await pool.fetch(
        """
        SELECT s.country AS source_country, t.country AS target_country,
               cc.strength, cc.bidirectional
        FROM contact_connections cc
        JOIN contacts s ON s.id = cc.source_contact_id AND s.user_id = cc.user_id
        JOIN contacts t ON t.id = cc.target_contact_id AND t.user_id = cc.user_id
        WHERE cc.user_id = $1
        """,
        user_id,
    )
    return summarize_country_connections([dict(row) for row in rows])


def compute_network_metrics(
    contact_count: int, edges: list[dict[str, Any]]
) -> dict[str, Any]:
    """Graph-wide health figures from the contact count and the edge list.

    Density treats the graph as undirected: ``edges / (n * (n - 1) / 2)``,
    capped at 1.0 since two typed edges may join the same pair.
    """
    edge_count = len(edges)
    possible = contact_count * (contact_count - 1) / 2
    connected: set[Any] = set()
    strength_sum = 0
    bidirectional = 0
    for edge in edges:
        connected.add(edge["source_contact_id"])
        connected.add(edge["target_contact_id"])
        strength_sum += int(edge.get("strength") or 0)
        if edge.get("bidirectional"):
            bidirectional += 1

    return {
        "contacts": contact_count,
        "connections": edge_count,
        "density": round(min(1.0, edge_count / possible), 4) if possible else 0.0,
        "avg_strength": round(strength_sum / edge_count, 2) if edge_count else 0.0,
        "bidirectional_ratio": round(bidirectional / edge_count, 4) if edge_count else 0.0,
        "connected_ratio": round(len(connected) / contact_count, 4) if contact_count else 0.0,
    }


async def network_metrics(pool: asyncpg.Pool, user_id: str) -> dict[str, Any]:
    """Connection insights for *user_id* (density, strength, reciprocity, reach)."""
    contact_count = await pool.fetchval(
        "SELECT count(*) FROM contacts WHERE user_id = $1",
        user_id,
    )
    rows = await pool.fetch(
        """
        SELECT source_contact_id, target_contact_id, strength, bidirectional
        FROM contact_connections
        WHERE user_id = $1
        """,
        user_id,
    )
    return compute_network_metrics(contact_count or 0, [dict(row) for row in rows])
