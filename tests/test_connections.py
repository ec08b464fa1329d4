"""Tests for the relationship graph store."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from konterra.errors import NotFoundError, ValidationError
from konterra.tools.connections import (
    connection_create,
    connection_delete,
    connection_list_all,
    connection_list_for_contact,
    connections_import,
)

pytestmark = pytest.mark.unit

USER = "user-1"
A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
B = uuid.UUID("00000000-0000-0000-0000-00000000000b")
C = uuid.UUID("00000000-0000-0000-0000-00000000000c")


def _pool(owned: set[uuid.UUID]) -> MagicMock:
    """Pool whose connection owns *owned* and echoes inserted edges back."""
    conn = AsyncMock()

    async def fetch(sql, user_id, ids):
        return [{"id": i} for i in ids if i in owned]

    async def fetchrow(sql, *args):
        return {
            "id": uuid.uuid4(),
            "user_id": args[0],
            "source_contact_id": args[1],
            "target_contact_id": args[2],
            "connection_type": args[3],
            "strength": args[4],
            "bidirectional": args[5],
            "notes": args[6],
        }

    conn.fetch.side_effect = fetch
    conn.fetchrow.side_effect = fetchrow
    conn.transaction = MagicMock(side_effect=lambda: _noop())

    pool = MagicMock()
    pool.conn = conn

    @asynccontextmanager
    async def acquire():
        yield conn

    pool.acquire = acquire
    return pool


@asynccontextmanager
async def _noop():
    yield


class TestConnectionCreate:
    async def test_creates_edge(self):
        pool = _pool({A, B})
        edge = await connection_create(pool, USER, A, B, "works_with", strength=4, notes="team")
        assert edge["source_contact_id"] == A
        assert edge["target_contact_id"] == B
        assert edge["connection_type"] == "works_with"
        assert edge["strength"] == 4
        assert edge["bidirectional"] is True
        sql = pool.conn.fetchrow.call_args.args[0]
        assert "ON CONFLICT (user_id, source_contact_id, target_contact_id, connection_type)" in sql

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"strength": 6}, "strength"),
            ({"strength": 0}, "strength"),
            ({"connection_type": "enemy"}, "connection_type"),
            ({"bidirectional": "yes"}, "bidirectional"),
            ({"notes": 5}, "notes"),
        ],
    )
    async def test_rejected_before_io(self, kwargs, match):
        pool = MagicMock()
        args = {"connection_type": "knows", **kwargs}
        with pytest.raises(ValidationError, match=match):
            await connection_create(pool, USER, A, B, **args)
        pool.acquire.assert_not_called()

    async def test_self_edge(self):
        pool = MagicMock()
        with pytest.raises(ValidationError, match="itself"):
            await connection_create(pool, USER, A, str(A), "knows")
        pool.acquire.assert_not_called()

    async def test_foreign_endpoint_is_not_found(self):
        pool = _pool({A})
        with pytest.raises(NotFoundError) as exc_info:
            await connection_create(pool, USER, A, B, "knows")
        assert exc_info.value.entity_id == B
        pool.conn.fetchrow.assert_not_awaited()


class TestConnectionQueries:
    async def test_delete(self):
        pool = AsyncMock()
        pool.execute.return_value = "DELETE 1"
        assert await connection_delete(pool, USER, A) is True
        pool.execute.return_value = "DELETE 0"
        assert await connection_delete(pool, USER, A) is False

    async def test_list_for_unknown_contact(self):
        pool = AsyncMock()
        pool.fetch.return_value = []
        with pytest.raises(NotFoundError):
            await connection_list_for_contact(pool, USER, A)

    async def test_list_all_paging_is_clamped(self):
        pool = AsyncMock()
        pool.fetchval.return_value = 7
        pool.fetch.return_value = [
            {
                "id": C,
                "source_contact_id": A,
                "target_contact_id": B,
                "connection_type": "knows",
                "strength": 3,
                "bidirectional": True,
                "notes": None,
                "created_at": None,
                "source_name": "Ana",
                "source_city": "Lisbon",
                "source_country": "Portugal",
                "source_lat": 38.7,
                "source_lng": -9.1,
                "target_name": "Ben",
                "target_city": None,
                "target_country": "Germany",
                "target_lat": None,
                "target_lng": None,
            }
        ]

        page = await connection_list_all(pool, USER, page=0, limit=500)

        assert page["total"] == 7
        assert page["page"] == 1
        assert page["limit"] == 100
        assert pool.fetch.call_args.args[1:] == (USER, 0, 100)
        item = page["items"][0]
        assert item["source"] == {
            "id": A,
            "name": "Ana",
            "city": "Lisbon",
            "country": "Portugal",
            "lat": 38.7,
            "lng": -9.1,
        }
        assert item["target"]["name"] == "Ben"
        assert "source_name" not in item


class TestConnectionsImport:
    async def test_clamps_and_skips(self):
        pool = _pool({A, B, C})
        result = await connections_import(
            pool,
            USER,
            [
                {"source": str(A), "target": str(B), "connectionType": "knows", "strength": 9},
                {"source": str(B), "target": str(C), "strength": "strong"},
                {"source": str(A), "target": str(A), "connectionType": "knows"},
                {"source": str(A), "target": str(uuid.uuid4()), "connectionType": "knows"},
                {"source": str(A), "target": str(C), "connectionType": "rival"},
                "not a relation",
            ],
        )

        assert result["created"] == 2
        assert result["skipped"] == 4
        assert len(result["errors"]) == 4
        assert result["errors"][-1] == "relations[5]: not an object"
        strengths = [call.args[5] for call in pool.conn.fetchrow.call_args_list]
        assert strengths == [5, 3]

    async def test_requires_list(self):
        with pytest.raises(ValidationError, match="relations must be a list"):
            await connections_import(MagicMock(), USER, {"source": "a"})

    async def test_bidirectional_parsed_strictly(self):
        pool = _pool({A, B, C})

        result = await connections_import(
            pool,
            USER,
            [
                {"source": str(A), "target": str(B), "bidirectional": "false"},
                {"source": str(A), "target": str(C), "bidirectional": "TRUE"},
                {"source": str(B), "target": str(C), "bidirectional": False},
                {"source": str(C), "target": str(A), "bidirectional": "nope"},
            ],
        )

        flags = [call.args[6] for call in pool.conn.fetchrow.call_args_list]
        assert flags == [False, True, False]
        assert result["created"] == 3
        assert result["skipped"] == 1
        assert "bidirectional must be a boolean" in result["errors"][0]
