"""Tests for contact and merge endpoints: status codes, envelopes, and caller scoping."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock

import pytest

from konterra.errors import ValidationError

pytestmark = pytest.mark.unit

USER_ID = "user-1"
WINNER = uuid.UUID("00000000-0000-0000-0000-00000000000a")
LOSER = uuid.UUID("00000000-0000-0000-0000-00000000000b")


async def test_health(anon_client):
    resp = await anon_client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


async def test_missing_identity_is_401(anon_client):
    resp = await anon_client.get("/api/contacts")
    assert resp.status_code == 401
    assert resp.json() == {"error": {"code": "UNAUTHORIZED", "message": "Missing X-User-Id header"}}


async def test_blank_identity_is_401(anon_client):
    resp = await anon_client.get("/api/contacts", headers={"X-User-Id": "  "})
    assert resp.status_code == 401


async def test_list_contacts_scoped_to_caller(client, monkeypatch):
    contact_list = AsyncMock(return_value=[{"id": str(WINNER), "name": "Ana"}])
    monkeypatch.setattr("konterra.tools.contacts.contact_list", contact_list)

    resp = await client.get("/api/contacts")

    assert resp.status_code == 200
    assert resp.json() == [{"id": str(WINNER), "name": "Ana"}]
    assert contact_list.await_args.args[1] == USER_ID


async def test_create_contact(client, mock_pool):
    mock_pool.fetchrow.return_value = {"id": WINNER, "name": "Ana", "tags": []}
    resp = await client.post("/api/contacts", json={"name": "Ana"})
    assert resp.status_code == 201
    assert resp.json()["id"] == str(WINNER)


async def test_create_contact_validation_is_400(client, mock_pool):
    resp = await client.post("/api/contacts", json={"email": "not-an-email", "name": "Ana"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
    mock_pool.fetchrow.assert_not_awaited()


async def test_create_contact_cannot_override_owner(client):
    resp = await client.post("/api/contacts", json={"name": "Ana", "user_id": "someone-else"})
    assert resp.status_code == 400


async def test_get_contact_not_found(client):
    resp = await client.get(f"/api/contacts/{WINNER}")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


async def test_malformed_contact_id_is_400(client):
    resp = await client.get("/api/contacts/not-a-uuid")
    assert resp.status_code == 400


async def test_delete_contact(client, mock_pool):
    mock_pool.execute.return_value = "DELETE 1"
    resp = await client.delete(f"/api/contacts/{WINNER}")
    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    mock_pool.execute.return_value = "DELETE 0"
    resp = await client.delete(f"/api/contacts/{WINNER}")
    assert resp.status_code == 404


class TestMerge:
    async def test_success_returns_winner_and_deleted_id(self, client, monkeypatch):
        contact_merge = AsyncMock(
            return_value={
                "winner": {"id": str(WINNER), "name": "Ana Silva"},
                "deleted_id": LOSER,
                "edges": {"repointed": 1, "collapsed": 0, "dropped_self": 0},
            }
        )
        monkeypatch.setattr("konterra.tools.merge.contact_merge", contact_merge)

        resp = await client.post(
            "/api/contacts/merge",
            json={
                "winnerId": str(WINNER),
                "loserId": str(LOSER),
                "fieldOverrides": {"email": "ana@example.com"},
            },
        )

        assert resp.status_code == 200
        assert resp.json() == {
            "winner": {"id": str(WINNER), "name": "Ana Silva"},
            "deletedId": str(LOSER),
        }
        args = contact_merge.await_args
        assert args.args[1:] == (USER_ID, WINNER, LOSER)
        assert args.kwargs == {"field_overrides": {"email": "ana@example.com"}}

    async def test_missing_contact_is_404(self, client, monkeypatch):
        monkeypatch.setattr("konterra.tools.merge.contact_merge", AsyncMock(return_value=None))
        resp = await client.post(
            "/api/contacts/merge", json={"winnerId": str(WINNER), "loserId": str(LOSER)}
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    async def test_self_merge_is_400(self, client, mock_pool):
        resp = await client.post(
            "/api/contacts/merge", json={"winnerId": str(WINNER), "loserId": str(WINNER)}
        )
        assert resp.status_code == 400
        assert "itself" in resp.json()["error"]["message"]
        mock_pool.acquire.assert_not_called()

    async def test_missing_loser_id_is_400(self, client):
        resp = await client.post("/api/contacts/merge", json={"winnerId": str(WINNER)})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_tool_validation_error_is_400(self, client, monkeypatch):
        monkeypatch.setattr(
            "konterra.tools.merge.contact_merge",
            AsyncMock(side_effect=ValidationError("Invalid field override(s): nickname")),
        )
        resp = await client.post(
            "/api/contacts/merge",
            json={
                "winnerId": str(WINNER),
                "loserId": str(LOSER),
                "fieldOverrides": {"nickname": "A"},
            },
        )
        assert resp.status_code == 400


async def test_duplicates(client, monkeypatch):
    groups = [{"id": "a-b", "confidence": "exact", "reason": "email", "contacts": []}]
    monkeypatch.setattr("konterra.tools.dedup.duplicate_groups", AsyncMock(return_value=groups))
    resp = await client.get("/api/contacts/duplicates")
    assert resp.status_code == 200
    assert resp.json() == groups


async def test_self_contact(client, monkeypatch):
    get_self = AsyncMock(return_value={"id": str(WINNER), "name": "Me", "is_self": True})
    monkeypatch.setattr("konterra.tools.contacts.contact_get_or_create_self", get_self)
    resp = await client.get("/api/me/contact")
    assert resp.status_code == 200
    assert resp.json()["is_self"] is True


async def test_unhandled_error_is_500_envelope(client, monkeypatch):
    monkeypatch.setattr(
        "konterra.tools.contacts.contact_list", AsyncMock(side_effect=RuntimeError("boom"))
    )
    resp = await client.get("/api/contacts")
    assert resp.status_code == 500
    assert resp.json() == {"error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}}
