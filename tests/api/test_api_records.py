"""Tests for history, travel, and tag endpoints."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock

import pytest

from konterra.errors import NotFoundError

pytestmark = pytest.mark.unit

USER_ID = "user-1"
A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
B = uuid.UUID("00000000-0000-0000-0000-00000000000b")


class TestInteractions:
    async def test_log(self, client, monkeypatch):
        log = AsyncMock(return_value={"id": str(B), "type": "meeting"})
        monkeypatch.setattr("konterra.tools.interactions.interaction_log", log)

        resp = await client.post(
            f"/api/contacts/{A}/interactions",
            json={"type": "meeting", "date": "2024-03-01T10:00:00Z", "location": "Lisbon"},
        )

        assert resp.status_code == 201
        assert log.await_args.args[1:] == (USER_ID, A, "meeting")
        assert log.await_args.kwargs == {
            "occurred_at": "2024-03-01T10:00:00Z",
            "location": "Lisbon",
            "notes": None,
        }

    async def test_future_date_is_400(self, client, mock_pool):
        mock_pool.fetch.return_value = [{"id": A}]
        resp = await client.post(
            f"/api/contacts/{A}/interactions",
            json={"type": "call", "date": "2999-01-01T00:00:00Z"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Date cannot be in the future"

    async def test_unknown_contact_is_404(self, client):
        resp = await client.get(f"/api/contacts/{A}/interactions")
        assert resp.status_code == 404


class TestFavorsAndIntroductions:
    async def test_favor(self, client, monkeypatch):
        create = AsyncMock(return_value={"id": str(B)})
        monkeypatch.setattr("konterra.tools.interactions.favor_create", create)
        resp = await client.post(
            f"/api/contacts/{A}/favors", json={"direction": "given", "type": "advice"}
        )
        assert resp.status_code == 201
        assert create.await_args.kwargs["value"] == "medium"
        assert create.await_args.kwargs["status"] == "active"

    async def test_introduction_to_self_is_400(self, client):
        resp = await client.post(
            "/api/introductions",
            json={"contactAId": str(A), "contactBId": str(A), "initiatedBy": "me"},
        )
        assert resp.status_code == 400


class TestCountryLinks:
    async def test_all_links(self, client, mock_pool):
        mock_pool.fetch.return_value = [{"id": B, "country": "Brazil", "tags": None}]
        resp = await client.get("/api/country-connections")
        assert resp.status_code == 200
        assert resp.json() == [{"id": str(B), "country": "Brazil", "tags": []}]

    async def test_delete_missing_is_404(self, client, mock_pool):
        mock_pool.execute.return_value = "DELETE 0"
        resp = await client.request(
            "DELETE", f"/api/contacts/{A}/country-connections", json={"linkId": str(B)}
        )
        assert resp.status_code == 404


class TestTrips:
    async def test_single(self, client, monkeypatch):
        create = AsyncMock(return_value={"id": str(A), "city": "Kyoto"})
        monkeypatch.setattr("konterra.tools.trips.trip_create", create)

        resp = await client.post(
            "/api/trips",
            json={"city": "Kyoto", "country": "Japan", "arrivalDate": "2024-04-01"},
        )

        assert resp.status_code == 201
        kwargs = create.await_args.kwargs
        assert kwargs["city"] == "Kyoto"
        assert kwargs["arrival_date"] == "2024-04-01"
        assert kwargs["lat"] is None

    async def test_single_missing_fields_is_400(self, client, mock_pool):
        resp = await client.post("/api/trips", json={"city": "Kyoto"})
        assert resp.status_code == 400
        mock_pool.fetchrow.assert_not_awaited()

    async def test_bulk_counts_malformed_entries(self, client, monkeypatch):
        bulk = AsyncMock(return_value={"created": 1, "skipped": 1})
        monkeypatch.setattr("konterra.tools.trips.trips_create_bulk", bulk)

        resp = await client.post(
            "/api/trips",
            json={
                "trips": [
                    {"city": "Kyoto", "country": "Japan", "arrivalDate": "2024-04-01"},
                    {"city": "Rome"},
                    {"city": "Oslo", "durationDays": "a week"},
                ]
            },
        )

        assert resp.status_code == 201
        assert resp.json() == {"created": 1, "skipped": 2}
        entries = bulk.await_args.args[2]
        assert len(entries) == 2
        assert entries[0]["arrival_date"] == "2024-04-01"

    async def test_bulk_with_nothing_valid_is_400(self, client):
        resp = await client.post("/api/trips", json={"trips": [{"city": "Rome"}]})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "No valid trips in payload"

    async def test_delete_all(self, client, mock_pool):
        mock_pool.execute.return_value = "DELETE 4"
        resp = await client.delete("/api/trips")
        assert resp.json() == {"deleted": True, "count": 4}


class TestCountries:
    async def test_visited(self, client, mock_pool):
        mock_pool.fetch.return_value = [{"country": "Japan"}]
        resp = await client.post("/api/visited-countries", json={"countries": ["Japan"]})
        assert resp.status_code == 200
        assert resp.json() == ["Japan"]

    async def test_visited_empty_list_is_400(self, client):
        resp = await client.post("/api/visited-countries", json={"countries": []})
        assert resp.status_code == 400

    async def test_wishlist_bad_priority_is_400(self, client):
        resp = await client.post(
            "/api/wishlist-countries", json={"country": "Peru", "priority": "someday"}
        )
        assert resp.status_code == 400


class TestTags:
    async def test_create(self, client, mock_pool):
        mock_pool.fetchrow.return_value = {"id": A, "name": "investors", "color": "#00f"}
        resp = await client.post("/api/tags", json={"name": "investors", "color": "#00f"})
        assert resp.status_code == 201
        assert resp.json()["name"] == "investors"

    async def test_name_too_long_is_400(self, client):
        resp = await client.post("/api/tags", json={"name": "x" * 51})
        assert resp.status_code == 400

    async def test_rename_missing_is_404(self, client, monkeypatch):
        monkeypatch.setattr(
            "konterra.tools.tags.tag_rename", AsyncMock(side_effect=NotFoundError("Tag", A))
        )
        resp = await client.patch(f"/api/tags/{A}", json={"name": "vc"})
        assert resp.status_code == 404
