"""Tests for enum parsing and contact field validation."""

from __future__ import annotations

import uuid
from datetime import date, datetime

import pytest

from konterra.errors import ValidationError
from konterra.tools._schema import (
    ConnectionType,
    WishlistPriority,
    clamp_strength,
    coerce_uuid,
    is_empty,
    parse_enum,
    parse_row,
    validate_contact_fields,
    validate_strength,
)

pytestmark = pytest.mark.unit


class TestParseEnum:
    def test_valid(self):
        assert parse_enum(ConnectionType, "works_with", "connection_type") is ConnectionType.WORKS_WITH

    def test_invalid_lists_allowed_values(self):
        with pytest.raises(ValidationError, match="Invalid priority: 'urgent'") as exc_info:
            parse_enum(WishlistPriority, "urgent", "priority")
        assert "dream, high, medium, low" in str(exc_info.value)


class TestStrength:
    @pytest.mark.parametrize("value", [1, 3, 5])
    def test_valid(self, value):
        assert validate_strength(value) == value

    @pytest.mark.parametrize("value", [0, 6, -1, 2.5, "3", True, None])
    def test_invalid(self, value):
        with pytest.raises(ValidationError, match="strength"):
            validate_strength(value)

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(9, 5), (0, 1), (-4, 1), ("4", 4), (2.9, 2), ("high", 3), (None, 3), (True, 3)],
    )
    def test_clamp(self, raw, expected):
        assert clamp_strength(raw) == expected


class TestHelpers:
    def test_coerce_uuid(self):
        value = uuid.uuid4()
        assert coerce_uuid(value, "id") is value
        assert coerce_uuid(str(value), "id") == value
        with pytest.raises(ValidationError, match="contact_id is not a valid id"):
            coerce_uuid("nope", "contact_id")

    @pytest.mark.parametrize("value", [None, "", "   ", [], ()])
    def test_is_empty(self, value):
        assert is_empty(value)

    @pytest.mark.parametrize("value", ["x", [""], 0, 0.0, False])
    def test_is_not_empty(self, value):
        assert not is_empty(value)

    def test_parse_row(self):
        assert parse_row(None) is None
        assert parse_row({"id": 1, "tags": None}) == {"id": 1, "tags": []}
        assert parse_row({"id": 1, "tags": ("a",)}) == {"id": 1, "tags": ["a"]}


class TestValidateContactFields:
    def test_create_requires_name(self):
        with pytest.raises(ValidationError, match="name is required"):
            validate_contact_fields({"email": "a@b.co"}, creating=True)

    def test_update_without_name_is_fine(self):
        assert validate_contact_fields({"company": "Acme"}, creating=False) == {"company": "Acme"}

    def test_unknown_field(self):
        with pytest.raises(ValidationError, match="Unknown contact field"):
            validate_contact_fields({"name": "A", "user_id": "someone-else"}, creating=True)

    def test_cleans_values(self):
        cleaned = validate_contact_fields(
            {
                "name": "  Ana  ",
                "email": " ana@example.com ",
                "website": "https://ana.dev",
                "tags": ["vc", " vc", "", "ai"],
                "birthday": "1990-05-01",
                "lat": 38.7,
            },
            creating=True,
        )
        assert cleaned == {
            "name": "Ana",
            "email": "ana@example.com",
            "website": "https://ana.dev",
            "tags": ["vc", "ai"],
            "birthday": date(1990, 5, 1),
            "lat": 38.7,
        }

    def test_birthday_from_datetime_and_blank(self):
        assert validate_contact_fields(
            {"birthday": datetime(1990, 5, 1, 12, 0)}, creating=False
        ) == {"birthday": date(1990, 5, 1)}
        assert validate_contact_fields({"birthday": ""}, creating=False) == {"birthday": None}

    def test_null_tags_become_empty(self):
        assert validate_contact_fields({"tags": None}, creating=False) == {"tags": []}

    @pytest.mark.parametrize(
        ("fields", "match"),
        [
            ({"name": ""}, "name is required"),
            ({"name": "x" * 201}, "at most 200"),
            ({"email": "not-an-email"}, "Invalid email"),
            ({"website": "ftp://example.com"}, "http:// or https://"),
            ({"tags": "vc"}, "tags must be a list"),
            ({"birthday": "05/01/1990"}, "birthday"),
            ({"lat": "38.7"}, "lat must be a number"),
            ({"lng": True}, "lng must be a number"),
        ],
    )
    def test_rejects(self, fields, match):
        with pytest.raises(ValidationError, match=match):
            validate_contact_fields(fields, creating=False)

    def test_empty_email_allowed(self):
        assert validate_contact_fields({"email": ""}, creating=False) == {"email": ""}
