from __future__ import annotations

from uuid import UUID, uuid4

import pytest

from app.utils.params import clamp_limit, parse_uuid


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, 20),
        ("", 20),
        ("abc", 20),
        ("5", 5),
        (" 7 ", 7),
        ("999", 50),
        ("0", 1),
        ("-3", 1),
        ("12abc", 12),
        ("12.5", 12),
        (30, 30),
    ],
)
def test_clamp_limit(raw, expected):
    assert clamp_limit(raw, default=20, maximum=50) == expected


def test_parse_uuid_accepts_uuid_and_string():
    value = uuid4()

    assert parse_uuid(value) is value
    assert parse_uuid(str(value)) == value
    assert parse_uuid(f"  {value}  ") == value


@pytest.mark.parametrize("raw", [None, "", "patient_123", "non-existent", 42])
def test_parse_uuid_rejects_malformed_values(raw):
    assert parse_uuid(raw) is None


def test_parse_uuid_result_type():
    assert isinstance(parse_uuid("6f1c1d5e-8c1b-4c8e-9d55-0a2f4f1f7b11"), UUID)
