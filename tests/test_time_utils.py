"""Time helper tests."""

from __future__ import annotations

from datetime import UTC, datetime

from app.utils.time import now_utc, parse_timestamp


def test_parse_timestamp_handles_zulu_suffix() -> None:
    """PostgREST timestamps ending in Z should parse as UTC."""
    result = parse_timestamp("2026-02-07T10:30:00Z")
    assert result == datetime(2026, 2, 7, 10, 30, tzinfo=UTC)


def test_parse_timestamp_assumes_utc_for_naive_values() -> None:
    result = parse_timestamp("2026-02-07T10:30:00")
    assert result is not None
    assert result.tzinfo is UTC


def test_parse_timestamp_missing_input() -> None:
    """Missing input should return None."""
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_now_utc_is_aware() -> None:
    assert now_utc().tzinfo is not None
