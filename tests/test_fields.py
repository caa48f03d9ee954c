from __future__ import annotations

from datetime import datetime, timezone

from src.provider.fields import absolute_media_url, get_bool, get_int, get_str, parse_ra_date


def test_lookup_tries_names_then_ignores_case() -> None:
    row = {"gameId": 5, "TITLE": " Sonic ", "Points": None, "points": "10"}
    assert get_int(row, "GameID", "gameId") == 5
    assert get_str(row, "Title") == "Sonic"
    assert get_int(row, "Points", "points") == 10
    assert get_str(row, "Missing") == ""
    assert get_int(None, "x") == 0


def test_get_int_is_lenient() -> None:
    assert get_int({"n": "12.0"}, "n") == 12
    assert get_int({"n": 3.9}, "n") == 3
    assert get_int({"n": "abc"}, "n") == 0
    assert get_int({"n": True}, "n") == 1


def test_get_bool_accepts_numbers_and_strings() -> None:
    assert get_bool({"RankAsc": 1}, "RankAsc") is True
    assert get_bool({"RankAsc": "true"}, "RankAsc") is True
    assert get_bool({"RankAsc": "0"}, "RankAsc") is False
    assert get_bool({}, "RankAsc") is False


def test_parse_ra_date_formats() -> None:
    utc = timezone.utc
    assert parse_ra_date("2024-05-01 12:30:00") == datetime(2024, 5, 1, 12, 30, tzinfo=utc)
    assert parse_ra_date("2024-05-01") == datetime(2024, 5, 1, tzinfo=utc)
    assert parse_ra_date("2024-05-01T12:30:00Z") == datetime(2024, 5, 1, 12, 30, tzinfo=utc)
    assert parse_ra_date("2024-05-01T14:30:00+02:00") == datetime(2024, 5, 1, 12, 30, tzinfo=utc)
    assert parse_ra_date("") is None
    assert parse_ra_date("yesterday") is None


def test_absolute_media_url_normalization() -> None:
    base = "https://retroachievements.org"
    assert absolute_media_url("https://media.retroachievements.org/Badge/1.png") == (
        "https://media.retroachievements.org/Badge/1.png"
    )
    assert absolute_media_url("/Images/000123.png") == f"{base}/Images/000123.png"
    assert absolute_media_url("48210") == f"{base}/Badge/48210.png"
    assert absolute_media_url("Badge/48210.png", base + "/") == f"{base}/Badge/48210.png"
    assert absolute_media_url("  ") == ""
    assert absolute_media_url(None) == ""
