from datetime import datetime, timezone

import pytest

from listing_scraper.dates import DATE_LIKE, normalize_date


def _utc(*parts: int) -> datetime:
    return datetime(*parts, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("2025-07-15T10:30:00Z", _utc(2025, 7, 15, 10, 30)),
        ("2025-07-15T16:00:00+05:30", _utc(2025, 7, 15, 10, 30)),
        ("2025-07-15", _utc(2025, 7, 15)),
        ("15/07/2025 14:05", _utc(2025, 7, 15, 14, 5)),
        ("5/7/2025", _utc(2025, 7, 5)),
        ("15-Jul-2025 05:12 PM", _utc(2025, 7, 15, 17, 12)),
        ("15-jul-2025 12:00 AM", _utc(2025, 7, 15, 0, 0)),
        ("15-Jul-2025 12:30 PM", _utc(2025, 7, 15, 12, 30)),
        ("15-Jul-2025", _utc(2025, 7, 15)),
        ("  15-Jul-2025\n ", _utc(2025, 7, 15)),
        ("12 March 2025", _utc(2025, 3, 12)),
        ("15 July 2025", _utc(2025, 7, 15)),
        ("March 12, 2025", _utc(2025, 3, 12)),
        ("Tue, 15 Jul 2025 10:00:00 GMT", _utc(2025, 7, 15, 10, 0)),
        ("Tue, 15 Jul 2025 12:00:00 +0200", _utc(2025, 7, 15, 10, 0)),
    ],
)
def test_normalize_date_supported_encodings(text: str, expected: datetime) -> None:
    assert normalize_date(text) == expected


@pytest.mark.parametrize(
    "text",
    [
        None,
        "",
        "   ",
        "not a date",
        "31/02/2025",
        "15-Foo-2025",
        "15-Jul-2025 13:00 PM",
        "yesterday",
    ],
)
def test_normalize_date_returns_none_for_unparseable_values(text) -> None:
    assert normalize_date(text) is None


def test_numeric_dates_are_day_first() -> None:
    parsed = normalize_date("03/04/2025")
    assert parsed is not None
    assert (parsed.day, parsed.month) == (3, 4)


def test_free_text_numeric_dates_stay_day_first() -> None:
    parsed = normalize_date("03.04.2025")
    assert parsed is not None
    assert (parsed.day, parsed.month) == (3, 4)


def test_date_like_finds_dates_inside_text() -> None:
    assert DATE_LIKE.search("Posted 12 March 2025").group(0) == "12 March 2025"
    assert DATE_LIKE.search("Closes March 12, 2025 at noon").group(0) == "March 12, 2025"
    assert DATE_LIKE.search("Full time") is None
