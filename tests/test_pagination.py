from datetime import datetime, timezone

from listing_scraper.models import TenderRecord
from listing_scraper.pagination import collect_pages


class FakeNavigator:
    """Serves ``pages[n]`` as the record count for page ``n``."""

    def __init__(self, pages: dict[int, int], fail_on: int | None = None, flaky: dict[int, int] | None = None):
        self.pages = pages
        self.fail_on = fail_on
        self.flaky = dict(flaky or {})
        self.visits: list[int] = []
        self.current = 0

    def goto(self, page_number: int) -> None:
        self.visits.append(page_number)
        if page_number == self.fail_on:
            raise TimeoutError(f"page {page_number} timed out")
        self.current = page_number

    def html(self) -> str:
        if self.flaky.get(self.current, 0) > 0:
            self.flaky[self.current] -= 1
            return "0"
        return str(self.pages.get(self.current, 0))


def _extract(html: str, page_number: int) -> list[TenderRecord]:
    return [
        TenderRecord(
            title=f"Tender {page_number}-{index}",
            published_date="15-Jul-2025",
            published_at=None,
            scraped_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )
        for index in range(int(html))
    ]


def test_stops_at_first_empty_page() -> None:
    navigator = FakeNavigator({1: 5, 2: 3, 3: 0, 4: 7})

    records = collect_pages(navigator, _extract, max_pages=10)

    assert len(records) == 8
    assert navigator.visits == [1, 2, 3]


def test_respects_max_pages_and_start_page() -> None:
    navigator = FakeNavigator({page: 2 for page in range(1, 10)})

    records = collect_pages(navigator, _extract, max_pages=4, start_page=2)

    assert len(records) == 6
    assert navigator.visits == [2, 3, 4]


def test_failure_keeps_records_from_earlier_pages() -> None:
    navigator = FakeNavigator({1: 4, 2: 4, 3: 4}, fail_on=3)

    records = collect_pages(navigator, _extract, max_pages=5)

    assert len(records) == 8
    assert navigator.visits == [1, 2, 3]


def test_failure_on_first_page_returns_nothing() -> None:
    navigator = FakeNavigator({1: 4}, fail_on=1)

    assert collect_pages(navigator, _extract, max_pages=5) == []


def test_sleeps_between_pages_but_not_after_last() -> None:
    navigator = FakeNavigator({1: 1, 2: 1, 3: 1})
    sleeps: list[float] = []

    collect_pages(navigator, _extract, max_pages=3, delay_seconds=2.0, sleep=sleeps.append)

    assert sleeps == [2.0, 2.0]


def test_no_sleep_when_delay_is_zero() -> None:
    navigator = FakeNavigator({1: 1, 2: 1})
    sleeps: list[float] = []

    collect_pages(navigator, _extract, max_pages=2, sleep=sleeps.append)

    assert sleeps == []


def test_empty_page_retry_recovers_late_render() -> None:
    navigator = FakeNavigator({1: 2, 2: 3}, flaky={2: 1})

    records = collect_pages(navigator, _extract, max_pages=2, empty_page_retries=1)

    assert len(records) == 5
    assert navigator.visits == [1, 2, 2]


def test_without_retries_an_empty_render_ends_the_walk() -> None:
    navigator = FakeNavigator({1: 2, 2: 3}, flaky={2: 1})

    records = collect_pages(navigator, _extract, max_pages=2)

    assert len(records) == 2
    assert navigator.visits == [1, 2]
