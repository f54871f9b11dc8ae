import pytest
from fakes import FakePage, page_number_of

from listing_scraper.navigator import NavigationError, PageNavigator
from listing_scraper.scrapers.common import with_query
from listing_scraper.scrapers.jobs import JOB_ADAPTER
from listing_scraper.scrapers.tenders import TENDER_ADAPTER

TENDER_BASE = "https://eprocure.example/cppp/data"
JOBS_BASE = "https://jobs.example/search"


def _advance(url: str) -> str:
    return with_query(url, {"page": str(page_number_of(url) + 1)})


def test_tender_pages_are_loaded_by_url() -> None:
    page = FakePage({1: "<p>one</p>", 2: "<p>two</p>"})
    navigator = PageNavigator(page, TENDER_ADAPTER, base_url=TENDER_BASE)

    navigator.goto(1)
    navigator.goto(2)

    assert page.gotos == [TENDER_BASE, f"{TENDER_BASE}?page=2"]
    assert navigator.html() == "<p>two</p>"
    assert navigator.current_page == 2


def test_jobs_follow_next_control_from_previous_page() -> None:
    page = FakePage({1: "<h3>one</h3>", 2: "<h3>two</h3>"}, next_controls={"a[rel='next']": _advance})
    navigator = PageNavigator(page, JOB_ADAPTER, base_url=JOBS_BASE, params={"location": "100"})

    navigator.goto(1)
    navigator.goto(2)

    assert page.gotos == [f"{JOBS_BASE}?q=&loc=100"]
    assert page.clicks == ["a[rel='next']"]
    assert navigator.html() == "<h3>two</h3>"


def test_jobs_fall_back_to_url_when_next_control_is_missing() -> None:
    page = FakePage({1: "<h3>one</h3>", 2: "<h3>two</h3>"})
    navigator = PageNavigator(page, JOB_ADAPTER, base_url=JOBS_BASE)

    navigator.goto(1)
    navigator.goto(2)

    assert page.clicks == []
    assert page.gotos[-1] == f"{JOBS_BASE}?q=&loc=86383&page=2"


def test_jobs_fall_back_to_url_when_next_control_does_not_navigate() -> None:
    page = FakePage({1: "<h3>one</h3>", 2: "<h3>two</h3>"}, next_controls={"a.next": None})
    navigator = PageNavigator(page, JOB_ADAPTER, base_url=JOBS_BASE)

    navigator.goto(1)
    navigator.goto(2)

    assert page.clicks == ["a.next"]
    assert page.gotos[-1] == f"{JOBS_BASE}?q=&loc=86383&page=2"
    assert navigator.html() == "<h3>two</h3>"


def test_jumping_pages_skips_next_control() -> None:
    page = FakePage({3: "<h3>three</h3>"}, next_controls={"a[rel='next']": _advance})
    navigator = PageNavigator(page, JOB_ADAPTER, base_url=JOBS_BASE)

    navigator.goto(3)

    assert page.clicks == []
    assert page.gotos == [f"{JOBS_BASE}?q=&loc=86383&page=3"]


def test_timeout_is_raised_as_navigation_error() -> None:
    page = FakePage({1: "<p>one</p>"}, timeout_on=(1,))
    navigator = PageNavigator(page, TENDER_ADAPTER, base_url=TENDER_BASE)

    with pytest.raises(NavigationError, match="page 1"):
        navigator.goto(1)
    assert navigator.current_page is None


def test_missing_container_is_raised_as_navigation_error() -> None:
    page = FakePage({1: "<p>no table</p>"}, missing_container_on=(1,))
    navigator = PageNavigator(page, TENDER_ADAPTER, base_url=TENDER_BASE)

    with pytest.raises(NavigationError):
        navigator.goto(1)
