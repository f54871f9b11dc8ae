"""Browser stand-ins that mimic the small slice of Playwright the scraper uses."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError


def page_number_of(url: str) -> int:
    values = parse_qs(urlsplit(url).query).get("page")
    return int(values[0]) if values else 1


class FakeLocator:
    def __init__(self, page: FakePage, selector: str):
        self.page = page
        self.selector = selector

    def count(self) -> int:
        return 1 if self.selector in self.page.next_controls else 0

    @property
    def first(self) -> FakeLocator:
        return self

    def click(self, timeout: float | None = None) -> None:
        self.page.clicks.append(self.selector)
        target = self.page.next_controls[self.selector]
        if target is not None:
            self.page.url = target(self.page.url)


class FakePage:
    """Serves ``html_by_page[n]`` for whichever page number the URL carries.

    ``next_controls`` maps a selector to a function computing the URL a click
    leads to, or to None for a control that does nothing.
    """

    def __init__(
        self,
        html_by_page: dict[int, str],
        *,
        next_controls: dict | None = None,
        timeout_on: tuple[int, ...] = (),
        missing_container_on: tuple[int, ...] = (),
    ):
        self.html_by_page = html_by_page
        self.next_controls = next_controls or {}
        self.timeout_on = timeout_on
        self.missing_container_on = missing_container_on
        self.url = "about:blank"
        self.gotos: list[str] = []
        self.clicks: list[str] = []
        self.routes: list[str] = []

    def route(self, pattern: str, handler) -> None:
        self.routes.append(pattern)

    def goto(self, url: str, wait_until: str | None = None, timeout: float | None = None) -> None:
        self.gotos.append(url)
        if page_number_of(url) in self.timeout_on:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded navigating to {url}")
        self.url = url

    def wait_for_load_state(self, state: str = "load", timeout: float | None = None) -> None:
        return None

    def wait_for_selector(self, selector: str, timeout: float | None = None) -> None:
        if page_number_of(self.url) in self.missing_container_on:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def content(self) -> str:
        return self.html_by_page.get(page_number_of(self.url), "<html><body></body></html>")


class FakeSession:
    def __init__(self, page: FakePage | None = None, *, fail_start: bool = False):
        self.page = page
        self.fail_start = fail_start
        self.started = False
        self.closed = False

    def start(self) -> None:
        if self.fail_start:
            from listing_scraper.browser import BrowserLaunchError

            raise BrowserLaunchError("browser launch failed: no chromium")
        self.started = True

    def new_page(self) -> FakePage:
        return self.page

    def close(self) -> None:
        self.closed = True
