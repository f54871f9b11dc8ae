from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from playwright.sync_api import Error as PlaywrightError

from listing_scraper.scrapers.common import SourceAdapter

logger = logging.getLogger(__name__)


class NavigationError(RuntimeError):
    pass


class PageNavigator:
    def __init__(
        self,
        page: Any,
        adapter: SourceAdapter,
        *,
        base_url: str,
        params: Mapping[str, str] | None = None,
        timeout_ms: float = 30_000,
    ):
        self.page = page
        self.adapter = adapter
        self.base_url = base_url
        self.params = dict(params or {})
        self.timeout_ms = timeout_ms
        self.current_page: int | None = None

    def goto(self, page_number: int) -> None:
        try:
            followed = (
                page_number > 1
                and self.current_page == page_number - 1
                and self._follow_next_control(page_number)
            )
            if not followed:
                url = self.adapter.build_url(self.base_url, page_number, self.params)
                logger.info("Navigating to page %d: %s", page_number, url)
                self.page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
            self.page.wait_for_selector(self.adapter.container_selector, timeout=self.timeout_ms)
        except PlaywrightError as exc:
            raise NavigationError(f"page {page_number}: {exc}") from exc

        self.current_page = page_number
        logger.info("Page %d loaded", page_number)

    def _follow_next_control(self, page_number: int) -> bool:
        for selector in self.adapter.next_page_selectors:
            locator = self.page.locator(selector)
            try:
                if locator.count() == 0:
                    continue
                before = self.page.url
                locator.first.click(timeout=self.timeout_ms)
                self.page.wait_for_load_state("domcontentloaded", timeout=self.timeout_ms)
            except PlaywrightError as exc:
                logger.warning("Page %d: next control %r failed (%s); using URL", page_number, selector, exc)
                return False
            if self.page.url == before:
                logger.warning("Page %d: next control %r did not navigate; using URL", page_number, selector)
                return False
            logger.info("Page %d: followed next control %r", page_number, selector)
            return True
        return False

    def html(self) -> str:
        try:
            return self.page.content()
        except PlaywrightError as exc:
            raise NavigationError(f"could not read page content: {exc}") from exc
