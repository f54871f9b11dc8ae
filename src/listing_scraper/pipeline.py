from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from listing_scraper.browser import BrowserSession, LaunchConfig
from listing_scraper.config import Settings
from listing_scraper.models import Record, ScrapeResult
from listing_scraper.navigator import PageNavigator
from listing_scraper.pagination import Sleeper, collect_pages
from listing_scraper.scrapers.common import SourceAdapter, extract_page
from listing_scraper.scrapers.registry import default_max_pages, get_adapter, source_url
from listing_scraper.sink import commit_records
from listing_scraper.storage import RecordStore, StoreUnavailable

logger = logging.getLogger(__name__)

SessionFactory = Callable[[LaunchConfig], Any]
Committer = Callable[[Sequence[Record]], ScrapeResult]


class ScrapeState(str, Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    READY = "ready"
    PAGINATING = "paginating"
    PERSISTING = "persisting"
    CLOSED = "closed"
    FAILED = "failed"


def store_committer(db_path: Path | str) -> Committer:
    """Open the store only for the length of the commit."""

    def _commit(records: Sequence[Record]) -> ScrapeResult:
        try:
            store = RecordStore(db_path)
        except StoreUnavailable as exc:
            logger.error("Store unavailable, %d records not saved: %s", len(records), exc)
            return ScrapeResult(
                errors=len(records),
                failed_titles=tuple(record.title for record in records),
            )
        with store:
            return commit_records(store, records)

    return _commit


class Scraper:
    def __init__(
        self,
        adapter: SourceAdapter,
        settings: Settings,
        *,
        commit: Committer | None = None,
        session_factory: SessionFactory = BrowserSession,
        sleep: Sleeper = time.sleep,
        now_utc: datetime | None = None,
    ):
        self.adapter = adapter
        self.settings = settings
        self.commit = commit or store_committer(settings.db_path)
        self.session_factory = session_factory
        self.sleep = sleep
        self.now_utc = now_utc
        self.state = ScrapeState.IDLE

    def _transition(self, state: ScrapeState) -> None:
        logger.debug("%s scraper: %s -> %s", self.adapter.name, self.state.value, state.value)
        self.state = state

    def scrape(
        self,
        *,
        max_pages: int | None = None,
        start_page: int = 1,
        params: Mapping[str, str] | None = None,
    ) -> ScrapeResult:
        if max_pages is None:
            max_pages = default_max_pages(self.settings, self.adapter.name)
        if max_pages < 1 or start_page < 1:
            raise ValueError("max_pages and start_page must be >= 1")

        base_url = source_url(self.settings, self.adapter.name)
        scraped_at = (self.now_utc or datetime.now(timezone.utc)).replace(microsecond=0)

        def _extract(html: str, page_number: int) -> list[Record]:
            return extract_page(html, self.adapter, page_number, base_url=base_url, scraped_at=scraped_at)

        session = self.session_factory(self.settings.browser)
        try:
            self._transition(ScrapeState.LAUNCHING)
            session.start()
            page = session.new_page()
            self._transition(ScrapeState.READY)

            navigator = PageNavigator(
                page,
                self.adapter,
                base_url=base_url,
                params=params,
                timeout_ms=self.settings.page_timeout_ms,
            )
            self._transition(ScrapeState.PAGINATING)
            logger.info("Starting %s scrape: pages %d..%d", self.adapter.name, start_page, max_pages)
            records = collect_pages(
                navigator,
                _extract,
                max_pages=max_pages,
                start_page=start_page,
                delay_seconds=self.settings.page_delay_seconds,
                empty_page_retries=self.settings.empty_page_retries,
                sleep=self.sleep,
            )

            if records:
                self._transition(ScrapeState.PERSISTING)
                result = self.commit(records)
            else:
                logger.warning("No %s records found across all pages", self.adapter.name)
                result = ScrapeResult.empty()
        except Exception:
            self._transition(ScrapeState.FAILED)
            logger.exception("%s scrape failed", self.adapter.name)
            raise
        finally:
            session.close()

        self._transition(ScrapeState.CLOSED)
        return result


def run_scrape(
    source: str,
    settings: Settings,
    *,
    max_pages: int | None = None,
    start_page: int | None = None,
    location: str | None = None,
    session_factory: SessionFactory = BrowserSession,
    sleep: Sleeper = time.sleep,
) -> ScrapeResult:
    adapter = get_adapter(source)
    scraper = Scraper(adapter, settings, session_factory=session_factory, sleep=sleep)

    if source == "jobs":
        params = {"location": location or settings.jobs_location}
        return scraper.scrape(max_pages=max_pages, params=params)
    return scraper.scrape(max_pages=max_pages, start_page=start_page or settings.tender_start_page)
