from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

from listing_scraper.models import Record

logger = logging.getLogger(__name__)

PageExtractor = Callable[[str, int], list[Record]]
Sleeper = Callable[[float], None]


class Navigator(Protocol):
    def goto(self, page_number: int) -> None: ...

    def html(self) -> str: ...


def _load_page(
    navigator: Navigator,
    extract: PageExtractor,
    page_number: int,
    *,
    empty_page_retries: int,
    delay_seconds: float,
    sleep: Sleeper,
) -> list[Record]:
    attempts = empty_page_retries + 1
    for attempt in range(1, attempts + 1):
        navigator.goto(page_number)
        records = extract(navigator.html(), page_number)
        if records or attempt == attempts:
            return records
        logger.info("Page %d: empty render, retrying (%d/%d)", page_number, attempt, empty_page_retries)
        if delay_seconds > 0:
            sleep(delay_seconds)
    return []


def collect_pages(
    navigator: Navigator,
    extract: PageExtractor,
    *,
    max_pages: int,
    start_page: int = 1,
    delay_seconds: float = 0.0,
    empty_page_retries: int = 0,
    sleep: Sleeper = time.sleep,
) -> list[Record]:
    """An empty or failing page ends the walk; records from earlier pages are kept."""
    records: list[Record] = []
    pages_with_data = 0
    current = start_page

    while current <= max_pages:
        try:
            page_records = _load_page(
                navigator,
                extract,
                current,
                empty_page_retries=empty_page_retries,
                delay_seconds=delay_seconds,
                sleep=sleep,
            )
        except Exception as exc:
            logger.error(
                "Failed to scrape page %d, keeping %d records collected so far: %s",
                current,
                len(records),
                exc,
            )
            break

        if not page_records:
            logger.warning("Page %d: no data found, stopping pagination", current)
            break

        records.extend(page_records)
        pages_with_data += 1
        logger.info("Page %d: extracted %d records", current, len(page_records))

        if current < max_pages and delay_seconds > 0:
            logger.debug("Waiting %.1fs before next page", delay_seconds)
            sleep(delay_seconds)
        current += 1

    logger.info("Pagination completed: %d pages, %d records", pages_with_data, len(records))
    return records
