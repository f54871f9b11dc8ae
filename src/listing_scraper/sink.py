from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from listing_scraper.models import Record, ScrapeResult
from listing_scraper.storage import DuplicateRecord

logger = logging.getLogger(__name__)


class RecordWriter(Protocol):
    def insert(self, record: Record) -> int: ...


def commit_records(store: RecordWriter, records: Iterable[Record]) -> ScrapeResult:
    """Insert each record. saved + duplicates + errors always equals the number given."""
    saved = duplicates = errors = 0
    failed_titles: list[str] = []

    for record in records:
        try:
            store.insert(record)
        except DuplicateRecord:
            duplicates += 1
            logger.debug("Duplicate %s skipped: %s", record.kind, record.title)
        except Exception as exc:
            errors += 1
            failed_titles.append(record.title)
            logger.error("Failed to save %s %r: %s", record.kind, record.title, exc)
        else:
            saved += 1

    result = ScrapeResult(
        saved=saved,
        duplicates=duplicates,
        errors=errors,
        failed_titles=tuple(failed_titles),
    )
    logger.info("Database operation completed: %s", result.as_dict())
    return result
