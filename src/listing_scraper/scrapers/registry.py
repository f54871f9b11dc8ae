from __future__ import annotations

from listing_scraper.config import Settings
from listing_scraper.scrapers.common import SourceAdapter
from listing_scraper.scrapers.jobs import JOB_ADAPTER
from listing_scraper.scrapers.tenders import TENDER_ADAPTER

ADAPTERS: dict[str, SourceAdapter] = {
    TENDER_ADAPTER.name: TENDER_ADAPTER,
    JOB_ADAPTER.name: JOB_ADAPTER,
}


def get_adapter(name: str) -> SourceAdapter:
    try:
        return ADAPTERS[name]
    except KeyError:
        raise ValueError(f"unknown source {name!r}; expected one of {', '.join(ADAPTERS)}") from None


def source_url(settings: Settings, name: str) -> str:
    if name == TENDER_ADAPTER.name:
        return settings.tender_url
    if name == JOB_ADAPTER.name:
        return settings.jobs_url
    raise ValueError(f"unknown source {name!r}")


def default_max_pages(settings: Settings, name: str) -> int:
    if name == TENDER_ADAPTER.name:
        return settings.tender_max_pages
    if name == JOB_ADAPTER.name:
        return settings.jobs_max_pages
    return get_adapter(name).default_max_pages
