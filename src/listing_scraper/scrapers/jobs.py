from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime

from bs4 import Tag

from listing_scraper.config import DEFAULT_JOBS_LOCATION
from listing_scraper.dates import DATE_LIKE, normalize_date
from listing_scraper.models import JobRecord, RawRecord
from listing_scraper.scrapers.common import (
    SourceAdapter,
    Strategy,
    by_attribute,
    by_keywords,
    by_pattern,
    by_position,
    by_selector,
    cascade,
    with_query,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "jobs"

JOB_TYPES = ("Permanent", "Contract", "Temporary", "Apprenticeship")
WORK_TYPES = ("Full time", "Part time")
REMOTE_TYPES = ("On-site only", "Hybrid remote", "Fully remote")

TITLE_STRATEGIES: tuple[Strategy, ...] = (
    by_selector("h3 a"),
    by_selector("h3"),
    by_selector("h2"),
    by_selector(".job-title"),
    by_selector(".title"),
)

# Ordered most specific first; the first non-empty value wins.
FIELD_STRATEGIES: dict[str, tuple[Strategy, ...]] = {
    "company": (by_selector(".company"), by_selector(".employer"), by_selector("strong")),
    "location": (by_selector(".location"), by_selector(".job-location"), by_position("li", 0)),
    "salary": (by_selector(".salary"), by_selector(".job-salary"), by_position("li", 1)),
    "job_type": (by_selector(".job-type"), by_keywords(JOB_TYPES)),
    "work_type": (by_selector(".work-type"), by_keywords(WORK_TYPES)),
    "remote_type": (by_selector(".remote-type"), by_keywords(REMOTE_TYPES)),
    "posted_date": (
        by_selector(".posted-date"),
        by_selector(".date"),
        by_selector("time"),
        by_pattern(DATE_LIKE),
    ),
    "description": (by_selector(".job-description"), by_selector(".description"), by_selector("p")),
    "category": (
        by_selector(".category"),
        by_selector(".job-category"),
        by_attribute("[data-category]", "data-category"),
    ),
}


def _link_strategies(base_url: str) -> tuple[Strategy, ...]:
    return (
        by_attribute("h3 a[href]", "href", base_url=base_url),
        by_attribute(".job-title a[href]", "href", base_url=base_url),
        by_attribute("a[href]", "href", base_url=base_url),
    )


def build_jobs_url(base_url: str, page_number: int, params: Mapping[str, str]) -> str:
    query = {
        "q": params.get("q", ""),
        "loc": params.get("location") or DEFAULT_JOBS_LOCATION,
    }
    if page_number > 1:
        query["page"] = str(page_number)
    return with_query(base_url, query)


def extract_job_card(card: Tag, index: int, page_number: int, base_url: str) -> RawRecord | None:
    title = cascade(card, TITLE_STRATEGIES, field="title")
    if not title:
        logger.warning("Page %d, job %d: missing title", page_number, index)
        return None

    fields = {"title": title}
    for name, strategies in FIELD_STRATEGIES.items():
        fields[name] = cascade(card, strategies, field=name)
    fields["job_link"] = cascade(card, _link_strategies(base_url), field="job_link")

    return RawRecord(source=SOURCE_NAME, fields=fields, page_number=page_number, row_index=index)


def normalize_job(raw: RawRecord, scraped_at: datetime) -> JobRecord:
    posted_date = raw.get("posted_date")
    return JobRecord(
        title=raw.get("title"),
        company=raw.get("company"),
        location=raw.get("location"),
        salary=raw.get("salary"),
        job_type=raw.get("job_type"),
        work_type=raw.get("work_type"),
        remote_type=raw.get("remote_type"),
        posted_date=posted_date,
        posted_at=normalize_date(posted_date),
        job_link=raw.get("job_link"),
        description=raw.get("description"),
        category=raw.get("category"),
        scraped_at=scraped_at,
    )


JOB_ADAPTER = SourceAdapter(
    name=SOURCE_NAME,
    container_selector="h3",
    row_selectors=(
        "div.search-result",
        ".job-listing",
        "article",
        "div[class*='job']",
    ),
    next_page_selectors=(
        "a[rel='next']",
        ".pager__item--next a",
        ".pagination a:last-child",
        ".next a",
        "a.next",
    ),
    default_max_pages=10,
    build_url=build_jobs_url,
    extract_row=extract_job_card,
    normalize=normalize_job,
)
