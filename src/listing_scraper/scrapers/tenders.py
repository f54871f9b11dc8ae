from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from urllib.parse import urljoin

from bs4 import Tag

from listing_scraper.dates import normalize_date
from listing_scraper.models import RawRecord, TenderRecord
from listing_scraper.scrapers.common import SourceAdapter, node_text, with_query

logger = logging.getLogger(__name__)

SOURCE_NAME = "tenders"
MIN_COLUMNS = 7

# Column order of the CPPP "latest active tenders" table.
_COLUMNS = (
    "serial_number",
    "published_date",
    "bid_submission_closing_date",
    "tender_opening_date",
    "title",
    "organisation_name",
    "corrigendum",
)
_TITLE_COLUMN = _COLUMNS.index("title")


def build_tender_url(base_url: str, page_number: int, params: Mapping[str, str]) -> str:
    if page_number <= 1:
        return with_query(base_url, params) if params else base_url
    return with_query(base_url, {**params, "page": str(page_number)})


def extract_tender_row(row: Tag, index: int, page_number: int, base_url: str) -> RawRecord | None:
    cells = row.find_all("td", recursive=False)
    if len(cells) < MIN_COLUMNS:
        logger.warning("Page %d, row %d: insufficient columns (%d)", page_number, index, len(cells))
        return None

    fields = {name: node_text(cells[position]) for position, name in enumerate(_COLUMNS)}
    if not fields["title"]:
        logger.warning("Page %d, row %d: missing title", page_number, index)
        return None

    anchor = cells[_TITLE_COLUMN].find("a", href=True)
    fields["tender_link"] = urljoin(base_url, anchor["href"]) if anchor else ""
    if not fields["serial_number"]:
        fields["serial_number"] = f"Page{page_number}-Row{index}"

    return RawRecord(source=SOURCE_NAME, fields=fields, page_number=page_number, row_index=index)


def normalize_tender(raw: RawRecord, scraped_at: datetime) -> TenderRecord:
    published_date = raw.get("published_date")
    return TenderRecord(
        title=raw.get("title"),
        published_date=published_date,
        published_at=normalize_date(published_date),
        serial_number=raw.get("serial_number"),
        bid_submission_closing_date=raw.get("bid_submission_closing_date"),
        tender_opening_date=raw.get("tender_opening_date"),
        tender_link=raw.get("tender_link"),
        organisation_name=raw.get("organisation_name"),
        corrigendum=raw.get("corrigendum"),
        scraped_at=scraped_at,
    )


TENDER_ADAPTER = SourceAdapter(
    name=SOURCE_NAME,
    container_selector="#table",
    row_selectors=("#table tbody tr", "#table tr"),
    next_page_selectors=(),
    default_max_pages=10,
    build_url=build_tender_url,
    extract_row=extract_tender_row,
    normalize=normalize_tender,
)
