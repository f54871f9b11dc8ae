from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup, Tag

from listing_scraper.models import RawRecord, Record

logger = logging.getLogger(__name__)

# A strategy looks at one row/card and returns a value or None.
Strategy = Callable[[Tag], Optional[str]]
RowExtractor = Callable[[Tag, int, int, str], Optional[RawRecord]]
Normalizer = Callable[[RawRecord, datetime], Record]
UrlBuilder = Callable[[str, int, Mapping[str, str]], str]


@dataclass(frozen=True)
class SourceAdapter:
    name: str
    container_selector: str
    row_selectors: tuple[str, ...]
    next_page_selectors: tuple[str, ...]
    default_max_pages: int
    build_url: UrlBuilder
    extract_row: RowExtractor
    normalize: Normalizer


def clean_spaces(value: str | None) -> str:
    return re.sub(r"\s+", " ", value or "").strip()


def with_query(url: str, params: Mapping[str, str]) -> str:
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update(params)
    return urlunsplit(parts._replace(query=urlencode(query)))


def node_text(node: Tag | None) -> str:
    if node is None:
        return ""
    return clean_spaces(node.get_text(" ", strip=True))


def cascade(node: Tag, strategies: Iterable[Strategy], *, field: str = "") -> str:
    for strategy in strategies:
        try:
            value = strategy(node)
        except Exception as exc:
            logger.debug("strategy %r for field %r failed: %s", strategy, field, exc)
            continue
        cleaned = clean_spaces(value)
        if cleaned:
            return cleaned
    return ""


def by_selector(css: str) -> Strategy:
    def _strategy(node: Tag) -> str | None:
        return node_text(node.select_one(css))

    _strategy.__qualname__ = f"by_selector({css!r})"
    return _strategy


def by_position(css: str, index: int) -> Strategy:
    def _strategy(node: Tag) -> str | None:
        matches = node.select(css)
        if index >= len(matches):
            return None
        return node_text(matches[index])

    _strategy.__qualname__ = f"by_position({css!r}, {index})"
    return _strategy


def by_attribute(css: str, attribute: str, *, base_url: str | None = None) -> Strategy:
    def _strategy(node: Tag) -> str | None:
        target = node.select_one(css)
        if target is None:
            return None
        raw = target.get(attribute)
        if isinstance(raw, list):
            raw = " ".join(raw)
        if not raw:
            return None
        return urljoin(base_url, raw) if base_url else raw

    _strategy.__qualname__ = f"by_attribute({css!r}, {attribute!r})"
    return _strategy


def by_keywords(vocabulary: Sequence[str], scope: str = "li, span, div") -> Strategy:
    terms = tuple(term.casefold() for term in vocabulary)

    def _strategy(node: Tag) -> str | None:
        candidates = []
        for child in node.select(scope):
            text = node_text(child)
            folded = text.casefold()
            if text and any(term in folded for term in terms):
                candidates.append(text)
        if not candidates:
            return None
        return min(candidates, key=len)

    _strategy.__qualname__ = f"by_keywords({tuple(vocabulary)!r})"
    return _strategy


def by_pattern(pattern: re.Pattern[str], scope: str = "li, span, time, p") -> Strategy:
    def _strategy(node: Tag) -> str | None:
        for child in node.select(scope):
            match = pattern.search(node_text(child))
            if match:
                return match.group(0)
        return None

    _strategy.__qualname__ = f"by_pattern({pattern.pattern!r})"
    return _strategy


def select_rows(soup: BeautifulSoup | Tag, selectors: Sequence[str]) -> list[Tag]:
    for selector in selectors:
        rows = soup.select(selector)
        if rows:
            return rows
    return []


def extract_page(
    html: str,
    adapter: SourceAdapter,
    page_number: int,
    *,
    base_url: str,
    scraped_at: datetime,
) -> list[Record]:
    soup = BeautifulSoup(html, "html.parser")
    rows = select_rows(soup, adapter.row_selectors)
    logger.info("Page %d: found %d rows", page_number, len(rows))

    records: list[Record] = []
    for index, row in enumerate(rows, start=1):
        try:
            raw = adapter.extract_row(row, index, page_number, base_url)
        except Exception as exc:
            logger.warning("Page %d, row %d: extraction failed: %s", page_number, index, exc)
            continue
        if raw is None:
            continue
        records.append(adapter.normalize(raw, scraped_at))
    return records
