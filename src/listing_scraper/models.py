from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class RawRecord:
    source: str
    fields: Mapping[str, str]
    page_number: int
    row_index: int

    def get(self, name: str) -> str:
        return self.fields.get(name, "") or ""


@dataclass(frozen=True)
class TenderRecord:
    title: str
    published_date: str
    published_at: datetime | None
    serial_number: str = ""
    bid_submission_closing_date: str = ""
    tender_opening_date: str = ""
    tender_link: str = ""
    organisation_name: str = ""
    corrigendum: str = ""
    scraped_at: datetime | None = None

    kind = "tender"

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.title, self.published_date)

    def to_document(self) -> dict[str, Any]:
        return {
            "serialNumber": self.serial_number,
            "publishedDate": self.published_date,
            "publishedAt": _iso(self.published_at),
            "bidSubmissionClosingDate": self.bid_submission_closing_date,
            "tenderOpeningDate": self.tender_opening_date,
            "title": self.title,
            "tenderLink": self.tender_link,
            "organisationName": self.organisation_name,
            "corrigendum": self.corrigendum,
            "scrapedAt": _iso(self.scraped_at),
        }


@dataclass(frozen=True)
class JobRecord:
    title: str
    company: str = ""
    location: str = ""
    salary: str = ""
    job_type: str = ""
    work_type: str = ""
    remote_type: str = ""
    posted_date: str = ""
    posted_at: datetime | None = None
    job_link: str = ""
    description: str = ""
    category: str = ""
    scraped_at: datetime | None = None

    kind = "job"

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (self.title, self.company, self.location)

    def to_document(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "salary": self.salary,
            "jobType": self.job_type,
            "workType": self.work_type,
            "remoteType": self.remote_type,
            "postedDate": self.posted_date,
            "postedAt": _iso(self.posted_at),
            "jobLink": self.job_link,
            "description": self.description,
            "category": self.category,
            "scrapedAt": _iso(self.scraped_at),
        }


Record = Union[TenderRecord, JobRecord]


@dataclass(frozen=True)
class ScrapeResult:
    saved: int = 0
    duplicates: int = 0
    errors: int = 0
    failed_titles: tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def empty(cls) -> ScrapeResult:
        return cls()

    def __add__(self, other: ScrapeResult) -> ScrapeResult:
        return ScrapeResult(
            saved=self.saved + other.saved,
            duplicates=self.duplicates + other.duplicates,
            errors=self.errors + other.errors,
            failed_titles=self.failed_titles + other.failed_titles,
        )

    def as_dict(self) -> dict[str, int]:
        return {"saved": self.saved, "duplicates": self.duplicates, "errors": self.errors}
