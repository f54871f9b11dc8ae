from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from listing_scraper.browser import DEFAULT_USER_AGENT, LaunchConfig

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "listings.sqlite"

DEFAULT_TENDER_URL = "https://eprocure.gov.in/cppp/latestactivetendersnew/cpppdata"
DEFAULT_JOBS_URL = "https://findajob.dwp.gov.uk/search"
DEFAULT_JOBS_LOCATION = "86383"
DEFAULT_SCRAPE_CRON = "0 */6 * * *"
APP_VERSION = "1.0.0"

SOURCE_NAMES = ("tenders", "jobs")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class Settings(BaseModel):
    db_path: Path = Field(default=DEFAULT_DB_PATH)
    tender_url: str = DEFAULT_TENDER_URL
    jobs_url: str = DEFAULT_JOBS_URL
    tender_max_pages: int = Field(default=10, ge=1, le=100)
    tender_start_page: int = Field(default=1, ge=1)
    jobs_max_pages: int = Field(default=10, ge=1, le=100)
    jobs_location: str = DEFAULT_JOBS_LOCATION
    page_timeout_seconds: float = Field(default=30.0, gt=0)
    page_delay_seconds: float = Field(default=2.0, ge=0.0)
    empty_page_retries: int = Field(default=0, ge=0, le=3)
    browser: LaunchConfig = Field(default_factory=LaunchConfig)
    scrape_cron: str = DEFAULT_SCRAPE_CRON
    scrape_cron_tz: str = "UTC"
    scheduler_enabled: bool = True
    scheduler_sources: tuple[str, ...] = ("tenders",)
    api_host: str = "0.0.0.0"
    api_port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = "INFO"

    @field_validator("tender_url", "jobs_url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("source URLs must use http:// or https://")
        return value

    @field_validator("scheduler_sources")
    @classmethod
    def _validate_sources(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        unknown = [name for name in value if name not in SOURCE_NAMES]
        if unknown:
            raise ValueError(f"unknown scheduler sources: {', '.join(unknown)}")
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def page_timeout_ms(self) -> float:
        return self.page_timeout_seconds * 1000


def _env_value(environ: Mapping[str, str], key: str) -> str:
    return environ.get(key, "").strip()


def _env_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = _env_value(environ, key).lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"{key} must be a boolean (got {raw!r})")


def _env_csv(environ: Mapping[str, str], key: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in _env_value(environ, key).split(",") if item.strip())


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    source = os.environ if environ is None else environ
    try:
        browser = LaunchConfig(
            headless=_env_bool(source, "HEADLESS", True),
            sandbox=_env_bool(source, "BROWSER_SANDBOX", False),
            gpu=_env_bool(source, "BROWSER_GPU", False),
            extra_args=_env_csv(source, "BROWSER_EXTRA_ARGS"),
            user_agent=_env_value(source, "USER_AGENT") or DEFAULT_USER_AGENT,
        )
        payload = {
            "db_path": Path(_env_value(source, "DB_PATH") or DEFAULT_DB_PATH),
            "tender_url": _env_value(source, "TENDER_URL") or DEFAULT_TENDER_URL,
            "jobs_url": _env_value(source, "JOBS_URL") or DEFAULT_JOBS_URL,
            "tender_max_pages": int(_env_value(source, "TENDER_MAX_PAGES") or "10"),
            "tender_start_page": int(_env_value(source, "TENDER_START_PAGE") or "1"),
            "jobs_max_pages": int(_env_value(source, "JOBS_MAX_PAGES") or "10"),
            "jobs_location": _env_value(source, "JOBS_LOCATION") or DEFAULT_JOBS_LOCATION,
            "page_timeout_seconds": float(_env_value(source, "PAGE_TIMEOUT_SECONDS") or "30"),
            "page_delay_seconds": float(_env_value(source, "PAGE_DELAY_SECONDS") or "2"),
            "empty_page_retries": int(_env_value(source, "EMPTY_PAGE_RETRIES") or "0"),
            "browser": browser,
            "scrape_cron": _env_value(source, "SCRAPE_CRON") or DEFAULT_SCRAPE_CRON,
            "scrape_cron_tz": _env_value(source, "SCRAPE_CRON_TZ") or "UTC",
            "scheduler_enabled": _env_bool(source, "SCRAPE_SCHEDULER_ENABLED", True),
            "scheduler_sources": _env_csv(source, "SCRAPE_SCHEDULER_SOURCES") or ("tenders",),
            "api_host": _env_value(source, "API_HOST") or "0.0.0.0",
            "api_port": int(_env_value(source, "API_PORT") or _env_value(source, "PORT") or "3000"),
            "log_level": _env_value(source, "LOG_LEVEL") or "INFO",
        }
        return Settings(**payload)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc
