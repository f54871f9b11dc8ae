from pathlib import Path

import pytest

from listing_scraper.config import DEFAULT_SCRAPE_CRON, load_settings


def test_defaults_without_environment() -> None:
    settings = load_settings({})

    assert settings.tender_max_pages == 10
    assert settings.page_delay_seconds == 2.0
    assert settings.page_timeout_ms == 30_000
    assert settings.scrape_cron == DEFAULT_SCRAPE_CRON
    assert settings.scheduler_sources == ("tenders",)
    assert settings.browser.headless
    assert not settings.browser.sandbox


def test_environment_overrides() -> None:
    settings = load_settings(
        {
            "DB_PATH": "/tmp/other.sqlite",
            "TENDER_MAX_PAGES": "3",
            "JOBS_LOCATION": "12345",
            "HEADLESS": "false",
            "BROWSER_EXTRA_ARGS": "--lang=en-GB, --force-dark-mode",
            "SCRAPE_SCHEDULER_SOURCES": "tenders,jobs",
            "PORT": "8080",
            "LOG_LEVEL": "debug",
        }
    )

    assert settings.db_path == Path("/tmp/other.sqlite")
    assert settings.tender_max_pages == 3
    assert settings.jobs_location == "12345"
    assert not settings.browser.headless
    assert settings.browser.extra_args == ("--lang=en-GB", "--force-dark-mode")
    assert settings.scheduler_sources == ("tenders", "jobs")
    assert settings.api_port == 8080
    assert settings.log_level == "DEBUG"


def test_api_port_prefers_specific_variable() -> None:
    assert load_settings({"API_PORT": "9000", "PORT": "8080"}).api_port == 9000


@pytest.mark.parametrize(
    "environ",
    [
        {"TENDER_MAX_PAGES": "0"},
        {"TENDER_MAX_PAGES": "many"},
        {"TENDER_URL": "ftp://example.com"},
        {"SCRAPE_SCHEDULER_SOURCES": "tenders,weather"},
        {"HEADLESS": "maybe"},
        {"BROWSER_EXTRA_ARGS": "no-dashes"},
    ],
)
def test_invalid_values_raise_value_error(environ) -> None:
    with pytest.raises(ValueError):
        load_settings(environ)
