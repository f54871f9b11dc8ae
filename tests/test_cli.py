import json

import pytest

from listing_scraper import cli
from listing_scraper.models import ScrapeResult, TenderRecord
from listing_scraper.storage import RecordStore


@pytest.fixture(autouse=True)
def _isolated_db(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "listings.sqlite"))
    return tmp_path / "listings.sqlite"


def test_scrape_prints_run_summary(monkeypatch, capsys) -> None:
    calls = []

    def fake_run_scrape(source, settings, **kwargs):
        calls.append((source, kwargs))
        return ScrapeResult(saved=8, duplicates=2, errors=0)

    monkeypatch.setattr(cli, "run_scrape", fake_run_scrape)

    assert cli.main(["scrape", "tenders", "--max-pages", "3", "--start-page", "2"]) == 0
    assert "saved=8 duplicates=2 errors=0" in capsys.readouterr().out
    assert calls == [("tenders", {"max_pages": 3, "start_page": 2})]


def test_scrape_jobs_passes_location(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(
        cli,
        "run_scrape",
        lambda source, settings, **kwargs: calls.append((source, kwargs)) or ScrapeResult(),
    )

    assert cli.main(["scrape", "jobs", "--location", "555"]) == 0
    assert calls == [("jobs", {"max_pages": None, "location": "555"})]


def test_scrape_failure_exits_non_zero(monkeypatch, capsys) -> None:
    def failing(source, settings, **kwargs):
        raise RuntimeError("browser launch failed")

    monkeypatch.setattr(cli, "run_scrape", failing)

    assert cli.main(["scrape", "tenders"]) == 1
    assert "browser launch failed" in capsys.readouterr().out


def test_out_of_range_max_pages_is_rejected() -> None:
    assert cli.main(["scrape", "tenders", "--max-pages", "0"]) == 1


def test_invalid_config_exits_non_zero(monkeypatch) -> None:
    monkeypatch.setenv("TENDER_MAX_PAGES", "zero")

    assert cli.main(["healthcheck"]) == 1


def test_healthcheck_opens_store(_isolated_db, capsys) -> None:
    assert cli.main(["healthcheck"]) == 0
    assert "healthcheck passed" in capsys.readouterr().out
    assert _isolated_db.exists()


def test_backfill_prints_summary(_isolated_db, capsys) -> None:
    with RecordStore(_isolated_db) as store:
        store.insert(TenderRecord(title="A", published_date="15-Jul-2025", published_at=None))

    assert cli.main(["backfill"]) == 0
    assert json.loads(capsys.readouterr().out.strip()) == {"updated": 1, "skipped": 0}


def test_schedule_disabled_exits_non_zero(monkeypatch) -> None:
    monkeypatch.setenv("SCRAPE_SCHEDULER_ENABLED", "false")

    assert cli.main(["schedule"]) == 1
