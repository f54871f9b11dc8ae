from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from listing_scraper.config import Settings
from listing_scraper.models import ScrapeResult
from listing_scraper.pipeline import run_scrape

logger = logging.getLogger(__name__)

JOB_ID = "scrape"


class RunGuard:
    """Non-blocking "one run at a time" flag owned by whoever schedules runs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @contextmanager
    def hold(self) -> Iterator[bool]:
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown timezone {name!r}") from exc


def build_trigger(expression: str, timezone_name: str = "UTC") -> CronTrigger:
    fields = expression.strip().split()
    if len(fields) != 5:
        raise ValueError(f"cron expression must have 5 fields (got {len(fields)}): {expression!r}")
    tz = resolve_timezone(timezone_name)
    try:
        return CronTrigger.from_crontab(expression, timezone=tz)
    except ValueError as exc:
        raise ValueError(f"invalid cron expression {expression!r}: {exc}") from exc


class ScrapeScheduler:
    def __init__(
        self,
        settings: Settings,
        run: Callable[[], ScrapeResult] | None = None,
        *,
        guard: RunGuard | None = None,
    ):
        self.settings = settings
        self.run = run or self._run_configured_sources
        self.guard = guard or RunGuard()
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def _run_configured_sources(self) -> ScrapeResult:
        total = ScrapeResult.empty()
        for source in self.settings.scheduler_sources:
            try:
                total = total + run_scrape(source, self.settings)
            except Exception:
                logger.exception("Scheduled scrape of %s failed", source)
        return total

    def run_once(self) -> ScrapeResult | None:
        with self.guard.hold() as acquired:
            if not acquired:
                logger.warning("Skipped scheduled scrape: previous run still in progress")
                return None

            started = time.monotonic()
            logger.info("Scheduled scraping job started")
            try:
                result = self.run()
            except Exception:
                logger.exception("Scheduled scrape failed")
                return None

            logger.info(
                "Scheduled scrape completed: %s in %.1fs",
                result.as_dict(),
                time.monotonic() - started,
            )
            return result

    def start(self) -> bool:
        if not self.settings.scheduler_enabled:
            logger.info("Scheduler disabled via SCRAPE_SCHEDULER_ENABLED")
            return False

        trigger = build_trigger(self.settings.scrape_cron, self.settings.scrape_cron_tz)
        self._scheduler = BackgroundScheduler(
            timezone=resolve_timezone(self.settings.scrape_cron_tz),
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        self._scheduler.add_job(self.run_once, trigger=trigger, id=JOB_ID, replace_existing=True)
        self._scheduler.start()
        logger.info(
            "Scheduler started with cron %r (%s)",
            self.settings.scrape_cron,
            self.settings.scrape_cron_tz,
        )
        return True

    def stop(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            logger.info("Shutting down scheduler...")
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
