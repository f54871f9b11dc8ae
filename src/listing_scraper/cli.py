from __future__ import annotations

import argparse
import json
import logging
import time

from listing_scraper.config import SOURCE_NAMES, Settings, load_settings
from listing_scraper.pipeline import run_scrape
from listing_scraper.scheduler import ScrapeScheduler
from listing_scraper.storage import RecordStore, StoreUnavailable

logger = logging.getLogger(__name__)


def _ensure_logging(level: str) -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="listing-scraper")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scrape_parser = subparsers.add_parser("scrape", help="Scrape one source and store new records")
    scrape_parser.add_argument("source", choices=SOURCE_NAMES)
    scrape_parser.add_argument("--max-pages", type=int, default=None)
    scrape_parser.add_argument("--start-page", type=int, default=None, help="Tender source only")
    scrape_parser.add_argument("--location", default=None, help="Jobs source location code")

    subparsers.add_parser("serve", help="Run the query API (and the scheduler, if enabled)")
    subparsers.add_parser("schedule", help="Run only the scrape scheduler in the foreground")
    subparsers.add_parser("backfill", help="Fill missing canonical published timestamps")
    subparsers.add_parser("healthcheck", help="Validate config and storage readiness")

    return parser


def _cmd_scrape(settings: Settings, args: argparse.Namespace) -> int:
    if args.max_pages is not None and not 1 <= args.max_pages <= 100:
        raise ValueError("--max-pages must be between 1 and 100")

    kwargs = {"max_pages": args.max_pages}
    if args.source == "jobs":
        kwargs["location"] = args.location
    else:
        kwargs["start_page"] = args.start_page

    try:
        result = run_scrape(args.source, settings, **kwargs)
    except Exception as exc:
        print(f"scrape failed: {exc}")
        return 1

    print(
        "run summary:",
        f"saved={result.saved}",
        f"duplicates={result.duplicates}",
        f"errors={result.errors}",
    )
    return 0


def _cmd_serve(settings: Settings) -> int:
    import uvicorn

    from listing_scraper.api import create_app

    scheduler = ScrapeScheduler(settings)
    scheduler.start()
    try:
        uvicorn.run(
            create_app(settings),
            host=settings.api_host,
            port=settings.api_port,
            log_level=settings.log_level.lower(),
        )
    finally:
        scheduler.stop()
    return 0


def _cmd_schedule(settings: Settings) -> int:
    scheduler = ScrapeScheduler(settings)
    if not scheduler.start():
        print("scheduler disabled; set SCRAPE_SCHEDULER_ENABLED=true to run it")
        return 1
    try:
        while scheduler.running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping scheduler")
    finally:
        scheduler.stop()
    return 0


def _cmd_backfill(settings: Settings) -> int:
    with RecordStore(settings.db_path) as store:
        summary = store.backfill_published_at()
    print(json.dumps(summary))
    return 0


def _cmd_healthcheck(settings: Settings) -> int:
    try:
        with RecordStore(settings.db_path) as store:
            if not store.ping():
                print("record store check failed")
                return 1
    except StoreUnavailable as exc:
        print(f"record store check failed: {exc}")
        return 1

    print(f"record store ready: {settings.db_path}")
    print(f"browser args: {' '.join(settings.browser.chromium_args())}")
    print("healthcheck passed")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
        _ensure_logging(settings.log_level)

        if args.command == "scrape":
            return _cmd_scrape(settings, args)
        if args.command == "serve":
            return _cmd_serve(settings)
        if args.command == "schedule":
            return _cmd_schedule(settings)
        if args.command == "backfill":
            return _cmd_backfill(settings)
        if args.command == "healthcheck":
            return _cmd_healthcheck(settings)
    except (ValueError, StoreUnavailable) as exc:
        print(exc)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
