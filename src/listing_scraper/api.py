from __future__ import annotations

import logging
import math
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from listing_scraper.config import APP_VERSION, Settings, load_settings
from listing_scraper.models import ScrapeResult
from listing_scraper.pipeline import run_scrape
from listing_scraper.storage import RecordQuery, RecordStore, StoreUnavailable

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], RecordStore]
ScrapeRunner = Callable[..., ScrapeResult]

SERVICE_NAME = "listing-scraper API"
_STORE_ERRORS = (StoreUnavailable, sqlite3.Error)


class TenderScrapeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_pages: Optional[int] = Field(default=None, alias="maxPages", ge=1, le=100)
    start_page: Optional[int] = Field(default=None, alias="startPage", ge=1)


class JobScrapeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_pages: Optional[int] = Field(default=None, alias="maxPages", ge=1, le=100)
    location: Optional[str] = None


def _unavailable(page: int = 1, limit: int = 0) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={
            "success": False,
            "error": "service unavailable",
            "data": [],
            "pagination": {"page": page, "limit": limit, "total": 0, "totalPages": 0},
        },
    )


def _not_found(what: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"success": False, "error": f"{what} not found"})


def create_app(
    settings: Settings | None = None,
    *,
    store_factory: StoreFactory | None = None,
    scrape_runner: ScrapeRunner | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    open_store_fn: StoreFactory = store_factory or (lambda: RecordStore(settings.db_path))
    runner: ScrapeRunner = scrape_runner or (lambda source, **kwargs: run_scrape(source, settings, **kwargs))

    app = FastAPI(title=SERVICE_NAME, version=APP_VERSION)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": "invalid request", "details": jsonable_encoder(exc.errors())},
        )

    @contextmanager
    def open_store() -> Iterator[RecordStore]:
        store = open_store_fn()
        try:
            yield store
        finally:
            store.close()

    def list_response(kind: str, query: RecordQuery) -> Any:
        try:
            with open_store() as store:
                rows, total = store.list_records(kind, query)
        except _STORE_ERRORS as exc:
            logger.warning("List %s failed, store unavailable: %s", kind, exc)
            return _unavailable(query.page, query.limit)
        return {
            "success": True,
            "data": rows,
            "pagination": {
                "page": query.page,
                "limit": query.limit,
                "total": total,
                "totalPages": math.ceil(total / query.limit) if total else 0,
            },
        }

    def detail_response(kind: str, record_id: int, label: str) -> Any:
        try:
            with open_store() as store:
                record = store.get_record(kind, record_id)
        except _STORE_ERRORS as exc:
            logger.warning("Get %s %d failed, store unavailable: %s", kind, record_id, exc)
            return _unavailable()
        if record is None:
            return _not_found(label)
        return {"success": True, "data": record}

    def stats_response(kind: str, prefix: str, top_key: str) -> Any:
        try:
            with open_store() as store:
                stats = store.stats(kind, datetime.now(timezone.utc).date())
        except _STORE_ERRORS as exc:
            logger.warning("Stats for %s failed, store unavailable: %s", kind, exc)
            return _unavailable()
        return {
            "success": True,
            "data": {
                f"total{prefix}": stats["total"],
                f"today{prefix}": stats["today"],
                top_key: stats["top"],
            },
        }

    def scrape_response(source: str, **kwargs: Any) -> Any:
        logger.info("Manual %s scrape requested via API", source)
        try:
            result = runner(source, **kwargs)
        except Exception as exc:
            logger.error("Manual %s scrape failed: %s", source, exc)
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": "Failed to scrape", "message": str(exc)},
            )
        return {"success": True, "message": "Scraping completed", "data": result.as_dict()}

    @app.get("/health")
    def health() -> dict[str, Any]:
        try:
            with open_store() as store:
                database = "connected" if store.ping() else "unavailable"
        except _STORE_ERRORS:
            database = "unavailable"
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "version": APP_VERSION,
            "database": database,
        }

    @app.get("/api/tenders")
    def list_tenders(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        search: Optional[str] = None,
        organisation: Optional[str] = None,
        start_date: Optional[date] = Query(None, alias="startDate"),
        end_date: Optional[date] = Query(None, alias="endDate"),
        sort_by: Optional[str] = Query(None, alias="sortBy"),
        sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    ) -> Any:
        query = RecordQuery(
            page=page,
            limit=limit,
            search=search,
            filters={"organisation": organisation} if organisation else {},
            start_date=start_date,
            end_date=end_date,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        return list_response("tender", query)

    @app.get("/api/tenders/{record_id}")
    def get_tender(record_id: int) -> Any:
        return detail_response("tender", record_id, "Tender")

    @app.get("/api/search")
    def search_tenders(q: Optional[str] = None, limit: int = Query(10, ge=1, le=100)) -> Any:
        if not q or not q.strip():
            return JSONResponse(status_code=400, content={"success": False, "error": "Search query is required"})
        try:
            with open_store() as store:
                rows = store.search("tender", q.strip(), limit)
        except _STORE_ERRORS as exc:
            logger.warning("Search failed, store unavailable: %s", exc)
            return _unavailable(1, limit)
        return {"success": True, "data": rows}

    @app.get("/api/stats")
    def tender_stats() -> Any:
        return stats_response("tender", "Tenders", "topOrganisations")

    @app.post("/api/scrape")
    def scrape_tenders(payload: Optional[TenderScrapeRequest] = None) -> Any:
        payload = payload or TenderScrapeRequest()
        return scrape_response("tenders", max_pages=payload.max_pages, start_page=payload.start_page)

    @app.get("/api/jobs/stats")
    def job_stats() -> Any:
        return stats_response("job", "Jobs", "topCompanies")

    @app.get("/api/jobs")
    def list_jobs(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        search: Optional[str] = None,
        company: Optional[str] = None,
        location: Optional[str] = None,
        start_date: Optional[date] = Query(None, alias="startDate"),
        end_date: Optional[date] = Query(None, alias="endDate"),
        sort_by: Optional[str] = Query(None, alias="sortBy"),
        sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    ) -> Any:
        filters = {name: value for name, value in (("company", company), ("location", location)) if value}
        query = RecordQuery(
            page=page,
            limit=limit,
            search=search,
            filters=filters,
            start_date=start_date,
            end_date=end_date,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        return list_response("job", query)

    @app.get("/api/jobs/{record_id}")
    def get_job(record_id: int) -> Any:
        return detail_response("job", record_id, "Job")

    @app.post("/api/jobs/scrape")
    def scrape_jobs(payload: Optional[JobScrapeRequest] = None) -> Any:
        payload = payload or JobScrapeRequest()
        return scrape_response("jobs", max_pages=payload.max_pages, location=payload.location)

    return app
