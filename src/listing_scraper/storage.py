from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_fixed

from listing_scraper.dates import normalize_date
from listing_scraper.models import Record


class StoreUnavailable(RuntimeError):
    pass


class PersistenceError(RuntimeError):
    pass


class DuplicateRecord(PersistenceError):
    pass


@dataclass(frozen=True)
class TableSpec:
    kind: str
    table: str
    # (column, document key) in insert order
    columns: tuple[tuple[str, str], ...]
    unique_columns: tuple[str, ...]
    search_columns: tuple[str, ...]
    filter_columns: Mapping[str, str]
    date_column: str
    group_column: str
    default_sort: str

    @property
    def sort_columns(self) -> dict[str, str]:
        return {key: column for column, key in self.columns} | {"createdAt": "created_at"}


TENDERS = TableSpec(
    kind="tender",
    table="tenders",
    columns=(
        ("serial_number", "serialNumber"),
        ("published_date", "publishedDate"),
        ("published_at", "publishedAt"),
        ("bid_submission_closing_date", "bidSubmissionClosingDate"),
        ("tender_opening_date", "tenderOpeningDate"),
        ("title", "title"),
        ("tender_link", "tenderLink"),
        ("organisation_name", "organisationName"),
        ("corrigendum", "corrigendum"),
        ("scraped_at", "scrapedAt"),
    ),
    unique_columns=("title", "published_date"),
    search_columns=("title", "organisation_name"),
    filter_columns={"organisation": "organisation_name"},
    date_column="published_at",
    group_column="organisation_name",
    default_sort="publishedAt",
)

JOBS = TableSpec(
    kind="job",
    table="jobs",
    columns=(
        ("title", "title"),
        ("company", "company"),
        ("location", "location"),
        ("salary", "salary"),
        ("job_type", "jobType"),
        ("work_type", "workType"),
        ("remote_type", "remoteType"),
        ("posted_date", "postedDate"),
        ("posted_at", "postedAt"),
        ("job_link", "jobLink"),
        ("description", "description"),
        ("category", "category"),
        ("scraped_at", "scrapedAt"),
    ),
    unique_columns=("title", "company", "location"),
    search_columns=("title", "company"),
    filter_columns={"company": "company", "location": "location"},
    date_column="posted_at",
    group_column="company",
    default_sort="scrapedAt",
)

TABLES: dict[str, TableSpec] = {TENDERS.kind: TENDERS, JOBS.kind: JOBS}
_NULLABLE_COLUMNS = {"published_at", "posted_at", "scraped_at"}


@dataclass(frozen=True)
class RecordQuery:
    page: int = 1
    limit: int = 20
    search: str | None = None
    filters: Mapping[str, str] = field(default_factory=dict)
    start_date: date | None = None
    end_date: date | None = None
    sort_by: str | None = None
    sort_order: str = "desc"


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _is_locked(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc)


# Concurrent writers on the same file may briefly hold the write lock.
@retry(retry=retry_if_exception(_is_locked), stop=stop_after_attempt(3), wait=wait_fixed(0.5), reraise=True)
def _execute_write(conn: sqlite3.Connection, sql: str, params: Any) -> sqlite3.Cursor:
    with conn:
        return conn.execute(sql, params)


def _column_ddl(column: str) -> str:
    if column == "title":
        return "title TEXT NOT NULL CHECK (title <> '')"
    if column in _NULLABLE_COLUMNS:
        return f"{column} TEXT"
    return f"{column} TEXT NOT NULL DEFAULT ''"


class RecordStore(AbstractContextManager["RecordStore"]):
    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._init_schema()
        except (OSError, sqlite3.Error) as exc:
            self.close()
            raise StoreUnavailable(f"cannot open store at {self.db_path}: {exc}") from exc

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreUnavailable("store is closed")
        return self._conn

    def _init_schema(self) -> None:
        with self.conn:
            for spec in TABLES.values():
                columns = ",\n".join(_column_ddl(column) for column, _ in spec.columns)
                self.conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {spec.table} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        {columns},
                        created_at TEXT NOT NULL
                    )
                    """
                )
                unique = ", ".join(spec.unique_columns)
                self.conn.execute(
                    f"CREATE UNIQUE INDEX IF NOT EXISTS ux_{spec.table}_dedup ON {spec.table} ({unique})"
                )

    def ping(self) -> bool:
        try:
            self.conn.execute("SELECT 1").fetchone()
        except (StoreUnavailable, sqlite3.Error):
            return False
        return True

    def insert(self, record: Record) -> int:
        spec = TABLES[record.kind]
        document = record.to_document()
        columns = [column for column, _ in spec.columns] + ["created_at"]
        values = [document[key] for _, key in spec.columns] + [_now_iso()]
        placeholders = ", ".join("?" for _ in columns)
        try:
            cursor = _execute_write(
                self.conn,
                f"INSERT INTO {spec.table} ({', '.join(columns)}) VALUES ({placeholders})",
                values,
            )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE constraint failed" in str(exc):
                raise DuplicateRecord(f"{spec.kind} already stored: {record.dedup_key!r}") from exc
            raise PersistenceError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise PersistenceError(str(exc)) from exc
        return int(cursor.lastrowid)

    def _document(self, spec: TableSpec, row: sqlite3.Row) -> dict[str, Any]:
        document: dict[str, Any] = {"id": row["id"]}
        for column, key in spec.columns:
            document[key] = row[column]
        document["createdAt"] = row["created_at"]
        return document

    def count(self, kind: str) -> int:
        spec = TABLES[kind]
        row = self.conn.execute(f"SELECT COUNT(*) AS c FROM {spec.table}").fetchone()
        return int(row["c"]) if row else 0

    def list_records(self, kind: str, query: RecordQuery) -> tuple[list[dict[str, Any]], int]:
        spec = TABLES[kind]
        clauses: list[str] = []
        params: list[Any] = []

        if query.search:
            clauses.append("(" + " OR ".join(f"{column} LIKE ?" for column in spec.search_columns) + ")")
            params.extend(f"%{query.search}%" for _ in spec.search_columns)
        for name, value in query.filters.items():
            column = spec.filter_columns.get(name)
            if column and value:
                clauses.append(f"{column} LIKE ?")
                params.append(f"%{value}%")
        if query.start_date:
            clauses.append(f"{spec.date_column} >= ?")
            params.append(query.start_date.isoformat())
        if query.end_date:
            clauses.append(f"{spec.date_column} < ?")
            params.append((query.end_date + timedelta(days=1)).isoformat())

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sort_column = spec.sort_columns.get(query.sort_by or "", spec.sort_columns[spec.default_sort])
        direction = "ASC" if query.sort_order.lower() == "asc" else "DESC"
        offset = (query.page - 1) * query.limit

        total_row = self.conn.execute(f"SELECT COUNT(*) AS c FROM {spec.table} {where}", params).fetchone()
        rows = self.conn.execute(
            f"SELECT * FROM {spec.table} {where} ORDER BY {sort_column} {direction}, id {direction} "
            "LIMIT ? OFFSET ?",
            [*params, query.limit, offset],
        ).fetchall()
        return [self._document(spec, row) for row in rows], int(total_row["c"])

    def get_record(self, kind: str, record_id: int) -> dict[str, Any] | None:
        spec = TABLES[kind]
        row = self.conn.execute(f"SELECT * FROM {spec.table} WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            return None
        return self._document(spec, row)

    def search(self, kind: str, text: str, limit: int = 10) -> list[dict[str, Any]]:
        spec = TABLES[kind]
        condition = " OR ".join(f"{column} LIKE ?" for column in spec.search_columns)
        rows = self.conn.execute(
            f"SELECT * FROM {spec.table} WHERE {condition} ORDER BY {spec.date_column} DESC, id DESC LIMIT ?",
            [*(f"%{text}%" for _ in spec.search_columns), limit],
        ).fetchall()
        return [self._document(spec, row) for row in rows]

    def stats(self, kind: str, today: date, top_n: int = 10) -> dict[str, Any]:
        spec = TABLES[kind]
        tomorrow = today + timedelta(days=1)
        total = self.count(kind)
        today_row = self.conn.execute(
            f"SELECT COUNT(*) AS c FROM {spec.table} WHERE scraped_at >= ? AND scraped_at < ?",
            (today.isoformat(), tomorrow.isoformat()),
        ).fetchone()
        groups = self.conn.execute(
            f"""
            SELECT {spec.group_column} AS name, COUNT(*) AS count
            FROM {spec.table}
            GROUP BY {spec.group_column}
            ORDER BY count DESC, name ASC
            LIMIT ?
            """,
            (top_n,),
        ).fetchall()
        return {
            "total": total,
            "today": int(today_row["c"]),
            "top": [{"name": row["name"], "count": int(row["count"])} for row in groups],
        }

    def backfill_published_at(self) -> dict[str, int]:
        rows = self.conn.execute(
            "SELECT id, published_date FROM tenders WHERE published_at IS NULL"
        ).fetchall()
        updated = skipped = 0
        with self.conn:
            for row in rows:
                parsed = normalize_date(row["published_date"])
                if parsed is None:
                    skipped += 1
                    continue
                self.conn.execute(
                    "UPDATE tenders SET published_at = ? WHERE id = ?",
                    (parsed.isoformat(), row["id"]),
                )
                updated += 1
        return {"updated": updated, "skipped": skipped}

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()
