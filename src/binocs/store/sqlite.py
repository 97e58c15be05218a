"""SQLite request store over the recorder's ``binocs_requests`` table."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from binocs.store.base import (
    STATUS_RANGES,
    RequestFilters,
    RequestRecord,
    RequestStats,
    RequestStore,
)

logger = logging.getLogger(__name__)

TABLE = "binocs_requests"

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    uuid TEXT NOT NULL UNIQUE,
    method TEXT NOT NULL,
    path TEXT NOT NULL,
    full_url TEXT,
    controller_name TEXT,
    action_name TEXT,
    route_name TEXT,
    params TEXT,
    request_headers TEXT,
    response_headers TEXT,
    request_body TEXT,
    response_body TEXT,
    status_code INTEGER,
    duration_ms REAL,
    ip_address TEXT,
    session_id TEXT,
    logs TEXT,
    exception TEXT,
    memory_delta INTEGER,
    content_type TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class SQLiteRequestStore(RequestStore):
    """Reads records written by the web application's recorder.

    JSON-serialized columns (params, headers, logs, exception) are decoded
    on read. A single connection is shared across threads behind a lock.
    """

    def __init__(self, path: str | Path, create: bool = False) -> None:
        self.path = str(path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if create:
            with self._conn:
                self._conn.execute(_SCHEMA)

    def query(
        self, filters: RequestFilters | None = None, limit: int = 500
    ) -> list[RequestRecord]:
        where, args = _where_clause(filters or RequestFilters())
        sql = f"SELECT * FROM {TABLE}{where} ORDER BY created_at DESC LIMIT ?"
        with self._lock:
            rows = self._conn.execute(sql, (*args, limit)).fetchall()
        return [_row_to_record(row) for row in rows]

    def get(self, record_id: str) -> RequestRecord | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT * FROM {TABLE} WHERE uuid = ?", (record_id,)
            ).fetchone()
        return _row_to_record(row) if row else None

    def delete(self, record_id: str) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                f"DELETE FROM {TABLE} WHERE uuid = ?", (record_id,)
            )
        return cursor.rowcount > 0

    def delete_all(self) -> int:
        with self._lock, self._conn:
            count = self._conn.execute(f"SELECT COUNT(*) FROM {TABLE}").fetchone()[0]
            self._conn.execute(f"DELETE FROM {TABLE}")
        return count

    def stats(self) -> RequestStats:
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d 00:00:00")
        with self._lock:
            total = self._conn.execute(f"SELECT COUNT(*) FROM {TABLE}").fetchone()[0]
            if not total:
                return RequestStats()
            today_count = self._conn.execute(
                f"SELECT COUNT(*) FROM {TABLE} WHERE created_at >= ?", (today,)
            ).fetchone()[0]
            avg = self._conn.execute(
                f"SELECT AVG(duration_ms) FROM {TABLE}"
            ).fetchone()[0]
            errors = self._conn.execute(
                f"SELECT COUNT(*) FROM {TABLE} "
                "WHERE exception IS NOT NULL OR status_code >= 500"
            ).fetchone()[0]
        return RequestStats(
            total=total,
            today=today_count,
            avg_duration=round(avg, 2) if avg is not None else None,
            error_rate=round(errors / total * 100, 2),
        )

    def insert(self, record: RequestRecord) -> None:
        """Write a record in the recorder's format."""
        created = record.created_at
        if created.tzinfo is not None:
            created = created.astimezone(timezone.utc).replace(tzinfo=None)
        stamp = created.isoformat(sep=" ")
        with self._lock, self._conn:
            self._conn.execute(
                f"""
                INSERT INTO {TABLE} (
                    uuid, method, path, full_url, controller_name, action_name,
                    params, request_headers, response_headers, request_body,
                    response_body, status_code, duration_ms, ip_address,
                    session_id, logs, exception, memory_delta, created_at,
                    updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.method.upper(),
                    record.path,
                    record.full_url,
                    record.controller_name,
                    record.action_name,
                    json.dumps(record.params),
                    json.dumps(record.request_headers),
                    json.dumps(record.response_headers),
                    record.request_body,
                    record.response_body,
                    record.status_code,
                    record.duration_ms,
                    record.ip_address,
                    record.session_id,
                    json.dumps(record.logs),
                    json.dumps(record.exception) if record.exception else None,
                    record.memory_delta,
                    stamp,
                    stamp,
                ),
            )

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def _where_clause(filters: RequestFilters) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    args: list[Any] = []
    if filters.method:
        clauses.append("method = ?")
        args.append(filters.method.upper())
    if filters.status and filters.status in STATUS_RANGES:
        low, high = STATUS_RANGES[filters.status]
        clauses.append("status_code BETWEEN ? AND ?")
        args.extend([low, high])
    if filters.has_exception:
        clauses.append("exception IS NOT NULL")
    if filters.search:
        clauses.append("(path LIKE ? OR controller_name LIKE ? OR action_name LIKE ?)")
        like = f"%{filters.search}%"
        args.extend([like, like, like])
    if not clauses:
        return "", args
    return " WHERE " + " AND ".join(clauses), args


def _decode(value: str | None, default: Any) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        logger.debug("Undecodable JSON column: %.40s", value)
        return default


def _parse_time(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace(" UTC", ""))
    except ValueError:
        return datetime.now(timezone.utc)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _row_to_record(row: sqlite3.Row) -> RequestRecord:
    exception = _decode(row["exception"], None)
    return RequestRecord(
        id=row["uuid"],
        method=row["method"],
        path=row["path"],
        full_url=row["full_url"],
        controller_name=row["controller_name"],
        action_name=row["action_name"],
        status_code=row["status_code"],
        duration_ms=row["duration_ms"],
        memory_delta=row["memory_delta"],
        ip_address=row["ip_address"],
        session_id=row["session_id"],
        created_at=_parse_time(row["created_at"]),
        params=_decode(row["params"], {}) or {},
        request_headers=_decode(row["request_headers"], {}) or {},
        response_headers=_decode(row["response_headers"], {}) or {},
        request_body=row["request_body"],
        response_body=row["response_body"],
        logs=_decode(row["logs"], []) or [],
        exception=exception or None,
    )
