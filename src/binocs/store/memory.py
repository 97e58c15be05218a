"""In-process request store."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

from binocs.store.base import (
    RequestFilters,
    RequestRecord,
    RequestStats,
    RequestStore,
)


class InMemoryRequestStore(RequestStore):
    """Thread-safe list-backed store, used for demos and tests."""

    def __init__(self, records: list[RequestRecord] | None = None) -> None:
        self._records: list[RequestRecord] = list(records or [])
        self._lock = threading.Lock()

    def add(self, record: RequestRecord) -> RequestRecord:
        with self._lock:
            self._records.append(record)
        return record

    def query(
        self, filters: RequestFilters | None = None, limit: int = 500
    ) -> list[RequestRecord]:
        with self._lock:
            records = list(self._records)
        if filters is not None:
            records = [r for r in records if filters.matches(r)]
        records.sort(key=lambda r: _aware(r.created_at), reverse=True)
        return records[:limit]

    def get(self, record_id: str) -> RequestRecord | None:
        with self._lock:
            return next((r for r in self._records if r.id == record_id), None)

    def delete(self, record_id: str) -> bool:
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.id != record_id]
            return len(self._records) != before

    def delete_all(self) -> int:
        with self._lock:
            count = len(self._records)
            self._records.clear()
        return count

    def stats(self) -> RequestStats:
        with self._lock:
            records = list(self._records)
        if not records:
            return RequestStats()

        today_start = datetime.now(timezone.utc).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        durations = [r.duration_ms for r in records if r.duration_ms is not None]
        errors = [
            r
            for r in records
            if r.has_exception or (r.status_code is not None and r.status_code >= 500)
        ]
        return RequestStats(
            total=len(records),
            today=sum(1 for r in records if _aware(r.created_at) >= today_start),
            avg_duration=round(sum(durations) / len(durations), 2) if durations else None,
            error_rate=round(len(errors) / len(records) * 100, 2),
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
