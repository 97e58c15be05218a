"""Request record, filter and store interface."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

STATUS_RANGES: dict[str, tuple[int, int]] = {
    "2xx": (200, 299),
    "3xx": (300, 399),
    "4xx": (400, 499),
    "5xx": (500, 599),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RequestRecord:
    """One captured HTTP request/response pair. Read-only to the inspector."""

    id: str
    method: str
    path: str
    full_url: str | None = None
    controller_name: str | None = None
    action_name: str | None = None
    status_code: int | None = None
    duration_ms: float | None = None
    memory_delta: int | None = None
    ip_address: str | None = None
    session_id: str | None = None
    created_at: datetime = field(default_factory=_now)
    params: dict[str, Any] = field(default_factory=dict)
    request_headers: dict[str, Any] = field(default_factory=dict)
    response_headers: dict[str, Any] = field(default_factory=dict)
    request_body: str | None = None
    response_body: str | None = None
    logs: list[dict[str, Any]] = field(default_factory=list)
    exception: dict[str, Any] | None = None

    @property
    def has_exception(self) -> bool:
        return bool(self.exception)

    @property
    def controller_action(self) -> str | None:
        if not (self.controller_name and self.action_name):
            return None
        return f"{self.controller_name}#{self.action_name}"

    @property
    def formatted_duration(self) -> str:
        if self.duration_ms is None:
            return "N/A"
        if self.duration_ms < 1:
            return "< 1ms"
        if self.duration_ms < 1000:
            return f"{round(self.duration_ms, 1)}ms"
        return f"{round(self.duration_ms / 1000, 2)}s"

    @property
    def formatted_memory_delta(self) -> str:
        if self.memory_delta is None:
            return "N/A"
        size = abs(self.memory_delta)
        if size < 1024:
            return f"{self.memory_delta} B"
        if size < 1024 * 1024:
            return f"{round(self.memory_delta / 1024.0, 2)} KB"
        return f"{round(self.memory_delta / (1024.0 * 1024), 2)} MB"

    def time_ago(self, now: datetime | None = None) -> str:
        """Compact age of the record: ``12s ago``, ``3m ago``, ``2h ago``, ``4d ago``."""
        now = now or _now()
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        seconds = max((now - created).total_seconds(), 0)
        if seconds < 60:
            return f"{int(seconds)}s ago"
        if seconds < 3600:
            return f"{int(seconds // 60)}m ago"
        if seconds < 86400:
            return f"{int(seconds // 3600)}h ago"
        return f"{int(seconds // 86400)}d ago"


@dataclass
class RequestFilters:
    """Active list filters. Every field is independently optional."""

    method: str | None = None
    status: str | None = None  # one of STATUS_RANGES
    has_exception: bool | None = None
    search: str | None = None

    def matches(self, record: RequestRecord) -> bool:
        """In-process predicate with the same semantics as the SQL store."""
        if self.method and record.method.upper() != self.method.upper():
            return False
        if self.status:
            bounds = STATUS_RANGES.get(self.status)
            if bounds is not None:
                code = record.status_code
                if code is None or not (bounds[0] <= code <= bounds[1]):
                    return False
        if self.has_exception and not record.has_exception:
            return False
        if self.search:
            needle = self.search.lower()
            haystack = [
                record.path or "",
                record.controller_name or "",
                record.action_name or "",
            ]
            if not any(needle in value.lower() for value in haystack):
                return False
        return True

    def is_empty(self) -> bool:
        return not (self.method or self.status or self.has_exception or self.search)


@dataclass
class RequestStats:
    """Aggregate numbers over the whole store."""

    total: int = 0
    today: int = 0
    avg_duration: float | None = None
    error_rate: float = 0.0


class RequestStore(abc.ABC):
    """Query interface the inspector consumes."""

    @abc.abstractmethod
    def query(
        self, filters: RequestFilters | None = None, limit: int = 500
    ) -> list[RequestRecord]:
        """Records matching ``filters``, newest first, at most ``limit``."""

    @abc.abstractmethod
    def get(self, record_id: str) -> RequestRecord | None:
        """Find one record by id."""

    @abc.abstractmethod
    def delete(self, record_id: str) -> bool:
        """Delete one record. Returns False when it did not exist."""

    @abc.abstractmethod
    def delete_all(self) -> int:
        """Delete every record and return how many were removed."""

    @abc.abstractmethod
    def stats(self) -> RequestStats:
        """Aggregate counts and averages."""
