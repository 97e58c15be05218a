"""Fetch and cache the application's OpenAPI document."""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Callable

import httpx
import yaml

from binocs.config import OpenAPIConfig

logger = logging.getLogger(__name__)


class SpecCache:
    """Last successfully parsed document and when it was fetched.

    Invalidated purely by age. Concurrent writers are last-writer-wins.
    """

    def __init__(self, ttl: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._spec: dict[str, Any] | None = None
        self._fetched_at: float | None = None

    def get(self) -> dict[str, Any] | None:
        """The cached document, or None once it is older than ``ttl``."""
        with self._lock:
            if self._spec is None or self._fetched_at is None:
                return None
            if self._clock() - self._fetched_at >= self.ttl:
                return None
            return self._spec

    def put(self, spec: dict[str, Any]) -> None:
        with self._lock:
            self._spec = spec
            self._fetched_at = self._clock()

    def clear(self) -> None:
        with self._lock:
            self._spec = None
            self._fetched_at = None


def parse_spec(body: str, content_type: str | None = None) -> dict[str, Any] | None:
    """Decode a YAML or JSON document. Returns None if it is not a mapping."""
    stripped = body.lstrip()
    if (content_type and "yaml" in content_type) or stripped.startswith(
        ("openapi:", "swagger:")
    ):
        data = yaml.safe_load(body)
    else:
        data = json.loads(body)
    return data if isinstance(data, dict) else None


class SpecClient:
    """``fetch_spec()`` with a TTL cache in front of a single HTTP GET.

    Any network or parse failure yields None, which callers treat the same
    as "no matching operation".
    """

    def __init__(
        self,
        config: OpenAPIConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or OpenAPIConfig()
        self.cache = SpecCache(ttl=self.config.cache_ttl, clock=clock)
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def spec_url(self) -> str | None:
        return self.config.absolute(self.config.spec_url)

    def fetch_spec(self) -> dict[str, Any] | None:
        if not self.enabled:
            return None
        cached = self.cache.get()
        if cached is not None:
            return cached
        return self.refresh()

    def refresh(self) -> dict[str, Any] | None:
        url = self.spec_url
        if not url:
            return None
        timeout = httpx.Timeout(
            self.config.read_timeout, connect=self.config.connect_timeout
        )
        try:
            with httpx.Client(
                follow_redirects=True,
                max_redirects=self.config.max_redirects,
                timeout=timeout,
                transport=self._transport,
            ) as client:
                response = client.get(url)
            if not response.is_success:
                logger.warning("Spec fetch from %s returned %d", url, response.status_code)
                return None
            spec = parse_spec(response.text, response.headers.get("content-type"))
        except (httpx.HTTPError, httpx.InvalidURL, yaml.YAMLError, ValueError) as e:
            logger.warning("Failed to fetch OpenAPI spec from %s: %s", url, e)
            return None
        if spec is None:
            logger.warning("OpenAPI spec at %s is not a mapping", url)
            return None
        self.cache.put(spec)
        logger.debug("Fetched OpenAPI spec from %s", url)
        return spec

    def clear_cache(self) -> None:
        self.cache.clear()
