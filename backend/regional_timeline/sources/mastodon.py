"""
File: regional_timeline/sources/mastodon.py
Public timeline fetcher for Mastodon-compatible instances.
"""

from __future__ import annotations

import asyncio
import logging
from typing import NamedTuple, Optional, Tuple

import httpx

from regional_timeline.config import HTTP_HEADERS
from regional_timeline.core.errors import SourceFetchError
from regional_timeline.models import JsonDict

logger = logging.getLogger(__name__)


class FetchResult(NamedTuple):
    """Outcome of one instance fetch. ``error`` is set when ``statuses`` is empty because of a failure."""
    domain: str
    statuses: Tuple[JsonDict, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MastodonClient:
    """Reads the local public timeline of a single instance, never raising."""

    TIMELINE_PATH = "/api/v1/timelines/public"

    def __init__(self, client: httpx.AsyncClient, timeout: float = 5.0):
        self.client = client
        self.timeout = timeout

    @classmethod
    def build_http_client(cls, timeout: float = 5.0, max_connections: int = 50) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=HTTP_HEADERS,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            limits=httpx.Limits(
                max_keepalive_connections=20,
                max_connections=max_connections,
                keepalive_expiry=30.0,
            ),
        )

    def timeline_url(self, domain: str) -> str:
        return f"https://{domain}{self.TIMELINE_PATH}"

    async def fetch(self, domain: str, limit: int = 20) -> FetchResult:
        """
        Fetch up to ``limit`` recent local, non-boosted statuses from ``domain``.

        Args:
            domain: Instance host name, e.g. "mastodon.social"
            limit: Page size requested from the instance

        Returns:
            FetchResult with the raw status objects, or an empty result carrying the error
        """
        try:
            statuses = await asyncio.wait_for(self._get_statuses(domain, limit), timeout=self.timeout)
        except SourceFetchError as e:
            return self._failed(domain, e)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return self._failed(domain, SourceFetchError(domain, f"timed out after {self.timeout:.1f}s"))
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return self._failed(domain, SourceFetchError(domain, f"{type(e).__name__}: {e}"))

        logger.debug("Fetched %d statuses from %s", len(statuses), domain)
        return FetchResult(domain=domain, statuses=statuses)

    async def _get_statuses(self, domain: str, limit: int) -> Tuple[JsonDict, ...]:
        params = {"limit": limit, "local": "true"}
        response = await self.client.get(self.timeline_url(domain), params=params, headers=HTTP_HEADERS)

        if not response.is_success:
            raise SourceFetchError(domain, f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type.lower():
            raise SourceFetchError(domain, f"unexpected content type {content_type or 'none'!r}")

        try:
            data = response.json()
        except ValueError as e:
            raise SourceFetchError(domain, "malformed JSON body") from e

        if not isinstance(data, list):
            raise SourceFetchError(domain, f"expected a JSON array, got {type(data).__name__}")

        return tuple(item for item in data if isinstance(item, dict))

    @staticmethod
    def _failed(domain: str, error: SourceFetchError) -> FetchResult:
        logger.warning("Failed to fetch from %s", error.message)
        return FetchResult(domain=domain, error=error.reason)


__all__ = ["MastodonClient", "FetchResult"]
