"""
Per-request timeline pipeline: cache probe, fan-out fetch, sentiment, write-back.
"""
from __future__ import annotations

import asyncio
import logging
from typing import NamedTuple, Set

from regional_timeline.core.cache import CacheStore, timeline_cache_key
from regional_timeline.core.regions import RegionMap, normalize_region_code
from regional_timeline.core.sentiment import SentimentSummarizer
from regional_timeline.models import SentimentTally, Timeline
from regional_timeline.schemas import PostOut, SentimentAnalysis, TimelineResponse
from regional_timeline.sources.collector import TimelineCollector

logger = logging.getLogger(__name__)

CACHE_HIT = "HIT"
CACHE_MISS = "MISS"


class TimelineResult(NamedTuple):
    payload: bytes
    cache_status: str


def build_timeline_response(timeline: Timeline, tally: SentimentTally) -> TimelineResponse:
    return TimelineResponse(
        timeline=[PostOut.from_post(post) for post in timeline],
        sentiment_analysis=SentimentAnalysis.from_tally(tally),
    )


class TimelineService:
    """
    Builds regional timelines with a cache-aside store in front.

    Cache writes run as detached tasks so the response never waits on them.
    There is no single-flight guard: concurrent misses for one region each
    rebuild and overwrite the same key.
    """

    def __init__(
        self,
        regions: RegionMap,
        collector: TimelineCollector,
        summarizer: SentimentSummarizer,
        cache: CacheStore,
        cache_ttl: int = 300,
    ):
        self.regions = regions
        self.collector = collector
        self.summarizer = summarizer
        self.cache = cache
        self.cache_ttl = cache_ttl
        self._pending_writes: Set[asyncio.Task] = set()

    async def get_timeline(self, region: str) -> TimelineResult:
        """
        Serve a region's timeline, from cache when possible.

        Args:
            region: Region code, any case

        Returns:
            TimelineResult with the JSON payload and HIT/MISS status

        Raises:
            UnknownRegionError: region code not configured
            EmptyInstanceListError: region has no usable instances
        """
        code = normalize_region_code(region)
        key = timeline_cache_key(code)

        cached = await self._probe(key)
        if cached is not None:
            logger.info("Cache hit for %s", code)
            return TimelineResult(payload=cached, cache_status=CACHE_HIT)
        logger.info("Cache miss for %s", code)

        domains = self.regions.resolve(code)
        timeline = await self.collector.aggregate(domains)
        tally = await self._summarize(timeline)

        payload = build_timeline_response(timeline, tally).to_json_bytes()

        if timeline:
            self._schedule_write(key, payload)
        else:
            logger.warning("No posts collected for %s; skipping cache write", code)

        return TimelineResult(payload=payload, cache_status=CACHE_MISS)

    async def _probe(self, key: str) -> bytes | None:
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning("Cache read error for %s: %s", key, e)
            return None

    async def _summarize(self, timeline: Timeline) -> SentimentTally:
        try:
            return await self.summarizer.summarize(timeline)
        except Exception:
            logger.exception("Sentiment summary failed; returning empty tally")
            return SentimentTally()

    def _schedule_write(self, key: str, payload: bytes) -> None:
        task = asyncio.create_task(self._write(key, payload))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write(self, key: str, payload: bytes) -> None:
        try:
            await self.cache.put(key, payload, self.cache_ttl)
        except Exception as e:
            logger.error("Cache write error for %s: %s", key, e)
            return
        logger.debug("Cached %d bytes under %s for %ds", len(payload), key, self.cache_ttl)

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    async def wait_for_pending_writes(self) -> None:
        """Wait for detached cache writes to land (used on shutdown and in tests)."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)


__all__ = ["TimelineService", "TimelineResult", "build_timeline_response", "CACHE_HIT", "CACHE_MISS"]
