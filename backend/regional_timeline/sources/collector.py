"""
Timeline collection coordinator that aggregates from multiple instances.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional, Sequence

from regional_timeline.config import MAX_TIMELINE_POSTS
from regional_timeline.models import JsonDict, Post, Timeline
from regional_timeline.sources.mastodon import FetchResult, MastodonClient
from regional_timeline.utils import parse_utc_datetime

logger = logging.getLogger(__name__)


def status_to_post(status: JsonDict, domain: str) -> Optional[Post]:
    """
    Convert a raw status object into a Post tagged with its instance.

    Args:
        status: Status JSON object from the public timeline API
        domain: Instance the status was fetched from

    Returns:
        Post, or None if the status lacks an id or a parseable created_at
    """
    status_id = status.get("id")
    created_at = parse_utc_datetime(status.get("created_at"))
    if status_id is None or created_at is None:
        return None

    account = status.get("account")
    handle = account.get("acct", "") if isinstance(account, dict) else ""

    return Post(
        id=str(status_id),
        created_at=created_at,
        content=str(status.get("content") or ""),
        url=str(status.get("url") or status.get("uri") or ""),
        author_handle=str(handle or ""),
        source_domain=domain,
    )


def merge_timelines(results: Iterable[FetchResult], limit: int = MAX_TIMELINE_POSTS) -> Timeline:
    """
    Combine per-instance results into one timeline, newest first.

    Args:
        results: Fetch results in domain order
        limit: Maximum number of posts to keep

    Returns:
        Tuple of at most ``limit`` posts sorted by created_at descending
    """
    posts: List[Post] = []

    for result in results:
        for status in result.statuses:
            post = status_to_post(status, result.domain)
            if post is None:
                logger.warning("Skipping malformed status from %s: id=%r", result.domain, status.get("id"))
                continue
            posts.append(post)

    # Stable sort on aware datetimes keeps merge order for ties
    posts.sort(key=lambda post: post.created_at, reverse=True)
    return tuple(posts[:limit])


class TimelineCollector:
    """Fans out one fetch per instance and merges whatever comes back."""

    def __init__(
        self,
        client: MastodonClient,
        page_limit: int = 20,
        max_posts: int = MAX_TIMELINE_POSTS,
        max_concurrent: int = 16,
    ):
        self.client = client
        self.page_limit = page_limit
        self.max_posts = max_posts
        self.max_concurrent = max(1, max_concurrent)

    async def fetch_all(self, domains: Sequence[str]) -> List[FetchResult]:
        """Fetch every domain concurrently; waits for all of them."""
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def fetch_one(domain: str) -> FetchResult:
            async with semaphore:
                return await self.client.fetch(domain, self.page_limit)

        return list(await asyncio.gather(*(fetch_one(domain) for domain in domains)))

    async def aggregate(self, domains: Sequence[str]) -> Timeline:
        """
        Collect the merged timeline for a set of instances.

        Args:
            domains: Instance domains of one region

        Returns:
            Up to ``max_posts`` posts, newest first; empty if every instance failed
        """
        results = await self.fetch_all(domains)

        failed = [result.domain for result in results if not result.ok]
        if failed:
            logger.warning("%d of %d instance(s) failed: %s", len(failed), len(results), ", ".join(failed))

        timeline = merge_timelines(results, self.max_posts)
        logger.info("Merged %d post(s) from %d instance(s)", len(timeline), len(results) - len(failed))
        return timeline


__all__ = ["TimelineCollector", "merge_timelines", "status_to_post"]
