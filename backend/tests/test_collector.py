"""Tests for fan-out collection and timeline merging."""
from datetime import timezone

import httpx
import pytest

from conftest import json_response, make_status, mock_transport, timeout_route
from regional_timeline.sources.collector import TimelineCollector, merge_timelines, status_to_post
from regional_timeline.sources.mastodon import FetchResult, MastodonClient


def make_collector(routes, **kwargs):
    http_client = httpx.AsyncClient(transport=mock_transport(routes))
    return TimelineCollector(MastodonClient(http_client, timeout=1.0), **kwargs)


def page(domain_offset, count=20):
    return [make_status(f"{domain_offset}-{i}", minutes_ago=domain_offset + i * 3) for i in range(count)]


class TestStatusToPost:

    def test_attaches_source_domain(self):
        post = status_to_post(make_status(7, acct="bob"), "a.example")

        assert post.id == "7"
        assert post.source_domain == "a.example"
        assert post.author_handle == "bob"
        assert post.created_at.tzinfo == timezone.utc
        assert post.content.startswith("<p>")

    def test_missing_created_at(self):
        status = make_status(1)
        status["created_at"] = "not a date"

        assert status_to_post(status, "a.example") is None

    def test_missing_id(self):
        status = make_status(1)
        del status["id"]

        assert status_to_post(status, "a.example") is None


class TestMergeTimelines:

    def test_sorts_by_instant_not_string(self):
        # 12:30+02:00 is 10:30Z, earlier than 11:00Z even though it sorts later as text
        east = make_status("east")
        east["created_at"] = "2024-01-01T12:30:00+02:00"
        west = make_status("west")
        west["created_at"] = "2024-01-01T11:00:00Z"

        timeline = merge_timelines([
            FetchResult("a.example", (east,)),
            FetchResult("b.example", (west,)),
        ])

        assert [p.id for p in timeline] == ["west", "east"]

    def test_truncates_to_limit(self):
        results = [FetchResult(f"{n}.example", tuple(page(n))) for n in range(3)]

        timeline = merge_timelines(results)

        assert len(timeline) == 50
        stamps = [p.created_at for p in timeline]
        assert stamps == sorted(stamps, reverse=True)

    def test_ties_keep_merge_order(self):
        results = [
            FetchResult("a.example", (make_status("a"),)),
            FetchResult("b.example", (make_status("b"),)),
        ]

        timeline = merge_timelines(results)

        assert [(p.source_domain, p.id) for p in timeline] == [("a.example", "a"), ("b.example", "b")]

    def test_same_id_on_two_instances_is_kept_twice(self):
        results = [
            FetchResult("a.example", (make_status(1),)),
            FetchResult("b.example", (make_status(1, minutes_ago=1),)),
        ]

        assert len(merge_timelines(results)) == 2

    def test_skips_malformed_statuses(self):
        broken = {"id": "x"}
        timeline = merge_timelines([FetchResult("a.example", (broken, make_status(1)))])

        assert [p.id for p in timeline] == ["1"]


class TestTimelineCollector:

    @pytest.mark.asyncio
    async def test_aggregate_merges_all_instances(self):
        collector = make_collector({
            "a.example": lambda r: json_response(page(0)),
            "b.example": lambda r: json_response(page(1)),
            "c.example": lambda r: json_response(page(2)),
        })

        timeline = await collector.aggregate(["a.example", "b.example", "c.example"])

        assert len(timeline) == 50
        assert {p.source_domain for p in timeline} == {"a.example", "b.example", "c.example"}
        stamps = [p.created_at for p in timeline]
        assert stamps == sorted(stamps, reverse=True)

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_the_rest(self):
        collector = make_collector({
            "a.example": lambda r: json_response(page(0)),
            "b.example": timeout_route,
            "c.example": lambda r: httpx.Response(500),
        })

        timeline = await collector.aggregate(["a.example", "b.example", "c.example"])

        assert len(timeline) == 20
        assert {p.source_domain for p in timeline} == {"a.example"}

    @pytest.mark.asyncio
    async def test_all_instances_failing_yields_empty_timeline(self):
        collector = make_collector({"b.example": timeout_route})

        timeline = await collector.aggregate(["a.example", "b.example"])

        assert timeline == ()

    @pytest.mark.asyncio
    async def test_requests_configured_page_size(self):
        limits = []

        def route(request):
            limits.append(request.url.params["limit"])
            return json_response([])

        collector = make_collector({"a.example": route}, page_limit=7)
        await collector.aggregate(["a.example"])

        assert limits == ["7"]

    @pytest.mark.asyncio
    async def test_fetch_all_returns_one_result_per_domain(self):
        collector = make_collector({"a.example": lambda r: json_response([])}, max_concurrent=1)

        results = await collector.fetch_all(["a.example", "down.example"])

        assert [r.domain for r in results] == ["a.example", "down.example"]
        assert results[0].ok and not results[1].ok

    @pytest.mark.asyncio
    async def test_malformed_domain_does_not_abort_the_batch(self):
        collector = make_collector({"a.example": lambda r: json_response([make_status(1)])})

        timeline = await collector.aggregate(["a.example", "b.example:notaport"])

        assert [p.id for p in timeline] == ["1"]
