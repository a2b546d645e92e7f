"""Shared fixtures for the regional timeline tests."""
import inspect
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List

import httpx
import pytest

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_status(status_id, minutes_ago=0, content="<p>Hello from the fediverse, nice day</p>", acct="alice"):
    """A public status as returned by /api/v1/timelines/public."""
    created_at = BASE_TIME - timedelta(minutes=minutes_ago)
    return {
        "id": str(status_id),
        "created_at": created_at.isoformat().replace("+00:00", "Z"),
        "content": content,
        "url": f"https://example.social/@{acct}/{status_id}",
        "account": {"acct": acct},
    }


def json_response(payload, status_code=200):
    return httpx.Response(status_code, json=payload)


def mock_transport(routes: Dict[str, Callable]) -> httpx.MockTransport:
    """Route requests by host; unknown hosts fail with a connection error."""

    async def handler(request: httpx.Request):
        route = routes.get(request.url.host)
        if route is None:
            raise httpx.ConnectError("Name or service not known", request=request)
        if inspect.iscoroutinefunction(route):
            return await route(request)
        return route(request)

    return httpx.MockTransport(handler)


def timeout_route(request: httpx.Request):
    raise httpx.ReadTimeout("timed out", request=request)


class FakeClassifier:
    """Labels texts by keyword; texts containing "boom" raise."""

    def __init__(self):
        self.calls: List[str] = []

    async def classify(self, text):
        self.calls.append(text)
        lowered = text.lower()
        if "boom" in lowered:
            raise RuntimeError("model exploded")
        if "great" in lowered or "nice" in lowered:
            return [{"label": "POSITIVE", "score": 0.91}, {"label": "NEGATIVE", "score": 0.09}]
        if "awful" in lowered:
            return [{"label": "POSITIVE", "score": 0.2}, {"label": "NEGATIVE", "score": 0.8}]
        return [{"label": "MIXED", "score": 0.6}, {"label": "POSITIVE", "score": 0.4}]


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def fake_classifier():
    return FakeClassifier()


@pytest.fixture
def fake_clock():
    return FakeClock()
