"""Integration-test fixtures.

The engine is built through ``build_engine`` with an in-memory store and
publisher. CricAPI is served from ``ScoreFeedStub`` over an httpx mock
transport, so a test can change the feed between refresh cycles.
"""

from typing import Any

import httpx
import pytest_asyncio

from src.main import Engine, build_engine
from src.pm_feed.infrastructure.http_client import FeedHttpClient
from src.pm_push.infrastructure.publishers import InMemoryPublisher
from src.pm_store.domain.repository import NullStore
from tests.factories import make_settings


class ScoreFeedStub:
    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = [
            {
                "id": "ipl-10",
                "t1": "Mumbai Indians [MI]",
                "t2": "Chennai Super Kings [CSK]",
                "t1s": "180/6 (20)",
                "t2s": "150/4 (16)",
                "ms": "live",
                "status": "Chennai Super Kings need 31 runs",
                "matchType": "t20",
                "series": "Indian Premier League (IPL) 2026",
            }
        ]
        self.requests = 0

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests += 1
        if request.url.path.endswith("/cricScore"):
            return httpx.Response(200, json={"status": "success", "data": self.rows})
        return httpx.Response(200, json={"status": "success", "data": []})


@pytest_asyncio.fixture
async def score_feed() -> ScoreFeedStub:
    return ScoreFeedStub()


@pytest_asyncio.fixture
async def publisher() -> InMemoryPublisher:
    return InMemoryPublisher()


@pytest_asyncio.fixture
async def engine(score_feed: ScoreFeedStub, publisher: InMemoryPublisher) -> Engine:
    http = FeedHttpClient(httpx.AsyncClient(transport=httpx.MockTransport(score_feed.handle)))
    engine = await build_engine(
        make_settings(CRICKETDATA_API_KEY="test-key"),
        store=NullStore(),
        publisher=publisher,
        http=http,
    )
    yield engine
    await engine.aclose()
