import asyncio
from unittest.mock import AsyncMock

import pytest

from src.pm_clearing.application.service import SettlementService
from src.pm_common.enums import AuditType
from src.pm_feed.application.refresh import MISSING_SCORE_KEY, RefreshCoordinator
from src.pm_feed.domain.models import FeedMatch, OddsPair, ScoreState
from src.pm_feed.domain.reconciler import FEED_EXTERNAL, FEED_MODELED
from src.pm_order.application.service import OrderService
from src.pm_push.domain.events import MARKETS_UPDATE, MATCHES_UPDATE
from src.pm_push.infrastructure.publishers import InMemoryPublisher
from src.pm_store.application.audit import AuditRecorder
from src.pm_store.domain.state import EngineState


def _feed_match(
    external_id: str = "cric-1",
    status: str = "Chennai Super Kings need 31 runs",
    is_live: bool = True,
) -> FeedMatch:
    return FeedMatch(
        external_id=external_id,
        team_a_full="Mumbai Indians",
        team_b_full="Chennai Super Kings",
        team_a="MI",
        team_b="CSK",
        status_text=status,
        score_a=ScoreState(display="180/6 (20)", runs=180, wickets=6, has_score=True, overs=20.0),
        score_b=ScoreState(display="150/4 (16)", runs=150, wickets=4, has_score=True, overs=16.0),
        is_live=is_live,
        match_type="t20",
    )


class FakeScoreFeed:
    def __init__(self, matches: list[FeedMatch] | None = None, enabled: bool = True) -> None:
        self.matches = matches or []
        self._enabled = enabled
        self.calls = 0
        self.gate: asyncio.Event | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def fetch_matches(self) -> list[FeedMatch]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return list(self.matches)


class FakeBookmaker:
    def __init__(self, pairs: list[OddsPair] | None = None) -> None:
        self.pairs = pairs or []

    async def fetch_pairs(self, matches: list[FeedMatch]) -> list[OddsPair]:
        return list(self.pairs)


class FakeOddsFeed:
    def __init__(self, pairs: list[OddsPair] | None = None) -> None:
        self.pairs = pairs or []

    async def fetch_pairs(self) -> list[OddsPair]:
        return list(self.pairs)


class BrokenScoreFeed(FakeScoreFeed):
    async def fetch_matches(self) -> list[FeedMatch]:
        raise RuntimeError("boom")


@pytest.fixture
def settlement(
    state: EngineState, store: AsyncMock, publisher: InMemoryPublisher, audit: AuditRecorder
) -> SettlementService:
    return SettlementService(state, store, publisher, audit)


def _coordinator(
    state: EngineState,
    store: AsyncMock,
    publisher: InMemoryPublisher,
    audit: AuditRecorder,
    settlement: SettlementService,
    score_feed: FakeScoreFeed,
    bookmaker: FakeBookmaker | None = None,
    theodds: FakeOddsFeed | None = None,
) -> RefreshCoordinator:
    return RefreshCoordinator(
        state,
        score_feed,
        bookmaker or FakeBookmaker(),
        {"theodds": theodds or FakeOddsFeed(), "scraper": FakeOddsFeed()},
        store,
        publisher,
        audit,
        settlement,
    )


class TestRefresh:
    async def test_installs_priced_matches(
        self, state, store, publisher, audit, settlement
    ) -> None:
        odds = FakeOddsFeed([OddsPair("Mumbai Indians", "Chennai Super Kings", 70, 30, "theodds")])
        coordinator = _coordinator(state, store, publisher, audit, settlement, FakeScoreFeed([_feed_match()]), theodds=odds)

        await coordinator.refresh()

        assert state.feed_source == FEED_EXTERNAL
        assert state.stale is False
        assert state.fetched_at is not None
        assert state.odds_counts == {"dcric99": 0, "theodds": 1, "scraper": 0}
        (match,) = state.matches.values()
        assert (match.price_a, match.price_b) == (70, 30)
        assert len(state.markets[match.id]) == 8
        store.insert_price_points.assert_awaited_once()
        assert len(publisher.events_named(MATCHES_UPDATE, "broadcast")) == 1
        assert len(publisher.events_named(MARKETS_UPDATE, f"match:{match.id}")) == 1
        assert state.latest_audits(1)[0].type == AuditType.GATEWAY_REFRESH

    async def test_live_matches_first(self, state, store, publisher, audit, settlement) -> None:
        feed = FakeScoreFeed([_feed_match("later", "Starts 19:30", False), _feed_match("now")])
        await _coordinator(state, store, publisher, audit, settlement, feed).refresh()
        assert [m.external_id for m in state.matches.values()] == ["now", "later"]

    async def test_concurrent_callers_share_one_cycle(
        self, state, store, publisher, audit, settlement
    ) -> None:
        feed = FakeScoreFeed([_feed_match()])
        feed.gate = asyncio.Event()
        coordinator = _coordinator(state, store, publisher, audit, settlement, feed)

        waiters = asyncio.gather(coordinator.refresh(), coordinator.refresh(), coordinator.refresh())
        await asyncio.sleep(0)
        assert coordinator.in_flight is True
        feed.gate.set()
        await waiters

        assert feed.calls == 1
        assert coordinator.in_flight is False

        await coordinator.refresh()
        assert feed.calls == 2

    async def test_missing_key_skips(self, state, store, publisher, audit, settlement) -> None:
        feed = FakeScoreFeed([_feed_match()], enabled=False)
        await _coordinator(state, store, publisher, audit, settlement, feed).refresh()

        assert feed.calls == 0
        assert state.feed_source == MISSING_SCORE_KEY
        assert state.stale is True
        assert state.matches == {}

    async def test_empty_cycle_keeps_cache(self, state, store, publisher, audit, settlement) -> None:
        feed = FakeScoreFeed([_feed_match()])
        coordinator = _coordinator(state, store, publisher, audit, settlement, feed)
        await coordinator.refresh()
        cached = dict(state.matches)

        feed.matches = []
        await coordinator.refresh()

        assert state.matches == cached
        assert state.stale is True
        assert state.feed_source == f"{FEED_MODELED}_cache"
        assert state.latest_audits(1)[0].type == AuditType.GATEWAY_REFRESH_EMPTY_KEPT_CACHE

    async def test_empty_first_cycle(self, state, store, publisher, audit, settlement) -> None:
        await _coordinator(state, store, publisher, audit, settlement, FakeScoreFeed()).refresh()
        assert state.feed_source == f"{FEED_MODELED}_empty"
        assert state.fetched_at is not None
        assert state.matches == {}

    async def test_score_outage_falls_back_to_odds(self, state, store, publisher, audit, settlement) -> None:
        bookmaker = FakeBookmaker([OddsPair("India", "Australia", 58, 42, "dcric99")])
        await _coordinator(state, store, publisher, audit, settlement, FakeScoreFeed(), bookmaker).refresh()

        assert state.feed_source == FEED_EXTERNAL
        (match,) = state.matches.values()
        assert match.team_a_full == "India"
        assert match.odds_source == "dcric99"

    async def test_failure_is_audited_not_raised(self, state, store, publisher, audit, settlement) -> None:
        await _coordinator(state, store, publisher, audit, settlement, BrokenScoreFeed()).refresh()
        assert state.stale is True
        entry = state.latest_audits(1)[0]
        assert entry.type == AuditType.GATEWAY_REFRESH_FAILED
        assert entry.details == {"message": "boom"}

    async def test_history_write_failure_is_tolerated(self, state, store, publisher, audit, settlement) -> None:
        store.insert_price_points.side_effect = RuntimeError("db down")
        await _coordinator(state, store, publisher, audit, settlement, FakeScoreFeed([_feed_match()])).refresh()
        assert state.stale is False
        assert len(state.matches) == 1

    async def test_ensure_fresh_skips_recent_snapshot(self, state, store, publisher, audit, settlement) -> None:
        feed = FakeScoreFeed([_feed_match()])
        coordinator = _coordinator(state, store, publisher, audit, settlement, feed)
        await coordinator.ensure_fresh()
        await coordinator.ensure_fresh()
        assert feed.calls == 1


class TestAutoSettle:
    async def test_finished_match_is_settled(self, state, store, publisher, audit, settlement) -> None:
        feed = FakeScoreFeed([_feed_match()])
        coordinator = _coordinator(state, store, publisher, audit, settlement, feed)
        await coordinator.refresh()
        (match_id,) = state.matches
        await OrderService(state, store, publisher, audit).place_order("u1", match_id, 1, "MI", "yes", 50)

        feed.matches = [_feed_match(status="Mumbai Indians won by 30 runs", is_live=False)]
        await coordinator.refresh()
        await settlement.drain()

        assert state.is_settled(match_id)
        assert state.settlements[match_id].settled_by == "auto"
        assert state.users["u1"].balance > 100

    async def test_unresolvable_winner_waits(self, state, store, publisher, audit, settlement) -> None:
        feed = FakeScoreFeed([_feed_match(status="Match won on super over")])
        await _coordinator(state, store, publisher, audit, settlement, feed).refresh()
        assert state.settlements == {}
