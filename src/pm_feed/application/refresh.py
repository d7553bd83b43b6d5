"""RefreshCoordinator: one poll cycle: fetch, reconcile, price, publish.

Concurrent callers share the cycle already in flight instead of starting a
second one. A cycle that yields no matches keeps the previous snapshot.
Provider failures never reach here: providers degrade to empty lists.
"""

import asyncio
import logging
import time
from typing import Protocol

from src.pm_clearing.application.service import SettlementService
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import AuditType
from src.pm_common.errors import AppError, WinnerUnresolvedError
from src.pm_common.id_generator import IdAssigner, StableHashIdAssigner
from src.pm_feed.domain.models import FeedMatch, OddsPair
from src.pm_feed.domain.reconciler import (
    FEED_EXTERNAL,
    FEED_MODELED,
    apply_pricing,
    build_synthetic_matches,
)
from src.pm_market.application.schemas import MarketOut, MatchOut, TradingStatusOut
from src.pm_market.domain.builder import MarketBuilder
from src.pm_market.domain.models import Market, Match
from src.pm_push.domain.events import (
    BROADCAST,
    MARKETS_UPDATE,
    MATCHES_UPDATE,
    EventPublisher,
    PushEvent,
    match_room,
)
from src.pm_store.application.audit import AuditRecorder
from src.pm_store.domain.repository import StoreProtocol
from src.pm_store.domain.state import EngineState

logger = logging.getLogger(__name__)

MISSING_SCORE_KEY = "missing_cricket_api_key"


class ScoreFeed(Protocol):
    @property
    def enabled(self) -> bool: ...

    async def fetch_matches(self) -> list[FeedMatch]: ...


class MatchOddsFeed(Protocol):
    """An odds feed that needs the score feed's matches to pick events."""

    async def fetch_pairs(self, matches: list[FeedMatch]) -> list[OddsPair]: ...


class OddsFeed(Protocol):
    async def fetch_pairs(self) -> list[OddsPair]: ...


class RefreshCoordinator:
    def __init__(
        self,
        state: EngineState,
        score_feed: ScoreFeed,
        bookmaker: MatchOddsFeed,
        odds_feeds: dict[str, OddsFeed],
        store: StoreProtocol,
        publisher: EventPublisher,
        audit: AuditRecorder,
        settlement: SettlementService,
        builder: MarketBuilder | None = None,
        ids: IdAssigner | None = None,
    ) -> None:
        self._state = state
        self._score_feed = score_feed
        self._bookmaker = bookmaker
        self._odds_feeds = odds_feeds
        self._store = store
        self._publisher = publisher
        self._audit = audit
        self._settlement = settlement
        self._builder = builder or MarketBuilder(state.threshold_locks)
        self._ids = ids or StableHashIdAssigner()
        self._in_flight: asyncio.Task[None] | None = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    async def refresh(self) -> None:
        """Run a cycle, or wait for the one already running."""
        if self._in_flight is None:
            task = asyncio.create_task(self._run_guarded())
            task.add_done_callback(self._clear_in_flight)
            self._in_flight = task
        await asyncio.shield(self._in_flight)

    async def ensure_fresh(self) -> None:
        """Refresh on read when the snapshot is older than one poll interval."""
        fetched_at = self._state.fetched_at
        if fetched_at is not None:
            age = (utc_now() - fetched_at).total_seconds()
            if age <= self._state.settings.POLL_INTERVAL_SECONDS:
                return
        await self.refresh()

    def _clear_in_flight(self, task: asyncio.Task[None]) -> None:
        if self._in_flight is task:
            self._in_flight = None

    async def _run_guarded(self) -> None:
        try:
            await self._run()
        except Exception as exc:
            logger.exception("Feed refresh failed")
            self._state.stale = True
            await self._audit.record(AuditType.GATEWAY_REFRESH_FAILED, {"message": str(exc) or type(exc).__name__})

    async def _fetch_odds(self, feed_matches: list[FeedMatch]) -> tuple[list[OddsPair], dict[str, int]]:
        names = list(self._odds_feeds)
        bookmaker_pairs, *others = await asyncio.gather(
            self._bookmaker.fetch_pairs(feed_matches),
            *(self._odds_feeds[name].fetch_pairs() for name in names),
        )
        pairs = list(bookmaker_pairs)
        counts = {"dcric99": len(bookmaker_pairs)}
        for name, found in zip(names, others):
            pairs.extend(found)
            counts[name] = len(found)
        return pairs, counts

    async def _run(self) -> None:
        state = self._state
        started = time.perf_counter()

        if not self._score_feed.enabled:
            state.stale = True
            state.feed_source = MISSING_SCORE_KEY
            logger.warning("Feed refresh skipped: no score feed API key configured")
            return

        feed_matches = await self._score_feed.fetch_matches()
        odds_pairs, odds_counts = await self._fetch_odds(feed_matches)
        state.odds_counts = odds_counts

        if feed_matches:
            priced, feed_source = apply_pricing(feed_matches, odds_pairs, self._ids)
        else:
            # score feed outage: degrade to odds-only matches
            priced = build_synthetic_matches(odds_pairs, self._ids)
            feed_source = FEED_EXTERNAL if priced else FEED_MODELED
        matches = sorted(priced, key=lambda m: not m.is_live)
        duration_ms = (time.perf_counter() - started) * 1000

        if not matches:
            self._keep_previous(feed_source, odds_counts, duration_ms)
            if state.matches:
                await self._audit.record(
                    AuditType.GATEWAY_REFRESH_EMPTY_KEPT_CACHE,
                    {"previousMatches": len(state.matches), "oddsSources": odds_counts},
                )
            return

        markets_by_match = self._install(matches, feed_source)
        await self._record_history(markets_by_match)
        await self._broadcast(matches, markets_by_match)

        logger.info(
            "Feed refresh completed: source=%s matches=%d odds=%s duration_ms=%.0f",
            feed_source, len(matches), odds_counts, duration_ms,
        )
        await self._audit.record(
            AuditType.GATEWAY_REFRESH,
            {"feedSource": feed_source, "matchCount": len(matches), "oddsSources": odds_counts},
        )
        await self._auto_settle()

    def _keep_previous(self, feed_source: str, odds_counts: dict[str, int], duration_ms: float) -> None:
        state = self._state
        state.stale = True
        if state.matches:
            state.feed_source = f"{feed_source}_cache"
            logger.warning(
                "Feed refresh empty, keeping %d cached matches (odds=%s duration_ms=%.0f)",
                len(state.matches), odds_counts, duration_ms,
            )
            return
        state.fetched_at = utc_now()
        state.feed_source = f"{feed_source}_empty"
        logger.warning(
            "Feed refresh empty, no cache (odds=%s duration_ms=%.0f)", odds_counts, duration_ms
        )

    def _install(self, matches: list[Match], feed_source: str) -> dict[int, list[Market]]:
        state = self._state
        markets_by_match = {match.id: self._builder.build(match) for match in matches}
        state.matches = {match.id: match for match in matches}
        state.markets = markets_by_match
        for match_id in markets_by_match:
            state.get_trading_status(match_id)
        state.fetched_at = utc_now()
        state.stale = False
        state.feed_source = feed_source
        return markets_by_match

    async def _record_history(self, markets_by_match: dict[int, list[Market]]) -> None:
        at = utc_now()
        rows = []
        for match_id, markets in markets_by_match.items():
            rows.extend(self._state.history.record_markets(match_id, markets, at))
        try:
            await self._store.insert_price_points(rows)
        except Exception:
            logger.exception("Failed to persist %d price points", len(rows))

    async def _broadcast(self, matches: list[Match], markets_by_match: dict[int, list[Market]]) -> None:
        state = self._state
        await self._publisher.publish(
            PushEvent(
                room=BROADCAST,
                name=MATCHES_UPDATE,
                payload={
                    "matches": [
                        MatchOut.from_domain(m, state.is_settled(m.id)).model_dump(mode="json")
                        for m in matches
                    ]
                },
            )
        )
        for match_id, markets in markets_by_match.items():
            await self._publisher.publish(
                PushEvent(
                    room=match_room(match_id),
                    name=MARKETS_UPDATE,
                    payload={
                        "matchId": match_id,
                        "markets": [MarketOut.from_domain(m).model_dump(mode="json") for m in markets],
                        "tradingStatus": TradingStatusOut.from_domain(
                            state.get_trading_status(match_id)
                        ).model_dump(mode="json"),
                    },
                )
            )

    async def _auto_settle(self) -> None:
        for match in list(self._state.matches.values()):
            if self._state.is_settled(match.id) or "won" not in match.status_text.lower():
                continue
            try:
                await self._settlement.settle_match(match.id, None, "auto")
            except WinnerUnresolvedError:
                logger.debug("Match %s says won but winner is not resolvable yet", match.id)
            except AppError as exc:
                logger.warning("Auto-settle of match %s rejected: %s", match.id, exc.code)
