"""Engine composition root.

Run the poller with: python -m src.main

``build_engine`` wires every service from ``Settings``. Each public ``Engine``
method returns an ``OpResult``: an ``AppError`` raised by a service becomes
``{ok: false, code, error}``, anything else becomes ``{ok: true, data}``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import uvloop

from config.settings import Settings, settings as default_settings
from src.pm_account.application.service import AccountService
from src.pm_admin.application.service import AdminService
from src.pm_clearing.application.service import SettlementService
from src.pm_common.database import create_engine, create_session_factory
from src.pm_common.errors import AppError
from src.pm_common.redis_client import close_redis, get_redis
from src.pm_common.response import OpResult, error_result, success_result
from src.pm_feed.application.refresh import RefreshCoordinator
from src.pm_feed.infrastructure.http_client import FeedHttpClient
from src.pm_feed.infrastructure.providers.cricapi import CricApiProvider
from src.pm_feed.infrastructure.providers.dcric99 import Dcric99Provider
from src.pm_feed.infrastructure.providers.scraper import JsonScraperProvider
from src.pm_feed.infrastructure.providers.theodds import TheOddsProvider
from src.pm_market.application.service import MarketQueryService
from src.pm_order.application.service import OrderService
from src.pm_push.domain.events import EventPublisher
from src.pm_push.infrastructure.publishers import InMemoryPublisher, RedisPublisher
from src.pm_store.application.audit import AuditRecorder
from src.pm_store.domain.repository import NullStore, StoreProtocol
from src.pm_store.domain.state import EngineState
from src.pm_store.infrastructure.db_models import create_schema
from src.pm_store.infrastructure.persistence import SqlStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # httpx logs every request at INFO; provider calls are logged on pm.feed
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _dump(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


class Engine:
    def __init__(
        self,
        settings: Settings,
        state: EngineState,
        http: FeedHttpClient,
        refresher: RefreshCoordinator,
        markets: MarketQueryService,
        orders: OrderService,
        accounts: AccountService,
        settlement: SettlementService,
        admin: AdminService,
        publisher: EventPublisher,
    ) -> None:
        self.settings = settings
        self.state = state
        self.http = http
        self.refresher = refresher
        self.markets = markets
        self.orders = orders
        self.accounts = accounts
        self.settlement = settlement
        self.admin = admin
        self.publisher = publisher

    async def _call(self, op: Callable[[], Awaitable[Any]]) -> OpResult:
        try:
            return success_result(_dump(await op()))
        except AppError as exc:
            logger.info("Rejected %s: %s", exc.code, exc.message)
            return error_result(exc)

    # --- market reads ---

    async def list_matches(self) -> OpResult:
        async def op() -> Any:
            await self.refresher.ensure_fresh()
            return self.markets.list_matches()

        return await self._call(op)

    async def get_markets(self, match_id: int) -> OpResult:
        async def op() -> Any:
            await self.refresher.ensure_fresh()
            return self.markets.get_markets(match_id)

        return await self._call(op)

    async def trade_tape(self, match_id: int) -> OpResult:
        async def op() -> Any:
            return self.markets.trade_tape(match_id)

        return await self._call(op)

    async def price_history(
        self, match_id: int, market_id: int, option_label: str, side: str = "yes", minutes: int = 60
    ) -> OpResult:
        async def op() -> Any:
            return self.markets.price_history(match_id, market_id, option_label, side, minutes)

        return await self._call(op)

    # --- trading ---

    async def place_order(
        self, user_id: str, match_id: Any, market_id: Any, option_label: Any, side: Any, amount: Any
    ) -> OpResult:
        return await self._call(
            lambda: self.orders.place_order(user_id, match_id, market_id, option_label, side, amount)
        )

    async def close_position(self, user_id: str, position_id: Any, shares_to_close: Any) -> OpResult:
        return await self._call(lambda: self.orders.close_position(user_id, position_id, shares_to_close))

    async def get_portfolio(self, user_id: str) -> OpResult:
        async def op() -> Any:
            return self.accounts.get_portfolio(user_id)

        return await self._call(op)

    # --- withdrawals ---

    async def request_withdrawal(self, user_id: str, amount: Any) -> OpResult:
        return await self._call(lambda: self.accounts.request_withdrawal(user_id, amount))

    async def approve_withdrawal(self, request_id: str, actor: str = "admin") -> OpResult:
        return await self._call(lambda: self.accounts.approve_withdrawal(request_id, actor))

    async def reject_withdrawal(self, request_id: str, actor: str = "admin", note: str = "") -> OpResult:
        return await self._call(lambda: self.accounts.reject_withdrawal(request_id, actor, note))

    # --- admin ---

    async def set_market_suspension(
        self, match_id: int, suspended: bool, reason: str = "", actor: str = "admin"
    ) -> OpResult:
        return await self._call(
            lambda: self.admin.set_market_suspension(match_id, suspended, reason, actor)
        )

    async def set_user_suspension(self, user_id: str, suspended: bool, actor: str = "admin") -> OpResult:
        return await self._call(lambda: self.admin.set_user_suspension(user_id, suspended, actor))

    async def settle_match(self, match_id: int, winner: str | None = None, actor: str = "admin") -> OpResult:
        return await self._call(lambda: self.admin.settle_match(match_id, winner, actor))

    async def admin_overview(self) -> OpResult:
        async def op() -> Any:
            return self.admin.overview()

        return await self._call(op)

    async def list_audits(self, limit: int = 100) -> OpResult:
        async def op() -> Any:
            return self.admin.list_audits(limit)

        return await self._call(op)

    # --- lifecycle ---

    async def refresh(self) -> None:
        await self.refresher.refresh()

    async def run_poller(self, stop: asyncio.Event | None = None) -> None:
        """Refresh every ``POLL_INTERVAL_SECONDS`` until ``stop`` is set."""
        stop = stop or asyncio.Event()
        interval = self.settings.POLL_INTERVAL_SECONDS
        logger.info("Poller started (interval %.0fs)", interval)
        while not stop.is_set():
            await self.refresher.refresh()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
        logger.info("Poller stopped")

    async def aclose(self) -> None:
        await self.settlement.drain()
        await self.http.aclose()


async def build_store(settings: Settings) -> StoreProtocol:
    if not settings.DATABASE_URL:
        logger.info("DATABASE_URL not set: running without a durable store")
        return NullStore()
    engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    await create_schema(engine)
    return SqlStore(create_session_factory(engine))


async def build_publisher(settings: Settings) -> EventPublisher:
    if not settings.REDIS_URL:
        return InMemoryPublisher()
    redis = await get_redis(settings.REDIS_URL)
    return RedisPublisher(redis, settings.REDIS_CHANNEL_PREFIX)


async def build_engine(
    settings: Settings | None = None,
    store: StoreProtocol | None = None,
    publisher: EventPublisher | None = None,
    http: FeedHttpClient | None = None,
) -> Engine:
    settings = settings or default_settings
    store = store or await build_store(settings)
    publisher = publisher or await build_publisher(settings)
    http = http or FeedHttpClient()

    state = EngineState(settings)
    audit = AuditRecorder(state, store, publisher)
    settlement = SettlementService(state, store, publisher, audit)
    refresher = RefreshCoordinator(
        state,
        score_feed=CricApiProvider(http, settings),
        bookmaker=Dcric99Provider(http, settings),
        odds_feeds={
            "theodds": TheOddsProvider(http, settings),
            "scraper": JsonScraperProvider(http, settings),
        },
        store=store,
        publisher=publisher,
        audit=audit,
        settlement=settlement,
    )
    return Engine(
        settings=settings,
        state=state,
        http=http,
        refresher=refresher,
        markets=MarketQueryService(state),
        orders=OrderService(state, store, publisher, audit),
        accounts=AccountService(state, store, audit),
        settlement=settlement,
        admin=AdminService(state, publisher, audit, settlement),
        publisher=publisher,
    )


async def _serve() -> None:
    engine = await build_engine()
    try:
        await engine.run_poller()
    finally:
        await engine.aclose()
        await close_redis()


def run() -> None:
    configure_logging(default_settings.LOG_LEVEL)
    uvloop.run(_serve())


if __name__ == "__main__":
    run()
