from unittest.mock import AsyncMock

import pytest

from src.pm_admin.application.service import AdminService
from src.pm_clearing.application.service import SettlementService
from src.pm_common.enums import AuditType
from src.pm_common.errors import AppError
from src.pm_order.application.service import OrderService
from src.pm_push.domain.events import ADMIN_AUDIT, MARKETS_UPDATE, MATCHES_UPDATE
from src.pm_push.infrastructure.publishers import InMemoryPublisher
from src.pm_store.application.audit import AuditRecorder
from src.pm_store.domain.state import EngineState
from tests.factories import install_match, make_match


@pytest.fixture
def orders(
    state: EngineState, store: AsyncMock, publisher: InMemoryPublisher, audit: AuditRecorder
) -> OrderService:
    install_match(state, make_match())
    return OrderService(state, store, publisher, audit)


@pytest.fixture
def admin(
    orders: OrderService,
    state: EngineState,
    store: AsyncMock,
    publisher: InMemoryPublisher,
    audit: AuditRecorder,
) -> AdminService:
    return AdminService(state, publisher, audit, SettlementService(state, store, publisher, audit))


class TestRiskControls:
    async def test_suspend_and_resume_market(
        self, admin: AdminService, state: EngineState, publisher: InMemoryPublisher
    ) -> None:
        status = await admin.set_market_suspension(101, True, "  rain  ", actor="ops")
        assert status.suspended is True
        assert status.reason == "rain"
        assert state.latest_audits(1)[0].details == {
            "actor": "ops", "matchId": 101, "suspended": True, "reason": "rain",
        }
        pushed = publisher.events_named(MARKETS_UPDATE, "match:101")
        assert pushed[-1].payload["tradingStatus"]["suspended"] is True
        assert len(pushed[-1].payload["markets"]) == 8

        resumed = await admin.set_market_suspension(101, False, "ignored")
        assert (resumed.suspended, resumed.reason) == (False, "")

    async def test_suspend_unknown_match(self, admin: AdminService) -> None:
        with pytest.raises(AppError) as exc_info:
            await admin.set_market_suspension(999, True)
        assert exc_info.value.code == "MATCH_NOT_FOUND"

    async def test_suspended_market_blocks_orders(self, admin: AdminService, orders: OrderService) -> None:
        await admin.set_market_suspension(101, True, "review")
        with pytest.raises(AppError) as exc_info:
            await orders.place_order("u1", 101, 1, "MI", "yes", 10)
        assert exc_info.value.code == "MARKET_SUSPENDED"
        assert exc_info.value.message == "review"

    async def test_suspend_user(self, admin: AdminService, orders: OrderService, state: EngineState) -> None:
        summary = await admin.set_user_suspension("u1", True)
        assert summary.suspended is True
        assert state.latest_audits(1)[0].type == AuditType.USER_RISK_UPDATE
        with pytest.raises(AppError):
            await orders.place_order("u1", 101, 1, "MI", "yes", 10)

        await admin.set_user_suspension("u1", False)
        await orders.place_order("u1", 101, 1, "MI", "yes", 10)


class TestManualSettlement:
    async def test_settle_broadcasts_match_list(
        self, admin: AdminService, orders: OrderService, publisher: InMemoryPublisher
    ) -> None:
        await orders.place_order("u1", 101, 1, "MI", "yes", 50)

        result = await admin.settle_match(101, "MI", actor="ops")

        assert result.settled_by == "ops"
        broadcast = publisher.events_named(MATCHES_UPDATE, "broadcast")
        assert broadcast[-1].payload["matches"][0]["settled"] is True

    async def test_failed_settle_does_not_broadcast(
        self, admin: AdminService, publisher: InMemoryPublisher
    ) -> None:
        with pytest.raises(AppError):
            await admin.settle_match(101)
        assert publisher.events_named(MATCHES_UPDATE) == []


class TestOverview:
    async def test_aggregates(self, admin: AdminService, orders: OrderService) -> None:
        await orders.place_order("u1", 101, 1, "MI", "yes", 30)
        await orders.place_order("u2", 101, 1, "CSK", "yes", 20)

        overview = admin.overview()

        assert overview.total_balance == 150
        assert overview.total_exposure == 50
        assert overview.open_positions == 2
        assert overview.settled_matches == 0
        assert overview.matches[0].exposure == 50
        assert {u.user_id for u in overview.users} == {"u1", "u2"}
        assert overview.audits[0].type == AuditType.ORDER_PLACED.value

    async def test_audit_limit_is_clamped(self, admin: AdminService, state: EngineState) -> None:
        for i in range(30):
            state.append_audit(AuditType.GATEWAY_REFRESH, {"i": i})
        assert len(admin.list_audits(1)) == 10
        assert len(admin.list_audits(10_000)) == 30

    async def test_every_audit_reaches_admins(
        self, admin: AdminService, publisher: InMemoryPublisher
    ) -> None:
        await admin.set_user_suspension("u1", True)
        pushed = publisher.events_named(ADMIN_AUDIT, "admin")
        assert pushed[-1].payload["type"] == AuditType.USER_RISK_UPDATE.value
