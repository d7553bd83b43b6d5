# src/pm_admin/application/service.py
"""Admin application service: risk controls, manual settlement, overview."""
import logging
from typing import Any

from pydantic import BaseModel

from src.pm_account.application.schemas import UserSummaryOut
from src.pm_clearing.application.schemas import SettlementOut
from src.pm_clearing.application.service import SettlementService
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import AuditType
from src.pm_common.errors import MatchNotFoundError
from src.pm_common.money import round2
from src.pm_market.application.schemas import (
    MarketOut,
    MatchOut,
    TradingStatusOut,
)
from src.pm_push.domain.events import (
    BROADCAST,
    MARKETS_UPDATE,
    MATCHES_UPDATE,
    EventPublisher,
    PushEvent,
    match_room,
)
from src.pm_store.application.audit import AuditRecorder
from src.pm_store.domain.models import AuditEntry
from src.pm_store.domain.state import EngineState

logger = logging.getLogger(__name__)

OVERVIEW_AUDIT_LIMIT = 200
MIN_AUDIT_LIMIT = 10
MAX_AUDIT_LIMIT = 500


class AuditOut(BaseModel):
    id: str
    at: str
    type: str
    details: dict[str, Any]

    @classmethod
    def from_domain(cls, entry: AuditEntry) -> "AuditOut":
        return cls(id=entry.id, at=entry.at.isoformat(), type=entry.type.value, details=entry.details)


class MatchRiskOut(BaseModel):
    match: MatchOut
    trading_status: TradingStatusOut
    exposure: float
    open_positions: int
    settled: bool


class OverviewOut(BaseModel):
    matches: list[MatchRiskOut]
    users: list[UserSummaryOut]
    total_balance: float
    total_exposure: float
    open_positions: int
    settled_matches: int
    audits: list[AuditOut]


class AdminService:
    def __init__(
        self,
        state: EngineState,
        publisher: EventPublisher,
        audit: AuditRecorder,
        settlement: SettlementService,
    ) -> None:
        self._state = state
        self._publisher = publisher
        self._audit = audit
        self._settlement = settlement

    async def set_market_suspension(
        self, match_id: int, suspended: bool, reason: str = "", actor: str = "admin"
    ) -> TradingStatusOut:
        state = self._state
        if state.get_match(match_id) is None:
            raise MatchNotFoundError(match_id)

        status = state.get_trading_status(match_id)
        status.suspended = bool(suspended)
        status.reason = reason.strip() if suspended else ""
        status.updated_at = utc_now()
        logger.info("Match %s trading %s by %s", match_id, "suspended" if suspended else "resumed", actor)

        out = TradingStatusOut.from_domain(status)
        await self._audit.record(
            AuditType.MARKET_RISK_UPDATE,
            {"actor": actor, "matchId": match_id, "suspended": status.suspended, "reason": status.reason},
        )
        await self._publisher.publish(
            PushEvent(
                room=match_room(match_id),
                name=MARKETS_UPDATE,
                payload={
                    "matchId": match_id,
                    "markets": [
                        MarketOut.from_domain(m).model_dump(mode="json")
                        for m in state.get_markets(match_id)
                    ],
                    "tradingStatus": out.model_dump(mode="json"),
                },
            )
        )
        return out

    async def set_user_suspension(
        self, user_id: str, suspended: bool, actor: str = "admin"
    ) -> UserSummaryOut:
        # user lock: an order in flight finishes its checks before this lands
        async with self._state.locks.user(user_id):
            user = self._state.get_or_create_user(user_id)
            user.suspended = bool(suspended)
            user.updated_at = utc_now()
        logger.info("User %s %s by %s", user_id, "suspended" if suspended else "reinstated", actor)

        await self._audit.record(
            AuditType.USER_RISK_UPDATE,
            {"actor": actor, "userId": user_id, "suspended": user.suspended},
        )
        return self._user_summary(user_id)

    async def settle_match(
        self, match_id: int, winner: str | None = None, actor: str = "admin"
    ) -> SettlementOut:
        result = await self._settlement.settle_match(match_id, winner, actor)
        await self._publisher.publish(
            PushEvent(
                room=BROADCAST,
                name=MATCHES_UPDATE,
                payload={
                    "matches": [
                        MatchOut.from_domain(m, self._state.is_settled(m.id)).model_dump(mode="json")
                        for m in self._state.matches.values()
                    ]
                },
            )
        )
        return result

    def overview(self) -> OverviewOut:
        state = self._state
        matches = []
        for match in state.matches.values():
            open_positions = state.open_positions_for_match(match.id)
            matches.append(
                MatchRiskOut(
                    match=MatchOut.from_domain(match, state.is_settled(match.id)),
                    trading_status=TradingStatusOut.from_domain(state.get_trading_status(match.id)),
                    exposure=state.match_exposure(match.id),
                    open_positions=len(open_positions),
                    settled=state.is_settled(match.id),
                )
            )

        users = [self._user_summary(user_id) for user_id in state.users]
        return OverviewOut(
            matches=matches,
            users=users,
            total_balance=round2(sum(u.balance for u in state.users.values())),
            total_exposure=round2(sum(u.exposure for u in users)),
            open_positions=sum(u.open_positions for u in users),
            settled_matches=len(state.settlements),
            audits=self.list_audits(OVERVIEW_AUDIT_LIMIT),
        )

    def list_audits(self, limit: int = 100) -> list[AuditOut]:
        limit = max(MIN_AUDIT_LIMIT, min(MAX_AUDIT_LIMIT, int(limit)))
        return [AuditOut.from_domain(e) for e in self._state.latest_audits(limit)]

    def _user_summary(self, user_id: str) -> UserSummaryOut:
        state = self._state
        user = state.get_or_create_user(user_id)
        return UserSummaryOut(
            user_id=user.id,
            balance=user.balance,
            held_balance=user.held_balance,
            suspended=user.suspended,
            exposure=state.user_exposure(user_id),
            open_positions=sum(1 for p in state.positions_for_user(user_id) if p.is_open),
        )
