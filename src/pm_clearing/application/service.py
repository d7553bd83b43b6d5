"""SettlementService: settle every open position on a match exactly once.

Everything that can reject (unknown match, already settled, no winner yet)
is checked before the first mutation, so a rejected attempt leaves no trace
and can simply be retried on the next trigger. The in-memory settlement is
final; store writes that fail afterwards are logged, not rolled back.
"""

import asyncio
import logging
from collections import defaultdict

from src.pm_account.application.service import portfolio_payload
from src.pm_clearing.application.schemas import SettlementOut, SettlementRowOut
from src.pm_clearing.domain.models import Settlement, SettlementRow, Winner
from src.pm_clearing.domain.resolution import resolve_position, resolve_winner
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import AuditType, PositionStatus
from src.pm_common.errors import (
    MatchAlreadySettledError,
    MatchNotFoundError,
    WinnerUnresolvedError,
)
from src.pm_common.id_generator import generate_id
from src.pm_common.money import round2
from src.pm_market.domain.models import Match
from src.pm_push.domain.events import (
    PORTFOLIO_UPDATE,
    POSITION_SETTLED,
    EventPublisher,
    PushEvent,
    user_room,
)
from src.pm_store.application.audit import AuditRecorder
from src.pm_store.domain.repository import StoreProtocol
from src.pm_store.domain.state import EngineState

logger = logging.getLogger(__name__)


class SettlementService:
    def __init__(
        self,
        state: EngineState,
        store: StoreProtocol,
        publisher: EventPublisher,
        audit: AuditRecorder,
    ) -> None:
        self._state = state
        self._store = store
        self._publisher = publisher
        self._audit = audit
        self._pending_writes: set[asyncio.Task[None]] = set()

    async def settle_match(
        self, match_id: int, winner_label: str | None = None, actor: str = "system"
    ) -> SettlementOut:
        state = self._state
        async with state.locks.match(match_id):
            match = state.get_match(match_id)
            if match is None:
                raise MatchNotFoundError(match_id)
            if state.is_settled(match_id):
                raise MatchAlreadySettledError(match_id)

            winner = resolve_winner(match, winner_label)
            if winner is None:
                raise WinnerUnresolvedError()

            settlement = self._apply(match_id, match, winner, actor)

        logger.info(
            "Match %s settled by %s: winner=%s positions=%d payout=%.2f",
            match_id, actor, winner.code, len(settlement.rows), settlement.total_payout,
        )
        self._persist_in_background(settlement)
        await self._notify(settlement)
        await self._audit.record(
            AuditType.MATCH_SETTLED,
            {
                "actor": actor,
                "matchId": match_id,
                "winner": winner.full,
                "winnerCode": winner.code,
                "settledPositions": len(settlement.rows),
            },
        )
        return SettlementOut.from_domain(settlement)

    def _apply(self, match_id: int, match: Match, winner: Winner, actor: str) -> Settlement:
        """Synchronous: nothing else runs between the first and last mutation."""
        state = self._state
        now = utc_now()
        rows: list[SettlementRow] = []

        for position in state.open_positions_for_match(match_id):
            resolution = resolve_position(position, match, winner)
            payout = round2(resolution.payout)

            user = state.get_or_create_user(position.user_id)
            user.balance = round2(user.balance + payout)
            user.updated_at = now

            position.status = PositionStatus.SETTLED
            position.outcome = resolution.outcome
            position.payout = payout
            position.settled_at = now
            position.updated_at = now
            position.shares_remaining = 0.0
            position.stake_remaining = 0.0

            rows.append(
                SettlementRow(
                    user_id=position.user_id,
                    position_id=position.id,
                    market_id=position.market_id,
                    option_label=position.option_label,
                    side=position.side,
                    payout=payout,
                    outcome=resolution.outcome,
                )
            )

        settlement = Settlement(
            id=generate_id("STL"),
            match_id=match_id,
            winner_side=winner.side,
            winner_code=winner.code,
            winner_full=winner.full,
            settled_by=actor,
            settled_at=now,
            rows=rows,
        )
        state.settlements[match_id] = settlement
        released = state.threshold_locks.release_match(match_id)
        logger.debug("Released %d threshold locks for match %s", released, match_id)
        return settlement

    def _persist_in_background(self, settlement: Settlement) -> None:
        task = asyncio.create_task(self._persist(settlement))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _persist(self, settlement: Settlement) -> None:
        state = self._state
        try:
            await self._store.insert_settlement(settlement)
            for row in settlement.rows:
                await self._store.update_position(state.positions[row.position_id])
            for user_id in {row.user_id for row in settlement.rows}:
                await self._store.upsert_wallet(state.users[user_id])
        except Exception:
            logger.exception(
                "Failed to persist settlement for match %s (in-memory state kept)",
                settlement.match_id,
            )

    async def drain(self) -> None:
        """Wait for background settlement writes (shutdown and tests)."""
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes)

    async def _notify(self, settlement: Settlement) -> None:
        by_user: dict[str, list[SettlementRow]] = defaultdict(list)
        for row in settlement.rows:
            by_user[row.user_id].append(row)

        for user_id, user_rows in by_user.items():
            room = user_room(user_id)
            user = self._state.users[user_id]
            await self._publisher.publish(
                PushEvent(
                    room=room,
                    name=POSITION_SETTLED,
                    payload={
                        "matchId": settlement.match_id,
                        "winnerCode": settlement.winner_code,
                        "winnerFull": settlement.winner_full,
                        "settledBy": settlement.settled_by,
                        "positions": [
                            SettlementRowOut(
                                user_id=r.user_id,
                                position_id=r.position_id,
                                market_id=r.market_id,
                                option_label=r.option_label,
                                side=r.side.value,
                                payout=r.payout,
                                outcome=r.outcome.value,
                            ).model_dump(mode="json")
                            for r in user_rows
                        ],
                        "balance": user.balance,
                    },
                )
            )
            await self._publisher.publish(
                PushEvent(room=room, name=PORTFOLIO_UPDATE, payload=portfolio_payload(self._state, user_id))
            )
