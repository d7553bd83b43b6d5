# src/pm_store/infrastructure/persistence.py
"""SqlStore: raw SQL implementation of StoreProtocol.

Each call runs in its own short session and commits. Errors propagate to the
caller: the order ledger rolls back on them, settlement logs them.
"""
import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.pm_account.domain.models import Position, User
from src.pm_clearing.domain.models import Settlement
from src.pm_order.domain.models import Order
from src.pm_store.domain.models import AuditEntry, PricePointRow

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_UPSERT_WALLET_SQL = text("""
    INSERT INTO wallets (user_id, balance, held_balance, suspended, updated_at)
    VALUES (:user_id, :balance, :held_balance, :suspended, NOW())
    ON CONFLICT (user_id) DO UPDATE
    SET balance = EXCLUDED.balance,
        held_balance = EXCLUDED.held_balance,
        suspended = EXCLUDED.suspended,
        updated_at = NOW()
""")

_INSERT_ORDER_SQL = text("""
    INSERT INTO orders (id, user_id, match_id, market_id, option_label, side,
        amount, price, shares, position_id, created_at)
    VALUES (:id, :user_id, :match_id, :market_id, :option_label, :side,
        :amount, :price, :shares, :position_id, :created_at)
""")

_INSERT_POSITION_SQL = text("""
    INSERT INTO positions (id, user_id, match_id, market_id, option_label, side,
        shares, shares_remaining, stake, stake_remaining, avg_price,
        status, outcome, payout, created_at, closed_at, settled_at)
    VALUES (:id, :user_id, :match_id, :market_id, :option_label, :side,
        :shares, :shares_remaining, :stake, :stake_remaining, :avg_price,
        :status, :outcome, :payout, :created_at, :closed_at, :settled_at)
""")

_UPDATE_POSITION_SQL = text("""
    UPDATE positions
    SET shares_remaining = :shares_remaining,
        stake_remaining = :stake_remaining,
        status = :status,
        outcome = :outcome,
        payout = :payout,
        closed_at = :closed_at,
        settled_at = :settled_at
    WHERE id = :id
""")

_INSERT_SETTLEMENT_SQL = text("""
    INSERT INTO match_settlements (id, match_id, winner_code, winner_full,
        settled_by, position_count, settled_at)
    VALUES (:id, :match_id, :winner_code, :winner_full,
        :settled_by, :position_count, :settled_at)
""")

_INSERT_AUDIT_SQL = text("""
    INSERT INTO audits (id, type, details, at)
    VALUES (:id, :type, CAST(:details AS JSONB), :at)
""")

_INSERT_PRICE_POINT_SQL = text("""
    INSERT INTO price_history (market_key, price, recorded_at)
    VALUES (:market_key, :price, :recorded_at)
""")


def _position_params(position: Position) -> dict[str, Any]:
    return {
        "id": position.id,
        "user_id": position.user_id,
        "match_id": position.match_id,
        "market_id": position.market_id,
        "option_label": position.option_label,
        "side": position.side.value,
        "shares": position.shares,
        "shares_remaining": position.shares_remaining,
        "stake": position.stake,
        "stake_remaining": position.stake_remaining,
        "avg_price": position.avg_price,
        "status": position.status.value,
        "outcome": position.outcome.value if position.outcome else None,
        "payout": position.payout,
        "created_at": position.created_at,
        "closed_at": position.closed_at,
        "settled_at": position.settled_at,
    }


class SqlStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _execute(self, sql: Any, params: dict[str, Any] | list[dict[str, Any]]) -> None:
        async with self._session_factory() as session:
            await session.execute(sql, params)
            await session.commit()

    async def upsert_wallet(self, user: User) -> None:
        await self._execute(
            _UPSERT_WALLET_SQL,
            {
                "user_id": user.id,
                "balance": user.balance,
                "held_balance": user.held_balance,
                "suspended": user.suspended,
            },
        )

    async def insert_order(self, order: Order) -> None:
        await self._execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "user_id": order.user_id,
                "match_id": order.match_id,
                "market_id": order.market_id,
                "option_label": order.option_label,
                "side": order.side.value,
                "amount": order.amount,
                "price": order.price,
                "shares": order.shares,
                "position_id": order.position_id,
                "created_at": order.created_at,
            },
        )

    async def insert_position(self, position: Position) -> None:
        await self._execute(_INSERT_POSITION_SQL, _position_params(position))

    async def update_position(self, position: Position) -> None:
        await self._execute(_UPDATE_POSITION_SQL, _position_params(position))

    async def insert_settlement(self, settlement: Settlement) -> None:
        await self._execute(
            _INSERT_SETTLEMENT_SQL,
            {
                "id": settlement.id,
                "match_id": settlement.match_id,
                "winner_code": settlement.winner_code,
                "winner_full": settlement.winner_full,
                "settled_by": settlement.settled_by,
                "position_count": len(settlement.rows),
                "settled_at": settlement.settled_at,
            },
        )

    async def insert_audit(self, entry: AuditEntry) -> None:
        await self._execute(
            _INSERT_AUDIT_SQL,
            {
                "id": entry.id,
                "type": entry.type.value,
                "details": json.dumps(entry.details, default=str),
                "at": entry.at,
            },
        )

    async def insert_price_points(self, rows: list[PricePointRow]) -> None:
        if not rows:
            return
        await self._execute(
            _INSERT_PRICE_POINT_SQL,
            [
                {"market_key": r.market_key, "price": r.price, "recorded_at": r.recorded_at}
                for r in rows
            ],
        )
