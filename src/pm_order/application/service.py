# src/pm_order/application/service.py
"""OrderService: place orders and close positions against the live price.

Both operations take the user lock, then the match lock, and keep them until
the durable write has either succeeded or been rolled back. Input and
lookup failures are raised before any lock is taken.
"""

import logging
from typing import Any

from src.pm_account.application.schemas import PositionOut
from src.pm_account.application.service import portfolio_payload
from src.pm_account.domain.models import Position
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import AuditType, Side
from src.pm_common.errors import (
    AmountTooLowError,
    InvalidCloseRequestError,
    MarketOptionNotFoundError,
    MatchAlreadySettledError,
    MatchNotFoundError,
    PositionForbiddenError,
    PositionNotFoundError,
    SharesExceedRemainingError,
)
from src.pm_common.id_generator import generate_id
from src.pm_common.money import complement, round2, shares_for
from src.pm_market.application.service import find_market_option
from src.pm_order.application.schemas import CloseResultOut, OrderOut, TradeConfirmationOut
from src.pm_order.domain.models import Order
from src.pm_order.domain.mutation import (
    AddPosition,
    AdjustBalance,
    AppendOrder,
    ProvisionalMutation,
    ReducePosition,
)
from src.pm_push.domain.events import (
    PORTFOLIO_UPDATE,
    TRADE_CONFIRMED,
    EventPublisher,
    PushEvent,
    user_room,
)
from src.pm_risk.rules.balance_check import check_balance
from src.pm_risk.rules.exposure_limit import check_match_exposure, check_user_exposure
from src.pm_risk.rules.market_status import check_market_tradable
from src.pm_risk.rules.order_input import validate_close_input, validate_order_input
from src.pm_risk.rules.user_status import check_user_active
from src.pm_store.application.audit import AuditRecorder
from src.pm_store.domain.repository import StoreProtocol
from src.pm_store.domain.state import EngineState

logger = logging.getLogger(__name__)


def execution_price(option_price: int, side: Side) -> int:
    return option_price if side == Side.YES else complement(option_price)


class OrderService:
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

    async def place_order(
        self,
        user_id: str,
        match_id: Any,
        market_id: Any,
        option_label: Any,
        side: Any,
        amount: Any,
    ) -> TradeConfirmationOut:
        req = validate_order_input(side, match_id, market_id, option_label, amount)
        state = self._state
        settings = state.settings

        user = state.get_or_create_user(user_id)
        check_user_active(user)

        match = state.get_match(req.match_id)
        if match is None:
            raise MatchNotFoundError(req.match_id)
        if state.is_settled(req.match_id):
            raise MatchAlreadySettledError(req.match_id)
        check_market_tradable(state.get_trading_status(req.match_id))

        found = find_market_option(state, req.match_id, req.market_id, req.option_label)
        if found is None:
            raise MarketOptionNotFoundError()
        market, option = found

        price = execution_price(option.price, req.side)
        stake = round2(req.amount)
        shares = shares_for(stake, price)
        if stake <= 0 or shares <= 0:
            raise AmountTooLowError()

        async with state.locks.user(user_id), state.locks.match(req.match_id):
            # re-read under lock: an admin may have suspended in the meantime
            check_user_active(user)
            if state.is_settled(req.match_id):
                raise MatchAlreadySettledError(req.match_id)
            check_market_tradable(state.get_trading_status(req.match_id))
            check_balance(user, stake)
            check_user_exposure(state.user_exposure(user_id), stake, settings.MAX_USER_EXPOSURE)
            check_match_exposure(
                state.match_exposure(req.match_id), stake, settings.MAX_MATCH_EXPOSURE
            )

            now = utc_now()
            position = Position(
                id=generate_id("POS"),
                user_id=user_id,
                match_id=req.match_id,
                market_id=market.id,
                market_title=market.title,
                option_label=option.label,
                side=req.side,
                shares=shares,
                shares_remaining=shares,
                stake=stake,
                stake_remaining=stake,
                avg_price=price,
                created_at=now,
                updated_at=now,
            )
            order = Order(
                id=generate_id("ORD"),
                user_id=user_id,
                match_id=req.match_id,
                market_id=market.id,
                option_label=option.label,
                side=req.side,
                amount=stake,
                price=price,
                shares=shares,
                position_id=position.id,
                created_at=now,
            )

            async def persist() -> None:
                await self._store.upsert_wallet(user)
                await self._store.insert_position(position)
                await self._store.insert_order(order)

            mutation = ProvisionalMutation(
                "Order",
                [
                    AdjustBalance(user, -stake, now),
                    AddPosition(state.positions, position),
                    AppendOrder(state.orders, order),
                ],
            )
            await mutation.commit(persist)
            balance = user.balance

        logger.info(
            "Order %s: user=%s match=%s market=%s %s %r amount=%.2f price=%d shares=%.2f",
            order.id, user_id, req.match_id, market.id, req.side.value, option.label,
            stake, price, shares,
        )

        result = TradeConfirmationOut(
            order=OrderOut.from_domain(order),
            position=PositionOut.from_domain(position),
            balance=balance,
        )
        room = user_room(user_id)
        await self._publisher.publish(
            PushEvent(
                room=room,
                name=TRADE_CONFIRMED,
                payload=result.model_dump(mode="json", include={"position", "balance"}),
            )
        )
        await self._publisher.publish(
            PushEvent(room=room, name=PORTFOLIO_UPDATE, payload=portfolio_payload(state, user_id))
        )
        await self._audit.record(
            AuditType.ORDER_PLACED,
            {
                "userId": user_id,
                "orderId": order.id,
                "matchId": req.match_id,
                "marketId": market.id,
                "optionLabel": option.label,
                "side": req.side.value,
                "amount": stake,
                "price": price,
            },
        )
        return result

    async def close_position(
        self, user_id: str, position_id: Any, shares_to_close: Any
    ) -> CloseResultOut:
        """Sell back part or all of an open position at the live price.

        Suspended users may close; only opening is blocked for them.
        """
        pid, requested = validate_close_input(position_id, shares_to_close)
        state = self._state

        position = state.positions.get(pid)
        if position is None:
            raise PositionNotFoundError()
        if position.user_id != user_id:
            raise PositionForbiddenError()

        async with state.locks.user(user_id), state.locks.match(position.match_id):
            # settlement may have run while we waited for the match lock
            if not position.is_open:
                raise PositionNotFoundError()
            shares = round2(requested)
            if shares <= 0:
                raise InvalidCloseRequestError()
            if shares > position.shares_remaining + 1e-9:
                raise SharesExceedRemainingError()

            found = find_market_option(
                state, position.match_id, position.market_id, position.option_label
            )
            if found is None:
                raise MarketOptionNotFoundError()
            _, option = found
            price = execution_price(option.price, position.side)

            close_value = round2(shares * price / 100)
            proportional_stake = round2(
                position.stake_remaining * shares / position.shares_remaining
            )
            pnl = round2(close_value - proportional_stake)

            user = state.get_or_create_user(user_id)
            now = utc_now()

            async def persist() -> None:
                await self._store.upsert_wallet(user)
                await self._store.update_position(position)

            mutation = ProvisionalMutation(
                "Position close",
                [
                    AdjustBalance(user, close_value, now),
                    ReducePosition(position, shares, proportional_stake, pnl, now),
                ],
            )
            await mutation.commit(persist)
            balance = user.balance

        logger.info(
            "Position %s closed %.2f shares at %d: value=%.2f pnl=%.2f",
            pid, shares, price, close_value, pnl,
        )

        result = CloseResultOut(
            position=PositionOut.from_domain(position),
            shares_closed=shares,
            price=price,
            close_value=close_value,
            pnl=pnl,
            balance=balance,
        )
        await self._publisher.publish(
            PushEvent(
                room=user_room(user_id),
                name=PORTFOLIO_UPDATE,
                payload=portfolio_payload(state, user_id),
            )
        )
        await self._audit.record(
            AuditType.POSITION_CLOSED,
            {
                "userId": user_id,
                "positionId": pid,
                "shares": shares,
                "price": price,
                "closeValue": close_value,
                "pnl": pnl,
            },
        )
        return result
