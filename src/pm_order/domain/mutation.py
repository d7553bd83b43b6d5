"""Provisional ledger mutations with undo.

Order placement and position close apply their in-memory changes first, then
write to the durable store. If the write fails the changes are undone in
reverse order.

Wallet steps invert their delta rather than restoring a snapshot: a
settlement on another match may credit the same wallet while the write is in
flight, and that credit must survive the rollback. Position steps restore
their own prior fields, since a position only changes under its user and
match locks.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from src.pm_account.domain.models import Position, User
from src.pm_common.enums import PositionStatus
from src.pm_common.errors import PersistFailedError
from src.pm_common.money import round2
from src.pm_order.domain.models import Order

logger = logging.getLogger(__name__)


class Step(Protocol):
    def apply(self) -> None: ...

    def undo(self) -> None: ...


@dataclass
class AdjustBalance:
    user: User
    delta: float
    at: datetime | None = None
    _previous_updated_at: datetime | None = field(default=None, init=False)

    def apply(self) -> None:
        self._previous_updated_at = self.user.updated_at
        self.user.balance = round2(self.user.balance + self.delta)
        if self.at is not None:
            self.user.updated_at = self.at

    def undo(self) -> None:
        self.user.balance = round2(self.user.balance - self.delta)
        self.user.updated_at = self._previous_updated_at


@dataclass
class AdjustHeld:
    """Move funds into (positive delta) or out of the withdrawal hold."""

    user: User
    delta: float

    def apply(self) -> None:
        self.user.held_balance = max(0.0, round2(self.user.held_balance + self.delta))

    def undo(self) -> None:
        self.user.held_balance = max(0.0, round2(self.user.held_balance - self.delta))


@dataclass
class AddPosition:
    positions: dict[str, Position]
    position: Position

    def apply(self) -> None:
        self.positions[self.position.id] = self.position

    def undo(self) -> None:
        self.positions.pop(self.position.id, None)


@dataclass
class AppendOrder:
    orders: list[Order]
    order: Order

    def apply(self) -> None:
        self.orders.append(self.order)

    def undo(self) -> None:
        if self.order in self.orders:
            self.orders.remove(self.order)


@dataclass
class ReducePosition:
    """Partial or full close: shrink remaining shares/stake, book pnl."""

    position: Position
    shares: float
    stake: float
    pnl: float
    at: datetime
    _previous: tuple[float, float, float, PositionStatus, datetime | None, datetime | None] | None = field(
        default=None, init=False
    )

    def apply(self) -> None:
        p = self.position
        self._previous = (
            p.shares_remaining, p.stake_remaining, p.realized_pnl, p.status, p.closed_at, p.updated_at
        )

        p.shares_remaining = max(0.0, round2(p.shares_remaining - self.shares))
        p.stake_remaining = max(0.0, round2(p.stake_remaining - self.stake))
        p.realized_pnl = round2(p.realized_pnl + self.pnl)
        p.updated_at = self.at
        if p.shares_remaining <= 0.01:
            p.shares_remaining = 0.0
            p.stake_remaining = 0.0
            p.status = PositionStatus.CLOSED
            p.closed_at = self.at

    def undo(self) -> None:
        if self._previous is None:
            return
        p = self.position
        (
            p.shares_remaining, p.stake_remaining, p.realized_pnl, p.status, p.closed_at, p.updated_at
        ) = self._previous


class ProvisionalMutation:
    """Apply steps, persist, and undo everything if persisting fails."""

    def __init__(self, what: str, steps: list[Step]) -> None:
        self._what = what
        self._steps = steps
        self._applied: list[Step] = []

    def apply(self) -> None:
        for step in self._steps:
            step.apply()
            self._applied.append(step)

    def rollback(self) -> None:
        while self._applied:
            self._applied.pop().undo()

    async def commit(self, persist: Callable[[], Awaitable[None]]) -> None:
        self.apply()
        try:
            await persist()
        except Exception as exc:
            logger.error("%s persist failed, rolling back: %s", self._what, exc)
            self.rollback()
            raise PersistFailedError(self._what) from exc
