"""Pydantic schemas for pm_account read models and push payloads."""

from datetime import datetime

from pydantic import BaseModel

from src.pm_account.domain.models import Position, User, Withdrawal
from src.pm_common.money import format_amount

# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


class PositionOut(BaseModel):
    id: str
    match_id: int
    market_id: int
    market_title: str
    option_label: str
    side: str
    shares: float
    shares_remaining: float
    stake: float
    stake_remaining: float
    avg_price: int
    status: str
    outcome: str | None
    payout: float | None
    realized_pnl: float
    created_at: datetime | None
    closed_at: datetime | None
    settled_at: datetime | None

    @classmethod
    def from_domain(cls, position: Position) -> "PositionOut":
        return cls(
            id=position.id,
            match_id=position.match_id,
            market_id=position.market_id,
            market_title=position.market_title,
            option_label=position.option_label,
            side=position.side.value,
            shares=position.shares,
            shares_remaining=position.shares_remaining,
            stake=position.stake,
            stake_remaining=position.stake_remaining,
            avg_price=position.avg_price,
            status=position.status.value,
            outcome=position.outcome.value if position.outcome else None,
            payout=position.payout,
            realized_pnl=position.realized_pnl,
            created_at=position.created_at,
            closed_at=position.closed_at,
            settled_at=position.settled_at,
        )


# ---------------------------------------------------------------------------
# Wallet / portfolio
# ---------------------------------------------------------------------------


class PortfolioOut(BaseModel):
    user_id: str
    balance: float
    balance_display: str
    held_balance: float
    available_balance: float
    suspended: bool
    exposure: float
    positions: list[PositionOut]

    @classmethod
    def build(cls, user: User, exposure: float, positions: list[Position]) -> "PortfolioOut":
        return cls(
            user_id=user.id,
            balance=user.balance,
            balance_display=format_amount(user.balance),
            held_balance=user.held_balance,
            available_balance=user.available_balance,
            suspended=user.suspended,
            exposure=exposure,
            positions=[PositionOut.from_domain(p) for p in positions],
        )


class UserSummaryOut(BaseModel):
    user_id: str
    balance: float
    held_balance: float
    suspended: bool
    exposure: float
    open_positions: int


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


class WithdrawalOut(BaseModel):
    id: str
    user_id: str
    amount: float
    status: str
    note: str
    created_at: datetime | None
    resolved_at: datetime | None

    @classmethod
    def from_domain(cls, withdrawal: Withdrawal) -> "WithdrawalOut":
        return cls(
            id=withdrawal.id,
            user_id=withdrawal.user_id,
            amount=withdrawal.amount,
            status=withdrawal.status.value,
            note=withdrawal.note,
            created_at=withdrawal.created_at,
            resolved_at=withdrawal.resolved_at,
        )
