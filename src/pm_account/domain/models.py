"""Domain models for pm_account: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.pm_common.enums import PositionStatus, SettlementOutcome, Side, WithdrawalStatus
from src.pm_common.money import round2


@dataclass
class User:
    id: str
    balance: float
    held_balance: float = 0.0    # earmarked for pending withdrawals
    suspended: bool = False
    name: str = ""
    phone: str = ""
    kyc_status: str = "pending"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def available_balance(self) -> float:
        return round2(self.balance - self.held_balance)


@dataclass
class Position:
    id: str
    user_id: str
    match_id: int
    market_id: int
    market_title: str
    option_label: str
    side: Side
    shares: float
    shares_remaining: float
    stake: float
    stake_remaining: float
    avg_price: int              # execution price 1-99
    status: PositionStatus = PositionStatus.OPEN
    outcome: SettlementOutcome | None = None
    payout: float | None = None
    realized_pnl: float = 0.0   # sum of close pnl
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    settled_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN


@dataclass
class Withdrawal:
    id: str
    user_id: str
    amount: float
    status: WithdrawalStatus = WithdrawalStatus.PENDING
    note: str = ""
    created_at: datetime | None = None
    resolved_at: datetime | None = None
