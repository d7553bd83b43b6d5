"""Settlement domain models: pure dataclasses."""

from dataclasses import dataclass, field
from datetime import datetime

from src.pm_common.enums import SettlementOutcome, Side


@dataclass(frozen=True)
class Winner:
    side: str                   # "A" / "B"
    code: str
    full: str


@dataclass(frozen=True)
class Resolution:
    outcome: SettlementOutcome
    payout: float


@dataclass(frozen=True)
class SettlementRow:
    user_id: str
    position_id: str
    market_id: int
    option_label: str
    side: Side
    payout: float
    outcome: SettlementOutcome


@dataclass
class Settlement:
    """One per match, written at most once."""

    id: str
    match_id: int
    winner_side: str            # "A" / "B"
    winner_code: str
    winner_full: str
    settled_by: str
    settled_at: datetime
    rows: list[SettlementRow] = field(default_factory=list)

    @property
    def total_payout(self) -> float:
        return round(sum(row.payout for row in self.rows), 2)
