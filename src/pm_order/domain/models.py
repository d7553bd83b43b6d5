"""Order domain model: pure dataclass, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime

from src.pm_common.enums import Side


@dataclass(frozen=True)
class Order:
    """One executed trade. Append-only."""

    id: str
    user_id: str
    match_id: int
    market_id: int
    option_label: str
    side: Side
    amount: float       # currency debited
    price: int          # executable price 1-99 for ``side``
    shares: float
    position_id: str
    created_at: datetime
