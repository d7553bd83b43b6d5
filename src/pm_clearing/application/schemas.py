"""Pydantic schemas for settlement results."""

from datetime import datetime

from pydantic import BaseModel

from src.pm_clearing.domain.models import Settlement


class SettlementRowOut(BaseModel):
    user_id: str
    position_id: str
    market_id: int
    option_label: str
    side: str
    payout: float
    outcome: str


class SettlementOut(BaseModel):
    id: str
    match_id: int
    winner_side: str
    winner_code: str
    winner_full: str
    settled_by: str
    settled_at: datetime
    settled_positions: int
    total_payout: float
    rows: list[SettlementRowOut]

    @classmethod
    def from_domain(cls, settlement: Settlement) -> "SettlementOut":
        return cls(
            id=settlement.id,
            match_id=settlement.match_id,
            winner_side=settlement.winner_side,
            winner_code=settlement.winner_code,
            winner_full=settlement.winner_full,
            settled_by=settlement.settled_by,
            settled_at=settlement.settled_at,
            settled_positions=len(settlement.rows),
            total_payout=settlement.total_payout,
            rows=[
                SettlementRowOut(
                    user_id=r.user_id,
                    position_id=r.position_id,
                    market_id=r.market_id,
                    option_label=r.option_label,
                    side=r.side.value,
                    payout=r.payout,
                    outcome=r.outcome.value,
                )
                for r in settlement.rows
            ],
        )
