"""Pydantic schemas for pm_order results and push payloads."""

from datetime import datetime

from pydantic import BaseModel

from src.pm_account.application.schemas import PositionOut
from src.pm_order.domain.models import Order


class OrderOut(BaseModel):
    id: str
    user_id: str
    match_id: int
    market_id: int
    option_label: str
    side: str
    amount: float
    price: int
    shares: float
    position_id: str
    created_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> "OrderOut":
        return cls(
            id=order.id,
            user_id=order.user_id,
            match_id=order.match_id,
            market_id=order.market_id,
            option_label=order.option_label,
            side=order.side.value,
            amount=order.amount,
            price=order.price,
            shares=order.shares,
            position_id=order.position_id,
            created_at=order.created_at,
        )


class TradeConfirmationOut(BaseModel):
    order: OrderOut
    position: PositionOut
    balance: float


class CloseResultOut(BaseModel):
    position: PositionOut
    shares_closed: float
    price: int
    close_value: float
    pnl: float
    balance: float
