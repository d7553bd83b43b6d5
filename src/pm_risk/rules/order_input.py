"""Order input validation: fail fast, first violation wins.

Order: side, match id, market id, option label, amount.
"""
import math
from dataclasses import dataclass
from typing import Any

from src.pm_common.enums import Side
from src.pm_common.errors import (
    InvalidAmountError,
    InvalidCloseRequestError,
    InvalidMarketIdError,
    InvalidMatchIdError,
    InvalidOptionError,
    InvalidSideError,
)


@dataclass(frozen=True)
class OrderInput:
    side: Side
    match_id: int
    market_id: int
    option_label: str
    amount: float


def _positive_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def _positive_id(value: Any) -> int | None:
    number = _positive_number(value)
    if number is None or number != int(number):
        return None
    return int(number)


def validate_order_input(
    side: Any, match_id: Any, market_id: Any, option_label: Any, amount: Any
) -> OrderInput:
    if side not in (Side.YES.value, Side.NO.value):
        raise InvalidSideError()

    parsed_match_id = _positive_id(match_id)
    if parsed_match_id is None:
        raise InvalidMatchIdError()

    parsed_market_id = _positive_id(market_id)
    if parsed_market_id is None:
        raise InvalidMarketIdError()

    label = option_label.strip() if isinstance(option_label, str) else ""
    if not label:
        raise InvalidOptionError()

    return OrderInput(Side(side), parsed_match_id, parsed_market_id, label, validate_amount(amount))


def validate_amount(amount: Any) -> float:
    """A finite, positive currency amount; anything else is INVALID_AMOUNT."""
    parsed = _positive_number(amount)
    if parsed is None:
        raise InvalidAmountError()
    return parsed


def validate_close_input(position_id: Any, shares_to_close: Any) -> tuple[str, float]:
    pid = position_id.strip() if isinstance(position_id, str) else ""
    shares = _positive_number(shares_to_close)
    if not pid or shares is None:
        raise InvalidCloseRequestError()
    return pid, shares
