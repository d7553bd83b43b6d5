"""Price and money arithmetic.

Prices are integers in [1, 99] (cost in paisa of a share paying 1 unit).
Balances, stakes and shares are floats rounded to 2 decimals after every
operation so that repeated partial closes do not drift.
"""

import math

MIN_PRICE = 1
MAX_PRICE = 99
MIN_PROBABILITY = 0.01
MAX_PROBABILITY = 0.99
DUST = 0.01


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def round_half_up(value: float) -> int:
    """Round half away from zero for positives (0.5 -> 1), unlike ``round``."""
    return math.floor(value + 0.5)


def clamp_price(value: float) -> int:
    """Round and clamp to a tradable price in [1, 99]."""
    return int(clamp(round_half_up(value), MIN_PRICE, MAX_PRICE))


def clamp_probability(value: float) -> float:
    return clamp(value, MIN_PROBABILITY, MAX_PROBABILITY)


def complement(price: int) -> int:
    """NO price of a YES price."""
    return clamp_price(100 - price)


def round2(value: float) -> float:
    """Round a money/share amount to 2 decimals, half-up.

    Values too large to scale by 100 have no fractional cents and come back
    unchanged.
    """
    scaled = value * 100
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled + 0.5) / 100


def shares_for(amount: float, price: int) -> float:
    """Shares bought by ``amount`` at ``price`` (each share pays 1 unit)."""
    return round2(amount / (price / 100))


def format_amount(amount: float) -> str:
    """75.5 -> '₹75.50', -12 -> '-₹12.00'."""
    if amount < 0:
        return f"-₹{-amount:,.2f}"
    return f"₹{amount:,.2f}"
