"""Odds -> probability -> YES/NO price conversion."""

from src.pm_common.money import clamp_price, clamp_probability, complement


def parse_bookmaker_probability(raw: object) -> float | None:
    """Probability from a bookmaker-feed number.

    [50, 1000]  offset odds: 107 means 1.07 net -> 1 / (1 + 1.07)
    (1, 100)    decimal odds -> 1 / value
    (0, 1]      already a probability
    """
    value = _as_float(raw)
    if value is None or value <= 0:
        return None
    if 50 <= value <= 1000:
        return clamp_probability(1 / (1 + value / 100))
    if 1 < value < 100:
        return clamp_probability(1 / value)
    if value <= 1:
        return clamp_probability(value)
    return None


def parse_odds_probability(raw: object) -> float | None:
    """Probability from a generic odds feed: ``"55%"``, decimal odds, or a probability."""
    text = str(raw if raw is not None else "").strip()
    if not text:
        return None

    if text.endswith("%"):
        percent = _as_float(text[:-1])
        if percent is None:
            return None
        return clamp_probability(percent / 100)

    value = _as_float(text)
    if value is None:
        return None
    if 1.0 < value < 100.0:
        return clamp_probability(1 / value)
    if 0.0 < value <= 1.0:
        return clamp_probability(value)
    return None


def to_price_pair(probability_a: float, probability_b: float) -> tuple[int, int] | None:
    """Renormalize two complementary probabilities into prices summing to 100."""
    total = probability_a + probability_b
    if not total > 0:
        return None
    price_a = clamp_price(probability_a / total * 100)
    return price_a, complement(price_a)


def _as_float(raw: object) -> float | None:
    if isinstance(raw, bool):
        return None
    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value
