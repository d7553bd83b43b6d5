"""Per-option price history, capped per key."""

from collections import deque
from datetime import datetime, timedelta

from src.pm_common.money import complement
from src.pm_feed.domain.normalizer import normalize_team_name
from src.pm_market.domain.models import Market, PricePoint
from src.pm_store.domain.models import PricePointRow

MIN_RANGE_MINUTES = 5
MAX_RANGE_MINUTES = 1440


def market_key(match_id: int, market_id: int, option_label: str, side: str) -> str:
    return f"{match_id}:{market_id}:{normalize_team_name(option_label)}:{side}"


class PriceHistory:
    def __init__(self, limit: int) -> None:
        self._limit = limit
        self._points: dict[str, deque[PricePoint]] = {}

    def append(self, key: str, price: int, at: datetime) -> PricePointRow:
        points = self._points.get(key)
        if points is None:
            points = deque(maxlen=self._limit)
            self._points[key] = points
        points.append(PricePoint(at=at, price=price))
        return PricePointRow(market_key=key, price=price, recorded_at=at)

    def record_markets(self, match_id: int, markets: list[Market], at: datetime) -> list[PricePointRow]:
        """Append a YES and a NO point for every option of every market."""
        rows = []
        for market in markets:
            for option in market.options:
                rows.append(self.append(market_key(match_id, market.id, option.label, "yes"), option.price, at))
                rows.append(
                    self.append(
                        market_key(match_id, market.id, option.label, "no"),
                        complement(option.price),
                        at,
                    )
                )
        return rows

    def points(self, key: str) -> list[PricePoint]:
        return list(self._points.get(key, ()))

    def range(self, key: str, minutes: int, now: datetime) -> list[PricePoint]:
        """Points recorded within the last ``minutes`` (clamped to 5-1440)."""
        window = max(MIN_RANGE_MINUTES, min(MAX_RANGE_MINUTES, int(minutes)))
        since = now - timedelta(minutes=window)
        return [point for point in self._points.get(key, ()) if point.at >= since]
