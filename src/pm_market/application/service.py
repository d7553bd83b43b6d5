"""MarketQueryService: read side over EngineState.

All methods are read-only; nothing here takes a lock. Callers that need a
fresh snapshot go through the refresh coordinator first.
"""

from datetime import datetime

from src.pm_common.datetime_utils import utc_now
from src.pm_common.errors import MatchNotFoundError
from src.pm_feed.domain.normalizer import normalize_team_name, token_overlap
from src.pm_market.application.schemas import (
    MarketOut,
    MarketsOut,
    MatchListOut,
    MatchOut,
    PriceHistoryOut,
    PricePointOut,
    TradeTapeItem,
    TradingStatusOut,
)
from src.pm_market.domain.history import market_key
from src.pm_market.domain.models import Market, MarketOption
from src.pm_store.domain.state import EngineState

OPTION_FUZZY_MIN = 0.7


def find_market_option(
    state: EngineState, match_id: int, market_id: int, option_label: str
) -> tuple[Market, MarketOption] | None:
    """Exact normalized label first, then the first option overlapping >= 0.7."""
    market = next((m for m in state.get_markets(match_id) if m.id == market_id), None)
    if market is None:
        return None

    wanted = normalize_team_name(option_label)
    option = next((o for o in market.options if normalize_team_name(o.label) == wanted), None)
    if option is None:
        option = next(
            (o for o in market.options if token_overlap(o.label, option_label) >= OPTION_FUZZY_MIN),
            None,
        )
    if option is None:
        return None
    return market, option


class MarketQueryService:
    def __init__(self, state: EngineState) -> None:
        self._state = state

    def is_stale(self, now: datetime | None = None) -> bool:
        fetched_at = self._state.fetched_at
        if fetched_at is None or self._state.stale:
            return True
        now = now or utc_now()
        return (now - fetched_at).total_seconds() > self._state.settings.STALE_AFTER_SECONDS

    def list_matches(self) -> MatchListOut:
        state = self._state
        return MatchListOut(
            matches=[MatchOut.from_domain(m, state.is_settled(m.id)) for m in state.matches.values()],
            fetched_at=state.fetched_at,
            stale=self.is_stale(),
            feed_source=state.feed_source,
        )

    def get_markets(self, match_id: int) -> MarketsOut:
        if self._state.get_match(match_id) is None:
            raise MatchNotFoundError(match_id)
        return MarketsOut(
            match_id=match_id,
            markets=[MarketOut.from_domain(m) for m in self._state.get_markets(match_id)],
            trading_status=TradingStatusOut.from_domain(self._state.get_trading_status(match_id)),
        )

    def trade_tape(self, match_id: int) -> list[TradeTapeItem]:
        return [
            TradeTapeItem(
                id=order.id,
                market_id=order.market_id,
                option_label=order.option_label,
                side=order.side.value,
                amount=order.amount,
                price=order.price,
                at=order.created_at,
            )
            for order in self._state.recent_orders(match_id)
        ]

    def price_history(
        self, match_id: int, market_id: int, option_label: str, side: str = "yes", minutes: int = 60
    ) -> PriceHistoryOut:
        key = market_key(match_id, market_id, option_label, side)
        points = self._state.history.range(key, minutes, utc_now())
        return PriceHistoryOut(
            market_key=key,
            minutes=minutes,
            points=[PricePointOut.from_domain(p) for p in points],
        )
