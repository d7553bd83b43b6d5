"""Domain models for pm_market: pure dataclasses, no business logic."""

from dataclasses import dataclass, field
from datetime import datetime

from src.pm_common.enums import OptionTone
from src.pm_feed.domain.models import ScoreState, SecondaryQuote


@dataclass
class Match:
    id: int                     # stable hash of external_id
    external_id: str
    team_a: str                 # short codes
    team_b: str
    team_a_full: str
    team_b_full: str
    score_a: ScoreState
    score_b: ScoreState
    is_live: bool
    status_text: str
    flag_a: str = "🏏"
    flag_b: str = "🏏"
    category: str = "Cricket"
    match_type: str = ""
    match_name: str = ""
    time_label: str = ""
    price_a: int = 50           # 1-99, price_a + price_b == 100
    price_b: int = 50
    odds_source: str = "modeled"
    external_markets: list[SecondaryQuote] = field(default_factory=list)


@dataclass
class MarketOption:
    label: str
    price: int                  # YES price 1-99
    type: OptionTone = OptionTone.GREEN


@dataclass
class Market:
    id: int                     # MarketType 1-8
    category: str
    title: str
    options: list[MarketOption]
    live: bool = False
    threshold: float | None = None


@dataclass
class TradingStatus:
    """Risk-control flag for one match, set out-of-band by admins."""

    suspended: bool = False
    reason: str = ""
    updated_at: datetime | None = None


@dataclass(frozen=True)
class PricePoint:
    at: datetime
    price: int


@dataclass
class MarketsSnapshot:
    """What readers see for one match: markets plus its trading status."""

    match: Match
    markets: list[Market]
    trading_status: TradingStatus
