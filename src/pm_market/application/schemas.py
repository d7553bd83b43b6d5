"""Pydantic schemas for pm_market read models and push payloads."""

from datetime import datetime

from pydantic import BaseModel

from src.pm_market.domain.models import Market, Match, PricePoint, TradingStatus

# ---------------------------------------------------------------------------
# Match
# ---------------------------------------------------------------------------


class MatchOut(BaseModel):
    id: int
    external_id: str
    team_a: str
    team_b: str
    team_a_full: str
    team_b_full: str
    flag_a: str
    flag_b: str
    score_a: str
    score_b: str
    overs_a: str
    overs_b: str
    price_a: int
    price_b: int
    is_live: bool
    status_text: str
    category: str
    match_type: str
    match_name: str
    time: str
    odds_source: str
    settled: bool = False

    @classmethod
    def from_domain(cls, match: Match, settled: bool = False) -> "MatchOut":
        return cls(
            id=match.id,
            external_id=match.external_id,
            team_a=match.team_a,
            team_b=match.team_b,
            team_a_full=match.team_a_full,
            team_b_full=match.team_b_full,
            flag_a=match.flag_a,
            flag_b=match.flag_b,
            score_a=match.score_a.display,
            score_b=match.score_b.display,
            overs_a=match.score_a.overs_text,
            overs_b=match.score_b.overs_text,
            price_a=match.price_a,
            price_b=match.price_b,
            is_live=match.is_live,
            status_text=match.status_text,
            category=match.category,
            match_type=match.match_type,
            match_name=match.match_name,
            time=match.time_label,
            odds_source=match.odds_source,
            settled=settled,
        )


class MatchListOut(BaseModel):
    matches: list[MatchOut]
    fetched_at: datetime | None
    stale: bool
    feed_source: str


# ---------------------------------------------------------------------------
# Markets
# ---------------------------------------------------------------------------


class OptionOut(BaseModel):
    label: str
    price: int
    type: str


class MarketOut(BaseModel):
    id: int
    category: str
    title: str
    live: bool
    threshold: float | None
    options: list[OptionOut]

    @classmethod
    def from_domain(cls, market: Market) -> "MarketOut":
        return cls(
            id=int(market.id),
            category=market.category,
            title=market.title,
            live=market.live,
            threshold=market.threshold,
            options=[
                OptionOut(label=o.label, price=o.price, type=o.type.value) for o in market.options
            ],
        )


class TradingStatusOut(BaseModel):
    suspended: bool
    reason: str
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, status: TradingStatus) -> "TradingStatusOut":
        return cls(suspended=status.suspended, reason=status.reason, updated_at=status.updated_at)


class MarketsOut(BaseModel):
    match_id: int
    markets: list[MarketOut]
    trading_status: TradingStatusOut


# ---------------------------------------------------------------------------
# History / trade tape
# ---------------------------------------------------------------------------


class PricePointOut(BaseModel):
    at: datetime
    price: int

    @classmethod
    def from_domain(cls, point: PricePoint) -> "PricePointOut":
        return cls(at=point.at, price=point.price)


class PriceHistoryOut(BaseModel):
    market_key: str
    minutes: int
    points: list[PricePointOut]


class TradeTapeItem(BaseModel):
    id: str
    market_id: int
    option_label: str
    side: str
    amount: float
    price: int
    at: datetime
