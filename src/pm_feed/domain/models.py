"""Domain models for pm_feed: provider output contracts, pure dataclasses."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TeamLabel:
    full: str
    short: str


@dataclass(frozen=True)
class ScoreState:
    """One side's score. ``overs`` is whole overs + legal balls / 6."""
    display: str = ""
    overs_text: str = ""
    runs: int = 0
    wickets: int = 0
    has_score: bool = False
    overs: float | None = None


@dataclass
class FeedMatch:
    """A score-feed match record after normalization."""
    external_id: str
    team_a_full: str
    team_b_full: str
    team_a: str
    team_b: str
    status_text: str
    score_a: ScoreState
    score_b: ScoreState
    is_live: bool
    category: str = "Cricket"
    match_type: str = ""
    match_name: str = ""
    time_label: str = ""


@dataclass(frozen=True)
class SecondaryQuote:
    """A provider market classified into one of the fixed secondary market ids."""
    market_id: int
    price_a: int
    price_b: int
    label_a: str
    label_b: str
    confidence: float
    threshold: float | None = None
    source: str = ""


@dataclass
class OddsPair:
    """A normalized two-team odds pair from any provider."""
    team_a: str
    team_b: str
    price_a: int
    price_b: int
    provider: str
    secondary_markets: list[SecondaryQuote] = field(default_factory=list)


@dataclass(frozen=True)
class Runner:
    selection_id: str
    name: str
    odds: float


@dataclass
class ProviderMarket:
    """A raw granular provider market (fancy/session/bookmaker line)."""
    market_id: str
    market_name: str
    runners: list[Runner]

    @property
    def active_runners(self) -> list[Runner]:
        return [r for r in self.runners if r.odds > 0]


@dataclass
class MatchedOdds:
    """Result of reconciling one match against all odds pairs, oriented to the match."""
    price_a: int
    price_b: int
    source: str
    secondary_markets: list[SecondaryQuote] = field(default_factory=list)
