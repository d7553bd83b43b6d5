"""Winner resolution and per-market settlement rules.

Only three market types have ground truth in the feed: the match winner (1),
first-innings wickets (6) and the parity of total runs (8). Every other
market type settles void. Anything ambiguous also settles void.
"""

from collections.abc import Callable

from src.pm_account.domain.models import Position
from src.pm_clearing.domain.models import Resolution, Winner
from src.pm_common.enums import MarketType, SettlementOutcome, Side
from src.pm_feed.domain.normalizer import (
    detect_winner_from_status,
    normalize_team_name,
    parse_threshold_from_label,
    token_overlap,
)
from src.pm_market.domain.models import Match

EXPLICIT_FULL_MIN = 0.5
EXPLICIT_CODE_MIN = 0.7
OPTION_CODE_MIN = 0.6
OPTION_FULL_MIN = 0.5


def _winner_for(match: Match, side: str) -> Winner:
    if side == "A":
        return Winner(side="A", code=match.team_a, full=match.team_a_full)
    return Winner(side="B", code=match.team_b, full=match.team_b_full)


def resolve_winner(match: Match, explicit: str | None = None) -> Winner | None:
    """Explicit pick first (A checked before B), then the status text."""
    if explicit and explicit.strip():
        name = normalize_team_name(explicit)
        if (
            token_overlap(name, match.team_a_full) >= EXPLICIT_FULL_MIN
            or token_overlap(name, match.team_a) >= EXPLICIT_CODE_MIN
        ):
            return _winner_for(match, "A")
        if (
            token_overlap(name, match.team_b_full) >= EXPLICIT_FULL_MIN
            or token_overlap(name, match.team_b) >= EXPLICIT_CODE_MIN
        ):
            return _winner_for(match, "B")

    side = detect_winner_from_status(match.status_text, match.team_a_full, match.team_b_full)
    if side is None:
        return None
    return _winner_for(match, side)


def option_side(option_label: str, match: Match) -> str | None:
    """Which team an option label names: "A", "B", or None when neither/both."""
    label = normalize_team_name(option_label)
    is_a = (
        token_overlap(label, match.team_a) > OPTION_CODE_MIN
        or token_overlap(label, match.team_a_full) > OPTION_FULL_MIN
    )
    is_b = (
        token_overlap(label, match.team_b) > OPTION_CODE_MIN
        or token_overlap(label, match.team_b_full) > OPTION_FULL_MIN
    )
    if is_a == is_b:
        return None
    return "A" if is_a else "B"


def void(position: Position) -> Resolution:
    return Resolution(SettlementOutcome.VOID, position.stake_remaining)


def _decide(position: Position, option_is_true: bool) -> Resolution:
    won = option_is_true if position.side == Side.YES else not option_is_true
    if won:
        return Resolution(SettlementOutcome.WIN, position.shares_remaining)
    return Resolution(SettlementOutcome.LOSE, 0.0)


def resolve_match_winner(position: Position, match: Match, winner: Winner) -> Resolution:
    side = option_side(position.option_label, match)
    if side is None:
        return void(position)
    return _decide(position, side == winner.side)


def resolve_total_wickets(position: Position, match: Match, winner: Winner) -> Resolution:
    score = match.score_a
    if not score.has_score:
        return void(position)

    parsed = parse_threshold_from_label(position.option_label)
    if parsed is None:
        return void(position)
    direction, threshold = parsed

    if score.wickets == threshold:
        return void(position)
    option_is_true = score.wickets > threshold if direction == "over" else score.wickets < threshold
    return _decide(position, option_is_true)


def resolve_odd_even(position: Position, match: Match, winner: Winner) -> Resolution:
    if not (match.score_a.has_score and match.score_b.has_score):
        return void(position)

    is_odd = (match.score_a.runs + match.score_b.runs) % 2 == 1
    label = position.option_label.strip().lower()
    if label == "odd":
        return _decide(position, is_odd)
    if label == "even":
        return _decide(position, not is_odd)
    return void(position)


Resolver = Callable[[Position, Match, Winner], Resolution]

RESOLVERS: dict[int, Resolver] = {
    MarketType.MATCH_WINNER: resolve_match_winner,
    MarketType.TOTAL_WICKETS: resolve_total_wickets,
    MarketType.ODD_EVEN_TOTAL: resolve_odd_even,
}


def resolve_position(position: Position, match: Match, winner: Winner) -> Resolution:
    """Toss, powerplay, 10-over, top batter and over-20 markets have no result feed: void."""
    resolver = RESOLVERS.get(position.market_id)
    if resolver is None:
        return void(position)
    return resolver(position, match, winner)
