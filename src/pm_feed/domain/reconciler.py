"""Odds Reconciler.

Joins score-feed matches with odds pairs from every provider by fuzzy team
name, prices each match (external odds first, modeled price otherwise), and
synthesizes odds-only matches when the score feed is down.
"""

from collections.abc import Iterable

from src.pm_common.id_generator import IdAssigner, StableHashIdAssigner
from src.pm_common.money import clamp_price, complement
from src.pm_feed.domain.models import FeedMatch, MatchedOdds, OddsPair, ScoreState
from src.pm_feed.domain.normalizer import (
    normalize_team_name,
    parse_team_label,
    resolve_flag,
    token_overlap,
)
from src.pm_market.domain.models import Match
from src.pm_pricing.domain.modeled import ModelInput, compute_modeled_price_a

MIN_FUZZY_SCORE = 1.1

FEED_EXTERNAL = "cricket+external_odds"
FEED_MODELED = "cricket+modeled_odds"


def find_odds_for_match(
    team_a_full: str, team_b_full: str, odds_pairs: Iterable[OddsPair]
) -> MatchedOdds | None:
    """Best odds pair for a fixture, oriented so ``price_a`` belongs to team A.

    An exact normalized-name hit (either orientation) wins outright. Otherwise
    the token-overlap sum of both team pairings must reach 1.1, so a single
    shared team name is never enough to merge two fixtures.
    """
    pairs = list(odds_pairs)
    normalized_a = normalize_team_name(team_a_full)
    normalized_b = normalize_team_name(team_b_full)

    for pair in pairs:
        pair_a = normalize_team_name(pair.team_a)
        pair_b = normalize_team_name(pair.team_b)
        if pair_a == normalized_a and pair_b == normalized_b:
            return MatchedOdds(pair.price_a, pair.price_b, pair.provider, list(pair.secondary_markets))
        if pair_a == normalized_b and pair_b == normalized_a:
            return MatchedOdds(pair.price_b, pair.price_a, pair.provider, list(pair.secondary_markets))

    best_score = 0.0
    best: MatchedOdds | None = None
    for pair in pairs:
        direct = token_overlap(team_a_full, pair.team_a) + token_overlap(team_b_full, pair.team_b)
        if direct > best_score:
            best_score = direct
            best = MatchedOdds(pair.price_a, pair.price_b, pair.provider, list(pair.secondary_markets))

        swapped = token_overlap(team_a_full, pair.team_b) + token_overlap(team_b_full, pair.team_a)
        if swapped > best_score:
            best_score = swapped
            best = MatchedOdds(pair.price_b, pair.price_a, pair.provider, list(pair.secondary_markets))

    if best_score < MIN_FUZZY_SCORE:
        return None
    return best


def apply_pricing(
    feed_matches: Iterable[FeedMatch],
    odds_pairs: list[OddsPair],
    ids: IdAssigner | None = None,
) -> tuple[list[Match], str]:
    """Price every feed match. Returns the priced matches and the feed source tag."""
    ids = ids or StableHashIdAssigner()
    has_external = False
    priced: list[Match] = []

    for feed in feed_matches:
        modeled_a = compute_modeled_price_a(
            ModelInput(
                external_id=feed.external_id,
                team_a_full=feed.team_a_full,
                team_b_full=feed.team_b_full,
                score_a=feed.score_a,
                score_b=feed.score_b,
                is_live=feed.is_live,
                status_text=feed.status_text,
                match_name=feed.match_name,
                match_type=feed.match_type,
            )
        )
        matched = find_odds_for_match(feed.team_a_full, feed.team_b_full, odds_pairs)
        if matched:
            has_external = True
            price_a = clamp_price(matched.price_a)
            price_b = complement(price_a)
        else:
            price_a = clamp_price(modeled_a)
            price_b = complement(price_a)

        priced.append(
            Match(
                id=ids.match_id(feed.external_id),
                external_id=feed.external_id,
                team_a=feed.team_a,
                team_b=feed.team_b,
                team_a_full=feed.team_a_full,
                team_b_full=feed.team_b_full,
                flag_a=resolve_flag(feed.team_a),
                flag_b=resolve_flag(feed.team_b),
                score_a=feed.score_a,
                score_b=feed.score_b,
                is_live=feed.is_live,
                status_text=feed.status_text,
                category=feed.category,
                match_type=feed.match_type,
                match_name=feed.match_name,
                time_label=feed.time_label,
                price_a=price_a,
                price_b=price_b,
                odds_source=matched.source if matched else "modeled",
                external_markets=matched.secondary_markets if matched else [],
            )
        )

    return priced, FEED_EXTERNAL if has_external else FEED_MODELED


def build_synthetic_matches(
    odds_pairs: Iterable[OddsPair], ids: IdAssigner | None = None
) -> list[Match]:
    """Odds-only matches, one per distinct team pair (either orientation)."""
    ids = ids or StableHashIdAssigner()
    deduped: dict[tuple[str, str], OddsPair] = {}

    for pair in odds_pairs:
        normalized_a = normalize_team_name(pair.team_a)
        normalized_b = normalize_team_name(pair.team_b)
        if not normalized_a or not normalized_b or normalized_a == normalized_b:
            continue
        if (normalized_a, normalized_b) in deduped or (normalized_b, normalized_a) in deduped:
            continue
        deduped[(normalized_a, normalized_b)] = pair

    return [_synthetic_match(pair, ids) for pair in deduped.values()]


def _synthetic_match(pair: OddsPair, ids: IdAssigner) -> Match:
    team_a = parse_team_label(pair.team_a)
    team_b = parse_team_label(pair.team_b)
    external_id = (
        f"{pair.provider}:{normalize_team_name(team_a.full)}:{normalize_team_name(team_b.full)}"
    )
    price_a = clamp_price(pair.price_a)
    return Match(
        id=ids.match_id(external_id),
        external_id=external_id,
        team_a=team_a.short,
        team_b=team_b.short,
        team_a_full=team_a.full,
        team_b_full=team_b.full,
        flag_a=resolve_flag(team_a.short),
        flag_b=resolve_flag(team_b.short),
        score_a=ScoreState(),
        score_b=ScoreState(),
        is_live=True,
        status_text=f"Live odds ({pair.provider})",
        match_type="odds_feed",
        match_name=f"{team_a.full} vs {team_b.full}",
        time_label="Now",
        price_a=price_a,
        price_b=complement(price_a),
        odds_source=pair.provider,
        external_markets=list(pair.secondary_markets),
    )
