"""Market Builder: the fixed eight markets of a match.

Market 1 (Match Winner) carries the headline prices. Markets 2-8 take
classified external quotes when a provider supplied them and otherwise fall
back to seeded prices: stable for one match, distinct across markets.
"""

from src.pm_common.enums import MarketType, OptionTone
from src.pm_common.id_generator import stable_hash
from src.pm_common.money import clamp, clamp_price, complement
from src.pm_feed.domain.models import SecondaryQuote
from src.pm_feed.domain.normalizer import format_threshold
from src.pm_market.domain.models import Market, MarketOption, Match
from src.pm_market.domain.threshold_lock import ThresholdLockRegistry

# market id -> (default line, base bias, salt)
OVER_UNDER_DEFAULTS: dict[int, tuple[float, int, str]] = {
    MarketType.POWERPLAY_RUNS: (48.5, 5, "pp"),
    MarketType.TEN_OVER_RUNS: (82.5, 3, "10"),
    MarketType.TOTAL_WICKETS: (6.5, 2, "wk"),
    MarketType.OVER_20_RUNS: (10.5, 1, "ov20"),
}


def seeded_price(base: int, salt: str, low: int = 5, high: int = 95) -> int:
    """Deterministic jitter of +/-8 around ``base``, clamped to [low, high]."""
    jitter = ((stable_hash(f"{salt}:{base}") % 17) - 8) / 100
    candidate = clamp(base / 100 + jitter, low / 100, high / 100)
    return clamp_price(candidate * 100)


class MarketBuilder:
    def __init__(self, locks: ThresholdLockRegistry) -> None:
        self._locks = locks

    def build(self, match: Match) -> list[Market]:
        base = clamp_price(match.price_a)
        inverse = complement(base)
        external = {quote.market_id: quote for quote in match.external_markets}

        def over_under(market_id: int) -> tuple[list[MarketOption], float]:
            default, bias, salt = OVER_UNDER_DEFAULTS[market_id]
            quote = external.get(market_id)
            threshold = self._locks.lock(
                match.id, market_id, quote.threshold if quote else None, default
            )
            line = format_threshold(threshold)
            if quote:
                # External prices, but always against the pinned line
                return [
                    MarketOption(f"Over {line}", clamp_price(quote.price_a), OptionTone.GREEN),
                    MarketOption(f"Under {line}", clamp_price(quote.price_b), OptionTone.RED),
                ], threshold
            return [
                MarketOption(
                    f"Over {line}",
                    seeded_price(base + bias, f"{match.id}:{salt}:o"),
                    OptionTone.GREEN,
                ),
                MarketOption(
                    f"Under {line}",
                    seeded_price(inverse + bias, f"{match.id}:{salt}:u"),
                    OptionTone.RED,
                ),
            ], threshold

        def from_quote(quote: SecondaryQuote, second_tone: OptionTone) -> list[MarketOption]:
            return [
                MarketOption(quote.label_a, clamp_price(quote.price_a), OptionTone.GREEN),
                MarketOption(quote.label_b, clamp_price(quote.price_b), second_tone),
            ]

        toss = external.get(MarketType.TOSS)
        toss_options = from_quote(toss, OptionTone.BLUE) if toss else [
            MarketOption(match.team_a, seeded_price(base, f"{match.id}:toss:a", 40, 60), OptionTone.GREEN),
            MarketOption(match.team_b, seeded_price(inverse, f"{match.id}:toss:b", 40, 60), OptionTone.BLUE),
        ]

        batter = external.get(MarketType.TOP_BATTER)
        batter_options = from_quote(batter, OptionTone.RED) if batter else [
            MarketOption("Yes", seeded_price(base + 8, f"{match.id}:bat:yes"), OptionTone.GREEN),
            MarketOption("No", seeded_price(inverse + 8, f"{match.id}:bat:no"), OptionTone.RED),
        ]

        odd_even = external.get(MarketType.ODD_EVEN_TOTAL)
        odd_even_options = from_quote(odd_even, OptionTone.BLUE) if odd_even else [
            MarketOption("Odd", seeded_price(base, f"{match.id}:oe:odd", 45, 55), OptionTone.GREEN),
            MarketOption("Even", seeded_price(inverse, f"{match.id}:oe:even", 45, 55), OptionTone.BLUE),
        ]

        powerplay, powerplay_line = over_under(MarketType.POWERPLAY_RUNS)
        ten_over, ten_over_line = over_under(MarketType.TEN_OVER_RUNS)
        wickets, wickets_line = over_under(MarketType.TOTAL_WICKETS)
        over_20, over_20_line = over_under(MarketType.OVER_20_RUNS)

        return [
            Market(
                id=MarketType.MATCH_WINNER,
                category="winner",
                title="Match Winner",
                live=match.is_live,
                options=[
                    MarketOption(match.team_a, base, OptionTone.GREEN),
                    MarketOption(match.team_b, inverse, OptionTone.BLUE),
                ],
            ),
            Market(id=MarketType.TOSS, category="winner", title="Toss Winner", options=toss_options),
            Market(
                id=MarketType.POWERPLAY_RUNS,
                category="sessions",
                title=f"Powerplay Runs - {match.team_a}",
                live=match.is_live,
                options=powerplay,
                threshold=powerplay_line,
            ),
            Market(
                id=MarketType.TEN_OVER_RUNS,
                category="sessions",
                title=f"10 Over Runs - {match.team_a}",
                live=match.is_live,
                options=ten_over,
                threshold=ten_over_line,
            ),
            Market(
                id=MarketType.TOP_BATTER,
                category="player",
                title=f"{match.team_a} Top Batter 30+",
                options=batter_options,
            ),
            Market(
                id=MarketType.TOTAL_WICKETS,
                category="wickets",
                title=f"Total Wickets - {match.team_a}",
                live=match.is_live,
                options=wickets,
                threshold=wickets_line,
            ),
            Market(
                id=MarketType.OVER_20_RUNS,
                category="overbyover",
                title=f"Over 20 Runs - {match.team_a}",
                live=match.is_live,
                options=over_20,
                threshold=over_20_line,
            ),
            Market(
                id=MarketType.ODD_EVEN_TOTAL,
                category="oddeven",
                title="Match Total - Odd or Even?",
                options=odd_even_options,
            ),
        ]
