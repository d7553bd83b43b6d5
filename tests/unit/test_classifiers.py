from src.pm_common.enums import MarketType
from src.pm_feed.domain.classifiers import (
    MARKET_CLASSIFIERS,
    classify_market,
    extract_secondary_markets,
    interpret_odd_even,
    interpret_over_under,
    interpret_yes_no,
)
from src.pm_feed.domain.models import ProviderMarket, Runner

POWERPLAY = next(c for c in MARKET_CLASSIFIERS if c.market_id == MarketType.POWERPLAY_RUNS)
ODD_EVEN = next(c for c in MARKET_CLASSIFIERS if c.market_id == MarketType.ODD_EVEN_TOTAL)
BATTER = next(c for c in MARKET_CLASSIFIERS if c.market_id == MarketType.TOP_BATTER)


def _market(name: str, a: str, b: str, odds_a: float = 100, odds_b: float = 100) -> ProviderMarket:
    return ProviderMarket(
        market_id="m-1",
        market_name=name,
        runners=[Runner("1", a, odds_a), Runner("2", b, odds_b)],
    )


class TestOverUnder:
    def test_both_runners_parse(self) -> None:
        reading = interpret_over_under("Over 52.5", "Under 52.5", POWERPLAY)
        assert reading.confidence == 1.0
        assert reading.threshold == 52.5

    def test_one_runner_parses(self) -> None:
        reading = interpret_over_under("Over 52.5", "No", POWERPLAY)
        assert reading.confidence == 0.8
        assert reading.label_b == "Under 52.5"

    def test_second_runner_parses(self) -> None:
        reading = interpret_over_under("Yes", "Under 40", POWERPLAY)
        assert reading.confidence == 0.8
        assert reading.label_a == "Over 40"
        assert reading.threshold == 40

    def test_neither_parses_uses_default(self) -> None:
        reading = interpret_over_under("Yes", "No", POWERPLAY)
        assert reading.confidence == 0.4
        assert reading.threshold == 48.5
        assert (reading.label_a, reading.label_b) == ("Over 48.5", "Under 48.5")


class TestKeywordRunners:
    def test_odd_even_exact(self) -> None:
        reading = interpret_odd_even("EVEN", "odd", ODD_EVEN)
        assert reading is not None
        assert (reading.label_a, reading.label_b, reading.confidence) == ("Even", "Odd", 1.0)

    def test_odd_even_rejects_other_labels(self) -> None:
        assert interpret_odd_even("Back", "Lay", ODD_EVEN) is None

    def test_yes_no_exact(self) -> None:
        reading = interpret_yes_no("yes", "no", BATTER)
        assert (reading.label_a, reading.confidence) == ("Yes", 0.9)

    def test_yes_no_fallback_keeps_labels(self) -> None:
        reading = interpret_yes_no("Rohit 30+", "Rohit under 30", BATTER)
        assert reading.confidence == 0.5
        assert reading.label_a == "Rohit 30+"


class TestClassifyMarket:
    def test_powerplay_pattern(self) -> None:
        quote = classify_market(_market("6 Over Runs MI", "Over 50.5", "Under 50.5"))
        assert quote is not None
        assert quote.market_id == MarketType.POWERPLAY_RUNS
        assert quote.threshold == 50.5
        assert (quote.price_a, quote.price_b) == (50, 50)
        assert quote.source == "dcric99"

    def test_wickets_pattern(self) -> None:
        quote = classify_market(_market("Fall of 7th wkt", "Over 6.5", "Under 6.5"))
        assert quote is not None
        assert quote.market_id == MarketType.TOTAL_WICKETS

    def test_toss_pattern(self) -> None:
        quote = classify_market(_market("Toss Winner", "Mumbai", "Chennai"))
        assert quote is not None
        assert quote.market_id == MarketType.TOSS
        assert quote.confidence == 0.7

    def test_unknown_market(self) -> None:
        assert classify_market(_market("Player of the match", "A", "B")) is None

    def test_needs_two_active_runners(self) -> None:
        assert classify_market(_market("Toss", "Mumbai", "Chennai", odds_b=0)) is None

    def test_prices_sum_to_100(self) -> None:
        quote = classify_market(_market("Toss", "Mumbai", "Chennai", 90, 110))
        assert quote is not None
        assert quote.price_a + quote.price_b == 100
        assert quote.price_a > quote.price_b


class TestExtractSecondaryMarkets:
    def test_highest_confidence_wins(self) -> None:
        low = _market("Powerplay runs", "Yes", "No")
        high = _market("Powerplay runs MI", "Over 55.5", "Under 55.5")
        quotes = extract_secondary_markets([low, high])
        assert len(quotes) == 1
        assert quotes[0].confidence == 1.0
        assert quotes[0].threshold == 55.5

    def test_tie_keeps_first(self) -> None:
        first = _market("Powerplay runs", "Over 45.5", "Under 45.5")
        second = _market("PP runs", "Over 47.5", "Under 47.5")
        quotes = extract_secondary_markets([first, second])
        assert quotes[0].threshold == 45.5
