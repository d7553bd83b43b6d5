from src.pm_common.enums import MarketType
from src.pm_feed.domain.models import SecondaryQuote
from src.pm_market.domain.builder import MarketBuilder, seeded_price
from src.pm_market.domain.threshold_lock import ThresholdLockRegistry
from tests.factories import make_match


def _by_id(markets):
    return {m.id: m for m in markets}


def _quote(market_id: int, threshold: float | None, price_a: int = 58, price_b: int = 42) -> SecondaryQuote:
    line = f"{threshold:g}" if threshold is not None else ""
    return SecondaryQuote(
        market_id=market_id,
        price_a=price_a,
        price_b=price_b,
        label_a=f"Over {line}",
        label_b=f"Under {line}",
        confidence=1.0,
        threshold=threshold,
        source="dcric99",
    )


class TestMarketBuilder:
    def test_builds_eight_markets_in_order(self) -> None:
        markets = MarketBuilder(ThresholdLockRegistry()).build(make_match())
        assert [m.id for m in markets] == list(range(1, 9))

    def test_match_winner_carries_headline_prices(self) -> None:
        markets = _by_id(MarketBuilder(ThresholdLockRegistry()).build(make_match()))
        winner = markets[MarketType.MATCH_WINNER]
        assert [(o.label, o.price) for o in winner.options] == [("MI", 65), ("CSK", 35)]
        assert winner.live is True

    def test_default_lines_and_labels(self) -> None:
        markets = _by_id(MarketBuilder(ThresholdLockRegistry()).build(make_match()))
        assert markets[MarketType.POWERPLAY_RUNS].threshold == 48.5
        assert markets[MarketType.TEN_OVER_RUNS].options[0].label == "Over 82.5"
        assert markets[MarketType.TOTAL_WICKETS].options[1].label == "Under 6.5"
        assert markets[MarketType.OVER_20_RUNS].threshold == 10.5
        assert [o.label for o in markets[MarketType.TOP_BATTER].options] == ["Yes", "No"]
        assert [o.label for o in markets[MarketType.ODD_EVEN_TOTAL].options] == ["Odd", "Even"]
        assert [o.label for o in markets[MarketType.TOSS].options] == ["MI", "CSK"]

    def test_fallback_prices_are_stable_and_in_range(self) -> None:
        first = MarketBuilder(ThresholdLockRegistry()).build(make_match())
        second = MarketBuilder(ThresholdLockRegistry()).build(make_match())
        assert [[o.price for o in m.options] for m in first] == [[o.price for o in m.options] for m in second]
        toss = _by_id(first)[MarketType.TOSS]
        assert all(40 <= o.price <= 60 for o in toss.options)
        odd_even = _by_id(first)[MarketType.ODD_EVEN_TOTAL]
        assert all(45 <= o.price <= 55 for o in odd_even.options)

    def test_external_quote_is_used(self) -> None:
        match = make_match(external_markets=[_quote(MarketType.POWERPLAY_RUNS, 52.5)])
        markets = _by_id(MarketBuilder(ThresholdLockRegistry()).build(match))
        powerplay = markets[MarketType.POWERPLAY_RUNS]
        assert powerplay.threshold == 52.5
        assert [(o.label, o.price) for o in powerplay.options] == [("Over 52.5", 58), ("Under 52.5", 42)]

    def test_seeded_price_bounds(self) -> None:
        assert 5 <= seeded_price(99, "x") <= 95
        assert 40 <= seeded_price(10, "toss", 40, 60) <= 60


class TestThresholdLocks:
    def test_line_survives_a_later_feed_change(self) -> None:
        locks = ThresholdLockRegistry()
        builder = MarketBuilder(locks)
        builder.build(make_match(external_markets=[_quote(MarketType.TOTAL_WICKETS, 5.5)]))
        later = _by_id(builder.build(make_match(external_markets=[_quote(MarketType.TOTAL_WICKETS, 7.5, 30, 70)])))

        wickets = later[MarketType.TOTAL_WICKETS]
        assert wickets.threshold == 5.5
        # prices follow the feed, the line does not
        assert [(o.label, o.price) for o in wickets.options] == [("Over 5.5", 30), ("Under 5.5", 70)]

    def test_default_line_is_pinned_too(self) -> None:
        locks = ThresholdLockRegistry()
        builder = MarketBuilder(locks)
        builder.build(make_match())
        later = _by_id(builder.build(make_match(external_markets=[_quote(MarketType.POWERPLAY_RUNS, 55.5)])))
        assert later[MarketType.POWERPLAY_RUNS].threshold == 48.5

    def test_release_match_unpins(self) -> None:
        locks = ThresholdLockRegistry()
        MarketBuilder(locks).build(make_match())
        MarketBuilder(locks).build(make_match(id=202))
        assert len(locks) == 8

        assert locks.release_match(101) == 4
        assert locks.get(101, MarketType.POWERPLAY_RUNS) is None
        assert locks.get(202, MarketType.POWERPLAY_RUNS) == 48.5

    def test_non_finite_incoming_uses_default(self) -> None:
        locks = ThresholdLockRegistry()
        assert locks.lock(1, 3, float("nan"), 48.5) == 48.5
        assert locks.lock(1, 3, 60.5, 48.5) == 48.5
