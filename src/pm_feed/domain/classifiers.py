"""Secondary-market classification.

Bookmaker feeds expose dozens of granular markets (fancy, session, bookmaker
lines). Each ``MarketClassifier`` pairs name patterns with a runner
interpreter; the first classifier whose pattern matches and whose runners
interpret cleanly wins. Classifiers are pure and order-sensitive.
"""

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from src.pm_common.enums import MarketType, RunnerType
from src.pm_feed.domain.models import ProviderMarket, SecondaryQuote
from src.pm_feed.domain.normalizer import format_threshold, parse_threshold_from_label
from src.pm_feed.domain.odds import parse_bookmaker_probability, to_price_pair


@dataclass(frozen=True)
class RunnerReading:
    """Labels, threshold and confidence read off a market's first two active runners."""
    label_a: str
    label_b: str
    confidence: float
    threshold: float | None = None


RunnerInterpreter = Callable[[str, str, "MarketClassifier"], RunnerReading | None]


@dataclass(frozen=True)
class MarketClassifier:
    market_id: int
    patterns: tuple[re.Pattern[str], ...]
    runner_type: RunnerType
    default_threshold: float | None = None

    def matches(self, market_name: str) -> bool:
        return any(p.search(market_name) for p in self.patterns)


def interpret_over_under(name_a: str, name_b: str, classifier: MarketClassifier) -> RunnerReading:
    parsed_a = parse_threshold_from_label(name_a)
    parsed_b = parse_threshold_from_label(name_b)

    if parsed_a and parsed_b:
        return RunnerReading(name_a, name_b, 1.0, parsed_a[1])

    if parsed_a:
        direction, threshold = parsed_a
        other = "Under" if direction == "over" else "Over"
        return RunnerReading(name_a, f"{other} {format_threshold(threshold)}", 0.8, threshold)

    if parsed_b:
        direction, threshold = parsed_b
        other = "Over" if direction == "under" else "Under"
        return RunnerReading(f"{other} {format_threshold(threshold)}", name_b, 0.8, threshold)

    default = classifier.default_threshold
    text = format_threshold(default) if default is not None else ""
    return RunnerReading(f"Over {text}", f"Under {text}", 0.4, default)


def interpret_odd_even(name_a: str, name_b: str, classifier: MarketClassifier) -> RunnerReading | None:
    lower_a, lower_b = name_a.lower(), name_b.lower()
    if ("odd" in lower_a and "even" in lower_b) or ("even" in lower_a and "odd" in lower_b):
        if "odd" in lower_a:
            return RunnerReading("Odd", "Even", 1.0)
        return RunnerReading("Even", "Odd", 1.0)
    return None


def interpret_yes_no(name_a: str, name_b: str, classifier: MarketClassifier) -> RunnerReading:
    lower_a, lower_b = name_a.lower(), name_b.lower()
    if lower_a in ("yes", "no") and lower_b in ("yes", "no"):
        if lower_a == "yes":
            return RunnerReading("Yes", "No", 0.9)
        return RunnerReading("No", "Yes", 0.9)
    return RunnerReading(name_a, name_b, 0.5)


def interpret_team(name_a: str, name_b: str, classifier: MarketClassifier) -> RunnerReading | None:
    if not name_a or not name_b:
        return None
    return RunnerReading(name_a, name_b, 0.7)


INTERPRETERS: dict[RunnerType, RunnerInterpreter] = {
    RunnerType.OVER_UNDER: interpret_over_under,
    RunnerType.ODD_EVEN: interpret_odd_even,
    RunnerType.YES_NO: interpret_yes_no,
    RunnerType.TEAM: interpret_team,
}


def _patterns(*raw: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in raw)


MARKET_CLASSIFIERS: tuple[MarketClassifier, ...] = (
    MarketClassifier(MarketType.TOSS, _patterns(r"toss"), RunnerType.TEAM),
    MarketClassifier(
        MarketType.POWERPLAY_RUNS,
        _patterns(r"power\s*play", r"\bpp\b", r"6\s*over\s*run", r"first\s*6"),
        RunnerType.OVER_UNDER,
        48.5,
    ),
    MarketClassifier(
        MarketType.TEN_OVER_RUNS,
        _patterns(r"10\s*over", r"first\s*10", r"10\s*ov\b"),
        RunnerType.OVER_UNDER,
        82.5,
    ),
    MarketClassifier(
        MarketType.TOP_BATTER,
        _patterns(r"top\s*bat", r"batt?(?:er|sman)", r"30\s*run", r"highest\s*score"),
        RunnerType.YES_NO,
        30,
    ),
    MarketClassifier(
        MarketType.TOTAL_WICKETS,
        _patterns(r"wicket", r"\bwkt", r"fall\s*of"),
        RunnerType.OVER_UNDER,
        6.5,
    ),
    MarketClassifier(
        MarketType.OVER_20_RUNS,
        _patterns(r"over\s*20", r"20th\s*over", r"20\s*over\s*run"),
        RunnerType.OVER_UNDER,
        10.5,
    ),
    MarketClassifier(
        MarketType.ODD_EVEN_TOTAL,
        _patterns(r"odd.*even", r"even.*odd", r"total.*odd", r"total.*even"),
        RunnerType.ODD_EVEN,
    ),
)


def classify_market(
    market: ProviderMarket,
    classifiers: Iterable[MarketClassifier] = MARKET_CLASSIFIERS,
    source: str = "dcric99",
) -> SecondaryQuote | None:
    """Classify one provider market, or None when no classifier accepts it."""
    name = market.market_name.strip()
    if not name:
        return None

    for classifier in classifiers:
        if not classifier.matches(name):
            continue

        active = market.active_runners
        if len(active) < 2:
            continue
        runner_a, runner_b = active[0], active[1]

        interpret = INTERPRETERS[classifier.runner_type]
        reading = interpret(runner_a.name.strip(), runner_b.name.strip(), classifier)
        if reading is None:
            continue

        prob_a = parse_bookmaker_probability(runner_a.odds)
        prob_b = parse_bookmaker_probability(runner_b.odds)
        if not prob_a or not prob_b:
            continue
        pair = to_price_pair(prob_a, prob_b)
        if pair is None:
            continue

        return SecondaryQuote(
            market_id=int(classifier.market_id),
            price_a=pair[0],
            price_b=pair[1],
            label_a=reading.label_a,
            label_b=reading.label_b,
            confidence=reading.confidence,
            threshold=reading.threshold,
            source=source,
        )

    return None


def extract_secondary_markets(
    markets: Iterable[ProviderMarket], source: str = "dcric99"
) -> list[SecondaryQuote]:
    """Classify all markets; keep the highest-confidence quote per market id (first wins ties)."""
    best: dict[int, SecondaryQuote] = {}
    for market in markets:
        quote = classify_market(market, source=source)
        if quote is None:
            continue
        existing = best.get(quote.market_id)
        if existing is None or quote.confidence > existing.confidence:
            best[quote.market_id] = quote
    return list(best.values())
