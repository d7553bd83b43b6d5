"""Dcric99 bookmaker feed.

Flow per refresh:
  1. event list, cricket only (``event_type_id == 4``)
  2. rank events against the known matches and keep the best N
  3. per event (bounded concurrency): detail -> market ids -> odds rows
  4. parse pipe-delimited rows into markets, pick the primary team pair,
     classify the rest into secondary markets
  5. dedupe pairs by team key in either orientation
"""

import logging
from dataclasses import dataclass
from typing import Any

from config.settings import Settings
from src.pm_feed.domain.classifiers import extract_secondary_markets
from src.pm_feed.domain.models import FeedMatch, OddsPair, ProviderMarket, Runner
from src.pm_feed.domain.normalizer import (
    normalize_team_name,
    parse_teams_from_name,
    token_overlap,
)
from src.pm_feed.domain.odds import parse_bookmaker_probability, to_price_pair
from src.pm_feed.infrastructure.http_client import (
    FeedHttpClient,
    as_list,
    as_number,
    as_record,
    as_str,
    map_with_concurrency,
)

logger = logging.getLogger(__name__)

PROVIDER = "dcric99"
CRICKET_EVENT_TYPE = 4
MAX_MARKET_IDS = 200
DEFAULT_SKIP_KEYS = 8
DEFAULT_RUNNER_KEY = 14
BACK_OFFSET = 2
LAY_OFFSET = 8


@dataclass
class EventCandidate:
    entry: dict[str, Any]
    score: float
    in_play: float
    has_good_score: bool


class Dcric99Provider:
    def __init__(self, http: FeedHttpClient, settings: Settings) -> None:
        self._http = http
        self._settings = settings

    @property
    def enabled(self) -> bool:
        return self._settings.DCRIC99_ENABLED

    async def fetch_pairs(self, matches: list[FeedMatch]) -> list[OddsPair]:
        if not self.enabled:
            return []

        payload = as_record(
            await self._http.get_json(
                self._settings.DCRIC99_EVENT_LIST_URL,
                label="dcric99_event_list",
                timeout=self._settings.DETAIL_TIMEOUT_SECONDS,
            )
        )
        events = [
            as_record(row)
            for row in as_list(as_record(payload.get("data")).get("events"))
            if as_number(as_record(row).get("event_type_id")) == CRICKET_EVENT_TYPE
        ]
        if not events:
            return []

        ranked = rank_event_candidates(events, matches, self._settings.DCRIC99_MIN_SCORE)
        selected = [c.entry for c in ranked[: self._settings.DCRIC99_MAX_EVENT_DETAILS]]

        maybe_pairs = await map_with_concurrency(
            selected, self._settings.FETCH_CONCURRENCY, self.fetch_pair_for_event
        )
        return dedupe_pairs([pair for pair in maybe_pairs if pair is not None])

    async def fetch_pair_for_event(self, entry: dict[str, Any]) -> OddsPair | None:
        event_id = (as_str(entry.get("event_id")) or as_str(entry.get("id"))).strip()
        if not event_id:
            return None

        detail = await self.fetch_event_detail(event_id)
        event_payload = as_record(detail.get("event"))
        if not event_payload:
            return None

        market_ids = collect_market_ids(event_payload)
        if not market_ids:
            return None

        rows = await self.fetch_odds_rows(odds_base_url(detail, self._settings), market_ids)
        if not rows:
            return None

        markets = parse_odds_rows(rows, detail)
        if not markets:
            return None

        logger.debug(
            "dcric99 event %s: %d parsed markets %s",
            event_id,
            len(markets),
            [m.market_name for m in markets[:20]],
        )
        fallback_name = as_str(entry.get("event_name")) or as_str(entry.get("name"))
        return pick_primary_pair(detail, markets, fallback_name)

    async def fetch_event_detail(self, event_id: str) -> dict[str, Any]:
        payload = as_record(
            await self._http.post_json(
                f"{self._settings.DCRIC99_EVENT_DETAIL_URL}/{event_id}",
                label="dcric99_event_detail",
                timeout=self._settings.DETAIL_TIMEOUT_SECONDS,
                json_body={},
            )
        )
        return as_record(payload.get("data"))

    async def fetch_odds_rows(self, base_url: str, market_ids: list[str]) -> list[str]:
        payload = await self._http.post_json(
            f"{base_url.rstrip('/')}/ws/getMarketDataNew",
            label="dcric99_odds",
            timeout=self._settings.DETAIL_TIMEOUT_SECONDS,
            form={"market_ids[]": market_ids[:MAX_MARKET_IDS]},
        )
        return [as_str(row) for row in as_list(payload) if as_str(row)]


def odds_base_url(detail: dict[str, Any], settings: Settings) -> str:
    hub = as_str(detail.get("odds_hub")).strip()
    for scheme in ("https://", "http://"):
        if hub.startswith(scheme):
            hub = hub[len(scheme):]
    if detail.get("connect_odds_hub") and hub:
        return f"https://{hub}"
    return settings.DCRIC99_DEFAULT_ODDS_BASE_URL


def score_event_candidate(event_name: str, matches: list[FeedMatch]) -> float:
    label = event_name.strip()
    if not label or not matches:
        return 0.0

    parsed = parse_teams_from_name(label)
    best = 0.0
    for match in matches:
        match_label = f"{match.team_a_full} {match.team_b_full}".strip()
        best = max(best, token_overlap(label, match_label))
        if parsed:
            best = max(
                best,
                token_overlap(match.team_a_full, parsed[0]) + token_overlap(match.team_b_full, parsed[1]),
                token_overlap(match.team_a_full, parsed[1]) + token_overlap(match.team_b_full, parsed[0]),
            )
    return best


def rank_event_candidates(
    events: list[dict[str, Any]], matches: list[FeedMatch], min_score: float
) -> list[EventCandidate]:
    """Good-score events first, then by score, in-play, and earliest open date.

    Without a match list to compare against, events whose name parses into two
    teams rank as good.
    """
    candidates = []
    for entry in events:
        name = as_str(entry.get("event_name")) or as_str(entry.get("name"))
        named = parse_teams_from_name(name) is not None
        if matches:
            score = score_event_candidate(name, matches)
            good = score >= min_score
        else:
            score = 1.0 if named else 0.2
            good = named
        candidates.append(
            EventCandidate(entry, score, as_number(entry.get("in_play")), good)
        )

    # Stable sorts, least significant key first
    candidates.sort(key=lambda c: as_str(c.entry.get("open_date")))
    candidates.sort(key=lambda c: (c.has_good_score, c.score, c.in_play), reverse=True)
    return candidates


def collect_market_ids(event_payload: dict[str, Any]) -> list[str]:
    """Unique ``market_id`` values from every list and object in the event, in order."""
    seen: dict[str, None] = {}
    for value in event_payload.values():
        if isinstance(value, list):
            for row in value:
                market_id = as_str(as_record(row).get("market_id")).strip()
                if market_id:
                    seen.setdefault(market_id, None)
        elif isinstance(value, dict):
            market_id = as_str(value.get("market_id")).strip()
            if market_id:
                seen.setdefault(market_id, None)
    return list(seen)[:MAX_MARKET_IDS]


def selection_names(event_payload: dict[str, Any]) -> dict[str, str]:
    names: dict[str, str] = {}
    runner_groups = [
        as_record(market).get("runners") for market in as_list(event_payload.get("markets"))
    ] + [
        as_record(book).get("book_maker_odds") for book in as_list(event_payload.get("book_makers"))
    ]
    for group in runner_groups:
        for runner in as_list(group):
            selection_id = as_str(as_record(runner).get("selection_id")).strip()
            name = as_str(as_record(runner).get("name")).strip()
            if selection_id and name:
                names.setdefault(selection_id, name)
    return names


def market_names(event_payload: dict[str, Any]) -> dict[str, str]:
    names: dict[str, str] = {}
    for value in event_payload.values():
        if not isinstance(value, list):
            continue
        for row in value:
            record = as_record(row)
            market_id = as_str(record.get("market_id")).strip()
            name = (
                as_str(record.get("name"))
                or as_str(record.get("market_name"))
                or as_str(record.get("fancy_name"))
                or as_str(record.get("runnerName"))
            ).strip()
            if market_id and name:
                names.setdefault(market_id, name)
    return names


def parse_odds_rows(rows: list[str], detail: dict[str, Any]) -> list[ProviderMarket]:
    """Split ``a|b|c|...`` rows into markets using the layout in ``market_odds_keys``.

    The first ``skip_keys`` fields are market header; each runner then spans
    ``runner_key`` fields starting with its selection id. A runner's odds are
    the mean of its positive top back and top lay.
    """
    keys = as_record(detail.get("market_odds_keys"))
    market_id_index = int(as_number(keys.get("market_id"), -1))
    skip_keys = max(0, int(as_number(keys.get("skip_keys"), DEFAULT_SKIP_KEYS)))
    runner_key = max(1, int(as_number(keys.get("runner_key"), DEFAULT_RUNNER_KEY)))
    if market_id_index < 0:
        return []

    event_payload = as_record(detail.get("event"))
    runner_names = selection_names(event_payload)
    names = market_names(event_payload)

    markets: list[ProviderMarket] = []
    for row in rows:
        fields = str(row).split("|")
        if len(fields) <= skip_keys or market_id_index >= len(fields):
            continue
        market_id = fields[market_id_index].strip()
        if not market_id:
            continue

        runners = []
        for index in range(skip_keys, len(fields), runner_key):
            selection_id = fields[index].strip()
            if not selection_id:
                continue
            prices = [
                price
                for price in (_field_number(fields, index + BACK_OFFSET), _field_number(fields, index + LAY_OFFSET))
                if price > 0
            ]
            odds = sum(prices) / len(prices) if prices else 0.0
            runners.append(Runner(selection_id, runner_names.get(selection_id, ""), odds))

        if len(runners) >= 2:
            markets.append(ProviderMarket(market_id, names.get(market_id, ""), runners))
    return markets


def pick_primary_pair(
    detail: dict[str, Any], markets: list[ProviderMarket], fallback_event_name: str = ""
) -> OddsPair | None:
    """First market with exactly two active, distinctly named runners becomes the team pair."""
    meta = as_record(as_record(detail.get("event")).get("event"))
    event_name = (
        as_str(meta.get("event_name"))
        or as_str(meta.get("name"))
        or as_str(meta.get("competition_name"))
        or fallback_event_name
    )
    parsed = parse_teams_from_name(event_name)

    for market in markets:
        active = market.active_runners
        if len(active) != 2:
            continue
        runner_a, runner_b = active
        team_a = runner_a.name.strip() or (parsed[0] if parsed else "")
        team_b = runner_b.name.strip() or (parsed[1] if parsed else "")
        if not team_a or not team_b or normalize_team_name(team_a) == normalize_team_name(team_b):
            continue

        probability_a = parse_bookmaker_probability(runner_a.odds)
        probability_b = parse_bookmaker_probability(runner_b.odds)
        if not probability_a or not probability_b:
            continue
        prices = to_price_pair(probability_a, probability_b)
        if prices is None:
            continue

        return OddsPair(
            team_a=team_a,
            team_b=team_b,
            price_a=prices[0],
            price_b=prices[1],
            provider=PROVIDER,
            secondary_markets=extract_secondary_markets(markets, source=PROVIDER),
        )
    return None


def dedupe_pairs(pairs: list[OddsPair]) -> list[OddsPair]:
    deduped: dict[tuple[str, str], OddsPair] = {}
    for pair in pairs:
        key = (normalize_team_name(pair.team_a), normalize_team_name(pair.team_b))
        if key in deduped or (key[1], key[0]) in deduped:
            continue
        deduped[key] = pair
    return list(deduped.values())


def _field_number(fields: list[str], index: int) -> float:
    if index >= len(fields):
        return 0.0
    return as_number(fields[index].strip())
