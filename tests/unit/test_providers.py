import asyncio
import json
import logging
from collections.abc import Callable

import httpx
import pytest

from src.pm_common.enums import MarketType
from src.pm_feed.domain.models import FeedMatch, OddsPair, ScoreState
from src.pm_feed.infrastructure.http_client import FeedHttpClient, map_with_concurrency
from src.pm_feed.infrastructure.providers.cricapi import (
    CricApiProvider,
    map_cric_score_row,
    merge_feed_matches,
)
from src.pm_feed.infrastructure.providers.dcric99 import (
    Dcric99Provider,
    collect_market_ids,
    dedupe_pairs,
    odds_base_url,
    parse_odds_rows,
    pick_primary_pair,
    rank_event_candidates,
)
from src.pm_feed.infrastructure.providers.scraper import (
    JsonScraperProvider,
    load_scraper_sites,
    read_path,
)
from src.pm_feed.infrastructure.providers.theodds import TheOddsProvider, parse_the_odds_event
from tests.factories import make_settings

Handler = Callable[[httpx.Request], httpx.Response]


def _http(handler: Handler) -> FeedHttpClient:
    return FeedHttpClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def _row(market_id: str, runners: list[tuple[str, float, float]]) -> str:
    """Pipe row in the default layout: 8 header fields, 14 fields per runner."""
    fields = ["h"] * 8
    fields[1] = market_id
    for selection_id, back, lay in runners:
        block = [""] * 14
        block[0] = selection_id
        block[2] = str(back)
        block[8] = str(lay)
        fields.extend(block)
    return "|".join(fields)


DETAIL = {
    "market_odds_keys": {"market_id": 1},
    "event": {
        "event": {"event_name": "Mumbai Indians vs Chennai Super Kings"},
        "markets": [
            {
                "market_id": "1.1",
                "name": "Match Odds",
                "runners": [
                    {"selection_id": "101", "name": "Mumbai Indians"},
                    {"selection_id": "102", "name": "Chennai Super Kings"},
                ],
            },
            {
                "market_id": "F1",
                "name": "6 Over Runs MI",
                "runners": [
                    {"selection_id": "201", "name": "Over 50.5"},
                    {"selection_id": "202", "name": "Under 50.5"},
                ],
            },
        ],
    },
}

ROWS = [
    _row("1.1", [("101", 1.8, 1.9), ("102", 2.1, 2.2)]),
    _row("F1", [("201", 100, 100), ("202", 100, 100)]),
]


class TestFeedHttpClient:
    async def test_json_payload(self) -> None:
        http = _http(lambda request: httpx.Response(200, json={"ok": 1}))
        assert await http.get_json("https://x.test/a", label="t", timeout=1) == {"ok": 1}

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(503, json={"error": "down"}),
            httpx.Response(200, content=b""),
            httpx.Response(200, content=b"<html>"),
        ],
    )
    async def test_failures_become_none(self, response: httpx.Response) -> None:
        http = _http(lambda request: response)
        assert await http.get_json("https://x.test/a", label="t", timeout=1) is None

    async def test_timeout_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        http = _http(handler)
        with caplog.at_level(logging.ERROR, logger="pm.feed"):
            result = await http.get_json(
                "https://x.test/a", label="slow_feed", timeout=1, params={"apikey": "secret"}
            )
        assert result is None
        assert "is_timeout=True" in caplog.text
        assert "[slow_feed]" in caplog.text
        assert "secret" not in caplog.text

    async def test_map_with_concurrency(self) -> None:
        in_flight = 0
        peak = 0

        async def mapper(item: int) -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1
            if item == 3:
                raise ValueError("bad item")
            return item * 10

        results = await map_with_concurrency(list(range(6)), 2, mapper)
        assert results == [0, 10, 20, None, 40, 50]
        assert peak <= 2


class TestCricApi:
    def test_map_score_row(self) -> None:
        match = map_cric_score_row(
            {
                "id": "m1",
                "t1": "Mumbai Indians [MI]",
                "t2": "Chennai Super Kings [CSK]",
                "t1s": "180/6 (20)",
                "t2s": "150/4 (16)",
                "ms": "live",
                "status": "Chennai Super Kings need 31 runs",
                "matchType": "t20",
                "series": "Indian Premier League (IPL) 2026",
            }
        )
        assert match is not None
        assert (match.team_a, match.team_b) == ("MI", "CSK")
        assert match.score_a.runs == 180
        assert match.is_live is True
        assert match.category == "IPL"
        assert match.time_label == "Now"

    def test_row_without_teams(self) -> None:
        assert map_cric_score_row({"id": "m1", "t1": "India"}) is None

    def test_merge_prefers_non_empty_override(self) -> None:
        base = FeedMatch("m1", "India", "Australia", "IND", "AUS", "Live", ScoreState(), ScoreState(), True, match_type="t20")
        override = FeedMatch("m1", "India", "Australia", "IND", "AUS", "", ScoreState(), ScoreState(), True, match_type="")
        merged = merge_feed_matches(base, override)
        assert merged.status_text == "Live"
        assert merged.match_type == "t20"

    async def test_missing_key_makes_no_requests(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        provider = CricApiProvider(_http(handler), make_settings())
        assert provider.enabled is False
        assert await provider.fetch_matches() == []
        assert calls == []

    async def test_fetch_merges_both_endpoints(self) -> None:
        score_rows = [
            {"id": "m1", "t1": "Mumbai Indians [MI]", "t2": "Chennai Super Kings [CSK]",
             "t1s": "180/6 (20)", "t2s": "150/4 (16)", "ms": "live",
             "status": "Chennai Super Kings need 31 runs", "matchType": "t20", "series": "IPL 2026"},
            {"id": "m2", "t1": "India", "t2": "Australia", "t1s": "", "t2s": "", "ms": "fixture",
             "status": "Match starts at 14:00", "matchType": "odi", "series": "India tour"},
        ]
        current_rows = [
            {"id": "m1", "name": "Mumbai Indians vs Chennai Super Kings, 10th Match", "matchType": "t20",
             "status": "Chennai Super Kings need 31 runs",
             "teamInfo": [{"name": "Mumbai Indians", "shortname": "MI"},
                          {"name": "Chennai Super Kings", "shortname": "CSK"}],
             "score": [{"r": 180, "w": 6, "o": 20, "inning": "Mumbai Indians Inning 1"},
                       {"r": 150, "w": 4, "o": 16, "inning": "Chennai Super Kings Inning 1"}]},
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["apikey"] == "key"
            if request.url.path.endswith("/cricScore"):
                return httpx.Response(200, json={"status": "success", "data": score_rows})
            return httpx.Response(200, json={"status": "success", "data": current_rows})

        provider = CricApiProvider(_http(handler), make_settings(CRICKETDATA_API_KEY="key"))
        matches = await provider.fetch_matches()

        assert [m.external_id for m in matches] == ["m1", "m2"]
        assert matches[0].match_name == "Mumbai Indians vs Chennai Super Kings, 10th Match"
        assert matches[0].score_b.wickets == 4
        assert matches[1].is_live is False

    async def test_non_success_status(self) -> None:
        provider = CricApiProvider(
            _http(lambda request: httpx.Response(200, json={"status": "failure", "reason": "quota"})),
            make_settings(CRICKETDATA_API_KEY="key"),
        )
        assert await provider.fetch_matches() == []


class TestTheOdds:
    EVENT = {
        "home_team": "Mumbai Indians",
        "away_team": "Chennai Super Kings",
        "bookmakers": [
            {"markets": [{"key": "h2h", "outcomes": [
                {"name": "Chennai Super Kings", "price": 2.5},
                {"name": "Mumbai Indians", "price": 1.6},
            ]}]}
        ],
    }

    def test_parse_event(self) -> None:
        pair = parse_the_odds_event(self.EVENT)
        assert pair is not None
        assert (pair.team_a, pair.price_a, pair.price_b) == ("Mumbai Indians", 61, 39)
        assert pair.provider == "the-odds-api"

    def test_event_without_outcomes(self) -> None:
        assert parse_the_odds_event({"home_team": "A", "away_team": "B", "bookmakers": []}) is None

    async def test_discovers_cricket_sports(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            if request.url.path == "/v4/sports/":
                return httpx.Response(200, json=[{"key": "cricket_ipl"}, {"key": "soccer_epl"}])
            return httpx.Response(200, json=[self.EVENT])

        provider = TheOddsProvider(_http(handler), make_settings(ODDS_API_KEY="k"))
        pairs = await provider.fetch_pairs()

        assert len(pairs) == 1
        assert "/v4/sports/cricket_ipl/odds/" in seen
        assert not any("soccer" in path for path in seen)

    async def test_disabled_without_key(self) -> None:
        provider = TheOddsProvider(_http(lambda request: httpx.Response(500)), make_settings())
        assert await provider.fetch_pairs() == []


class TestDcric99Parsing:
    def test_collect_market_ids(self) -> None:
        assert collect_market_ids(DETAIL["event"]) == ["1.1", "F1"]

    def test_parse_rows_averages_back_and_lay(self) -> None:
        markets = parse_odds_rows(ROWS, DETAIL)
        assert [m.market_name for m in markets] == ["Match Odds", "6 Over Runs MI"]
        runner = markets[0].runners[0]
        assert runner.name == "Mumbai Indians"
        assert runner.odds == pytest.approx(1.85)

    def test_parse_rows_needs_layout(self) -> None:
        assert parse_odds_rows(ROWS, {"event": DETAIL["event"]}) == []

    def test_primary_pair_and_secondary_markets(self) -> None:
        pair = pick_primary_pair(DETAIL, parse_odds_rows(ROWS, DETAIL))
        assert pair is not None
        assert (pair.team_a, pair.team_b) == ("Mumbai Indians", "Chennai Super Kings")
        assert pair.price_a + pair.price_b == 100
        assert pair.price_a > pair.price_b
        (quote,) = pair.secondary_markets
        assert quote.market_id == MarketType.POWERPLAY_RUNS
        assert quote.threshold == 50.5

    def test_odds_hub(self) -> None:
        settings = make_settings()
        assert odds_base_url({"odds_hub": "http://hub.test", "connect_odds_hub": True}, settings) == "https://hub.test"
        assert odds_base_url({"odds_hub": "hub.test"}, settings) == "https://api.dcric99.com"

    def test_rank_prefers_matching_events(self) -> None:
        matches = [FeedMatch("m1", "India", "Australia", "IND", "AUS", "", ScoreState(), ScoreState(), True)]
        events = [
            {"event_id": "1", "event_name": "England vs Pakistan", "in_play": 1},
            {"event_id": "2", "event_name": "India vs Australia", "in_play": 0},
        ]
        ranked = rank_event_candidates(events, matches, 0.75)
        assert ranked[0].entry["event_id"] == "2"
        assert ranked[0].has_good_score is True
        assert ranked[1].has_good_score is False

    def test_dedupe_either_orientation(self) -> None:
        pairs = [
            OddsPair("India", "Australia", 60, 40, "dcric99"),
            OddsPair("Australia", "India", 40, 60, "dcric99"),
        ]
        assert len(dedupe_pairs(pairs)) == 1

    async def test_fetch_pairs_end_to_end(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path.endswith("/event_list"):
                return httpx.Response(200, json={"data": {"events": [
                    {"event_id": "E1", "event_type_id": 4, "event_name": "Mumbai Indians vs Chennai Super Kings"},
                    {"event_id": "E2", "event_type_id": 1, "event_name": "Arsenal vs Chelsea"},
                ]}})
            if path.endswith("/event/E1"):
                return httpx.Response(200, json={"data": DETAIL})
            if path.endswith("/ws/getMarketDataNew"):
                assert b"market_ids" in request.content
                return httpx.Response(200, json=ROWS)
            return httpx.Response(404)

        provider = Dcric99Provider(_http(handler), make_settings(DCRIC99_ENABLED=True))
        pairs = await provider.fetch_pairs([])

        assert len(pairs) == 1
        assert pairs[0].provider == "dcric99"


class TestScraper:
    def test_load_sites_skips_bad_entries(self) -> None:
        raw = json.dumps([
            {"name": "good", "url": "https://odds.test/feed"},
            {"name": "html", "url": "https://odds.test/page", "format": "html"},
            {"url": "https://odds.test/no-name"},
        ])
        assert [s.name for s in load_scraper_sites(raw)] == ["good"]
        assert load_scraper_sites("{not json") == []
        assert load_scraper_sites("") == []

    def test_read_path(self) -> None:
        assert read_path({"a": {"b": 1}}, "a.b") == 1
        assert read_path({"a": 1}, "a.b") is None
        assert read_path({"a": 1}, "") is None

    async def test_fetch_site(self) -> None:
        sites = json.dumps([{
            "name": "oddsite",
            "url": "https://odds.test/feed",
            "eventsPath": "data.events",
            "homeField": "home.name",
            "awayField": "away.name",
            "homeOddsField": "odds.home",
            "awayOddsField": "odds.away",
        }])
        payload = {"data": {"events": [
            {"home": {"name": "India"}, "away": {"name": "Australia"}, "odds": {"home": "1.5", "away": "2.75"}},
            {"home": {"name": "England"}, "away": {}, "odds": {"home": "1.5", "away": "2.5"}},
        ]}}
        provider = JsonScraperProvider(
            _http(lambda request: httpx.Response(200, json=payload)),
            make_settings(ODDS_SCRAPER_SITES_JSON=sites),
        )
        pairs = await provider.fetch_pairs()

        assert len(pairs) == 1
        assert (pairs[0].team_a, pairs[0].provider) == ("India", "oddsite")
        assert pairs[0].price_a > pairs[0].price_b
