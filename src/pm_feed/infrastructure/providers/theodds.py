"""The Odds API: head-to-head decimal odds for cricket sport keys."""

import asyncio
import logging
from typing import Any

from config.settings import Settings
from src.pm_feed.domain.models import OddsPair
from src.pm_feed.domain.normalizer import normalize_team_name
from src.pm_feed.domain.odds import parse_odds_probability, to_price_pair
from src.pm_feed.infrastructure.http_client import (
    FeedHttpClient,
    as_list,
    as_number,
    as_record,
    as_str,
)

logger = logging.getLogger(__name__)

PROVIDER = "the-odds-api"
MAX_SPORT_KEYS = 8


class TheOddsProvider:
    def __init__(self, http: FeedHttpClient, settings: Settings) -> None:
        self._http = http
        self._settings = settings

    @property
    def enabled(self) -> bool:
        return bool(self._settings.ODDS_API_KEY)

    async def fetch_sport_keys(self) -> list[str]:
        configured = self._settings.odds_sport_keys
        if configured:
            return configured

        payload = await self._http.get_json(
            f"{self._base_url}/sports/",
            label="theodds_sports",
            timeout=self._settings.FETCH_TIMEOUT_SECONDS,
            params={"apiKey": self._settings.ODDS_API_KEY},
        )
        keys = [as_str(as_record(entry).get("key")) for entry in as_list(payload)]
        return [key for key in keys if key.startswith("cricket_")][:MAX_SPORT_KEYS]

    async def fetch_pairs(self) -> list[OddsPair]:
        if not self.enabled:
            return []

        sport_keys = await self.fetch_sport_keys()
        if not sport_keys:
            return []

        by_sport = await asyncio.gather(*(self._fetch_sport(key) for key in sport_keys))
        return [pair for pairs in by_sport for pair in pairs]

    async def _fetch_sport(self, sport_key: str) -> list[OddsPair]:
        payload = await self._http.get_json(
            f"{self._base_url}/sports/{sport_key}/odds/",
            label=f"theodds_{sport_key}",
            timeout=self._settings.FETCH_TIMEOUT_SECONDS,
            params={
                "apiKey": self._settings.ODDS_API_KEY,
                "regions": self._settings.ODDS_REGIONS,
                "markets": "h2h",
                "oddsFormat": "decimal",
                "dateFormat": "iso",
            },
        )
        pairs = []
        for event in as_list(payload):
            pair = parse_the_odds_event(as_record(event))
            if pair:
                pairs.append(pair)
        return pairs

    @property
    def _base_url(self) -> str:
        return self._settings.ODDS_API_BASE_URL.rstrip("/")


def parse_the_odds_event(event: dict[str, Any]) -> OddsPair | None:
    home = as_str(event.get("home_team"))
    away = as_str(event.get("away_team"))
    if not home or not away:
        return None

    outcomes: list[dict[str, Any]] = []
    for bookmaker in as_list(event.get("bookmakers")):
        markets = [as_record(m) for m in as_list(as_record(bookmaker).get("markets"))]
        h2h = next((m for m in markets if as_str(m.get("key")) == "h2h"), None)
        if h2h is None and markets:
            h2h = markets[0]
        if h2h is None:
            continue
        candidates = [as_record(o) for o in as_list(h2h.get("outcomes"))]
        if len(candidates) >= 2:
            outcomes = candidates
            break

    if len(outcomes) < 2:
        return None

    def price_for(team: str) -> float:
        wanted = normalize_team_name(team)
        for outcome in outcomes:
            if normalize_team_name(as_str(outcome.get("name"))) == wanted:
                return as_number(outcome.get("price"))
        return 0.0

    probability_home = parse_odds_probability(price_for(home))
    probability_away = parse_odds_probability(price_for(away))
    if not probability_home or not probability_away:
        return None

    prices = to_price_pair(probability_home, probability_away)
    if prices is None:
        return None
    return OddsPair(team_a=home, team_b=away, price_a=prices[0], price_b=prices[1], provider=PROVIDER)
