"""Configurable JSON odds scrapers.

``ODDS_SCRAPER_SITES_JSON`` holds a JSON list of site configs:

    [{"name": "site", "url": "https://...", "format": "json",
      "eventsPath": "data.events", "homeField": "home.name",
      "awayField": "away.name", "homeOddsField": "odds.home",
      "awayOddsField": "odds.away"}]

Only ``format == "json"`` sites are used; others are skipped at load time.
"""

import asyncio
import json
import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from config.settings import Settings
from src.pm_feed.domain.models import OddsPair
from src.pm_feed.domain.odds import parse_odds_probability, to_price_pair
from src.pm_feed.infrastructure.http_client import FeedHttpClient, as_list, as_record

logger = logging.getLogger(__name__)


class ScraperSite(BaseModel):
    name: str
    url: str
    format: str = "json"
    eventsPath: str = ""
    homeField: str = "home"
    awayField: str = "away"
    homeOddsField: str = "homeOdds"
    awayOddsField: str = "awayOdds"


def load_scraper_sites(raw: str) -> list[ScraperSite]:
    """Parse the site list; malformed JSON or entries are logged and dropped."""
    if not raw.strip():
        return []
    try:
        entries = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("ODDS_SCRAPER_SITES_JSON is not valid JSON: %s", exc)
        return []

    sites = []
    for entry in as_list(entries):
        try:
            site = ScraperSite.model_validate(entry)
        except ValidationError as exc:
            logger.warning("skipping scraper site config: %s", exc)
            continue
        if site.format.lower() != "json":
            logger.warning("skipping scraper site %s: only JSON sites are supported", site.name)
            continue
        sites.append(site)
    return sites


def read_path(record: Any, path: str) -> Any:
    """``read_path({"a": {"b": 1}}, "a.b") == 1``; missing segments give None."""
    if not path:
        return None
    current = record
    for part in (p for p in path.split(".") if p):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def parse_scraped_event(event: dict[str, Any], site: ScraperSite) -> OddsPair | None:
    home = str(read_path(event, site.homeField) or "").strip()
    away = str(read_path(event, site.awayField) or "").strip()
    if not home or not away:
        return None

    probability_home = parse_odds_probability(read_path(event, site.homeOddsField))
    probability_away = parse_odds_probability(read_path(event, site.awayOddsField))
    if not probability_home or not probability_away:
        return None

    prices = to_price_pair(probability_home, probability_away)
    if prices is None:
        return None
    return OddsPair(team_a=home, team_b=away, price_a=prices[0], price_b=prices[1], provider=site.name)


class JsonScraperProvider:
    def __init__(self, http: FeedHttpClient, settings: Settings) -> None:
        self._http = http
        self._settings = settings
        self.sites = load_scraper_sites(settings.ODDS_SCRAPER_SITES_JSON)

    async def fetch_pairs(self) -> list[OddsPair]:
        if not self.sites:
            return []
        by_site = await asyncio.gather(*(self._fetch_site(site) for site in self.sites))
        return [pair for pairs in by_site for pair in pairs]

    async def _fetch_site(self, site: ScraperSite) -> list[OddsPair]:
        payload = await self._http.get_json(
            site.url, label=f"scraper_{site.name}", timeout=self._settings.FETCH_TIMEOUT_SECONDS
        )
        rows = as_list(read_path(as_record(payload), site.eventsPath)) if site.eventsPath else as_list(payload)
        pairs = []
        for row in rows:
            pair = parse_scraped_event(as_record(row), site)
            if pair:
                pairs.append(pair)
        logger.debug("scraper %s: %d pairs", site.name, len(pairs))
        return pairs
