"""CricAPI score feed: the primary source of the match list.

Two endpoints are merged by external id: ``cricScore`` (compact rows, one
score string per side) and ``currentMatches`` (team info plus per-innings
score rows). ``currentMatches`` wins when both describe the same fixture.
"""

import asyncio
import dataclasses
import logging
from typing import Any

from config.settings import Settings
from src.pm_common.datetime_utils import parse_iso
from src.pm_feed.domain.models import FeedMatch, ScoreState
from src.pm_feed.domain.normalizer import (
    infer_category,
    infer_is_live_from_status,
    infer_live_from_mode,
    normalize_team_name,
    parse_compact_score,
    parse_slash_score,
    parse_team_label,
    parse_teams_from_name,
    short_code,
)
from src.pm_feed.infrastructure.http_client import (
    FeedHttpClient,
    as_list,
    as_number,
    as_record,
    as_str,
)

logger = logging.getLogger(__name__)


class CricApiProvider:
    def __init__(self, http: FeedHttpClient, settings: Settings) -> None:
        self._http = http
        self._settings = settings

    @property
    def enabled(self) -> bool:
        return bool(self._settings.CRICKETDATA_API_KEY)

    async def fetch_matches(self) -> list[FeedMatch]:
        """Live matches first. Empty when no API key is configured or both calls fail."""
        if not self.enabled:
            return []

        score_rows, current_rows = await asyncio.gather(
            self._fetch_rows("cricScore"), self._fetch_rows("currentMatches")
        )

        merged: dict[str, FeedMatch] = {}
        for row in score_rows:
            mapped = map_cric_score_row(as_record(row))
            if mapped:
                merged[mapped.external_id] = mapped
        for row in current_rows:
            mapped = map_current_match_row(as_record(row))
            if mapped:
                existing = merged.get(mapped.external_id)
                merged[mapped.external_id] = (
                    merge_feed_matches(existing, mapped) if existing else mapped
                )

        return sorted(merged.values(), key=lambda m: not m.is_live)

    async def _fetch_rows(self, endpoint: str) -> list[Any]:
        payload = as_record(
            await self._http.get_json(
                f"{self._settings.CRICAPI_BASE_URL.rstrip('/')}/{endpoint}",
                label=f"cricapi_{endpoint}",
                timeout=self._settings.SCORE_TIMEOUT_SECONDS,
                params={"apikey": self._settings.CRICKETDATA_API_KEY, "offset": "0"},
            )
        )
        status = as_str(payload.get("status")).lower()
        if status != "success":
            logger.warning("CricAPI %s returned non-success status %r", endpoint, status)
            return []
        return as_list(payload.get("data"))


def format_time_label(is_live: bool, date_time_gmt: str, fallback: str) -> str:
    if is_live:
        return "Now"
    parsed = parse_iso(date_time_gmt) if date_time_gmt else None
    if parsed is not None:
        return parsed.strftime("%b %d, %H:%M")
    return fallback.strip() or "Upcoming"


def map_cric_score_row(row: dict[str, Any]) -> FeedMatch | None:
    external_id = as_str(row.get("id"))
    team_a_raw = as_str(row.get("t1"))
    team_b_raw = as_str(row.get("t2"))
    if not external_id or not team_a_raw or not team_b_raw:
        return None

    team_a = parse_team_label(team_a_raw)
    team_b = parse_team_label(team_b_raw)
    status_text = as_str(row.get("status"))
    match_type = as_str(row.get("matchType"))
    series = as_str(row.get("series"), "Cricket Match")
    score_a = parse_compact_score(as_str(row.get("t1s")))
    score_b = parse_compact_score(as_str(row.get("t2s")))
    is_live = infer_live_from_mode(as_str(row.get("ms")), status_text, score_a, score_b)

    return FeedMatch(
        external_id=external_id,
        team_a_full=team_a.full,
        team_b_full=team_b.full,
        team_a=team_a.short,
        team_b=team_b.short,
        status_text=status_text,
        score_a=score_a,
        score_b=score_b,
        is_live=is_live,
        category=infer_category(series, match_type),
        match_type=match_type,
        match_name=series,
        time_label=format_time_label(
            is_live,
            as_str(row.get("dateTimeGMT")),
            as_str(row.get("date")) or status_text,
        ),
    )


def map_current_match_row(row: dict[str, Any]) -> FeedMatch | None:
    external_id = as_str(row.get("id")) or as_str(row.get("unique_id")) or as_str(row.get("name"))
    if not external_id:
        return None

    name = as_str(row.get("name"), "Cricket Match")
    match_type = as_str(row.get("matchType"))
    status_text = as_str(row.get("status"))

    team_info = [as_record(info) for info in as_list(row.get("teamInfo"))]
    listed = [as_str(team) for team in as_list(row.get("teams")) if as_str(team)]
    parsed = parse_teams_from_name(name)

    def full_name(index: int, fallback: str) -> str:
        if len(team_info) > index and as_str(team_info[index].get("name")):
            return as_str(team_info[index].get("name"))
        if len(listed) > index:
            return listed[index]
        if parsed:
            return parsed[index]
        return fallback

    def short_name(index: int, full: str) -> str:
        if len(team_info) > index and as_str(team_info[index].get("shortname")):
            return as_str(team_info[index].get("shortname"))
        return short_code(full)

    team_a_full = full_name(0, "Team A")
    team_b_full = full_name(1, "Team B")

    score_rows = [as_record(entry) for entry in as_list(row.get("score"))]
    entry_a = _innings_for(score_rows, team_a_full, 0)
    entry_b = _innings_for(score_rows, team_b_full, 1)
    score_a = _score_from_innings(entry_a)
    score_b = _score_from_innings(entry_b)

    is_live = infer_is_live_from_status(status_text)
    return FeedMatch(
        external_id=external_id,
        team_a_full=team_a_full,
        team_b_full=team_b_full,
        team_a=short_name(0, team_a_full),
        team_b=short_name(1, team_b_full),
        status_text=status_text,
        score_a=score_a,
        score_b=score_b,
        is_live=is_live,
        category=infer_category(name, match_type),
        match_type=match_type,
        match_name=name,
        time_label=format_time_label(is_live, as_str(row.get("dateTimeGMT")), as_str(row.get("date"))),
    )


def _innings_for(rows: list[dict[str, Any]], team_full: str, fallback_index: int) -> dict[str, Any] | None:
    team = normalize_team_name(team_full)
    for entry in rows:
        if team and team in normalize_team_name(entry.get("inning")):
            return entry
    return rows[fallback_index] if len(rows) > fallback_index else None


def _score_from_innings(entry: dict[str, Any] | None) -> ScoreState:
    if entry is None:
        return parse_compact_score("")
    runs = round(as_number(entry.get("r")))
    wickets = round(as_number(entry.get("w")))
    return parse_slash_score(f"{runs}/{wickets}", as_str(entry.get("o")))


def merge_feed_matches(base: FeedMatch, override: FeedMatch) -> FeedMatch:
    """Field-wise merge where non-empty fields of ``override`` win."""
    changes = {
        f.name: getattr(override, f.name)
        for f in dataclasses.fields(override)
        if getattr(override, f.name) not in ("", None)
    }
    return dataclasses.replace(base, **changes)
