"""Team and score normalization.

Every provider names teams and reports scores differently. This module turns
them into one shape and provides the token-overlap primitive used by every
fuzzy match in the engine (odds reconciliation, winner inference, option
lookup, settlement).
"""

import re

from src.pm_common.money import clamp
from src.pm_feed.domain.models import ScoreState, TeamLabel

STOP_WORDS: frozenset[str] = frozenset({
    "women",
    "woman",
    "men",
    "man",
    "xi",
    "a",
    "team",
    "club",
    "cricket",
    "the",
    "of",
    "vs",
    "v",
})

FLAG_BY_CODE: dict[str, str] = {
    "IND": "🇮🇳",
    "AUS": "🇦🇺",
    "ENG": "🏴",
    "NZ": "🇳🇿",
    "SA": "🇿🇦",
    "WI": "🌴",
    "PAK": "🇵🇰",
    "BAN": "🇧🇩",
    "AFG": "🇦🇫",
    "SL": "🇱🇰",
    "MI": "🔵",
    "CSK": "🟡",
    "RCB": "🔴",
    "DC": "🔵",
    "KKR": "💜",
    "SRH": "🧡",
}

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_SPACES = re.compile(r"\s+")
_BRACKET_CODE = re.compile(r"^(.*?)\s*\[([^\]]+)\]\s*$")
_OVERS = re.compile(r"^(\d+)(?:\.(\d+))?$")
_COMPACT_SCORE = re.compile(r"(\d+)\s*/\s*(\d+)(?:\s*\(([\d.]+)\))?")
_SLASH_SCORE = re.compile(r"(\d+)\s*/\s*(\d+)")
_THRESHOLD = re.compile(r"(over|under)\s+([\d.]+)", re.IGNORECASE)
_VERSUS = re.compile(r"\s+vs\s+|\s+v\s+", re.IGNORECASE)


def normalize_team_name(name: object) -> str:
    """Lower-case, strip punctuation, collapse whitespace."""
    text = str(name or "").lower()
    text = _NON_ALNUM.sub(" ", text)
    return _SPACES.sub(" ", text).strip()


def tokenize_team_name(name: object) -> list[str]:
    return [
        token
        for token in normalize_team_name(name).split(" ")
        if len(token) > 1 and token not in STOP_WORDS
    ]


def token_overlap(left: object, right: object) -> float:
    """|shared tokens| / max(|left|, |right|), 0 when either side is empty."""
    left_tokens = tokenize_team_name(left)
    right_tokens = tokenize_team_name(right)
    if not left_tokens or not right_tokens:
        return 0.0
    right_set = set(right_tokens)
    hits = sum(1 for token in left_tokens if token in right_set)
    return hits / max(len(left_tokens), len(right_tokens))


def team_pair_key(team_a: str, team_b: str) -> tuple[str, str]:
    return normalize_team_name(team_a), normalize_team_name(team_b)


def short_code(name: str) -> str:
    words = [w for w in normalize_team_name(name).split(" ") if w]
    if not words:
        return "TEAM"
    if len(words) == 1:
        return words[0][:3].upper()
    return "".join(word[0] for word in words[:3]).upper()


def resolve_flag(code: str) -> str:
    return FLAG_BY_CODE.get(str(code or "").upper(), "🏏")


def parse_team_label(raw: object) -> TeamLabel:
    """``"Mumbai Indians [MI]"`` -> TeamLabel("Mumbai Indians", "MI")."""
    value = str(raw or "").strip()
    if not value:
        return TeamLabel(full="Team", short="TEAM")

    with_code = _BRACKET_CODE.match(value)
    if not with_code:
        return TeamLabel(full=value, short=short_code(value))

    full = with_code.group(1).strip() or value
    short = with_code.group(2).strip().upper() or short_code(full)
    return TeamLabel(full=full, short=short)


def parse_cricket_overs(raw: object) -> float | None:
    """``"15.2"`` -> 15 + 2/6. The ball digit is clamped to 0-5."""
    value = str(raw if raw is not None else "").strip()
    if not value:
        return None
    matched = _OVERS.match(value)
    if not matched:
        return None
    whole = int(matched.group(1))
    ball_digits = matched.group(2)
    ball = int(ball_digits[0]) if ball_digits else 0
    return whole + clamp(ball, 0, 5) / 6


def parse_compact_score(raw: object) -> ScoreState:
    """Parse ``"123/4 (15.2)"``; anything else yields ``has_score=False``."""
    value = str(raw or "").strip()
    if not value:
        return ScoreState(display="Yet to bat")

    parsed = _COMPACT_SCORE.search(value)
    if not parsed:
        return ScoreState(display=value)

    runs = max(0, int(parsed.group(1)))
    wickets = max(0, int(parsed.group(2)))
    overs = (parsed.group(3) or "").strip()
    return ScoreState(
        display=f"{runs}/{wickets}",
        overs_text=overs,
        runs=runs,
        wickets=wickets,
        has_score=True,
        overs=parse_cricket_overs(overs),
    )


def parse_slash_score(raw_score: object, raw_overs: object) -> ScoreState:
    """Parse a score split across a ``"runs/wickets"`` field and an overs field."""
    score_text = str(raw_score or "").strip()
    overs_text = str(raw_overs if raw_overs is not None else "").strip()
    parsed = _SLASH_SCORE.search(score_text)
    if not parsed:
        return ScoreState(
            display=score_text or "Yet to bat",
            overs_text=overs_text,
            overs=parse_cricket_overs(overs_text),
        )

    runs = int(parsed.group(1))
    wickets = int(parsed.group(2))
    return ScoreState(
        display=f"{runs}/{wickets}",
        overs_text=overs_text,
        runs=runs,
        wickets=wickets,
        has_score=True,
        overs=parse_cricket_overs(overs_text),
    )


def parse_threshold_from_label(label: object) -> tuple[str, float] | None:
    """``"Over 48.5"`` -> ("over", 48.5)."""
    parsed = _THRESHOLD.search(str(label or ""))
    if not parsed:
        return None
    try:
        threshold = float(parsed.group(2))
    except ValueError:
        return None
    return parsed.group(1).lower(), threshold


def format_threshold(value: float) -> str:
    """48.5 -> "48.5", 30.0 -> "30"."""
    return f"{value:g}"


def parse_teams_from_name(name: object) -> tuple[str, str] | None:
    """``"India vs Australia, 3rd T20I"`` -> ("India", "Australia")."""
    head = str(name or "").split(",")[0].strip()
    if not head:
        return None
    parts = _VERSUS.split(head)
    if len(parts) < 2:
        return None
    return parts[0].strip(), parts[1].strip()


def infer_category(match_name: object, match_type: object) -> str:
    name = str(match_name or "").lower()
    kind = str(match_type or "").lower()
    if "ipl" in name:
        return "IPL"
    if "t20" in kind or "t20" in name:
        return "T20 Leagues"
    if "odi" in kind or "test" in kind or "international" in kind:
        return "International"
    return "Cricket"


def infer_is_live_from_status(status_text: object) -> bool:
    status = str(status_text or "").lower()
    return any(
        marker in status
        for marker in ("live", "innings", "in progress", "running", "need")
    )


def infer_live_from_mode(
    mode: object, status_text: object, score_a: ScoreState, score_b: ScoreState
) -> bool:
    normalized_mode = str(mode or "").strip().lower()
    status = str(status_text or "").strip().lower()

    if normalized_mode == "result" or "won" in status:
        return False
    if normalized_mode == "fixture":
        return False
    if "starts at" in status or "not started" in status:
        return False
    if normalized_mode == "live":
        return True
    if infer_is_live_from_status(status_text):
        return True
    return score_a.has_score or score_b.has_score


def infer_limited_overs(match_name: object, match_type: object) -> int | None:
    text = f"{match_name or ''} {match_type or ''}".lower()
    if "t10" in text:
        return 10
    if "t20" in text or "ipl" in text:
        return 20
    if "odi" in text or "one day" in text:
        return 50
    return None


def infer_par_score(total_overs: int) -> int:
    if total_overs <= 10:
        return 95
    if total_overs <= 20:
        return 165
    if total_overs <= 50:
        return 285
    return 250


def detect_winner_from_status(status_text: object, team_a_full: str, team_b_full: str) -> str | None:
    """Return "A"/"B" when the status names a winner ("X won by ..."), else None."""
    if "won" not in normalize_team_name(status_text):
        return None

    a_hit = token_overlap(team_a_full, status_text)
    b_hit = token_overlap(team_b_full, status_text)
    if a_hit > b_hit and a_hit >= 0.3:
        return "A"
    if b_hit > a_hit and b_hit >= 0.3:
        return "B"
    return None
