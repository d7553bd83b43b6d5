"""Modeled Match-Winner pricing.

Fallback YES price for team A when no external odds match a fixture. The
model is deterministic: the same match state always yields the same price.
"""

import math
from dataclasses import dataclass

from src.pm_common.id_generator import stable_hash
from src.pm_common.money import clamp_price, clamp_probability
from src.pm_feed.domain.models import ScoreState
from src.pm_feed.domain.normalizer import (
    detect_winner_from_status,
    infer_limited_overs,
    infer_par_score,
)

BASE_PROBABILITY = 0.5
SEED_BIAS_STEP = 0.006


@dataclass(frozen=True)
class ModelInput:
    external_id: str
    team_a_full: str
    team_b_full: str
    score_a: ScoreState
    score_b: ScoreState
    is_live: bool
    status_text: str = ""
    match_name: str = ""
    match_type: str = ""


def seed_bias(external_id: str) -> float:
    """Per-match nudge in [-0.024, 0.024] so unpriced fixtures differ."""
    return ((stable_hash(external_id) % 9) - 4) * SEED_BIAS_STEP


def compute_modeled_price_a(params: ModelInput) -> int:
    winner = detect_winner_from_status(params.status_text, params.team_a_full, params.team_b_full)
    if winner == "A":
        return 99
    if winner == "B":
        return 1

    probability = BASE_PROBABILITY + seed_bias(params.external_id)

    total_overs = infer_limited_overs(params.match_name, params.match_type)
    score_a, score_b = params.score_a, params.score_b

    if score_a.has_score or score_b.has_score:
        run_diff = score_a.runs - score_b.runs
        probability += math.tanh(run_diff / 45) * 0.2
        wicket_edge = score_b.wickets - score_a.wickets
        probability += math.tanh(wicket_edge / 3) * 0.1

    overs_a = score_a.overs or 0.0
    overs_b = score_b.overs or 0.0

    if params.is_live and total_overs and score_b.has_score and overs_b > 0.2:
        probability += _chase_edge(score_a, score_b, total_overs)
    elif params.is_live and total_overs and score_a.has_score and overs_a > 0.5:
        probability += _first_innings_edge(score_a, total_overs)

    return clamp_price(clamp_probability(probability) * 100)


def _chase_edge(score_a: ScoreState, score_b: ScoreState, total_overs: int) -> float:
    chase_overs = max(0.1, score_b.overs or 0.0)
    target = score_a.runs + 1
    runs_needed = max(0, target - score_b.runs)
    remaining_overs = max(0.0, total_overs - chase_overs)

    edge = 0.0
    if remaining_overs <= 0.1:
        # Innings over: whoever is ahead is all but decided
        edge += 0.35 if runs_needed > 0 else -0.35
    else:
        required_rate = runs_needed / remaining_overs
        current_rate = score_b.runs / chase_overs
        edge += math.tanh((required_rate - current_rate) / 2.4) * 0.28

    edge += math.tanh((score_b.wickets - 4) / 2.4) * 0.14
    return edge


def _first_innings_edge(score_a: ScoreState, total_overs: int) -> float:
    batting_overs = max(0.1, score_a.overs or 0.0)
    projected = (score_a.runs / batting_overs) * total_overs
    par = infer_par_score(total_overs)
    edge = math.tanh((projected - par) / 40) * 0.16
    edge += math.tanh((4 - score_a.wickets) / 2.8) * 0.09
    return edge
