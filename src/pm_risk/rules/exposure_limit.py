"""Exposure caps, checked before any debit.

Exposure is the sum of ``stake_remaining`` over open positions.
"""
from src.pm_common.errors import MatchExposureLimitError, UserExposureLimitError


def check_user_exposure(current: float, amount: float, limit: float) -> None:
    if current + amount > limit:
        raise UserExposureLimitError(limit)


def check_match_exposure(current: float, amount: float, limit: float) -> None:
    if current + amount > limit:
        raise MatchExposureLimitError(limit)
