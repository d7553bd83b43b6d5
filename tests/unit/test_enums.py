"""Tests for pm_common.enums: values are the strings pushed to clients and stored."""

import json

from src.pm_common.enums import (
    AuditType,
    MarketType,
    PositionStatus,
    RunnerType,
    SettlementOutcome,
    Side,
    WithdrawalStatus,
)


class TestWireValues:
    def test_str_enums_serialize_as_values(self) -> None:
        assert json.dumps({"side": Side.NO}) == '{"side": "no"}'
        assert PositionStatus.SETTLED == "settled"

    def test_outcomes(self) -> None:
        assert {o.value for o in SettlementOutcome} == {"win", "lose", "void"}

    def test_withdrawal_statuses(self) -> None:
        assert {s.value for s in WithdrawalStatus} == {"pending", "approved", "rejected"}

    def test_runner_types(self) -> None:
        assert RunnerType.OVER_UNDER == "overunder"


class TestMarketType:
    def test_ids_are_fixed(self) -> None:
        assert [int(m) for m in MarketType] == list(range(1, 9))
        assert MarketType(6) is MarketType.TOTAL_WICKETS


class TestAuditType:
    def test_refresh_variants(self) -> None:
        values = {a.value for a in AuditType}
        assert {
            "gateway_refresh",
            "gateway_refresh_empty_kept_cache",
            "gateway_refresh_failed",
        } <= values
