"""Tests for pm_common.id_generator and pm_common.datetime_utils."""

from datetime import timezone

import pytest

from src.pm_common.datetime_utils import parse_iso, utc_now
from src.pm_common.id_generator import (
    SnowflakeIdGenerator,
    StableHashIdAssigner,
    generate_id,
    stable_hash,
)


class TestSnowflakeIdGenerator:
    def test_returns_str(self) -> None:
        assert isinstance(SnowflakeIdGenerator(machine_id=1).next_id(), str)

    def test_unique_ids(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=1)
        ids = {gen.next_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_monotonically_increasing(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=1)
        prev = int(gen.next_id())
        for _ in range(100):
            current = int(gen.next_id())
            assert current > prev
            prev = current

    def test_machine_id_range(self) -> None:
        with pytest.raises(ValueError):
            SnowflakeIdGenerator(machine_id=1024)

    def test_prefixed(self) -> None:
        assert generate_id("ORD").startswith("ORD-")


class TestStableHash:
    def test_same_input_same_id(self) -> None:
        assigner = StableHashIdAssigner()
        assert assigner.match_id("cric-1") == assigner.match_id("cric-1")
        assert assigner.match_id("cric-1") == stable_hash("cric-1")

    def test_distinct_inputs_rarely_collide(self) -> None:
        ids = {stable_hash(f"match-{i}") for i in range(5000)}
        assert len(ids) == 5000

    def test_positive_and_bounded(self) -> None:
        value = stable_hash("")
        assert 1 <= value <= 2**48


class TestUtcNow:
    def test_is_utc(self) -> None:
        now = utc_now()
        assert now.tzinfo == timezone.utc

    def test_parse_iso(self) -> None:
        now = utc_now()
        assert parse_iso(now.isoformat()) == now
        assert parse_iso("not a date") is None
