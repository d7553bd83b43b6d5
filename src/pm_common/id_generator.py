"""ID strategies.

* ``StableHashIdAssigner`` derives numeric match ids from external string ids
  and provides the seeded hashes used for deterministic price jitter.
* ``SnowflakeIdGenerator`` issues unique, time-ordered ids for orders,
  positions, withdrawals and audit entries.
"""

import hashlib
import threading
import time
from typing import Protocol


class IdAssigner(Protocol):
    def match_id(self, external_id: str) -> int: ...

    def seed(self, text: str) -> int: ...


class StableHashIdAssigner:
    """Deterministic string -> positive int mapping.

    Uses the first 6 bytes of BLAKE2b, so ids live in [1, 2**48] and are
    identical across processes and restarts.
    """

    _BYTES = 6

    def seed(self, text: str) -> int:
        digest = hashlib.blake2b(text.encode("utf-8"), digest_size=self._BYTES).digest()
        return int.from_bytes(digest, "big") + 1

    def match_id(self, external_id: str) -> int:
        return self.seed(external_id)


class SnowflakeIdGenerator:
    """Simple snowflake ID generator.

    Layout (64 bits):
      - 41 bits: millisecond timestamp (since custom epoch)
      - 10 bits: machine_id (0-1023)
      - 12 bits: sequence (0-4095 per millisecond)
    """

    _EPOCH_MS = 1_700_000_000_000  # 2023-11-14 approx
    _MACHINE_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, machine_id: int = 0) -> None:
        if not (0 <= machine_id < (1 << self._MACHINE_BITS)):
            raise ValueError(f"machine_id must be 0-{(1 << self._MACHINE_BITS) - 1}")
        self._machine_id = machine_id
        self._sequence = 0
        self._last_timestamp_ms = -1
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            ts = self._current_ms()
            if ts == self._last_timestamp_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    ts = self._wait_next_ms(ts)
            else:
                self._sequence = 0

            self._last_timestamp_ms = ts
            id_int = (
                ((ts - self._EPOCH_MS) << (self._MACHINE_BITS + self._SEQUENCE_BITS))
                | (self._machine_id << self._SEQUENCE_BITS)
                | self._sequence
            )
            return str(id_int)

    def _current_ms(self) -> int:
        return int(time.time() * 1000)

    def _wait_next_ms(self, last_ts: int) -> int:
        ts = self._current_ms()
        while ts <= last_ts:
            ts = self._current_ms()
        return ts


_default_generator = SnowflakeIdGenerator()
_default_assigner = StableHashIdAssigner()


def generate_id(prefix: str = "") -> str:
    """Generate a unique snowflake-style string ID, optionally prefixed ("ORD-...")."""
    raw = _default_generator.next_id()
    return f"{prefix}-{raw}" if prefix else raw


def stable_hash(text: str) -> int:
    """Module-level default for seeded jitter and match ids."""
    return _default_assigner.seed(text)
