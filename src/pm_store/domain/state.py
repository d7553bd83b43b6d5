"""EngineState: the single in-memory owner of matches, wallets and positions.

Injected into every service instead of living in module globals, so tests
build a fresh one per case. Reads are plain dict lookups; mutations happen in
the services while they hold the relevant keyed locks from ``locks``.
"""

import asyncio
from collections import defaultdict, deque
from datetime import datetime
from typing import Any

from config.settings import Settings
from src.pm_account.domain.models import Position, User, Withdrawal
from src.pm_clearing.domain.models import Settlement
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import AuditType, PositionStatus
from src.pm_common.id_generator import generate_id
from src.pm_common.money import round2
from src.pm_market.domain.history import PriceHistory
from src.pm_market.domain.models import Market, Match, TradingStatus
from src.pm_market.domain.threshold_lock import ThresholdLockRegistry
from src.pm_order.domain.models import Order
from src.pm_store.domain.models import AuditEntry

TRADE_TAPE_LIMIT = 20


class KeyedLocks:
    """Per-key asyncio locks. Acquire user before match when both are needed."""

    def __init__(self) -> None:
        self._user_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._match_locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def user(self, user_id: str) -> asyncio.Lock:
        return self._user_locks[user_id]

    def match(self, match_id: int) -> asyncio.Lock:
        return self._match_locks[match_id]


class EngineState:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.matches: dict[int, Match] = {}
        self.markets: dict[int, list[Market]] = {}
        self.trading_status: dict[int, TradingStatus] = {}
        self.users: dict[str, User] = {}
        self.positions: dict[str, Position] = {}
        self.orders: list[Order] = []
        self.settlements: dict[int, Settlement] = {}
        self.withdrawals: dict[str, Withdrawal] = {}
        self.audits: deque[AuditEntry] = deque(maxlen=settings.AUDIT_RETENTION)
        self.history = PriceHistory(settings.MARKET_HISTORY_LIMIT)
        self.threshold_locks = ThresholdLockRegistry()
        self.locks = KeyedLocks()

        # refresh bookkeeping
        self.fetched_at: datetime | None = None
        self.stale: bool = True
        self.feed_source: str = "empty"
        self.odds_counts: dict[str, int] = {}

    # --- users ---

    def get_or_create_user(self, user_id: str) -> User:
        user = self.users.get(user_id)
        if user is None:
            now = utc_now()
            user = User(
                id=user_id,
                balance=round2(self.settings.STARTING_BALANCE),
                created_at=now,
                updated_at=now,
            )
            self.users[user_id] = user
        return user

    # --- matches / markets ---

    def get_match(self, match_id: int) -> Match | None:
        return self.matches.get(match_id)

    def get_markets(self, match_id: int) -> list[Market]:
        return self.markets.get(match_id, [])

    def get_trading_status(self, match_id: int) -> TradingStatus:
        status = self.trading_status.get(match_id)
        if status is None:
            status = TradingStatus()
            self.trading_status[match_id] = status
        return status

    def is_settled(self, match_id: int) -> bool:
        return match_id in self.settlements

    # --- positions / exposure ---

    def positions_for_user(self, user_id: str) -> list[Position]:
        return [p for p in self.positions.values() if p.user_id == user_id]

    def open_positions_for_match(self, match_id: int) -> list[Position]:
        return [
            p for p in self.positions.values()
            if p.match_id == match_id and p.status == PositionStatus.OPEN
        ]

    def user_exposure(self, user_id: str) -> float:
        return round2(sum(
            p.stake_remaining for p in self.positions.values()
            if p.user_id == user_id and p.status == PositionStatus.OPEN
        ))

    def match_exposure(self, match_id: int) -> float:
        return round2(sum(p.stake_remaining for p in self.open_positions_for_match(match_id)))

    # --- orders ---

    def recent_orders(self, match_id: int, limit: int = TRADE_TAPE_LIMIT) -> list[Order]:
        """Newest first."""
        tape = [o for o in reversed(self.orders) if o.match_id == match_id]
        return tape[:limit]

    # --- audit ---

    def append_audit(self, audit_type: AuditType, details: dict[str, Any]) -> AuditEntry:
        entry = AuditEntry(id=generate_id("AUD"), at=utc_now(), type=audit_type, details=details)
        self.audits.append(entry)
        return entry

    def latest_audits(self, limit: int) -> list[AuditEntry]:
        """Newest first."""
        return list(reversed(self.audits))[:limit]
