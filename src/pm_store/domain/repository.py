# src/pm_store/domain/repository.py
"""Durable store Protocol: dependency inversion for testability.

The engine runs with this collaborator absent (``NullStore``). Unit tests
inject an ``AsyncMock`` conforming to this Protocol; infrastructure provides
the SQL implementation.
"""

from typing import Protocol

from src.pm_account.domain.models import Position, User
from src.pm_clearing.domain.models import Settlement
from src.pm_order.domain.models import Order
from src.pm_store.domain.models import AuditEntry, PricePointRow


class StoreProtocol(Protocol):
    async def upsert_wallet(self, user: User) -> None: ...

    async def insert_order(self, order: Order) -> None: ...

    async def insert_position(self, position: Position) -> None: ...

    async def update_position(self, position: Position) -> None: ...

    async def insert_settlement(self, settlement: Settlement) -> None: ...

    async def insert_audit(self, entry: AuditEntry) -> None: ...

    async def insert_price_points(self, rows: list[PricePointRow]) -> None: ...


class NullStore:
    """No durable store configured: every write succeeds without doing anything."""

    async def upsert_wallet(self, user: User) -> None:
        return None

    async def insert_order(self, order: Order) -> None:
        return None

    async def insert_position(self, position: Position) -> None:
        return None

    async def update_position(self, position: Position) -> None:
        return None

    async def insert_settlement(self, settlement: Settlement) -> None:
        return None

    async def insert_audit(self, entry: AuditEntry) -> None:
        return None

    async def insert_price_points(self, rows: list[PricePointRow]) -> None:
        return None
