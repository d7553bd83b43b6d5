"""Store-level records that are not owned by a single bounded context."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.pm_common.enums import AuditType


@dataclass(frozen=True)
class AuditEntry:
    id: str
    at: datetime
    type: AuditType
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PricePointRow:
    """One history point as written to the durable store."""

    market_key: str
    price: int
    recorded_at: datetime
