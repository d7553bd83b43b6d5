"""Real-time push events and their rooms.

Rooms:
  broadcast       every connected client
  user:<id>       one user's sessions
  match:<id>      viewers of one match
  admin           admin consoles
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

MATCHES_UPDATE = "matches:update"
MARKETS_UPDATE = "markets:update"
TRADE_CONFIRMED = "trade:confirmed"
POSITION_SETTLED = "position:settled"
PORTFOLIO_UPDATE = "portfolio:update"
ADMIN_AUDIT = "admin:audit"

BROADCAST = "broadcast"
ADMIN = "admin"


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def match_room(match_id: int) -> str:
    return f"match:{match_id}"


@dataclass(frozen=True)
class PushEvent:
    room: str
    name: str
    payload: dict[str, Any] = field(default_factory=dict)


class EventPublisher(Protocol):
    async def publish(self, event: PushEvent) -> None: ...
