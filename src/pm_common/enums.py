"""Global enums: values are the wire strings used in events and store rows."""

from enum import Enum, IntEnum


class Side(str, Enum):
    YES = "yes"
    NO = "no"


class PositionStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    SETTLED = "settled"


class SettlementOutcome(str, Enum):
    WIN = "win"
    LOSE = "lose"
    VOID = "void"


class MarketType(IntEnum):
    """Fixed per-match market ids."""
    MATCH_WINNER = 1
    TOSS = 2
    POWERPLAY_RUNS = 3
    TEN_OVER_RUNS = 4
    TOP_BATTER = 5
    TOTAL_WICKETS = 6
    OVER_20_RUNS = 7
    ODD_EVEN_TOTAL = 8


class RunnerType(str, Enum):
    """How a classified secondary market's runners are interpreted."""
    TEAM = "team"
    OVER_UNDER = "overunder"
    YES_NO = "yesno"
    ODD_EVEN = "oddeven"


class OptionTone(str, Enum):
    GREEN = "green"
    BLUE = "blue"
    RED = "red"


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuditType(str, Enum):
    ORDER_PLACED = "order_placed"
    POSITION_CLOSED = "position_closed"
    MATCH_SETTLED = "match_settled"
    MARKET_RISK_UPDATE = "market_risk_update"
    USER_RISK_UPDATE = "user_risk_update"
    GATEWAY_REFRESH = "gateway_refresh"
    GATEWAY_REFRESH_EMPTY_KEPT_CACHE = "gateway_refresh_empty_kept_cache"
    GATEWAY_REFRESH_FAILED = "gateway_refresh_failed"
    WITHDRAWAL_REQUESTED = "withdrawal_requested"
    WITHDRAWAL_APPROVED = "withdrawal_approved"
    WITHDRAWAL_REJECTED = "withdrawal_rejected"
