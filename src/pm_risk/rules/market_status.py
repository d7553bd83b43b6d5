from src.pm_common.errors import MarketSuspendedError
from src.pm_market.domain.models import TradingStatus


def check_market_tradable(status: TradingStatus) -> None:
    if status.suspended:
        raise MarketSuspendedError(status.reason)
