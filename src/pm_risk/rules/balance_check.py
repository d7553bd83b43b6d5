from src.pm_account.domain.models import User
from src.pm_common.errors import InsufficientBalanceError


def check_balance(user: User, amount: float) -> None:
    """Funds held for pending withdrawals are not spendable."""
    available = user.available_balance
    if amount > available:
        raise InsufficientBalanceError(amount, available)
