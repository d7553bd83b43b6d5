from src.pm_account.domain.models import User
from src.pm_common.errors import UserSuspendedError


def check_user_active(user: User) -> None:
    """Suspended users may still close positions; only opening is blocked."""
    if user.suspended:
        raise UserSuspendedError()
