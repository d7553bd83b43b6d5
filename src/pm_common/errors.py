"""Unified error codes and custom exceptions.

Every rejection carries a stable string code that the composition root
turns into ``{ok: false, code, error}``.

Groups:
  validation  malformed input, rejected before any state is read
  business    rule rejections (balance, exposure, suspension, ownership)
  settlement  already settled / winner not yet known
  system      persistence failures (retryable)
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int = 500,
        retryable: bool = False,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.retryable = retryable
        super().__init__(message)


# --- validation ---

class InvalidSideError(AppError):
    def __init__(self) -> None:
        super().__init__("INVALID_SIDE", 'side must be "yes" or "no"', 400)


class InvalidMatchIdError(AppError):
    def __init__(self) -> None:
        super().__init__("INVALID_MATCH_ID", "Invalid matchId", 400)


class InvalidMarketIdError(AppError):
    def __init__(self) -> None:
        super().__init__("INVALID_MARKET_ID", "Invalid marketId", 400)


class InvalidOptionError(AppError):
    def __init__(self) -> None:
        super().__init__("INVALID_OPTION", "optionLabel is required", 400)


class InvalidAmountError(AppError):
    def __init__(self) -> None:
        super().__init__("INVALID_AMOUNT", "amount must be a positive number", 400)


class InvalidCloseRequestError(AppError):
    def __init__(self) -> None:
        super().__init__("INVALID_CLOSE_REQUEST", "Invalid close request", 400)


# --- business: user / wallet ---

class UserSuspendedError(AppError):
    def __init__(self) -> None:
        super().__init__("USER_SUSPENDED", "User is suspended from trading", 403)


class InsufficientBalanceError(AppError):
    def __init__(self, required: float, available: float) -> None:
        super().__init__(
            "INSUFFICIENT_BALANCE",
            f"Insufficient balance: required {required:.2f}, available {available:.2f}",
            409,
        )


class UserExposureLimitError(AppError):
    def __init__(self, limit: float) -> None:
        super().__init__("USER_EXPOSURE_LIMIT", f"User exposure limit exceeded ({limit:g})", 409)


class MatchExposureLimitError(AppError):
    def __init__(self, limit: float) -> None:
        super().__init__("MATCH_EXPOSURE_LIMIT", f"Match exposure limit exceeded ({limit:g})", 409)


class WithdrawalNotFoundError(AppError):
    def __init__(self, request_id: str) -> None:
        super().__init__("WITHDRAWAL_NOT_FOUND", f"Withdrawal request not found: {request_id}", 404)


class WithdrawalNotPendingError(AppError):
    def __init__(self, request_id: str, status: str) -> None:
        super().__init__(
            "WITHDRAWAL_NOT_PENDING",
            f"Withdrawal {request_id} is {status}, not pending",
            409,
        )


# --- business: match / market ---

class MatchNotFoundError(AppError):
    def __init__(self, match_id: int) -> None:
        super().__init__("MATCH_NOT_FOUND", f"Match not found: {match_id}", 404)


class MarketSuspendedError(AppError):
    def __init__(self, reason: str = "") -> None:
        super().__init__(
            "MARKET_SUSPENDED", reason or "Market is suspended by risk team", 409
        )


class MarketOptionNotFoundError(AppError):
    def __init__(self) -> None:
        super().__init__("MARKET_OPTION_NOT_FOUND", "Market/option not found", 404)


class AmountTooLowError(AppError):
    def __init__(self) -> None:
        super().__init__("AMOUNT_TOO_LOW", "Amount too low for current price", 400)


# --- business: positions ---

class PositionNotFoundError(AppError):
    def __init__(self) -> None:
        super().__init__("POSITION_NOT_FOUND", "Open position not found", 404)


class PositionForbiddenError(AppError):
    def __init__(self) -> None:
        super().__init__(
            "POSITION_FORBIDDEN", "Position does not belong to this user", 403
        )


class SharesExceedRemainingError(AppError):
    def __init__(self) -> None:
        super().__init__(
            "SHARES_EXCEED_REMAINING", "Cannot close more shares than remaining", 400
        )


# --- settlement ---

class MatchAlreadySettledError(AppError):
    def __init__(self, match_id: int) -> None:
        super().__init__("MATCH_ALREADY_SETTLED", f"Match already settled: {match_id}", 409)


class WinnerUnresolvedError(AppError):
    def __init__(self) -> None:
        super().__init__(
            "WINNER_UNRESOLVED", "Could not infer match winner yet", 409, retryable=True
        )


# --- system ---

class PersistFailedError(AppError):
    def __init__(self, what: str) -> None:
        super().__init__(
            "PERSIST_FAILED", f"{what} failed to save, please try again", 500, retryable=True
        )


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__("INTERNAL_ERROR", detail, 500)
