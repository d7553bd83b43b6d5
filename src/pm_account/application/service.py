"""AccountService: portfolio reads and withdrawal holds.

Withdrawal flows take the user lock and go through ``ProvisionalMutation`` so
a failed wallet write leaves balance and hold exactly as they were.
"""

import logging
from typing import Any

from src.pm_account.application.schemas import PortfolioOut, WithdrawalOut
from src.pm_account.domain.models import Withdrawal
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import AuditType, WithdrawalStatus
from src.pm_common.errors import (
    InvalidAmountError,
    WithdrawalNotFoundError,
    WithdrawalNotPendingError,
)
from src.pm_common.id_generator import generate_id
from src.pm_common.money import round2
from src.pm_order.domain.mutation import AdjustBalance, AdjustHeld, ProvisionalMutation
from src.pm_risk.rules.balance_check import check_balance
from src.pm_risk.rules.order_input import validate_amount
from src.pm_store.application.audit import AuditRecorder
from src.pm_store.domain.repository import StoreProtocol
from src.pm_store.domain.state import EngineState

logger = logging.getLogger(__name__)


def build_portfolio(state: EngineState, user_id: str) -> PortfolioOut:
    user = state.get_or_create_user(user_id)
    positions = sorted(
        state.positions_for_user(user_id),
        key=lambda p: p.created_at or utc_now(),
        reverse=True,
    )
    return PortfolioOut.build(user, state.user_exposure(user_id), positions)


def portfolio_payload(state: EngineState, user_id: str) -> dict[str, Any]:
    """Body of a ``portfolio:update`` push."""
    portfolio = build_portfolio(state, user_id)
    return portfolio.model_dump(mode="json", include={"balance", "positions", "exposure"})


class AccountService:
    def __init__(self, state: EngineState, store: StoreProtocol, audit: AuditRecorder) -> None:
        self._state = state
        self._store = store
        self._audit = audit

    def get_portfolio(self, user_id: str) -> PortfolioOut:
        return build_portfolio(self._state, user_id)

    def list_withdrawals(self, user_id: str | None = None) -> list[WithdrawalOut]:
        items = [
            w for w in self._state.withdrawals.values()
            if user_id is None or w.user_id == user_id
        ]
        return [WithdrawalOut.from_domain(w) for w in items]

    async def request_withdrawal(self, user_id: str, amount: Any) -> WithdrawalOut:
        value = round2(validate_amount(amount))
        if value <= 0:
            raise InvalidAmountError()

        async with self._state.locks.user(user_id):
            user = self._state.get_or_create_user(user_id)
            check_balance(user, value)

            mutation = ProvisionalMutation("Withdrawal request", [AdjustHeld(user, value)])
            await mutation.commit(lambda: self._store.upsert_wallet(user))

            withdrawal = Withdrawal(
                id=generate_id("WDR"),
                user_id=user_id,
                amount=value,
                created_at=utc_now(),
            )
            self._state.withdrawals[withdrawal.id] = withdrawal

        logger.info("Withdrawal %s requested by %s: %.2f", withdrawal.id, user_id, value)
        await self._audit.record(
            AuditType.WITHDRAWAL_REQUESTED,
            {"requestId": withdrawal.id, "userId": user_id, "amount": value},
        )
        return WithdrawalOut.from_domain(withdrawal)

    async def approve_withdrawal(self, request_id: str, actor: str = "admin") -> WithdrawalOut:
        return await self._resolve(request_id, WithdrawalStatus.APPROVED, actor, "")

    async def reject_withdrawal(
        self, request_id: str, actor: str = "admin", note: str = ""
    ) -> WithdrawalOut:
        return await self._resolve(request_id, WithdrawalStatus.REJECTED, actor, note)

    async def _resolve(
        self, request_id: str, status: WithdrawalStatus, actor: str, note: str
    ) -> WithdrawalOut:
        withdrawal = self._state.withdrawals.get(request_id)
        if withdrawal is None:
            raise WithdrawalNotFoundError(request_id)

        async with self._state.locks.user(withdrawal.user_id):
            if withdrawal.status != WithdrawalStatus.PENDING:
                raise WithdrawalNotPendingError(request_id, withdrawal.status.value)

            user = self._state.get_or_create_user(withdrawal.user_id)
            now = utc_now()
            steps = [AdjustHeld(user, -withdrawal.amount)]
            if status == WithdrawalStatus.APPROVED:
                # funds leave the platform
                steps.append(AdjustBalance(user, -withdrawal.amount, now))

            label = "Withdrawal approval" if status == WithdrawalStatus.APPROVED else "Withdrawal rejection"
            await ProvisionalMutation(label, steps).commit(lambda: self._store.upsert_wallet(user))

            withdrawal.status = status
            withdrawal.note = note
            withdrawal.resolved_at = now

        audit_type = (
            AuditType.WITHDRAWAL_APPROVED
            if status == WithdrawalStatus.APPROVED
            else AuditType.WITHDRAWAL_REJECTED
        )
        await self._audit.record(
            audit_type,
            {
                "actor": actor,
                "requestId": request_id,
                "userId": withdrawal.user_id,
                "amount": withdrawal.amount,
            },
        )
        return WithdrawalOut.from_domain(withdrawal)
