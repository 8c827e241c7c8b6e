"""
Module: ledger_kernel.services.settlement_service
Responsibility: Settlement engine.  Marks a provider's open payments as
    completed when the company pays the provider in bulk, either
    automatically (a balance or advance payment is recorded) or through an
    explicit manual settlement.
Architecture position: Kernel > Services.  Uses LiquidationPlanner (pure)
    for the decision and TenantLedgerStore for the write.

Invariants enforced:
    - A payment reaches COMPLETED at most once: the update is conditional on
      the row still being pending/partial, and a row count mismatch aborts
      the whole step.
    - The automatic path never completes more than the supplied amount and
      never splits a payment.
    - Each call is one atomic step under the per-provider lock: the
      liquidating payment, every status change and the refreshed balance
      cache commit together or not at all.
    - Liquidated rows point at the liquidating payment through
      ``settled_by_payment_id`` so the provider's ``paid`` total counts the
      money once.

Failure modes:
    - NonPositiveAmountError / ValidationError before any write.
    - ProviderNotFoundError if the provider is not in the caller's tenant.
    - ConcurrentSettlementError if a selected payment changed under the
      pass (the step is rolled back).
    - StoreError on database failure (the step is rolled back).
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import update

from ledger_engines.liquidation import LiquidationPlan, LiquidationPlanner
from ledger_kernel.db.types import MONEY_EPSILON, round_money
from ledger_kernel.domain.dtos import (
    AccessLevel,
    LiquidatedPayment,
    SettlementResult,
)
from ledger_kernel.exceptions import ConcurrentSettlementError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.payment import (
    LIQUIDATING_TYPES,
    SETTLEABLE_STATUSES,
    Payment,
    PaymentStatus,
    PaymentType,
)
from ledger_kernel.models.provider import ServiceProvider
from ledger_kernel.selectors.balance_selector import ProviderBalanceSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.isolation_guard import require_level

logger = get_logger("services.settlement")


class SettlementService(BaseService):
    """
    Automatic liquidation and manual settlement for one tenant.

    Contract:
        Every public method runs as one atomic step and returns a
        SettlementResult describing exactly what was completed.
    """

    def __init__(self, *args, epsilon: Decimal = MONEY_EPSILON, **kwargs):
        super().__init__(*args, **kwargs)
        self.epsilon = epsilon
        self.planner = LiquidationPlanner(epsilon)

    @property
    def _balances(self) -> ProviderBalanceSelector:
        return ProviderBalanceSelector(self.session, self.tenant.company_id)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def pay_balance(
        self,
        provider_id: UUID,
        amount,
        payment_date: date,
        payment_type: PaymentType = PaymentType.BALANCE_PAYMENT,
        description: str = "",
    ) -> SettlementResult:
        """
        Record a balance/advance payment and liquidate what it covers.

        The new payment is stored as COMPLETED; open obligations are then
        completed oldest first while they fit in ``amount``.
        """
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        value = self._positive_amount("amount", amount)
        payment_type = PaymentType(payment_type)
        if payment_type not in LIQUIDATING_TYPES:
            raise ValidationError(f"{payment_type.value} payments do not liquidate obligations")

        with self.store.atomic("pay_balance"):
            with self.store.provider_lock(provider_id) as provider:
                balance_payment = self.store.insert(
                    Payment,
                    {
                        "provider_id": str(provider.id),
                        "provider_name": provider.name,
                        "description": description or f"{payment_type.value} to {provider.name}",
                        "amount": value,
                        "type": payment_type,
                        "status": PaymentStatus.COMPLETED,
                        "due_date": payment_date,
                        "payment_date": payment_date,
                    },
                )
                return self._liquidate(provider, balance_payment, value, payment_date)

    def liquidate_for_payment(self, payment: Payment) -> SettlementResult:
        """Liquidate against an already inserted liquidating payment."""
        with self.store.atomic("liquidate"):
            with self.store.provider_lock(UUID(payment.provider_id)) as provider:
                return self._liquidate(
                    provider,
                    payment,
                    payment.amount,
                    payment.payment_date or payment.due_date,
                )

    def settle_pending_payments(
        self,
        provider_id: UUID,
        amount,
        payment_date: date,
    ) -> SettlementResult:
        """
        Manual settlement.

        If ``amount`` matches the provider's pending total within epsilon,
        every open payment is completed with ``payment_date``.  Otherwise the
        oldest payments that fit are completed and the signed difference is
        returned for the caller to reconcile.
        """
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        value = self._positive_amount("amount", amount)

        with self.store.atomic("settle_pending_payments"):
            with self.store.provider_lock(provider_id) as provider:
                obligations = self._balances.open_obligations(provider.id)
                plan = self.planner.plan_settlement(amount=value, obligations=obligations)
                self._complete(provider.id, plan, payment_date, settled_by=None)
                self._refresh_cache(provider)

        result = self._result(provider.id, plan, None)
        self._log_settled("pending_payments_settled", result)
        return result

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _liquidate(
        self,
        provider: ServiceProvider,
        balance_payment: Payment,
        amount: Decimal,
        payment_date: date,
    ) -> SettlementResult:
        obligations = self._balances.open_obligations(provider.id)
        plan = self.planner.plan(amount=amount, obligations=obligations)
        self._complete(provider.id, plan, payment_date, settled_by=balance_payment.id)
        self._refresh_cache(provider)

        result = self._result(provider.id, plan, balance_payment.id)
        self._log_settled("balance_payment_liquidated", result)
        return result

    def _complete(
        self,
        provider_id: UUID,
        plan: LiquidationPlan,
        payment_date: date,
        settled_by: UUID | None,
    ) -> None:
        ids = [o.payment_id for o in plan.selected]
        if not ids:
            return
        stmt = (
            update(Payment)
            .where(
                Payment.id.in_(ids),
                Payment.company_id == self.tenant.company_id,
                Payment.status.in_(list(SETTLEABLE_STATUSES)),
            )
            .values(
                status=PaymentStatus.COMPLETED,
                payment_date=payment_date,
                settled_by_payment_id=settled_by,
            )
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(stmt).rowcount
        for obj in list(self.session.identity_map.values()):
            if isinstance(obj, Payment) and obj.id in ids:
                self.session.expire(obj)
        if updated != len(ids):
            logger.error(
                "settlement_conflict",
                extra={"provider_id": str(provider_id), "expected": len(ids), "updated": updated},
            )
            raise ConcurrentSettlementError(str(provider_id), len(ids), updated)

    def _refresh_cache(self, provider: ServiceProvider) -> None:
        self.session.flush()
        provider.current_balance = self._balances.current_balance(provider.id)
        self.session.flush()

    def _result(
        self,
        provider_id: UUID,
        plan: LiquidationPlan,
        balance_payment_id: UUID | None,
    ) -> SettlementResult:
        return SettlementResult(
            provider_id=provider_id,
            amount=round_money(plan.amount),
            liquidated=tuple(
                LiquidatedPayment(payment_id=o.payment_id, amount=round_money(o.amount), due_date=o.due_date)
                for o in plan.selected
            ),
            liquidated_total=round_money(plan.selected_total),
            remainder=round_money(plan.remainder),
            pending_total=round_money(plan.pending_total),
            difference=round_money(plan.difference),
            fully_settled=plan.fully_settled,
            balance_payment_id=balance_payment_id,
        )

    def _log_settled(self, event: str, result: SettlementResult) -> None:
        logger.info(
            event,
            extra={
                "provider_id": str(result.provider_id),
                "amount": result.amount,
                "liquidated_count": result.liquidated_count,
                "liquidated_total": result.liquidated_total,
                "remainder": result.remainder,
                "difference": result.difference,
                "fully_settled": result.fully_settled,
            },
        )
