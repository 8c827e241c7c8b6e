"""
Service layer for provider payments.

Records obligations toward providers and marks single payments as paid.
Recording a balance or advance payment hands over to the settlement engine
in the same atomic step, so liquidation cannot be skipped.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from ledger_engines.orphan_matching import parse_provider_reference
from ledger_kernel.domain.dtos import AccessLevel, PaymentInfo, SettlementResult
from ledger_kernel.exceptions import (
    MissingFieldError,
    PaymentAlreadySettledError,
    PaymentNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.payment import (
    LIQUIDATING_TYPES,
    TERMINAL_STATUSES,
    Payment,
    PaymentStatus,
    PaymentType,
)
from ledger_kernel.models.provider import ServiceProvider
from ledger_kernel.models.transaction import AccountType
from ledger_kernel.selectors.balance_selector import ProviderBalanceSelector
from ledger_kernel.selectors.payment_selector import to_payment_info
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.isolation_guard import require_level
from ledger_kernel.services.settlement_service import SettlementService

logger = get_logger("services.payment")


class PaymentService(BaseService):

    def record_payment(
        self,
        provider_id: UUID,
        amount,
        due_date: date,
        payment_type: PaymentType = PaymentType.FULL,
        description: str = "",
        payment_date: date | None = None,
        installments: int | None = None,
        current_installment: int | None = None,
        notes: str | None = None,
        account_id: UUID | None = None,
        account_type: AccountType | None = None,
    ) -> tuple[PaymentInfo, SettlementResult | None]:
        """
        Record a payment owed to (or made to) a provider of this tenant.

        Liquidating types are stored as COMPLETED and immediately liquidate
        the provider's open payments; the settlement result is returned
        alongside the payment.
        """
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        value = self._positive_amount("amount", amount)
        payment_type = PaymentType(payment_type)
        if due_date is None:
            raise MissingFieldError("due_date")

        if payment_type in LIQUIDATING_TYPES:
            settlement = SettlementService(
                self.session, self.tenant, self.clock, self.store.locks
            ).pay_balance(
                provider_id,
                value,
                payment_date or due_date,
                payment_type=payment_type,
                description=description,
            )
            payment = self.store.get(Payment, settlement.balance_payment_id, PaymentNotFoundError)
            return to_payment_info(payment), settlement

        with self.store.atomic("record_payment"):
            provider = self.store.get_provider(provider_id)
            payment = self.store.insert(
                Payment,
                {
                    "provider_id": str(provider.id),
                    "provider_name": provider.name,
                    "description": description,
                    "amount": value,
                    "type": payment_type,
                    "status": PaymentStatus.PENDING,
                    "due_date": due_date,
                    "installments": installments,
                    "current_installment": current_installment,
                    "notes": notes,
                    "account_id": account_id,
                    "account_type": account_type,
                },
            )

        logger.info(
            "payment_recorded",
            extra={
                "payment_id": str(payment.id),
                "provider_id": str(provider_id),
                "payment_type": payment_type.value,
                "amount": value,
            },
        )
        return to_payment_info(payment), None

    def mark_payment_completed(self, payment_id: UUID, payment_date: date) -> PaymentInfo:
        """Mark one pending, partial or overdue payment as paid."""
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        with self.store.atomic("mark_payment_completed"):
            payment = self.store.get(Payment, payment_id, PaymentNotFoundError, for_update=True)
            if payment.status in TERMINAL_STATUSES:
                raise PaymentAlreadySettledError(str(payment_id), payment.status.value)
            payment.status = PaymentStatus.COMPLETED
            payment.payment_date = payment_date
            self.session.flush()
            provider = self._linked_provider(payment)
            if provider is not None:
                provider.current_balance = ProviderBalanceSelector(
                    self.session, self.tenant.company_id
                ).current_balance(provider.id)
                self.session.flush()

        logger.info(
            "payment_marked_completed",
            extra={"payment_id": str(payment_id), "amount": payment.amount},
        )
        return to_payment_info(payment)

    def _linked_provider(self, payment: Payment) -> ServiceProvider | None:
        # Orphaned rows have no provider whose cache could be refreshed.
        provider_id = parse_provider_reference(payment.provider_id)
        if provider_id is None:
            return None
        return self.store.find(ServiceProvider, provider_id)

    def get_payment(self, payment_id: UUID) -> PaymentInfo:
        return to_payment_info(self.store.get(Payment, payment_id, PaymentNotFoundError))
