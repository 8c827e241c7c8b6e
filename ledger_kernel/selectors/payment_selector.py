"""
Module: ledger_kernel.selectors.payment_selector
Responsibility: Tenant-scoped payment listings and the Payment -> PaymentInfo
    conversion shared with the write side.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from ledger_kernel.domain.dtos import PaymentInfo
from ledger_kernel.models.payment import Payment, PaymentStatus
from ledger_kernel.selectors.base import BaseSelector


def to_payment_info(payment: Payment) -> PaymentInfo:
    return PaymentInfo(
        id=payment.id,
        company_id=payment.company_id,
        provider_id=payment.provider_id,
        provider_name=payment.provider_name,
        amount=payment.amount,
        type=payment.type,
        status=payment.status,
        due_date=payment.due_date,
        payment_date=payment.payment_date,
        settled_by_payment_id=payment.settled_by_payment_id,
    )


class PaymentSelector(BaseSelector):

    def list_payments(
        self,
        provider_id: UUID | None = None,
        status: PaymentStatus | None = None,
    ) -> list[PaymentInfo]:
        stmt = self._select(Payment)
        if provider_id is not None:
            stmt = stmt.where(Payment.provider_id == str(provider_id))
        if status is not None:
            stmt = stmt.where(Payment.status == status)
        stmt = stmt.order_by(Payment.due_date, Payment.id)
        return [to_payment_info(p) for p in self.session.execute(stmt).scalars().all()]

    def find(self, payment_id: UUID) -> PaymentInfo | None:
        payment = self.session.execute(
            self._select(Payment).where(Payment.id == payment_id)
        ).scalar_one_or_none()
        return to_payment_info(payment) if payment is not None else None
