"""
Service layer for service providers.

Creates providers inside the caller's tenant, records amounts a provider
acknowledges receiving, and maintains the cached ``current_balance``.

The cache is always written from a live recomputation
(ProviderBalanceSelector), so recomputing twice with no writes in between
stores the same value.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.dtos import AccessLevel
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.provider import PaymentMethod, ServiceProvider
from ledger_kernel.selectors.balance_selector import ProviderBalanceSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.isolation_guard import (
    require_level,
    require_provider_or_level,
)

logger = get_logger("services.provider")


@dataclass(frozen=True)
class ProviderInfo:
    id: UUID
    company_id: UUID
    name: str
    email: str | None
    payment_method: PaymentMethod
    active: bool
    current_balance: Decimal | None
    total_marked_as_received: Decimal


class ProviderService(BaseService):
    """Provider CRUD and balance cache maintenance for one tenant."""

    def _to_dto(self, provider: ServiceProvider) -> ProviderInfo:
        return ProviderInfo(
            id=provider.id,
            company_id=provider.company_id,
            name=provider.name,
            email=provider.email,
            payment_method=provider.payment_method,
            active=provider.active,
            current_balance=provider.current_balance,
            total_marked_as_received=provider.total_marked_as_received,
        )

    @property
    def _balances(self) -> ProviderBalanceSelector:
        return ProviderBalanceSelector(self.session, self.tenant.company_id)

    def create_provider(
        self,
        name: str,
        email: str | None = None,
        phone: str | None = None,
        service: str | None = None,
        payment_method: PaymentMethod = PaymentMethod.PIX,
    ) -> ProviderInfo:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        provider = self.store.insert(
            ServiceProvider,
            {
                "name": self._required_text("name", name),
                "email": email,
                "phone": phone,
                "service": service,
                "payment_method": PaymentMethod(payment_method),
            },
        )
        logger.info(
            "provider_created",
            extra={"provider_id": str(provider.id), "company_id": str(provider.company_id)},
        )
        return self._to_dto(provider)

    def get_provider(self, provider_id: UUID) -> ProviderInfo:
        return self._to_dto(self.store.get_provider(provider_id))

    def list_providers(self, active_only: bool = False) -> list[ProviderInfo]:
        criteria = [ServiceProvider.active.is_(True)] if active_only else []
        rows = self.store.list_rows(ServiceProvider, *criteria, order_by=(ServiceProvider.name,))
        return [self._to_dto(p) for p in rows]

    def recalculate_balance(self, provider_id: UUID) -> Decimal:
        """
        Recompute the provider's current balance and store it in the cache.

        Idempotent: the stored value depends only on missions and payments.
        """
        require_provider_or_level(self.tenant, provider_id)
        provider = self.store.get_provider(provider_id)
        current = self._balances.current_balance(provider_id)
        provider.current_balance = current
        self.session.flush()
        logger.info(
            "provider_balance_recalculated",
            extra={"provider_id": str(provider_id), "current_balance": current},
        )
        return current

    def recalculate_all_balances(self) -> dict[UUID, Decimal]:
        require_level(self.tenant, AccessLevel.OWNER)
        results: dict[UUID, Decimal] = {}
        with self.store.atomic("recalculate_all_balances"):
            for provider in self.store.list_rows(ServiceProvider):
                results[provider.id] = self.recalculate_balance(provider.id)
        logger.info(
            "provider_balances_recalculated",
            extra={"company_id": str(self.tenant.company_id), "provider_count": len(results)},
        )
        return results

    def mark_as_received(self, provider_id: UUID, amount) -> ProviderInfo:
        """Add ``amount`` to what the provider acknowledges having received."""
        require_provider_or_level(self.tenant, provider_id)
        value = self._positive_amount("amount", amount)
        with self.store.atomic("mark_as_received"):
            with self.store.provider_lock(provider_id) as provider:
                provider.total_marked_as_received = (
                    provider.total_marked_as_received or Decimal("0")
                ) + value
                self.session.flush()
        logger.info(
            "provider_marked_as_received",
            extra={"provider_id": str(provider_id), "amount": value},
        )
        return self._to_dto(provider)
