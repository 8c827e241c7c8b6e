"""
Module: ledger_kernel.services.orphan_repair_service
Responsibility: Detect payments that lost their provider link and re-link
    the ones a matching strategy can resolve.
Architecture position: Kernel > Services.  Matching is delegated to a pure
    OrphanMatchStrategy from ledger_engines.

Invariants enforced:
    - Only the caller's payments are examined and only the caller's
      providers are offered to the strategy, so a repair can never assign
      a provider of another company.
    - Payments are never deleted.  Unresolved orphans stay as they are and
      are reported.
    - Re-running after a repair finds none of the payments it fixed.
"""

from __future__ import annotations

from uuid import UUID

from ledger_engines.orphan_matching import (
    OrphanCandidate,
    OrphanMatcher,
    OrphanMatchStrategy,
    ProviderCandidate,
    is_orphan,
)
from ledger_kernel.domain.dtos import AccessLevel, OrphanRepairResult, PaymentInfo
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.payment import Payment
from ledger_kernel.models.provider import ServiceProvider
from ledger_kernel.selectors.payment_selector import to_payment_info
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.isolation_guard import require_level

logger = get_logger("services.orphan_repair")


class OrphanRepairService(BaseService):

    def __init__(self, *args, strategy: OrphanMatchStrategy | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.matcher = OrphanMatcher(strategy)

    def _providers(self) -> list[ServiceProvider]:
        return self.store.list_rows(ServiceProvider, order_by=(ServiceProvider.name,))

    def _orphans(self, providers: list[ServiceProvider]) -> list[Payment]:
        valid = {p.id for p in providers}
        payments = self.store.list_rows(Payment, order_by=(Payment.due_date, Payment.id))
        return [p for p in payments if is_orphan(p.provider_id, valid)]

    def detect_orphans(self) -> list[PaymentInfo]:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        return [to_payment_info(p) for p in self._orphans(self._providers())]

    def repair(self) -> OrphanRepairResult:
        """Re-link every orphan the strategy resolves; report the rest."""
        require_level(self.tenant, AccessLevel.OWNER)
        fixed: list[UUID] = []
        unresolved: list[UUID] = []

        with self.store.atomic("repair_orphan_payments"):
            providers = self._providers()
            orphans = self._orphans(providers)
            by_id = {p.id: p for p in providers}
            matches = self.matcher.match_all(
                orphans=[
                    OrphanCandidate(
                        payment_id=p.id,
                        raw_provider_id=p.provider_id,
                        provider_name=p.provider_name,
                        description=p.description,
                    )
                    for p in orphans
                ],
                providers=[ProviderCandidate(provider_id=p.id, name=p.name) for p in providers],
            )
            payments = {p.id: p for p in orphans}
            for match in matches:
                if not match.resolved:
                    unresolved.append(match.payment_id)
                    continue
                provider = by_id[match.provider_id]
                payment = payments[match.payment_id]
                payment.provider_id = str(provider.id)
                payment.provider_name = provider.name
                fixed.append(match.payment_id)
            self.session.flush()

        result = OrphanRepairResult(
            company_id=self.tenant.company_id,
            strategy=self.matcher.strategy.name,
            orphan_count=len(fixed) + len(unresolved),
            fixed_count=len(fixed),
            unresolved_count=len(unresolved),
            fixed_payment_ids=tuple(fixed),
            unresolved_payment_ids=tuple(unresolved),
        )
        log = logger.warning if unresolved else logger.info
        log(
            "orphan_payments_repaired",
            extra={
                "orphan_count": result.orphan_count,
                "fixed_count": result.fixed_count,
                "unresolved_count": result.unresolved_count,
                "strategy": result.strategy,
            },
        )
        return result
