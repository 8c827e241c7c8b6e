"""
Module: ledger_kernel.selectors.integrity_selector
Responsibility: Read-only tenant data-integrity report: how many rows the
    company owns per table, how many of its payments are orphaned, and how
    many of its rows point across the tenant boundary.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Never reads column values of another company's rows; cross-tenant
      references are only counted.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import aliased

from ledger_engines.orphan_matching import is_orphan, parse_provider_reference
from ledger_kernel.domain.dtos import IntegrityReport
from ledger_kernel.models.alert import AlertConfig
from ledger_kernel.models.company import Profile
from ledger_kernel.models.expense import Expense
from ledger_kernel.models.mission import Mission, mission_providers
from ledger_kernel.models.payment import Payment
from ledger_kernel.models.provider import ServiceProvider
from ledger_kernel.models.revenue import ConfirmedRevenue, PendingRevenue
from ledger_kernel.models.transaction import LedgerTransaction
from ledger_kernel.selectors.base import BaseSelector

_COUNTED = (
    ("profiles", Profile),
    ("service_providers", ServiceProvider),
    ("missions", Mission),
    ("expenses", Expense),
    ("transactions", LedgerTransaction),
    ("payments", Payment),
    ("pending_revenues", PendingRevenue),
    ("confirmed_revenues", ConfirmedRevenue),
    ("alert_configs", AlertConfig),
)


class DataIntegritySelector(BaseSelector):

    def _count(self, model: type) -> int:
        if model is Profile:
            stmt = select(func.count()).select_from(Profile).where(
                Profile.company_id == self.company_id
            )
        else:
            stmt = select(func.count()).select_from(self._select(model).subquery())
        return self.session.execute(stmt).scalar_one()

    def _tenant_provider_ids(self) -> set:
        stmt = select(ServiceProvider.id).where(ServiceProvider.company_id == self.company_id)
        return set(self.session.execute(stmt).scalars().all())

    def _payment_refs(self) -> list[str | None]:
        stmt = select(Payment.provider_id).where(Payment.company_id == self.company_id)
        return list(self.session.execute(stmt).scalars().all())

    def orphan_payment_count(self) -> int:
        valid = self._tenant_provider_ids()
        return sum(1 for ref in self._payment_refs() if is_orphan(ref, valid))

    def cross_tenant_references(self) -> int:
        referenced = [parse_provider_reference(ref) for ref in self._payment_refs()]
        wanted = {ref for ref in referenced if ref is not None}
        foreign: set = set()
        if wanted:
            foreign = set(
                self.session.execute(
                    select(ServiceProvider.id).where(
                        ServiceProvider.id.in_(wanted),
                        ServiceProvider.company_id != self.company_id,
                    )
                ).scalars().all()
            )
        count = sum(1 for ref in referenced if ref in foreign)

        provider = aliased(ServiceProvider)
        count += self.session.execute(
            select(func.count())
            .select_from(Mission)
            .join(provider, Mission.provider_id == provider.id)
            .where(
                Mission.company_id == self.company_id,
                provider.company_id != self.company_id,
            )
        ).scalar_one()

        count += self.session.execute(
            select(func.count())
            .select_from(mission_providers)
            .join(Mission, mission_providers.c.mission_id == Mission.id)
            .join(provider, mission_providers.c.provider_id == provider.id)
            .where(
                Mission.company_id == self.company_id,
                provider.company_id != self.company_id,
            )
        ).scalar_one()

        return count

    def report(self) -> IntegrityReport:
        return IntegrityReport(
            company_id=self.company_id,
            record_counts=tuple((name, self._count(model)) for name, model in _COUNTED),
            orphan_payment_count=self.orphan_payment_count(),
            cross_tenant_references=self.cross_tenant_references(),
        )
