"""
Tenant isolation tests.

Every read and write is scoped to the company the caller resolves to.
These tests try to reach across that boundary through each layer.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import AccessLevel, TenantContext
from ledger_kernel.exceptions import (
    CrossTenantError,
    InsufficientAccessError,
    MissionNotFoundError,
    NotFoundError,
    PaymentNotFoundError,
    TenantResolutionError,
)
from ledger_kernel.models import Expense, Payment, TransactionCategory, UserRole, UserType
from ledger_kernel.selectors.payment_selector import PaymentSelector
from ledger_kernel.services.isolation_guard import (
    access_level_for,
    assert_ownership,
    ensure_tenant_stamped,
    require_provider_or_level,
    resolve_company,
    resolve_tenant,
)
from ledger_kernel.services.ledger_store import TenantLedgerStore


class TestResolveTenant:

    def test_owner_and_employee(self, session, tenant_a):
        assert resolve_tenant(session, tenant_a.owner.id).access_level == AccessLevel.OWNER
        employee = resolve_tenant(session, tenant_a.employee.id)
        assert employee.access_level == AccessLevel.EMPLOYEE
        assert employee.company_id == tenant_a.company_id
        assert employee.profile_id == tenant_a.employee.id

    def test_admin_user_type_is_owner(self, session, tenant_a, make_profile):
        admin = make_profile(tenant_a.company, user_type=UserType.ADMIN)
        assert resolve_tenant(session, admin.id).access_level == AccessLevel.OWNER

    def test_provider_resolves_through_provider_link(self, session, tenant_b, make_profile):
        """A provider profile without a company lands in its provider's company."""
        p = tenant_b.providers[0]
        ctx = resolve_tenant(session, make_profile(None, user_type=UserType.PROVIDER, provider=p).id)
        assert ctx.company_id == tenant_b.company_id
        assert ctx.provider_id == p.id
        assert ctx.access_level == AccessLevel.PROVIDER

    def test_unknown_profile(self, session):
        with pytest.raises(TenantResolutionError):
            resolve_tenant(session, uuid4())

    def test_profile_without_company(self, session, make_profile):
        with pytest.raises(TenantResolutionError):
            resolve_tenant(session, make_profile(None).id)

    def test_inactive_profile(self, session, tenant_a, make_profile):
        with pytest.raises(TenantResolutionError):
            resolve_tenant(session, make_profile(tenant_a.company, active=False).id)

    def test_conflicting_company_links(self, session, tenant_a, tenant_b, make_profile):
        """Profile in A pointing at B's provider cannot be resolved."""
        profile = make_profile(tenant_a.company, user_type=UserType.PROVIDER, provider=tenant_b.providers[0])
        with pytest.raises(TenantResolutionError):
            resolve_tenant(session, profile.id)

    def test_provider_profile_without_link(self, session, tenant_a, make_profile):
        with pytest.raises(TenantResolutionError):
            resolve_tenant(session, make_profile(tenant_a.company, user_type=UserType.PROVIDER).id)


class TestAccessLevel:

    def test_levels(self, tenant_a, make_profile):
        assert access_level_for(None) == AccessLevel.NONE
        assert access_level_for(tenant_a.owner) == AccessLevel.OWNER
        assert access_level_for(tenant_a.employee) == AccessLevel.EMPLOYEE
        assert access_level_for(make_profile(None, role=UserRole.OWNER)) == AccessLevel.NONE

    def test_provider_may_only_act_on_self(self, tenant_a):
        p, other = tenant_a.providers
        ctx = TenantContext(tenant_a.company_id, AccessLevel.PROVIDER, provider_id=p.id)
        require_provider_or_level(ctx, p.id)
        with pytest.raises(InsufficientAccessError):
            require_provider_or_level(ctx, other.id)

    def test_resolve_company(self, tenant_a, tenant_b):
        ctx = TenantContext.system(tenant_a.company_id)
        assert resolve_company(ctx, None) == tenant_a.company_id
        assert resolve_company(ctx, tenant_a.company_id) == tenant_a.company_id
        with pytest.raises(CrossTenantError):
            resolve_company(ctx, tenant_b.company_id)


class TestStampingAndOwnership:

    def test_supplied_company_is_overwritten(self, tenant_a, tenant_b):
        ctx = TenantContext.system(tenant_a.company_id)
        stamped = ensure_tenant_stamped({"name": "x", "company_id": tenant_b.company_id}, ctx)
        assert stamped["company_id"] == tenant_a.company_id

    def test_store_insert_ignores_forged_company(self, session, tenant_a, tenant_b, employee_ctx):
        payment = TenantLedgerStore(session, employee_ctx).insert(
            Payment,
            {
                "company_id": tenant_b.company_id,
                "provider_id": str(tenant_a.providers[0].id),
                "provider_name": "Ana Souza",
                "amount": Decimal("10"),
                "due_date": date(2024, 1, 1),
            },
        )
        assert payment.company_id == tenant_a.company_id

    def test_mission_scoped_rows_follow_their_mission(self, session, tenant_a, tenant_b, make_mission):
        mission = make_mission(tenant_b.company, "10")
        expense = Expense(
            mission_id=mission.id,
            category=TransactionCategory.FUEL,
            amount=Decimal("5"),
            date=date(2024, 1, 1),
        )
        session.add(expense)
        session.flush()
        session.refresh(expense)

        assert assert_ownership(expense, TenantContext.system(tenant_b.company_id))
        assert not assert_ownership(expense, TenantContext.system(tenant_a.company_id))

    def test_store_refuses_mission_of_other_company(self, session, tenant_b, employee_ctx, make_mission):
        mission = make_mission(tenant_b.company, "10")
        with pytest.raises(MissionNotFoundError):
            TenantLedgerStore(session, employee_ctx).insert(
                Expense,
                {
                    "mission_id": mission.id,
                    "category": TransactionCategory.FUEL,
                    "amount": Decimal("5"),
                    "date": date(2024, 1, 1),
                },
            )

    def test_check_owned(self, session, tenant_b, employee_ctx, make_payment):
        foreign = make_payment(tenant_b.company, "10", date(2024, 1, 1), provider=tenant_b.providers[0])
        with pytest.raises(NotFoundError):
            TenantLedgerStore(session, employee_ctx).check_owned(foreign)


class TestReadsAreScoped:

    def test_lookup_of_foreign_row_reads_as_missing(self, session, tenant_b, employee_ctx, make_payment):
        foreign = make_payment(tenant_b.company, "10", date(2024, 1, 1), provider=tenant_b.providers[0])
        store = TenantLedgerStore(session, employee_ctx)
        assert store.find(Payment, foreign.id) is None
        with pytest.raises(PaymentNotFoundError):
            store.get(Payment, foreign.id, PaymentNotFoundError)

    def test_listing_never_includes_other_company(self, session, tenant_a, tenant_b, make_payment):
        mine = make_payment(tenant_a.company, "10", date(2024, 1, 1), provider=tenant_a.providers[0])
        make_payment(tenant_b.company, "10", date(2024, 1, 1), provider=tenant_b.providers[0])
        assert [p.id for p in PaymentSelector(session, tenant_a.company_id).list_payments()] == [mine.id]
