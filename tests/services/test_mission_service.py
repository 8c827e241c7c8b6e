"""
Tests for MissionService.
"""

from decimal import Decimal

import pytest

from ledger_kernel.exceptions import InsufficientAccessError, MissionNotFoundError, ProviderNotFoundError
from ledger_kernel.models import MissionStatus, UserType
from ledger_kernel.selectors.balance_selector import ProviderBalanceSelector
from ledger_kernel.services.isolation_guard import resolve_tenant
from ledger_kernel.services.mission_service import MissionService


@pytest.fixture
def provider_ctx(session, tenant_a, make_profile):
    profile = make_profile(None, user_type=UserType.PROVIDER, provider=tenant_a.providers[0])
    return resolve_tenant(session, profile.id)


class TestCreateMission:

    def test_staff_can_create_with_assignments(self, session, employee_ctx, tenant_a):
        p, other = tenant_a.providers
        info = MissionService(session, employee_ctx).create_mission(
            "Rio trip", provider_id=p.id, assigned_provider_ids=[p.id, other.id, p.id], provider_value="900"
        )
        assert info.company_id == tenant_a.company_id
        assert info.is_approved is False
        assert set(info.assigned_provider_ids) == {p.id, other.id}

    def test_provider_creates_for_self(self, session, provider_ctx, tenant_a):
        """A provider can register a mission naming themselves."""
        info = MissionService(session, provider_ctx).create_mission("Own trip", provider_id=tenant_a.providers[0].id)
        assert info.provider_id == tenant_a.providers[0].id

    def test_provider_cannot_create_for_others(self, session, provider_ctx, tenant_a):
        with pytest.raises(InsufficientAccessError):
            MissionService(session, provider_ctx).create_mission("Trip", provider_id=tenant_a.providers[1].id)

    def test_foreign_provider_is_not_found(self, session, employee_ctx, tenant_b):
        """Missions cannot name another company's provider."""
        with pytest.raises(ProviderNotFoundError):
            MissionService(session, employee_ctx).create_mission("Trip", assigned_provider_ids=[tenant_b.providers[0].id])


class TestApproveMission:

    def test_requires_owner(self, session, employee_ctx, tenant_a, make_mission):
        mission = make_mission(tenant_a.company, "100", provider=tenant_a.providers[0], approved=False)
        with pytest.raises(InsufficientAccessError):
            MissionService(session, employee_ctx).approve_mission(mission.id)

    def test_approval_makes_value_count(self, session, owner_ctx, tenant_a, make_mission, deterministic_clock):
        """After approval the provider value moves from pending to current."""
        p = tenant_a.providers[0]
        mission = make_mission(tenant_a.company, "100", provider=p, approved=False)

        info = MissionService(session, owner_ctx, deterministic_clock).approve_mission(mission.id, provider_value="250")

        assert info.is_approved is True
        assert info.approved_at == deterministic_clock.now()
        balance = ProviderBalanceSelector(session, tenant_a.company_id).balance(p.id)
        assert balance.current == Decimal("250.00")
        assert balance.pending == Decimal("0.00")


class TestAssignmentAndStatus:

    def test_reassign_replaces_assignments(self, session, employee_ctx, tenant_a, make_mission):
        p, other = tenant_a.providers
        mission = make_mission(tenant_a.company, "100", provider=p)

        info = MissionService(session, employee_ctx).assign_providers(
            mission.id, [other.id], primary_provider_id=other.id
        )

        assert info.provider_id == other.id
        assert info.assigned_provider_ids == (other.id,)

    def test_cannot_assign_foreign_provider(self, session, employee_ctx, tenant_a, tenant_b, make_mission):
        mission = make_mission(tenant_a.company, "100", provider=tenant_a.providers[0])
        with pytest.raises(ProviderNotFoundError):
            MissionService(session, employee_ctx).assign_providers(mission.id, [tenant_b.providers[0].id])

    def test_status_change(self, session, employee_ctx, tenant_a, make_mission):
        mission = make_mission(tenant_a.company, "100", provider=tenant_a.providers[0])
        info = MissionService(session, employee_ctx).set_status(mission.id, "in_progress")
        assert info.status == MissionStatus.IN_PROGRESS

    def test_status_of_foreign_mission(self, session, employee_ctx, tenant_b, make_mission):
        mission = make_mission(tenant_b.company, "100", provider=tenant_b.providers[0])
        with pytest.raises(MissionNotFoundError):
            MissionService(session, employee_ctx).set_status(mission.id, MissionStatus.COMPLETED)
