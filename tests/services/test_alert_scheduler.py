"""
Tests for AlertScheduler.
"""

import threading
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from ledger_kernel.domain.dtos import TenantContext
from ledger_kernel.models import AlertType
from ledger_kernel.services.alert_service import AlertConfigService, AlertEvaluator
from ledger_services.alert_inbox import AlertInbox
from ledger_services.alert_scheduler import AlertScheduler


@pytest.fixture
def inbox():
    return AlertInbox()


@pytest.fixture
def scheduler(bound_session_factory, inbox, deterministic_clock):
    return AlertScheduler(bound_session_factory, inbox, deterministic_clock, tick_interval_seconds=0.01)


@pytest.fixture
def overdue_everywhere(session, tenant_a, tenant_b, make_payment, deterministic_clock):
    """Both companies have two overdue payments and a threshold-2 rule."""
    for tenant in (tenant_a, tenant_b):
        for day in (1, 2):
            make_payment(tenant.company, "50", date(2023, 12, day), provider=tenant.providers[0])
        AlertConfigService(session, TenantContext.system(tenant.company_id), deterministic_clock).create_alert_config(
            name="Overdue", type=AlertType.PAYMENT, threshold=2
        )
    return tenant_a, tenant_b


class TestTick:

    def test_tick_covers_every_company(self, scheduler, inbox, overdue_everywhere):
        tenant_a, tenant_b = overdue_everywhere
        assert scheduler.tick() == 2
        assert len(inbox.list(tenant_a.company_id)) == 1
        assert len(inbox.list(tenant_b.company_id)) == 1

    def test_second_tick_is_throttled(self, scheduler, overdue_everywhere, deterministic_clock):
        scheduler.tick()
        deterministic_clock.advance(60)
        assert scheduler.tick() == 0

    def test_one_company_failing_does_not_stop_others(self, scheduler, inbox, overdue_everywhere, monkeypatch):
        tenant_a, tenant_b = overdue_everywhere
        original = AlertEvaluator.evaluate

        def failing_for_a(self, now=None):
            if self.tenant.company_id == tenant_a.company_id:
                raise RuntimeError("metrics unavailable")
            return original(self, now)

        monkeypatch.setattr(AlertEvaluator, "evaluate", failing_for_a)

        assert scheduler.tick() == 1
        assert inbox.list(tenant_a.company_id) == []
        assert len(inbox.list(tenant_b.company_id)) == 1

    def test_failed_commit_publishes_nothing(self, bound_session_factory, inbox, overdue_everywhere, deterministic_clock):
        """A tick whose commit fails leaves the inbox untouched; the retry raises each alert once."""
        tenant_a, tenant_b = overdue_everywhere
        failures = []

        def flaky_factory():
            session = bound_session_factory()
            if not failures:
                def failing_commit():
                    failures.append(session)
                    raise OperationalError("COMMIT", {}, Exception("connection lost"))

                session.commit = failing_commit
            return session

        scheduler = AlertScheduler(flaky_factory, inbox, deterministic_clock)

        assert scheduler.tick() == 0
        assert inbox.list(tenant_a.company_id) == []
        assert inbox.list(tenant_b.company_id) == []

        deterministic_clock.advance(10)
        assert scheduler.tick() == 2
        assert len(inbox.list(tenant_a.company_id)) == 1
        assert len(inbox.list(tenant_b.company_id)) == 1

        deterministic_clock.advance(10)
        assert scheduler.tick() == 0
        assert len(inbox.list(tenant_a.company_id)) == 1


class TestLifecycle:

    def test_start_and_stop(self, scheduler, monkeypatch):
        ticked = threading.Event()

        def fake_tick():
            ticked.set()
            return 0

        monkeypatch.setattr(scheduler, "tick", fake_tick)

        scheduler.start()
        assert ticked.wait(timeout=5)
        assert scheduler.is_running

        scheduler.stop(timeout=5)
        assert not scheduler.is_running

    def test_start_twice_keeps_one_thread(self, scheduler, monkeypatch):
        monkeypatch.setattr(scheduler, "tick", lambda: 0)
        scheduler.start()
        first = scheduler._thread
        scheduler.start()
        assert scheduler._thread is first
        scheduler.stop(timeout=5)
