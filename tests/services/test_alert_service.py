"""
Tests for alert configs and the evaluation pass.

Covers:
- Config validation and tenant scoping
- Overdue payment alerts against a threshold
- Frequency throttling on last_triggered_at
- One failing config does not stop the others
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import AlertPriority
from ledger_kernel.exceptions import AlertConfigNotFoundError, InvalidAlertConfigError
from ledger_kernel.models import (
    AlertFrequency,
    AlertOperator,
    AlertType,
    LedgerTransaction,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from ledger_kernel.services.alert_service import AlertConfigService, AlertEvaluator
from ledger_kernel.services.isolation_guard import resolve_tenant


@pytest.fixture
def configs(session, employee_ctx, deterministic_clock):
    return AlertConfigService(session, employee_ctx, deterministic_clock)


@pytest.fixture
def evaluator(session, employee_ctx, deterministic_clock):
    return AlertEvaluator(session, employee_ctx, deterministic_clock)


@pytest.fixture
def five_overdue(tenant_a, make_payment):
    p = tenant_a.providers[0]
    return [make_payment(tenant_a.company, "100", date(2023, 12, 1 + i), provider=p) for i in range(5)]


class TestAlertConfigs:

    def test_create_defaults(self, configs, tenant_a):
        info = configs.create_alert_config(name="Overdue", type=AlertType.PAYMENT, threshold=3)
        assert info.company_id == tenant_a.company_id
        assert info.frequency == AlertFrequency.DAILY
        assert info.threshold == Decimal("3")
        assert info.is_active is True
        assert info.last_triggered_at is None

    def test_expense_rules_default_to_greater(self, configs):
        info = configs.create_alert_config(name="Spend", type="expense", condition_value="5000")
        assert info.condition_operator == AlertOperator.GREATER

    @pytest.mark.parametrize(
        "values",
        [
            {"name": "", "type": AlertType.PAYMENT},
            {"name": "x", "type": "weather"},
            {"name": "x", "type": AlertType.PAYMENT, "threshold": 0},
            {"name": "x", "type": AlertType.PAYMENT, "days_advance": -1},
            {"name": "x", "type": AlertType.GOAL},
            {"name": "x", "type": AlertType.PAYMENT, "frequency": "hourly"},
            {"name": "x", "type": AlertType.PAYMENT, "company_id": "other"},
        ],
    )
    def test_invalid_configs(self, configs, values):
        with pytest.raises(InvalidAlertConfigError):
            configs.create_alert_config(**values)

    def test_update_and_delete(self, configs):
        info = configs.create_alert_config(name="Goal", type=AlertType.GOAL, condition_value="10000")
        updated = configs.update_alert_config(info.id, is_active=False, condition_value="2000")
        assert updated.is_active is False
        assert updated.condition_value == Decimal("2000")
        assert configs.list_alert_configs(active_only=True) == []

        configs.delete_alert_config(info.id)
        assert configs.list_alert_configs() == []

    def test_foreign_config_is_not_found(self, session, configs, tenant_b, deterministic_clock):
        info = configs.create_alert_config(name="Overdue", type=AlertType.PAYMENT)
        ctx_b = resolve_tenant(session, tenant_b.employee.id)
        with pytest.raises(AlertConfigNotFoundError):
            AlertConfigService(session, ctx_b, deterministic_clock).update_alert_config(info.id, name="mine")


class TestEvaluate:

    def test_overdue_threshold_raises_high_alert(self, configs, evaluator, five_overdue, tenant_a):
        """Five overdue payments against threshold 3: one high priority alert."""
        config = configs.create_alert_config(name="Overdue", type=AlertType.PAYMENT, threshold=3)

        alerts = evaluator.evaluate()

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.config_id == config.id
        assert alert.company_id == tenant_a.company_id
        assert alert.priority == AlertPriority.HIGH
        assert alert.amount == Decimal("500.00")

    def test_throttled_within_frequency_window(self, configs, evaluator, five_overdue, deterministic_clock):
        """A daily rule raises again only after more than one day."""
        configs.create_alert_config(name="Overdue", type=AlertType.PAYMENT, threshold=3)
        first_run = deterministic_clock.now()
        assert len(evaluator.evaluate()) == 1

        deterministic_clock.advance(10)
        assert evaluator.evaluate() == []

        deterministic_clock.set_time(first_run + timedelta(days=1))
        assert evaluator.evaluate() == []

        deterministic_clock.advance(1)
        assert len(evaluator.evaluate()) == 1

    def test_quiet_evaluation_still_updates_last_triggered(self, configs, evaluator, deterministic_clock):
        """Evaluating a due config stamps it even when nothing fires."""
        info = configs.create_alert_config(name="Overdue", type=AlertType.PAYMENT, threshold=3)
        assert evaluator.evaluate() == []
        [stored] = configs.list_alert_configs()
        assert stored.id == info.id
        assert stored.last_triggered_at == deterministic_clock.now()

    def test_inactive_config_never_fires(self, configs, evaluator, five_overdue):
        configs.create_alert_config(name="Overdue", type=AlertType.PAYMENT, threshold=3, is_active=False)
        assert evaluator.evaluate() == []

    def test_cashflow_rule_uses_total_balance(self, session, tenant_a, configs, evaluator, deterministic_clock):
        """Cancelled income does not count toward the balance."""
        for status in (TransactionStatus.COMPLETED, TransactionStatus.CANCELLED):
            session.add(
                LedgerTransaction(
                    company_id=tenant_a.company_id,
                    type=TransactionType.INCOME,
                    category=TransactionCategory.CLIENT_PAYMENT,
                    amount=Decimal("800"),
                    description="income",
                    date=deterministic_clock.today(),
                    status=status,
                )
            )
        session.flush()
        configs.create_alert_config(name="Low cash", type=AlertType.CASHFLOW, condition_value="1000")

        alerts = evaluator.evaluate()
        assert [a.kind for a in alerts] == ["cashflow_low"]
        assert alerts[0].value == Decimal("800.00")

    def test_other_tenants_payments_do_not_count(self, session, tenant_b, five_overdue, deterministic_clock):
        """Company B's rule sees none of company A's overdue payments."""
        ctx_b = resolve_tenant(session, tenant_b.employee.id)
        AlertConfigService(session, ctx_b, deterministic_clock).create_alert_config(
            name="Overdue", type=AlertType.PAYMENT, threshold=1
        )
        assert AlertEvaluator(session, ctx_b, deterministic_clock).evaluate() == []

    def test_failing_config_is_isolated(self, configs, evaluator, five_overdue, monkeypatch, captured_logs):
        """A config that blows up is logged and skipped; the next one still fires."""
        broken = configs.create_alert_config(name="Broken", type=AlertType.PAYMENT, threshold=1)
        healthy = configs.create_alert_config(name="Healthy", type=AlertType.PAYMENT, threshold=3)
        original = AlertEvaluator._evaluate_one

        def flaky(self, config, now):
            if config.id == broken.id:
                raise RuntimeError("rule exploded")
            return original(self, config, now)

        monkeypatch.setattr(AlertEvaluator, "_evaluate_one", flaky)

        alerts = evaluator.evaluate()

        assert [a.config_id for a in alerts] == [healthy.id]
        failures = [r for r in captured_logs() if r["message"] == "alert_config_evaluation_failed"]
        assert [r["config_id"] for r in failures] == [str(broken.id)]
