"""
Module: ledger_kernel.services.alert_service
Responsibility: Tenant-scoped alert rule CRUD and the alert evaluation pass.
Architecture position: Kernel > Services.  Rule logic lives in
    ledger_engines.alert_rules; this module supplies the metrics snapshot,
    the throttle bookkeeping and the ActiveAlert values.

Invariants enforced:
    - A config is evaluated only when due (active, and more than one
      frequency interval since ``last_triggered_at``).
    - ``last_triggered_at`` is set to the evaluation time every time a due
      config is evaluated, whether or not it raised an alert, and only for
      that config.
    - Each config is evaluated in its own SAVEPOINT.  A failure is logged
      and rolls back that config only; the pass moves on to the next one.
    - Alerts are returned, never stored.

Failure modes:
    - InvalidAlertConfigError for inconsistent rule definitions.
    - AlertConfigNotFoundError outside the tenant.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from ledger_engines.alert_rules import (
    DEFAULT_DAYS_ADVANCE,
    AlertFinding,
    AlertRule,
    AlertRuleEvaluator,
    is_due,
)
from ledger_kernel.db.types import to_money
from ledger_kernel.domain.clock import as_utc
from ledger_kernel.domain.dtos import AccessLevel, ActiveAlert, LedgerMetrics
from ledger_kernel.exceptions import AlertConfigNotFoundError, InvalidAlertConfigError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.alert import (
    AlertConfig,
    AlertFrequency,
    AlertOperator,
    AlertType,
)
from ledger_kernel.selectors.metrics_selector import LedgerMetricsSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.isolation_guard import require_level

logger = get_logger("services.alert")


@dataclass(frozen=True)
class AlertConfigInfo:
    id: UUID
    company_id: UUID
    name: str
    type: AlertType
    is_active: bool
    frequency: AlertFrequency
    threshold: Decimal | None
    days_advance: int | None
    condition_operator: AlertOperator
    condition_value: Decimal | None
    notify_email: bool
    notify_system: bool
    last_triggered_at: datetime | None


def to_alert_config_info(config: AlertConfig) -> AlertConfigInfo:
    return AlertConfigInfo(
        id=config.id,
        company_id=config.company_id,
        name=config.name,
        type=config.type,
        is_active=config.is_active,
        frequency=config.frequency,
        threshold=config.threshold,
        days_advance=config.days_advance,
        condition_operator=config.condition_operator,
        condition_value=config.condition_value,
        notify_email=config.notify_email,
        notify_system=config.notify_system,
        last_triggered_at=as_utc(config.last_triggered_at),
    )


_EDITABLE_FIELDS = frozenset({
    "name",
    "type",
    "is_active",
    "frequency",
    "threshold",
    "days_advance",
    "condition_operator",
    "condition_value",
    "notify_email",
    "notify_system",
})


def _optional_money(field_name: str, value) -> Decimal | None:
    if value is None:
        return None
    try:
        return to_money(value)
    except (TypeError, ValueError) as exc:
        raise InvalidAlertConfigError(f"{field_name} is not a valid amount") from exc


def validate_alert_values(values: dict) -> dict:
    """Normalize enum fields and reject inconsistent rule definitions."""
    cleaned = dict(values)
    name = str(cleaned.get("name") or "").strip()
    if not name:
        raise InvalidAlertConfigError("name is required")
    cleaned["name"] = name

    try:
        cleaned["type"] = AlertType(cleaned["type"])
        cleaned["frequency"] = AlertFrequency(cleaned.get("frequency") or AlertFrequency.DAILY)
        operator = cleaned.get("condition_operator")
        if operator is None:
            operator = AlertOperator.GREATER if cleaned["type"] == AlertType.EXPENSE else AlertOperator.LESS
        cleaned["condition_operator"] = AlertOperator(operator)
    except (KeyError, ValueError) as exc:
        raise InvalidAlertConfigError(f"unknown alert setting: {exc}") from exc

    cleaned["threshold"] = _optional_money("threshold", cleaned.get("threshold"))
    cleaned["condition_value"] = _optional_money("condition_value", cleaned.get("condition_value"))

    if cleaned["type"] == AlertType.PAYMENT:
        if cleaned["threshold"] is not None and cleaned["threshold"] < 1:
            raise InvalidAlertConfigError("threshold must be at least 1")
        days = cleaned.get("days_advance")
        if days is not None and (not isinstance(days, int) or days < 0):
            raise InvalidAlertConfigError("days_advance must be a non-negative integer")
    elif cleaned["condition_value"] is None:
        raise InvalidAlertConfigError(f"{cleaned['type'].value} alerts need a condition_value")
    return cleaned


class AlertConfigService(BaseService):

    def _get(self, config_id: UUID) -> AlertConfig:
        return self.store.get(AlertConfig, config_id, AlertConfigNotFoundError)

    def create_alert_config(self, **values) -> AlertConfigInfo:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        unknown = set(values) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidAlertConfigError(f"unknown fields: {', '.join(sorted(unknown))}")
        config = self.store.insert(AlertConfig, validate_alert_values(values))
        logger.info(
            "alert_config_created",
            extra={"config_id": str(config.id), "alert_type": config.type.value},
        )
        return to_alert_config_info(config)

    def update_alert_config(self, config_id: UUID, **changes) -> AlertConfigInfo:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidAlertConfigError(f"unknown fields: {', '.join(sorted(unknown))}")
        config = self._get(config_id)
        current = {field: getattr(config, field) for field in _EDITABLE_FIELDS}
        current.update(changes)
        for field, value in validate_alert_values(current).items():
            setattr(config, field, value)
        self.session.flush()
        logger.info("alert_config_updated", extra={"config_id": str(config_id)})
        return to_alert_config_info(config)

    def delete_alert_config(self, config_id: UUID) -> None:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        config = self._get(config_id)
        self.session.delete(config)
        self.session.flush()
        logger.info("alert_config_deleted", extra={"config_id": str(config_id)})

    def list_alert_configs(self, active_only: bool = False) -> list[AlertConfigInfo]:
        criteria = [AlertConfig.is_active.is_(True)] if active_only else []
        rows = self.store.list_rows(AlertConfig, *criteria, order_by=(AlertConfig.name, AlertConfig.id))
        return [to_alert_config_info(c) for c in rows]


class AlertEvaluator(BaseService):
    """
    One evaluation pass over the tenant's alert configs.

    Contract:
        ``evaluate()`` returns the alerts raised by configs that were due.
        Calling it again inside the same frequency window returns nothing
        for those configs.
    """

    def __init__(self, *args, default_days_advance: int = DEFAULT_DAYS_ADVANCE, **kwargs):
        super().__init__(*args, **kwargs)
        self.rules = AlertRuleEvaluator(default_days_advance)
        self._metrics: LedgerMetrics | None = None

    def _snapshot(self, now: datetime) -> LedgerMetrics:
        if self._metrics is None:
            self._metrics = LedgerMetricsSelector(
                self.session, self.tenant.company_id
            ).snapshot(now.date())
        return self._metrics

    def evaluate(self, now: datetime | None = None) -> list[ActiveAlert]:
        require_level(self.tenant, AccessLevel.EMPLOYEE)
        now = as_utc(now) if now is not None else self.clock.now_utc()
        self._metrics = None
        alerts: list[ActiveAlert] = []
        configs = self.store.list_rows(AlertConfig, order_by=(AlertConfig.created_at, AlertConfig.id))

        for config in configs:
            config_id = config.id
            try:
                with self.store.atomic("evaluate_alert_config"):
                    alerts.extend(self._evaluate_one(config, now))
            except Exception:
                logger.exception(
                    "alert_config_evaluation_failed",
                    extra={"config_id": str(config_id)},
                )

        logger.info(
            "alerts_evaluated",
            extra={"config_count": len(configs), "alert_count": len(alerts)},
        )
        return alerts

    def _evaluate_one(self, config: AlertConfig, now: datetime) -> list[ActiveAlert]:
        due = is_due(
            is_active=config.is_active,
            last_triggered_at=as_utc(config.last_triggered_at),
            interval=config.frequency.interval,
            now=now,
        )
        if not due:
            return []

        findings = self.rules.evaluate(
            rule=AlertRule(
                config_id=config.id,
                type=config.type,
                operator=config.condition_operator,
                condition_value=config.condition_value,
                threshold=config.threshold,
                days_advance=config.days_advance,
            ),
            metrics=self._snapshot(now),
        )
        config.last_triggered_at = now
        self.session.flush()
        return [self._to_alert(config, finding, now) for finding in findings]

    def _to_alert(self, config: AlertConfig, finding: AlertFinding, now: datetime) -> ActiveAlert:
        return ActiveAlert(
            id=uuid4(),
            config_id=config.id,
            company_id=self.tenant.company_id,
            type=config.type,
            kind=finding.kind,
            title=finding.title,
            message=finding.message,
            severity=finding.severity,
            priority=finding.priority,
            created_at=now,
            value=finding.value,
            threshold=finding.threshold,
            amount=finding.amount,
        )
