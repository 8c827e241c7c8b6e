"""
ledger_engines.alert_rules -- Alert rule evaluation.

Responsibility:
    Decide whether an alert rule is due, and which alerts it raises against
    a ``LedgerMetrics`` snapshot.  Building the snapshot, throttling
    bookkeeping and alert delivery belong to the services layer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Time is always passed in.

Invariants enforced:
    - A rule is due only when active and more than one frequency interval
      has passed since it was last evaluated (never evaluated counts as
      due).
    - Each rule type checks one condition:
        payment   overdue count >= threshold (high) and upcoming pending
                  payments within days_advance (medium)
        goal      monthly income below target (high under 50% progress,
                  medium otherwise)
        cashflow  total balance below the minimum (high)
        expense   monthly expenses above the limit (medium)
    - Goal and cashflow rules only fire with operator ``less``; expense
      rules only with ``greater``.  Any other operator yields no alert.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.dtos import (
    AlertPriority,
    AlertSeverity,
    LedgerMetrics,
    OpenPayment,
)
from ledger_kernel.models.alert import AlertOperator, AlertType
from ledger_kernel.models.payment import PaymentStatus

DEFAULT_DAYS_ADVANCE = 7

_OVERDUE_CANDIDATES = frozenset({PaymentStatus.PENDING, PaymentStatus.PARTIAL})


@dataclass(frozen=True)
class AlertRule:
    """The evaluable part of an AlertConfig."""

    config_id: UUID
    type: AlertType
    operator: AlertOperator
    condition_value: Decimal | None = None
    threshold: Decimal | None = None
    days_advance: int | None = None


@dataclass(frozen=True)
class AlertFinding:
    kind: str
    title: str
    message: str
    severity: AlertSeverity
    priority: AlertPriority
    value: Decimal | None = None
    threshold: Decimal | None = None
    amount: Decimal | None = None


def is_due(
    *,
    is_active: bool,
    last_triggered_at: datetime | None,
    interval: timedelta,
    now: datetime,
) -> bool:
    if not is_active:
        return False
    if last_triggered_at is None:
        return True
    return now - last_triggered_at > interval


def overdue_payments(payments: tuple[OpenPayment, ...], today: date) -> list[OpenPayment]:
    return [
        p for p in payments
        if p.status == PaymentStatus.OVERDUE
        or (p.status in _OVERDUE_CANDIDATES and p.due_date < today)
    ]


def upcoming_payments(
    payments: tuple[OpenPayment, ...],
    today: date,
    days_advance: int,
) -> list[OpenPayment]:
    return [
        p for p in payments
        if p.status == PaymentStatus.PENDING
        and 0 <= (p.due_date - today).days <= days_advance
    ]


def _fmt(amount: Decimal) -> str:
    return f"{round_money(amount):,.2f}"


class AlertRuleEvaluator:
    """Evaluates one rule against one metrics snapshot."""

    def __init__(self, default_days_advance: int = DEFAULT_DAYS_ADVANCE):
        self.default_days_advance = default_days_advance

    @traced_engine("alert_rules", "1.0", fingerprint_fields=("rule", "metrics"))
    def evaluate(self, *, rule: AlertRule, metrics: LedgerMetrics) -> tuple[AlertFinding, ...]:
        if rule.type == AlertType.PAYMENT:
            return self._payment(rule, metrics)
        if rule.type == AlertType.GOAL:
            return self._goal(rule, metrics)
        if rule.type == AlertType.CASHFLOW:
            return self._cashflow(rule, metrics)
        if rule.type == AlertType.EXPENSE:
            return self._expense(rule, metrics)
        raise ValueError(f"Unknown alert type: {rule.type}")

    def _payment(self, rule: AlertRule, metrics: LedgerMetrics) -> tuple[AlertFinding, ...]:
        findings: list[AlertFinding] = []
        threshold = rule.threshold if rule.threshold is not None else Decimal("1")

        overdue = overdue_payments(metrics.open_payments, metrics.as_of)
        if overdue and len(overdue) >= threshold:
            total = sum((p.amount for p in overdue), ZERO)
            findings.append(
                AlertFinding(
                    kind="payment_overdue",
                    title="Overdue payments",
                    message=f"{len(overdue)} overdue payments totalling {_fmt(total)}",
                    severity=AlertSeverity.ERROR,
                    priority=AlertPriority.HIGH,
                    value=Decimal(len(overdue)),
                    threshold=threshold,
                    amount=round_money(total),
                )
            )

        days = rule.days_advance if rule.days_advance is not None else self.default_days_advance
        upcoming = upcoming_payments(metrics.open_payments, metrics.as_of, days)
        if upcoming:
            total = sum((p.amount for p in upcoming), ZERO)
            findings.append(
                AlertFinding(
                    kind="payment_upcoming",
                    title="Payments due soon",
                    message=f"{len(upcoming)} payments due in the next {days} days",
                    severity=AlertSeverity.WARNING,
                    priority=AlertPriority.MEDIUM,
                    value=Decimal(len(upcoming)),
                    amount=round_money(total),
                )
            )

        return tuple(findings)

    def _goal(self, rule: AlertRule, metrics: LedgerMetrics) -> tuple[AlertFinding, ...]:
        target = rule.condition_value
        income = metrics.monthly_income
        if rule.operator != AlertOperator.LESS or target is None or not income < target:
            return ()

        progress = (income / target * 100) if target > ZERO else ZERO
        low = progress < 50
        return (
            AlertFinding(
                kind="goal_shortfall",
                title="Revenue goal",
                message=(
                    f"Monthly income ({_fmt(income)}) is at "
                    f"{progress:.1f}% of the target ({_fmt(target)})"
                ),
                severity=AlertSeverity.ERROR if low else AlertSeverity.WARNING,
                priority=AlertPriority.HIGH if low else AlertPriority.MEDIUM,
                value=round_money(income),
                threshold=target,
            ),
        )

    def _cashflow(self, rule: AlertRule, metrics: LedgerMetrics) -> tuple[AlertFinding, ...]:
        minimum = rule.condition_value
        balance = metrics.total_balance
        if rule.operator != AlertOperator.LESS or minimum is None or not balance < minimum:
            return ()
        return (
            AlertFinding(
                kind="cashflow_low",
                title="Low balance",
                message=f"Balance ({_fmt(balance)}) is below the minimum ({_fmt(minimum)})",
                severity=AlertSeverity.ERROR,
                priority=AlertPriority.HIGH,
                value=round_money(balance),
                threshold=minimum,
            ),
        )

    def _expense(self, rule: AlertRule, metrics: LedgerMetrics) -> tuple[AlertFinding, ...]:
        limit = rule.condition_value
        spent = metrics.monthly_expenses
        if rule.operator != AlertOperator.GREATER or limit is None or not spent > limit:
            return ()
        return (
            AlertFinding(
                kind="expense_limit",
                title="Expense limit exceeded",
                message=f"Monthly expenses ({_fmt(spent)}) exceeded the limit ({_fmt(limit)})",
                severity=AlertSeverity.WARNING,
                priority=AlertPriority.MEDIUM,
                value=round_money(spent),
                threshold=limit,
            ),
        )
