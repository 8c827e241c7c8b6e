"""
LedgerAPI -- public entry point of the tenant ledger.

Contract:
    Every method takes the authenticated caller's ``profile_id`` first.
    Each call opens its own session scope, resolves the caller's tenant
    through the isolation guard, binds the log context, runs one kernel
    operation and commits.  It returns frozen DTOs or raises one typed
    ``LedgerKernelError``.

Architecture: ledger_services.  Composes ledger_kernel services and
    selectors; reads its knobs from ledger_config.

Invariants enforced:
    - No kernel code ever receives a raw profile, only a TenantContext.
    - Calls naming a ``company_id`` must name the caller's own company.
    - Transient store failures (connection errors, timeouts) are retried
      according to the retry settings (one retry by default).  Each attempt
      runs in a fresh session, so a failed attempt leaves nothing behind.
      Timeouts surface as StoreTimeoutError and other database failures
      as StoreError.  Domain errors are never retried.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ledger_config import LedgerSettings, get_active_settings
from ledger_kernel.db.engine import get_session_factory, init_engine_from_url, session_scope
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AccessLevel,
    ActiveAlert,
    ConfirmedRevenueInfo,
    IntegrityReport,
    LedgerMetrics,
    OrphanRepairResult,
    PaymentInfo,
    PendingRevenueInfo,
    ProviderBalance,
    ProviderBalanceDetails,
    RevenueConfirmation,
    SettlementResult,
    TenantContext,
)
from ledger_kernel.exceptions import StoreError, StoreTimeoutError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.mission import MissionStatus
from ledger_kernel.models.payment import PaymentStatus, PaymentType
from ledger_kernel.models.provider import PaymentMethod
from ledger_kernel.models.transaction import AccountType, TransactionCategory
from ledger_kernel.selectors import (
    DataIntegritySelector,
    LedgerMetricsSelector,
    PaymentSelector,
    ProviderBalanceSelector,
)
from ledger_kernel.services import (
    AlertConfigInfo,
    AlertConfigService,
    AlertEvaluator,
    ExpenseInfo,
    ExpenseService,
    MissionInfo,
    MissionService,
    OrphanRepairService,
    PaymentService,
    ProviderInfo,
    ProviderLockRegistry,
    ProviderService,
    RevenueService,
    SettlementService,
    require_level,
    resolve_company,
    resolve_tenant,
)
from ledger_kernel.services.isolation_guard import require_provider_or_level
from ledger_kernel.services.ledger_store import is_timeout
from ledger_services.alert_inbox import AlertInbox

logger = get_logger("services.ledger_api")

T = TypeVar("T")


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, StoreError) and isinstance(exc.__cause__, OperationalError)


def _timed_out(exc: BaseException) -> bool:
    return isinstance(exc, StoreTimeoutError) or is_timeout(exc) or is_timeout(exc.__cause__)


class LedgerAPI:
    """Tenant-aware facade over the ledger kernel.

    Args:
        session_factory: Builds sessions for each call.  Defaults to the
            module engine initialized from ``settings.database``.
        settings: Defaults to ``get_active_settings()``.
        clock: Injected into every service.
        locks: Per-provider settlement locks shared by all calls.
        inbox: Receives alerts raised by ``evaluate_alerts``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
        locks: ProviderLockRegistry | None = None,
        inbox: AlertInbox | None = None,
    ):
        self.settings = settings or get_active_settings()
        if session_factory is None:
            db = self.settings.database
            init_engine_from_url(
                db.url,
                echo=db.echo,
                pool_size=db.pool_size,
                max_overflow=db.max_overflow,
                pool_timeout=db.pool_timeout,
                statement_timeout_ms=db.statement_timeout_ms,
                connect_timeout_s=db.connect_timeout_s,
            )
            session_factory = get_session_factory()
        self._session_factory = session_factory
        self.clock = clock or SystemClock()
        self.locks = locks or ProviderLockRegistry()
        self.inbox = inbox or AlertInbox()

    # -------------------------------------------------------------------------
    # Call plumbing
    # -------------------------------------------------------------------------

    def _call(
        self,
        operation: str,
        profile_id: UUID,
        fn: Callable[[Session, TenantContext], T],
    ) -> T:
        attempts = max(1, self.settings.retry.attempts)
        attempt = 0
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(profile_id),
            operation=operation,
        ):
            while True:
                attempt += 1
                try:
                    return self._attempt(profile_id, fn)
                except (OperationalError, StoreError) as exc:
                    if not _is_transient(exc):
                        raise
                    if attempt >= attempts:
                        logger.error(
                            "store_call_failed",
                            extra={"attempts": attempt, "error_type": type(exc).__name__},
                        )
                        self._raise_final(operation, exc)
                    logger.warning(
                        "store_call_retrying",
                        extra={"attempt": attempt, "error_type": type(exc).__name__},
                    )
                    time.sleep(self.settings.retry.backoff_seconds)
                except SQLAlchemyError as exc:
                    logger.error("store_call_failed", extra={"error_type": type(exc).__name__})
                    raise StoreError(operation, type(exc).__name__) from exc

    def _attempt(self, profile_id: UUID, fn: Callable[[Session, TenantContext], T]) -> T:
        with session_scope(self._session_factory) as session:
            tenant = resolve_tenant(session, profile_id)
            with LogContext.bind(tenant_id=str(tenant.company_id)):
                return fn(session, tenant)

    @staticmethod
    def _raise_final(operation: str, exc: OperationalError | StoreError) -> None:
        if isinstance(exc, StoreTimeoutError):
            raise exc
        if _timed_out(exc):
            cause = exc.__cause__ if isinstance(exc, StoreError) else exc
            raise StoreTimeoutError(operation, type(cause).__name__) from exc
        if isinstance(exc, StoreError):
            raise exc
        raise StoreError(operation, type(exc).__name__) from exc

    def _kw(self) -> dict:
        return {"clock": self.clock, "locks": self.locks}

    # -------------------------------------------------------------------------
    # Tenant
    # -------------------------------------------------------------------------

    def resolve_tenant(self, profile_id: UUID) -> TenantContext:
        return self._call("resolve_tenant", profile_id, lambda s, t: t)

    # -------------------------------------------------------------------------
    # Providers and balances
    # -------------------------------------------------------------------------

    def create_provider(self, profile_id: UUID, name: str, **fields) -> ProviderInfo:
        return self._call(
            "create_provider",
            profile_id,
            lambda s, t: ProviderService(s, t, **self._kw()).create_provider(name, **fields),
        )

    def list_providers(self, profile_id: UUID, active_only: bool = False) -> list[ProviderInfo]:
        return self._call(
            "list_providers",
            profile_id,
            lambda s, t: ProviderService(s, t, **self._kw()).list_providers(active_only),
        )

    def get_provider_balance(self, profile_id: UUID, provider_id: UUID) -> ProviderBalance:
        def run(session: Session, tenant: TenantContext) -> ProviderBalance:
            require_provider_or_level(tenant, provider_id)
            return ProviderBalanceSelector(session, tenant.company_id).balance(provider_id)

        return self._call("get_provider_balance", profile_id, run)

    def get_provider_balance_details(self, profile_id: UUID, provider_id: UUID) -> ProviderBalanceDetails:
        def run(session: Session, tenant: TenantContext) -> ProviderBalanceDetails:
            require_provider_or_level(tenant, provider_id)
            return ProviderBalanceSelector(session, tenant.company_id).details(provider_id)

        return self._call("get_provider_balance_details", profile_id, run)

    def recalculate_provider_balance(self, profile_id: UUID, provider_id: UUID) -> Decimal:
        return self._call(
            "recalculate_provider_balance",
            profile_id,
            lambda s, t: ProviderService(s, t, **self._kw()).recalculate_balance(provider_id),
        )

    def recalculate_all_balances(self, profile_id: UUID, company_id: UUID | None = None) -> dict[UUID, Decimal]:
        def run(session: Session, tenant: TenantContext) -> dict[UUID, Decimal]:
            resolve_company(tenant, company_id)
            return ProviderService(session, tenant, **self._kw()).recalculate_all_balances()

        return self._call("recalculate_all_balances", profile_id, run)

    def mark_as_received(self, profile_id: UUID, provider_id: UUID, amount) -> ProviderInfo:
        return self._call(
            "mark_as_received",
            profile_id,
            lambda s, t: ProviderService(s, t, **self._kw()).mark_as_received(provider_id, amount),
        )

    # -------------------------------------------------------------------------
    # Missions
    # -------------------------------------------------------------------------

    def create_mission(self, profile_id: UUID, title: str, **fields) -> MissionInfo:
        return self._call(
            "create_mission",
            profile_id,
            lambda s, t: MissionService(s, t, **self._kw()).create_mission(title, **fields),
        )

    def assign_providers(
        self,
        profile_id: UUID,
        mission_id: UUID,
        provider_ids: Sequence[UUID],
        primary_provider_id: UUID | None = None,
    ) -> MissionInfo:
        return self._call(
            "assign_providers",
            profile_id,
            lambda s, t: MissionService(s, t, **self._kw()).assign_providers(
                mission_id, provider_ids, primary_provider_id
            ),
        )

    def approve_mission(self, profile_id: UUID, mission_id: UUID, provider_value=None) -> MissionInfo:
        return self._call(
            "approve_mission",
            profile_id,
            lambda s, t: MissionService(s, t, **self._kw()).approve_mission(mission_id, provider_value),
        )

    def set_mission_status(self, profile_id: UUID, mission_id: UUID, status: MissionStatus) -> MissionInfo:
        return self._call(
            "set_mission_status",
            profile_id,
            lambda s, t: MissionService(s, t, **self._kw()).set_status(mission_id, status),
        )

    # -------------------------------------------------------------------------
    # Payments and settlement
    # -------------------------------------------------------------------------

    def record_payment(
        self,
        profile_id: UUID,
        provider_id: UUID,
        amount,
        due_date: date,
        payment_type: PaymentType = PaymentType.FULL,
        **fields,
    ) -> tuple[PaymentInfo, SettlementResult | None]:
        return self._call(
            "record_payment",
            profile_id,
            lambda s, t: PaymentService(s, t, **self._kw()).record_payment(
                provider_id, amount, due_date, payment_type, **fields
            ),
        )

    def list_payments(
        self,
        profile_id: UUID,
        provider_id: UUID | None = None,
        status: PaymentStatus | None = None,
    ) -> list[PaymentInfo]:
        def run(session: Session, tenant: TenantContext) -> list[PaymentInfo]:
            if provider_id is not None:
                require_provider_or_level(tenant, provider_id)
            else:
                require_level(tenant, AccessLevel.EMPLOYEE)
            return PaymentSelector(session, tenant.company_id).list_payments(provider_id, status)

        return self._call("list_payments", profile_id, run)

    def pay_balance(
        self,
        profile_id: UUID,
        provider_id: UUID,
        amount,
        payment_date: date,
        payment_type: PaymentType = PaymentType.BALANCE_PAYMENT,
    ) -> SettlementResult:
        return self._call(
            "pay_balance",
            profile_id,
            lambda s, t: self._settlement(s, t).pay_balance(
                provider_id, amount, payment_date, payment_type=payment_type
            ),
        )

    def settle_pending_payments(
        self,
        profile_id: UUID,
        provider_id: UUID,
        amount,
        payment_date: date,
    ) -> SettlementResult:
        return self._call(
            "settle_pending_payments",
            profile_id,
            lambda s, t: self._settlement(s, t).settle_pending_payments(provider_id, amount, payment_date),
        )

    def check_pending_payments_total(self, profile_id: UUID, provider_id: UUID) -> Decimal:
        def run(session: Session, tenant: TenantContext) -> Decimal:
            require_provider_or_level(tenant, provider_id)
            selector = ProviderBalanceSelector(session, tenant.company_id)
            selector.get_provider(provider_id)
            return selector.pending_total(provider_id)

        return self._call("check_pending_payments_total", profile_id, run)

    def mark_payment_completed(self, profile_id: UUID, payment_id: UUID, payment_date: date) -> PaymentInfo:
        return self._call(
            "mark_payment_completed",
            profile_id,
            lambda s, t: PaymentService(s, t, **self._kw()).mark_payment_completed(payment_id, payment_date),
        )

    def _settlement(self, session: Session, tenant: TenantContext) -> SettlementService:
        return SettlementService(session, tenant, epsilon=self.settings.settlement.epsilon, **self._kw())

    # -------------------------------------------------------------------------
    # Revenue
    # -------------------------------------------------------------------------

    def _revenue(self, session: Session, tenant: TenantContext) -> RevenueService:
        return RevenueService(session, tenant, epsilon=self.settings.settlement.epsilon, **self._kw())

    def create_pending_revenue(
        self,
        profile_id: UUID,
        mission_id: UUID,
        client_name: str,
        total_amount,
        company_amount,
        provider_amount,
        due_date: date,
        description: str | None = None,
    ) -> PendingRevenueInfo:
        return self._call(
            "create_pending_revenue",
            profile_id,
            lambda s, t: self._revenue(s, t).create_pending_revenue(
                mission_id,
                client_name,
                total_amount,
                company_amount,
                provider_amount,
                due_date,
                description,
            ),
        )

    def confirm_revenue(
        self,
        profile_id: UUID,
        pending_revenue_id: UUID,
        account_id: UUID,
        account_type: AccountType,
        payment_method: PaymentMethod,
    ) -> RevenueConfirmation:
        return self._call(
            "confirm_revenue",
            profile_id,
            lambda s, t: self._revenue(s, t).confirm_revenue(
                pending_revenue_id, account_id, account_type, payment_method
            ),
        )

    def cancel_revenue(self, profile_id: UUID, pending_revenue_id: UUID) -> PendingRevenueInfo:
        return self._call(
            "cancel_revenue",
            profile_id,
            lambda s, t: self._revenue(s, t).cancel_revenue(pending_revenue_id),
        )

    def list_pending_revenues(self, profile_id: UUID, mission_id: UUID | None = None) -> list[PendingRevenueInfo]:
        def run(session: Session, tenant: TenantContext) -> list[PendingRevenueInfo]:
            require_level(tenant, AccessLevel.EMPLOYEE)
            return self._revenue(session, tenant).pending_revenues(mission_id)

        return self._call("list_pending_revenues", profile_id, run)

    def list_confirmed_revenues(self, profile_id: UUID, mission_id: UUID | None = None) -> list[ConfirmedRevenueInfo]:
        def run(session: Session, tenant: TenantContext) -> list[ConfirmedRevenueInfo]:
            require_level(tenant, AccessLevel.EMPLOYEE)
            return self._revenue(session, tenant).confirmed_revenues(mission_id)

        return self._call("list_confirmed_revenues", profile_id, run)

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def create_expense(
        self,
        profile_id: UUID,
        mission_id: UUID,
        category: TransactionCategory,
        amount,
        expense_date: date,
        **fields,
    ) -> ExpenseInfo:
        return self._call(
            "create_expense",
            profile_id,
            lambda s, t: ExpenseService(s, t, **self._kw()).create_expense(
                mission_id, category, amount, expense_date, **fields
            ),
        )

    def approve_expense(self, profile_id: UUID, expense_id: UUID) -> ExpenseInfo:
        return self._call(
            "approve_expense",
            profile_id,
            lambda s, t: ExpenseService(s, t, **self._kw()).approve_expense(expense_id),
        )

    def reimburse_expense(self, profile_id: UUID, expense_id: UUID) -> ExpenseInfo:
        return self._call(
            "reimburse_expense",
            profile_id,
            lambda s, t: ExpenseService(s, t, **self._kw()).reimburse_expense(expense_id),
        )

    # -------------------------------------------------------------------------
    # Orphans and integrity
    # -------------------------------------------------------------------------

    def detect_orphan_payments(self, profile_id: UUID, company_id: UUID | None = None) -> list[PaymentInfo]:
        def run(session: Session, tenant: TenantContext) -> list[PaymentInfo]:
            resolve_company(tenant, company_id)
            return OrphanRepairService(session, tenant, **self._kw()).detect_orphans()

        return self._call("detect_orphan_payments", profile_id, run)

    def repair_orphan_payments(self, profile_id: UUID, company_id: UUID | None = None) -> OrphanRepairResult:
        def run(session: Session, tenant: TenantContext) -> OrphanRepairResult:
            resolve_company(tenant, company_id)
            return OrphanRepairService(session, tenant, **self._kw()).repair()

        return self._call("repair_orphan_payments", profile_id, run)

    def check_data_integrity(self, profile_id: UUID, company_id: UUID | None = None) -> IntegrityReport:
        def run(session: Session, tenant: TenantContext) -> IntegrityReport:
            target = resolve_company(tenant, company_id)
            require_level(tenant, AccessLevel.OWNER)
            return DataIntegritySelector(session, target).report()

        return self._call("check_data_integrity", profile_id, run)

    def get_ledger_metrics(self, profile_id: UUID, as_of: date | None = None) -> LedgerMetrics:
        def run(session: Session, tenant: TenantContext) -> LedgerMetrics:
            require_level(tenant, AccessLevel.EMPLOYEE)
            return LedgerMetricsSelector(session, tenant.company_id).snapshot(as_of or self.clock.today())

        return self._call("get_ledger_metrics", profile_id, run)

    # -------------------------------------------------------------------------
    # Alerts
    # -------------------------------------------------------------------------

    def create_alert_config(self, profile_id: UUID, **values) -> AlertConfigInfo:
        return self._call(
            "create_alert_config",
            profile_id,
            lambda s, t: AlertConfigService(s, t, **self._kw()).create_alert_config(**values),
        )

    def update_alert_config(self, profile_id: UUID, config_id: UUID, **changes) -> AlertConfigInfo:
        return self._call(
            "update_alert_config",
            profile_id,
            lambda s, t: AlertConfigService(s, t, **self._kw()).update_alert_config(config_id, **changes),
        )

    def delete_alert_config(self, profile_id: UUID, config_id: UUID) -> None:
        return self._call(
            "delete_alert_config",
            profile_id,
            lambda s, t: AlertConfigService(s, t, **self._kw()).delete_alert_config(config_id),
        )

    def list_alert_configs(self, profile_id: UUID, active_only: bool = False) -> list[AlertConfigInfo]:
        return self._call(
            "list_alert_configs",
            profile_id,
            lambda s, t: AlertConfigService(s, t, **self._kw()).list_alert_configs(active_only),
        )

    def evaluate_alerts(
        self,
        profile_id: UUID,
        company_id: UUID | None = None,
        now: datetime | None = None,
    ) -> list[ActiveAlert]:
        """Run one evaluation pass now; raised alerts also go to the inbox."""

        def run(session: Session, tenant: TenantContext) -> list[ActiveAlert]:
            resolve_company(tenant, company_id)
            return AlertEvaluator(
                session,
                tenant,
                default_days_advance=self.settings.alerts.default_days_advance,
                **self._kw(),
            ).evaluate(now)

        alerts = self._call("evaluate_alerts", profile_id, run)
        self.inbox.add(alerts)
        return alerts

    def list_alerts(self, profile_id: UUID, include_acknowledged: bool = False) -> list[ActiveAlert]:
        tenant = self.resolve_tenant(profile_id)
        require_level(tenant, AccessLevel.EMPLOYEE)
        return self.inbox.list(tenant.company_id, include_acknowledged)

    def acknowledge_alert(self, profile_id: UUID, alert_id: UUID) -> bool:
        tenant = self.resolve_tenant(profile_id)
        require_level(tenant, AccessLevel.EMPLOYEE)
        return self.inbox.acknowledge(tenant.company_id, alert_id)

    def dismiss_alert(self, profile_id: UUID, alert_id: UUID) -> bool:
        tenant = self.resolve_tenant(profile_id)
        require_level(tenant, AccessLevel.EMPLOYEE)
        return self.inbox.dismiss(tenant.company_id, alert_id)
