"""
AlertScheduler -- In-process timer that runs the alert evaluator.

Contract:
    Every tick evaluates the alert configs of every company, each under a
    system TenantContext for that company, and pushes raised alerts into
    the AlertInbox.

Architecture: ledger_services.  Uses ledger_kernel.services.AlertEvaluator
    for evaluation; throttling lives in the evaluator, so an early tick
    raises nothing new.

Invariants enforced:
    - All timestamps come from the injected Clock.
    - One company's failure is logged and does not stop the others.
    - Alerts reach the inbox only after the tick commits its
      ``last_triggered_at`` updates.
    - ``stop()`` ends the background thread; the current company finishes
      and no further company is started.
"""

from __future__ import annotations

import threading
from typing import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import ActiveAlert, TenantContext
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.company import Company
from ledger_kernel.services.alert_service import AlertEvaluator
from ledger_services.alert_inbox import AlertInbox

logger = get_logger("services.alert_scheduler")


class AlertScheduler:
    """Cancellable polling loop over all tenants' alert rules.

    Non-goals:
        - NOT a distributed scheduler (no leader election).
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        inbox: AlertInbox,
        clock: Clock | None = None,
        tick_interval_seconds: float = 60,
        default_days_advance: int = 7,
    ):
        self._session_factory = session_factory
        self._inbox = inbox
        self._clock = clock or SystemClock()
        self._tick_interval = tick_interval_seconds
        self._default_days_advance = default_days_advance
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> int:
        """Evaluate every company once (public for testing).

        Returns the number of alerts pushed into the inbox.  Alerts are
        published only after the tick commits; a failed commit publishes
        nothing and leaves every config due for the next tick.
        """
        session = self._session_factory()
        try:
            raised = self._evaluate_companies(session)
            session.commit()
        except Exception:
            session.rollback()
            logger.exception("alert_scheduler_tick_failed")
            return 0
        finally:
            session.close()
        return sum(self._inbox.add(alerts) for alerts in raised.values())

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="alert-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("alert_scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the loop to exit."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("alert_scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("alert_scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)

    def _evaluate_companies(self, session: Session) -> dict[UUID, list[ActiveAlert]]:
        now = self._clock.now_utc()
        company_ids = session.execute(select(Company.id).order_by(Company.id)).scalars().all()

        raised: dict[UUID, list[ActiveAlert]] = {}
        for company_id in company_ids:
            if self._stop_event.is_set():
                break
            raised[company_id] = self._evaluate_company(session, company_id, now)
        return raised

    def _evaluate_company(self, session: Session, company_id: UUID, now) -> list[ActiveAlert]:
        with LogContext.bind(tenant_id=str(company_id), operation="evaluate_alerts"):
            try:
                with session.begin_nested():
                    alerts = AlertEvaluator(
                        session,
                        TenantContext.system(company_id),
                        self._clock,
                        default_days_advance=self._default_days_advance,
                    ).evaluate(now)
            except Exception:
                logger.exception("alert_company_evaluation_failed")
                return []
            return alerts
