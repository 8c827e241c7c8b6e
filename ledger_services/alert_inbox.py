"""
AlertInbox -- in-memory holding area for raised alerts.

Alerts are ephemeral: they live here until a user acknowledges or dismisses
them and are never written to the ledger store.  Every operation is keyed by
company so one tenant can never see or clear another tenant's alerts.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from uuid import UUID

from ledger_kernel.domain.dtos import ActiveAlert
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.alert_inbox")


class AlertInbox:
    """Thread-safe per-company alert list shared by the scheduler and the API."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._alerts: dict[UUID, dict[UUID, ActiveAlert]] = {}
        self._acknowledged: dict[UUID, set[UUID]] = {}

    def add(self, alerts: Iterable[ActiveAlert]) -> int:
        added = 0
        with self._lock:
            for alert in alerts:
                self._alerts.setdefault(alert.company_id, {})[alert.id] = alert
                added += 1
        return added

    def list(self, company_id: UUID, include_acknowledged: bool = False) -> list[ActiveAlert]:
        with self._lock:
            alerts = list(self._alerts.get(company_id, {}).values())
            acknowledged = self._acknowledged.get(company_id, set())
        if not include_acknowledged:
            alerts = [a for a in alerts if a.id not in acknowledged]
        return sorted(alerts, key=lambda a: (a.created_at, str(a.id)))

    def is_acknowledged(self, company_id: UUID, alert_id: UUID) -> bool:
        with self._lock:
            return alert_id in self._acknowledged.get(company_id, set())

    def acknowledge(self, company_id: UUID, alert_id: UUID) -> bool:
        """Mark an alert as seen.  False when the company has no such alert."""
        with self._lock:
            if alert_id not in self._alerts.get(company_id, {}):
                return False
            self._acknowledged.setdefault(company_id, set()).add(alert_id)
        logger.info("alert_acknowledged", extra={"alert_id": str(alert_id)})
        return True

    def dismiss(self, company_id: UUID, alert_id: UUID) -> bool:
        """Remove an alert.  False when the company has no such alert."""
        with self._lock:
            removed = self._alerts.get(company_id, {}).pop(alert_id, None)
            self._acknowledged.get(company_id, set()).discard(alert_id)
        if removed is None:
            return False
        logger.info("alert_dismissed", extra={"alert_id": str(alert_id)})
        return True

    def clear(self, company_id: UUID | None = None) -> None:
        with self._lock:
            if company_id is None:
                self._alerts.clear()
                self._acknowledged.clear()
            else:
                self._alerts.pop(company_id, None)
                self._acknowledged.pop(company_id, None)
