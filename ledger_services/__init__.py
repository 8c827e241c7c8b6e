"""
ledger_services -- orchestration over the ledger kernel.

The public API facade, the alert scheduler and the in-memory alert inbox.
"""

from ledger_services.alert_inbox import AlertInbox
from ledger_services.alert_scheduler import AlertScheduler
from ledger_services.ledger_api import LedgerAPI

__all__ = [
    "AlertInbox",
    "AlertScheduler",
    "LedgerAPI",
]
