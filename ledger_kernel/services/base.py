"""
BaseService -- abstract base for all ledger kernel services.

Responsibility:
    Provides the common constructor shared by every write-side service:
    the caller's Session, the resolved TenantContext, an injected Clock and
    the TenantLedgerStore built from them.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back the outer transaction
      themselves.  Multi-row steps use ``self.store.atomic()`` (a
      SAVEPOINT), which rolls back only that step.
    - Services never see a raw profile, only a TenantContext.
"""

from abc import ABC
from decimal import Decimal

from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, to_money
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import TenantContext
from ledger_kernel.exceptions import (
    MissingFieldError,
    NonPositiveAmountError,
    ValidationError,
)
from ledger_kernel.services.ledger_store import ProviderLockRegistry, TenantLedgerStore


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a Session and TenantContext from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage the outer transaction lifecycle.
        - Does NOT provide query-only read models; those live in
          ``ledger_kernel/selectors/``.
    """

    def __init__(
        self,
        session: Session,
        tenant: TenantContext,
        clock: Clock | None = None,
        locks: ProviderLockRegistry | None = None,
    ):
        self.session = session
        self.tenant = tenant
        self.clock = clock or SystemClock()
        self.store = TenantLedgerStore(session, tenant, locks)

    @staticmethod
    def _positive_amount(field_name: str, value) -> Decimal:
        if value is None:
            raise MissingFieldError(field_name)
        try:
            amount = to_money(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{field_name} is not a valid amount") from exc
        if not amount.is_finite() or amount <= ZERO:
            raise NonPositiveAmountError(field_name, str(amount))
        return amount

    @staticmethod
    def _required_text(field_name: str, value: str | None) -> str:
        if value is None or not str(value).strip():
            raise MissingFieldError(field_name)
        return str(value).strip()
