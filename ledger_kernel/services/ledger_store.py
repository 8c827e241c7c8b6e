"""
Module: ledger_kernel.services.ledger_store
Responsibility: Tenant-filtered read/write access to ledger rows for the
    write-side services, the atomic step primitive and per-provider
    serialization.
Architecture position: Kernel > Services.  Wraps a caller-owned Session;
    flushes but never commits.

Invariants enforced:
    - Every lookup is filtered by the caller's tenant.  A row of another
      company is reported exactly like a missing row.
    - Every insert is stamped with the caller's tenant (direct rows) or
      checked against the mission's tenant (mission-scoped rows).
    - ``atomic()`` runs a step inside a SAVEPOINT.  Any exception rolls the
      whole step back; SQLAlchemy errors surface as StoreError with the
      original as ``__cause__``.
    - ``provider_lock()`` serializes settlement per (company, provider):
      an in-process lock for threads of this process plus
      ``SELECT ... FOR UPDATE`` on the provider row for other processes
      (PostgreSQL; SQLite serializes writers on its own).

Failure modes:
    - NotFoundError subclass supplied by the caller for missing rows.
    - StoreError / StoreTimeoutError when the database fails mid-step.
"""

import threading
import weakref
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import TenantContext
from ledger_kernel.exceptions import (
    MissionNotFoundError,
    NotFoundError,
    ProviderNotFoundError,
    StoreError,
    StoreTimeoutError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.mission import Mission
from ledger_kernel.models.provider import ServiceProvider
from ledger_kernel.selectors.base import tenant_select
from ledger_kernel.services.isolation_guard import (
    assert_ownership,
    ensure_tenant_stamped,
)

logger = get_logger("services.ledger_store")

RowT = TypeVar("RowT")

_TIMEOUT_MARKERS = ("timeout", "timed out", "canceling statement", "database is locked")


def is_timeout(exc: BaseException) -> bool:
    return isinstance(exc, OperationalError) and any(
        marker in str(exc).lower() for marker in _TIMEOUT_MARKERS
    )


def wrap_store_error(operation: str, exc: SQLAlchemyError) -> StoreError:
    detail = type(exc).__name__
    if is_timeout(exc):
        return StoreTimeoutError(operation, detail)
    return StoreError(operation, detail)


class ProviderLockRegistry:
    """One re-entrant lock per (company, provider), created on first use.

    Entries are weak: a lock lives only while some caller holds a
    reference to it, so idle providers cost nothing.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[tuple[UUID, UUID], threading.RLock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, company_id: UUID, provider_id: UUID) -> threading.RLock:
        key = (company_id, provider_id)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock


default_lock_registry = ProviderLockRegistry()


class TenantLedgerStore:
    """
    The ledger store as seen by one tenant.

    Contract:
        Constructed per unit of work with the caller's session and resolved
        TenantContext.  Nothing here can address another company's rows.
    """

    def __init__(
        self,
        session: Session,
        tenant: TenantContext,
        locks: ProviderLockRegistry | None = None,
    ):
        self.session = session
        self.tenant = tenant
        self.locks = locks or default_lock_registry

    @property
    def company_id(self) -> UUID:
        return self.tenant.company_id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def select(self, model: type):
        return tenant_select(model, self.company_id)

    def find(self, model: type[RowT], entity_id: UUID) -> RowT | None:
        stmt = self.select(model).where(model.id == entity_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def get(
        self,
        model: type[RowT],
        entity_id: UUID,
        not_found: type[NotFoundError] = NotFoundError,
        for_update: bool = False,
    ) -> RowT:
        stmt = self.select(model).where(model.id == entity_id)
        if for_update:
            stmt = stmt.with_for_update(of=model)
        row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise not_found(str(entity_id))
        return row

    def list_rows(self, model: type[RowT], *criteria: Any, order_by: tuple = ()) -> list[RowT]:
        stmt = self.select(model)
        if criteria:
            stmt = stmt.where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        return list(self.session.execute(stmt).scalars().all())

    def get_provider(self, provider_id: UUID) -> ServiceProvider:
        return self.get(ServiceProvider, provider_id, ProviderNotFoundError)

    def get_mission(self, mission_id: UUID) -> Mission:
        return self.get(Mission, mission_id, MissionNotFoundError)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, model: type[RowT], values: Mapping[str, Any]) -> RowT:
        """
        Create a row owned by the caller's tenant.

        Direct rows get ``company_id`` forced to the tenant.  Mission-scoped
        rows must name a mission of the tenant.
        """
        if getattr(model, "__tenant_via__", None) == "mission":
            self.get_mission(values["mission_id"])
            row = model(**values)
        else:
            row = model(**ensure_tenant_stamped(values, self.tenant))
        self.session.add(row)
        self.session.flush()
        return row

    def check_owned(self, row: Any) -> None:
        if not assert_ownership(row, self.tenant):
            raise NotFoundError(str(getattr(row, "id", "?")))

    @contextmanager
    def atomic(self, operation: str) -> Iterator[None]:
        """Run one multi-row step all-or-nothing."""
        try:
            with self.session.begin_nested():
                yield
        except SQLAlchemyError as exc:
            logger.error(
                "store_step_failed",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise wrap_store_error(operation, exc) from exc

    @contextmanager
    def provider_lock(self, provider_id: UUID) -> Iterator[ServiceProvider]:
        """Hold the (company, provider) lock and the provider row lock."""
        lock = self.locks.lock_for(self.company_id, provider_id)
        with lock:
            provider = self.get(
                ServiceProvider,
                provider_id,
                ProviderNotFoundError,
                for_update=True,
            )
            yield provider
