"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for read-only selectors, plus the one
    function that builds a tenant-filtered SELECT for any ledger model.
Architecture position: Kernel > Selectors.  May import from db/, models/,
    domain/ and ledger_engines.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Every query is built from ``tenant_select`` so a selector cannot
      forget the company filter.  Rows without a company column are
      filtered through their mission.

Failure modes:
    - TypeError from ``tenant_select`` for a model that is neither tenant
      owned nor mission scoped.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from ledger_kernel.models.mission import Mission


def tenant_select(model: type, company_id: UUID) -> Select:
    """``SELECT model`` restricted to rows whose effective tenant is ``company_id``."""
    if "company_id" in model.__table__.c:
        return select(model).where(model.company_id == company_id)
    if getattr(model, "__tenant_via__", None) == "mission":
        return (
            select(model)
            .join(Mission, model.mission_id == Mission.id)
            .where(Mission.company_id == company_id)
        )
    raise TypeError(f"{model.__name__} is not tenant scoped")


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session and the resolved company id from the
        caller, perform read-only queries inside that company, and return
        DTOs or computed results.
    """

    def __init__(self, session: Session, company_id: UUID):
        self.session = session
        self.company_id = company_id

    def _select(self, model: type) -> Select:
        return tenant_select(model, self.company_id)
