"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
    Provides the UUID primary key convention, the type annotation map for
    consistent column types, the TrackedBase timestamp mixin and the
    TenantOwned mixin that carries the isolation column.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - UUID primary keys generated with uuid4.
    - Decimal maps to Numeric(38, 9); money is never a float.
    - Every TenantOwned row has a NOT NULL company_id.  Rows that reach
      their tenant through a mission declare ``__tenant_via__`` instead.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Converts between Python UUID objects and their 36-character string
    form on bind and on load.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class EnumString(TypeDecorator):
    """
    str-valued Enum stored as its plain value in a String column.

    Loads back as the Enum member so callers can rely on ``.value`` and
    identity comparisons regardless of backend.
    """

    impl = String(30)
    cache_ok = True

    def __init__(self, enum_cls: type[Enum], *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_cls = enum_cls

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return self.enum_cls(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_cls(value)


class Base(DeclarativeBase):
    """
    Declarative base for all ledger models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """Abstract base adding created_at / updated_at audit timestamps."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class TenantOwned:
    """
    Mixin for rows that carry their company id directly.

    The isolation guard stamps ``company_id`` on insert and filters every
    query on it.  The column is never updated after insert.
    """

    @declared_attr
    def company_id(cls) -> Mapped[PyUUID]:
        return mapped_column(
            UUIDString(),
            ForeignKey("companies.id"),
            nullable=False,
            index=True,
        )


UUID = PyUUID
