"""
Module: ledger_kernel.db.types
Responsibility: Annotated column aliases and the single sanctioned money
    rounding/tolerance helpers used by every model, engine and service.
Architecture position: Kernel > DB.  May be imported anywhere; imports
    nothing from the kernel.

Invariants enforced:
    - No floats for money.  ``to_money`` rejects float input outright so a
      float can never leak into a Decimal column through a careless caller.
    - ``round_money`` is the only rounding function for monetary values.
    - ``MONEY_EPSILON`` (0.01) is the tolerance for every "amounts match"
      comparison in the ledger (revenue splits, settlement totals).
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String

Money = Annotated[Decimal, Numeric(38, 9)]

ShortCode = Annotated[str, String(50)]

Name = Annotated[str, String(255)]

LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
MONEY_EPSILON = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value: Decimal | int | str) -> Decimal:
    """
    Coerce a caller-supplied amount to Decimal.

    Raises:
        TypeError: If value is a float.
        ValueError: If value is not a valid number.
    """
    if isinstance(value, float):
        raise TypeError("Monetary amounts must not be floats; pass Decimal or str")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"Not a valid amount: {value!r}") from exc


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a monetary value to ``decimal_places`` (half-up by default)."""
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def amounts_match(
    left: Decimal,
    right: Decimal,
    epsilon: Decimal = MONEY_EPSILON,
) -> bool:
    """True when two amounts differ by no more than ``epsilon``."""
    return abs(left - right) <= epsilon
