"""
Module: procurement_kernel.db.types
Responsibility: Annotated type aliases and utility functions for amount and
    quantity columns.  Centralizes precision and rounding so that every model
    and service uses identical type definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

CRITICAL: No floats anywhere in the kernel.  Amounts and quantities use
Decimal with explicit precision.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated

from sqlalchemy import Numeric, String


# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Stock / line quantity: same storage precision as Money
Quantity = Annotated[Decimal, Numeric(38, 9)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Long text for notes
LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value) -> Decimal:
    """
    Coerce an int, str or Decimal to Decimal.

    Floats go through ``str()`` so that 0.1 becomes Decimal("0.1") rather
    than its binary expansion.

    Raises:
        ValueError: If value is None, a bool, or not numeric.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Not a numeric value: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a numeric value: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite value: {value!r}")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the only sanctioned rounding function for amounts in the kernel.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)
