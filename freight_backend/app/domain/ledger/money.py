"""
Fixed-point money helpers.

The engine stores and adds integer paise only. Rupee decimals exist at the
API boundary and nowhere else.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

PAISE_PER_RUPEE = 100

_ONE_PAISA = Decimal("0.01")


def to_paise(rupees: Union[Decimal, int, str, None]) -> int:
    """Convert a rupee amount to integer paise, rounding half-up to the paisa."""
    if rupees is None:
        return 0
    value = Decimal(str(rupees)).quantize(_ONE_PAISA, rounding=ROUND_HALF_UP)
    return int(value * PAISE_PER_RUPEE)


def from_paise(paise: Union[int, None]) -> Decimal:
    """Render integer paise as a two-place rupee Decimal."""
    if paise is None:
        return Decimal("0.00")
    return (Decimal(paise) / PAISE_PER_RUPEE).quantize(_ONE_PAISA)


def format_rupees(paise: int) -> str:
    return f"{from_paise(paise):,.2f}"
