"""
Rupee amounts at the API boundary.

Requests carry rupee decimals; the engine works in integer paise.
Responses are built from ORM rows, so paise integers are rendered back
into rupees on the way out.
"""

from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BeforeValidator, Field

from freight_backend.app.domain.ledger.money import from_paise, to_paise


def _paise_to_rupees(value):
    if isinstance(value, int) and not isinstance(value, bool):
        return from_paise(value)
    return value


# Incoming amount in rupees, at most two decimal places
RupeeAmount = Annotated[Decimal, Field(max_digits=14, decimal_places=2)]

# Outgoing amount: paise from the database, rupees on the wire
Rupees = Annotated[Decimal, BeforeValidator(_paise_to_rupees)]


def paise(value: Optional[Decimal]) -> Optional[int]:
    return None if value is None else to_paise(value)
