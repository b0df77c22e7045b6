"""
Balance Calculator.

Pure functions: trip balances from a trip's financial fields, and agent
balances folded from ledger entries. No I/O, no session.
"""

from typing import Iterable

from freight_backend.app.models.enums import AgentRole
from freight_backend.app.models.ledger_enums import LedgerDirection
from freight_backend.app.models.trip_enums import ADDITIVE_DEDUCTIONS


def trip_additions(trip) -> int:
    """Sum of the additive deduction categories (everything except beta)."""
    return sum((getattr(trip, field.value) or 0) for field in ADDITIVE_DEDUCTIONS)


def _initial(trip) -> int:
    return (trip.freight or 0) - (trip.advance or 0)


def compute_trip_balance(trip) -> int:
    """
    Expected outstanding balance of a trip, in paise.

    (freight - advance) + additions - beta - sum(payments). Bulk trips carry
    no financials and always balance to zero.
    """
    if trip.is_bulk:
        return 0
    paid = sum(p.amount for p in trip.payments)
    return _initial(trip) + trip_additions(trip) - (trip.beta or 0) - paid


def compute_final_close_balance(trip) -> int:
    """
    Balance the closing actor must settle.

    Finance-funded payments were credited to the debited agent by a mirror
    top-up, so they are added back instead of subtracted.
    """
    agent_paid = 0
    finance_paid = 0
    for payment in trip.payments:
        if payment.added_by_role == AgentRole.FINANCE:
            finance_paid += payment.amount
        else:
            agent_paid += payment.amount
    return _initial(trip) + trip_additions(trip) - (trip.beta or 0) - agent_paid + finance_paid


def signed_amount(entry) -> int:
    if entry.is_informational:
        return 0
    return entry.amount if entry.direction == LedgerDirection.CREDIT else -entry.amount


def fold_entries(entries: Iterable) -> int:
    """Credit minus Debit over non-informational entries."""
    return sum(signed_amount(entry) for entry in entries)
