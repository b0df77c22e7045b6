"""
Ledger enumerations.
"""

import enum


class LedgerDirection(str, enum.Enum):
    """Direction of a ledger entry relative to the owning agent's wallet."""
    CREDIT = "Credit"  # Money entering the agent's wallet
    DEBIT = "Debit"  # Money leaving the agent's wallet


class LedgerEntryType(str, enum.Enum):
    """Ledger entry type enumeration (closed set, extend by adding values)."""
    TRIP_CREATED = "Trip Created"
    TOP_UP = "Top-up"
    VIRTUAL_TOP_UP = "Virtual Top-up"
    VIRTUAL_EXPENSE = "Virtual Expense"
    ON_TRIP_PAYMENT = "On-Trip Payment"
    AGENT_TRANSFER = "Agent Transfer"
    SETTLEMENT = "Settlement"
    TRIP_CLOSED = "Trip Closed"
    BETA_CREDIT = "Beta/Batta Credit"
    DISPUTE_FREIGHT = "Dispute - Freight Correction"
    DISPUTE_ADVANCE = "Dispute - Advance Correction"
    DISPUTE_CESS = "Dispute - Cess Correction"
    DISPUTE_KATA = "Dispute - Kata Correction"
    DISPUTE_EXCESS_TONNAGE = "Dispute - ExcessTonnage Correction"
    DISPUTE_HALTING = "Dispute - Halting Correction"
    DISPUTE_EXPENSES = "Dispute - Expenses Correction"
    DISPUTE_BETA = "Dispute - Beta Correction"
    DISPUTE_OTHERS = "Dispute - Others Correction"


class DeductionBucket(str, enum.Enum):
    """Natural-key bucket of a deduction Settlement entry."""
    ADDITIONS = "additions"  # cess + kata + excess tonnage + halting + expenses + others
    BETA = "beta"


# Only these may be amended or deleted after posting
CORRECTABLE_ENTRY_TYPES = frozenset({
    LedgerEntryType.TOP_UP,
    LedgerEntryType.VIRTUAL_TOP_UP,
    LedgerEntryType.AGENT_TRANSFER,
})
