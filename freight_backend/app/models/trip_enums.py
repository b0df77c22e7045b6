"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    ACTIVE = "Active"  # Created; payments and deductions accepted
    IN_DISPUTE = "In Dispute"  # Financials frozen until the dispute is resolved
    COMPLETED = "Completed"  # Closed; final balance frozen (terminal)


class PaymentMode(str, enum.Enum):
    """How a mid-trip payment was made."""
    CASH = "Cash"
    ONLINE = "Online"


class DeductionField(str, enum.Enum):
    """Deduction categories held on a trip."""
    CESS = "cess"
    KATA = "kata"
    EXCESS_TONNAGE = "excess_tonnage"
    HALTING = "halting"
    EXPENSES = "expenses"
    OTHERS = "others"
    BETA = "beta"


# Categories that increase what is owed to the agent at settlement
ADDITIVE_DEDUCTIONS = (
    DeductionField.CESS,
    DeductionField.KATA,
    DeductionField.EXCESS_TONNAGE,
    DeductionField.HALTING,
    DeductionField.EXPENSES,
    DeductionField.OTHERS,
)
