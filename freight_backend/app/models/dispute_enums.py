"""
Dispute enumerations.
"""

import enum


class DisputeStatus(str, enum.Enum):
    """Dispute status enumeration."""
    OPEN = "Open"  # Trip is held In Dispute
    RESOLVED = "Resolved"  # Corrections applied, trip back to Active
