"""
Audit Log Database Model.

Tracks who did what to trips, wallets and disputes.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from freight_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - TRIP_CREATED / TRIP_UPDATED / TRIP_CLOSED / TRIP_DELETED
    - PAYMENT_ADDED / DEDUCTIONS_UPDATED
    - TOP_UP / AGENT_TRANSFER / LEDGER_ENTRY_AMENDED / LEDGER_ENTRY_DELETED
    - DISPUTE_OPENED / DISPUTE_RESOLVED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_role = Column(String(20), nullable=True)

    # What action was performed, on what
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(Integer, index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, entity={self.entity_type}:{self.entity_id})>"
