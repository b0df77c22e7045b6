"""
Dispute database model.

A challenge raised against an Active trip's financial fields.
"""

from sqlalchemy import Column, Integer, BigInteger, String, ForeignKey, DateTime, Enum, JSON
from sqlalchemy.sql import func
from freight_backend.app.db.session import Base
from freight_backend.app.models.dispute_enums import DisputeStatus


class Dispute(Base):
    """
    Dispute model.

    Status flow: OPEN -> RESOLVED (exactly once). `corrections` keeps the
    applied field changes for the record.
    """
    __tablename__ = "disputes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    lr_number = Column(String(50), nullable=False)
    agent_id = Column(Integer, ForeignKey('agents.id'), nullable=False, index=True)
    raised_by = Column(Integer, ForeignKey('agents.id'), nullable=False)

    dispute_type = Column(String(50), nullable=False)
    reason = Column(String(1000), nullable=False)
    amount = Column(BigInteger, default=0, nullable=False)  # paise, informational

    status = Column(Enum(DisputeStatus), default=DisputeStatus.OPEN, nullable=False, index=True)
    resolved_by = Column(Integer, ForeignKey('agents.id'), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    corrections = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return f"<Dispute(id={self.id}, trip_id={self.trip_id}, status='{self.status.value}')>"
