"""
Agent Balance database model.

Materialized running balance per agent, kept in step with the ledger.
"""

from sqlalchemy import Column, Integer, BigInteger, ForeignKey, DateTime
from sqlalchemy.sql import func
from freight_backend.app.db.session import Base


class AgentBalance(Base):
    """
    Agent Balance model.

    Written in the same transaction as every non-informational ledger
    write, always through an atomic increment. Must equal the fold of the
    agent's entries; ReconciliationService reports any drift.
    """
    __tablename__ = "agent_balances"

    agent_id = Column(Integer, ForeignKey('agents.id'), primary_key=True)
    balance = Column(BigInteger, default=0, nullable=False)  # paise
    entry_count = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return f"<AgentBalance(agent_id={self.agent_id}, balance={self.balance})>"
