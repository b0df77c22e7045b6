"""
Ledger Entry database model.

Append-mostly record of money moving in or out of one agent's wallet.
"""

from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, ForeignKey, DateTime, Enum, UniqueConstraint
)
from sqlalchemy.sql import func
from freight_backend.app.db.session import Base
from freight_backend.app.models.enums import AgentRole
from freight_backend.app.models.ledger_enums import LedgerDirection, LedgerEntryType, DeductionBucket


class LedgerEntry(Base):
    """
    Ledger Entry model.

    An agent's balance is the fold of Credit minus Debit over the agent's
    non-informational entries. Only Top-up, Virtual Top-up and Agent
    Transfer entries may be amended or deleted; twins created together
    share a `pair_id`.

    `trip_id` is a weak back-reference (no foreign key): entries outlive
    the trips they describe.
    """
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Owner
    agent_id = Column(Integer, ForeignKey('agents.id'), nullable=False, index=True)

    # Trip linkage (weak)
    trip_id = Column(Integer, nullable=True, index=True)
    lr_number = Column(String(50), nullable=True)

    # Entry details
    entry_type = Column(Enum(LedgerEntryType), nullable=False, index=True)
    direction = Column(Enum(LedgerDirection), nullable=False)
    amount = Column(BigInteger, nullable=False)  # paise, never negative
    description = Column(String(500), nullable=True)
    is_informational = Column(Boolean, default=False, nullable=False)
    reference_balance = Column(BigInteger, nullable=True)  # display only
    bank = Column(String(100), nullable=True)
    paid_by = Column(Enum(AgentRole), nullable=True)

    # Twin linkage
    pair_id = Column(String(36), nullable=True, index=True)

    # Deduction natural key
    bucket = Column(Enum(DeductionBucket), nullable=True)
    contributor_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("trip_id", "contributor_id", "bucket", name="uq_ledger_deduction_key"),
    )

    @property
    def signed_amount(self) -> int:
        return self.amount if self.direction == LedgerDirection.CREDIT else -self.amount

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return (
            f"<LedgerEntry(id={self.id}, agent={self.agent_id}, type='{self.entry_type.value}', "
            f"{self.direction.value} {self.amount})>"
        )
