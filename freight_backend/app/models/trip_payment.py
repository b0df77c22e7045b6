"""
Trip Payment database model.

A mid-trip payment made against a trip by an agent or by Finance.
"""

from sqlalchemy import Column, Integer, BigInteger, String, ForeignKey, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from freight_backend.app.db.session import Base
from freight_backend.app.models.enums import AgentRole
from freight_backend.app.models.trip_enums import PaymentMode


class TripPayment(Base):
    """
    Trip Payment model.

    `added_by_role` decides how the payment counts at close: Finance-funded
    payments were mirrored into the debited agent's wallet.
    """
    __tablename__ = "trip_payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey('trips.id', ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(BigInteger, nullable=False)  # paise
    reason = Column(String(255), nullable=False)
    mode = Column(Enum(PaymentMode), default=PaymentMode.CASH, nullable=False)
    bank = Column(String(100), nullable=True)

    added_by = Column(Integer, ForeignKey('agents.id'), nullable=False)
    added_by_role = Column(Enum(AgentRole), nullable=False)
    debited_agent_id = Column(Integer, ForeignKey('agents.id'), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    trip = relationship("Trip", back_populates="payments")

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return f"<TripPayment(id={self.id}, trip_id={self.trip_id}, amount={self.amount}, role='{self.added_by_role.value}')>"
