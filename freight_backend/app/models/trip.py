"""
Trip database model.

A road-freight movement executed by an agent. Money columns hold paise.
"""

from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, Float, ForeignKey, DateTime, Date, Enum, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from freight_backend.app.db.session import Base
from freight_backend.app.models.enums import AgentRole
from freight_backend.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.

    Owns its deductions (flat columns), mid-trip payments and attachments.
    `balance` must equal the balance formula after every mutation; `version`
    guards against lost updates from writers outside the trip lease.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identification
    lr_number = Column(String(50), nullable=False, index=True)
    trip_code = Column(String(50), nullable=False, index=True)
    trip_date = Column(Date, nullable=False)
    truck_number = Column(String(20), nullable=False)
    driver_phone_number = Column(String(20), nullable=False)
    company_name = Column(String(200), nullable=False)
    route_from = Column(String(100), nullable=False)
    route_to = Column(String(100), nullable=False)
    tonnage = Column(Float, default=0, nullable=False)
    lr_sheet = Column(String(50), default="Not Received", nullable=False)
    invoice_number = Column(String(50), default="", nullable=False)

    # Ownership
    agent_id = Column(Integer, ForeignKey('agents.id'), nullable=False, index=True)
    branch = Column(String(100), nullable=True, index=True)

    # Financials (paise)
    is_bulk = Column(Boolean, default=False, nullable=False)
    freight = Column(BigInteger, default=0, nullable=False)
    advance = Column(BigInteger, default=0, nullable=False)
    balance = Column(BigInteger, default=0, nullable=False)
    final_balance = Column(BigInteger, nullable=True)

    # Deductions bundle
    cess = Column(BigInteger, default=0, nullable=False)
    kata = Column(BigInteger, default=0, nullable=False)
    excess_tonnage = Column(BigInteger, default=0, nullable=False)
    halting = Column(BigInteger, default=0, nullable=False)
    expenses = Column(BigInteger, default=0, nullable=False)
    beta = Column(BigInteger, default=0, nullable=False)
    others = Column(BigInteger, default=0, nullable=False)
    others_reason = Column(String(255), default="", nullable=False)
    deductions_added_by = Column(Integer, ForeignKey('agents.id'), nullable=True)
    deductions_added_by_role = Column(Enum(AgentRole), nullable=True)

    # Status
    status = Column(Enum(TripStatus), default=TripStatus.ACTIVE, nullable=False, index=True)
    closed_by = Column(Integer, ForeignKey('agents.id'), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    payments = relationship(
        "TripPayment",
        back_populates="trip",
        order_by="TripPayment.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    attachments = relationship(
        "TripAttachment",
        back_populates="trip",
        order_by="TripAttachment.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    # Ledger entries reference trips weakly; a deleted trip id is never reused
    __table_args__ = {"sqlite_autoincrement": True}
    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    @property
    def route(self) -> str:
        return f"{self.route_from} - {self.route_to}"

    def __repr__(self):
        return f"<Trip(id={self.id}, lr='{self.lr_number}', status='{self.status.value}', balance={self.balance})>"


# Case-insensitive LR uniqueness, enforced by the database as well
Index("ux_trips_lr_number_ci", func.lower(Trip.lr_number), unique=True)
