"""
Ledger schemas.

Wallet requests (top-up, transfer, corrections) and ledger/balance
responses. Amounts are rupees.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from freight_backend.app.models.enums import AgentRole
from freight_backend.app.models.ledger_enums import DeductionBucket, LedgerDirection, LedgerEntryType
from freight_backend.app.models.trip_enums import PaymentMode
from freight_backend.app.schemas.money import RupeeAmount, Rupees


class TopUpRequest(BaseModel):
    """
    Schema for crediting an agent's wallet.

    A virtual top-up is recorded with an equal Virtual Expense and leaves
    the balance unchanged.
    """
    agent_id: int
    amount: RupeeAmount
    mode: PaymentMode = PaymentMode.CASH
    bank: Optional[str] = Field(None, max_length=100)
    reason: Optional[str] = Field(None, max_length=255)
    is_virtual: bool = False


class TransferRequest(BaseModel):
    sender_id: int
    receiver_id: int
    amount: RupeeAmount
    reason: Optional[str] = Field(None, max_length=255)


class LedgerEntryUpdate(BaseModel):
    amount: Optional[RupeeAmount] = None
    description: Optional[str] = Field(None, max_length=500)


class LedgerEntryResponse(BaseModel):
    id: int
    agent_id: int
    trip_id: Optional[int]
    lr_number: Optional[str]
    entry_type: LedgerEntryType
    direction: LedgerDirection
    amount: Rupees
    description: Optional[str]
    is_informational: bool
    reference_balance: Optional[Rupees]
    bank: Optional[str]
    paid_by: Optional[AgentRole]
    pair_id: Optional[str]
    bucket: Optional[DeductionBucket]
    contributor_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class LedgerListResponse(BaseModel):
    entries: List[LedgerEntryResponse]
    total: int
    limit: int
    offset: int


class WalletActionResponse(BaseModel):
    """Entries written by a top-up or transfer."""
    entries: List[LedgerEntryResponse]


class AgentBalanceResponse(BaseModel):
    agent_id: int
    balance: Rupees


class LedgerDeleteResponse(BaseModel):
    deleted_ids: List[int]


class TripDriftResponse(BaseModel):
    trip_id: int
    lr_number: str
    stored_balance: Rupees
    expected_balance: Rupees

    class Config:
        from_attributes = True


class AgentDriftResponse(BaseModel):
    agent_id: int
    materialized_balance: Rupees
    folded_balance: Rupees

    class Config:
        from_attributes = True


class ReconciliationReport(BaseModel):
    trips: List[TripDriftResponse]
    agents: List[AgentDriftResponse]
    consistent: bool
