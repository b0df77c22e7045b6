"""
Trip schemas.

Request and response models for trips, payments, deductions and
attachments. Amounts are rupees.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional

from freight_backend.app.models.enums import AgentRole
from freight_backend.app.models.trip_enums import PaymentMode, TripStatus
from freight_backend.app.schemas.money import RupeeAmount, Rupees


class TripCreate(BaseModel):
    """Schema for creating a trip."""
    lr_number: str = Field(..., max_length=50)
    agent_id: Optional[int] = None  # defaults to the caller
    trip_date: date
    truck_number: str = Field(..., max_length=20)
    driver_phone_number: str = Field("", max_length=20)
    company_name: str = Field(..., max_length=200)
    route_from: str = Field(..., max_length=100)
    route_to: str = Field(..., max_length=100)
    tonnage: float = Field(0, ge=0)
    trip_code: Optional[str] = Field(None, max_length=50)
    is_bulk: bool = False
    freight: RupeeAmount = 0
    advance: RupeeAmount = 0
    lr_sheet: str = "Not Received"
    invoice_number: str = ""
    branch: Optional[str] = None


class TripDetailsUpdate(BaseModel):
    """Non-financial trip fields."""
    lr_sheet: Optional[str] = Field(None, max_length=50)
    invoice_number: Optional[str] = Field(None, max_length=50)


class PaymentCreate(BaseModel):
    """
    Schema for a mid-trip payment.

    Finance and Admin callers must name the agent whose wallet pays
    (selected_agent_id); agents always pay from their own wallet.
    """
    amount: RupeeAmount
    reason: str = Field(..., max_length=255)
    mode: PaymentMode = PaymentMode.CASH
    bank: Optional[str] = Field(None, max_length=100)
    selected_agent_id: Optional[int] = None


class DeductionsUpdate(BaseModel):
    """Partial deductions patch; omitted fields keep their value."""
    cess: Optional[RupeeAmount] = None
    kata: Optional[RupeeAmount] = None
    excess_tonnage: Optional[RupeeAmount] = None
    halting: Optional[RupeeAmount] = None
    expenses: Optional[RupeeAmount] = None
    beta: Optional[RupeeAmount] = None
    others: Optional[RupeeAmount] = None
    others_reason: Optional[str] = Field(None, max_length=255)


class TripCloseRequest(BaseModel):
    force_close: bool = False


class AttachmentCreate(BaseModel):
    filename: str = Field(..., max_length=255)
    storage_path: str = Field(..., max_length=500)
    original_name: Optional[str] = Field(None, max_length=255)


class AttachmentResponse(BaseModel):
    id: int
    trip_id: int
    filename: str
    original_name: Optional[str]
    storage_path: str
    uploaded_by: Optional[int]
    uploaded_at: datetime

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: int
    amount: Rupees
    reason: str
    mode: PaymentMode
    bank: Optional[str]
    added_by: int
    added_by_role: AgentRole
    debited_agent_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    lr_number: str
    trip_code: str
    trip_date: date
    truck_number: str
    driver_phone_number: str
    company_name: str
    route_from: str
    route_to: str
    route: str
    tonnage: float
    lr_sheet: str
    invoice_number: str
    agent_id: int
    branch: Optional[str]
    is_bulk: bool
    status: TripStatus
    freight: Rupees
    advance: Rupees
    balance: Rupees
    final_balance: Optional[Rupees]
    cess: Rupees
    kata: Rupees
    excess_tonnage: Rupees
    halting: Rupees
    expenses: Rupees
    beta: Rupees
    others: Rupees
    others_reason: str
    deductions_added_by: Optional[int]
    deductions_added_by_role: Optional[AgentRole]
    closed_by: Optional[int]
    closed_at: Optional[datetime]
    version: int
    created_at: datetime
    updated_at: datetime
    payments: List[PaymentResponse] = []
    attachments: List[AttachmentResponse] = []

    class Config:
        from_attributes = True


class TripListResponse(BaseModel):
    """Schema for paginated trip list."""
    trips: List[TripResponse]
    total: int
    limit: int
    offset: int
