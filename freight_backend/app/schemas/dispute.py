"""
Dispute schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from freight_backend.app.models.dispute_enums import DisputeStatus
from freight_backend.app.schemas.money import RupeeAmount, Rupees


class DisputeCreate(BaseModel):
    trip_id: int
    dispute_type: str = Field(..., max_length=50)
    reason: str = Field(..., max_length=1000)
    amount: RupeeAmount = 0


class DisputeResolve(BaseModel):
    """
    Corrected trip values. Omitted fields stay as they are; a financial
    field set to its current value posts nothing.
    """
    freight: Optional[RupeeAmount] = None
    advance: Optional[RupeeAmount] = None
    cess: Optional[RupeeAmount] = None
    kata: Optional[RupeeAmount] = None
    excess_tonnage: Optional[RupeeAmount] = None
    halting: Optional[RupeeAmount] = None
    expenses: Optional[RupeeAmount] = None
    beta: Optional[RupeeAmount] = None
    others: Optional[RupeeAmount] = None
    others_reason: Optional[str] = Field(None, max_length=255)

    lr_number: Optional[str] = Field(None, max_length=50)
    trip_date: Optional[date] = None
    truck_number: Optional[str] = Field(None, max_length=20)
    driver_phone_number: Optional[str] = Field(None, max_length=20)
    company_name: Optional[str] = Field(None, max_length=200)
    route_from: Optional[str] = Field(None, max_length=100)
    route_to: Optional[str] = Field(None, max_length=100)
    tonnage: Optional[float] = Field(None, ge=0)

    remark: Optional[str] = Field(None, max_length=500)


class DisputeResponse(BaseModel):
    id: int
    trip_id: int
    lr_number: str
    agent_id: int
    raised_by: int
    dispute_type: str
    reason: str
    amount: Rupees
    status: DisputeStatus
    resolved_by: Optional[int]
    resolved_at: Optional[datetime]
    corrections: Optional[Dict[str, Any]]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DisputeListResponse(BaseModel):
    disputes: List[DisputeResponse]
    total: int
    limit: int
    offset: int
