"""
Trip API Endpoints.

Thin adapter over TripLifecycle: rupees in, paise to the engine, rupees out.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from freight_backend.app.core.dependencies import get_actor
from freight_backend.app.core.guards import require_back_office
from freight_backend.app.db.session import get_db
from freight_backend.app.domain.trips.lifecycle import (
    AttachmentInput,
    PaymentInput,
    TripFilter,
    TripInput,
    TripLifecycle,
)
from freight_backend.app.models.trip_enums import TripStatus
from freight_backend.app.schemas.money import paise
from freight_backend.app.schemas.trip import (
    AttachmentCreate,
    AttachmentResponse,
    DeductionsUpdate,
    PaymentCreate,
    TripCloseRequest,
    TripCreate,
    TripDetailsUpdate,
    TripListResponse,
    TripResponse,
)
from freight_backend.app.services.agent_directory import Actor

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    payload: TripCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a trip.

    Validates:
    - Driver phone present
    - LR number unique (case-insensitive, against LR numbers and trip codes)
    - Owning agent exists

    Posts a Trip Created Debit for the advance when there is one.
    """
    data = TripInput(
        lr_number=payload.lr_number,
        agent_id=payload.agent_id or actor.id,
        trip_date=payload.trip_date,
        truck_number=payload.truck_number,
        driver_phone_number=payload.driver_phone_number,
        company_name=payload.company_name,
        route_from=payload.route_from,
        route_to=payload.route_to,
        tonnage=payload.tonnage,
        trip_code=payload.trip_code,
        is_bulk=payload.is_bulk,
        freight=paise(payload.freight),
        advance=paise(payload.advance),
        lr_sheet=payload.lr_sheet,
        invoice_number=payload.invoice_number,
        branch=payload.branch,
    )
    trip = await TripLifecycle(db).create(data, actor)
    return TripResponse.model_validate(trip)


@router.get("", response_model=TripListResponse)
async def list_trips(
    agent_id: Optional[int] = Query(None),
    trip_status: Optional[TripStatus] = Query(None, alias="status"),
    branch: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="LR, truck number or company"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    trips, total = await TripLifecycle(db).list(TripFilter(
        agent_id=agent_id,
        status=trip_status,
        branch=branch,
        search=search,
        limit=limit,
        offset=offset,
    ))
    return TripListResponse(
        trips=[TripResponse.model_validate(t) for t in trips],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int = Path(..., description="Trip ID"),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripLifecycle(db).get(trip_id)
    return TripResponse.model_validate(trip)


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip_details(
    payload: TripDetailsUpdate,
    trip_id: int = Path(..., description="Trip ID"),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripLifecycle(db).update_details(trip_id, payload.model_dump(exclude_none=True), actor)
    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/payments", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def add_payment(
    payload: PaymentCreate,
    trip_id: int = Path(..., description="Trip ID"),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Add a mid-trip payment.

    Agents pay from their own wallet. Finance/Admin must pass
    selected_agent_id; that agent is credited a mirrored top-up and then
    debited the payment.
    """
    trip = await TripLifecycle(db).add_payment(trip_id, PaymentInput(
        amount=paise(payload.amount),
        reason=payload.reason,
        mode=payload.mode,
        bank=payload.bank,
        selected_agent_id=payload.selected_agent_id,
    ), actor)
    return TripResponse.model_validate(trip)


@router.put("/{trip_id}/deductions", response_model=TripResponse)
async def update_deductions(
    payload: DeductionsUpdate,
    trip_id: int = Path(..., description="Trip ID"),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    patch = {}
    for name, value in payload.model_dump(exclude_none=True).items():
        patch[name] = value if name == "others_reason" else paise(value)
    trip = await TripLifecycle(db).update_deductions(trip_id, patch, actor)
    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/close", response_model=TripResponse)
async def close_trip(
    payload: Optional[TripCloseRequest] = None,
    trip_id: int = Path(..., description="Trip ID"),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Close a trip.

    Agents can only close a trip whose final balance is zero. force_close
    (Finance/Admin only) closes past an open dispute.
    """
    trip = await TripLifecycle(db).close(
        trip_id, actor, force_close=bool(payload and payload.force_close)
    )
    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/attachments", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
async def add_attachment(
    payload: AttachmentCreate,
    trip_id: int = Path(..., description="Trip ID"),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    attachment = await TripLifecycle(db).add_attachment(trip_id, AttachmentInput(
        filename=payload.filename,
        storage_path=payload.storage_path,
        original_name=payload.original_name,
    ), actor)
    return AttachmentResponse.model_validate(attachment)


@router.delete("/{trip_id}/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_attachment(
    trip_id: int = Path(..., description="Trip ID"),
    attachment_id: int = Path(..., description="Attachment ID"),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    await TripLifecycle(db).remove_attachment(trip_id, attachment_id, actor)


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(
    trip_id: int = Path(..., description="Trip ID"),
    actor: Actor = Depends(require_back_office),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a trip (Finance/Admin only).

    Payments and attachments go with it; ledger entries and agent balances
    are left as they are.
    """
    await TripLifecycle(db).delete(trip_id, actor)
