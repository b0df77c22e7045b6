"""
Dispute API Endpoints.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from freight_backend.app.core.dependencies import get_actor
from freight_backend.app.core.guards import require_back_office
from freight_backend.app.db.session import get_db
from freight_backend.app.domain.disputes.reconciler import DisputeFilter, DisputeReconciler, FINANCIAL_CORRECTIONS
from freight_backend.app.models.dispute_enums import DisputeStatus
from freight_backend.app.schemas.dispute import (
    DisputeCreate,
    DisputeListResponse,
    DisputeResolve,
    DisputeResponse,
)
from freight_backend.app.schemas.money import paise
from freight_backend.app.services.agent_directory import Actor

router = APIRouter(prefix="/disputes", tags=["Disputes"])

_FINANCIAL_FIELDS = {name for name, _, _ in FINANCIAL_CORRECTIONS}


@router.post("", response_model=DisputeResponse, status_code=status.HTTP_201_CREATED)
async def open_dispute(
    payload: DisputeCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """Raise a dispute against an Active trip; the trip goes In Dispute."""
    dispute = await DisputeReconciler(db).open_dispute(
        payload.trip_id, payload.dispute_type, payload.reason, actor, amount=paise(payload.amount)
    )
    return DisputeResponse.model_validate(dispute)


@router.get("", response_model=DisputeListResponse)
async def list_disputes(
    dispute_status: Optional[DisputeStatus] = Query(None, alias="status"),
    agent_id: Optional[int] = Query(None),
    trip_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    if not actor.is_back_office:
        agent_id = actor.id
    disputes, total = await DisputeReconciler(db).list(DisputeFilter(
        status=dispute_status, agent_id=agent_id, trip_id=trip_id, limit=limit, offset=offset,
    ))
    return DisputeListResponse(
        disputes=[DisputeResponse.model_validate(d) for d in disputes],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{dispute_id}", response_model=DisputeResponse)
async def get_dispute(
    dispute_id: int = Path(..., description="Dispute ID"),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    dispute = await DisputeReconciler(db).get(dispute_id)
    return DisputeResponse.model_validate(dispute)


@router.post("/{dispute_id}/resolve", response_model=DisputeResponse)
async def resolve_dispute(
    payload: DisputeResolve,
    dispute_id: int = Path(..., description="Dispute ID"),
    actor: Actor = Depends(require_back_office),
    db: AsyncSession = Depends(get_db)
):
    """
    Resolve a dispute with corrected trip values (Finance/Admin).

    Each changed financial field posts one compensating entry to the trip's
    agent; the trip returns to Active.
    """
    corrections = {}
    for name, value in payload.model_dump(exclude_none=True).items():
        corrections[name] = paise(value) if name in _FINANCIAL_FIELDS else value
    dispute = await DisputeReconciler(db).resolve_dispute(dispute_id, corrections, actor)
    return DisputeResponse.model_validate(dispute)
