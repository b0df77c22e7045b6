"""
Search API Endpoints.

Global LR lookup over trips and ledger entries. Open to every role.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from freight_backend.app.core.dependencies import get_actor
from freight_backend.app.db.session import get_db
from freight_backend.app.domain.trips.lifecycle import TripLifecycle
from freight_backend.app.schemas.ledger import LedgerEntryResponse
from freight_backend.app.schemas.search import LRSearchResponse
from freight_backend.app.schemas.trip import TripResponse
from freight_backend.app.services.agent_directory import Actor

router = APIRouter(prefix="/search", tags=["Search"])


@router.get("/lr/{lr_number}", response_model=LRSearchResponse)
async def search_lr(
    lr_number: str = Path(..., description="LR number or trip code, partial match"),
    company_name: Optional[str] = Query(None, description="Narrow trips by company"),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Search every agent's trips and ledger entries by LR.

    Case-insensitive substring match; at most 50 of each, newest first.
    """
    trips, entries = await TripLifecycle(db).search_lr(lr_number, company_name)
    return LRSearchResponse(
        search_term=lr_number.strip(),
        trips=[TripResponse.model_validate(t) for t in trips],
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
    )
