"""
Reconciliation API Endpoints.

Read-only drift report for the back office.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from freight_backend.app.core.guards import require_back_office
from freight_backend.app.db.session import get_db
from freight_backend.app.schemas.ledger import AgentDriftResponse, ReconciliationReport, TripDriftResponse
from freight_backend.app.services.agent_directory import Actor
from freight_backend.app.services.reconciliation import ReconciliationService

router = APIRouter(prefix="/reconciliation", tags=["Reconciliation"])


@router.get("", response_model=ReconciliationReport)
async def reconciliation_report(
    actor: Actor = Depends(require_back_office),
    db: AsyncSession = Depends(get_db)
):
    service = ReconciliationService(db)
    trips = await service.trip_balance_drift()
    agents = await service.agent_balance_drift()
    return ReconciliationReport(
        trips=[TripDriftResponse.model_validate(t) for t in trips],
        agents=[AgentDriftResponse.model_validate(a) for a in agents],
        consistent=not trips and not agents,
    )
