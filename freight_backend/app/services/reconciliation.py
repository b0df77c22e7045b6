"""
Reconciliation service.

Read-only drift detection. Secondary ledger writes are allowed to fail
without failing the business operation, so something has to notice when
stored values stop agreeing with their derivations.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from freight_backend.app.domain.ledger.balance import compute_trip_balance, signed_amount
from freight_backend.app.models.agent_balance import AgentBalance
from freight_backend.app.models.ledger_entry import LedgerEntry
from freight_backend.app.models.trip import Trip

logger = logging.getLogger("freight.reconciliation")


@dataclass
class TripDrift:
    trip_id: int
    lr_number: str
    stored_balance: int
    expected_balance: int


@dataclass
class AgentDrift:
    agent_id: int
    materialized_balance: int
    folded_balance: int


class ReconciliationService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def trip_balance_drift(self) -> List[TripDrift]:
        """Trips whose stored balance disagrees with the balance formula."""
        result = await self.db.execute(select(Trip).order_by(Trip.id))
        drift = []
        for trip in result.scalars().all():
            expected = compute_trip_balance(trip)
            if trip.balance != expected:
                drift.append(TripDrift(trip.id, trip.lr_number, trip.balance, expected))
        if drift:
            logger.warning("%d trip(s) drifted from the balance formula", len(drift))
        return drift

    async def agent_balance_drift(self) -> List[AgentDrift]:
        """Agents whose materialized balance disagrees with their folded ledger."""
        folded: Dict[int, int] = {}
        entries = await self.db.execute(select(LedgerEntry).order_by(LedgerEntry.id))
        for entry in entries.scalars().all():
            folded[entry.agent_id] = folded.get(entry.agent_id, 0) + signed_amount(entry)

        result = await self.db.execute(select(AgentBalance.agent_id, AgentBalance.balance))
        materialized = {row.agent_id: row.balance for row in result.all()}

        drift = []
        for agent_id in sorted(set(folded) | set(materialized)):
            stored = materialized.get(agent_id, 0)
            expected = folded.get(agent_id, 0)
            if stored != expected:
                drift.append(AgentDrift(agent_id, stored, expected))
        if drift:
            logger.warning("%d agent balance(s) drifted from the ledger fold", len(drift))
        return drift
