"""
Dispute Reconciler (Domain Logic).

Opening a dispute holds an Active trip In Dispute. Resolving it applies
the corrected trip fields, posts one compensating ledger entry per changed
financial field to the trip's agent, recomputes the balance and puts the
trip back to Active.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from freight_backend.app.core.config import settings
from freight_backend.app.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from freight_backend.app.db.session import commit_or_raise
from freight_backend.app.domain.ledger.balance import compute_trip_balance
from freight_backend.app.domain.ledger.ledger_store import LedgerStore
from freight_backend.app.domain.ledger.money import format_rupees
from freight_backend.app.domain.trips.lifecycle import TripLifecycle
from freight_backend.app.models.dispute import Dispute
from freight_backend.app.models.dispute_enums import DisputeStatus
from freight_backend.app.models.ledger_entry import LedgerEntry
from freight_backend.app.models.ledger_enums import LedgerDirection, LedgerEntryType
from freight_backend.app.models.trip_enums import TripStatus
from freight_backend.app.services import audit
from freight_backend.app.services.trip_lease import TripLeaseManager

logger = logging.getLogger("freight.disputes")

# Financial fields in emission order, with their correction entry type and
# whether an increase credits the agent
FINANCIAL_CORRECTIONS = (
    ("freight", LedgerEntryType.DISPUTE_FREIGHT, True),
    ("advance", LedgerEntryType.DISPUTE_ADVANCE, False),
    ("cess", LedgerEntryType.DISPUTE_CESS, False),
    ("kata", LedgerEntryType.DISPUTE_KATA, False),
    ("excess_tonnage", LedgerEntryType.DISPUTE_EXCESS_TONNAGE, False),
    ("halting", LedgerEntryType.DISPUTE_HALTING, False),
    ("expenses", LedgerEntryType.DISPUTE_EXPENSES, False),
    ("others", LedgerEntryType.DISPUTE_OTHERS, False),
    ("beta", LedgerEntryType.DISPUTE_BETA, False),
)

DETAIL_CORRECTIONS = (
    "trip_date", "truck_number", "driver_phone_number", "company_name",
    "route_from", "route_to", "tonnage", "others_reason",
)


@dataclass
class DisputeFilter:
    status: Optional[DisputeStatus] = None
    agent_id: Optional[int] = None
    trip_id: Optional[int] = None
    limit: int = 50
    offset: int = 0


class DisputeReconciler:

    def __init__(self, db: AsyncSession, leases: Optional[TripLeaseManager] = None):
        self.db = db
        self.trips = TripLifecycle(db, leases)
        self.leases = self.trips.leases
        self.ledger = LedgerStore(db)

    async def get(self, dispute_id: int) -> Dispute:
        dispute = await self.db.get(Dispute, dispute_id)
        if dispute is None:
            raise NotFoundError("Dispute", dispute_id)
        return dispute

    async def list(self, flt: DisputeFilter) -> Tuple[List[Dispute], int]:
        query = select(Dispute)
        count_query = select(func.count(Dispute.id))
        if flt.status is not None:
            query = query.where(Dispute.status == flt.status)
            count_query = count_query.where(Dispute.status == flt.status)
        if flt.agent_id is not None:
            query = query.where(Dispute.agent_id == flt.agent_id)
            count_query = count_query.where(Dispute.agent_id == flt.agent_id)
        if flt.trip_id is not None:
            query = query.where(Dispute.trip_id == flt.trip_id)
            count_query = count_query.where(Dispute.trip_id == flt.trip_id)

        total = (await self.db.execute(count_query)).scalar()
        query = query.order_by(Dispute.created_at.desc(), Dispute.id.desc()).offset(flt.offset).limit(flt.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def open_dispute(self, trip_id: int, dispute_type: str, reason: str, actor,
                           amount: int = 0) -> Dispute:
        if not dispute_type or not dispute_type.strip():
            raise ValidationError("Dispute type is required", details={"field": "dispute_type"})
        if not reason or not reason.strip():
            raise ValidationError("Dispute reason is required", details={"field": "reason"})
        if amount is not None and amount < 0:
            raise ValidationError("Dispute amount cannot be negative", details={"amount": amount})

        async with self.leases.acquire(trip_id):
            trip = await self.trips.load_trip(trip_id, fresh=True)
            if trip.status != TripStatus.ACTIVE:
                raise InvalidStateError("Disputes can only be raised for Active trips",
                                        current_status=trip.status, details={"trip_id": trip.id})
            if await self.trips.has_open_dispute(trip.id):
                raise ConflictError("An open dispute already exists for this trip",
                                    details={"trip_id": trip.id})

            dispute = Dispute(
                trip_id=trip.id,
                lr_number=trip.lr_number,
                agent_id=trip.agent_id,
                raised_by=actor.id,
                dispute_type=dispute_type.strip(),
                reason=reason.strip(),
                amount=amount or 0,
                status=DisputeStatus.OPEN,
            )
            self.db.add(dispute)
            trip.status = TripStatus.IN_DISPUTE
            await self.trips.flush_or_conflict("Trip was modified concurrently, retry the request")

            await audit.record(self.db, audit.AuditAction.DISPUTE_OPENED, actor, "dispute", dispute.id,
                               {"trip_id": trip.id, "lr_number": trip.lr_number, "type": dispute.dispute_type})
            await commit_or_raise(self.db)

        logger.info("Dispute %s opened on trip %s by %s", dispute.id, trip.id, actor.id)
        return dispute

    async def resolve_dispute(self, dispute_id: int, corrections: Dict[str, Any], actor) -> Dispute:
        """
        Resolve an Open dispute with corrected trip fields.

        For every supplied financial field, delta = new - old. Zero deltas
        post nothing. Freight increases credit the trip's agent; advance and
        deduction increases debit them; decreases do the opposite. Entries
        are emitted freight, advance, then deductions. An optional remark
        is kept with the applied corrections.
        """
        allowed = {name for name, _, _ in FINANCIAL_CORRECTIONS} | set(DETAIL_CORRECTIONS) | {"lr_number", "remark"}
        unknown = set(corrections) - allowed
        if unknown:
            raise ValidationError("Unknown correction fields", details={"fields": sorted(unknown)})

        dispute = await self.get(dispute_id)
        async with self.leases.acquire(dispute.trip_id):
            dispute = (await self.db.execute(
                select(Dispute).where(Dispute.id == dispute_id).execution_options(populate_existing=True)
            )).scalar_one()
            if dispute.status != DisputeStatus.OPEN:
                raise ConflictError("Dispute is already resolved", details={"dispute_id": dispute.id})

            trip = await self.trips.load_trip(dispute.trip_id, fresh=True)
            if trip.status != TripStatus.IN_DISPUTE:
                raise InvalidStateError("Trip is not In Dispute", current_status=trip.status,
                                        details={"trip_id": trip.id, "dispute_id": dispute.id})

            financial = {
                name: corrections[name]
                for name, _, _ in FINANCIAL_CORRECTIONS
                if corrections.get(name) is not None
            }
            for name, value in financial.items():
                if value < 0:
                    raise ValidationError(f"{name} cannot be negative", details={"field": name, "value": value})
            if trip.is_bulk and financial:
                raise ValidationError("Bulk trips carry no financials to correct",
                                      details={"fields": sorted(financial)})

            applied = self._apply_details(trip, corrections)
            if corrections.get("lr_number"):
                new_lr = corrections["lr_number"].strip()
                if new_lr.lower() != trip.lr_number.lower():
                    await self.trips.ensure_lr_unique(new_lr, exclude_trip_id=trip.id)
                if new_lr != trip.lr_number:
                    applied["lr_number"] = {"old": trip.lr_number, "new": new_lr}
                    trip.lr_number = new_lr
                    dispute.lr_number = new_lr

            snapshot = {name: getattr(trip, name) or 0 for name, _, _ in FINANCIAL_CORRECTIONS}
            for name, value in financial.items():
                setattr(trip, name, value)

            trip.balance = compute_trip_balance(trip)
            trip.status = TripStatus.ACTIVE
            dispute.status = DisputeStatus.RESOLVED
            dispute.resolved_by = actor.id
            dispute.resolved_at = datetime.now(timezone.utc)
            await self.trips.flush_or_conflict("Trip was modified concurrently, retry the request")

            for name, entry_type, credit_on_increase in FINANCIAL_CORRECTIONS:
                if name not in financial:
                    continue
                delta = financial[name] - snapshot[name]
                if delta == 0:
                    continue
                applied[name] = {"old": snapshot[name], "new": financial[name]}
                increase = delta > 0
                credit = increase if credit_on_increase else not increase
                await self.ledger.append(LedgerEntry(
                    agent_id=trip.agent_id,
                    trip_id=trip.id,
                    lr_number=trip.lr_number,
                    entry_type=entry_type,
                    direction=LedgerDirection.CREDIT if credit else LedgerDirection.DEBIT,
                    amount=abs(delta),
                    description=f"Dispute Resolution - {entry_type.value[len('Dispute - '):]} ({trip.lr_number})",
                    bank=settings.default_bank,
                    paid_by=actor.role,
                ))

            remark = (corrections.get("remark") or "").strip()
            if remark:
                applied["remark"] = remark
            dispute.corrections = applied
            await self.trips.flush_or_conflict("Dispute was modified concurrently, retry the request")
            await audit.record(self.db, audit.AuditAction.DISPUTE_RESOLVED, actor, "dispute", dispute.id,
                               {"trip_id": trip.id, "corrections": applied, "remark": remark or None})
            await self.db.refresh(trip)
            await self.db.refresh(dispute)
            await commit_or_raise(self.db)

        logger.info("Dispute %s resolved by %s; trip %s balance %s",
                    dispute.id, actor.id, trip.id, format_rupees(trip.balance))
        return dispute

    @staticmethod
    def _apply_details(trip, corrections: Dict[str, Any]) -> Dict[str, Any]:
        applied = {}
        for name in DETAIL_CORRECTIONS:
            value = corrections.get(name)
            if value is None:
                continue
            if isinstance(value, str):
                value = value.strip()
                if not value and name != "others_reason":
                    raise ValidationError(f"{name} cannot be blank", details={"field": name})
            old = getattr(trip, name)
            if old != value:
                applied[name] = {"old": str(old), "new": str(value)}
                setattr(trip, name, value)
        return applied
