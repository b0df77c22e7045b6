"""
Trip Lifecycle (Domain Logic).

Trip state machine: Active -> (In Dispute <-> Active) -> Completed.

Every balance-affecting operation runs under the trip lease, re-reads the
trip inside it, mutates the trip's own fields, posts the primary ledger
entries in the same transaction and commits once. Informational entries
and audit records ride in SAVEPOINTs and may be dropped without failing
the operation.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession

from freight_backend.app.core.config import settings
from freight_backend.app.core.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from freight_backend.app.db.session import commit_or_raise
from freight_backend.app.domain.ledger.balance import (
    compute_final_close_balance,
    compute_trip_balance,
    trip_additions,
)
from freight_backend.app.domain.ledger.ledger_store import LedgerFilter, LedgerStore
from freight_backend.app.domain.ledger.money import format_rupees
from freight_backend.app.domain.ledger.payment_router import payer_for, route_payment
from freight_backend.app.models.dispute import Dispute
from freight_backend.app.models.dispute_enums import DisputeStatus
from freight_backend.app.models.enums import AgentRole
from freight_backend.app.models.ledger_entry import LedgerEntry
from freight_backend.app.models.ledger_enums import DeductionBucket, LedgerDirection, LedgerEntryType
from freight_backend.app.models.trip import Trip
from freight_backend.app.models.trip_attachment import TripAttachment
from freight_backend.app.models.trip_enums import DeductionField, PaymentMode, TripStatus
from freight_backend.app.models.trip_payment import TripPayment
from freight_backend.app.services import audit
from freight_backend.app.services.agent_directory import AgentDirectory
from freight_backend.app.services.trip_lease import TripLeaseManager, get_trip_lease_manager

logger = logging.getLogger("freight.trips")

DEDUCTION_KEYS = tuple(f.value for f in DeductionField)

# Non-financial fields editable on an existing trip
DETAIL_FIELDS = ("lr_sheet", "invoice_number")


@dataclass
class TripInput:
    lr_number: str
    agent_id: int
    trip_date: date
    truck_number: str
    driver_phone_number: str
    company_name: str
    route_from: str
    route_to: str
    tonnage: float = 0
    trip_code: Optional[str] = None
    is_bulk: bool = False
    freight: int = 0
    advance: int = 0
    lr_sheet: str = "Not Received"
    invoice_number: str = ""
    branch: Optional[str] = None


@dataclass
class PaymentInput:
    amount: int
    reason: str
    mode: PaymentMode = PaymentMode.CASH
    bank: Optional[str] = None
    selected_agent_id: Optional[int] = None


@dataclass
class TripFilter:
    agent_id: Optional[int] = None
    status: Optional[TripStatus] = None
    branch: Optional[str] = None
    search: Optional[str] = None
    limit: int = 50
    offset: int = 0


@dataclass
class AttachmentInput:
    filename: str
    storage_path: str
    original_name: Optional[str] = None


def _require_text(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required", details={"field": name})
    return str(value).strip()


def _non_negative(value: int, name: str) -> int:
    if value is None:
        return 0
    if value < 0:
        raise ValidationError(f"{name} cannot be negative", details={"field": name, "value": value})
    return value


class TripLifecycle:

    def __init__(self, db: AsyncSession, leases: Optional[TripLeaseManager] = None):
        self.db = db
        self.leases = leases or get_trip_lease_manager()
        self.ledger = LedgerStore(db)
        self.agents = AgentDirectory(db)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_trip(self, trip_id: int, fresh: bool = False) -> Trip:
        query = select(Trip).where(Trip.id == trip_id)
        if fresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        trip = result.scalar_one_or_none()
        if trip is None:
            raise NotFoundError("Trip", trip_id)
        return trip

    async def get(self, trip_id: int) -> Trip:
        return await self.load_trip(trip_id)

    async def list(self, flt: TripFilter) -> Tuple[List[Trip], int]:
        query = select(Trip)
        count_query = select(func.count(Trip.id))
        conditions = []
        if flt.agent_id is not None:
            conditions.append(Trip.agent_id == flt.agent_id)
        if flt.status is not None:
            conditions.append(Trip.status == flt.status)
        if flt.branch:
            conditions.append(Trip.branch == flt.branch)
        if flt.search:
            term = f"%{flt.search.lower()}%"
            conditions.append(or_(
                func.lower(Trip.lr_number).like(term),
                func.lower(Trip.truck_number).like(term),
                func.lower(Trip.company_name).like(term),
            ))
        for condition in conditions:
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = (await self.db.execute(count_query)).scalar()
        query = query.order_by(Trip.created_at.desc(), Trip.id.desc()).offset(flt.offset).limit(flt.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def search_lr(self, term: str, company_name: Optional[str] = None,
                        limit: int = 50) -> Tuple[List[Trip], List[LedgerEntry]]:
        """
        Find trips and ledger entries by LR, across every agent.

        Trips match on LR number or trip code, optionally narrowed by
        company; entries match on the LR they carry. Case-insensitive
        substring match, newest first.
        """
        term = _require_text(term, "lr_number")
        pattern = f"%{term.lower()}%"
        query = select(Trip).where(or_(
            func.lower(Trip.lr_number).like(pattern),
            func.lower(Trip.trip_code).like(pattern),
        ))
        if company_name and company_name.strip():
            query = query.where(func.lower(Trip.company_name).like(f"%{company_name.strip().lower()}%"))
        query = query.order_by(Trip.created_at.desc(), Trip.id.desc()).limit(limit)
        trips = list((await self.db.execute(query)).scalars().all())

        entries = await self.ledger.find(LedgerFilter(lr_number=term, newest_first=True, limit=limit))
        return trips, entries

    async def has_open_dispute(self, trip_id: int) -> bool:
        result = await self.db.execute(
            select(Dispute.id).where(
                Dispute.trip_id == trip_id,
                Dispute.status == DisputeStatus.OPEN,
            )
        )
        return result.first() is not None

    async def ensure_lr_unique(self, lr_number: str, trip_code: Optional[str] = None,
                               exclude_trip_id: Optional[int] = None) -> None:
        """Reject an LR that collides, case-insensitively, with any LR or trip code."""
        candidates = {lr_number.lower()}
        if trip_code:
            candidates.add(trip_code.lower())
        query = select(Trip.id, Trip.lr_number).where(or_(
            func.lower(Trip.lr_number).in_(candidates),
            func.lower(Trip.trip_code).in_(candidates),
        ))
        if exclude_trip_id is not None:
            query = query.where(Trip.id != exclude_trip_id)
        clash = (await self.db.execute(query)).first()
        if clash is not None:
            raise ConflictError(
                f"LR number {lr_number} already exists",
                details={"lr_number": lr_number, "existing_trip_id": clash.id},
            )

    async def flush_or_conflict(self, message: str) -> None:
        try:
            await self.db.flush()
        except (IntegrityError, StaleDataError) as e:
            await self.db.rollback()
            raise ConflictError(message, details={"reason": type(e).__name__})

    async def _finish(self, trip: Trip, conflict_message: str = "Trip was modified concurrently, retry the request") -> Trip:
        await self.flush_or_conflict(conflict_message)
        await self.db.refresh(trip)
        await commit_or_raise(self.db, conflict_message)
        return trip

    # ------------------------------------------------------------------
    # Creation and details
    # ------------------------------------------------------------------

    async def create(self, data: TripInput, actor) -> Trip:
        """
        Create an Active trip.

        balance starts at freight - advance. A non-bulk trip with an advance
        posts one Trip Created Debit for the advance; freight is never a
        ledger movement.
        """
        lr_number = _require_text(data.lr_number, "lr_number")
        driver_phone = _require_text(data.driver_phone_number, "driver_phone_number")
        truck_number = _require_text(data.truck_number, "truck_number")
        company_name = _require_text(data.company_name, "company_name")
        route_from = _require_text(data.route_from, "route_from")
        route_to = _require_text(data.route_to, "route_to")
        if data.trip_date is None:
            raise ValidationError("trip_date is required", details={"field": "trip_date"})
        trip_code = (data.trip_code or "").strip() or lr_number

        agent = await self.agents.require(data.agent_id)
        await self.ensure_lr_unique(lr_number, trip_code)

        if data.is_bulk:
            freight, advance = 0, 0
        else:
            freight = _non_negative(data.freight, "freight")
            advance = _non_negative(data.advance, "advance")

        trip = Trip(
            lr_number=lr_number,
            trip_code=trip_code,
            trip_date=data.trip_date,
            truck_number=truck_number,
            driver_phone_number=driver_phone,
            company_name=company_name,
            route_from=route_from,
            route_to=route_to,
            tonnage=data.tonnage or 0,
            lr_sheet=data.lr_sheet or "Not Received",
            invoice_number=data.invoice_number or "",
            agent_id=agent.id,
            branch=data.branch or agent.branch,
            is_bulk=data.is_bulk,
            freight=freight,
            advance=advance,
            balance=freight - advance,
            status=TripStatus.ACTIVE,
            payments=[],
            attachments=[],
        )
        self.db.add(trip)
        await self.flush_or_conflict(f"LR number {lr_number} already exists")

        if advance > 0 and not trip.is_bulk:
            await self.ledger.append(LedgerEntry(
                agent_id=agent.id,
                trip_id=trip.id,
                lr_number=trip.lr_number,
                entry_type=LedgerEntryType.TRIP_CREATED,
                direction=LedgerDirection.DEBIT,
                amount=advance,
                description=f"Advance for {trip.lr_number} ({trip.route})",
                bank=settings.default_bank,
                paid_by=actor.role,
            ))

        await audit.record(self.db, audit.AuditAction.TRIP_CREATED, actor, "trip", trip.id,
                           {"lr_number": trip.lr_number, "freight": freight, "advance": advance,
                            "is_bulk": trip.is_bulk})
        await self._finish(trip, f"LR number {lr_number} already exists")
        logger.info("Trip %s (%s) created for agent %s, balance %s",
                    trip.id, trip.lr_number, agent.id, format_rupees(trip.balance))
        return trip

    async def update_details(self, trip_id: int, patch: Dict[str, Any], actor) -> Trip:
        """Edit non-financial fields (LR sheet status, invoice number)."""
        trip = await self.load_trip(trip_id, fresh=True)
        changed = {}
        for name in DETAIL_FIELDS:
            if name in patch and patch[name] is not None:
                if getattr(trip, name) != patch[name]:
                    changed[name] = patch[name]
                    setattr(trip, name, patch[name])
        if not changed:
            return trip
        await self.flush_or_conflict("Trip was modified concurrently, retry the request")
        await audit.record(self.db, audit.AuditAction.TRIP_UPDATED, actor, "trip", trip.id, changed)
        return await self._finish(trip)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def add_payment(self, trip_id: int, payment: PaymentInput, actor) -> Trip:
        """
        Record a mid-trip payment.

        Agent payments debit the paying agent. Finance payments debit the
        selected agent after crediting them an equal mirrored top-up, both
        as one atomic pair. The trip's creator gets an informational notice
        when someone else's wallet was debited.
        """
        if payment.amount is None or payment.amount <= 0:
            raise ValidationError("Payment amount must be greater than zero", details={"amount": payment.amount})
        reason = _require_text(payment.reason, "reason")

        async with self.leases.acquire(trip_id):
            trip = await self.load_trip(trip_id, fresh=True)
            route = route_payment(trip, payer_for(actor.id, actor.role, payment.selected_agent_id))
            if trip.is_bulk:
                raise ValidationError("Bulk trips do not take payments", details={"trip_id": trip.id})
            debited = await self.agents.require(route.debited_agent_id)

            bank = payment.bank or settings.default_bank
            trip.payments.append(TripPayment(
                amount=payment.amount,
                reason=reason,
                mode=payment.mode,
                bank=bank,
                added_by=actor.id,
                added_by_role=route.payer_role,
                debited_agent_id=debited.id,
            ))
            trip.balance = compute_trip_balance(trip)
            await self.flush_or_conflict("Trip was modified concurrently, retry the request")

            debit = LedgerEntry(
                agent_id=debited.id,
                trip_id=trip.id,
                lr_number=trip.lr_number,
                entry_type=LedgerEntryType.ON_TRIP_PAYMENT,
                direction=LedgerDirection.DEBIT,
                amount=payment.amount,
                description=f"{payment.mode.value} payment on {trip.lr_number}: {reason}",
                bank=bank,
                paid_by=route.payer_role,
            )
            if route.mirror_credit_required:
                await self.ledger.append_pair(
                    LedgerEntry(
                        agent_id=debited.id,
                        trip_id=trip.id,
                        lr_number=trip.lr_number,
                        entry_type=LedgerEntryType.TOP_UP,
                        direction=LedgerDirection.CREDIT,
                        amount=payment.amount,
                        description=f"Finance funding for payment on {trip.lr_number}",
                        bank=bank,
                        paid_by=route.payer_role,
                    ),
                    debit,
                )
            else:
                await self.ledger.append(debit)

            if route.notify_creator:
                await self.ledger.append_secondary(LedgerEntry(
                    agent_id=trip.agent_id,
                    trip_id=trip.id,
                    lr_number=trip.lr_number,
                    entry_type=LedgerEntryType.ON_TRIP_PAYMENT,
                    direction=LedgerDirection.DEBIT,
                    amount=payment.amount,
                    description=f"Payment on {trip.lr_number} paid from {debited.name}'s wallet: {reason}",
                    is_informational=True,
                    bank=bank,
                    paid_by=route.payer_role,
                ))

            await audit.record(self.db, audit.AuditAction.PAYMENT_ADDED, actor, "trip", trip.id,
                               {"amount": payment.amount, "debited_agent_id": debited.id,
                                "role": route.payer_role.value})
            await self._finish(trip)

        logger.info("Payment %s on trip %s debited agent %s; balance %s",
                    format_rupees(payment.amount), trip.id, debited.id, format_rupees(trip.balance))
        return trip

    # ------------------------------------------------------------------
    # Deductions
    # ------------------------------------------------------------------

    async def update_deductions(self, trip_id: int, patch: Dict[str, Any], actor) -> Trip:
        """
        Merge a deductions patch into the trip and post its settlement entries.

        One Settlement Debit per bucket (additions, beta) per contributing
        actor, upserted so repeated saves amend instead of duplicating.
        """
        unknown = set(patch) - set(DEDUCTION_KEYS) - {"others_reason"}
        if unknown:
            raise ValidationError("Unknown deduction fields", details={"fields": sorted(unknown)})

        async with self.leases.acquire(trip_id):
            trip = await self.load_trip(trip_id, fresh=True)
            if trip.status == TripStatus.COMPLETED:
                raise InvalidStateError("Deductions cannot change on a completed trip",
                                        current_status=trip.status, details={"trip_id": trip.id})
            if trip.is_bulk:
                raise ValidationError("Bulk trips do not track deductions", details={"trip_id": trip.id})

            for key in DEDUCTION_KEYS:
                if key in patch and patch[key] is not None:
                    setattr(trip, key, _non_negative(patch[key], key))
            if patch.get("others_reason") is not None:
                trip.others_reason = patch["others_reason"]
            trip.deductions_added_by = actor.id
            trip.deductions_added_by_role = actor.role
            trip.balance = compute_trip_balance(trip)
            await self.flush_or_conflict("Trip was modified concurrently, retry the request")

            additions = trip_additions(trip)
            await self.ledger.upsert_deduction(
                trip, actor.id, DeductionBucket.ADDITIONS, additions,
                description=(
                    f"Closing additions for {trip.lr_number} by {actor.name or actor.id} "
                    f"(Cess: {format_rupees(trip.cess)}, Kata: {format_rupees(trip.kata)}, "
                    f"Excess Tonnage: {format_rupees(trip.excess_tonnage)}, Halting: {format_rupees(trip.halting)}, "
                    f"Expenses: {format_rupees(trip.expenses)}, Others: {format_rupees(trip.others)})"
                ),
                paid_by=actor.role,
            )
            await self.ledger.upsert_deduction(
                trip, actor.id, DeductionBucket.BETA, trip.beta,
                description=f"Beta/Batta deduction for {trip.lr_number} by {actor.name or actor.id}",
                paid_by=actor.role,
            )

            await audit.record(self.db, audit.AuditAction.DEDUCTIONS_UPDATED, actor, "trip", trip.id,
                               {key: getattr(trip, key) for key in DEDUCTION_KEYS})
            await self._finish(trip)

        logger.info("Deductions on trip %s set by %s; balance %s", trip.id, actor.id, format_rupees(trip.balance))
        return trip

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    async def close(self, trip_id: int, actor, force_close: bool = False) -> Trip:
        """
        Complete a trip and freeze its final balance.

        Field agents may only close a settled trip (|final| within the
        settlement tolerance). Finance and Admin may close any trip, and
        only they may force past an Open dispute.
        """
        if force_close and not actor.is_back_office:
            raise ValidationError("Only Finance or Admin can force-close a trip",
                                  details={"role": actor.role.value})

        async with self.leases.acquire(trip_id):
            trip = await self.load_trip(trip_id, fresh=True)
            if trip.status == TripStatus.COMPLETED:
                raise InvalidStateError("Trip is already closed", current_status=trip.status,
                                        details={"trip_id": trip.id})
            if not force_close and await self.has_open_dispute(trip.id):
                raise ConflictError("Trip has an open dispute; resolve it or force-close",
                                    details={"trip_id": trip.id})

            now = datetime.now(timezone.utc)
            if trip.is_bulk:
                trip.status = TripStatus.COMPLETED
                trip.closed_at = now
                trip.closed_by = actor.id
                await audit.record(self.db, audit.AuditAction.TRIP_CLOSED, actor, "trip", trip.id,
                                   {"is_bulk": True, "force_close": force_close})
                await self._finish(trip)
                logger.info("Bulk trip %s closed by %s", trip.id, actor.id)
                return trip

            final = compute_final_close_balance(trip)
            if actor.role == AgentRole.AGENT and abs(final) > settings.settlement_tolerance_paise:
                standing = await self.ledger.agent_balance(actor.id)
                raise InsufficientBalanceError(
                    f"Trip {trip.lr_number} must be settled to zero before closing",
                    details={"final_balance": final, "required": abs(final), "agent_balance": standing},
                )

            trip.status = TripStatus.COMPLETED
            trip.final_balance = final
            trip.closed_at = now
            trip.closed_by = actor.id
            await self.flush_or_conflict("Trip was modified concurrently, retry the request")

            await self.ledger.append_secondary(LedgerEntry(
                agent_id=actor.id,
                trip_id=trip.id,
                lr_number=trip.lr_number,
                entry_type=LedgerEntryType.TRIP_CLOSED,
                direction=LedgerDirection.DEBIT if final > 0 else LedgerDirection.CREDIT,
                amount=abs(final),
                description=f"Trip {trip.lr_number} closed with final balance {format_rupees(final)}",
                is_informational=True,
                paid_by=actor.role,
            ))
            if trip.beta > 0:
                await self.ledger.append(LedgerEntry(
                    agent_id=trip.agent_id,
                    trip_id=trip.id,
                    lr_number=trip.lr_number,
                    entry_type=LedgerEntryType.BETA_CREDIT,
                    direction=LedgerDirection.CREDIT,
                    amount=trip.beta,
                    description=f"Beta/Batta refund at close of {trip.lr_number}",
                    bank=settings.default_bank,
                    paid_by=actor.role,
                ))

            await audit.record(self.db, audit.AuditAction.TRIP_CLOSED, actor, "trip", trip.id,
                               {"final_balance": final, "force_close": force_close})
            await self._finish(trip)

        logger.info("Trip %s closed by %s with final balance %s", trip.id, actor.id, format_rupees(final))
        return trip

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    async def add_attachment(self, trip_id: int, attachment: AttachmentInput, actor) -> TripAttachment:
        filename = _require_text(attachment.filename, "filename")
        storage_path = _require_text(attachment.storage_path, "storage_path")
        trip = await self.load_trip(trip_id, fresh=True)
        if len(trip.attachments) >= settings.max_attachments_per_trip:
            raise ValidationError(
                f"A trip can hold at most {settings.max_attachments_per_trip} attachments",
                details={"trip_id": trip.id},
            )
        record = TripAttachment(
            filename=filename,
            original_name=attachment.original_name,
            storage_path=storage_path,
            uploaded_by=actor.id,
        )
        trip.attachments.append(record)
        await self.flush_or_conflict("Trip was modified concurrently, retry the request")
        await audit.record(self.db, audit.AuditAction.ATTACHMENT_ADDED, actor, "trip", trip.id,
                           {"filename": filename})
        await self.db.refresh(record)
        await commit_or_raise(self.db)
        return record

    async def remove_attachment(self, trip_id: int, attachment_id: int, actor) -> None:
        trip = await self.load_trip(trip_id, fresh=True)
        record = next((a for a in trip.attachments if a.id == attachment_id), None)
        if record is None:
            raise NotFoundError("Attachment", attachment_id)
        trip.attachments.remove(record)
        await self.flush_or_conflict("Trip was modified concurrently, retry the request")
        await audit.record(self.db, audit.AuditAction.ATTACHMENT_REMOVED, actor, "trip", trip.id,
                           {"attachment_id": attachment_id})
        await commit_or_raise(self.db)

    async def delete(self, trip_id: int, actor) -> None:
        """
        Remove a trip with its payments, attachments and resolved disputes.

        Ledger entries keep their trip reference and the agent balances they
        moved; deleting a trip never reverses money. A trip with an Open
        dispute cannot be deleted.
        """
        async with self.leases.acquire(trip_id):
            trip = await self.load_trip(trip_id, fresh=True)
            if await self.has_open_dispute(trip.id):
                raise ConflictError("Trip has an open dispute; resolve it before deleting",
                                    details={"trip_id": trip.id})

            await audit.record(self.db, audit.AuditAction.TRIP_DELETED, actor, "trip", trip.id,
                               {"lr_number": trip.lr_number, "route": trip.route})
            await self.db.execute(delete(Dispute).where(Dispute.trip_id == trip.id))
            await self.db.delete(trip)
            await self.flush_or_conflict("Trip was modified concurrently, retry the request")
            await commit_or_raise(self.db)
            logger.info("Trip %s (%s) deleted by %s", trip_id, trip.lr_number, actor.id)
