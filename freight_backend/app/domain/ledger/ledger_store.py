"""
Ledger Store (Domain Logic).

Append-oriented access to ledger entries, plus the materialized per-agent
balance that moves in the same transaction as every entry write.

Nothing here commits: callers own the unit of work. Paired appends run
inside a SAVEPOINT so either both twins land or neither does.
"""

import uuid
import logging
from dataclasses import dataclass
from typing import Optional, List, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from freight_backend.app.core.config import settings
from freight_backend.app.core.exceptions import ConflictError, InternalError, NotFoundError, ValidationError
from freight_backend.app.domain.ledger.balance import signed_amount, fold_entries
from freight_backend.app.models.agent_balance import AgentBalance
from freight_backend.app.models.ledger_entry import LedgerEntry
from freight_backend.app.models.ledger_enums import (
    CORRECTABLE_ENTRY_TYPES,
    DeductionBucket,
    LedgerDirection,
    LedgerEntryType,
)

logger = logging.getLogger("freight.ledger")

# Columns copied when an entry template is materialized
_ENTRY_FIELDS = (
    "agent_id", "trip_id", "lr_number", "entry_type", "direction", "amount",
    "description", "is_informational", "reference_balance", "bank", "paid_by",
    "pair_id", "bucket", "contributor_id",
)


@dataclass
class LedgerFilter:
    agent_id: Optional[int] = None
    trip_id: Optional[int] = None
    entry_type: Optional[LedgerEntryType] = None
    lr_number: Optional[str] = None  # case-insensitive substring
    include_informational: bool = True
    limit: int = 100
    offset: int = 0
    newest_first: bool = False


def _materialize(template: LedgerEntry) -> LedgerEntry:
    return LedgerEntry(**{name: getattr(template, name) for name in _ENTRY_FIELDS})


class LedgerStore:
    """Ledger reads and writes bound to one session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Materialized balance
    # ------------------------------------------------------------------

    async def _apply_delta(self, agent_id: int, delta: int, count_delta: int) -> None:
        stmt = (
            update(AgentBalance)
            .where(AgentBalance.agent_id == agent_id)
            .values(
                balance=AgentBalance.balance + delta,
                entry_count=AgentBalance.entry_count + count_delta,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount:
            return

        # First entry for this agent; another writer may insert concurrently
        try:
            async with self.db.begin_nested():
                self.db.add(AgentBalance(agent_id=agent_id, balance=delta, entry_count=count_delta))
        except IntegrityError:
            await self.db.execute(stmt)

    async def agent_balance(self, agent_id: int) -> int:
        """Current materialized balance of an agent, in paise."""
        result = await self.db.execute(
            select(AgentBalance.balance).where(AgentBalance.agent_id == agent_id)
        )
        return result.scalar_one_or_none() or 0

    async def fold_agent_balance(self, agent_id: int) -> int:
        """Balance recomputed from the full entry history (cross-check path)."""
        result = await self.db.execute(
            select(LedgerEntry).where(LedgerEntry.agent_id == agent_id)
        )
        return fold_entries(result.scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _insert(self, template: LedgerEntry) -> LedgerEntry:
        if template.amount is None or template.amount < 0:
            raise ValidationError("Ledger amount must be a non-negative number of paise",
                                  details={"amount": template.amount})

        entry = _materialize(template)
        if entry.is_informational:
            if entry.reference_balance is None:
                entry.reference_balance = await self.agent_balance(entry.agent_id)
        else:
            await self._apply_delta(entry.agent_id, signed_amount(entry), 1)
            entry.reference_balance = await self.agent_balance(entry.agent_id)

        self.db.add(entry)
        await self.db.flush()
        return entry

    async def append(self, template: LedgerEntry) -> LedgerEntry:
        """Persist one entry and move the owner's balance with it."""
        entry = await self._insert(template)
        logger.debug("Appended %r", entry)
        return entry

    async def append_secondary(self, template: LedgerEntry) -> Optional[LedgerEntry]:
        """
        Append an entry whose loss must not fail the surrounding operation.

        Runs in its own SAVEPOINT; storage failures are logged and None is
        returned.
        """
        try:
            async with self.db.begin_nested():
                return await self._insert(template)
        except SQLAlchemyError as e:
            logger.error(
                "Secondary ledger entry dropped: type=%s agent=%s trip=%s error=%s",
                template.entry_type.value, template.agent_id, template.trip_id, e,
            )
            return None

    async def append_pair(self, first: LedgerEntry, second: LedgerEntry) -> Tuple[LedgerEntry, LedgerEntry]:
        """
        Persist two twin entries atomically under a shared pair id.

        The pair is written inside one SAVEPOINT and re-attempted on storage
        failure; when retries run out the operation fails with InternalError.
        """
        pair_id = str(uuid.uuid4())
        first.pair_id = pair_id
        second.pair_id = pair_id

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(settings.ledger_pair_retry_attempts),
                wait=wait_exponential(multiplier=settings.ledger_pair_retry_delay_seconds, max=2),
                retry=retry_if_exception_type(SQLAlchemyError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    async with self.db.begin_nested():
                        pair = await self._insert(first), await self._insert(second)
            return pair
        except SQLAlchemyError as e:
            logger.error(
                "Ledger pair failed: %s agent=%s / %s agent=%s trip=%s",
                first.entry_type.value, first.agent_id,
                second.entry_type.value, second.agent_id, first.trip_id,
            )
            raise InternalError("Could not record paired ledger entries",
                                details={"pair_id": pair_id, "reason": type(e).__name__})

    async def upsert_deduction(
        self,
        trip,
        contributor_id: int,
        bucket: DeductionBucket,
        amount: int,
        description: str,
        paid_by=None,
    ) -> Optional[LedgerEntry]:
        """
        Idempotently post a deduction Settlement Debit.

        Keyed by (trip, contributor, bucket): the existing entry is amended to
        the new total (zero included) instead of a second one being written.
        Nothing is created for a zero total with no prior entry.
        """
        result = await self.db.execute(
            select(LedgerEntry).where(
                LedgerEntry.trip_id == trip.id,
                LedgerEntry.contributor_id == contributor_id,
                LedgerEntry.bucket == bucket,
            )
        )
        existing = result.scalar_one_or_none()

        if existing is None:
            if amount <= 0:
                return None
            return await self.append(LedgerEntry(
                agent_id=contributor_id,
                trip_id=trip.id,
                lr_number=trip.lr_number,
                entry_type=LedgerEntryType.SETTLEMENT,
                direction=LedgerDirection.DEBIT,
                amount=amount,
                description=description,
                bank=settings.default_bank,
                paid_by=paid_by,
                bucket=bucket,
                contributor_id=contributor_id,
            ))

        if existing.amount == amount:
            return existing

        await self._amend(existing, amount)
        existing.description = description
        existing.paid_by = paid_by
        await self.db.flush()
        return existing

    async def _amend(self, entry: LedgerEntry, new_amount: int) -> None:
        old_signed = signed_amount(entry)
        entry.amount = new_amount
        delta = signed_amount(entry) - old_signed
        if delta:
            await self._apply_delta(entry.agent_id, delta, 0)
        if not entry.is_informational:
            entry.reference_balance = await self.agent_balance(entry.agent_id)

    # ------------------------------------------------------------------
    # Corrections of correctable entries
    # ------------------------------------------------------------------

    async def get(self, entry_id: int) -> LedgerEntry:
        entry = await self.db.get(LedgerEntry, entry_id)
        if entry is None:
            raise NotFoundError("Ledger entry", entry_id)
        return entry

    async def twin_of(self, entry: LedgerEntry) -> Optional[LedgerEntry]:
        if not entry.pair_id:
            return None
        result = await self.db.execute(
            select(LedgerEntry).where(
                LedgerEntry.pair_id == entry.pair_id,
                LedgerEntry.id != entry.id,
            )
        )
        return result.scalar_one_or_none()

    async def _correctable(self, entry_id: int) -> Tuple[LedgerEntry, Optional[LedgerEntry]]:
        entry = await self.get(entry_id)
        if entry.entry_type not in CORRECTABLE_ENTRY_TYPES:
            raise ConflictError(
                f"{entry.entry_type.value} entries cannot be corrected",
                details={"entry_id": entry.id, "entry_type": entry.entry_type.value},
            )
        twin = await self.twin_of(entry)
        if twin is not None and twin.entry_type == LedgerEntryType.ON_TRIP_PAYMENT:
            # Mirror credit of a Finance trip payment; the trip payment owns it
            raise ConflictError(
                "Top-up mirrors a trip payment and cannot be corrected",
                details={"entry_id": entry.id, "trip_id": entry.trip_id},
            )
        return entry, twin

    async def update(self, entry_id: int, amount: Optional[int] = None,
                     description: Optional[str] = None) -> LedgerEntry:
        """Amend a correctable entry; its twin follows the amount change."""
        entry, twin = await self._correctable(entry_id)
        if amount is not None:
            if amount <= 0:
                raise ValidationError("Amount must be greater than zero", details={"amount": amount})
            await self._amend(entry, amount)
            if twin is not None:
                await self._amend(twin, amount)
        if description is not None:
            entry.description = description
        await self.db.flush()
        return entry

    async def delete(self, entry_id: int) -> List[int]:
        """Remove a correctable entry and its twin; returns the removed ids."""
        entry, twin = await self._correctable(entry_id)
        removed = []
        for target in (entry, twin):
            if target is None:
                continue
            if not target.is_informational:
                await self._apply_delta(target.agent_id, -signed_amount(target), -1)
            removed.append(target.id)
            await self.db.delete(target)
        await self.db.flush()
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _filtered(query, flt: LedgerFilter):
        if flt.agent_id is not None:
            query = query.where(LedgerEntry.agent_id == flt.agent_id)
        if flt.trip_id is not None:
            query = query.where(LedgerEntry.trip_id == flt.trip_id)
        if flt.entry_type is not None:
            query = query.where(LedgerEntry.entry_type == flt.entry_type)
        if flt.lr_number:
            query = query.where(func.lower(LedgerEntry.lr_number).like(f"%{flt.lr_number.lower()}%"))
        if not flt.include_informational:
            query = query.where(LedgerEntry.is_informational.is_(False))
        return query

    async def find(self, flt: LedgerFilter) -> List[LedgerEntry]:
        query = self._filtered(select(LedgerEntry), flt)
        if flt.newest_first:
            query = query.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        else:
            query = query.order_by(LedgerEntry.created_at, LedgerEntry.id)
        query = query.offset(flt.offset).limit(flt.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count(self, flt: LedgerFilter) -> int:
        result = await self.db.execute(self._filtered(select(func.count(LedgerEntry.id)), flt))
        return result.scalar()
