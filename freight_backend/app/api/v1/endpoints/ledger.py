"""
Ledger API Endpoints.

Agent ledgers and balances, wallet top-ups and transfers, and corrections
of the entry types that may be corrected.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from freight_backend.app.core.dependencies import get_actor
from freight_backend.app.core.guards import require_back_office
from freight_backend.app.db.session import get_db, commit_or_raise
from freight_backend.app.domain.ledger.ledger_store import LedgerFilter, LedgerStore
from freight_backend.app.domain.ledger.wallet import WalletService
from freight_backend.app.models.ledger_enums import LedgerEntryType
from freight_backend.app.schemas.ledger import (
    AgentBalanceResponse,
    LedgerDeleteResponse,
    LedgerEntryResponse,
    LedgerEntryUpdate,
    LedgerListResponse,
    TopUpRequest,
    TransferRequest,
    WalletActionResponse,
)
from freight_backend.app.schemas.money import paise
from freight_backend.app.services import audit
from freight_backend.app.services.agent_directory import Actor

router = APIRouter(prefix="/ledger", tags=["Ledger"])


def _own_or_back_office(agent_id: int, actor: Actor) -> None:
    if agent_id != actor.id and not actor.is_back_office:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agents can only view their own ledger"
        )


@router.get("", response_model=LedgerListResponse)
async def list_entries(
    agent_id: Optional[int] = Query(None, description="Defaults to the caller"),
    trip_id: Optional[int] = Query(None),
    entry_type: Optional[LedgerEntryType] = Query(None),
    lr_number: Optional[str] = Query(None, description="Partial LR, case-insensitive"),
    include_informational: bool = Query(True),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    if agent_id is None and trip_id is None:
        agent_id = actor.id
    if agent_id is not None:
        _own_or_back_office(agent_id, actor)
    elif not actor.is_back_office:
        agent_id = actor.id

    flt = LedgerFilter(
        agent_id=agent_id,
        trip_id=trip_id,
        entry_type=entry_type,
        lr_number=lr_number,
        include_informational=include_informational,
        limit=limit,
        offset=offset,
    )
    store = LedgerStore(db)
    entries = await store.find(flt)
    total = await store.count(flt)
    return LedgerListResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/balance/{agent_id}", response_model=AgentBalanceResponse)
async def get_balance(
    agent_id: int = Path(..., description="Agent ID"),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    _own_or_back_office(agent_id, actor)
    balance = await LedgerStore(db).agent_balance(agent_id)
    return AgentBalanceResponse(agent_id=agent_id, balance=balance)


@router.post("/top-up", response_model=WalletActionResponse, status_code=status.HTTP_201_CREATED)
async def top_up(
    payload: TopUpRequest,
    actor: Actor = Depends(require_back_office),
    db: AsyncSession = Depends(get_db)
):
    """Credit an agent's wallet (Finance/Admin)."""
    entries = await WalletService(db).top_up(
        payload.agent_id,
        paise(payload.amount),
        actor,
        mode=payload.mode.value,
        bank=payload.bank,
        reason=payload.reason,
        is_virtual=payload.is_virtual,
    )
    await audit.record(db, audit.AuditAction.TOP_UP, actor, "agent", payload.agent_id,
                       {"amount": paise(payload.amount), "is_virtual": payload.is_virtual})
    await commit_or_raise(db)
    return WalletActionResponse(entries=[LedgerEntryResponse.model_validate(e) for e in entries])


@router.post("/transfer", response_model=WalletActionResponse, status_code=status.HTTP_201_CREATED)
async def transfer(
    payload: TransferRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """Move money between agents. Agents may only send from their own wallet."""
    if payload.sender_id != actor.id and not actor.is_back_office:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agents can only transfer from their own wallet"
        )
    entries = await WalletService(db).transfer(
        payload.sender_id, payload.receiver_id, paise(payload.amount), actor, reason=payload.reason
    )
    await audit.record(db, audit.AuditAction.AGENT_TRANSFER, actor, "agent", payload.sender_id,
                       {"receiver_id": payload.receiver_id, "amount": paise(payload.amount)})
    await commit_or_raise(db)
    return WalletActionResponse(entries=[LedgerEntryResponse.model_validate(e) for e in entries])


@router.patch("/entries/{entry_id}", response_model=LedgerEntryResponse)
async def amend_entry(
    payload: LedgerEntryUpdate,
    entry_id: int = Path(..., description="Ledger entry ID"),
    actor: Actor = Depends(require_back_office),
    db: AsyncSession = Depends(get_db)
):
    """Amend a Top-up, Virtual Top-up or Agent Transfer entry; its twin follows."""
    entry = await LedgerStore(db).update(entry_id, amount=paise(payload.amount), description=payload.description)
    await audit.record(db, audit.AuditAction.LEDGER_ENTRY_AMENDED, actor, "ledger_entry", entry_id,
                       payload.model_dump(exclude_none=True, mode="json"))
    await db.refresh(entry)
    await commit_or_raise(db)
    return LedgerEntryResponse.model_validate(entry)


@router.delete("/entries/{entry_id}", response_model=LedgerDeleteResponse)
async def delete_entry(
    entry_id: int = Path(..., description="Ledger entry ID"),
    actor: Actor = Depends(require_back_office),
    db: AsyncSession = Depends(get_db)
):
    """Delete a Top-up, Virtual Top-up or Agent Transfer entry together with its twin."""
    removed = await LedgerStore(db).delete(entry_id)
    await audit.record(db, audit.AuditAction.LEDGER_ENTRY_DELETED, actor, "ledger_entry", entry_id,
                       {"deleted_ids": removed})
    await commit_or_raise(db)
    return LedgerDeleteResponse(deleted_ids=removed)
