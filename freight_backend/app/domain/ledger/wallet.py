"""
Wallet Service (Domain Logic).

Agent top-ups and agent-to-agent transfers. Callers commit.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from freight_backend.app.core.config import settings
from freight_backend.app.core.exceptions import InsufficientBalanceError, ValidationError
from freight_backend.app.domain.ledger.ledger_store import LedgerStore
from freight_backend.app.domain.ledger.money import format_rupees
from freight_backend.app.models.ledger_entry import LedgerEntry
from freight_backend.app.models.ledger_enums import LedgerDirection, LedgerEntryType
from freight_backend.app.services.agent_directory import AgentDirectory

logger = logging.getLogger("freight.wallet")


class WalletService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = LedgerStore(db)
        self.agents = AgentDirectory(db)

    async def top_up(
        self,
        agent_id: int,
        amount: int,
        actor,
        mode: str = "Cash",
        bank: Optional[str] = None,
        reason: Optional[str] = None,
        is_virtual: bool = False,
    ) -> Tuple[LedgerEntry, ...]:
        """
        Credit an agent's wallet.

        A virtual top-up is recorded for visibility only: it posts a Credit
        and an equal Virtual Expense Debit as one pair, so the balance does
        not move.
        """
        if amount <= 0:
            raise ValidationError("Top-up amount must be greater than zero", details={"amount": amount})
        agent = await self.agents.require(agent_id)

        label = reason or f"{mode} top-up"
        bank = bank or settings.default_bank
        if not is_virtual:
            entry = await self.ledger.append(LedgerEntry(
                agent_id=agent.id,
                entry_type=LedgerEntryType.TOP_UP,
                direction=LedgerDirection.CREDIT,
                amount=amount,
                description=f"{label} for {agent.name}",
                bank=bank,
                paid_by=actor.role,
            ))
            logger.info("Top-up of %s to agent %s by %s", format_rupees(amount), agent.id, actor.id)
            return (entry,)

        credit, expense = await self.ledger.append_pair(
            LedgerEntry(
                agent_id=agent.id,
                entry_type=LedgerEntryType.VIRTUAL_TOP_UP,
                direction=LedgerDirection.CREDIT,
                amount=amount,
                description=f"Virtual top-up for {agent.name}: {label}",
                bank=bank,
                paid_by=actor.role,
            ),
            LedgerEntry(
                agent_id=agent.id,
                entry_type=LedgerEntryType.VIRTUAL_EXPENSE,
                direction=LedgerDirection.DEBIT,
                amount=amount,
                description=f"Virtual expense for {agent.name}: {label}",
                bank=bank,
                paid_by=actor.role,
            ),
        )
        logger.info("Virtual top-up of %s to agent %s by %s", format_rupees(amount), agent.id, actor.id)
        return credit, expense

    async def transfer(self, sender_id: int, receiver_id: int, amount: int, actor,
                       reason: Optional[str] = None) -> Tuple[LedgerEntry, LedgerEntry]:
        """Move money between two agents' wallets as one Debit/Credit pair."""
        if amount <= 0:
            raise ValidationError("Transfer amount must be greater than zero", details={"amount": amount})
        if sender_id == receiver_id:
            raise ValidationError("Cannot transfer to the same agent", details={"agent_id": sender_id})

        sender = await self.agents.require(sender_id)
        receiver = await self.agents.require(receiver_id)

        available = await self.ledger.agent_balance(sender.id)
        if available < amount:
            raise InsufficientBalanceError(
                f"{sender.name} has insufficient balance for this transfer",
                details={"available": available, "required": amount},
            )

        note = f" ({reason})" if reason else ""
        debit, credit = await self.ledger.append_pair(
            LedgerEntry(
                agent_id=sender.id,
                entry_type=LedgerEntryType.AGENT_TRANSFER,
                direction=LedgerDirection.DEBIT,
                amount=amount,
                description=f"Transfer to {receiver.name}{note}",
                paid_by=actor.role,
            ),
            LedgerEntry(
                agent_id=receiver.id,
                entry_type=LedgerEntryType.AGENT_TRANSFER,
                direction=LedgerDirection.CREDIT,
                amount=amount,
                description=f"Transfer from {sender.name}{note}",
                paid_by=actor.role,
            ),
        )
        logger.info("Transfer of %s from agent %s to agent %s", format_rupees(amount), sender.id, receiver.id)
        return debit, credit
