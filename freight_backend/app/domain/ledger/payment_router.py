"""
Payment Router (Domain Logic).

Decides whose wallet a mid-trip payment debits, and whether Finance has
to fund that wallet first with a mirrored top-up.
"""

from dataclasses import dataclass
from typing import Optional, Union

from freight_backend.app.core.exceptions import InvalidStateError, ValidationError
from freight_backend.app.models.enums import AgentRole
from freight_backend.app.models.trip_enums import TripStatus


@dataclass(frozen=True)
class AgentPayer:
    """A field agent paying out of their own wallet."""
    agent_id: Optional[int]


@dataclass(frozen=True)
class FinancePayer:
    """Finance (or Admin) paying on behalf of a selected agent."""
    actor_id: int
    selected_agent_id: Optional[int]


Payer = Union[AgentPayer, FinancePayer]


@dataclass(frozen=True)
class PaymentRoute:
    debited_agent_id: int
    mirror_credit_required: bool
    notify_creator: bool

    @property
    def payer_role(self) -> AgentRole:
        return AgentRole.FINANCE if self.mirror_credit_required else AgentRole.AGENT


def payer_for(actor_id: int, role: AgentRole, selected_agent_id: Optional[int] = None) -> Payer:
    """Build the payer variant for an actor; Admin pays the way Finance does."""
    if role.is_back_office:
        return FinancePayer(actor_id=actor_id, selected_agent_id=selected_agent_id)
    return AgentPayer(agent_id=actor_id)


def route_payment(trip, payer: Payer) -> PaymentRoute:
    if trip.status != TripStatus.ACTIVE:
        raise InvalidStateError(
            "Payments can only be added to Active trips",
            current_status=trip.status,
            details={"trip_id": trip.id},
        )

    if isinstance(payer, FinancePayer):
        if not payer.selected_agent_id:
            raise ValidationError(
                "Finance payments must select the agent whose wallet is debited",
                details={"field": "selected_agent_id"},
            )
        debited = payer.selected_agent_id
        mirror = True
    elif isinstance(payer, AgentPayer):
        if not payer.agent_id:
            raise ValidationError("Paying agent is required", details={"field": "agent_id"})
        debited = payer.agent_id
        mirror = False
    else:
        raise ValidationError("Unknown payer type", details={"payer": type(payer).__name__})

    return PaymentRoute(
        debited_agent_id=debited,
        mirror_credit_required=mirror,
        notify_creator=debited != trip.agent_id,
    )
