"""
Payment Router Tests.
"""

from types import SimpleNamespace

import pytest

from freight_backend.app.core.exceptions import InvalidStateError, ValidationError
from freight_backend.app.domain.ledger.payment_router import (
    AgentPayer,
    FinancePayer,
    payer_for,
    route_payment,
)
from freight_backend.app.models.enums import AgentRole
from freight_backend.app.models.trip_enums import TripStatus


def make_trip(status=TripStatus.ACTIVE, agent_id=1):
    return SimpleNamespace(id=10, status=status, agent_id=agent_id)


def test_agent_payer_debits_self_without_mirror():
    route = route_payment(make_trip(agent_id=1), AgentPayer(agent_id=1))
    assert route.debited_agent_id == 1
    assert route.mirror_credit_required is False
    assert route.notify_creator is False
    assert route.payer_role == AgentRole.AGENT


def test_agent_paying_someone_elses_trip_notifies_creator():
    route = route_payment(make_trip(agent_id=1), AgentPayer(agent_id=2))
    assert route.debited_agent_id == 2
    assert route.notify_creator is True


def test_finance_payer_debits_selected_agent_with_mirror():
    route = route_payment(make_trip(agent_id=1), FinancePayer(actor_id=9, selected_agent_id=1))
    assert route.debited_agent_id == 1
    assert route.mirror_credit_required is True
    assert route.notify_creator is False
    assert route.payer_role == AgentRole.FINANCE


def test_finance_payer_requires_selected_agent():
    with pytest.raises(ValidationError):
        route_payment(make_trip(), FinancePayer(actor_id=9, selected_agent_id=None))


def test_agent_payer_requires_id():
    with pytest.raises(ValidationError):
        route_payment(make_trip(), AgentPayer(agent_id=None))


@pytest.mark.parametrize("status", [TripStatus.IN_DISPUTE, TripStatus.COMPLETED])
def test_payments_only_on_active_trips(status):
    with pytest.raises(InvalidStateError) as exc:
        route_payment(make_trip(status=status), AgentPayer(agent_id=1))
    assert exc.value.details["current_status"] == status.value


def test_admin_pays_through_finance_variant():
    assert payer_for(5, AgentRole.ADMIN, 3) == FinancePayer(actor_id=5, selected_agent_id=3)
    assert payer_for(5, AgentRole.FINANCE, 3) == FinancePayer(actor_id=5, selected_agent_id=3)
    assert payer_for(5, AgentRole.AGENT, 3) == AgentPayer(agent_id=5)
