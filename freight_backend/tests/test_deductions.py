"""
Deduction Upsert Tests.
"""

import pytest

from freight_backend.app.core.exceptions import InvalidStateError, ValidationError
from freight_backend.app.domain.disputes.reconciler import DisputeReconciler
from freight_backend.app.domain.ledger.ledger_store import LedgerFilter, LedgerStore
from freight_backend.app.domain.trips.lifecycle import TripLifecycle
from freight_backend.app.models.ledger_enums import DeductionBucket, LedgerEntryType
from freight_backend.app.models.trip_enums import TripStatus


async def settlements(db, agent_id):
    return await LedgerStore(db).find(LedgerFilter(agent_id=agent_id, entry_type=LedgerEntryType.SETTLEMENT))


@pytest.fixture
async def trip(db_session, agents, trip_input):
    return await TripLifecycle(db_session).create(trip_input(agents["agent"].id), agents["agent"])


async def test_repeated_save_does_not_duplicate(db_session, agents, trip):
    agent = agents["agent"]
    lifecycle = TripLifecycle(db_session)

    await lifecycle.update_deductions(trip.id, {"cess": 20_000, "kata": 5_000}, agent)
    await lifecycle.update_deductions(trip.id, {"cess": 20_000, "kata": 5_000}, agent)

    entries = await settlements(db_session, agent.id)
    assert len(entries) == 1
    assert entries[0].bucket == DeductionBucket.ADDITIONS
    assert entries[0].amount == 25_000
    assert await LedgerStore(db_session).agent_balance(agent.id) == -225_000


async def test_changed_total_amends_existing_entry(db_session, agents, trip):
    agent = agents["agent"]
    lifecycle = TripLifecycle(db_session)

    await lifecycle.update_deductions(trip.id, {"halting": 10_000}, agent)
    updated = await lifecycle.update_deductions(trip.id, {"halting": 40_000}, agent)

    entries = await settlements(db_session, agent.id)
    assert len(entries) == 1
    assert entries[0].amount == 40_000
    assert updated.balance == 840_000
    assert await LedgerStore(db_session).agent_balance(agent.id) == -240_000


async def test_amend_to_zero_keeps_entry(db_session, agents, trip):
    agent = agents["agent"]
    lifecycle = TripLifecycle(db_session)

    await lifecycle.update_deductions(trip.id, {"beta": 30_000}, agent)
    await lifecycle.update_deductions(trip.id, {"beta": 0}, agent)

    entries = await settlements(db_session, agent.id)
    assert len(entries) == 1
    assert entries[0].bucket == DeductionBucket.BETA
    assert entries[0].amount == 0
    assert await LedgerStore(db_session).agent_balance(agent.id) == -200_000


async def test_zero_totals_post_nothing(db_session, agents, trip):
    agent = agents["agent"]
    await TripLifecycle(db_session).update_deductions(trip.id, {"others_reason": "none"}, agent)
    assert await settlements(db_session, agent.id) == []


async def test_each_contributor_gets_own_entry(db_session, agents, trip):
    agent, finance = agents["agent"], agents["finance"]
    lifecycle = TripLifecycle(db_session)

    await lifecycle.update_deductions(trip.id, {"expenses": 12_000}, agent)
    updated = await lifecycle.update_deductions(trip.id, {"expenses": 15_000}, finance)

    assert updated.deductions_added_by == finance.id
    assert [e.amount for e in await settlements(db_session, agent.id)] == [12_000]
    assert [e.amount for e in await settlements(db_session, finance.id)] == [15_000]


async def test_deductions_allowed_in_dispute(db_session, agents, trip):
    agent = agents["agent"]
    await DisputeReconciler(db_session).open_dispute(trip.id, "Kata", "Weighbridge slip missing", agent)

    updated = await TripLifecycle(db_session).update_deductions(trip.id, {"kata": 7_500}, agent)

    assert updated.status == TripStatus.IN_DISPUTE
    assert updated.kata == 7_500


async def test_completed_trip_rejects_deductions(db_session, agents, trip):
    lifecycle = TripLifecycle(db_session)
    await lifecycle.close(trip.id, agents["finance"])

    with pytest.raises(InvalidStateError):
        await lifecycle.update_deductions(trip.id, {"cess": 100}, agents["agent"])


async def test_unknown_and_negative_fields_rejected(db_session, agents, trip):
    lifecycle = TripLifecycle(db_session)
    with pytest.raises(ValidationError):
        await lifecycle.update_deductions(trip.id, {"toll": 100}, agents["agent"])
    with pytest.raises(ValidationError):
        await lifecycle.update_deductions(trip.id, {"cess": -1}, agents["agent"])
