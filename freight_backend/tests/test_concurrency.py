"""
Concurrency Tests.

Validates that concurrent mutations of one trip are serialized and that a
stale writer is turned away instead of overwriting newer state.
"""

import pytest
import asyncio

from freight_backend.app.core.exceptions import ConflictError
from freight_backend.app.domain.ledger.ledger_store import LedgerFilter, LedgerStore
from freight_backend.app.domain.trips.lifecycle import PaymentInput, TripLifecycle
from freight_backend.app.models.ledger_enums import LedgerEntryType
from freight_backend.app.services.trip_lease import TripLeaseManager


@pytest.mark.asyncio
async def test_concurrent_payments_are_all_applied(db_session, session_factory, agents, trip_input):
    """Five payments fired at once must all land on the balance."""
    agent = agents["agent"]
    trip = await TripLifecycle(db_session).create(trip_input(agent.id), agent)

    async def pay(i):
        async with session_factory() as session:
            return await TripLifecycle(session).add_payment(
                trip.id, PaymentInput(amount=10_000, reason=f"Payment {i}"), agent
            )

    await asyncio.gather(*(pay(i) for i in range(5)))

    trip = await TripLifecycle(db_session).load_trip(trip.id, fresh=True)
    assert trip.balance == 750_000
    assert len(trip.payments) == 5
    assert await LedgerStore(db_session).agent_balance(agent.id) == -250_000


@pytest.mark.asyncio
async def test_concurrent_deduction_saves_post_one_entry(db_session, session_factory, agents, trip_input):
    agent = agents["agent"]
    trip = await TripLifecycle(db_session).create(trip_input(agent.id), agent)

    async def save():
        async with session_factory() as session:
            return await TripLifecycle(session).update_deductions(trip.id, {"cess": 20_000}, agent)

    await asyncio.gather(save(), save(), save())

    entries = await LedgerStore(db_session).find(
        LedgerFilter(agent_id=agent.id, entry_type=LedgerEntryType.SETTLEMENT)
    )
    assert len(entries) == 1
    assert entries[0].amount == 20_000


@pytest.mark.asyncio
async def test_stale_trip_write_conflicts(session_factory, agents, trip_input):
    """A writer holding an old version of the trip must not overwrite a newer one."""
    agent = agents["agent"]
    async with session_factory() as setup:
        trip = await TripLifecycle(setup).create(trip_input(agent.id), agent)

    async with session_factory() as first:
        lifecycle = TripLifecycle(first)
        stale = await lifecycle.load_trip(trip.id)
        await first.commit()

        async with session_factory() as second:
            await TripLifecycle(second).update_details(trip.id, {"invoice_number": "INV-42"}, agent)

        stale.lr_sheet = "Received"
        with pytest.raises(ConflictError):
            await lifecycle.flush_or_conflict("Trip was modified concurrently, retry the request")


@pytest.mark.asyncio
async def test_memory_lease_serializes_holders():
    leases = TripLeaseManager(backend="memory")
    order = []

    async def hold(name):
        async with leases.acquire(7):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(hold("a"), hold("b"))

    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


@pytest.mark.asyncio
async def test_memory_lease_forgets_released_trips():
    leases = TripLeaseManager(backend="memory")

    for trip_id in range(1000):
        async with leases.acquire(trip_id):
            assert trip_id in leases._locks

    assert leases._locks == {}
    assert leases._holders == {}


@pytest.mark.asyncio
async def test_memory_lease_kept_while_waiters_queue():
    leases = TripLeaseManager(backend="memory")
    first_in = asyncio.Event()
    release_first = asyncio.Event()

    async def first():
        async with leases.acquire(3):
            first_in.set()
            await release_first.wait()

    async def second():
        await first_in.wait()
        async with leases.acquire(3):
            pass

    tasks = [asyncio.create_task(first()), asyncio.create_task(second())]
    await first_in.wait()
    await asyncio.sleep(0)
    assert leases._holders[3] == 2

    release_first.set()
    await asyncio.gather(*tasks)
    assert leases._locks == {}


@pytest.mark.asyncio
async def test_redis_lease_rejects_second_holder(redis_client_session):
    leases = TripLeaseManager(backend="redis", redis=redis_client_session, ttl_seconds=5)

    async with leases.acquire(11):
        with pytest.raises(ConflictError):
            async with leases.acquire(11):
                pass

    # Released on exit
    async with leases.acquire(11):
        pass
