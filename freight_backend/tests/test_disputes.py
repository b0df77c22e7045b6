"""
Dispute Reconciliation Tests.
"""

import pytest

from freight_backend.app.core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from freight_backend.app.domain.disputes.reconciler import DisputeFilter, DisputeReconciler
from freight_backend.app.domain.ledger.ledger_store import LedgerFilter, LedgerStore
from freight_backend.app.domain.trips.lifecycle import PaymentInput, TripLifecycle
from freight_backend.app.models.dispute_enums import DisputeStatus
from freight_backend.app.models.ledger_enums import LedgerDirection, LedgerEntryType
from freight_backend.app.models.trip_enums import TripStatus
from freight_backend.app.services import audit


async def dispute_entries(db, trip_id):
    entries = await LedgerStore(db).find(LedgerFilter(trip_id=trip_id))
    return [e for e in entries if e.entry_type.value.startswith("Dispute")]


@pytest.fixture
async def trip(db_session, agents, trip_input):
    return await TripLifecycle(db_session).create(trip_input(agents["agent"].id), agents["agent"])


async def test_open_holds_trip_in_dispute(db_session, agents, trip):
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "Freight", "Rate was 38/ton", agents["agent"], amount=50_000)

    assert dispute.status == DisputeStatus.OPEN
    assert dispute.lr_number == trip.lr_number
    assert dispute.agent_id == agents["agent"].id
    assert dispute.amount == 50_000

    trip = await TripLifecycle(db_session).load_trip(trip.id, fresh=True)
    assert trip.status == TripStatus.IN_DISPUTE


async def test_open_requires_active_trip(db_session, agents, trip):
    reconciler = DisputeReconciler(db_session)
    await reconciler.open_dispute(trip.id, "Freight", "Rate", agents["agent"])

    with pytest.raises(InvalidStateError):
        await reconciler.open_dispute(trip.id, "Advance", "Second dispute", agents["agent"])


async def test_open_requires_reason(db_session, agents, trip):
    with pytest.raises(ValidationError):
        await DisputeReconciler(db_session).open_dispute(trip.id, "Freight", "   ", agents["agent"])


async def test_resolution_signs_and_order(db_session, agents, trip):
    agent, admin = agents["agent"], agents["admin"]
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "Freight", "Rate mismatch", agent)

    resolved = await reconciler.resolve_dispute(
        dispute.id,
        {"cess": 10_000, "advance": 150_000, "freight": 1_100_000, "kata": 0},
        admin,
    )

    assert resolved.status == DisputeStatus.RESOLVED
    assert resolved.resolved_by == admin.id
    assert resolved.resolved_at is not None
    assert resolved.corrections["freight"] == {"old": 1_000_000, "new": 1_100_000}
    assert "kata" not in resolved.corrections

    posted = [(e.entry_type, e.direction, e.amount) for e in await dispute_entries(db_session, trip.id)]
    assert posted == [
        (LedgerEntryType.DISPUTE_FREIGHT, LedgerDirection.CREDIT, 100_000),
        (LedgerEntryType.DISPUTE_ADVANCE, LedgerDirection.CREDIT, 50_000),
        (LedgerEntryType.DISPUTE_CESS, LedgerDirection.DEBIT, 10_000),
    ]

    trip = await TripLifecycle(db_session).load_trip(trip.id, fresh=True)
    assert trip.status == TripStatus.ACTIVE
    assert trip.balance == 960_000
    assert await LedgerStore(db_session).agent_balance(agent.id) == -60_000


async def test_decreases_flip_direction(db_session, agents, trip):
    agent, admin = agents["agent"], agents["admin"]
    lifecycle = TripLifecycle(db_session)
    await lifecycle.update_deductions(trip.id, {"beta": 30_000}, agent)
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "Freight", "Overbilled", agent)

    await reconciler.resolve_dispute(dispute.id, {"freight": 900_000, "advance": 250_000, "beta": 10_000}, admin)

    posted = [(e.entry_type, e.direction, e.amount) for e in await dispute_entries(db_session, trip.id)]
    assert posted == [
        (LedgerEntryType.DISPUTE_FREIGHT, LedgerDirection.DEBIT, 100_000),
        (LedgerEntryType.DISPUTE_ADVANCE, LedgerDirection.DEBIT, 50_000),
        (LedgerEntryType.DISPUTE_BETA, LedgerDirection.CREDIT, 20_000),
    ]


async def test_detail_only_resolution_posts_nothing(db_session, agents, trip):
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "Truck", "Wrong truck number", agents["agent"])

    resolved = await reconciler.resolve_dispute(dispute.id, {"truck_number": "CG04ZZ9999"}, agents["admin"])

    assert resolved.corrections == {"truck_number": {"old": "CG04AB1234", "new": "CG04ZZ9999"}}
    assert await dispute_entries(db_session, trip.id) == []


async def test_unchanged_financials_post_nothing(db_session, agents, trip):
    agent, admin = agents["agent"], agents["admin"]
    lifecycle = TripLifecycle(db_session)
    await lifecycle.add_payment(trip.id, PaymentInput(amount=50_000, reason="Diesel"), agent)
    await lifecycle.update_deductions(trip.id, {
        "cess": 10_000, "kata": 5_000, "excess_tonnage": 4_000, "halting": 3_000,
        "expenses": 2_000, "beta": 6_000, "others": 1_000, "others_reason": "Parking",
    }, agent)
    trip = await lifecycle.load_trip(trip.id, fresh=True)
    balance_before = trip.balance

    store = LedgerStore(db_session)
    entries_before = await store.count(LedgerFilter(trip_id=trip.id))
    agent_before = await store.agent_balance(agent.id)

    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "Freight", "Check all figures", agent)
    resolved = await reconciler.resolve_dispute(dispute.id, {
        name: getattr(trip, name)
        for name in ("freight", "advance", "cess", "kata", "excess_tonnage", "halting", "expenses", "beta", "others")
    }, admin)

    assert resolved.corrections == {}
    assert await dispute_entries(db_session, trip.id) == []
    assert await store.count(LedgerFilter(trip_id=trip.id)) == entries_before
    assert await store.agent_balance(agent.id) == agent_before

    trip = await lifecycle.load_trip(trip.id, fresh=True)
    assert trip.balance == balance_before
    assert trip.status == TripStatus.ACTIVE


async def test_resolution_remark_is_recorded(db_session, agents, trip):
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "Freight", "Rate mismatch", agents["agent"])

    resolved = await reconciler.resolve_dispute(
        dispute.id, {"freight": 1_050_000, "remark": "  Confirmed with consignor  "}, agents["admin"]
    )

    assert resolved.corrections["remark"] == "Confirmed with consignor"
    assert resolved.corrections["freight"] == {"old": 1_000_000, "new": 1_050_000}

    trail = await audit.get_audit_trail(db_session, entity_type="dispute", entity_id=dispute.id)
    resolved_rows = [row for row in trail if row.action == audit.AuditAction.DISPUTE_RESOLVED]
    assert len(resolved_rows) == 1
    assert resolved_rows[0].meta_data["remark"] == "Confirmed with consignor"


async def test_resolve_twice_conflicts(db_session, agents, trip):
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "Freight", "Rate", agents["agent"])
    await reconciler.resolve_dispute(dispute.id, {}, agents["admin"])

    with pytest.raises(ConflictError):
        await reconciler.resolve_dispute(dispute.id, {"freight": 1}, agents["admin"])


async def test_resolve_after_force_close_is_invalid(db_session, agents, trip):
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "Freight", "Rate", agents["agent"])
    await TripLifecycle(db_session).close(trip.id, agents["admin"], force_close=True)

    with pytest.raises(InvalidStateError):
        await reconciler.resolve_dispute(dispute.id, {"freight": 1}, agents["admin"])


async def test_lr_correction_rechecks_uniqueness(db_session, agents, trip, trip_input):
    agent = agents["agent"]
    await TripLifecycle(db_session).create(trip_input(agent.id, lr_number="LR-2002", advance=0), agent)
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "LR", "Typo in LR", agent)

    with pytest.raises(ConflictError):
        await reconciler.resolve_dispute(dispute.id, {"lr_number": "lr-2002"}, agents["admin"])


async def test_lr_correction_applies(db_session, agents, trip):
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "LR", "Typo in LR", agents["agent"])

    resolved = await reconciler.resolve_dispute(dispute.id, {"lr_number": "LR-1001A"}, agents["admin"])

    assert resolved.lr_number == "LR-1001A"
    trip = await TripLifecycle(db_session).load_trip(trip.id, fresh=True)
    assert trip.lr_number == "LR-1001A"


async def test_bulk_trip_rejects_financial_corrections(db_session, agents, trip_input):
    agent = agents["agent"]
    bulk = await TripLifecycle(db_session).create(trip_input(agent.id, lr_number="BULK-1", is_bulk=True), agent)
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(bulk.id, "Freight", "Bulk rate", agent)

    with pytest.raises(ValidationError):
        await reconciler.resolve_dispute(dispute.id, {"freight": 100_000}, agents["admin"])


async def test_unknown_correction_field_rejected(db_session, agents, trip):
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "Freight", "Rate", agents["agent"])
    with pytest.raises(ValidationError):
        await reconciler.resolve_dispute(dispute.id, {"balance": 0}, agents["admin"])


async def test_list_and_get(db_session, agents, trip):
    reconciler = DisputeReconciler(db_session)
    dispute = await reconciler.open_dispute(trip.id, "Freight", "Rate", agents["agent"])

    disputes, total = await reconciler.list(DisputeFilter(status=DisputeStatus.OPEN))
    assert total == 1
    assert disputes[0].id == dispute.id
    assert (await reconciler.get(dispute.id)).reason == "Rate"

    with pytest.raises(NotFoundError):
        await reconciler.get(404)
