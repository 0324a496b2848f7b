"""
ORM-level immutability of contract terms and trip usage ledger entries.

The listeners are registered by the db_engine fixture, as they are in
production wiring.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from contract_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from contract_kernel.exceptions import ImmutabilityViolationError
from contract_kernel.models.contract import Contract
from contract_kernel.models.usage import ContractUsage, TripUsageRecord


@pytest.fixture
def recorded_trip(create_contract, operations, kgu, scheduler):
    view = create_contract()
    ticket_id = scheduler.ticket()
    operations.bind_ticket_to_contract(kgu, ticket_id, view.id)
    entry = operations.record_trip_usage(kgu, uuid4(), ticket_id, Decimal("5"))
    return view, entry


class TestContractTerms:
    @pytest.mark.parametrize(
        "field,value",
        [
            ("name", "renamed"),
            ("price_per_m3", Decimal("1")),
            ("is_active", False),
        ],
    )
    def test_update_rejected(self, session, create_contract, field, value):
        view = create_contract()
        contract = session.get(Contract, view.id)

        setattr(contract, field, value)
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "Contract"
        assert exc_info.value.entity_id == str(view.id)

    def test_end_date_cannot_be_extended(self, session, create_contract):
        view = create_contract()
        contract = session.get(Contract, view.id)

        contract.end_at = contract.end_at + timedelta(days=30)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestUsageLedger:
    def test_entry_update_rejected(self, session, recorded_trip):
        _, entry = recorded_trip
        record = session.execute(
            select(TripUsageRecord).where(TripUsageRecord.trip_id == entry.trip_id)
        ).scalar_one()

        record.recorded_cost = Decimal("0.01")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "TripUsageRecord"

    def test_entry_delete_rejected(self, session, recorded_trip):
        _, entry = recorded_trip
        record = session.execute(
            select(TripUsageRecord).where(TripUsageRecord.trip_id == entry.trip_id)
        ).scalar_one()

        session.delete(record)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_rollup_remains_mutable(self, session, recorded_trip):
        view, _ = recorded_trip
        usage = session.execute(
            select(ContractUsage).where(ContractUsage.contract_id == view.id)
        ).scalar_one()

        usage.total_volume_m3 = usage.total_volume_m3 + 1
        session.flush()


class TestListenerRegistration:
    def test_registration_is_idempotent(self, session, create_contract):
        register_immutability_listeners()
        view = create_contract()
        contract = session.get(Contract, view.id)

        contract.name = "again"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_unregistered_listeners_allow_update(self, session, create_contract):
        view = create_contract()
        unregister_immutability_listeners()
        try:
            contract = session.get(Contract, view.id)
            contract.name = "unguarded"
            session.flush()
        finally:
            register_immutability_listeners()
