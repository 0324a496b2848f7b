"""Tests for TicketBindingService."""

from uuid import uuid4

import pytest
from sqlalchemy import select

from contract_kernel.domain.dtos import BindOutcome
from contract_kernel.domain.validation import build_contract_draft
from contract_kernel.exceptions import (
    ConflictError,
    TicketAlreadyBoundError,
    TicketNotFoundError,
)
from contract_kernel.models.scheduling import Ticket
from contract_kernel.services.contract_service import ContractService
from contract_kernel.services.ticket_binding import TicketBindingService
from tests.conftest import contractor_input


@pytest.fixture
def make_contract(session, clock):
    def _make():
        info = ContractService(session, clock).create_contract(
            build_contract_draft(contractor_input(uuid4())),
            created_by_org_id=uuid4(),
        )
        session.commit()
        return info

    return _make


@pytest.fixture
def binding(session):
    return TicketBindingService(session)


def bound_contract_id(session, ticket_id):
    return session.execute(
        select(Ticket.contract_id).where(Ticket.id == ticket_id)
    ).scalar_one()


class TestBind:
    def test_unbound_ticket_is_bound(self, session, binding, scheduler, make_contract):
        contract = make_contract()
        ticket_id = scheduler.ticket()

        assert binding.bind(ticket_id, contract.id) == BindOutcome.BOUND
        session.commit()

        assert bound_contract_id(session, ticket_id) == contract.id

    def test_rebinding_same_contract_is_noop(self, session, binding, scheduler, make_contract):
        contract = make_contract()
        ticket_id = scheduler.ticket()

        binding.bind(ticket_id, contract.id)
        session.commit()

        assert binding.bind(ticket_id, contract.id) == BindOutcome.ALREADY_BOUND
        session.commit()
        assert bound_contract_id(session, ticket_id) == contract.id

    def test_binding_other_contract_conflicts(self, session, binding, scheduler, make_contract):
        contract_a = make_contract()
        contract_b = make_contract()
        ticket_id = scheduler.ticket()

        binding.bind(ticket_id, contract_a.id)
        session.commit()

        with pytest.raises(TicketAlreadyBoundError) as exc_info:
            binding.bind(ticket_id, contract_b.id)
        session.rollback()

        error = exc_info.value
        assert isinstance(error, ConflictError)
        assert error.bound_contract_id == str(contract_a.id)
        assert error.requested_contract_id == str(contract_b.id)
        assert bound_contract_id(session, ticket_id) == contract_a.id

    def test_unknown_ticket(self, binding, make_contract):
        contract = make_contract()

        with pytest.raises(TicketNotFoundError):
            binding.bind(uuid4(), contract.id)

    def test_bind_is_logged(self, session, binding, scheduler, make_contract, captured_logs):
        contract = make_contract()
        ticket_id = scheduler.ticket()

        binding.bind(ticket_id, contract.id)
        binding.bind(ticket_id, contract.id)

        messages = [r["message"] for r in captured_logs()]
        assert "ticket_bound" in messages
        assert "ticket_bind_noop" in messages
