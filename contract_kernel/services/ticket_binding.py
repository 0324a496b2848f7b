"""
TicketBindingService -- attach a scheduled ticket to a contract, once.

Responsibility:
    Sets a ticket's contract reference so that two concurrent binds of the
    same ticket cannot both succeed with different contracts.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - A ticket carries at most one contract reference; once set it is
      never changed by this service.
    - Binding to the contract already referenced is a no-op success.
    - The ticket row is locked (SELECT ... FOR UPDATE on PostgreSQL) for
      the remainder of the caller's transaction, and the reference is
      written with a conditional UPDATE (``contract_id IS NULL``), so a
      backend without row locks still lets only one writer through.

Failure modes:
    - TicketNotFoundError if the ticket does not exist.
    - TicketAlreadyBoundError if it references a different contract.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update

from contract_kernel.domain.dtos import BindOutcome
from contract_kernel.exceptions import TicketAlreadyBoundError, TicketNotFoundError
from contract_kernel.logging_config import get_logger
from contract_kernel.models.scheduling import Ticket
from contract_kernel.services.base import BaseService

logger = get_logger("services.ticket_binding")


class TicketBindingService(BaseService[Ticket]):
    """Binds tickets to contracts with at-most-once semantics."""

    def _current_contract_id(self, ticket_id: UUID, lock: bool = False) -> UUID | None:
        stmt = select(Ticket.contract_id).where(Ticket.id == ticket_id)
        if lock:
            stmt = stmt.with_for_update()
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            raise TicketNotFoundError(str(ticket_id))
        return row.contract_id

    def _resolve_existing(
        self, ticket_id: UUID, bound_id: UUID, contract_id: UUID
    ) -> BindOutcome:
        if bound_id == contract_id:
            logger.info(
                "ticket_bind_noop",
                extra={"ticket_id": str(ticket_id), "contract_id": str(contract_id)},
            )
            return BindOutcome.ALREADY_BOUND
        logger.warning(
            "ticket_bind_conflict",
            extra={
                "ticket_id": str(ticket_id),
                "bound_contract_id": str(bound_id),
                "requested_contract_id": str(contract_id),
            },
        )
        raise TicketAlreadyBoundError(str(ticket_id), str(bound_id), str(contract_id))

    def bind(self, ticket_id: UUID, contract_id: UUID) -> BindOutcome:
        """
        Bind a ticket to a contract.

        The contract's existence is the caller's concern; the foreign key
        rejects a dangling reference.

        Returns:
            BindOutcome.BOUND if the reference was set,
            BindOutcome.ALREADY_BOUND if it already pointed at contract_id.

        Raises:
            TicketNotFoundError: If the ticket does not exist.
            TicketAlreadyBoundError: If the ticket is bound elsewhere.
        """
        bound_id = self._current_contract_id(ticket_id, lock=True)
        if bound_id is not None:
            return self._resolve_existing(ticket_id, bound_id, contract_id)

        result = self.session.execute(
            update(Ticket)
            .where(Ticket.id == ticket_id, Ticket.contract_id.is_(None))
            .values(contract_id=contract_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Another transaction set the reference after our read
            bound_id = self._current_contract_id(ticket_id)
            if bound_id is None:
                raise TicketNotFoundError(str(ticket_id))
            return self._resolve_existing(ticket_id, bound_id, contract_id)

        logger.info(
            "ticket_bound",
            extra={"ticket_id": str(ticket_id), "contract_id": str(contract_id)},
        )
        return BindOutcome.BOUND
