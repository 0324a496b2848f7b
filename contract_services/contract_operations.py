"""
contract_services.contract_operations -- Operation entry points.

Responsibility:
    Composes the access policy, the status calculator, the selectors and
    the write services behind the operations a presentation layer calls:
    list, get, create, delete, deletion impact, ticket binding, usage
    recording, and the per-contract ticket and trip listings.

Architecture position:
    Services layer.  The only place that opens transactions: every
    operation runs in its own ``session_scope`` (commit on success,
    rollback on any error).  Kernel services underneath only flush.

Invariants enforced:
    - Role-level permission checks happen before anything is read;
      row-level checks happen right after the fetch they depend on, and
      always before any mutation.
    - Forbidden is always PermissionDeniedError, never an empty result.
    - Database failures that are not translated into a domain error are
      surfaced as StorageError (ContractCreateFailedError for create),
      with the original exception chained.
    - Derived fields are computed on every read from the injected clock.

Usage:
    ops = ContractOperations(get_session_factory(), clock=SystemClock())
    view = ops.create_contract(principal, CreateContractInput(...))
    ops.bind_ticket_to_contract(principal, ticket_id, view.id)
    ops.record_trip_usage(principal, trip_id, ticket_id, Decimal("12.5"))
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from contract_kernel.db.engine import session_scope
from contract_kernel.domain.clock import Clock, SystemClock
from contract_kernel.domain.dtos import (
    BindOutcome,
    ContractDraft,
    ContractFilter,
    ContractTicketInfo,
    ContractTripInfo,
    ContractView,
    CreateContractInput,
    DeletionImpact,
    TripUsageInfo,
)
from contract_kernel.domain.principal import Principal
from contract_kernel.domain.status import build_view
from contract_kernel.domain.validation import (
    build_contract_draft,
    to_decimal,
    validate_draft,
)
from contract_kernel.exceptions import (
    ContractCreateFailedError,
    InvalidTripVolumeError,
    StorageError,
)
from contract_kernel.logging_config import LogContext, get_logger
from contract_kernel.selectors.contract_selector import ContractSelector
from contract_kernel.services.contract_service import ContractService
from contract_kernel.services.ticket_binding import TicketBindingService
from contract_kernel.services.usage_ledger import UsageLedgerService
from contract_services.access_policy import (
    Capability,
    require_bind_ticket,
    require_capability,
    require_read,
    require_read_contract,
    scope_list_filter,
)

logger = get_logger("services.contract_operations")


class ContractOperations:
    """Transactional, access-controlled facade over the contract kernel.

    Contract:
        Every public method takes the calling Principal first and either
        returns a frozen DTO or raises a ContractKernelError subclass.
        Each call is one unit of work.

    Non-goals:
        - Does NOT authenticate principals; they arrive verified.
        - Does NOT retry.  A ConflictError or StorageError is surfaced and
          the caller may repeat the whole operation.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        clock: Clock | None = None,
        statement_timeout_ms: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._statement_timeout_ms = statement_timeout_ms

    @contextmanager
    def _unit_of_work(
        self,
        operation: str,
        principal: Principal,
        storage_error: Callable[[], StorageError] | None = None,
        **context: Any,
    ) -> Iterator[Session]:
        with LogContext.bind(
            actor_id=principal.user_id,
            organization_id=principal.organization_id,
            role=principal.role,
            **context,
        ):
            try:
                with session_scope(
                    self._session_factory,
                    statement_timeout_ms=self._statement_timeout_ms,
                ) as session:
                    yield session
            except SQLAlchemyError as exc:
                logger.error(
                    "storage_failure",
                    extra={"operation": operation, "error_type": type(exc).__name__},
                )
                error = storage_error() if storage_error else StorageError(operation)
                raise error from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_contracts(
        self,
        principal: Principal,
        contract_filter: ContractFilter | None = None,
    ) -> list[ContractView]:
        """
        List contracts visible to the caller, newest first.

        Contractor and landfill-operator callers only ever see contracts
        naming their organization, whatever filter they pass.  When the
        filter has ``include_usage=False`` the views carry zero usage and
        no region ids.

        Raises:
            PermissionDeniedError: If the caller's role has no read scope.
        """
        scoped = scope_list_filter(principal, contract_filter or ContractFilter())
        now = self._clock.now()
        with self._unit_of_work("list_contracts", principal) as session:
            rows = ContractSelector(session).list_contracts(scoped, now=now)
        return [
            build_view(contract, usage, now, polygon_ids)
            for contract, usage, polygon_ids in rows
        ]

    def get_contract(self, principal: Principal, contract_id: UUID) -> ContractView:
        """
        Fetch one contract with usage, region ids and derived fields.

        Raises:
            PermissionDeniedError: If the role cannot read contracts, or the
                contract is outside the caller's read scope.
            ContractNotFoundError: If the contract does not exist.
        """
        require_read(principal)
        with self._unit_of_work(
            "get_contract", principal, contract_id=contract_id
        ) as session:
            selector = ContractSelector(session)
            contract = selector.get(contract_id)
            require_read_contract(principal, contract)
            usage = selector.get_usage(contract_id)
            polygon_ids = (
                selector.polygon_ids(contract_id) if contract.is_landfill_service else ()
            )
        return build_view(contract, usage, self._clock.now(), polygon_ids)

    def get_deletion_impact(
        self, principal: Principal, contract_id: UUID
    ) -> DeletionImpact:
        """
        Count what deleting a contract would remove.

        Raises:
            PermissionDeniedError: If the caller may not delete contracts.
            ContractNotFoundError: If the contract does not exist.
        """
        require_capability(principal, Capability.DELETE_CONTRACT)
        with self._unit_of_work(
            "get_deletion_impact", principal, contract_id=contract_id
        ) as session:
            return ContractSelector(session).deletion_impact(contract_id)

    def list_tickets_for_contract(
        self, principal: Principal, contract_id: UUID
    ) -> list[ContractTicketInfo]:
        require_read(principal)
        with self._unit_of_work(
            "list_tickets_for_contract", principal, contract_id=contract_id
        ) as session:
            selector = ContractSelector(session)
            require_read_contract(principal, selector.get(contract_id))
            return selector.list_tickets(contract_id)

    def list_trips_for_contract(
        self, principal: Principal, contract_id: UUID
    ) -> list[ContractTripInfo]:
        require_read(principal)
        with self._unit_of_work(
            "list_trips_for_contract", principal, contract_id=contract_id
        ) as session:
            selector = ContractSelector(session)
            require_read_contract(principal, selector.get(contract_id))
            return selector.list_trips(contract_id)

    def list_usage_for_contract(
        self, principal: Principal, contract_id: UUID
    ) -> list[TripUsageInfo]:
        """Ledger entries recorded against a contract, oldest first."""
        require_read(principal)
        with self._unit_of_work(
            "list_usage_for_contract", principal, contract_id=contract_id
        ) as session:
            selector = ContractSelector(session)
            require_read_contract(principal, selector.get(contract_id))
            return selector.list_usage_records(contract_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_contract(
        self,
        principal: Principal,
        request: CreateContractInput | ContractDraft,
    ) -> ContractView:
        """
        Create a contract, its zero usage row and its region associations.

        Args:
            principal: Caller; must be the contract authority.
            request: Raw creation input or a draft; both are validated
                before anything is written.

        Returns:
            The new contract's view, with zero usage.

        Raises:
            PermissionDeniedError: If the caller may not create contracts.
            ContractValidationError: If the input violates a contract invariant.
            ContractCreateFailedError: If the insert sequence failed; nothing
                is left behind.
        """
        require_capability(principal, Capability.CREATE_CONTRACT)
        if isinstance(request, CreateContractInput):
            draft = build_contract_draft(request)
        else:
            draft = validate_draft(request)

        with self._unit_of_work(
            "create_contract", principal, storage_error=ContractCreateFailedError
        ) as session:
            contract = ContractService(session, self._clock).create_contract(
                draft, created_by_org_id=principal.organization_id
            )
        return build_view(contract, None, self._clock.now(), draft.polygon_ids)

    def delete_contract(
        self,
        principal: Principal,
        contract_id: UUID,
        force: bool = False,
    ) -> DeletionImpact:
        """
        Delete a contract; with ``force``, delete its tickets too.

        Returns:
            The impact computed just before deletion.

        Raises:
            PermissionDeniedError: If the caller may not delete contracts.
            ContractNotFoundError: If the contract does not exist.
            ContractHasDependenciesError: If tickets exist and force is False.
        """
        require_capability(principal, Capability.DELETE_CONTRACT)
        with self._unit_of_work(
            "delete_contract", principal, contract_id=contract_id
        ) as session:
            return ContractService(session, self._clock).delete_contract(
                contract_id, force=force
            )

    def bind_ticket_to_contract(
        self,
        principal: Principal,
        ticket_id: UUID,
        contract_id: UUID,
    ) -> BindOutcome:
        """
        Bind a ticket to a contract created by the caller's organization.

        Raises:
            PermissionDeniedError: If the caller may not bind tickets, or its
                organization did not create the contract.
            ContractNotFoundError: If the contract does not exist.
            TicketNotFoundError: If the ticket does not exist.
            TicketAlreadyBoundError: If the ticket is bound to another contract.
        """
        require_capability(principal, Capability.BIND_TICKET)
        with self._unit_of_work(
            "bind_ticket_to_contract",
            principal,
            contract_id=contract_id,
            ticket_id=ticket_id,
        ) as session:
            contract = ContractSelector(session).get(contract_id)
            require_bind_ticket(principal, contract)
            return TicketBindingService(session).bind(ticket_id, contract_id)

    def record_trip_usage(
        self,
        principal: Principal,
        trip_id: UUID,
        ticket_id: UUID,
        volume_m3: Any,
    ) -> TripUsageInfo:
        """
        Record one trip's volume against the contract its ticket is bound to.

        Safe to retry: a repeated trip id raises TripAlreadyRecordedError and
        never adds to the usage totals twice.

        Raises:
            PermissionDeniedError: If the caller may not record usage.
            InvalidTripVolumeError: If the volume is not a positive number.
            TicketNotFoundError: If the ticket does not exist.
            TicketNotBoundError: If the ticket has no contract.
            TripAlreadyRecordedError: If the trip was already recorded.
        """
        require_capability(principal, Capability.RECORD_USAGE)
        volume = to_decimal(volume_m3)
        if volume is None or volume <= 0:
            raise InvalidTripVolumeError(str(trip_id), volume_m3)

        with self._unit_of_work(
            "record_trip_usage",
            principal,
            ticket_id=ticket_id,
            trip_id=trip_id,
        ) as session:
            selector = ContractSelector(session)
            contract = selector.get(selector.contract_id_for_ticket(ticket_id))
            return UsageLedgerService(session, self._clock).record_trip_usage(
                trip_id, ticket_id, contract, volume
            )
