"""
Typed Exception Hierarchy for the Contract Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (an HTTP adapter, a worker, a test) must decide what to do with a
failure without parsing its message: retry, report "forbidden", report
"not found", or reject the input. Every exception therefore has:

  1. A TYPED class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)
  4. A RETRYABLE flag (whether repeating the whole operation can succeed)

Example:
    try:
        operations.record_trip_usage(principal, trip_id, ticket_id, volume)
    except TripAlreadyRecordedError as e:
        # Safe: the trip was already counted exactly once
        log.info("duplicate trip", extra={"trip_id": e.trip_id})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ContractKernelError:

    ContractKernelError (base)
    |
    +-- NotFoundError
    |   +-- ContractNotFoundError
    |   +-- TicketNotFoundError
    |
    +-- PermissionDeniedError
    |
    +-- InvalidInputError
    |   +-- ContractValidationError
    |   +-- InvalidTripVolumeError
    |   +-- TicketNotBoundError
    |
    +-- ConflictError
    |   +-- TripAlreadyRecordedError
    |   +-- TicketAlreadyBoundError
    |   +-- ContractHasDependenciesError
    |
    +-- ImmutabilityViolationError
    |
    +-- StorageError
        +-- ContractCreateFailedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Kind          | Code                        | When Raised                        | Retry
--------------|-----------------------------|------------------------------------|------
NotFound      | CONTRACT_NOT_FOUND          | Contract ID doesn't exist          | no
              | TICKET_NOT_FOUND            | Ticket ID doesn't exist            | no
Permission    | PERMISSION_DENIED           | Role/organization not allowed      | no
InvalidInput  | CONTRACT_VALIDATION_FAILED  | Create parameters violate rules    | no
              | INVALID_TRIP_VOLUME         | Trip volume <= 0                   | no
              | TICKET_NOT_BOUND            | Ticket has no contract             | no
Conflict      | TRIP_ALREADY_RECORDED       | Duplicate trip identity            | yes
              | TICKET_ALREADY_BOUND        | Re-bind to a different contract    | yes
              | CONTRACT_HAS_DEPENDENCIES   | Unforced delete with tickets       | yes
Immutability  | IMMUTABILITY_VIOLATION      | Update of contract terms / ledger  | no
Storage       | STORAGE_ERROR               | Untranslated database failure      | yes
              | CONTRACT_CREATE_FAILED      | Create sequence did not complete   | yes

===============================================================================
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from contract_kernel.domain.dtos import DeletionImpact


class ContractKernelError(Exception):
    """
    Base exception for all contract kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CONTRACT_KERNEL_ERROR"
    retryable: bool = False


# Not-found exceptions


class NotFoundError(ContractKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class ContractNotFoundError(NotFoundError):
    """Contract with given ID was not found."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Contract not found: {contract_id}")


class TicketNotFoundError(NotFoundError):
    """Ticket with given ID was not found."""

    code: str = "TICKET_NOT_FOUND"

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket not found: {ticket_id}")


# Permission exceptions


class PermissionDeniedError(ContractKernelError):
    """
    Caller's role or organization does not satisfy the access policy.

    Raised explicitly instead of returning an empty result so that
    "forbidden" is never confused with "nothing to show".
    """

    code: str = "PERMISSION_DENIED"

    def __init__(self, role: str, action: str, reason: str = ""):
        self.role = role
        self.action = action
        self.reason = reason
        message = f"Permission denied: role {role} may not {action}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


# Invalid-input exceptions


class InvalidInputError(ContractKernelError):
    """Base exception for structurally valid but semantically illegal input."""

    code: str = "INVALID_INPUT"


class ContractValidationError(InvalidInputError):
    """Contract creation parameters violate a contract invariant."""

    code: str = "CONTRACT_VALIDATION_FAILED"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid contract {field}: {reason}")


class InvalidTripVolumeError(InvalidInputError):
    """Trip volume must be strictly positive."""

    code: str = "INVALID_TRIP_VOLUME"

    def __init__(self, trip_id: str, volume: Any):
        self.trip_id = trip_id
        self.volume = volume
        super().__init__(f"Trip {trip_id} volume must be positive, got {volume}")


class TicketNotBoundError(InvalidInputError):
    """Ticket exists but carries no contract reference."""

    code: str = "TICKET_NOT_BOUND"

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} is not bound to any contract")


# Conflict exceptions


class ConflictError(ContractKernelError):
    """Base exception for at-most-once invariant violations."""

    code: str = "CONFLICT"
    retryable: bool = True


class TripAlreadyRecordedError(ConflictError):
    """
    Usage for this trip has already been recorded.

    Retrying a recording with the same trip identity always lands here,
    never in a second addition to the usage totals.
    """

    code: str = "TRIP_ALREADY_RECORDED"

    def __init__(self, trip_id: str):
        self.trip_id = trip_id
        super().__init__(f"Usage already recorded for trip {trip_id}")


class TicketAlreadyBoundError(ConflictError):
    """Ticket is already bound to a different contract."""

    code: str = "TICKET_ALREADY_BOUND"

    def __init__(self, ticket_id: str, bound_contract_id: str, requested_contract_id: str):
        self.ticket_id = ticket_id
        self.bound_contract_id = bound_contract_id
        self.requested_contract_id = requested_contract_id
        super().__init__(
            f"Ticket {ticket_id} is bound to contract {bound_contract_id}, "
            f"cannot bind to {requested_contract_id}"
        )


class ContractHasDependenciesError(ConflictError):
    """Unforced delete blocked by dependent tickets."""

    code: str = "CONTRACT_HAS_DEPENDENCIES"

    def __init__(self, contract_id: str, impact: DeletionImpact):
        self.contract_id = contract_id
        self.impact = impact
        self.tickets_count = impact.tickets_count
        super().__init__(
            f"Contract {contract_id} has {impact.tickets_count} dependent ticket(s); "
            "use force to delete them together with the contract"
        )


# Immutability exceptions


class ImmutabilityViolationError(ContractKernelError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Storage exceptions


class StorageError(ContractKernelError):
    """
    Opaque internal failure (connectivity, timeout, unexpected constraint).

    The original database exception is chained as ``__cause__``; its
    details never appear in the message.
    """

    code: str = "STORAGE_ERROR"
    retryable: bool = True

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Storage failure during {operation}")


class ContractCreateFailedError(StorageError):
    """The contract/usage/region insert sequence did not complete."""

    code: str = "CONTRACT_CREATE_FAILED"

    def __init__(self) -> None:
        super().__init__("create_contract")
