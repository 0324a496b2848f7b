"""Error kinds, codes and retry flags of the contract kernel exceptions."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from contract_kernel.domain.dtos import DeletionImpact
from contract_kernel.exceptions import (
    ConflictError,
    ContractCreateFailedError,
    ContractHasDependenciesError,
    ContractKernelError,
    ContractNotFoundError,
    ContractValidationError,
    ImmutabilityViolationError,
    InvalidInputError,
    InvalidTripVolumeError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    TicketAlreadyBoundError,
    TicketNotBoundError,
    TicketNotFoundError,
    TripAlreadyRecordedError,
)


def impact(tickets=2):
    return DeletionImpact(
        contract_id=uuid4(),
        contract_name="c",
        tickets_count=tickets,
        trips_count=0,
        assignments_count=0,
        appeals_count=0,
        usage_log_count=0,
        polygons_count=0,
    )


ALL_ERRORS = [
    (ContractNotFoundError("c"), NotFoundError, "CONTRACT_NOT_FOUND", False),
    (TicketNotFoundError("t"), NotFoundError, "TICKET_NOT_FOUND", False),
    (PermissionDeniedError("DRIVER", "read"), ContractKernelError, "PERMISSION_DENIED", False),
    (ContractValidationError("name", "blank"), InvalidInputError, "CONTRACT_VALIDATION_FAILED", False),
    (InvalidTripVolumeError("t", 0), InvalidInputError, "INVALID_TRIP_VOLUME", False),
    (TicketNotBoundError("t"), InvalidInputError, "TICKET_NOT_BOUND", False),
    (TripAlreadyRecordedError("t"), ConflictError, "TRIP_ALREADY_RECORDED", True),
    (TicketAlreadyBoundError("t", "a", "b"), ConflictError, "TICKET_ALREADY_BOUND", True),
    (ContractHasDependenciesError("c", impact()), ConflictError, "CONTRACT_HAS_DEPENDENCIES", True),
    (ImmutabilityViolationError("Contract", "c", "frozen"), ContractKernelError, "IMMUTABILITY_VIOLATION", False),
    (StorageError("list_contracts"), ContractKernelError, "STORAGE_ERROR", True),
    (ContractCreateFailedError(), StorageError, "CONTRACT_CREATE_FAILED", True),
]


@pytest.mark.parametrize("error,kind,code,retryable", ALL_ERRORS)
def test_kind_code_and_retry(error, kind, code, retryable):
    assert isinstance(error, kind)
    assert isinstance(error, ContractKernelError)
    assert error.code == code
    assert error.retryable is retryable


def test_codes_are_unique():
    codes = [error.code for error, *_ in ALL_ERRORS]
    assert len(codes) == len(set(codes))


def test_permission_denied_message_carries_reason():
    error = PermissionDeniedError("CONTRACTOR_ADMIN", "read_contract", "not a party")

    assert "CONTRACTOR_ADMIN" in str(error)
    assert "not a party" in str(error)


def test_dependencies_error_carries_impact():
    report = impact(tickets=3)

    error = ContractHasDependenciesError(str(report.contract_id), report)

    assert error.impact is report
    assert error.tickets_count == 3
    assert "3" in str(error)


def test_storage_error_hides_cause_details():
    cause = RuntimeError("password authentication failed for user app")
    try:
        try:
            raise cause
        except RuntimeError as exc:
            raise StorageError("get_contract") from exc
    except StorageError as error:
        assert error.__cause__ is cause
        assert "password" not in str(error)
        assert error.operation == "get_contract"


def test_validation_error_names_field():
    error = ContractValidationError("end_at", f"must be after {datetime(2024, 1, 1, tzinfo=timezone.utc)}")

    assert error.field == "end_at"
    assert "end_at" in str(error)
