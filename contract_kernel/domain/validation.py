"""
Contract creation validation -- raw input to a per-kind draft.

Responsibility:
    Turns a CreateContractInput into a ContractorServiceDraft or a
    LandfillServiceDraft, enforcing the contract invariants once, at the
    boundary, so that no downstream consumer re-checks the contract kind.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Contract kind is CONTRACTOR_SERVICE or LANDFILL_SERVICE.
    - CONTRACTOR_SERVICE requires contractor_id and a work category, and
      takes no region ids.
    - LANDFILL_SERVICE requires landfill_id; contractor, work category and
      region ids are optional.
    - Name is non-blank (stored trimmed).
    - price_per_m3, budget_total, minimal_volume_m3 are finite and > 0.
    - start_at and end_at are timezone-aware and end_at > start_at.

Failure modes:
    - ContractValidationError naming the offending field.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from contract_kernel.domain.dtos import (
    ContractDraft,
    ContractorServiceDraft,
    ContractTerms,
    CreateContractInput,
    LandfillServiceDraft,
)
from contract_kernel.exceptions import ContractValidationError
from contract_kernel.models.contract import ContractType, WorkType


def to_decimal(value: Any) -> Decimal | None:
    """
    Coerce a numeric input to a finite Decimal, or None if impossible.

    Floats go through ``str`` so that 0.1 becomes Decimal("0.1").
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def _positive_decimal(value: Any, field: str) -> Decimal:
    result = to_decimal(value)
    if result is None:
        raise ContractValidationError(field, f"not a number: {value!r}")
    if result <= 0:
        raise ContractValidationError(field, "must be greater than zero")
    return result


def _aware(value: Any, field: str) -> datetime:
    if not isinstance(value, datetime):
        raise ContractValidationError(field, "must be a datetime")
    if value.tzinfo is None:
        raise ContractValidationError(field, "must be timezone-aware")
    return value


def parse_contract_type(raw: Any) -> ContractType:
    try:
        return ContractType(str(raw).strip().upper())
    except ValueError:
        raise ContractValidationError("contract_type", f"unknown kind {raw!r}") from None


def parse_work_type(raw: Any) -> WorkType:
    try:
        return WorkType(str(raw).strip().lower())
    except ValueError:
        raise ContractValidationError("work_type", f"unknown category {raw!r}") from None


def _dedupe(polygon_ids: tuple[UUID, ...] | list[UUID]) -> tuple[UUID, ...]:
    return tuple(dict.fromkeys(polygon_ids))


def build_terms(data: CreateContractInput) -> ContractTerms:
    name = (data.name or "").strip()
    if not name:
        raise ContractValidationError("name", "must not be blank")

    start_at = _aware(data.start_at, "start_at")
    end_at = _aware(data.end_at, "end_at")
    if not end_at > start_at:
        raise ContractValidationError("end_at", "must be after start_at")

    return ContractTerms(
        name=name,
        price_per_m3=_positive_decimal(data.price_per_m3, "price_per_m3"),
        budget_total=_positive_decimal(data.budget_total, "budget_total"),
        minimal_volume_m3=_positive_decimal(data.minimal_volume_m3, "minimal_volume_m3"),
        start_at=start_at,
        end_at=end_at,
        is_active=True if data.is_active is None else bool(data.is_active),
    )


def build_contract_draft(data: CreateContractInput) -> ContractDraft:
    """
    Validate a creation request and return the draft for its contract kind.

    Raises:
        ContractValidationError: If any invariant is violated.
    """
    kind = parse_contract_type(data.contract_type)
    terms = build_terms(data)

    if kind == ContractType.CONTRACTOR_SERVICE:
        if data.contractor_id is None:
            raise ContractValidationError("contractor_id", "required for CONTRACTOR_SERVICE")
        if data.work_type is None:
            raise ContractValidationError("work_type", "required for CONTRACTOR_SERVICE")
        if data.polygon_ids:
            raise ContractValidationError("polygon_ids", "only allowed for LANDFILL_SERVICE")
        return ContractorServiceDraft(
            contractor_id=data.contractor_id,
            work_type=parse_work_type(data.work_type),
            terms=terms,
        )

    if data.landfill_id is None:
        raise ContractValidationError("landfill_id", "required for LANDFILL_SERVICE")
    return LandfillServiceDraft(
        landfill_id=data.landfill_id,
        terms=terms,
        contractor_id=data.contractor_id,
        work_type=parse_work_type(data.work_type) if data.work_type else None,
        polygon_ids=_dedupe(data.polygon_ids or ()),
    )


def check_terms(terms: ContractTerms) -> None:
    """Check terms constructed directly rather than through build_terms()."""
    if not (terms.name or "").strip():
        raise ContractValidationError("name", "must not be blank")
    _positive_decimal(terms.price_per_m3, "price_per_m3")
    _positive_decimal(terms.budget_total, "budget_total")
    _positive_decimal(terms.minimal_volume_m3, "minimal_volume_m3")
    start_at = _aware(terms.start_at, "start_at")
    end_at = _aware(terms.end_at, "end_at")
    if not end_at > start_at:
        raise ContractValidationError("end_at", "must be after start_at")


def validate_draft(draft: Any) -> ContractDraft:
    """
    Re-check a draft handed in by a caller.

    Drafts are plain frozen dataclasses, so nothing stops a caller from
    building one with a negative price.  The same invariants as
    build_contract_draft() apply.

    Raises:
        ContractValidationError: If any invariant is violated.
    """
    if isinstance(draft, ContractorServiceDraft):
        if draft.contractor_id is None:
            raise ContractValidationError("contractor_id", "required for CONTRACTOR_SERVICE")
        if not isinstance(draft.work_type, WorkType):
            raise ContractValidationError("work_type", "required for CONTRACTOR_SERVICE")
    elif isinstance(draft, LandfillServiceDraft):
        if draft.landfill_id is None:
            raise ContractValidationError("landfill_id", "required for LANDFILL_SERVICE")
        if draft.work_type is not None and not isinstance(draft.work_type, WorkType):
            raise ContractValidationError("work_type", f"unknown category {draft.work_type!r}")
    else:
        raise ContractValidationError("contract_type", f"unsupported draft {type(draft).__name__}")

    if not isinstance(draft.terms, ContractTerms):
        raise ContractValidationError("terms", "must be ContractTerms")
    check_terms(draft.terms)
    return draft
