"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the kernel boundary:
    contract and usage snapshots, the derived read-time view, ledger
    entries, ticket/trip listings, the deletion impact report, list
    filters, and the per-kind contract drafts accepted by creation.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from selectors and services (never from domain logic).

Invariants enforced:
    - Services and selectors return DTOs, never ORM entities.
    - Derived fields (ContractRollup) exist only on ContractView, which is
      built at read time and never persisted.
    - Monetary and volume fields are Decimal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Union
from uuid import UUID

from contract_kernel.models.contract import ContractType, WorkType

if TYPE_CHECKING:
    from contract_kernel.models.contract import Contract as ContractModel
    from contract_kernel.models.usage import ContractUsage as ContractUsageModel
    from contract_kernel.models.usage import TripUsageRecord as TripUsageRecordModel


class ContractStatus(str, Enum):
    """Lifecycle status, derived from the active flag and the clock."""

    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    ARCHIVED = "ARCHIVED"


class ContractResult(str, Enum):
    """Outcome classification; only meaningful once a contract has expired."""

    NONE = "NONE"
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"


class BindOutcome(str, Enum):
    """Result of a ticket bind that did not fail."""

    BOUND = "BOUND"
    ALREADY_BOUND = "ALREADY_BOUND"


@dataclass(frozen=True)
class ContractInfo:
    """Immutable snapshot of a stored contract row."""

    id: UUID
    contract_type: ContractType
    contractor_id: UUID | None
    landfill_id: UUID | None
    created_by_org_id: UUID
    name: str
    work_type: WorkType | None
    price_per_m3: Decimal
    budget_total: Decimal
    minimal_volume_m3: Decimal
    start_at: datetime
    end_at: datetime
    is_active: bool
    created_at: datetime

    @property
    def is_landfill_service(self) -> bool:
        return self.contract_type == ContractType.LANDFILL_SERVICE

    @classmethod
    def from_model(cls, model: ContractModel) -> ContractInfo:
        return cls(
            id=model.id,
            contract_type=ContractType(model.contract_type),
            contractor_id=model.contractor_id,
            landfill_id=model.landfill_id,
            created_by_org_id=model.created_by_org_id,
            name=model.name,
            work_type=WorkType(model.work_type) if model.work_type else None,
            price_per_m3=model.price_per_m3,
            budget_total=model.budget_total,
            minimal_volume_m3=model.minimal_volume_m3,
            start_at=model.start_at,
            end_at=model.end_at,
            is_active=model.is_active,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class UsageInfo:
    """Accumulated volume and cost of one contract."""

    contract_id: UUID
    total_volume_m3: Decimal
    total_cost: Decimal
    updated_at: datetime | None

    @classmethod
    def zero(cls, contract_id: UUID) -> UsageInfo:
        """Usage of a contract whose rollup row is absent."""
        return cls(
            contract_id=contract_id,
            total_volume_m3=Decimal("0"),
            total_cost=Decimal("0"),
            updated_at=None,
        )

    @classmethod
    def from_model(cls, model: ContractUsageModel) -> UsageInfo:
        return cls(
            contract_id=model.contract_id,
            total_volume_m3=model.total_volume_m3,
            total_cost=model.total_cost,
            updated_at=model.updated_at,
        )


@dataclass(frozen=True)
class ContractRollup:
    """Derived read-time fields; reproducible from (contract, usage, now)."""

    status: ContractStatus
    payable_amount: Decimal
    budget_exceeded: bool
    volume_progress: Decimal | None
    result: ContractResult


@dataclass(frozen=True)
class ContractView:
    """A contract as presented to callers: stored fields plus derived rollup."""

    contract: ContractInfo
    usage: UsageInfo
    rollup: ContractRollup
    polygon_ids: tuple[UUID, ...] = ()

    @property
    def id(self) -> UUID:
        return self.contract.id

    @property
    def status(self) -> ContractStatus:
        return self.rollup.status


@dataclass(frozen=True)
class TripUsageInfo:
    """A recorded ledger entry."""

    trip_id: UUID
    ticket_id: UUID
    contract_id: UUID
    recorded_volume_m3: Decimal
    recorded_cost: Decimal
    created_at: datetime

    @classmethod
    def from_model(cls, model: TripUsageRecordModel) -> TripUsageInfo:
        return cls(
            trip_id=model.trip_id,
            ticket_id=model.ticket_id,
            contract_id=model.contract_id,
            recorded_volume_m3=model.recorded_volume_m3,
            recorded_cost=model.recorded_cost,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class ContractTicketInfo:
    """Ticket bound to a contract, with trip and assignment aggregates."""

    id: UUID
    cleaning_area_id: UUID
    cleaning_area_name: str | None
    planned_start_at: datetime
    planned_end_at: datetime
    status: str
    trip_count: int
    total_volume_m3: Decimal
    active_assignments: int


@dataclass(frozen=True)
class ContractTripInfo:
    """Trip reachable from a contract through one of its tickets."""

    id: UUID
    ticket_id: UUID
    ticket_assignment_id: UUID | None
    driver_id: UUID | None
    vehicle_id: UUID | None
    camera_id: UUID | None
    polygon_id: UUID | None
    vehicle_plate_number: str | None
    detected_plate_number: str | None
    entry_at: datetime
    exit_at: datetime | None
    status: str
    detected_volume_entry: Decimal | None
    detected_volume_exit: Decimal | None


@dataclass(frozen=True)
class DeletionImpact:
    """Counts of everything a contract deletion would remove."""

    contract_id: UUID
    contract_name: str
    tickets_count: int
    trips_count: int
    assignments_count: int
    appeals_count: int
    usage_log_count: int
    polygons_count: int

    @property
    def is_blocking(self) -> bool:
        """Dependent tickets block an unforced delete."""
        return self.tickets_count > 0

    @property
    def will_be_deleted(self) -> dict[str, bool]:
        return {
            "tickets": self.tickets_count > 0,
            "trips": self.trips_count > 0,
            "assignments": self.assignments_count > 0,
            "appeals": self.appeals_count > 0,
            "usage_log": self.usage_log_count > 0,
            "polygons": self.polygons_count > 0,
        }


@dataclass(frozen=True)
class ContractFilter:
    """
    Storage-level list filter.

    ``status`` and ``only_active`` are mutually exclusive: when a status is
    given, ``only_active`` is ignored.  ``now`` is required when ``status``
    is set.
    """

    contractor_id: UUID | None = None
    landfill_id: UUID | None = None
    contract_type: ContractType | None = None
    created_by_org_id: UUID | None = None
    work_type: WorkType | None = None
    only_active: bool = False
    status: ContractStatus | None = None
    start_from: datetime | None = None
    start_to: datetime | None = None
    end_from: datetime | None = None
    end_to: datetime | None = None
    include_usage: bool = True


# -----------------------------------------------------------------------------
# Creation drafts: one variant per contract kind, validated at the boundary
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ContractTerms:
    """Terms shared by every contract kind (already validated)."""

    name: str
    price_per_m3: Decimal
    budget_total: Decimal
    minimal_volume_m3: Decimal
    start_at: datetime
    end_at: datetime
    is_active: bool = True


@dataclass(frozen=True)
class ContractorServiceDraft:
    """A contractor is paid per cubic metre hauled for one work category."""

    contractor_id: UUID
    work_type: WorkType
    terms: ContractTerms

    contract_type = ContractType.CONTRACTOR_SERVICE

    @property
    def landfill_id(self) -> UUID | None:
        return None

    @property
    def polygon_ids(self) -> tuple[UUID, ...]:
        return ()


@dataclass(frozen=True)
class LandfillServiceDraft:
    """A landfill operator accepts snow in a set of regions."""

    landfill_id: UUID
    terms: ContractTerms
    contractor_id: UUID | None = None
    work_type: WorkType | None = None
    polygon_ids: tuple[UUID, ...] = field(default_factory=tuple)

    contract_type = ContractType.LANDFILL_SERVICE


ContractDraft = Union[ContractorServiceDraft, LandfillServiceDraft]


@dataclass(frozen=True)
class CreateContractInput:
    """
    Unvalidated creation request, as received from a presentation layer.

    Turned into a ContractDraft by domain.validation.build_contract_draft().
    """

    contract_type: str
    name: str
    price_per_m3: Decimal | int | str
    budget_total: Decimal | int | str
    minimal_volume_m3: Decimal | int | str
    start_at: datetime
    end_at: datetime
    contractor_id: UUID | None = None
    landfill_id: UUID | None = None
    work_type: str | None = None
    polygon_ids: tuple[UUID, ...] = ()
    is_active: bool | None = None
