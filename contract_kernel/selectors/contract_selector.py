"""
Module: contract_kernel.selectors.contract_selector
Responsibility: Read-only queries over contracts, usage rollups, the usage
    ledger, and the scheduler tables a contract is referenced by.
Architecture position: Kernel > Selectors.  Extends BaseSelector.

Invariants enforced:
    - Read-only: never adds, deletes or flushes.
    - Listing order is newest contract first (created_at DESC); ticket
      listings are newest planned start first; trip listings are newest
      entry first.
    - A contract whose usage row is absent is reported with usage None, and
      the caller treats it as zero.
    - Status filtering is evaluated in SQL with the same precedence as
      contract_kernel.domain.status.derive_status, against the caller's
      ``now``.

Failure modes:
    - ContractNotFoundError when a contract id does not exist.
    - TicketNotFoundError / TicketNotBoundError when resolving a ticket's
      contract.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, func, not_, select
from sqlalchemy.sql.elements import ColumnElement

from contract_kernel.domain.dtos import (
    ContractFilter,
    ContractInfo,
    ContractStatus,
    ContractTicketInfo,
    ContractTripInfo,
    DeletionImpact,
    TripUsageInfo,
    UsageInfo,
)
from contract_kernel.exceptions import (
    ContractNotFoundError,
    TicketNotBoundError,
    TicketNotFoundError,
)
from contract_kernel.models.contract import Contract, ContractPolygon, ContractType
from contract_kernel.models.scheduling import (
    Appeal,
    CleaningArea,
    Ticket,
    TicketAssignment,
    Trip,
)
from contract_kernel.models.usage import ContractUsage, TripUsageRecord
from contract_kernel.selectors.base import BaseSelector


def status_condition(status: ContractStatus, now: datetime) -> ColumnElement[bool]:
    """SQL predicate selecting contracts whose derived status is ``status`` at ``now``."""
    active = Contract.is_active.is_(True)
    if status == ContractStatus.PLANNED:
        return and_(active, Contract.start_at > now)
    if status == ContractStatus.ACTIVE:
        return and_(active, Contract.start_at <= now, Contract.end_at >= now)
    if status == ContractStatus.EXPIRED:
        return and_(active, Contract.end_at < now)
    return not_(active)


class ContractSelector(BaseSelector[Contract]):
    """
    Read-only queries for contracts and their dependents.

    Contract:
        All methods return frozen DTOs.  Methods that take a contract id
        for a single-contract lookup raise ContractNotFoundError when it
        does not exist; listing methods return empty lists instead.
    """

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def _get_model(self, contract_id: UUID) -> Contract:
        contract = self.session.get(Contract, contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    def get(self, contract_id: UUID) -> ContractInfo:
        """
        Get a contract by id.

        Raises:
            ContractNotFoundError: If the contract does not exist.
        """
        return ContractInfo.from_model(self._get_model(contract_id))

    def get_usage(self, contract_id: UUID) -> UsageInfo | None:
        """Usage rollup of a contract, or None if the row is absent."""
        usage = self.session.execute(
            select(ContractUsage).where(ContractUsage.contract_id == contract_id)
        ).scalar_one_or_none()
        return UsageInfo.from_model(usage) if usage is not None else None

    def polygon_ids(self, contract_id: UUID) -> tuple[UUID, ...]:
        """Region ids associated with a contract."""
        rows = self.session.execute(
            select(ContractPolygon.polygon_id)
            .where(ContractPolygon.contract_id == contract_id)
            .order_by(ContractPolygon.polygon_id)
        ).scalars()
        return tuple(rows)

    def _polygon_ids_by_contract(
        self, contract_ids: list[UUID]
    ) -> dict[UUID, tuple[UUID, ...]]:
        if not contract_ids:
            return {}
        grouped: dict[UUID, list[UUID]] = defaultdict(list)
        rows = self.session.execute(
            select(ContractPolygon.contract_id, ContractPolygon.polygon_id)
            .where(ContractPolygon.contract_id.in_(contract_ids))
            .order_by(ContractPolygon.contract_id, ContractPolygon.polygon_id)
        )
        for contract_id, polygon_id in rows:
            grouped[contract_id].append(polygon_id)
        return {cid: tuple(pids) for cid, pids in grouped.items()}

    def list_contracts(
        self,
        contract_filter: ContractFilter,
        now: datetime | None = None,
    ) -> list[tuple[ContractInfo, UsageInfo | None, tuple[UUID, ...]]]:
        """
        List contracts matching a filter, newest first.

        Args:
            contract_filter: Storage-level filter.  When ``status`` is set,
                ``only_active`` is ignored.
            now: Reference time for status filtering; required when
                ``contract_filter.status`` is set.

        Returns:
            (contract, usage or None, region ids) per matching contract.
            Usage is None and region ids are empty when ``include_usage``
            is False.
        """
        f = contract_filter
        stmt = select(Contract, ContractUsage).outerjoin(
            ContractUsage, ContractUsage.contract_id == Contract.id
        )

        if f.contractor_id is not None:
            stmt = stmt.where(Contract.contractor_id == f.contractor_id)
        if f.landfill_id is not None:
            stmt = stmt.where(Contract.landfill_id == f.landfill_id)
        if f.contract_type is not None:
            stmt = stmt.where(Contract.contract_type == f.contract_type.value)
        if f.created_by_org_id is not None:
            stmt = stmt.where(Contract.created_by_org_id == f.created_by_org_id)
        if f.work_type is not None:
            stmt = stmt.where(Contract.work_type == f.work_type.value)
        if f.start_from is not None:
            stmt = stmt.where(Contract.start_at >= f.start_from)
        if f.start_to is not None:
            stmt = stmt.where(Contract.start_at <= f.start_to)
        if f.end_from is not None:
            stmt = stmt.where(Contract.end_at >= f.end_from)
        if f.end_to is not None:
            stmt = stmt.where(Contract.end_at <= f.end_to)

        if f.status is not None:
            if now is None:
                raise ValueError("now is required when filtering by status")
            stmt = stmt.where(status_condition(f.status, now))
        elif f.only_active:
            stmt = stmt.where(Contract.is_active.is_(True))

        stmt = stmt.order_by(Contract.created_at.desc(), Contract.id.desc())

        rows = self.session.execute(stmt).all()

        polygons: dict[UUID, tuple[UUID, ...]] = {}
        if f.include_usage:
            landfill_ids = [
                contract.id
                for contract, _ in rows
                if contract.contract_type == ContractType.LANDFILL_SERVICE.value
            ]
            polygons = self._polygon_ids_by_contract(landfill_ids)

        result = []
        for contract, usage in rows:
            usage_info = None
            if f.include_usage and usage is not None:
                usage_info = UsageInfo.from_model(usage)
            result.append(
                (
                    ContractInfo.from_model(contract),
                    usage_info,
                    polygons.get(contract.id, ()),
                )
            )
        return result

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    def contract_id_for_ticket(self, ticket_id: UUID) -> UUID:
        """
        Resolve the contract a ticket is bound to.

        Raises:
            TicketNotFoundError: If the ticket does not exist.
            TicketNotBoundError: If the ticket has no contract reference.
        """
        row = self.session.execute(
            select(Ticket.contract_id).where(Ticket.id == ticket_id)
        ).one_or_none()
        if row is None:
            raise TicketNotFoundError(str(ticket_id))
        if row.contract_id is None:
            raise TicketNotBoundError(str(ticket_id))
        return row.contract_id

    def list_tickets(self, contract_id: UUID) -> list[ContractTicketInfo]:
        """Tickets bound to a contract with trip and assignment aggregates."""
        trip_agg = (
            select(
                Trip.ticket_id.label("ticket_id"),
                func.count().label("trip_count"),
                func.coalesce(
                    func.sum(func.coalesce(Trip.detected_volume_entry, 0)), 0
                ).label("total_volume_m3"),
            )
            .where(Trip.ticket_id.is_not(None))
            .group_by(Trip.ticket_id)
            .subquery("trip_agg")
        )
        assign_agg = (
            select(
                TicketAssignment.ticket_id.label("ticket_id"),
                func.count().label("active_assignments"),
            )
            .where(TicketAssignment.is_active.is_(True))
            .group_by(TicketAssignment.ticket_id)
            .subquery("assign_agg")
        )

        stmt = (
            select(
                Ticket.id,
                Ticket.cleaning_area_id,
                CleaningArea.name.label("cleaning_area_name"),
                Ticket.planned_start_at,
                Ticket.planned_end_at,
                Ticket.status,
                func.coalesce(trip_agg.c.trip_count, 0).label("trip_count"),
                trip_agg.c.total_volume_m3,
                func.coalesce(assign_agg.c.active_assignments, 0).label(
                    "active_assignments"
                ),
            )
            .outerjoin(CleaningArea, CleaningArea.id == Ticket.cleaning_area_id)
            .outerjoin(trip_agg, trip_agg.c.ticket_id == Ticket.id)
            .outerjoin(assign_agg, assign_agg.c.ticket_id == Ticket.id)
            .where(Ticket.contract_id == contract_id)
            .order_by(Ticket.planned_start_at.desc())
        )

        return [
            ContractTicketInfo(
                id=row.id,
                cleaning_area_id=row.cleaning_area_id,
                cleaning_area_name=row.cleaning_area_name,
                planned_start_at=row.planned_start_at,
                planned_end_at=row.planned_end_at,
                status=row.status,
                trip_count=int(row.trip_count),
                total_volume_m3=Decimal(str(row.total_volume_m3 or 0)),
                active_assignments=int(row.active_assignments),
            )
            for row in self.session.execute(stmt)
        ]

    # ------------------------------------------------------------------
    # Trips and ledger
    # ------------------------------------------------------------------

    def list_trips(self, contract_id: UUID) -> list[ContractTripInfo]:
        """Trips of every ticket bound to a contract."""
        stmt = (
            select(Trip)
            .join(Ticket, Ticket.id == Trip.ticket_id)
            .where(Ticket.contract_id == contract_id)
            .order_by(Trip.entry_at.desc())
        )
        return [
            ContractTripInfo(
                id=trip.id,
                ticket_id=trip.ticket_id,
                ticket_assignment_id=trip.ticket_assignment_id,
                driver_id=trip.driver_id,
                vehicle_id=trip.vehicle_id,
                camera_id=trip.camera_id,
                polygon_id=trip.polygon_id,
                vehicle_plate_number=trip.vehicle_plate_number,
                detected_plate_number=trip.detected_plate_number,
                entry_at=trip.entry_at,
                exit_at=trip.exit_at,
                status=trip.status,
                detected_volume_entry=trip.detected_volume_entry,
                detected_volume_exit=trip.detected_volume_exit,
            )
            for trip in self.session.execute(stmt).scalars()
        ]

    def list_usage_records(self, contract_id: UUID) -> list[TripUsageInfo]:
        """Ledger entries of a contract, oldest first."""
        stmt = (
            select(TripUsageRecord)
            .where(TripUsageRecord.contract_id == contract_id)
            .order_by(TripUsageRecord.created_at, TripUsageRecord.id)
        )
        return [
            TripUsageInfo.from_model(r) for r in self.session.execute(stmt).scalars()
        ]

    # ------------------------------------------------------------------
    # Dependency analysis
    # ------------------------------------------------------------------

    def _count(self, stmt) -> int:
        return int(self.session.execute(stmt).scalar_one())

    def deletion_impact(self, contract_id: UUID) -> DeletionImpact:
        """
        Count everything that deleting a contract would remove.

        Trips, assignments and appeals are counted through the contract's
        tickets, since they go with the tickets.

        Raises:
            ContractNotFoundError: If the contract does not exist.
        """
        contract = self._get_model(contract_id)
        ticket_ids = select(Ticket.id).where(Ticket.contract_id == contract_id)

        return DeletionImpact(
            contract_id=contract.id,
            contract_name=contract.name,
            tickets_count=self._count(
                select(func.count()).select_from(Ticket).where(
                    Ticket.contract_id == contract_id
                )
            ),
            trips_count=self._count(
                select(func.count()).select_from(Trip).where(
                    Trip.ticket_id.in_(ticket_ids)
                )
            ),
            assignments_count=self._count(
                select(func.count()).select_from(TicketAssignment).where(
                    TicketAssignment.ticket_id.in_(ticket_ids)
                )
            ),
            appeals_count=self._count(
                select(func.count()).select_from(Appeal).where(
                    Appeal.ticket_id.in_(ticket_ids)
                )
            ),
            usage_log_count=self._count(
                select(func.count()).select_from(TripUsageRecord).where(
                    TripUsageRecord.contract_id == contract_id
                )
            ),
            polygons_count=self._count(
                select(func.count()).select_from(ContractPolygon).where(
                    ContractPolygon.contract_id == contract_id
                )
            ),
        )
