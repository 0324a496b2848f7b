"""
UsageLedgerService -- at-most-once trip usage recording.

Responsibility:
    Appends one ledger entry per physical trip and folds the trip's volume
    and cost into the contract's usage rollup, in the caller's transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Called by ContractOperations
    inside a single unit of work; flush-only.

Invariants enforced:
    - At most one ledger entry per trip id (uq_trip_usage_trip_id).  A
      duplicate is reported as TripAlreadyRecordedError, never as a second
      addition to the rollup.
    - The rollup is updated with one additive upsert
      (total = total + excluded.total), so concurrent recordings against
      the same contract never lose an update.
    - cost = volume x the contract's price per m3, computed once and stored
      on the ledger entry.
    - Volume must be strictly positive.

Failure modes:
    - InvalidTripVolumeError for volume <= 0 or a non-numeric volume.
    - TripAlreadyRecordedError when the trip was already recorded.  The
      session is left in a failed state; the caller must roll back.
    - Any other IntegrityError (e.g. the contract was deleted concurrently)
      propagates unchanged.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from contract_kernel.db.dialect import upsert_insert
from contract_kernel.domain.clock import Clock, SystemClock
from contract_kernel.domain.dtos import ContractInfo, TripUsageInfo
from contract_kernel.domain.validation import to_decimal
from contract_kernel.exceptions import InvalidTripVolumeError, TripAlreadyRecordedError
from contract_kernel.logging_config import get_logger
from contract_kernel.models.usage import ContractUsage, TripUsageRecord
from contract_kernel.services.base import BaseService

logger = get_logger("services.usage_ledger")

TRIP_UNIQUE_CONSTRAINT = "uq_trip_usage_trip_id"


def _is_trip_conflict(exc: IntegrityError) -> bool:
    """True if the violated constraint is the one-entry-per-trip key."""
    diag = getattr(exc.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint is not None:
        return constraint == TRIP_UNIQUE_CONSTRAINT
    # SQLite names the columns instead of the constraint
    message = str(exc.orig)
    return TRIP_UNIQUE_CONSTRAINT in message or "trip_usage_log.trip_id" in message


class UsageLedgerService(BaseService[TripUsageRecord]):
    """
    Writes the trip usage ledger and the contract usage rollup.

    Contract:
        ``record_trip_usage`` either adds exactly one ledger entry and
        exactly one increment of the rollup, or raises.  Both writes are
        flushed in the caller's transaction; committing is the caller's job.
    """

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def ensure_usage_row(self, contract_id: UUID) -> None:
        """Insert a zero usage row for a contract unless one exists."""
        stmt = (
            upsert_insert(self.session, ContractUsage)
            .values(
                contract_id=contract_id,
                total_volume_m3=Decimal("0"),
                total_cost=Decimal("0"),
                updated_at=self._clock.now(),
            )
            .on_conflict_do_nothing(index_elements=["contract_id"])
        )
        self.session.execute(stmt)

    def _accumulate(self, contract_id: UUID, volume: Decimal, cost: Decimal) -> None:
        insert = upsert_insert(self.session, ContractUsage).values(
            contract_id=contract_id,
            total_volume_m3=volume,
            total_cost=cost,
            updated_at=self._clock.now(),
        )
        stmt = insert.on_conflict_do_update(
            index_elements=["contract_id"],
            set_={
                "total_volume_m3": ContractUsage.total_volume_m3
                + insert.excluded.total_volume_m3,
                "total_cost": ContractUsage.total_cost + insert.excluded.total_cost,
                "updated_at": insert.excluded.updated_at,
            },
        )
        self.session.execute(stmt)

    def _already_recorded(self, trip_id: UUID) -> bool:
        return (
            self.session.execute(
                select(TripUsageRecord.id).where(TripUsageRecord.trip_id == trip_id)
            ).first()
            is not None
        )

    def record_trip_usage(
        self,
        trip_id: UUID,
        ticket_id: UUID,
        contract: ContractInfo,
        volume_m3: Any,
    ) -> TripUsageInfo:
        """
        Record the volume one trip contributed to a contract.

        Args:
            trip_id: Identity of the physical trip (idempotency key).
            ticket_id: Ticket the trip belongs to.
            contract: Contract the ticket is bound to.
            volume_m3: Volume hauled, in cubic metres; must be > 0.

        Returns:
            TripUsageInfo of the new ledger entry.

        Raises:
            InvalidTripVolumeError: If the volume is not a positive number.
            TripAlreadyRecordedError: If the trip was already recorded.
        """
        volume = to_decimal(volume_m3)
        if volume is None or volume <= 0:
            raise InvalidTripVolumeError(str(trip_id), volume_m3)

        if self._already_recorded(trip_id):
            logger.info(
                "trip_usage_duplicate",
                extra={"trip_id": str(trip_id), "contract_id": str(contract.id)},
            )
            raise TripAlreadyRecordedError(str(trip_id))

        cost = volume * contract.price_per_m3
        now = self._clock.now()

        record = TripUsageRecord(
            trip_id=trip_id,
            ticket_id=ticket_id,
            contract_id=contract.id,
            recorded_volume_m3=volume,
            recorded_cost=cost,
            created_at=now,
        )
        self.session.add(record)
        try:
            self.session.flush()
        except IntegrityError as exc:
            if not _is_trip_conflict(exc):
                raise
            # Concurrent recording of the same trip won the unique key
            logger.info(
                "trip_usage_duplicate",
                extra={"trip_id": str(trip_id), "contract_id": str(contract.id)},
            )
            raise TripAlreadyRecordedError(str(trip_id)) from None

        self._accumulate(contract.id, volume, cost)

        logger.info(
            "trip_usage_recorded",
            extra={
                "trip_id": str(trip_id),
                "ticket_id": str(ticket_id),
                "contract_id": str(contract.id),
                "volume_m3": str(volume),
                "cost": str(cost),
            },
        )

        return TripUsageInfo(
            trip_id=trip_id,
            ticket_id=ticket_id,
            contract_id=contract.id,
            recorded_volume_m3=volume,
            recorded_cost=cost,
            created_at=now,
        )
