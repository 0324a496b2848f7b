"""
Module: contract_kernel.models.usage
Responsibility: ORM persistence for contract usage rollups and the append-only
    per-trip usage ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One ContractUsage row per contract (unique contract_id).  Totals only
      ever grow: the ledger service updates them with a single additive
      upsert, never with a value computed in application code.
    - One TripUsageRecord per physical trip (uq_trip_usage_trip_id).  This
      unique key is the at-most-once boundary for usage recording.
    - recorded_volume_m3 strictly positive (ck_trip_usage_volume_positive).
    - TripUsageRecord rows are never updated or deleted through the ORM
      (db/immutability.py); they disappear only with their contract.

Failure modes:
    - IntegrityError on duplicate trip_id -> translated to
      TripAlreadyRecordedError by the usage ledger service.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from contract_kernel.db.base import Base, UUIDString


class ContractUsage(Base):
    """Running volume and cost totals accrued against one contract."""

    __tablename__ = "contract_usage"

    __table_args__ = (
        UniqueConstraint("contract_id", name="uq_contract_usage_contract_id"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
    )

    total_volume_m3: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    total_cost: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    updated_at: Mapped[datetime] = mapped_column(nullable=False)


class TripUsageRecord(Base):
    """
    Append-only ledger entry: the volume one trip contributed to a contract.

    recorded_cost is volume x the contract's unit price at recording time
    and is never re-evaluated.
    """

    __tablename__ = "trip_usage_log"

    __table_args__ = (
        UniqueConstraint("trip_id", name="uq_trip_usage_trip_id"),
        CheckConstraint(
            "recorded_volume_m3 > 0", name="ck_trip_usage_volume_positive"
        ),
        Index("idx_trip_usage_log_contract_id", "contract_id"),
    )

    trip_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    ticket_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
    )

    recorded_volume_m3: Mapped[Decimal] = mapped_column(nullable=False)

    recorded_cost: Mapped[Decimal] = mapped_column(nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
