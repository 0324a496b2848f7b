"""
Module: contract_kernel.models.contract
Responsibility: ORM persistence for snow-removal service contracts and the
    landfill-contract region associations.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - end_at strictly after start_at (ck_contract_window).
    - price_per_m3, budget_total, minimal_volume_m3 strictly positive.
    - Contract terms are immutable after creation (ORM listener in
      db/immutability.py); only the one-to-one usage row changes.
    - A region id is associated with a contract at most once
      (uq_contract_polygon).

Failure modes:
    - IntegrityError on CHECK violations if validation upstream is bypassed.
    - ImmutabilityViolationError on any UPDATE of a Contract row.

Non-goals:
    - No stored lifecycle status.  Status, payable amount, budget-exceeded,
      volume progress and result are derived at read time by
      contract_kernel.domain.status.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from contract_kernel.db.base import Base, UUIDString


class ContractType(str, Enum):
    """Contract kind; decides which counterparty reference is required."""

    CONTRACTOR_SERVICE = "CONTRACTOR_SERVICE"
    LANDFILL_SERVICE = "LANDFILL_SERVICE"


class WorkType(str, Enum):
    """Work category of a contractor-service contract."""

    ROAD = "road"
    SIDEWALK = "sidewalk"
    YARD = "yard"


class Contract(Base):
    """
    Time-bounded agreement authorizing snow hauling up to a volume/budget.

    Contract:
        Exactly one counterparty reference is semantically required:
        contractor_id for CONTRACTOR_SERVICE, landfill_id for
        LANDFILL_SERVICE (which may also name a contractor).  The validity
        window is [start_at, end_at).

    Guarantees:
        - Positive financial terms and a forward window (CHECK constraints).
        - created_by_org_id identifies the issuing authority organization,
          used for ticket-binding ownership checks.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_contract_window"),
        CheckConstraint("price_per_m3 > 0", name="ck_contract_price_positive"),
        CheckConstraint("budget_total > 0", name="ck_contract_budget_positive"),
        CheckConstraint(
            "minimal_volume_m3 > 0", name="ck_contract_minimal_volume_positive"
        ),
        Index("idx_contracts_contractor_id", "contractor_id"),
        Index("idx_contracts_landfill_id", "landfill_id"),
        Index("idx_contracts_created_by_org", "created_by_org"),
        Index("idx_contracts_contract_type", "contract_type"),
        Index("idx_contracts_work_type", "work_type"),
        Index("idx_contracts_is_active", "is_active"),
        Index("idx_contracts_start_at", "start_at"),
        Index("idx_contracts_end_at", "end_at"),
    )

    contract_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        doc="ContractType value",
    )

    contractor_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
        doc="Contractor organization (required for CONTRACTOR_SERVICE)",
    )

    landfill_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
        doc="Landfill operator organization (required for LANDFILL_SERVICE)",
    )

    created_by_org_id: Mapped[UUID] = mapped_column(
        "created_by_org",
        UUIDString(),
        nullable=False,
        doc="Issuing authority organization",
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    work_type: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        doc="WorkType value; may be empty for LANDFILL_SERVICE",
    )

    price_per_m3: Mapped[Decimal] = mapped_column(nullable=False)

    budget_total: Mapped[Decimal] = mapped_column(nullable=False)

    minimal_volume_m3: Mapped[Decimal] = mapped_column(nullable=False)

    start_at: Mapped[datetime] = mapped_column(nullable=False)

    end_at: Mapped[datetime] = mapped_column(nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Contract {self.id} {self.contract_type} {self.name!r}>"


class ContractPolygon(Base):
    """Association of a landfill-service contract with a geographic region."""

    __tablename__ = "contract_polygons"

    __table_args__ = (
        UniqueConstraint("contract_id", "polygon_id", name="uq_contract_polygon"),
        Index("idx_contract_polygons_contract_id", "contract_id"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
    )

    polygon_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
