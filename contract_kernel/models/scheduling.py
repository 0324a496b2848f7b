"""
Module: contract_kernel.models.scheduling
Responsibility: ORM mappings of the tables owned by the external ticket
    scheduler: cleaning areas, tickets, ticket assignments, trips and appeals.
Architecture position: Kernel > Models.  May import from db/base.py only.

The kernel does not own these rows.  It maps them so that it can:
    - lock a ticket row and set its contract reference (ticket binding),
    - resolve the contract bound to a ticket (usage recording),
    - count and list a contract's dependents (deletion impact, listings),
    - delete a contract's tickets on forced deletion.

Cascade contract with the scheduler:
    Deleting a ticket deletes its assignments, trips and appeals
    (ON DELETE CASCADE).  The kernel relies on this and does not re-verify it.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from contract_kernel.db.base import Base, UUIDString


class CleaningArea(Base):
    """Area a ticket's cleaning work is scheduled for."""

    __tablename__ = "cleaning_areas"

    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Ticket(Base):
    """Externally scheduled unit of cleaning work, optionally bound to a contract."""

    __tablename__ = "tickets"

    __table_args__ = (Index("idx_tickets_contract_id", "contract_id"),)

    cleaning_area_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("cleaning_areas.id"),
        nullable=False,
    )

    contract_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("contracts.id", ondelete="SET NULL"),
        nullable=True,
    )

    planned_start_at: Mapped[datetime] = mapped_column(nullable=False)

    planned_end_at: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PLANNED")


class TicketAssignment(Base):
    """Assignment of a driver to a ticket."""

    __tablename__ = "ticket_assignments"

    __table_args__ = (Index("idx_ticket_assignments_ticket_id", "ticket_id"),)

    ticket_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
    )

    driver_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Trip(Base):
    """One physical hauling event detected at a landfill."""

    __tablename__ = "trips"

    __table_args__ = (
        Index("idx_trips_ticket_id", "ticket_id"),
        Index("idx_trips_entry_at", "entry_at"),
    )

    ticket_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=True,
    )

    ticket_assignment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("ticket_assignments.id", ondelete="SET NULL"),
        nullable=True,
    )

    driver_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    vehicle_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    camera_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    polygon_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    vehicle_plate_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    detected_plate_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    entry_at: Mapped[datetime] = mapped_column(nullable=False)
    exit_at: Mapped[datetime | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="OK")

    detected_volume_entry: Mapped[Decimal | None] = mapped_column(nullable=True)
    detected_volume_exit: Mapped[Decimal | None] = mapped_column(nullable=True)


class Appeal(Base):
    """Dispute raised against a ticket's execution."""

    __tablename__ = "appeals"

    __table_args__ = (Index("idx_appeals_ticket_id", "ticket_id"),)

    ticket_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)
