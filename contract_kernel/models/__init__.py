"""SQLAlchemy ORM models for the contract kernel."""

from contract_kernel.models.contract import (
    Contract,
    ContractPolygon,
    ContractType,
    WorkType,
)
from contract_kernel.models.scheduling import (
    Appeal,
    CleaningArea,
    Ticket,
    TicketAssignment,
    Trip,
)
from contract_kernel.models.usage import ContractUsage, TripUsageRecord


def import_all_models() -> None:
    """Ensure every model module is imported so Base.metadata knows its tables."""
    import contract_kernel.models.contract  # noqa: F401
    import contract_kernel.models.scheduling  # noqa: F401
    import contract_kernel.models.usage  # noqa: F401


__all__ = [
    "Contract",
    "ContractPolygon",
    "ContractType",
    "WorkType",
    "ContractUsage",
    "TripUsageRecord",
    "CleaningArea",
    "Ticket",
    "TicketAssignment",
    "Trip",
    "Appeal",
    "import_all_models",
]
