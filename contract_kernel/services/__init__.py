"""Flush-only write services of the contract kernel."""

from contract_kernel.services.base import BaseService
from contract_kernel.services.contract_service import ContractService
from contract_kernel.services.ticket_binding import TicketBindingService
from contract_kernel.services.usage_ledger import UsageLedgerService

__all__ = [
    "BaseService",
    "ContractService",
    "TicketBindingService",
    "UsageLedgerService",
]
