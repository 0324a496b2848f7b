"""Read-only query selectors."""

from contract_kernel.selectors.base import BaseSelector
from contract_kernel.selectors.contract_selector import ContractSelector

__all__ = ["BaseSelector", "ContractSelector"]
