"""
Contract Kernel

Accounting and access-control core for municipal snow-removal contracts:
- Time-derived contract status and financial/volume rollups
- At-most-once trip usage ledger with additive rollups
- Race-safe ticket-to-contract binding
- Dependency-aware contract deletion
"""

__version__ = "0.1.0"
