"""
contract_services -- access policy and operation entry points.

``build_contract_operations(config)`` is the wiring point: it configures
logging, initializes the engine from the database settings, registers the
immutability listeners and returns a ready ContractOperations.
"""

from __future__ import annotations

from contract_config.schema import ContractEngineConfig
from contract_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from contract_kernel.db.immutability import register_immutability_listeners
from contract_kernel.domain.clock import Clock, SystemClock
from contract_kernel.logging_config import configure_logging
from contract_services.contract_operations import ContractOperations


def build_contract_operations(
    config: ContractEngineConfig,
    clock: Clock | None = None,
) -> ContractOperations:
    """Wire a ContractOperations from a loaded configuration."""
    configure_logging(level=config.logging.level)

    db = config.database
    init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=db.pool_pre_ping,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    if config.service.register_immutability_listeners:
        register_immutability_listeners()
    if config.service.create_tables:
        create_tables()

    return ContractOperations(
        get_session_factory(),
        clock=clock or SystemClock(),
        statement_timeout_ms=db.statement_timeout_ms,
    )


__all__ = ["ContractOperations", "build_contract_operations"]
