"""
Runtime configuration schema.

Frozen dataclasses produced by ``contract_config.loader`` from YAML and
environment overrides.  Nothing here reads files or the environment.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings handed to contract_kernel.db.engine."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_pre_ping: bool = True
    pool_timeout: int = 30
    pool_recycle: int = 1800
    statement_timeout_ms: int | None = None

    @property
    def masked_url(self) -> str:
        """URL with any password replaced, safe to log."""
        scheme, sep, rest = self.url.partition("://")
        if not sep or "@" not in rest:
            return self.url
        credentials, _, host = rest.rpartition("@")
        user, colon, _ = credentials.partition(":")
        if not colon:
            return self.url
        return f"{scheme}://{user}:***@{host}"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class ServiceConfig:
    """Settings of the operations layer."""

    create_tables: bool = False
    register_immutability_listeners: bool = True


@dataclass(frozen=True)
class ContractEngineConfig:
    """Root configuration object returned by get_active_config()."""

    database: DatabaseConfig
    logging: LoggingConfig
    service: ServiceConfig
    source: str = "defaults"
