"""
contract_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``contract_kernel`` and below
    ``contract_services``.  The kernel MUST NEVER import from
    ``contract_config``; it receives plain values (URL, pool sizes,
    timeouts) from the services layer.

Failure modes:
    - ``FileNotFoundError`` -- the requested config file does not exist.
    - ``ValueError`` / ``KeyError`` -- malformed or unknown settings.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from contract_config.loader import (
    DEFAULTS_PATH,
    environment_layer,
    load_yaml_file,
    merge_layer,
    parse_config,
)
from contract_config.schema import (
    ContractEngineConfig,
    DatabaseConfig,
    LoggingConfig,
    ServiceConfig,
)
from contract_kernel.logging_config import get_logger

_logger = get_logger("config")

CONFIG_FILE_ENV = "CONTRACT_CONFIG_FILE"


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ContractEngineConfig:
    """The ONLY public configuration entrypoint.

    Layers, later wins: ``defaults.yaml``, then ``config_path`` (or the
    file named by ``CONTRACT_CONFIG_FILE``), then environment variables.

    Args:
        config_path: Optional YAML file overriding the defaults.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        Frozen ContractEngineConfig.
    """
    env = os.environ if environ is None else environ

    data = load_yaml_file(DEFAULTS_PATH)
    source = "defaults"

    path = config_path if config_path is not None else env.get(CONFIG_FILE_ENV)
    if path:
        data = merge_layer(data, load_yaml_file(Path(path)))
        source = str(path)

    data = merge_layer(data, environment_layer(env))
    config = parse_config(data, source=source)

    _logger.info(
        "contract_config_loaded",
        extra={
            "config_source": config.source,
            "database_url": config.database.masked_url,
            "statement_timeout_ms": config.database.statement_timeout_ms,
            "log_level": config.logging.level,
        },
    )
    return config


__all__ = [
    "get_active_config",
    "ContractEngineConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "ServiceConfig",
]
