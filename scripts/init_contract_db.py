#!/usr/bin/env python3
"""
Create the contract engine schema on the configured database.

Reads settings through contract_config.get_active_config(), so
DATABASE_URL and CONTRACT_CONFIG_FILE apply as they do for the service.
Scheduler-owned tables (tickets, trips, ...) are created as well, which
is what local runs and tests need; in production they already exist and
create_all leaves them untouched.

Usage:
    python3 scripts/init_contract_db.py
    python3 scripts/init_contract_db.py --drop
    DATABASE_URL=sqlite:///contracts.db python3 scripts/init_contract_db.py
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create the contract engine schema")
    p.add_argument(
        "--config",
        default=None,
        help="YAML file overriding contract_config/defaults.yaml",
    )
    p.add_argument(
        "--drop",
        action="store_true",
        help="Drop all tables before creating them (destroys data)",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from contract_config import get_active_config
    from contract_kernel.db.engine import (
        create_tables,
        drop_tables,
        init_engine_from_url,
        reset_engine,
    )
    from contract_kernel.logging_config import configure_logging

    config = get_active_config(config_path=args.config)
    configure_logging(level=config.logging.level)

    db = config.database
    init_engine_from_url(db.url, echo=db.echo, pool_size=1, max_overflow=0)
    try:
        if args.drop:
            drop_tables()
            print(f"Dropped tables on {db.masked_url}")
        create_tables()
        print(f"Created tables on {db.masked_url}")
    finally:
        reset_engine()
    return 0


if __name__ == "__main__":
    sys.exit(main())
