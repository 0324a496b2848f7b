"""
Dialect-aware INSERT construction for upserts.

The usage rollup and the initial usage row rely on ``INSERT ... ON CONFLICT``.
PostgreSQL and SQLite both support it, but through separate SQLAlchemy
constructs; this module picks the right one for the session's bind.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_insert(session: Session, model: Any):
    """
    Return an INSERT for ``model`` that supports ``on_conflict_do_*``.

    Raises:
        NotImplementedError: If the bound dialect has no ON CONFLICT support.
    """
    dialect_name = session.get_bind().dialect.name
    try:
        factory = _INSERT_BY_DIALECT[dialect_name]
    except KeyError:
        raise NotImplementedError(
            f"Upsert is not supported on dialect {dialect_name!r}"
        ) from None
    return factory(model)
