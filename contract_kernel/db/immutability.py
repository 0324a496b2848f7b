"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Two kinds of rows must not change once written:

  - Contract terms.  A contract is immutable after creation; only its usage
    rollup moves.  Changing a price after trips were costed would make the
    ledger disagree with the contract.
  - Trip usage ledger entries.  The ledger is the at-most-once record of
    what each trip contributed.  Editing or deleting an entry would let the
    rollup and the ledger drift apart.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
The listeners below intercept these events and raise
ImmutabilityViolationError, aborting the flush:

    session.flush()
         |
         v
    [before_update / before_delete] --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Database-level cascades (deleting a contract removes its ledger rows) do not
pass through the ORM and are not affected.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | When Immutable          | Operations blocked
------------------|-------------------------|-------------------
Contract          | ALWAYS (from creation)  | UPDATE
TripUsageRecord   | ALWAYS (from creation)  | UPDATE, DELETE
"""

from sqlalchemy import event

from contract_kernel.exceptions import ImmutabilityViolationError
from contract_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_contract_immutability(mapper, connection, target):
    """Prevent any updates to stored contract terms."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Contract",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Contract",
        entity_id=str(target.id),
        reason="Contract terms are immutable after creation",
    )


def _check_trip_usage_immutability(mapper, connection, target):
    """Prevent any updates to trip usage ledger entries."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "TripUsageRecord",
            "entity_id": str(target.trip_id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="TripUsageRecord",
        entity_id=str(target.trip_id),
        reason="Trip usage entries are append-only",
    )


def _check_trip_usage_delete(mapper, connection, target):
    """Prevent deletion of trip usage ledger entries."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "TripUsageRecord",
            "entity_id": str(target.trip_id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="TripUsageRecord",
        entity_id=str(target.trip_id),
        reason="Trip usage entries cannot be deleted",
    )


_LISTENERS = (
    ("Contract", "before_update", _check_contract_immutability),
    ("TripUsageRecord", "before_update", _check_trip_usage_immutability),
    ("TripUsageRecord", "before_delete", _check_trip_usage_delete),
)


def _models():
    from contract_kernel.models.contract import Contract
    from contract_kernel.models.usage import TripUsageRecord

    return {"Contract": Contract, "TripUsageRecord": TripUsageRecord}


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Registering twice is harmless.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
