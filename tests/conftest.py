"""
Pytest fixtures for the contract engine test suite.

Provides:
- A fresh database per test (SQLite file under tmp_path by default)
- Deterministic clock and principals for every role
- Builders for contracts and scheduler rows (areas, tickets, trips, ...)
- Captured structured log records

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  the per-test SQLite file.  Tables are dropped and recreated per test.
"""

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest

from contract_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from contract_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from contract_kernel.domain.clock import DeterministicClock
from contract_kernel.domain.dtos import CreateContractInput
from contract_kernel.domain.principal import Principal, UserRole
from contract_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from contract_kernel.models.scheduling import (
    Appeal,
    CleaningArea,
    Ticket,
    TicketAssignment,
    Trip,
)
from contract_services.contract_operations import ContractOperations

# Fixed "now" used by most tests: mid-way through CONTRACT_WINDOW.
NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
WINDOW_START = datetime(2024, 1, 1, tzinfo=timezone.utc)
WINDOW_END = datetime(2024, 12, 31, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture contract_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, operations):
            operations.record_trip_usage(...)
            logs = captured_logs()
            assert any(r["message"] == "trip_usage_recorded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("contract_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url(tmp_path) -> str:
    """DATABASE_URL if set, otherwise a SQLite file private to the test."""
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'contracts.db'}"


@pytest.fixture
def db_engine(tmp_path):
    """Engine with a freshly created schema; disposed after the test."""
    url = get_database_url(tmp_path)
    eng = init_engine_from_url(url, pool_size=10, max_overflow=10, pool_timeout=10)
    if not url.startswith("sqlite"):
        drop_tables()
    create_tables()
    register_immutability_listeners()
    yield eng
    unregister_immutability_listeners()
    if not url.startswith("sqlite"):
        drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """
    Session for kernel-level tests.

    Services only flush; the test decides whether to commit.  Anything
    left uncommitted is rolled back at teardown.
    """
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def clock():
    return DeterministicClock(NOW)


@pytest.fixture
def operations(session_factory, clock):
    return ContractOperations(session_factory, clock=clock)


# =============================================================================
# Principals
# =============================================================================


def make_principal(role: str, organization_id: UUID | None = None) -> Principal:
    return Principal(
        user_id=uuid4(),
        organization_id=organization_id or uuid4(),
        role=role,
    )


@pytest.fixture
def kgu():
    """Contract authority."""
    return make_principal(UserRole.KGU_ZKH_ADMIN.value)


@pytest.fixture
def other_kgu():
    """Contract authority of another organization."""
    return make_principal(UserRole.KGU_ZKH_ADMIN.value)


@pytest.fixture
def akimat():
    return make_principal(UserRole.AKIMAT_ADMIN.value)


@pytest.fixture
def contractor():
    return make_principal(UserRole.CONTRACTOR_ADMIN.value)


@pytest.fixture
def landfill_operator():
    return make_principal(UserRole.TOO_ADMIN.value)


@pytest.fixture
def driver():
    return make_principal(UserRole.DRIVER.value)


# =============================================================================
# Data builders
# =============================================================================


def contractor_input(contractor_id: UUID, **overrides) -> CreateContractInput:
    values = dict(
        contract_type="CONTRACTOR_SERVICE",
        name="Road clearing 2024",
        contractor_id=contractor_id,
        work_type="road",
        price_per_m3=Decimal("100"),
        budget_total=Decimal("1000"),
        minimal_volume_m3=Decimal("500"),
        start_at=WINDOW_START,
        end_at=WINDOW_END,
    )
    values.update(overrides)
    return CreateContractInput(**values)


def landfill_input(landfill_id: UUID, **overrides) -> CreateContractInput:
    values = dict(
        contract_type="LANDFILL_SERVICE",
        name="North landfill intake",
        landfill_id=landfill_id,
        price_per_m3=Decimal("40"),
        budget_total=Decimal("20000"),
        minimal_volume_m3=Decimal("300"),
        start_at=WINDOW_START,
        end_at=WINDOW_END,
    )
    values.update(overrides)
    return CreateContractInput(**values)


@pytest.fixture
def create_contract(operations, kgu, contractor, clock):
    """
    Create a contractor-service contract through the operations layer.

    Each call advances the clock by one second so creation order is
    observable in listings.
    """

    def _create(principal=None, request=None, **overrides):
        clock.advance(1)
        return operations.create_contract(
            principal or kgu,
            request or contractor_input(contractor.organization_id, **overrides),
        )

    return _create


@pytest.fixture
def scheduler(session_factory):
    """
    Writes scheduler-owned rows (areas, tickets, assignments, trips, appeals).

    These tables belong to the external scheduler; tests populate them
    directly, each call in its own committed transaction.
    """

    class _Scheduler:
        def _add(self, obj):
            with session_factory() as s:
                s.add(obj)
                s.commit()
                return obj.id

        def area(self, name="Central district") -> UUID:
            return self._add(CleaningArea(name=name))

        def ticket(
            self,
            contract_id: UUID | None = None,
            area_id: UUID | None = None,
            planned_start_at: datetime = NOW,
        ) -> UUID:
            return self._add(
                Ticket(
                    cleaning_area_id=area_id or self.area(),
                    contract_id=contract_id,
                    planned_start_at=planned_start_at,
                    planned_end_at=planned_start_at + timedelta(hours=8),
                    status="PLANNED",
                )
            )

        def assignment(self, ticket_id: UUID, is_active: bool = True) -> UUID:
            return self._add(
                TicketAssignment(ticket_id=ticket_id, driver_id=uuid4(), is_active=is_active)
            )

        def trip(
            self,
            ticket_id: UUID,
            entry_at: datetime = NOW,
            volume: Decimal | None = Decimal("10"),
        ) -> UUID:
            return self._add(
                Trip(
                    ticket_id=ticket_id,
                    driver_id=uuid4(),
                    vehicle_id=uuid4(),
                    vehicle_plate_number="123ABC02",
                    detected_plate_number="123ABC02",
                    entry_at=entry_at,
                    exit_at=entry_at + timedelta(minutes=20),
                    detected_volume_entry=volume,
                )
            )

        def appeal(self, ticket_id: UUID) -> UUID:
            return self._add(Appeal(ticket_id=ticket_id, created_at=NOW))

    return _Scheduler()
