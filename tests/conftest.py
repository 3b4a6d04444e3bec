"""
Pytest fixtures for the gym kernel test suite.

Provides:
- An in-memory SQLite engine shared by the whole session (StaticPool)
- A per-test session joined to an outer transaction that is rolled back
- A deterministic clock and services wired to it
- Factories for clients, plans, contracts, payments and progress logs
- Structured log capture

Environment Variables:
- GYM_TEST_DATABASE_URL: run the suite against another database (e.g. a
  PostgreSQL URL).  Defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from gym_kernel.db.engine import build_engine, create_tables, drop_tables
from gym_kernel.domain.clock import DeterministicClock
from gym_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from gym_kernel.services import (
    AssociationService,
    ClientService,
    ContractService,
    PaymentService,
    PlanService,
    ProgressLogService,
)

TEST_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
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
    Capture gym_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, contract_service):
            contract_service.create(...)
            logs = captured_logs()
            assert any(r["message"] == "contract_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("gym_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Database
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("GYM_TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def db_engine():
    engine = build_engine(get_database_url())
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction with
    ``join_transaction_mode="create_savepoint"``: ``session.commit()``
    inside a test releases a savepoint, and the outer transaction is rolled
    back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Clock and services
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def client_service(session, deterministic_clock) -> ClientService:
    return ClientService(session, deterministic_clock)


@pytest.fixture
def plan_service(session, deterministic_clock) -> PlanService:
    return PlanService(session, deterministic_clock)


@pytest.fixture
def contract_service(session, deterministic_clock) -> ContractService:
    return ContractService(session, deterministic_clock)


@pytest.fixture
def payment_service(session, deterministic_clock) -> PaymentService:
    return PaymentService(session, deterministic_clock)


@pytest.fixture
def association_service(session, deterministic_clock) -> AssociationService:
    return AssociationService(session, deterministic_clock)


@pytest.fixture
def progress_log_service(session, deterministic_clock) -> ProgressLogService:
    return ProgressLogService(session, deterministic_clock)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_client(client_service):
    counter = iter(range(1, 10_000))

    def _make(**overrides):
        n = next(counter)
        fields = {
            "nombre": "Ana",
            "apellido": f"Lopez{n}",
            "email": f"cliente{n}@gym.test",
            "telefono": "555-123-4567",
        }
        fields.update(overrides)
        return client_service.create(**fields)

    return _make


@pytest.fixture
def make_plan(plan_service):
    counter = iter(range(1, 10_000))

    def _make(**overrides):
        n = next(counter)
        fields = {
            "nombre": f"Plan Fuerza {n}",
            "duracion_semanas": 12,
            "metas_fisicas": "Ganar fuerza y resistencia",
            "nivel": "principiante",
        }
        fields.update(overrides)
        return plan_service.create(**fields)

    return _make


@pytest.fixture
def make_contract(contract_service):
    def _make(cliente_id, plan_id, **overrides):
        fields = {
            "cliente_id": cliente_id,
            "plan_id": plan_id,
            "condiciones": "Acceso completo al gimnasio y clases grupales",
            "duracion_meses": 6,
            "precio": Decimal("100.00"),
        }
        fields.update(overrides)
        return contract_service.create(**fields)

    return _make


@pytest.fixture
def make_payment(payment_service):
    def _make(**overrides):
        fields = {"monto": Decimal("50.00"), "metodo_pago": "efectivo"}
        fields.update(overrides)
        return payment_service.create(**fields)

    return _make


@pytest.fixture
def enrolled(make_client, make_plan, make_contract, association_service):
    """Create a client associated with a plan and holding a vigente contract for it."""

    def _make(plan=None, client=None, **contract_overrides):
        plan = plan or make_plan()
        client = client or make_client()
        association_service.associate(plan.id, client.id)
        contract = make_contract(client.id, plan.id, **contract_overrides)
        return plan, client, contract

    return _make
