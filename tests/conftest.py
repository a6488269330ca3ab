"""
Pytest fixtures for the master data kernel test suite.

Provides:
- A fresh in-memory SQLite database per test (StaticPool, foreign keys on)
- Deterministic clock, sequential request ids and golden record codes
- Services and selectors wired through MasterDataOrchestrator
- Factories for requests and duplicate groups
- Structured log capture
"""

import json
import logging
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

from mdm_kernel.db.engine import build_engine, create_tables
from mdm_kernel.domain.clock import DeterministicClock
from mdm_kernel.domain.dtos import ContactInput
from mdm_kernel.domain.ids import SequentialIdGenerator
from mdm_kernel.domain.policy import DEFAULT_POLICY
from mdm_kernel.domain.values import Actor, RequestStatus
from mdm_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from mdm_kernel.models.request import CompanyRequest
from mdm_services.commands import MasterDataCommands
from mdm_services.orchestrator import MasterDataOrchestrator
from tests.factories import DATA_ENTRY, SequentialCodeGenerator, company_fields

IN_MEMORY_URL = "sqlite+pysqlite:///:memory:"


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
    Capture mdm_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow_service):
            workflow_service.create({...})
            logs = captured_logs()
            assert any(r["message"] == "request_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("mdm_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    engine = build_engine(IN_MEMORY_URL)
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Determinism
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def id_generator():
    return SequentialIdGenerator()


@pytest.fixture
def code_generator():
    return SequentialCodeGenerator()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def orchestrator(session, deterministic_clock, id_generator, code_generator):
    return MasterDataOrchestrator(
        session,
        clock=deterministic_clock,
        policy=DEFAULT_POLICY,
        id_generator=id_generator,
        code_generator=code_generator,
    )


@pytest.fixture
def workflow_service(orchestrator):
    return orchestrator.workflow


@pytest.fixture
def golden_service(orchestrator):
    return orchestrator.golden_records


@pytest.fixture
def duplicate_service(orchestrator):
    return orchestrator.duplicates


@pytest.fixture
def admin_service(orchestrator):
    return orchestrator.admin


@pytest.fixture
def request_selector(orchestrator):
    return orchestrator.requests


@pytest.fixture
def duplicate_selector(orchestrator):
    return orchestrator.duplicate_groups


@pytest.fixture
def history_selector(orchestrator):
    return orchestrator.history


@pytest.fixture
def commands(session_factory, deterministic_clock, id_generator, code_generator):
    return MasterDataCommands(
        session_factory,
        clock=deterministic_clock,
        policy=DEFAULT_POLICY,
        id_generator=id_generator,
        code_generator=code_generator,
    )


# =============================================================================
# Data factories
# =============================================================================


@pytest.fixture
def create_request(workflow_service, session):
    """
    Create a request through the workflow service.

    ``status`` (and any ``CompanyRequest`` attribute passed in ``row``)
    is forced onto the stored row afterwards, for setting up duplicate
    candidates that arrive from outside the review workflow.
    """

    def _create(
        *,
        status: RequestStatus | None = None,
        actor: Actor = DATA_ENTRY,
        contacts=(),
        row: dict | None = None,
        **field_overrides,
    ) -> str:
        info = workflow_service.create(
            company_fields(**field_overrides),
            contacts=tuple(contacts),
            actor=actor,
        )
        if status is not None or row:
            record = session.get(CompanyRequest, info.id)
            if status is not None:
                record.status = status.value
            for name, value in (row or {}).items():
                setattr(record, name, value)
            session.flush()
        return info.id

    return _create


@pytest.fixture
def duplicate_group(create_request):
    """Three Duplicate-status records sharing one tax number; returns their ids."""

    def _group(tax: str = "311111111100003", size: int = 3) -> list[str]:
        names = ["Gulf Foods LLC", "Gulf Foods", "GULF FOODS L.L.C", "Gulf Food Co"]
        emails = ["info@gulffoods.example", "", "sales@gulffoods.example", "bad-email"]
        return [
            create_request(
                status=RequestStatus.DUPLICATE,
                tax=tax,
                first_name=names[i % len(names)],
                email_address=emails[i % len(emails)],
            )
            for i in range(size)
        ]

    return _group


@pytest.fixture
def primary_contact():
    return ContactInput(
        name="Omar Saleh",
        job_title="Finance Manager",
        email="omar@almarai.example",
        mobile="+966555000111",
        preferred_language="AR",
        is_primary=True,
    )
