"""
ORM-level guarantees: append-only workflow events, owned child rows and
optimistic version checks on requests.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from mdm_kernel.db.engine import build_engine, create_tables, drop_tables
from mdm_kernel.domain.ids import SequentialIdGenerator
from mdm_kernel.exceptions import ImmutabilityViolationError
from mdm_kernel.models.request import CompanyRequest
from mdm_kernel.models.workflow_event import WorkflowEvent
from mdm_services.orchestrator import MasterDataOrchestrator
from tests.factories import DATA_ENTRY, company_fields


class TestWorkflowEventImmutability:
    def test_update_rejected(self, create_request, session):
        request_id = create_request()
        event = session.scalars(
            select(WorkflowEvent).where(WorkflowEvent.request_id == request_id)
        ).one()

        event.note = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_rejected(self, create_request, session):
        request_id = create_request()
        event = session.scalars(
            select(WorkflowEvent).where(WorkflowEvent.request_id == request_id)
        ).one()

        session.delete(event)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_sequence_unique_per_request(self, create_request, session, deterministic_clock):
        request_id = create_request()
        session.add(
            WorkflowEvent(
                request_id=request_id,
                sequence=1,
                action="UPDATE",
                performed_by="mallory",
                performed_by_role="data_entry",
                payload={},
                performed_at=deterministic_clock.now(),
            )
        )
        with pytest.raises(IntegrityError):
            session.flush()


class TestGoldenCodeUniqueness:
    def test_duplicate_code_rejected(self, create_request, session):
        create_request(row={"golden_record_code": "GR-SAME01"})
        with pytest.raises(IntegrityError):
            create_request(row={"golden_record_code": "GR-SAME01"})


@pytest.fixture
def file_engine(tmp_path):
    """A file-backed database so two sessions hold separate connections."""
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'mdm.db'}")
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


class TestOptimisticLocking:
    def test_stale_write_detected(self, file_engine, deterministic_clock):
        factory = sessionmaker(bind=file_engine, expire_on_commit=False)

        with factory() as setup:
            request_id = MasterDataOrchestrator(
                setup, clock=deterministic_clock, id_generator=SequentialIdGenerator()
            ).workflow.create(company_fields(), actor=DATA_ENTRY).id
            setup.commit()

        first, second = factory(), factory()
        try:
            mine = first.get(CompanyRequest, request_id)
            theirs = second.get(CompanyRequest, request_id)
            assert mine.version_id == theirs.version_id == 1

            theirs.city = "Jeddah"
            second.commit()
            assert theirs.version_id == 2

            mine.city = "Dammam"
            with pytest.raises(StaleDataError):
                first.flush()
        finally:
            first.rollback()
            first.close()
            second.close()
