"""
mdm_services.orchestrator -- Central DI container for kernel services.

Responsibility:
    Creates every kernel service and selector exactly once for one session
    and wires them together.  No service creates other services internally.

Architecture position:
    Services -- the only place where kernel services are constructed and
    composed.

Invariants enforced:
    - Single-instance lifecycle: one AuditLogService per session, so event
      sequences allocated by different services for the same request never
      collide inside a unit of work.
    - All services share the same Session, Clock and WorkflowPolicy.

Failure modes:
    - None at construction; services are plain objects.

Usage:
    orchestrator = MasterDataOrchestrator(session, clock=clock)
    orchestrator.workflow.approve(request_id)
    orchestrator.duplicates.build_master(command)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from mdm_kernel.domain.clock import Clock, SystemClock
from mdm_kernel.domain.ids import GoldenCodeGenerator, IdGenerator, UUIDGenerator
from mdm_kernel.domain.policy import DEFAULT_POLICY, WorkflowPolicy
from mdm_kernel.selectors.duplicate_selector import DuplicateSelector
from mdm_kernel.selectors.history_selector import HistorySelector
from mdm_kernel.selectors.request_selector import RequestSelector
from mdm_kernel.services.admin_service import AdminService
from mdm_kernel.services.audit_log import AuditLogService
from mdm_kernel.services.duplicate_service import DuplicateResolutionService
from mdm_kernel.services.golden_record_service import GoldenRecordService
from mdm_kernel.services.workflow_service import WorkflowService


class MasterDataOrchestrator:
    """Central factory for kernel services.

    Contract:
        Receives a SQLAlchemy Session and optional Clock, WorkflowPolicy and
        id / golden code generators.  Constructs every service in
        dependency order and exposes them as public attributes.

    Non-goals:
        - Does NOT manage transaction boundaries (caller's responsibility).
        - Does NOT own the Session lifecycle (no commit/rollback).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
        id_generator: IdGenerator | None = None,
        code_generator: GoldenCodeGenerator | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self.policy = policy or DEFAULT_POLICY
        self.id_generator = id_generator or UUIDGenerator()

        # Foundational
        self.auditor = AuditLogService(session, self._clock)

        # Golden records (depends on auditor)
        self.golden_records = GoldenRecordService(
            session, self.auditor, self._clock, self.policy, code_generator,
        )

        # Request lifecycle (depends on golden_records for edit suspension)
        self.workflow = WorkflowService(
            session, self.auditor, self.golden_records,
            self._clock, self.policy, self.id_generator,
        )

        # Duplicate resolution (shares the id generator with workflow)
        self.duplicates = DuplicateResolutionService(
            session, self.auditor, self._clock, self.policy, self.id_generator,
        )

        self.admin = AdminService(session, self.auditor, self._clock, self.policy)

        # Read side
        self.requests = RequestSelector(session)
        self.duplicate_groups = DuplicateSelector(session)
        self.history = HistorySelector(session)

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock
