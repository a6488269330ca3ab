"""
mdm_services.commands -- One atomic unit of work per master data command.

Responsibility:
    The public entry point for callers (an HTTP layer, a CLI, a batch job).
    Every command opens a session, builds a ``MasterDataOrchestrator`` on
    it, runs exactly one kernel operation, and commits -- or rolls back
    everything the operation wrote.

Architecture position:
    Services -- above the kernel and configuration.  The only module that
    commits.

Invariants enforced:
    - Atomicity: a command that fails at any step leaves no request rows,
      child rows or workflow events behind.
    - Error translation: kernel errors pass through unchanged; a stale
      optimistic-lock write becomes ``ConcurrentModificationError``; any
      other SQLAlchemy failure becomes ``StorageFailureError``.  Callers
      never see a raw SQLAlchemy exception.
    - Log context: correlation id, command name, actor and the subject id
      are bound for the duration of the command.

Failure modes:
    - Any ``MdmKernelError`` subclass.  Nothing is retried.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, Iterable, Mapping
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from mdm_config import MdmSettings, get_active_settings
from mdm_config.bridges import build_golden_code_generator, build_workflow_policy
from mdm_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from mdm_kernel.domain.clock import Clock
from mdm_kernel.domain.dtos import (
    BuildMasterCommand,
    BuildMasterResult,
    ContactInput,
    DataStats,
    DocumentInput,
    DuplicateGroup,
    DuplicateGroupSummary,
    LineageView,
    MergeResult,
    RequestInfo,
    RequestStats,
    ResubmitMasterCommand,
    WorkflowEventInfo,
)
from mdm_kernel.domain.ids import GoldenCodeGenerator, IdGenerator
from mdm_kernel.domain.policy import WorkflowPolicy
from mdm_kernel.domain.quality import FieldRecommendation
from mdm_kernel.domain.values import Actor
from mdm_kernel.exceptions import (
    ConcurrentModificationError,
    MdmKernelError,
    StorageFailureError,
)
from mdm_kernel.logging_config import LogContext, configure_logging, get_logger
from mdm_services.orchestrator import MasterDataOrchestrator

logger = get_logger("commands")


def _contacts(items: Iterable[ContactInput | Mapping[str, Any]] | None):
    if items is None:
        return None
    return tuple(c if isinstance(c, ContactInput) else ContactInput.from_mapping(c) for c in items)


def _documents(items: Iterable[DocumentInput | Mapping[str, Any]] | None):
    if items is None:
        return None
    return tuple(d if isinstance(d, DocumentInput) else DocumentInput.from_mapping(d) for d in items)


class MasterDataCommands:
    """Transactional facade over the kernel services.

    Contract:
        Each public method is one unit of work on a fresh session from
        ``session_factory``.  Returned DTOs are frozen snapshots taken
        before commit.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
        id_generator: IdGenerator | None = None,
        code_generator: GoldenCodeGenerator | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._policy = policy
        self._id_generator = id_generator
        self._code_generator = code_generator

    @classmethod
    def from_settings(
        cls,
        settings: MdmSettings | None = None,
        *,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> MasterDataCommands:
        """Wire logging, the engine and the workflow policy from settings."""
        settings = settings or get_active_settings()
        configure_logging(level=settings.logging.level)
        engine = init_engine_from_url(settings.database.url, echo=settings.database.echo)
        if create_schema:
            create_tables(engine)
        return cls(
            get_session_factory(),
            clock=clock,
            policy=build_workflow_policy(settings),
            code_generator=build_golden_code_generator(settings),
        )

    @contextmanager
    def _unit_of_work(
        self,
        command: str,
        *,
        write: bool = True,
        actor: Actor | None = None,
        request_id: str | None = None,
        tax_number: str | None = None,
    ) -> Generator[MasterDataOrchestrator, None, None]:
        with LogContext.bind(
            correlation_id=uuid4().hex,
            command=command,
            actor=actor.name if actor else None,
            request_id=request_id,
            tax_number=tax_number,
        ):
            session = self._session_factory()
            try:
                yield MasterDataOrchestrator(
                    session,
                    clock=self._clock,
                    policy=self._policy,
                    id_generator=self._id_generator,
                    code_generator=self._code_generator,
                )
                if write:
                    session.commit()
                    logger.debug("command_committed")
            except MdmKernelError as exc:
                session.rollback()
                logger.warning(
                    "command_rejected",
                    extra={"error_code": exc.code, "error_kind": exc.kind},
                )
                raise
            except StaleDataError as exc:
                session.rollback()
                error = ConcurrentModificationError(command, str(exc))
                logger.warning("command_conflict", extra={"error_code": error.code})
                raise error from exc
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("command_storage_failure", exc_info=True)
                raise StorageFailureError(command, str(exc)) from exc
            except Exception:
                session.rollback()
                logger.exception("command_failed")
                raise
            finally:
                session.close()

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    def create_request(
        self,
        fields: Mapping[str, Any],
        *,
        origin: str | None = None,
        source_golden_id: str | None = None,
        contacts: Iterable[ContactInput | Mapping[str, Any]] = (),
        documents: Iterable[DocumentInput | Mapping[str, Any]] = (),
        request_type: str | None = None,
        original_request_type: str | None = None,
        from_quarantine: bool = False,
        source_system: str | None = None,
        notes: str | None = None,
        actor: Actor | None = None,
    ) -> RequestInfo:
        with self._unit_of_work("create_request", actor=actor, tax_number=fields.get("tax")) as o:
            return o.workflow.create(
                fields,
                origin=origin,
                source_golden_id=source_golden_id,
                contacts=_contacts(contacts),
                documents=_documents(documents),
                request_type=request_type,
                original_request_type=original_request_type,
                from_quarantine=from_quarantine,
                source_system=source_system,
                notes=notes,
                actor=actor,
            )

    def update_request(
        self,
        request_id: str,
        fields: Mapping[str, Any] | None = None,
        *,
        contacts: Iterable[ContactInput | Mapping[str, Any]] | None = None,
        documents: Iterable[DocumentInput | Mapping[str, Any]] | None = None,
        reason: str | None = None,
        actor: Actor | None = None,
    ) -> RequestInfo:
        with self._unit_of_work("update_request", actor=actor, request_id=request_id) as o:
            return o.workflow.update(
                request_id,
                fields,
                contacts=_contacts(contacts),
                documents=_documents(documents),
                reason=reason,
                actor=actor,
            )

    def delete_request(self, request_id: str) -> str:
        with self._unit_of_work("delete_request", request_id=request_id) as o:
            return o.workflow.delete(request_id)

    def approve(
        self,
        request_id: str,
        note: str | None = None,
        *,
        quarantine_ids: Iterable[str] = (),
        actor: Actor | None = None,
    ) -> RequestInfo:
        with self._unit_of_work("approve", actor=actor, request_id=request_id) as o:
            return o.workflow.approve(
                request_id, note, quarantine_ids=tuple(quarantine_ids), actor=actor
            )

    def reject(
        self,
        request_id: str,
        reason: str | None = None,
        *,
        actor: Actor | None = None,
    ) -> RequestInfo:
        with self._unit_of_work("reject", actor=actor, request_id=request_id) as o:
            return o.workflow.reject(request_id, reason, actor=actor)

    def complete_quarantine(self, request_id: str, *, actor: Actor | None = None) -> RequestInfo:
        with self._unit_of_work("complete_quarantine", actor=actor, request_id=request_id) as o:
            return o.workflow.complete_quarantine(request_id, actor=actor)

    # ------------------------------------------------------------------
    # Compliance
    # ------------------------------------------------------------------

    def compliance_approve(
        self,
        request_id: str,
        note: str | None = None,
        *,
        actor: Actor | None = None,
    ) -> RequestInfo:
        with self._unit_of_work("compliance_approve", actor=actor, request_id=request_id) as o:
            return o.golden_records.compliance_approve(request_id, note, actor)

    def compliance_block(
        self,
        request_id: str,
        reason: str | None,
        *,
        actor: Actor | None = None,
    ) -> RequestInfo:
        with self._unit_of_work("compliance_block", actor=actor, request_id=request_id) as o:
            return o.golden_records.compliance_block(request_id, reason, actor)

    # ------------------------------------------------------------------
    # Duplicate resolution
    # ------------------------------------------------------------------

    def merge(
        self,
        master_id: str | None,
        duplicate_ids: Iterable[str] | None,
        *,
        actor: Actor | None = None,
    ) -> MergeResult:
        with self._unit_of_work("merge", actor=actor, request_id=master_id) as o:
            return o.duplicates.merge(master_id, duplicate_ids, actor=actor)

    def build_master(
        self,
        command: BuildMasterCommand,
        *,
        actor: Actor | None = None,
    ) -> BuildMasterResult:
        with self._unit_of_work(
            "build_master", actor=actor, tax_number=command.tax_number
        ) as o:
            return o.duplicates.build_master(command, actor=actor)

    def resubmit_master(
        self,
        command: ResubmitMasterCommand,
        *,
        actor: Actor | None = None,
    ) -> BuildMasterResult:
        with self._unit_of_work(
            "resubmit_master",
            actor=actor,
            request_id=command.original_record_id,
            tax_number=command.tax_number,
        ) as o:
            return o.duplicates.resubmit_master(command, actor=actor)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def clear_data(self, data_type: str) -> int:
        with self._unit_of_work("clear_data") as o:
            return o.admin.clear(data_type)

    def data_stats(self) -> DataStats:
        with self._unit_of_work("data_stats", write=False) as o:
            return o.admin.data_stats()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_request(self, request_id: str) -> RequestInfo:
        with self._unit_of_work("get_request", write=False, request_id=request_id) as o:
            return o.requests.get(request_id)

    def list_requests(
        self,
        status: str | None = None,
        origin: str | None = None,
        is_golden: bool | None = None,
        assigned_to: str | None = None,
    ) -> list[RequestInfo]:
        with self._unit_of_work("list_requests", write=False) as o:
            return o.requests.list_requests(status, origin, is_golden, assigned_to)

    def stats(self) -> RequestStats:
        with self._unit_of_work("stats", write=False) as o:
            return o.requests.stats()

    def list_quarantine(self) -> list[RequestInfo]:
        with self._unit_of_work("list_quarantine", write=False) as o:
            return o.requests.list_quarantine()

    def list_golden(self, include_masters: bool = True) -> list[RequestInfo]:
        with self._unit_of_work("list_golden", write=False) as o:
            return o.requests.list_golden(include_masters)

    def list_duplicates(self) -> list[RequestInfo]:
        with self._unit_of_work("list_duplicates", write=False) as o:
            return o.duplicate_groups.list_duplicates()

    def duplicate_groups(self) -> list[DuplicateGroupSummary]:
        with self._unit_of_work("duplicate_groups", write=False) as o:
            return o.duplicate_groups.duplicate_groups()

    def records_by_tax(self, tax_number: str) -> DuplicateGroup:
        with self._unit_of_work("records_by_tax", write=False, tax_number=tax_number) as o:
            return o.duplicate_groups.records_by_tax(tax_number)

    def records_by_master(self, master_id: str) -> DuplicateGroup:
        with self._unit_of_work("records_by_master", write=False, request_id=master_id) as o:
            return o.duplicate_groups.records_by_master(master_id)

    def recommend_fields(self, tax_number: str) -> dict[str, FieldRecommendation]:
        with self._unit_of_work("recommend_fields", write=False, tax_number=tax_number) as o:
            return o.duplicate_groups.recommend_fields(tax_number)

    def history(self, request_id: str) -> list[WorkflowEventInfo]:
        with self._unit_of_work("history", write=False, request_id=request_id) as o:
            return o.history.history(request_id)

    def lineage(self, request_id: str) -> LineageView:
        with self._unit_of_work("lineage", write=False, request_id=request_id) as o:
            return o.history.lineage(request_id)
