"""
GoldenRecordService -- compliance decisions and golden record supersession.

Responsibility:
    Turns a reviewed request into the authoritative ("golden") version of a
    company, issuing its golden record code, and retires the golden record
    it replaces.  Also suspends a golden record while an edit of it is in
    review.

Architecture position:
    Kernel > Services.  Called by ``WorkflowService.create`` (suspension)
    and by the command layer (compliance decisions).

Invariants enforced:
    - A golden record code is issued once, when a record first becomes
      golden, and is unique across the store (checked before use).
    - Supersession happens in the same unit of work as the new decision: the
      predecessor loses ``is_golden`` exactly when the successor gains it.
    - A predecessor that is no longer golden at decision time is an error,
      never a second supersession (two edits of one golden record cannot
      both win).

Failure modes:
    - RequestNotFoundError: unknown request id.
    - MissingFieldError: block without a reason (raised before any query).
    - AlreadyGoldenError / InvalidTransitionError: record already golden,
      merged or superseded.
    - GoldenRecordSupersededError: predecessor already superseded.
    - NotGoldenRecordError: suspension of a non-golden record.
    - GoldenCodeGenerationError: no free code within the retry bound.

Audit relevance:
    Approve with a predecessor writes GOLDEN_SUPERSEDE on the old record and
    GOLDEN_RESTORE on the new one; without a predecessor, one
    COMPLIANCE_APPROVE.  Block writes COMPLIANCE_BLOCK (plus
    GOLDEN_SUPERSEDE on a predecessor).  Suspension writes GOLDEN_SUSPEND.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from mdm_kernel.domain.clock import Clock
from mdm_kernel.domain.dtos import RequestInfo
from mdm_kernel.domain.events import (
    ComplianceApprovePayload,
    ComplianceBlockPayload,
    GoldenRestorePayload,
    GoldenSupersedePayload,
    GoldenSuspendPayload,
)
from mdm_kernel.domain.ids import GoldenCodeGenerator, RandomGoldenCodeGenerator
from mdm_kernel.domain.policy import WorkflowPolicy
from mdm_kernel.domain.values import Actor, CompanyStatus, ComplianceStatus
from mdm_kernel.exceptions import (
    AlreadyGoldenError,
    GoldenCodeGenerationError,
    GoldenRecordSupersededError,
    InvalidTransitionError,
    MissingFieldError,
    NotGoldenRecordError,
)
from mdm_kernel.logging_config import get_logger
from mdm_kernel.models.request import CompanyRequest
from mdm_kernel.services.audit_log import AuditLogService
from mdm_kernel.services.base import RequestServiceBase

logger = get_logger("services.golden_record")


class GoldenRecordService(RequestServiceBase):
    def __init__(
        self,
        session: Session,
        auditor: AuditLogService,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
        code_generator: GoldenCodeGenerator | None = None,
    ):
        super().__init__(session, clock, policy)
        self._auditor = auditor
        self._codes = code_generator or RandomGoldenCodeGenerator(
            prefix=self._policy.golden_code_prefix,
            length=self._policy.golden_code_length,
        )

    # ------------------------------------------------------------------
    # Compliance decisions
    # ------------------------------------------------------------------

    def compliance_approve(
        self,
        request_id: str,
        note: str | None = None,
        actor: Actor | None = None,
    ) -> RequestInfo:
        actor = actor or self._policy.default_actor(self._policy.compliance_role)
        record = self._get_request(request_id)
        predecessor = self._predecessor_for_decision(record, "compliance_approve")

        code = self._issue_code()
        previous_compliance = record.compliance_status
        self._make_golden(record, code, CompanyStatus.ACTIVE, actor)
        if note:
            record.add_note(actor.name, note, self._clock.now())

        if predecessor is not None:
            self._supersede(predecessor, record, code, actor, blocked=False)
            self._auditor.record(
                record.id,
                GoldenRestorePayload(
                    replaced_golden_id=predecessor.id,
                    golden_code=code,
                    original_request_type=record.original_request_type,
                ),
                actor=actor,
                from_status=previous_compliance,
                to_status=record.compliance_status,
                note=note or f"Golden record {code} replaces {predecessor.golden_record_code}",
            )
        else:
            self._auditor.record(
                record.id,
                ComplianceApprovePayload(
                    golden_code=code,
                    original_request_type=record.original_request_type,
                ),
                actor=actor,
                from_status=previous_compliance,
                to_status=record.compliance_status,
                note=note or f"Approved as golden record {code}",
            )

        self._touch(record)
        self.session.flush()

        logger.info(
            "golden_record_issued",
            extra={
                "request_id": record.id,
                "golden_code": code,
                "company_status": record.company_status,
                "replaced_golden_id": predecessor.id if predecessor else None,
            },
        )
        return record.to_dto()

    def compliance_block(
        self,
        request_id: str,
        reason: str | None,
        actor: Actor | None = None,
    ) -> RequestInfo:
        if not reason or not reason.strip():
            raise MissingFieldError("compliance_block", "reason")

        actor = actor or self._policy.default_actor(self._policy.compliance_role)
        record = self._get_request(request_id)
        predecessor = self._predecessor_for_decision(record, "compliance_block")

        code = self._issue_code()
        previous_compliance = record.compliance_status
        self._make_golden(record, code, CompanyStatus.BLOCKED, actor)
        record.add_block_reason(actor.name, reason, self._clock.now())

        if predecessor is not None:
            self._supersede(predecessor, record, code, actor, blocked=True)

        self._auditor.record(
            record.id,
            ComplianceBlockPayload(
                golden_code=code,
                block_reason=reason,
                original_request_type=record.original_request_type,
                replaced_golden_id=predecessor.id if predecessor else None,
            ),
            actor=actor,
            from_status=previous_compliance,
            to_status=record.compliance_status,
            note=reason,
        )

        self._touch(record)
        self.session.flush()

        logger.info(
            "golden_record_blocked",
            extra={
                "request_id": record.id,
                "golden_code": code,
                "replaced_golden_id": predecessor.id if predecessor else None,
            },
        )
        return record.to_dto()

    # ------------------------------------------------------------------
    # Suspension while an edit is in review
    # ------------------------------------------------------------------

    def suspend_for_edit(
        self,
        source_id: str,
        edit_request_id: str,
        actor: Actor,
    ) -> CompanyRequest:
        """Mark a golden record Under Review because ``edit_request_id`` edits it."""
        source = self._get_request(source_id)
        if not source.is_golden:
            raise NotGoldenRecordError(source.id)

        previous_compliance = source.compliance_status
        reason = f"Being edited via request: {edit_request_id}"
        source.compliance_status = ComplianceStatus.UNDER_REVIEW.value
        source.add_note(actor.name, reason, self._clock.now())
        self._touch(source)

        self._auditor.record(
            source.id,
            GoldenSuspendPayload(new_request_id=edit_request_id, reason=reason),
            actor=actor,
            from_status=previous_compliance,
            to_status=source.compliance_status,
            note=reason,
        )
        logger.info(
            "golden_record_suspended",
            extra={"golden_id": source.id, "edit_request_id": edit_request_id},
        )
        return source

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _predecessor_for_decision(
        self, record: CompanyRequest, operation: str
    ) -> CompanyRequest | None:
        if self._is_closed(record):
            raise InvalidTransitionError(record.id, record.status, operation)
        if record.is_golden:
            raise AlreadyGoldenError(record.id, record.golden_record_code)

        if not record.source_golden_id:
            return None

        predecessor = self._find_request(record.source_golden_id)
        if predecessor is None:
            logger.warning(
                "golden_predecessor_missing",
                extra={"request_id": record.id, "source_golden_id": record.source_golden_id},
            )
            return None
        if not predecessor.is_golden:
            raise GoldenRecordSupersededError(predecessor.id, record.id)
        return predecessor

    def _issue_code(self) -> str:
        attempts = self._policy.golden_code_max_attempts
        for attempt in range(1, attempts + 1):
            code = self._codes.new_code()
            taken = self.session.scalar(
                select(CompanyRequest.id).where(CompanyRequest.golden_record_code == code)
            )
            if taken is None:
                return code
            logger.warning(
                "golden_code_collision",
                extra={"golden_code": code, "attempt": attempt},
            )
        raise GoldenCodeGenerationError(attempts)

    def _make_golden(
        self,
        record: CompanyRequest,
        code: str,
        company_status: CompanyStatus,
        actor: Actor,
    ) -> None:
        record.golden_record_code = code
        record.is_golden = True
        record.company_status = company_status.value
        record.compliance_status = ComplianceStatus.APPROVED.value
        record.compliance_by = actor.name

    def _supersede(
        self,
        predecessor: CompanyRequest,
        successor: CompanyRequest,
        code: str,
        actor: Actor,
        *,
        blocked: bool,
    ) -> None:
        previous_compliance = predecessor.compliance_status
        text = (
            f"Superseded by blocked record: {code}" if blocked else f"Superseded by: {code}"
        )

        predecessor.is_golden = False
        predecessor.company_status = CompanyStatus.SUPERSEDED.value
        predecessor.compliance_status = ComplianceStatus.SUPERSEDED.value
        predecessor.add_block_reason(actor.name, text, self._clock.now())
        self._touch(predecessor)

        self._auditor.record(
            predecessor.id,
            GoldenSupersedePayload(
                operation="supersede_blocked" if blocked else "supersede",
                new_golden_id=successor.id,
                new_golden_code=code,
            ),
            actor=actor,
            from_status=previous_compliance,
            to_status=predecessor.compliance_status,
            note=text,
        )
        logger.info(
            "golden_record_superseded",
            extra={
                "superseded_id": predecessor.id,
                "superseded_code": predecessor.golden_record_code,
                "successor_id": successor.id,
                "successor_code": code,
            },
        )
