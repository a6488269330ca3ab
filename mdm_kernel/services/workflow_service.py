"""
WorkflowService -- request lifecycle state machine.

Responsibility:
    Creates, edits, reviews, rejects, releases from quarantine and deletes
    company requests.  Every status change is validated against
    ``REQUEST_WORKFLOW`` and recorded in the workflow history.

Architecture position:
    Kernel > Services.  Uses ``GoldenRecordService`` to suspend a golden
    record when an edit of it is created, and ``AuditLogService`` for
    history.

Invariants enforced:
    - A request starts Pending, assigned to the reviewer role.
    - ``original_request_type`` is fixed at creation; every later change of
      ``request_type`` is named in an event payload.
    - Merged records never move again.
    - Contacts are reconciled through explicit insert / update / delete
      steps planned once per update; each step yields one lineage entry.

Failure modes:
    - RequestNotFoundError: unknown id (update, approve, reject,
      complete_quarantine, delete, get; also the source of a golden edit).
    - NotGoldenRecordError: golden edit of a non-golden record.
    - InvalidTransitionError: action illegal from the current status.
    - NotInQuarantineError: completing a record that is not quarantined.
    - UnknownContactError / InvalidCommandError: contact reconciliation input.

Audit relevance:
    CREATE, UPDATE (only when something changed), MASTER_APPROVE plus one
    SENT_TO_QUARANTINE per quarantined record, MASTER_REJECT,
    QUARANTINE_COMPLETE.  Deletion purges the request's own history.
"""

from typing import Any, Iterable, Mapping
from uuid import uuid4

from sqlalchemy.orm import Session

from mdm_kernel.domain.clock import Clock
from mdm_kernel.domain.diff import diff_fields, document_change, plan_contact_changes
from mdm_kernel.domain.dtos import ContactInput, ContactOp, DocumentInput, RequestInfo
from mdm_kernel.domain.events import (
    CreatePayload,
    MasterApprovePayload,
    MasterRejectPayload,
    QuarantineCompletePayload,
    SentToQuarantinePayload,
    UpdatePayload,
)
from mdm_kernel.domain.fields import TRACKED_FIELDS, is_manual_id
from mdm_kernel.domain.ids import IdGenerator, UUIDGenerator
from mdm_kernel.domain.policy import WorkflowPolicy
from mdm_kernel.domain.values import Actor, Origin, RequestStatus, RequestType
from mdm_kernel.domain.workflow import RequestAction
from mdm_kernel.exceptions import InvalidTransitionError, NotInQuarantineError
from mdm_kernel.logging_config import get_logger
from mdm_kernel.models.request import CompanyRequest, Contact, Document, Issue
from mdm_kernel.services.audit_log import AuditLogService
from mdm_kernel.services.base import RequestServiceBase
from mdm_kernel.services.golden_record_service import GoldenRecordService

logger = get_logger("services.workflow")


class WorkflowService(RequestServiceBase):
    def __init__(
        self,
        session: Session,
        auditor: AuditLogService,
        golden_records: GoldenRecordService,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
        id_generator: IdGenerator | None = None,
    ):
        super().__init__(session, clock, policy)
        self._auditor = auditor
        self._golden = golden_records
        self._ids = id_generator or UUIDGenerator()

    # ------------------------------------------------------------------
    # Create / read / update / delete
    # ------------------------------------------------------------------

    def create(
        self,
        fields: Mapping[str, Any],
        *,
        origin: str | None = None,
        source_golden_id: str | None = None,
        contacts: Iterable[ContactInput] = (),
        documents: Iterable[DocumentInput] = (),
        request_type: str | None = None,
        original_request_type: str | None = None,
        from_quarantine: bool = False,
        source_system: str | None = None,
        notes: str | None = None,
        actor: Actor | None = None,
    ) -> RequestInfo:
        """
        Create a Pending request.

        A golden edit (origin goldenEdit with a source golden id) suspends
        the source golden record in the same unit of work and stores a field
        diff against it in the CREATE event.
        """
        actor = actor or self._policy.default_actor(self._policy.data_entry_role)
        origin = origin or self._policy.default_origin
        contacts = list(contacts)
        documents = list(documents)
        now = self._clock.now()

        golden_edit = origin == Origin.GOLDEN_EDIT.value and bool(source_golden_id)
        if not request_type:
            if golden_edit:
                request_type = RequestType.GOLDEN.value
            elif from_quarantine or origin == Origin.QUARANTINE.value:
                request_type = RequestType.QUARANTINE.value
            else:
                request_type = RequestType.NEW.value
        original_request_type = original_request_type or request_type

        request_id = self._ids.new_id()
        source = None
        if golden_edit:
            source = self._golden.suspend_for_edit(source_golden_id, request_id, actor)

        record = CompanyRequest(
            id=request_id,
            **{name: fields.get(name) for name in TRACKED_FIELDS},
            status=RequestStatus.PENDING.value,
            origin=origin,
            source_system=source_system or self._policy.default_source_system,
            request_type=request_type,
            original_request_type=original_request_type,
            source_golden_id=source_golden_id,
            assigned_to=self._policy.reviewer_role,
            created_by=actor.name,
            is_golden=False,
            is_master=False,
            is_merged=False,
            notes=[],
            block_reasons=[],
            created_at=now,
            updated_at=now,
        )
        if notes:
            record.add_note(actor.name, notes, now)

        for contact in contacts:
            record.contacts.append(self._new_contact(contact, actor))
        for document in documents:
            record.documents.append(self._new_document(document, actor))

        self.session.add(record)
        self._touch(record)

        if golden_edit:
            operation = "golden_edit"
            changes = diff_fields(source.company_fields(), fields, only_supplied=False)
        else:
            operation = "from_quarantine" if from_quarantine else "create"
            changes = []

        self._auditor.record(
            record.id,
            CreatePayload(
                operation=operation,
                request_type=request_type,
                original_request_type=original_request_type,
                source_golden_id=source_golden_id,
                from_quarantine=from_quarantine,
                changes=tuple(changes),
                data=record.company_fields(),
                contacts_added=len(contacts),
                documents_added=len(documents),
            ),
            actor=actor,
            from_status=None,
            to_status=record.status,
            note=notes or "Request created",
        )
        self.session.flush()

        logger.info(
            "request_created",
            extra={
                "request_id": record.id,
                "origin": origin,
                "request_type": request_type,
                "source_golden_id": source_golden_id,
                "contacts_added": len(contacts),
                "documents_added": len(documents),
            },
        )
        return record.to_dto()

    def get(self, request_id: str) -> RequestInfo:
        return self._get_request(request_id).to_dto()

    def update(
        self,
        request_id: str,
        fields: Mapping[str, Any] | None = None,
        *,
        contacts: Iterable[ContactInput] | None = None,
        documents: Iterable[DocumentInput] | None = None,
        reason: str | None = None,
        actor: Actor | None = None,
    ) -> RequestInfo:
        """
        Apply a partial edit.

        ``fields`` may name any subset of the tracked fields.  A supplied
        ``contacts`` list is the full desired set; a supplied ``documents``
        list replaces all documents.  ``None`` leaves that part untouched.
        """
        actor = actor or self._policy.default_actor(self._policy.data_entry_role)
        record = self._get_request(request_id)
        if self._is_closed(record):
            raise InvalidTransitionError(record.id, record.status, "update")

        fields = {k: v for k, v in (fields or {}).items() if k in TRACKED_FIELDS}
        changes = diff_fields(record.company_fields(), fields)
        for change in changes:
            setattr(record, change.field, fields[change.field])

        if contacts is not None:
            changes.extend(self._reconcile_contacts(record, list(contacts), actor))

        if documents is not None:
            documents = list(documents)
            record.documents.clear()
            self.session.flush()
            for document in documents:
                record.documents.append(self._new_document(document, actor))
                changes.append(document_change(document))

        if not changes:
            logger.info("request_update_noop", extra={"request_id": record.id})
            return record.to_dto()

        self._touch(record)
        self._auditor.record(
            record.id,
            UpdatePayload(changes=tuple(changes), updated_by=actor.name, update_reason=reason),
            actor=actor,
            from_status=record.status,
            to_status=record.status,
            note=reason or f"Updated {len(changes)} item(s)",
        )
        self.session.flush()

        logger.info(
            "request_updated",
            extra={"request_id": record.id, "change_count": len(changes)},
        )
        return record.to_dto()

    def delete(self, request_id: str) -> str:
        """Delete a request, its owned rows and its history."""
        record = self._get_request(request_id)
        self.session.delete(record)
        self.session.flush()
        removed = self._auditor.purge(request_id)

        logger.info(
            "request_deleted",
            extra={"request_id": request_id, "events_removed": removed},
        )
        return request_id

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def approve(
        self,
        request_id: str,
        note: str | None = None,
        *,
        quarantine_ids: Iterable[str] = (),
        actor: Actor | None = None,
    ) -> RequestInfo:
        """
        Reviewer approval; hands the request to compliance.

        Records named in ``quarantine_ids`` (typically group members the
        reviewer judged not to be duplicates) are quarantined in the same
        unit of work with every relationship cleared.
        """
        actor = actor or self._policy.default_actor(self._policy.reviewer_role)
        record = self._get_request(request_id)

        previous = self._transition(record, RequestAction.APPROVE)
        record.assigned_to = self._policy.compliance_role
        record.reviewed_by = actor.name
        if note:
            record.add_note(actor.name, note, self._clock.now())

        quarantined = []
        for other_id in dict.fromkeys(quarantine_ids):
            if other_id == record.id or is_manual_id(other_id, self._policy.manual_id_prefix):
                continue
            other = self._find_request(other_id)
            if other is None:
                logger.warning(
                    "quarantine_target_missing",
                    extra={"request_id": record.id, "quarantine_id": other_id},
                )
                continue
            self._send_to_quarantine(other, record, actor)
            quarantined.append(other.id)

        self._touch(record)
        self._auditor.record(
            record.id,
            MasterApprovePayload(
                original_request_type=record.original_request_type,
                quarantine_records=tuple(quarantined),
            ),
            actor=actor,
            from_status=previous,
            to_status=record.status,
            note=note or "Approved by reviewer",
        )
        self.session.flush()

        logger.info(
            "request_approved",
            extra={
                "request_id": record.id,
                "from_status": previous,
                "quarantined_ids": quarantined,
            },
        )
        return record.to_dto()

    def reject(
        self,
        request_id: str,
        reason: str | None = None,
        *,
        actor: Actor | None = None,
    ) -> RequestInfo:
        """
        Reviewer rejection.  Types are preserved; the request goes back to
        whoever must fix it.
        """
        actor = actor or self._policy.default_actor(self._policy.reviewer_role)
        record = self._get_request(request_id)

        previous = self._transition(record, RequestAction.REJECT)
        record.assigned_to = self._rejection_assignee(record)
        record.reject_reason = reason or self._policy.default_reject_reason
        record.reviewed_by = actor.name
        if reason:
            record.issues.append(
                Issue(
                    description=reason,
                    reviewed_by=actor.name,
                    resolved=False,
                    created_at=self._clock.now(),
                )
            )

        self._touch(record)
        self._auditor.record(
            record.id,
            MasterRejectPayload(
                reject_reason=record.reject_reason,
                request_type=record.request_type,
                original_request_type=record.original_request_type,
                assigned_to=record.assigned_to,
            ),
            actor=actor,
            from_status=previous,
            to_status=record.status,
            note=record.reject_reason,
        )
        self.session.flush()

        logger.info(
            "request_rejected",
            extra={
                "request_id": record.id,
                "from_status": previous,
                "assigned_to": record.assigned_to,
            },
        )
        return record.to_dto()

    def complete_quarantine(
        self,
        request_id: str,
        *,
        actor: Actor | None = None,
    ) -> RequestInfo:
        """Release a quarantined record back into review once data entry has fixed it."""
        actor = actor or self._policy.default_actor(self._policy.data_entry_role)
        record = self._get_request(request_id)
        if record.status != RequestStatus.QUARANTINE.value:
            raise NotInQuarantineError(record.id, record.status)

        previous = self._transition(record, RequestAction.COMPLETE_QUARANTINE)
        record.assigned_to = self._policy.reviewer_role
        text = "Quarantine record completed and submitted for review"
        record.add_note(actor.name, text, self._clock.now())

        self._touch(record)
        self._auditor.record(
            record.id,
            QuarantineCompletePayload(
                request_type=record.request_type,
                original_request_type=record.original_request_type,
            ),
            actor=actor,
            from_status=previous,
            to_status=record.status,
            note=text,
        )
        self.session.flush()

        logger.info("quarantine_completed", extra={"request_id": record.id})
        return record.to_dto()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _rejection_assignee(self, record: CompanyRequest) -> str:
        quarantine = RequestType.QUARANTINE.value
        if quarantine in (record.request_type, record.original_request_type):
            return self._policy.data_entry_role
        if self._policy.is_system_identity(record.created_by):
            return self._policy.data_entry_role
        return record.created_by

    def _send_to_quarantine(
        self,
        record: CompanyRequest,
        approved: CompanyRequest,
        actor: Actor,
    ) -> None:
        previous_type = record.request_type
        previous_original = record.original_request_type

        previous = self._transition(record, RequestAction.SEND_TO_QUARANTINE)
        record.request_type = RequestType.QUARANTINE.value
        record.original_request_type = RequestType.QUARANTINE.value
        record.master_id = None
        record.is_master = False
        record.is_merged = False
        record.merged_into_id = None
        record.assigned_to = self._policy.data_entry_role
        text = f"Sent to quarantine after approval of {approved.id}"
        record.add_note(actor.name, text, self._clock.now())
        self._touch(record)

        self._auditor.record(
            record.id,
            SentToQuarantinePayload(
                previous_master_id=approved.id,
                previous_request_type=previous_type,
                previous_original_request_type=previous_original,
            ),
            actor=actor,
            from_status=previous,
            to_status=record.status,
            note=text,
        )

    def _reconcile_contacts(
        self,
        record: CompanyRequest,
        contacts: list[ContactInput],
        actor: Actor,
    ) -> list:
        stored = {str(c.id): c for c in record.contacts}
        plan = plan_contact_changes(
            record.id, [c.snapshot() for c in record.contacts], contacts
        )

        changes = []
        for step in plan:
            if step.op is ContactOp.INSERT:
                record.contacts.append(self._new_contact(step.source_input, actor))
            elif step.op is ContactOp.UPDATE:
                contact = stored[step.contact_id]
                for name, value in step.after.items():
                    setattr(contact, name, value)
            else:
                record.contacts.remove(stored[step.contact_id])

            change = step.change()
            if change is not None:
                changes.append(change)
        return changes

    def _new_contact(self, contact: ContactInput, actor: Actor) -> Contact:
        return Contact(
            **contact.values(),
            source=contact.source or self._policy.default_source_system,
            added_by=contact.added_by or actor.name,
            added_at=self._clock.now(),
        )

    def _new_document(self, document: DocumentInput, actor: Actor) -> Document:
        return Document(
            document_id=document.document_id or uuid4().hex,
            name=document.name,
            type=document.type,
            description=document.description,
            size=document.size,
            mime=document.mime,
            content_base64=document.content_base64,
            source=document.source or self._policy.default_source_system,
            uploaded_by=document.uploaded_by or actor.name,
            uploaded_at=self._clock.now(),
        )
