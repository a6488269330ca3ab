"""
DuplicateResolutionService -- merge, build and resubmit master records.

Responsibility:
    Resolves a group of requests sharing a tax number into one master
    record: builds the master from a per-field source selection, links the
    confirmed duplicates to it, quarantines the members that turned out not
    to be duplicates, and later merges linked duplicates into the master.
    A rejected master is corrected in place by resubmission.

Architecture position:
    Kernel > Services.  Field construction and provenance snapshots are pure
    functions in ``domain.master_builder``; this service applies them.

Invariants enforced:
    - Only records linked to the target master (``master_id`` equal to it)
      are merged; a merged record has ``is_merged`` and ``merged_into_id``
      and status Merged, and never moves again.
    - A master has ``is_master`` and no ``master_id`` of its own.
    - Quarantined group members have every relationship field cleared.
    - Ids equal to the master / original, or carrying the manual placeholder
      prefix, are skipped silently.
    - Provenance (``selected_field_sources``, ``built_from_records``) is
      written with the master and rewritten on resubmission.

Failure modes:
    - MissingFieldError: required command input absent (before any query).
    - InvalidCommandError: resubmission without the resubmission flag.
    - MasterRecordNotFoundError: merge target missing or not a master.
    - DuplicateGroupNotFoundError: no non-merged record carries the tax number.
    - RequestNotFoundError: resubmission of an unknown master.

Audit relevance:
    MERGED per merged record plus MERGE_MASTER on the master; one
    LINKED_TO_MASTER per linked and one MOVED_TO_QUARANTINE per quarantined
    member; MASTER_BUILT / MASTER_RESUBMITTED summaries on the master.
"""

from typing import Any, Iterable
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from mdm_kernel.domain.clock import Clock
from mdm_kernel.domain.dtos import (
    BuildMasterCommand,
    BuildMasterResult,
    ContactInput,
    DocumentInput,
    MergeResult,
    ResubmitMasterCommand,
)
from mdm_kernel.domain.events import (
    LinkedToMasterPayload,
    MasterBuiltPayload,
    MasterResubmittedPayload,
    MergedPayload,
    MergeMasterPayload,
    MovedToQuarantinePayload,
)
from mdm_kernel.domain.fields import TRACKED_FIELDS, is_manual_id
from mdm_kernel.domain.ids import IdGenerator, UUIDGenerator
from mdm_kernel.domain.master_builder import (
    build_provenance,
    construct_master_fields,
    contact_display_name,
)
from mdm_kernel.domain.policy import WorkflowPolicy
from mdm_kernel.domain.values import Actor, Origin, RequestStatus, RequestType
from mdm_kernel.domain.workflow import RequestAction
from mdm_kernel.exceptions import (
    DuplicateGroupNotFoundError,
    InvalidCommandError,
    InvalidTransitionError,
    MasterRecordNotFoundError,
    MissingFieldError,
)
from mdm_kernel.logging_config import get_logger
from mdm_kernel.models.request import CompanyRequest, Contact, Document
from mdm_kernel.services.audit_log import AuditLogService
from mdm_kernel.services.base import RequestServiceBase

logger = get_logger("services.duplicates")


class DuplicateResolutionService(RequestServiceBase):
    def __init__(
        self,
        session: Session,
        auditor: AuditLogService,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
        id_generator: IdGenerator | None = None,
    ):
        super().__init__(session, clock, policy)
        self._auditor = auditor
        self._ids = id_generator or UUIDGenerator()

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def merge(
        self,
        master_id: str | None,
        duplicate_ids: Iterable[str] | None,
        *,
        actor: Actor | None = None,
    ) -> MergeResult:
        """Fold records linked to ``master_id`` into it."""
        duplicate_ids = list(dict.fromkeys(duplicate_ids or ()))
        if not master_id:
            raise MissingFieldError("merge", "master_id")
        if not duplicate_ids:
            raise MissingFieldError("merge", "duplicate_ids")

        actor = actor or self._policy.default_actor(self._policy.data_entry_role)
        master = self._find_request(master_id)
        if master is None or not master.is_master:
            raise MasterRecordNotFoundError(master_id)

        merged: list[str] = []
        for duplicate_id in duplicate_ids:
            if self._skip_id(duplicate_id, master_id):
                continue
            duplicate = self._find_request(duplicate_id)
            if duplicate is None or duplicate.master_id != master_id or duplicate.is_merged:
                logger.debug(
                    "merge_candidate_skipped",
                    extra={"master_id": master_id, "duplicate_id": duplicate_id},
                )
                continue

            previous = self._transition(duplicate, RequestAction.MERGE)
            duplicate.is_merged = True
            duplicate.merged_into_id = master_id
            text = f"Merged into master record {master_id}"
            duplicate.add_note(actor.name, text, self._clock.now())
            self._touch(duplicate)

            self._auditor.record(
                duplicate.id,
                MergedPayload(master_id=master_id, master_name=master.first_name),
                actor=actor,
                from_status=previous,
                to_status=duplicate.status,
                note=text,
            )
            merged.append(duplicate.id)

        if merged:
            self._auditor.record(
                master.id,
                MergeMasterPayload(merged_ids=tuple(merged), merged_count=len(merged)),
                actor=actor,
                from_status=master.status,
                to_status=master.status,
                note=f"Merged {len(merged)} duplicate record(s)",
            )
        self.session.flush()

        logger.info(
            "duplicates_merged",
            extra={"master_id": master_id, "merged_ids": merged, "merged_count": len(merged)},
        )
        return MergeResult(master_id=master_id, merged_ids=tuple(merged))

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build_master(
        self,
        command: BuildMasterCommand,
        *,
        actor: Actor | None = None,
    ) -> BuildMasterResult:
        """Create a master for one tax-number group from a field selection."""
        self._validate_build(command, "build_master")
        actor = actor or self._policy.default_actor(self._policy.data_entry_role)

        group = self._load_group(command.tax_number)
        records_by_id = {r.id: r.snapshot() for r in group}
        values = self._construct_fields(command, records_by_id)

        request_type = (
            RequestType.QUARANTINE.value if command.from_quarantine else RequestType.DUPLICATE.value
        )
        provenance = build_provenance(
            records_by_id.values(),
            command.duplicate_ids,
            command.quarantine_ids,
            from_quarantine=command.from_quarantine,
            override=command.built_from_records,
        )

        now = self._clock.now()
        master = CompanyRequest(
            id=self._ids.new_id(),
            **{name: values.get(name) for name in TRACKED_FIELDS},
            status=RequestStatus.PENDING.value,
            origin=Origin.MASTER_BUILDER.value,
            source_system=self._policy.builder_source_system,
            request_type=request_type,
            original_request_type=request_type,
            assigned_to=self._policy.reviewer_role,
            created_by=actor.name,
            is_golden=False,
            is_master=True,
            is_merged=False,
            confidence=self._policy.builder_confidence,
            build_strategy=self._policy.build_strategy,
            built_from_records=provenance,
            selected_field_sources=dict(command.selected_fields),
            notes=[],
            block_reasons=[],
            created_at=now,
            updated_at=now,
        )
        master.tax = command.tax_number
        self._attach_children(master, command.contacts, command.documents, actor)
        self.session.add(master)
        self._touch(master)

        linked = self._link_duplicates(master, command.duplicate_ids, actor)
        quarantined = self._quarantine_members(master, command.quarantine_ids, actor)

        self._auditor.record(
            master.id,
            MasterBuiltPayload(
                tax_number=command.tax_number,
                request_type=request_type,
                from_quarantine=command.from_quarantine,
                linked_count=len(linked),
                quarantine_count=len(quarantined),
                contacts_added=len(command.contacts),
                documents_added=len(command.documents),
                selected_fields=dict(command.selected_fields),
                built_from_records=provenance,
                data=master.company_fields(),
            ),
            actor=actor,
            from_status=None,
            to_status=master.status,
            note=(
                f"Master built from {len(linked)} duplicate(s); "
                f"{len(quarantined)} record(s) quarantined"
            ),
        )
        self.session.flush()

        logger.info(
            "master_built",
            extra={
                "master_id": master.id,
                "tax_number": command.tax_number,
                "linked_ids": linked,
                "quarantined_ids": quarantined,
            },
        )
        return BuildMasterResult(
            master_id=master.id,
            tax_number=command.tax_number,
            linked_ids=tuple(linked),
            quarantined_ids=tuple(quarantined),
            contacts_added=len(command.contacts),
            documents_added=len(command.documents),
        )

    # ------------------------------------------------------------------
    # Resubmit
    # ------------------------------------------------------------------

    def resubmit_master(
        self,
        command: ResubmitMasterCommand,
        *,
        actor: Actor | None = None,
    ) -> BuildMasterResult:
        """Correct a (typically rejected) master in place and send it back to review."""
        if not command.original_record_id:
            raise MissingFieldError("resubmit_master", "original_record_id")
        if not command.is_resubmission:
            raise InvalidCommandError("resubmit_master", "is_resubmission must be set")
        self._validate_build(command, "resubmit_master")
        actor = actor or self._policy.default_actor(self._policy.data_entry_role)

        master = self._get_request(command.original_record_id)
        group = [r for r in self._load_group(command.tax_number) if r.id != master.id]
        records_by_id = {r.id: r.snapshot() for r in group}
        values = self._construct_fields(command, records_by_id)
        previous_reject_reason = master.reject_reason

        previous = self._transition(master, RequestAction.RESUBMIT)
        for name in TRACKED_FIELDS:
            if name != "tax" and name in values:
                setattr(master, name, values[name])
        master.reject_reason = None
        master.assigned_to = self._policy.reviewer_role
        master.is_master = True
        master.master_id = None
        master.build_strategy = self._policy.build_strategy
        master.selected_field_sources = dict(command.selected_fields)
        master.built_from_records = build_provenance(
            records_by_id.values(),
            command.duplicate_ids,
            command.quarantine_ids,
            from_quarantine=command.from_quarantine,
            override=command.built_from_records,
            resubmission=True,
            original_request_type=master.original_request_type,
        )
        master.add_note(actor.name, "Master record resubmitted after rejection", self._clock.now())

        master.contacts.clear()
        master.documents.clear()
        self.session.flush()
        self._attach_children(master, command.contacts, command.documents, actor)
        self._touch(master)

        linked = self._link_duplicates(master, command.duplicate_ids, actor, resubmission=True)
        quarantined = self._quarantine_members(
            master, command.quarantine_ids, actor, resubmission=True
        )

        self._auditor.record(
            master.id,
            MasterResubmittedPayload(
                original_record_id=master.id,
                previous_reject_reason=previous_reject_reason,
                linked_count=len(linked),
                quarantine_count=len(quarantined),
                contacts_count=len(command.contacts),
                documents_count=len(command.documents),
                selected_fields=dict(command.selected_fields),
                data=master.company_fields(),
            ),
            actor=actor,
            from_status=previous,
            to_status=master.status,
            note="Master record resubmitted for review",
        )
        self.session.flush()

        logger.info(
            "master_resubmitted",
            extra={
                "master_id": master.id,
                "from_status": previous,
                "linked_ids": linked,
                "quarantined_ids": quarantined,
            },
        )
        return BuildMasterResult(
            master_id=master.id,
            tax_number=command.tax_number,
            linked_ids=tuple(linked),
            quarantined_ids=tuple(quarantined),
            contacts_added=len(command.contacts),
            documents_added=len(command.documents),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate_build(self, command: BuildMasterCommand, operation: str) -> None:
        if not command.tax_number:
            raise MissingFieldError(operation, "tax_number")
        if not command.selected_fields:
            raise MissingFieldError(operation, "selected_fields")
        if not command.duplicate_ids:
            raise MissingFieldError(operation, "duplicate_ids")

    def _skip_id(self, candidate_id: str, own_id: str) -> bool:
        return candidate_id == own_id or is_manual_id(candidate_id, self._policy.manual_id_prefix)

    def _load_group(self, tax_number: str) -> list[CompanyRequest]:
        group = list(
            self.session.scalars(
                select(CompanyRequest)
                .where(CompanyRequest.tax == tax_number, CompanyRequest.is_merged.is_(False))
                .order_by(CompanyRequest.created_at, CompanyRequest.id)
            )
        )
        if not group:
            raise DuplicateGroupNotFoundError(tax_number)
        return group

    def _construct_fields(
        self,
        command: BuildMasterCommand,
        records_by_id: dict[str, dict[str, Any]],
    ) -> dict[str, Any]:
        return construct_master_fields(
            command.selected_fields,
            records_by_id,
            manual_fields=command.manual_fields,
            master_data=command.master_data,
            manual_entry=self._policy.manual_entry_sentinel,
            manual_prefix=self._policy.manual_id_prefix,
        )

    def _attach_children(
        self,
        master: CompanyRequest,
        contacts: Iterable[ContactInput],
        documents: Iterable[DocumentInput],
        actor: Actor,
    ) -> None:
        now = self._clock.now()
        for index, contact in enumerate(contacts):
            values = contact.values()
            values["name"] = contact_display_name(contact, index)
            values["preferred_language"] = (
                contact.preferred_language or self._policy.default_contact_language
            )
            master.contacts.append(
                Contact(
                    **values,
                    source=contact.source or self._policy.builder_source_system,
                    added_by=contact.added_by or actor.name,
                    added_at=now,
                )
            )
        for document in documents:
            master.documents.append(
                Document(
                    document_id=document.document_id or uuid4().hex,
                    name=document.name,
                    type=document.type,
                    description=document.description,
                    size=document.size,
                    mime=document.mime,
                    content_base64=document.content_base64,
                    source=document.source or self._policy.builder_source_system,
                    uploaded_by=document.uploaded_by or actor.name,
                    uploaded_at=now,
                )
            )

    def _link_duplicates(
        self,
        master: CompanyRequest,
        duplicate_ids: Iterable[str],
        actor: Actor,
        *,
        resubmission: bool = False,
    ) -> list[str]:
        linked: list[str] = []
        for duplicate_id in dict.fromkeys(duplicate_ids):
            if self._skip_id(duplicate_id, master.id):
                continue
            duplicate = self._find_request(duplicate_id)
            if duplicate is None or duplicate.tax != master.tax or duplicate.is_merged:
                logger.debug(
                    "link_candidate_skipped",
                    extra={"master_id": master.id, "duplicate_id": duplicate_id},
                )
                continue

            previous = self._transition(duplicate, RequestAction.LINK)
            duplicate.master_id = master.id
            duplicate.is_master = False
            text = f"Linked to built master: {master.id} (confirmed duplicate)"
            duplicate.add_note(actor.name, text, self._clock.now())
            self._touch(duplicate)

            self._auditor.record(
                duplicate.id,
                LinkedToMasterPayload(
                    master_id=master.id,
                    build_strategy=master.build_strategy,
                    resubmission=resubmission,
                ),
                actor=actor,
                from_status=previous,
                to_status=duplicate.status,
                note=text,
            )
            linked.append(duplicate.id)
        return linked

    def _quarantine_members(
        self,
        master: CompanyRequest,
        quarantine_ids: Iterable[str],
        actor: Actor,
        *,
        resubmission: bool = False,
    ) -> list[str]:
        quarantined: list[str] = []
        reason = "Not a true duplicate of the built master"
        for record_id in dict.fromkeys(quarantine_ids):
            if self._skip_id(record_id, master.id):
                continue
            record = self._find_request(record_id)
            if record is None:
                logger.warning(
                    "quarantine_target_missing",
                    extra={"master_id": master.id, "quarantine_id": record_id},
                )
                continue
            if record.tax != master.tax:
                logger.debug(
                    "quarantine_candidate_skipped",
                    extra={"master_id": master.id, "quarantine_id": record_id},
                )
                continue
            if self._is_closed(record):
                raise InvalidTransitionError(
                    record.id, record.status, RequestAction.SEND_TO_QUARANTINE.value
                )

            previous_type = record.request_type
            previous = self._transition(record, RequestAction.SEND_TO_QUARANTINE)
            record.request_type = RequestType.QUARANTINE.value
            record.master_id = None
            record.is_master = False
            record.is_merged = False
            record.merged_into_id = None
            record.assigned_to = self._policy.data_entry_role
            text = f"Moved to quarantine while building master {master.id}: {reason.lower()}"
            record.add_note(actor.name, text, self._clock.now())
            self._touch(record)

            self._auditor.record(
                record.id,
                MovedToQuarantinePayload(
                    previous_master_id=master.id,
                    reason=reason,
                    previous_request_type=previous_type,
                    new_request_type=record.request_type,
                    resubmission=resubmission,
                ),
                actor=actor,
                from_status=previous,
                to_status=record.status,
                note=text,
            )
            quarantined.append(record.id)
        return quarantined
