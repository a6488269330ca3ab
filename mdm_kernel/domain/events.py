"""
Workflow event actions and their typed payloads.

Responsibility:
    Every workflow event carries a payload whose shape is fixed by its
    action.  Each action has one frozen dataclass here; ``PAYLOAD_TYPES``
    maps action -> dataclass so the audit log can serialize on write and
    decode on read without free-form dictionaries leaking into services.

Architecture position:
    Kernel > Domain.  Pure; the audit log service owns persistence.

Invariants enforced:
    - A payload instance always knows its own action (``payload.action``).
    - Decoding ignores keys the dataclass does not declare, so rows written
      by an older layout still load.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar


class WorkflowAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    GOLDEN_SUSPEND = "GOLDEN_SUSPEND"
    MASTER_APPROVE = "MASTER_APPROVE"
    SENT_TO_QUARANTINE = "SENT_TO_QUARANTINE"
    MASTER_REJECT = "MASTER_REJECT"
    QUARANTINE_COMPLETE = "QUARANTINE_COMPLETE"
    COMPLIANCE_APPROVE = "COMPLIANCE_APPROVE"
    COMPLIANCE_BLOCK = "COMPLIANCE_BLOCK"
    GOLDEN_SUPERSEDE = "GOLDEN_SUPERSEDE"
    GOLDEN_RESTORE = "GOLDEN_RESTORE"
    MERGED = "MERGED"
    MERGE_MASTER = "MERGE_MASTER"
    LINKED_TO_MASTER = "LINKED_TO_MASTER"
    MOVED_TO_QUARANTINE = "MOVED_TO_QUARANTINE"
    MASTER_BUILT = "MASTER_BUILT"
    MASTER_RESUBMITTED = "MASTER_RESUBMITTED"


class ChangeKind(str, Enum):
    FIELD = "field"
    CONTACT = "contact"
    DOCUMENT = "document"


@dataclass(frozen=True)
class ChangeEntry:
    """One changed value: a company field, a contact or a document."""

    field: str
    old_value: Any
    new_value: Any
    kind: ChangeKind = ChangeKind.FIELD
    field_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeEntry:
        return cls(
            field=data["field"],
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
            kind=ChangeKind(data.get("kind", ChangeKind.FIELD.value)),
            field_name=data.get("field_name"),
        )


@dataclass(frozen=True)
class EventPayload:
    action: ClassVar[WorkflowAction]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if "changes" in data:
            data["changes"] = [
                {**c, "kind": ChangeKind(c["kind"]).value} for c in data["changes"]
            ]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventPayload:
        declared = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in declared:
                continue
            if key == "changes":
                value = tuple(ChangeEntry.from_dict(c) for c in value)
            elif isinstance(value, list):
                value = tuple(value)
            kwargs[key] = value
        return cls(**kwargs)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CreatePayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.CREATE

    operation: str = "create"
    request_type: str | None = None
    original_request_type: str | None = None
    source_golden_id: str | None = None
    from_quarantine: bool = False
    changes: tuple[ChangeEntry, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)
    contacts_added: int = 0
    documents_added: int = 0


@dataclass(frozen=True)
class UpdatePayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.UPDATE

    changes: tuple[ChangeEntry, ...] = ()
    updated_by: str | None = None
    update_reason: str | None = None


@dataclass(frozen=True)
class MasterApprovePayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.MASTER_APPROVE

    original_request_type: str | None = None
    quarantine_records: tuple[str, ...] = ()


@dataclass(frozen=True)
class SentToQuarantinePayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.SENT_TO_QUARANTINE

    previous_master_id: str | None = None
    previous_request_type: str | None = None
    previous_original_request_type: str | None = None
    cleared_relationships: bool = True


@dataclass(frozen=True)
class MasterRejectPayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.MASTER_REJECT

    reject_reason: str | None = None
    request_type: str | None = None
    original_request_type: str | None = None
    assigned_to: str | None = None


@dataclass(frozen=True)
class QuarantineCompletePayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.QUARANTINE_COMPLETE

    request_type: str | None = None
    original_request_type: str | None = None


# ---------------------------------------------------------------------------
# Golden records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GoldenSuspendPayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.GOLDEN_SUSPEND

    new_request_id: str | None = None
    reason: str | None = None


@dataclass(frozen=True)
class ComplianceApprovePayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.COMPLIANCE_APPROVE

    golden_code: str | None = None
    original_request_type: str | None = None


@dataclass(frozen=True)
class ComplianceBlockPayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.COMPLIANCE_BLOCK

    golden_code: str | None = None
    block_reason: str | None = None
    original_request_type: str | None = None
    replaced_golden_id: str | None = None


@dataclass(frozen=True)
class GoldenSupersedePayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.GOLDEN_SUPERSEDE

    operation: str = "supersede"
    new_golden_id: str | None = None
    new_golden_code: str | None = None


@dataclass(frozen=True)
class GoldenRestorePayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.GOLDEN_RESTORE

    replaced_golden_id: str | None = None
    golden_code: str | None = None
    original_request_type: str | None = None


# ---------------------------------------------------------------------------
# Duplicate resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MergedPayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.MERGED

    master_id: str | None = None
    master_name: str | None = None


@dataclass(frozen=True)
class MergeMasterPayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.MERGE_MASTER

    merged_ids: tuple[str, ...] = ()
    merged_count: int = 0


@dataclass(frozen=True)
class LinkedToMasterPayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.LINKED_TO_MASTER

    master_id: str | None = None
    build_strategy: str | None = None
    record_type: str = "confirmed_duplicate"
    resubmission: bool = False


@dataclass(frozen=True)
class MovedToQuarantinePayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.MOVED_TO_QUARANTINE

    previous_master_id: str | None = None
    reason: str | None = None
    previous_request_type: str | None = None
    new_request_type: str | None = None
    cleared_relationships: bool = True
    resubmission: bool = False


@dataclass(frozen=True)
class MasterBuiltPayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.MASTER_BUILT

    tax_number: str | None = None
    request_type: str | None = None
    from_quarantine: bool = False
    linked_count: int = 0
    quarantine_count: int = 0
    contacts_added: int = 0
    documents_added: int = 0
    selected_fields: dict[str, Any] = field(default_factory=dict)
    built_from_records: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MasterResubmittedPayload(EventPayload):
    action: ClassVar[WorkflowAction] = WorkflowAction.MASTER_RESUBMITTED

    original_record_id: str | None = None
    previous_reject_reason: str | None = None
    linked_count: int = 0
    quarantine_count: int = 0
    contacts_count: int = 0
    documents_count: int = 0
    selected_fields: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)


PAYLOAD_TYPES: dict[WorkflowAction, type[EventPayload]] = {
    cls.action: cls
    for cls in (
        CreatePayload,
        UpdatePayload,
        MasterApprovePayload,
        SentToQuarantinePayload,
        MasterRejectPayload,
        QuarantineCompletePayload,
        GoldenSuspendPayload,
        ComplianceApprovePayload,
        ComplianceBlockPayload,
        GoldenSupersedePayload,
        GoldenRestorePayload,
        MergedPayload,
        MergeMasterPayload,
        LinkedToMasterPayload,
        MovedToQuarantinePayload,
        MasterBuiltPayload,
        MasterResubmittedPayload,
    )
}


def decode_payload(action: str | WorkflowAction, data: dict[str, Any] | None) -> EventPayload:
    """Rebuild the typed payload stored for ``action``."""
    payload_type = PAYLOAD_TYPES[WorkflowAction(action)]
    return payload_type.from_dict(data or {})
