"""
Data transfer objects for the master data kernel.

Command inputs (``ContactInput``, ``DocumentInput``, ``BuildMasterCommand``,
``ResubmitMasterCommand``) come in from callers; read models (``RequestInfo``
and friends) go out.  All are frozen: a DTO is a snapshot, never a handle on
a live ORM row.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from mdm_kernel.domain.events import EventPayload


# ---------------------------------------------------------------------------
# Command inputs
# ---------------------------------------------------------------------------


class ContactOp(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ContactInput:
    """
    A contact as supplied by the caller.

    ``op`` may be left unset; the kernel then derives it once from ``id``
    (owned id -> update, anything else -> insert).
    """

    name: str | None = None
    job_title: str | None = None
    email: str | None = None
    mobile: str | None = None
    landline: str | None = None
    preferred_language: str | None = None
    is_primary: bool = False
    source: str | None = None
    added_by: str | None = None
    id: str | None = None
    op: ContactOp | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ContactInput:
        op = data.get("op")
        return cls(
            name=data.get("name"),
            job_title=data.get("job_title"),
            email=data.get("email"),
            mobile=data.get("mobile"),
            landline=data.get("landline"),
            preferred_language=data.get("preferred_language"),
            is_primary=bool(data.get("is_primary", False)),
            source=data.get("source"),
            added_by=data.get("added_by"),
            id=str(data["id"]) if data.get("id") is not None else None,
            op=ContactOp(op) if op else None,
        )

    def values(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "job_title": self.job_title,
            "email": self.email,
            "mobile": self.mobile,
            "landline": self.landline,
            "preferred_language": self.preferred_language,
            "is_primary": self.is_primary,
        }


@dataclass(frozen=True)
class DocumentInput:
    name: str
    document_id: str | None = None
    type: str | None = None
    description: str | None = None
    size: int | None = None
    mime: str | None = None
    content_base64: str | None = None
    source: str | None = None
    uploaded_by: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> DocumentInput:
        return cls(
            name=data["name"],
            document_id=data.get("document_id"),
            type=data.get("type"),
            description=data.get("description"),
            size=data.get("size"),
            mime=data.get("mime"),
            content_base64=data.get("content_base64"),
            source=data.get("source"),
            uploaded_by=data.get("uploaded_by"),
        )


@dataclass(frozen=True)
class BuildMasterCommand:
    """Inputs for building a master record out of one tax-number group."""

    tax_number: str | None
    selected_fields: Mapping[str, str] = field(default_factory=dict)
    duplicate_ids: tuple[str, ...] = ()
    quarantine_ids: tuple[str, ...] = ()
    manual_fields: Mapping[str, Any] = field(default_factory=dict)
    master_data: Mapping[str, Any] = field(default_factory=dict)
    contacts: tuple[ContactInput, ...] = ()
    documents: tuple[DocumentInput, ...] = ()
    built_from_records: Mapping[str, Any] | None = None
    from_quarantine: bool = False


@dataclass(frozen=True)
class ResubmitMasterCommand(BuildMasterCommand):
    """A rejected master corrected in place rather than rebuilt."""

    original_record_id: str | None = None
    is_resubmission: bool = False


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Annotation:
    actor: str
    at: str
    text: str


@dataclass(frozen=True)
class ContactInfo:
    id: UUID
    name: str | None
    job_title: str | None
    email: str | None
    mobile: str | None
    landline: str | None
    preferred_language: str | None
    is_primary: bool
    source: str | None
    added_by: str | None


@dataclass(frozen=True)
class DocumentInfo:
    id: UUID
    document_id: str
    name: str
    type: str | None
    description: str | None
    size: int | None
    mime: str | None
    source: str | None
    uploaded_by: str | None
    uploaded_at: datetime | None


@dataclass(frozen=True)
class IssueInfo:
    id: UUID
    description: str
    reviewed_by: str | None
    created_at: datetime | None
    resolved: bool


@dataclass(frozen=True)
class RequestInfo:
    id: str
    status: str
    fields: Mapping[str, Any]
    compliance_status: str | None
    company_status: str | None
    assigned_to: str | None
    reject_reason: str | None
    origin: str
    source_system: str | None
    request_type: str
    original_request_type: str
    is_golden: bool
    golden_record_code: str | None
    master_id: str | None
    is_master: bool
    is_merged: bool
    merged_into_id: str | None
    confidence: float | None
    source_golden_id: str | None
    built_from_records: Mapping[str, Any] | None
    selected_field_sources: Mapping[str, Any] | None
    build_strategy: str | None
    notes: tuple[Annotation, ...]
    block_reasons: tuple[Annotation, ...]
    created_by: str | None
    reviewed_by: str | None
    compliance_by: str | None
    created_at: datetime | None
    updated_at: datetime | None
    contacts: tuple[ContactInfo, ...] = ()
    documents: tuple[DocumentInfo, ...] = ()
    issues: tuple[IssueInfo, ...] = ()

    @property
    def tax(self) -> str | None:
        return self.fields.get("tax")

    @property
    def first_name(self) -> str | None:
        return self.fields.get("first_name")


@dataclass(frozen=True)
class WorkflowEventInfo:
    id: UUID
    request_id: str
    sequence: int
    action: str
    from_status: str | None
    to_status: str | None
    performed_by: str
    performed_by_role: str
    note: str | None
    payload: EventPayload
    performed_at: datetime


@dataclass(frozen=True)
class LineageEntry:
    """One change as shown in a request's lineage view."""

    type: str
    field: str
    field_name: str | None
    old_value: Any
    new_value: Any
    action: str
    performed_by: str
    source: str
    performed_at: datetime
    note: str | None


@dataclass(frozen=True)
class LineageView:
    request_id: str
    field_changes: tuple[LineageEntry, ...]
    contact_changes: tuple[LineageEntry, ...]
    document_changes: tuple[LineageEntry, ...]
    events: tuple[WorkflowEventInfo, ...]


@dataclass(frozen=True)
class MergeResult:
    master_id: str
    merged_ids: tuple[str, ...]

    @property
    def merged_count(self) -> int:
        return len(self.merged_ids)


@dataclass(frozen=True)
class BuildMasterResult:
    master_id: str
    tax_number: str
    linked_ids: tuple[str, ...]
    quarantined_ids: tuple[str, ...]
    contacts_added: int
    documents_added: int


@dataclass(frozen=True)
class DuplicateGroupSummary:
    tax_number: str
    group_name: str
    record_count: int
    record_ids: tuple[str, ...]


@dataclass(frozen=True)
class DuplicateGroup:
    """One tax-number group with its members, master first."""

    tax_number: str
    group_name: str
    records: tuple[RequestInfo, ...]
    master_id: str | None = None

    @property
    def record_count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class RequestStats:
    total: int
    pending: int
    approved: int
    rejected: int
    quarantined: int
    golden: int
    active: int
    blocked: int
    by_origin: Mapping[str, int]
    by_status: Mapping[str, int]
    by_source_system: Mapping[str, int]
    by_request_type: Mapping[str, int]
    by_original_request_type: Mapping[str, int]


@dataclass(frozen=True)
class DataStats:
    masters: int
    quarantine: int
    golden: int
    total: int
    pending: int
