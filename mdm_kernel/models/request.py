"""
Module: mdm_kernel.models.request
Responsibility: ORM persistence for company change requests and the child
    rows they exclusively own (contacts, documents, review issues).

Architecture position: Kernel > Models.  May import from db/base.py, domain
    value types and exceptions only.

Invariants enforced:
    - Status, compliance status and company status limited by check
      constraints to their enumerated values.
    - golden_record_code is unique across the store.
    - Children are owned: deleting a request deletes its contacts, documents
      and issues (ORM cascade plus ON DELETE CASCADE).
    - version_id is the optimistic concurrency counter; a stale write fails
      at flush with StaleDataError.
    - Annotations (notes, block_reasons) are append-only lists; helpers
      always reassign the list so the JSON column is marked dirty.

Failure modes:
    - IntegrityError on a duplicate golden_record_code or document_id.
    - StaleDataError when another transaction changed the row first.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mdm_kernel.db.base import Base, UUIDKeyed
from mdm_kernel.domain.dtos import (
    Annotation,
    ContactInfo,
    DocumentInfo,
    IssueInfo,
    RequestInfo,
)
from mdm_kernel.domain.fields import CONTACT_FIELDS, TRACKED_FIELDS
from mdm_kernel.domain.values import CompanyStatus, ComplianceStatus, RequestStatus


def _in_clause(column: str, enum_type) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_type)
    return f"{column} IN ({values})"


def _annotation(entry: dict[str, Any]) -> Annotation:
    return Annotation(actor=entry.get("actor", ""), at=entry.get("at", ""), text=entry.get("text", ""))


class CompanyRequest(Base):
    """A company master data request and, once golden, the record itself."""

    __tablename__ = "requests"

    __table_args__ = (
        CheckConstraint(_in_clause("status", RequestStatus), name="ck_requests_status"),
        CheckConstraint(
            "compliance_status IS NULL OR " + _in_clause("compliance_status", ComplianceStatus),
            name="ck_requests_compliance_status",
        ),
        CheckConstraint(
            "company_status IS NULL OR " + _in_clause("company_status", CompanyStatus),
            name="ck_requests_company_status",
        ),
        Index("idx_requests_status", "status"),
        Index("idx_requests_origin", "origin"),
        Index("idx_requests_assigned_to", "assigned_to"),
        Index("idx_requests_source_system", "source_system"),
        Index("idx_requests_is_golden", "is_golden"),
        Index("idx_requests_created_by", "created_by"),
        Index("idx_requests_tax", "tax"),
        Index("idx_requests_master_id", "master_id"),
        Index("idx_requests_is_master", "is_master"),
        Index("idx_requests_request_type", "request_type"),
        Index("idx_requests_original_request_type", "original_request_type"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Company
    first_name: Mapped[str | None] = mapped_column(String(255))
    first_name_ar: Mapped[str | None] = mapped_column(String(255))
    tax: Mapped[str | None] = mapped_column(String(64))
    customer_type: Mapped[str | None] = mapped_column(String(100))
    company_owner: Mapped[str | None] = mapped_column(String(255))

    # Address
    building_number: Mapped[str | None] = mapped_column(String(50))
    street: Mapped[str | None] = mapped_column(String(255))
    country: Mapped[str | None] = mapped_column(String(100))
    city: Mapped[str | None] = mapped_column(String(100))

    # Primary contact
    contact_name: Mapped[str | None] = mapped_column(String(255))
    email_address: Mapped[str | None] = mapped_column(String(255))
    mobile_number: Mapped[str | None] = mapped_column(String(50))
    job_title: Mapped[str | None] = mapped_column(String(100))
    landline: Mapped[str | None] = mapped_column(String(50))
    preferred_language: Mapped[str | None] = mapped_column(String(20))

    # Sales area
    sales_org: Mapped[str | None] = mapped_column(String(100))
    distribution_channel: Mapped[str | None] = mapped_column(String(100))
    division: Mapped[str | None] = mapped_column(String(100))

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RequestStatus.PENDING.value)
    compliance_status: Mapped[str | None] = mapped_column(String(20))
    company_status: Mapped[str | None] = mapped_column(String(20))
    assigned_to: Mapped[str | None] = mapped_column(String(50))
    reject_reason: Mapped[str | None] = mapped_column(Text)

    origin: Mapped[str] = mapped_column(String(30), nullable=False)
    source_system: Mapped[str | None] = mapped_column(String(100))
    request_type: Mapped[str] = mapped_column(String(20), nullable=False)
    original_request_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Golden record
    is_golden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    golden_record_code: Mapped[str | None] = mapped_column(String(32), unique=True)
    source_golden_id: Mapped[str | None] = mapped_column(String(64))

    # Duplicate resolution
    master_id: Mapped[str | None] = mapped_column(String(64))
    is_master: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_merged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    merged_into_id: Mapped[str | None] = mapped_column(String(64))
    confidence: Mapped[float | None] = mapped_column(Float)

    # Provenance
    built_from_records: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    selected_field_sources: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    build_strategy: Mapped[str | None] = mapped_column(String(30))

    # Annotations
    notes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    block_reasons: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    created_by: Mapped[str | None] = mapped_column(String(100))
    reviewed_by: Mapped[str | None] = mapped_column(String(100))
    compliance_by: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    contacts: Mapped[list[Contact]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="Contact.added_at",
        lazy="selectin",
    )
    documents: Mapped[list[Document]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="Document.uploaded_at",
        lazy="selectin",
    )
    issues: Mapped[list[Issue]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="Issue.created_at",
        lazy="selectin",
    )

    # -- annotations --------------------------------------------------------

    def add_note(self, actor: str, text: str, at: datetime) -> None:
        self.notes = [*(self.notes or []), {"actor": actor, "at": at.isoformat(), "text": text}]

    def add_block_reason(self, actor: str, text: str, at: datetime) -> None:
        self.block_reasons = [
            *(self.block_reasons or []),
            {"actor": actor, "at": at.isoformat(), "text": text},
        ]

    # -- projections --------------------------------------------------------

    def company_fields(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in TRACKED_FIELDS}

    def snapshot(self) -> dict[str, Any]:
        """Flat copy used for provenance and recommendations."""
        data = self.company_fields()
        data.update(
            id=self.id,
            status=self.status,
            source_system=self.source_system,
            origin=self.origin,
            request_type=self.request_type,
            original_request_type=self.original_request_type,
            master_id=self.master_id,
            is_master=bool(self.is_master),
            created_by=self.created_by,
        )
        return data

    def to_dto(self) -> RequestInfo:
        return RequestInfo(
            id=self.id,
            status=self.status,
            fields=self.company_fields(),
            compliance_status=self.compliance_status,
            company_status=self.company_status,
            assigned_to=self.assigned_to,
            reject_reason=self.reject_reason,
            origin=self.origin,
            source_system=self.source_system,
            request_type=self.request_type,
            original_request_type=self.original_request_type,
            is_golden=bool(self.is_golden),
            golden_record_code=self.golden_record_code,
            master_id=self.master_id,
            is_master=bool(self.is_master),
            is_merged=bool(self.is_merged),
            merged_into_id=self.merged_into_id,
            confidence=self.confidence,
            source_golden_id=self.source_golden_id,
            built_from_records=self.built_from_records,
            selected_field_sources=self.selected_field_sources,
            build_strategy=self.build_strategy,
            notes=tuple(_annotation(n) for n in self.notes or []),
            block_reasons=tuple(_annotation(b) for b in self.block_reasons or []),
            created_by=self.created_by,
            reviewed_by=self.reviewed_by,
            compliance_by=self.compliance_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
            contacts=tuple(c.to_dto() for c in self.contacts),
            documents=tuple(d.to_dto() for d in self.documents),
            issues=tuple(i.to_dto() for i in self.issues),
        )

    def __repr__(self) -> str:
        return f"<CompanyRequest {self.id} {self.status} tax={self.tax}>"


class Contact(UUIDKeyed, Base):
    __tablename__ = "contacts"

    __table_args__ = (Index("idx_contacts_request_id", "request_id"),)

    request_id: Mapped[str] = mapped_column(
        ForeignKey("requests.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str | None] = mapped_column(String(255))
    job_title: Mapped[str | None] = mapped_column(String(100))
    email: Mapped[str | None] = mapped_column(String(255))
    mobile: Mapped[str | None] = mapped_column(String(50))
    landline: Mapped[str | None] = mapped_column(String(50))
    preferred_language: Mapped[str | None] = mapped_column(String(20))
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source: Mapped[str | None] = mapped_column(String(100))
    added_by: Mapped[str | None] = mapped_column(String(100))
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    request: Mapped[CompanyRequest] = relationship(back_populates="contacts")

    def snapshot(self) -> dict[str, Any]:
        data = {name: getattr(self, name) for name in CONTACT_FIELDS}
        data["id"] = str(self.id)
        data["is_primary"] = bool(self.is_primary)
        return data

    def to_dto(self) -> ContactInfo:
        return ContactInfo(
            id=self.id,
            name=self.name,
            job_title=self.job_title,
            email=self.email,
            mobile=self.mobile,
            landline=self.landline,
            preferred_language=self.preferred_language,
            is_primary=bool(self.is_primary),
            source=self.source,
            added_by=self.added_by,
        )


class Document(UUIDKeyed, Base):
    __tablename__ = "documents"

    __table_args__ = (Index("idx_documents_request_id", "request_id"),)

    request_id: Mapped[str] = mapped_column(
        ForeignKey("requests.id", ondelete="CASCADE"), nullable=False
    )
    document_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str | None] = mapped_column(String(50))
    description: Mapped[str | None] = mapped_column(Text)
    size: Mapped[int | None] = mapped_column(Integer)
    mime: Mapped[str | None] = mapped_column(String(100))
    content_base64: Mapped[str | None] = mapped_column(Text)
    source: Mapped[str | None] = mapped_column(String(100))
    uploaded_by: Mapped[str | None] = mapped_column(String(100))
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    request: Mapped[CompanyRequest] = relationship(back_populates="documents")

    def to_dto(self) -> DocumentInfo:
        return DocumentInfo(
            id=self.id,
            document_id=self.document_id,
            name=self.name,
            type=self.type,
            description=self.description,
            size=self.size,
            mime=self.mime,
            source=self.source,
            uploaded_by=self.uploaded_by,
            uploaded_at=self.uploaded_at,
        )


class Issue(UUIDKeyed, Base):
    """Reviewer feedback recorded on rejection.  Never mutated by the kernel."""

    __tablename__ = "issues"

    __table_args__ = (Index("idx_issues_request_id", "request_id"),)

    request_id: Mapped[str] = mapped_column(
        ForeignKey("requests.id", ondelete="CASCADE"), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    reviewed_by: Mapped[str | None] = mapped_column(String(100))
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    request: Mapped[CompanyRequest] = relationship(back_populates="issues")

    def to_dto(self) -> IssueInfo:
        return IssueInfo(
            id=self.id,
            description=self.description,
            reviewed_by=self.reviewed_by,
            created_at=self.created_at,
            resolved=bool(self.resolved),
        )
