"""
Module: mdm_kernel.models.workflow_event
Responsibility: ORM persistence for the append-only workflow history of
    requests.

Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions only.

Invariants enforced:
    - Append-only: ORM before_update / before_delete listeners raise
      ImmutabilityViolationError.  The one sanctioned removal path is the
      Core DELETE issued by AuditLogService.purge() when a request is deleted.
    - (request_id, sequence) is unique; sequence orders a request's history.
    - request_id is deliberately not a foreign key: history rows are written
      for records in other aggregates (predecessor golden records, linked
      duplicates) within the same unit of work.

Failure modes:
    - ImmutabilityViolationError on any ORM-level UPDATE/DELETE.
    - IntegrityError on a duplicate (request_id, sequence).

Audit relevance:
    This table is the lineage of every request: each status transition,
    field edit, merge, link, quarantine and golden record decision.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from mdm_kernel.db.base import Base, UUIDKeyed
from mdm_kernel.exceptions import ImmutabilityViolationError


class WorkflowEvent(UUIDKeyed, Base):
    __tablename__ = "workflow_events"

    __table_args__ = (
        UniqueConstraint("request_id", "sequence", name="uq_workflow_events_request_sequence"),
        Index("idx_workflow_events_request_id", "request_id"),
        Index("idx_workflow_events_action", "action"),
        Index("idx_workflow_events_performed_at", "performed_at"),
    )

    request_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(20))
    to_status: Mapped[str | None] = mapped_column(String(20))
    performed_by: Mapped[str] = mapped_column(String(100), nullable=False)
    performed_by_role: Mapped[str] = mapped_column(String(50), nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<WorkflowEvent {self.request_id}#{self.sequence} "
            f"{self.action} {self.from_status}->{self.to_status}>"
        )


@event.listens_for(WorkflowEvent, "before_update")
def prevent_workflow_event_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="WorkflowEvent",
        entity_id=str(target.id),
        reason="Workflow events are append-only",
    )


@event.listens_for(WorkflowEvent, "before_delete")
def prevent_workflow_event_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="WorkflowEvent",
        entity_id=str(target.id),
        reason="Workflow events are append-only; purge a deleted request's history instead",
    )
