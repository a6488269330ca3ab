"""
Module: mdm_kernel.selectors.history_selector
Responsibility: Read access to the workflow history of one request, both as
    the raw chronological event list and as the field / contact / document
    lineage view.
Architecture position: Kernel > Selectors.  The write side is
    ``services.audit_log.AuditLogService``.

Invariants enforced:
    - History is ordered by the per-request sequence, oldest first; lineage
      is the same events newest first.
    - Payloads are decoded into their typed dataclass; nothing is returned
      as a raw dict.

Failure modes:
    - None.  An unknown request (or a deleted one whose history was purged)
      yields an empty history.

Audit relevance:
    Lineage answers "who changed this value, when, and in which role" for
    every company field and contact of a request.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from mdm_kernel.domain.dtos import LineageEntry, LineageView, WorkflowEventInfo
from mdm_kernel.domain.events import ChangeKind, decode_payload
from mdm_kernel.models.workflow_event import WorkflowEvent
from mdm_kernel.selectors.base import BaseSelector

DEFAULT_SOURCE = "User"


class HistorySelector(BaseSelector):
    def __init__(self, session: Session):
        super().__init__(session)

    def _to_dto(self, workflow_event: WorkflowEvent) -> WorkflowEventInfo:
        return WorkflowEventInfo(
            id=workflow_event.id,
            request_id=workflow_event.request_id,
            sequence=workflow_event.sequence,
            action=workflow_event.action,
            from_status=workflow_event.from_status,
            to_status=workflow_event.to_status,
            performed_by=workflow_event.performed_by,
            performed_by_role=workflow_event.performed_by_role,
            note=workflow_event.note,
            payload=decode_payload(workflow_event.action, workflow_event.payload),
            performed_at=workflow_event.performed_at,
        )

    def history(self, request_id: str) -> list[WorkflowEventInfo]:
        query = (
            select(WorkflowEvent)
            .where(WorkflowEvent.request_id == request_id)
            .order_by(WorkflowEvent.sequence)
        )
        return [self._to_dto(e) for e in self.session.scalars(query)]

    def lineage(self, request_id: str) -> LineageView:
        """Every recorded change of ``request_id``, newest first, split by kind."""
        events = list(reversed(self.history(request_id)))
        by_kind: dict[ChangeKind, list[LineageEntry]] = {kind: [] for kind in ChangeKind}

        for info in events:
            for change in getattr(info.payload, "changes", ()):
                by_kind[change.kind].append(
                    LineageEntry(
                        type=change.kind.value,
                        field=change.field,
                        field_name=change.field_name,
                        old_value=change.old_value,
                        new_value=change.new_value,
                        action=info.action,
                        performed_by=info.performed_by,
                        source=info.performed_by_role or DEFAULT_SOURCE,
                        performed_at=info.performed_at,
                        note=info.note,
                    )
                )

        return LineageView(
            request_id=request_id,
            field_changes=tuple(by_kind[ChangeKind.FIELD]),
            contact_changes=tuple(by_kind[ChangeKind.CONTACT]),
            document_changes=tuple(by_kind[ChangeKind.DOCUMENT]),
            events=tuple(events),
        )
