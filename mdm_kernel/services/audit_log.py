"""
AuditLogService -- append-only workflow history writer.

Responsibility:
    Persists one ``WorkflowEvent`` per state change, serializing the typed
    payload for its action, and purges a request's history when the request
    itself is deleted.

Architecture position:
    Kernel > Services.  Called by every write-side service; reading history
    belongs to ``HistorySelector``.

Invariants enforced:
    - Append-only: rows are only ever added (ORM listeners reject updates
      and deletes; ``purge`` uses a bulk DELETE that bypasses them on purpose).
    - Sequence monotonicity per request: the next sequence is read once per
      session and then counted locally, so several events written for the
      same request inside one unit of work stay ordered.

Failure modes:
    - IntegrityError on (request_id, sequence) if two transactions write
      history for the same request concurrently; surfaced by the command
      layer as a storage failure.
"""

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from mdm_kernel.domain.clock import Clock, SystemClock
from mdm_kernel.domain.events import EventPayload
from mdm_kernel.domain.values import Actor
from mdm_kernel.logging_config import get_logger
from mdm_kernel.models.workflow_event import WorkflowEvent

logger = get_logger("services.audit_log")


class AuditLogService:
    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()
        self._next_sequence: dict[str, int] = {}

    def _allocate_sequence(self, request_id: str) -> int:
        if request_id not in self._next_sequence:
            current = self.session.scalar(
                select(func.max(WorkflowEvent.sequence)).where(
                    WorkflowEvent.request_id == request_id
                )
            )
            self._next_sequence[request_id] = (current or 0) + 1
        sequence = self._next_sequence[request_id]
        self._next_sequence[request_id] = sequence + 1
        return sequence

    def record(
        self,
        request_id: str,
        payload: EventPayload,
        *,
        actor: Actor,
        from_status: str | None,
        to_status: str | None,
        note: str | None = None,
    ) -> WorkflowEvent:
        """Append one event.  The caller's flush persists it."""
        workflow_event = WorkflowEvent(
            request_id=request_id,
            sequence=self._allocate_sequence(request_id),
            action=payload.action.value,
            from_status=from_status,
            to_status=to_status,
            performed_by=actor.name,
            performed_by_role=actor.role,
            note=note,
            payload=payload.to_dict(),
            performed_at=self._clock.now(),
        )
        self.session.add(workflow_event)

        logger.debug(
            "workflow_event_recorded",
            extra={
                "request_id": request_id,
                "action": workflow_event.action,
                "sequence": workflow_event.sequence,
                "from_status": from_status,
                "to_status": to_status,
            },
        )
        return workflow_event

    def purge(self, request_id: str) -> int:
        """Remove a deleted request's history.  Returns the number of rows removed."""
        self.session.flush()
        result = self.session.execute(
            delete(WorkflowEvent).where(WorkflowEvent.request_id == request_id)
        )
        self._next_sequence.pop(request_id, None)
        logger.info(
            "workflow_history_purged",
            extra={"request_id": request_id, "events_removed": result.rowcount},
        )
        return result.rowcount

    def purge_all(self) -> int:
        """Remove every history row.  Used only when the whole store is cleared."""
        self.session.flush()
        result = self.session.execute(delete(WorkflowEvent))
        self._next_sequence.clear()
        logger.warning("workflow_history_cleared", extra={"events_removed": result.rowcount})
        return result.rowcount
