"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every write-side
    service.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back.  The caller (``MasterDataCommands`` or
      a test harness) owns commit/rollback, so a command that touches several
      records either lands completely or not at all.
"""

from abc import ABC

from sqlalchemy.orm import Session

from mdm_kernel.domain.clock import Clock, SystemClock
from mdm_kernel.domain.invariants import enforce_request_invariants
from mdm_kernel.domain.policy import DEFAULT_POLICY, WorkflowPolicy
from mdm_kernel.domain.values import CompanyStatus
from mdm_kernel.domain.workflow import REQUEST_WORKFLOW, RequestAction
from mdm_kernel.exceptions import InvalidTransitionError, RequestNotFoundError
from mdm_kernel.models.request import CompanyRequest


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide projection queries -- those belong in
          ``mdm_kernel/selectors/``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: WorkflowPolicy | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._policy = policy or DEFAULT_POLICY


class RequestServiceBase(BaseService):
    """Shared load / transition / touch helpers for services that mutate requests."""

    def _find_request(self, request_id: str | None) -> CompanyRequest | None:
        if not request_id:
            return None
        return self.session.get(CompanyRequest, request_id)

    def _get_request(self, request_id: str) -> CompanyRequest:
        record = self._find_request(request_id)
        if record is None:
            raise RequestNotFoundError(request_id)
        return record

    def _is_closed(self, record: CompanyRequest) -> bool:
        return (
            REQUEST_WORKFLOW.is_terminal(record.status)
            or record.company_status == CompanyStatus.SUPERSEDED.value
        )

    def _transition(self, record: CompanyRequest, action: RequestAction) -> str:
        """Move ``record`` along the workflow; returns the status it left."""
        transition = REQUEST_WORKFLOW.find(record.status, action.value)
        if transition is None or record.company_status == CompanyStatus.SUPERSEDED.value:
            raise InvalidTransitionError(record.id, record.status, action.value)
        previous = record.status
        record.status = transition.to_state
        return previous

    def _touch(self, record: CompanyRequest) -> None:
        record.updated_at = self._clock.now()
        enforce_request_invariants(record)
