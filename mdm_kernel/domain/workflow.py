"""
Request workflow definition (``mdm_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the request lifecycle state machine and the one
``REQUEST_WORKFLOW`` instance every service validates status changes against.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions: a Merged record never moves.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from mdm_kernel.domain.values import TERMINAL_STATUSES, RequestStatus


class RequestAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    SEND_TO_QUARANTINE = "send_to_quarantine"
    COMPLETE_QUARANTINE = "complete_quarantine"
    LINK = "link"
    MERGE = "merge"
    RESUBMIT = "resubmit"


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a record lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"Initial state {self.initial_state!r} not in states")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"Transition {t} references an unknown state")
            if t.from_state in self.terminal_states:
                raise ValueError(f"Terminal state {t.from_state!r} has an outgoing transition")

    def find(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` out of ``from_state``, if any."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states


_ALL = tuple(s.value for s in RequestStatus)
_OPEN = tuple(s.value for s in RequestStatus if s not in TERMINAL_STATUSES)

# Actions legal from every non-terminal status, with their target.
_FROM_ANY_OPEN: tuple[tuple[RequestAction, RequestStatus], ...] = (
    (RequestAction.APPROVE, RequestStatus.APPROVED),
    (RequestAction.REJECT, RequestStatus.REJECTED),
    (RequestAction.SEND_TO_QUARANTINE, RequestStatus.QUARANTINE),
    (RequestAction.LINK, RequestStatus.LINKED),
    (RequestAction.MERGE, RequestStatus.MERGED),
    (RequestAction.RESUBMIT, RequestStatus.PENDING),
)

REQUEST_WORKFLOW = Workflow(
    name="company_request",
    description="Data entry -> reviewer -> compliance lifecycle of a company request",
    initial_state=RequestStatus.PENDING.value,
    states=_ALL,
    transitions=tuple(
        Transition(from_state=state, to_state=target.value, action=action.value)
        for action, target in _FROM_ANY_OPEN
        for state in _OPEN
    )
    + (
        Transition(
            from_state=RequestStatus.QUARANTINE.value,
            to_state=RequestStatus.PENDING.value,
            action=RequestAction.COMPLETE_QUARANTINE.value,
        ),
    ),
    terminal_states=frozenset(s.value for s in TERMINAL_STATUSES),
)
